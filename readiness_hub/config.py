import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+pysqlite:///./app.db")
API_KEY = os.getenv("API_KEY", "")
TELEMETRY_BASE_URL = os.getenv("TELEMETRY_BASE_URL", "http://127.0.0.1:8080").rstrip("/")
TELEMETRY_TIMEOUT = float(os.getenv("TELEMETRY_TIMEOUT", "10"))
DEV_BOOTSTRAP = os.getenv("DEV_BOOTSTRAP", "0") == "1"
CORS_ALLOW_ORIGINS = [o.strip() for o in os.getenv(
    "CORS_ALLOW_ORIGINS", "http://localhost:3000,http://localhost:8501"
).split(",")]
