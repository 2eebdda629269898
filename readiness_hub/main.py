import logging
from typing import Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from readiness_hub import models  # noqa: F401  registers tables on Base
from readiness_hub.config import CORS_ALLOW_ORIGINS, DEV_BOOTSTRAP
from readiness_hub.db import Base, engine
from readiness_hub.routers import directives_api, readiness_api, sessions_api

log = logging.getLogger("uvicorn.error")

app = FastAPI(title="Readiness Hub API", version="0.2")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Dev bootstrap (optional): create tables for known models
if DEV_BOOTSTRAP:
    Base.metadata.create_all(bind=engine)
    log.info("DEV_BOOTSTRAP: tables created")

app.include_router(readiness_api.router)
app.include_router(sessions_api.router)
app.include_router(directives_api.router)


# ---------------- Health ----------------
@app.get("/health")
def health() -> Dict[str, str]:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok"}
