from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from readiness_hub.config import DATABASE_URL

IS_SQLITE = DATABASE_URL.startswith("sqlite")

# SQLite connections are shared with the threadpool FastAPI runs sync routes in.
engine = create_engine(
    DATABASE_URL,
    pool_pre_ping=True,
    connect_args={"check_same_thread": False} if IS_SQLITE else {},
    **({} if IS_SQLITE else {"pool_size": 5, "max_overflow": 10}),
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Request-scoped session for FastAPI dependencies."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
