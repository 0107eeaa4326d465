from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from app.core.config import settings


def build_connect_args(database_url: str, statement_timeout_ms: int) -> dict[str, Any]:
    """DBAPI connect args per backend.

    Postgres gets a server-side statement_timeout so a hung signal read
    fails fast instead of holding the request until the worker is killed.
    """
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False}
    if database_url.startswith("postgresql") and statement_timeout_ms > 0:
        return {"options": f"-c statement_timeout={int(statement_timeout_ms)}"}
    return {}


engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    connect_args=build_connect_args(settings.DATABASE_URL, settings.DB_STATEMENT_TIMEOUT_MS),
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
