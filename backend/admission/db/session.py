"""
Database session and engine.
"""
from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from admission.config import settings
from admission.core.errors import StoreUnavailableError


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # Local runs and tests: one shared connection so in-memory data survives across sessions
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    return {
        "pool_size": 8,
        "max_overflow": 10,
        "pool_pre_ping": True,
        "pool_recycle": 300,
        "pool_timeout": 30,
    }


def build_engine(url: str):
    if not url:
        raise StoreUnavailableError("DATABASE_URL is not configured")
    return create_engine(url, **_engine_kwargs(url))


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_database(bind=None) -> None:
    """
    Fail fast when the store is unreachable. Called once at startup; raises
    StoreUnavailableError instead of letting the first job or request discover it.
    """
    target = bind if bind is not None else engine
    try:
        with target.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        raise StoreUnavailableError(f"Database unavailable: {e}") from e
