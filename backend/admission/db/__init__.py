from admission.db.base import Base
from admission.db.session import SessionLocal, check_database, engine, get_db
from admission.db.tables import ALL_TABLE_NAMES, PIPELINE_TABLE_NAMES

__all__ = [
    "get_db",
    "engine",
    "SessionLocal",
    "check_database",
    "Base",
    "ALL_TABLE_NAMES",
    "PIPELINE_TABLE_NAMES",
]
