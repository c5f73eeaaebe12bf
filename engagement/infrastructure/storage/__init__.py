"""
Storage Package
SQLAlchemy-backed record store.
"""
from .sql_record_store import SQLRecordStore
from .database import create_db_engine, create_session_factory, session_scope

__all__ = [
    "SQLRecordStore",
    "create_db_engine",
    "create_session_factory",
    "session_scope",
]
