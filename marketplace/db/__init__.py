"""
Database module - engine, sessions and table definitions.
"""
from marketplace.db.session import get_db_session, init_db, check_db_connection

__all__ = [
    "get_db_session",
    "init_db",
    "check_db_connection"
]
