"""Factories for the ledger database."""

import logging
import os
from pathlib import Path
from typing import Optional

from parkledger.database.sqlalchemy_db import SQLAlchemyDatabase

logger = logging.getLogger(__name__)

DB_PATH_ENV = "PARKLEDGER_DB_PATH"
DEFAULT_DB_DIR = ".parkledger"
DEFAULT_DB_NAME = "parkledger.db"


def resolve_database_path(database_path: Optional[str] = None) -> str:
    """Pick the ledger file: explicit path, then PARKLEDGER_DB_PATH, then the home default.

    The home directory folder is created on demand. Explicit paths and the
    environment value are used as given.
    """
    if database_path:
        return database_path

    env_path = os.environ.get(DB_PATH_ENV)
    if env_path:
        return env_path

    db_dir = Path.home() / DEFAULT_DB_DIR
    db_dir.mkdir(parents=True, exist_ok=True)
    return str(db_dir / DEFAULT_DB_NAME)


def create_sqlite_database(database_path: Optional[str] = None) -> SQLAlchemyDatabase:
    """Create the SQLite-backed ledger.

    Args:
        database_path: Ledger file. See ``resolve_database_path`` for the
            fallbacks when omitted.

    Returns:
        SQLAlchemyDatabase with ``database_path`` set to the resolved file
    """
    path = resolve_database_path(database_path)
    logger.debug("Using ledger database at %s", path)
    db = SQLAlchemyDatabase(f"sqlite:///{path}")
    db.database_path = path
    return db
