from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from typing import Iterator

from core.errors import PersistenceUnavailable
from db.migrations import upgrade_database_if_needed

logger = logging.getLogger(__name__)

DB_FILE_NAME = "db.sqlite3"
BUSY_TIMEOUT_S = 5.0


def connect(db_path: str) -> sqlite3.Connection:
    """
    Open a connection in autocommit mode; atomic work goes through
    transaction(). Every thread opens its own connection.
    """
    try:
        db = sqlite3.connect(db_path, timeout=BUSY_TIMEOUT_S, isolation_level=None)
    except sqlite3.Error as e:
        raise PersistenceUnavailable(f"Cannot open database {db_path}: {e}") from e
    db.row_factory = sqlite3.Row
    db.execute("PRAGMA foreign_keys=ON")
    return db


def initialize_database(app_data_dir: str) -> sqlite3.Connection:
    os.makedirs(app_data_dir, exist_ok=True)
    sqlite_path = os.path.join(app_data_dir, DB_FILE_NAME)
    logger.info("Database file path: %s", sqlite_path)

    db = connect(sqlite_path)
    migrate(db)
    return db


def migrate(db: sqlite3.Connection) -> None:
    existing_version = int(db.execute("PRAGMA user_version").fetchone()[0])
    upgrade_database_if_needed(db, existing_version)


@contextmanager
def open_database(db_path: str) -> Iterator[sqlite3.Connection]:
    db = connect(db_path)
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    BEGIN IMMEDIATE takes the write lock up front, so a read-then-write inside
    the block can't interleave with another connection doing the same.
    """
    try:
        db.execute("BEGIN IMMEDIATE")
    except sqlite3.OperationalError as e:
        raise PersistenceUnavailable(f"Cannot start transaction: {e}") from e

    try:
        yield db
    except sqlite3.OperationalError as e:
        _rollback(db)
        raise PersistenceUnavailable(str(e)) from e
    except BaseException:
        _rollback(db)
        raise
    else:
        try:
            db.execute("COMMIT")
        except sqlite3.OperationalError as e:
            _rollback(db)
            raise PersistenceUnavailable(f"Commit failed: {e}") from e


def _rollback(db: sqlite3.Connection) -> None:
    # sqlite may already have rolled back on its own (e.g. SQLITE_FULL)
    if db.in_transaction:
        db.execute("ROLLBACK")
