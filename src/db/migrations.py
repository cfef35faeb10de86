from __future__ import annotations

import logging
import sqlite3

from db.schema import SCHEMA_V1_SQL

logger = logging.getLogger(__name__)

CURRENT_DB_VERSION = 2


def upgrade_database_if_needed(db: sqlite3.Connection, existing_version: int) -> None:
    logger.info("Existing database version: %s", existing_version)

    if existing_version >= CURRENT_DB_VERSION:
        return

    # v1
    if existing_version <= 0:
        logger.info("Migrate database version 1...")
        db.execute("PRAGMA journal_mode=WAL")
        db.execute("PRAGMA user_version=1")
        db.executescript(SCHEMA_V1_SQL)
        db.commit()

    # v2: played_at lead split from the low-remaining trigger, bounded fill loop
    if existing_version <= 1:
        logger.info("Migrate database version 2...")
        db.execute("PRAGMA user_version=2")
        db.executescript("""
            ALTER TABLE config_data ADD COLUMN history_lead_seconds INTEGER DEFAULT 10;
            ALTER TABLE config_data ADD COLUMN max_attempts_per_tick INTEGER DEFAULT 50;
            UPDATE config_data SET history_lead_seconds = low_remaining_seconds;
            CREATE INDEX idx_history_records_played_time ON history_records(played_time);
        """)
        db.commit()
