from __future__ import annotations

import dataclasses
import os
import sqlite3
from datetime import datetime, timezone
from typing import Callable, List, Optional

from core.errors import MetadataUnreadable, TrackCreationFailed
from core.models import AudioMetadata
from core.utils import display_name_for
from db.database import transaction
from db.models import BufferEntry, Config, HistoryEntry, Track, validate_config

ROUND_ROBIN_KEY = "round_robin_id"
SHUFFLE_ATTRIBUTION = "shuffle"


def _epoch(moment: datetime) -> float:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.timestamp()


# -------------------------------
# DIRECTORIES
# -------------------------------
def get_directories(db: sqlite3.Connection) -> List[str]:
    cursor = db.execute("SELECT path FROM directories ORDER BY id")
    return [row["path"] for row in cursor.fetchall()]


def add_directory(db: sqlite3.Connection, path: str) -> None:
    db.execute("INSERT INTO directories (path) VALUES (?)", (path,))


def remove_directory(db: sqlite3.Connection, path: str) -> int:
    cursor = db.execute("DELETE FROM directories WHERE path = ?", (path,))
    return cursor.rowcount


# -------------------------------
# CONFIG
# -------------------------------
def get_config(db: sqlite3.Connection) -> Config:
    row = db.execute("""
        SELECT buffer_target_depth,
               replay_window_seconds,
               bookend_threshold_seconds,
               fill_interval_seconds,
               feed_interval_seconds,
               low_remaining_seconds,
               history_lead_seconds,
               player_timeout_seconds,
               max_attempts_per_tick,
               base_path,
               allowed_extensions
        FROM config_data
        LIMIT 1
    """).fetchone()
    return Config.from_row(row)


def set_config(db: sqlite3.Connection, config: Config) -> None:
    validate_config(config)
    db.execute("""
        UPDATE config_data
        SET buffer_target_depth = ?,
            replay_window_seconds = ?,
            bookend_threshold_seconds = ?,
            fill_interval_seconds = ?,
            feed_interval_seconds = ?,
            low_remaining_seconds = ?,
            history_lead_seconds = ?,
            player_timeout_seconds = ?,
            max_attempts_per_tick = ?,
            base_path = ?,
            allowed_extensions = ?
        WHERE 1
    """, (
        config.buffer_target_depth,
        config.replay_window_seconds,
        config.bookend_threshold_seconds,
        config.fill_interval_seconds,
        config.feed_interval_seconds,
        config.low_remaining_seconds,
        config.history_lead_seconds,
        config.player_timeout_seconds,
        config.max_attempts_per_tick,
        config.base_path,
        ",".join(config.allowed_extensions),
    ))


def set_config_value(db: sqlite3.Connection, key: str, raw: str) -> Config:
    """Sets one config field from its string form (CLI)."""
    config = get_config(db)
    fields = {f.name: f for f in dataclasses.fields(Config)}
    if key not in fields:
        raise KeyError(f"Unknown config key: {key}")

    current = getattr(config, key)
    if isinstance(current, list):
        value = [e.strip().lstrip(".").lower() for e in raw.split(",") if e.strip()]
    elif isinstance(current, float):
        value = float(raw)
    elif isinstance(current, int):
        value = int(raw)
    else:
        value = raw

    updated = dataclasses.replace(config, **{key: value})
    set_config(db, updated)
    return updated


# -------------------------------
# TRACKS (catalog)
# -------------------------------
def find_track(db: sqlite3.Connection, file_path: str) -> Optional[Track]:
    row = db.execute("SELECT * FROM tracks WHERE file_path = ?", (file_path,)).fetchone()
    return Track.from_row(row) if row else None


def resolve_or_create_track(
    db: sqlite3.Connection,
    file_path: str,
    read_metadata: Callable[[str], AudioMetadata],
) -> int:
    """
    Returns the id of the track for file_path, creating it on first
    reference. Idempotent on the absolute path.
    """
    file_path = os.path.abspath(file_path)
    existing = find_track(db, file_path)
    if existing:
        return existing.id

    try:
        meta = read_metadata(file_path)
    except MetadataUnreadable as e:
        raise TrackCreationFailed(file_path, e) from e

    with transaction(db):
        # INSERT OR IGNORE: another connection may have created it meanwhile
        db.execute("""
            INSERT OR IGNORE INTO tracks (file_path, file_name, display_name, duration, track_number)
            VALUES (?, ?, ?, ?, ?)
        """, (
            file_path,
            os.path.basename(file_path),
            display_name_for(file_path),
            meta.duration,
            meta.track_number,
        ))
        row = db.execute("SELECT id FROM tracks WHERE file_path = ?", (file_path,)).fetchone()
    return int(row["id"])


# -------------------------------
# BUFFER
# -------------------------------
_BUFFER_SELECT = """
    SELECT buffer_records.id, position, track_id, on_behalf_of, bot_queued,
           tracks.file_path, tracks.display_name
    FROM buffer_records
    JOIN tracks ON buffer_records.track_id = tracks.id
"""


def count_buffer(db: sqlite3.Connection) -> int:
    return int(db.execute("SELECT COUNT(*) FROM buffer_records").fetchone()[0])


def list_buffer(db: sqlite3.Connection) -> List[BufferEntry]:
    rows = db.execute(_BUFFER_SELECT + " ORDER BY position ASC").fetchall()
    return [BufferEntry.from_row(row) for row in rows]


def push_buffer_entries(
    db: sqlite3.Connection,
    track_ids: List[int],
    on_behalf_of: str = SHUFFLE_ATTRIBUTION,
    bot_queued: bool = True,
) -> int:
    """Appends the tracks at the tail, contiguously and in order."""
    if not track_ids:
        return 0
    with transaction(db):
        tail = db.execute("SELECT MAX(position) FROM buffer_records").fetchone()[0]
        position = 0 if tail is None else tail + 1
        for offset, track_id in enumerate(track_ids):
            db.execute("""
                INSERT INTO buffer_records (position, track_id, on_behalf_of, bot_queued)
                VALUES (?, ?, ?, ?)
            """, (position + offset, track_id, on_behalf_of, bot_queued))
    return len(track_ids)


def pop_buffer_head(db: sqlite3.Connection) -> Optional[BufferEntry]:
    """Reads and deletes the head in one transaction; None when empty."""
    with transaction(db):
        row = db.execute(_BUFFER_SELECT + " ORDER BY position ASC LIMIT 1").fetchone()
        if row is None:
            return None
        db.execute("DELETE FROM buffer_records WHERE id = ?", (row["id"],))
    return BufferEntry.from_row(row)


# -------------------------------
# HISTORY
# -------------------------------
_HISTORY_SELECT = """
    SELECT history_records.id, track_id, history_records.display_name,
           on_behalf_of, bot_queued, played_time, tracks.file_path
    FROM history_records
    JOIN tracks ON history_records.track_id = tracks.id
"""


def add_history_record(
    db: sqlite3.Connection,
    track_id: int,
    display_name: str,
    on_behalf_of: str,
    bot_queued: bool,
    played_at: datetime,
) -> int:
    with transaction(db):
        cursor = db.execute("""
            INSERT INTO history_records (track_id, display_name, on_behalf_of, bot_queued, played_time)
            VALUES (?, ?, ?, ?, ?)
        """, (track_id, display_name, on_behalf_of, bot_queued, _epoch(played_at)))
    return int(cursor.lastrowid)


def has_history_since(db: sqlite3.Connection, file_path: str, cutoff: datetime) -> bool:
    row = db.execute("""
        SELECT 1
        FROM history_records
        JOIN tracks ON history_records.track_id = tracks.id
        WHERE tracks.file_path = ? AND history_records.played_time > ?
        LIMIT 1
    """, (os.path.abspath(file_path), _epoch(cutoff))).fetchone()
    return row is not None


def get_current_history(db: sqlite3.Connection) -> Optional[HistoryEntry]:
    row = db.execute(_HISTORY_SELECT + " ORDER BY played_time DESC, history_records.id DESC LIMIT 1").fetchone()
    return HistoryEntry.from_row(row) if row else None


def get_history_between(
    db: sqlite3.Connection,
    start: int,
    end: Optional[int] = None,
    page: Optional[int] = None,
    page_size: Optional[int] = None,
    desc: bool = False,
) -> List[HistoryEntry]:
    """
    History with played_at between two unix timestamps (end defaults to now),
    paginated (default page 0 of 100 entries).
    """
    if start is None or start < 0:
        raise ValueError("start must be a positive integer")
    if end is not None:
        if end < 0:
            raise ValueError("end must be a positive integer")
        if end < start:
            raise ValueError("end must be greater than start")
    if (page is None) != (page_size is None):
        raise ValueError("both page and page_size must be provided")

    end_ts = float(end) if end is not None else datetime.now(timezone.utc).timestamp()
    page_size = 100 if page_size is None else page_size
    page = 0 if page is None else page
    if page < 0 or page_size < 1:
        raise ValueError("page must be >= 0 and page_size >= 1")

    order = "DESC" if desc else "ASC"
    rows = db.execute(
        _HISTORY_SELECT
        + f" WHERE played_time BETWEEN ? AND ? ORDER BY played_time {order}, history_records.id {order} LIMIT ? OFFSET ?",
        (float(start), end_ts, page_size, page * page_size),
    ).fetchall()
    return [HistoryEntry.from_row(row) for row in rows]


# -------------------------------
# ROTATION
# -------------------------------
def next_source_index(db: sqlite3.Connection, source_count: int, key: str = ROUND_ROBIN_KEY) -> int:
    """
    Returns counter mod source_count and advances the stored counter, as one
    atomic step across connections.
    """
    if source_count < 1:
        raise ValueError("source_count must be at least 1")

    with transaction(db):
        row = db.execute("SELECT value FROM persistent_settings WHERE key = ?", (key,)).fetchone()
        counter = int(row["value"]) if row else 0
        db.execute("""
            INSERT INTO persistent_settings (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
        """, (key, counter + 1))
    return counter % source_count


def get_setting(db: sqlite3.Connection, key: str, default: int = 0) -> int:
    row = db.execute("SELECT value FROM persistent_settings WHERE key = ?", (key,)).fetchone()
    return int(row["value"]) if row else default
