from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
import sqlite3

from core.errors import ConfigError


@dataclass
class Config:
    buffer_target_depth: int = 5
    replay_window_seconds: int = 14400
    bookend_threshold_seconds: int = 90
    fill_interval_seconds: int = 10
    feed_interval_seconds: int = 5
    low_remaining_seconds: int = 10
    history_lead_seconds: int = 10
    player_timeout_seconds: float = 2.0
    max_attempts_per_tick: int = 50
    base_path: str = ""
    allowed_extensions: list[str] = field(
        default_factory=lambda: ["mp3", "flac", "ogg", "opus", "m4a", "wav"]
    )

    @staticmethod
    def from_row(row: sqlite3.Row) -> "Config":
        return Config(
            buffer_target_depth=int(row["buffer_target_depth"]),
            replay_window_seconds=int(row["replay_window_seconds"]),
            bookend_threshold_seconds=int(row["bookend_threshold_seconds"]),
            fill_interval_seconds=int(row["fill_interval_seconds"]),
            feed_interval_seconds=int(row["feed_interval_seconds"]),
            low_remaining_seconds=int(row["low_remaining_seconds"]),
            history_lead_seconds=int(row["history_lead_seconds"]),
            player_timeout_seconds=float(row["player_timeout_seconds"]),
            max_attempts_per_tick=int(row["max_attempts_per_tick"]),
            base_path=row["base_path"] or "",
            allowed_extensions=[
                e.strip().lstrip(".").lower()
                for e in (row["allowed_extensions"] or "").split(",")
                if e.strip()
            ],
        )


@dataclass
class Track:
    id: int
    file_path: str
    file_name: str
    display_name: str
    duration: float
    track_number: Optional[int]

    @staticmethod
    def from_row(row: sqlite3.Row) -> "Track":
        return Track(
            id=row["id"],
            file_path=row["file_path"],
            file_name=row["file_name"],
            display_name=row["display_name"],
            duration=row["duration"],
            track_number=row["track_number"],
        )


@dataclass
class BufferEntry:
    id: int
    position: int
    track_id: int
    file_path: str
    display_name: str
    on_behalf_of: str
    bot_queued: bool

    @staticmethod
    def from_row(row: sqlite3.Row) -> "BufferEntry":
        return BufferEntry(
            id=row["id"],
            position=row["position"],
            track_id=row["track_id"],
            file_path=row["file_path"],
            display_name=row["display_name"],
            on_behalf_of=row["on_behalf_of"],
            bot_queued=bool(row["bot_queued"]),
        )


@dataclass
class HistoryEntry:
    id: int
    track_id: int
    file_path: str
    display_name: str
    on_behalf_of: str
    bot_queued: bool
    played_at: datetime

    @staticmethod
    def from_row(row: sqlite3.Row) -> "HistoryEntry":
        return HistoryEntry(
            id=row["id"],
            track_id=row["track_id"],
            file_path=row["file_path"],
            display_name=row["display_name"],
            on_behalf_of=row["on_behalf_of"],
            bot_queued=bool(row["bot_queued"]),
            played_at=datetime.fromtimestamp(row["played_time"], tz=timezone.utc),
        )


def validate_config(config: Config) -> Config:
    if config.buffer_target_depth < 1:
        raise ConfigError("buffer_target_depth must be at least 1")
    for name in (
        "replay_window_seconds",
        "bookend_threshold_seconds",
        "low_remaining_seconds",
        "history_lead_seconds",
    ):
        if getattr(config, name) < 0:
            raise ConfigError(f"{name} must not be negative")
    for name in ("fill_interval_seconds", "feed_interval_seconds", "max_attempts_per_tick"):
        if getattr(config, name) < 1:
            raise ConfigError(f"{name} must be at least 1")
    if config.player_timeout_seconds <= 0:
        raise ConfigError("player_timeout_seconds must be positive")
    if not config.allowed_extensions:
        raise ConfigError("allowed_extensions must name at least one extension")
    return config
