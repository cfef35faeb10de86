from __future__ import annotations

SCHEMA_V1_SQL = """
CREATE TABLE directories (
    id INTEGER PRIMARY KEY,
    path TEXT NOT NULL
);

CREATE TABLE config_data (
    id INTEGER PRIMARY KEY,
    buffer_target_depth INTEGER,
    replay_window_seconds INTEGER,
    bookend_threshold_seconds INTEGER,
    fill_interval_seconds INTEGER,
    feed_interval_seconds INTEGER,
    low_remaining_seconds INTEGER,
    player_timeout_seconds FLOAT,
    base_path TEXT,
    allowed_extensions TEXT
);

CREATE TABLE tracks (
    id INTEGER PRIMARY KEY,
    file_path TEXT NOT NULL UNIQUE,
    file_name TEXT,
    display_name TEXT,
    duration FLOAT,
    track_number INTEGER
);

CREATE TABLE buffer_records (
    id INTEGER PRIMARY KEY,
    position INTEGER NOT NULL UNIQUE,
    track_id INTEGER NOT NULL,
    on_behalf_of TEXT,
    bot_queued BOOLEAN,
    FOREIGN KEY(track_id) REFERENCES tracks(id)
);

CREATE TABLE history_records (
    id INTEGER PRIMARY KEY,
    track_id INTEGER NOT NULL,
    display_name TEXT,
    on_behalf_of TEXT,
    bot_queued BOOLEAN,
    played_time FLOAT NOT NULL,
    FOREIGN KEY(track_id) REFERENCES tracks(id)
);

CREATE TABLE persistent_settings (
    key TEXT PRIMARY KEY,
    value INTEGER NOT NULL
);

CREATE INDEX idx_history_records_track_id ON history_records(track_id);

INSERT INTO config_data (
    buffer_target_depth, replay_window_seconds, bookend_threshold_seconds,
    fill_interval_seconds, feed_interval_seconds, low_remaining_seconds,
    player_timeout_seconds, base_path, allowed_extensions
) VALUES (5, 14400, 90, 10, 5, 10, 2.0, '', 'mp3,flac,ogg,opus,m4a,wav');
"""
