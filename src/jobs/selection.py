# jobs/selection.py
"""
Picks what goes into the buffer next.

One call to select_batch() is one iteration of the fill loop: rotate to the
next source folder, pick a random file from it, check it against the replay
window and its metadata, and surround it with its folder neighbours when it
is too short to play on its own.
"""
from __future__ import annotations

import logging
import os
import random
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from core.errors import NoEligibleFilesInSource, NoSourcesAvailable, RecentlyPlayed
from core.models import AudioMetadata
from db.models import Config
from db.queries import has_history_since, next_source_index
from library.file_system import get_all_folder_files, iter_audio_paths, normalize_extensions
from library.metadata import read_metadata, read_track_number

logger = logging.getLogger(__name__)


def replay_cutoff(config: Config, now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now - timedelta(seconds=config.replay_window_seconds)


def is_eligible_for_replay(
    db: sqlite3.Connection,
    path: str,
    config: Config,
    now: Optional[datetime] = None,
) -> bool:
    return not has_history_since(db, path, replay_cutoff(config, now))


def bookend(
    candidate: str,
    extensions: set[str],
    track_number_of: Callable[[str], Optional[int]] = read_track_number,
) -> list[str]:
    """
    [before, candidate, after] from the candidate's own folder in track
    order. A side that doesn't exist is left out.
    """
    folder = os.path.dirname(candidate)
    folder_files = get_all_folder_files(folder, extensions, track_number_of)
    try:
        index = folder_files.index(candidate)
    except ValueError:
        logger.warning("%s vanished from %s while bookending", candidate, folder)
        return [candidate]

    files = [candidate]
    if index > 0:
        files.insert(0, folder_files[index - 1])
    if index + 1 < len(folder_files):
        files.append(folder_files[index + 1])
    return files


class Selector:
    def __init__(
        self,
        metadata_reader: Callable[[str], AudioMetadata] = read_metadata,
        track_number_of: Callable[[str], Optional[int]] = read_track_number,
        rng: Optional[random.Random] = None,
    ):
        self.metadata_reader = metadata_reader
        self.track_number_of = track_number_of
        self.rng = rng or random.Random()

    def pick_source(self, db: sqlite3.Connection, sources: list[str]) -> str:
        if not sources:
            raise NoSourcesAvailable("No content sources are available")
        index = next_source_index(db, len(sources))
        source = sources[index]
        logger.debug("Picking file from selected base folder %d %s", index, source)
        return source

    def pick_candidate(self, source: str, extensions: set[str]) -> str:
        files = iter_audio_paths(source, extensions)
        if not files:
            raise NoEligibleFilesInSource(source)
        self.rng.shuffle(files)
        return os.path.abspath(files[0])

    def select_batch(
        self,
        db: sqlite3.Connection,
        config: Config,
        sources: list[str],
        now: Optional[datetime] = None,
    ) -> list[str]:
        """
        Raises NoSourcesAvailable / NoEligibleFilesInSource when there is
        nothing to pick from, and a CandidateRejected subclass when the pick
        itself can't be used.
        """
        extensions = normalize_extensions(config.allowed_extensions)

        source = self.pick_source(db, sources)
        candidate = self.pick_candidate(source, extensions)

        cutoff = replay_cutoff(config, now)
        if has_history_since(db, candidate, cutoff):
            raise RecentlyPlayed(candidate, cutoff)

        meta = self.metadata_reader(candidate)

        if meta.duration <= config.bookend_threshold_seconds:
            logger.debug("%s is too short, adding tracks before and after it", candidate)
            return bookend(candidate, extensions, self.track_number_of)
        return [candidate]
