# jobs/buffer_filler.py
from __future__ import annotations

import logging
import os
import sqlite3
import threading
from datetime import datetime
from typing import Callable, Optional

from core.errors import (
    AutoqueueError,
    BatchTooLarge,
    CandidateRejected,
    NoEligibleFilesInSource,
    NoSourcesAvailable,
    TrackCreationFailed,
)
from core.models import AudioMetadata, FillResult
from db.database import open_database
from db.models import Config
from db.queries import (
    SHUFFLE_ATTRIBUTION,
    count_buffer,
    get_config,
    get_directories,
    push_buffer_entries,
    resolve_or_create_track,
)
from jobs.selection import Selector
from library.file_system import get_all_folders
from library.metadata import read_metadata

logger = logging.getLogger(__name__)


class BufferFiller:
    """
    Tops the buffer up to the configured depth. tick() never overlaps with
    itself: a tick that finds another one running returns straight away.
    """

    def __init__(
        self,
        db_path: str,
        selector: Optional[Selector] = None,
        metadata_reader: Callable[[str], AudioMetadata] = read_metadata,
    ):
        self.db_path = db_path
        self.selector = selector or Selector(metadata_reader=metadata_reader)
        self.metadata_reader = metadata_reader
        self._running = threading.Lock()
        # A bookend batch waiting for enough free room in the buffer
        self._pending: list[str] = []

    @property
    def pending(self) -> list[str]:
        return list(self._pending)

    def tick(self, now: Optional[datetime] = None) -> FillResult:
        if not self._running.acquire(blocking=False):
            logger.info("Previous buffer fill still running, skipping this tick")
            return FillResult(skipped=True)

        result = FillResult()
        try:
            with open_database(self.db_path) as db:
                self._fill(db, result, now)
        except AutoqueueError as e:
            logger.error("Buffer fill abandoned: %s", e)
            result.error = str(e)
        except Exception as e:
            logger.exception("Unexpected error while filling the buffer")
            result.error = repr(e)
        finally:
            self._running.release()
        return result

    def _fill(self, db: sqlite3.Connection, result: FillResult, now: Optional[datetime]) -> None:
        config = get_config(db)
        depth = config.buffer_target_depth
        size = count_buffer(db)

        if self._pending:
            staged = self._stage_pending(db, config, size)
            if staged is None:
                result.buffer_size = size
                return
            result.added += staged
            size = count_buffer(db)

        while size < depth:
            if result.attempts >= config.max_attempts_per_tick:
                logger.warning(
                    "Gave up after %d attempts with %d/%d tracks buffered",
                    result.attempts, size, depth,
                )
                break
            result.attempts += 1

            sources = get_all_folders(get_directories(db), config.base_path)
            try:
                batch = self.selector.select_batch(db, config, sources, now)
                if len(batch) > depth:
                    raise BatchTooLarge(batch[0], len(batch), depth)
            except CandidateRejected as e:
                logger.info("%s", e)
                result.rejected += 1
                continue
            except (NoSourcesAvailable, NoEligibleFilesInSource) as e:
                logger.error("Failed to find tracks to add to buffer: %s", e)
                result.error = str(e)
                break

            if len(batch) > depth - size:
                logger.info(
                    "Holding %d tracks until the buffer has room: %s",
                    len(batch), ", ".join(os.path.basename(f) for f in batch),
                )
                self._pending = batch
                break

            result.added += self._stage(db, batch)
            size = count_buffer(db)

        if size >= depth:
            logger.debug("Buffer has reached maximum configured size (%d)", depth)
        result.buffer_size = size

    def _stage_pending(self, db: sqlite3.Connection, config: Config, size: int) -> Optional[int]:
        """None while the held batch still doesn't fit."""
        batch = self._pending
        if len(batch) > config.buffer_target_depth:
            logger.info("Dropping held batch, the buffer depth shrank below %d", len(batch))
            self._pending = []
            return 0
        if len(batch) > config.buffer_target_depth - size:
            logger.debug("Held batch of %d still waiting for room", len(batch))
            return None
        self._pending = []
        return self._stage(db, batch)

    def _stage(self, db: sqlite3.Connection, files: list[str]) -> int:
        logger.info(
            "Adding %d track to buffer: %s",
            len(files), ", ".join(os.path.basename(f) for f in files),
        )
        track_ids = []
        for path in files:
            try:
                track_ids.append(resolve_or_create_track(db, path, self.metadata_reader))
            except TrackCreationFailed as e:
                logger.warning("%s", e)
        return push_buffer_entries(db, track_ids, on_behalf_of=SHUFFLE_ATTRIBUTION, bot_queued=True)
