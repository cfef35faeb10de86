# jobs/queue_feeder.py
from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime, timedelta, timezone
from typing import Optional

from core.errors import AutoqueueError, PersistenceUnavailable, PlayerChannelUnavailable
from core.models import FeedResult
from db.database import open_database
from db.queries import add_history_record, get_config, pop_buffer_head
from player.player import PlayerChannel

logger = logging.getLogger(__name__)


class QueueFeeder:
    """
    Moves the buffer head into the player's live queue once the live queue
    is about to run dry, and records it in the history.
    """

    def __init__(self, db_path: str, player: PlayerChannel):
        self.db_path = db_path
        self.player = player
        self._running = threading.Lock()

    def tick(self, now: Optional[datetime] = None) -> FeedResult:
        if not self._running.acquire(blocking=False):
            logger.info("Previous queue feed still running, skipping this tick")
            return FeedResult(skipped=True)

        result = FeedResult()
        try:
            with open_database(self.db_path) as db:
                self._feed(db, result, now or datetime.now(timezone.utc))
        except AutoqueueError as e:
            logger.warning("Queue feed skipped: %s", e)
            result.error = str(e)
        except Exception as e:
            logger.exception("Unexpected error while feeding the player queue")
            result.error = repr(e)
        finally:
            self._running.release()
        return result

    def _feed(self, db: sqlite3.Connection, result: FeedResult, now: datetime) -> None:
        config = get_config(db)

        remaining = self.player.remaining_time()
        result.remaining = remaining
        if remaining is not None and remaining > config.low_remaining_seconds:
            logger.info("Current track has %ss left, no tracks need adding", int(remaining))
            return

        entry = pop_buffer_head(db)
        if entry is None:
            logger.warning("Buffer is empty, nothing to add to the player queue")
            return

        logger.info("Adding track from buffer: %s", entry.display_name)
        try:
            self.player.enqueue(entry.file_path)
        except PlayerChannelUnavailable:
            # mpv may have appended it despite the error, so it is not staged again
            logger.error("Dropped %s from the buffer, the player did not confirm it", entry.display_name)
            raise
        result.dispatched = entry.file_path

        try:
            add_history_record(
                db,
                track_id=entry.track_id,
                display_name=entry.display_name,
                on_behalf_of=entry.on_behalf_of,
                bot_queued=entry.bot_queued,
                played_at=now + timedelta(seconds=config.history_lead_seconds),
            )
        except PersistenceUnavailable:
            logger.error("Sent %s to the player but it was not recorded in history", entry.display_name)
            raise
