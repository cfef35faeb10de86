# src/player/player.py
from __future__ import annotations

import logging
from typing import Callable, Optional

from core.errors import PlayerChannelUnavailable
from library.metadata import read_duration

from .mpv_ipc import MpvBackendConfig, MpvIpcBackend

logger = logging.getLogger(__name__)


class PlayerChannel:
    """
    What the queue feeder needs from a playback engine.

    remaining_time() -> seconds of audio left in the live queue, or None when
    nothing is playing. enqueue(path) appends to the live queue. Both raise
    PlayerChannelUnavailable when the engine can't be reached in time.
    """

    def remaining_time(self) -> Optional[float]:
        raise NotImplementedError

    def enqueue(self, path: str) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


class MpvPlayerChannel(PlayerChannel):
    def __init__(
        self,
        backend: MpvIpcBackend,
        timeout_s: float = 2.0,
        duration_of: Callable[[str], Optional[float]] = read_duration,
    ):
        self._mpv = backend
        self.timeout_s = timeout_s
        self._duration_of = duration_of

    @classmethod
    def start(cls, config: MpvBackendConfig, timeout_s: float = 2.0) -> "MpvPlayerChannel":
        backend = MpvIpcBackend(config)
        try:
            backend.start()
        except OSError as e:
            raise PlayerChannelUnavailable(f"Failed to start mpv: {e}") from e
        return cls(backend, timeout_s=timeout_s)

    def _ensure_connected(self) -> None:
        if self._mpv.is_connected():
            return
        logger.info("mpv IPC connection lost, reconnecting")
        try:
            self._mpv.reconnect()
        except OSError as e:
            raise PlayerChannelUnavailable(f"mpv IPC unreachable: {e}") from e

    def remaining_time(self) -> Optional[float]:
        """
        Time left in the current entry plus the length of every entry queued
        behind it, so tracks already handed to mpv count as buffered audio.
        """
        self._ensure_connected()
        try:
            entries = self._mpv.playlist(timeout_s=self.timeout_s)
            current = next((i for i, e in enumerate(entries) if e.get("current")), None)
            if current is None:
                return None
            remaining = self._mpv.time_remaining(timeout_s=self.timeout_s)
        except (TimeoutError, OSError) as e:
            raise PlayerChannelUnavailable(f"mpv did not answer: {e}") from e

        if remaining is None:
            # Still loading the current file
            remaining = self._duration_of(entries[current].get("filename", "")) or 0.0

        for entry in entries[current + 1:]:
            remaining += self._duration_of(entry.get("filename", "")) or 0.0
        return remaining

    def _drop_finished(self) -> None:
        """
        mpv keeps played entries in its playlist forever; remove everything
        before the current entry, or the whole list once mpv went idle.
        """
        entries = self._mpv.playlist(timeout_s=self.timeout_s)
        current = next((i for i, e in enumerate(entries) if e.get("current")), None)
        if current is None:
            if entries:
                self._mpv.playlist_clear(timeout_s=self.timeout_s)
            return
        for _ in range(current):
            self._mpv.playlist_remove(0, timeout_s=self.timeout_s)

    def enqueue(self, path: str) -> None:
        self._ensure_connected()
        try:
            self._drop_finished()
            self._mpv.append(path, timeout_s=self.timeout_s)
        except (TimeoutError, OSError, RuntimeError) as e:
            raise PlayerChannelUnavailable(f"Failed to enqueue {path}: {e}") from e
        logger.info("Queued in mpv: %s", path)

    def close(self) -> None:
        self._mpv.stop()
