# core/errors.py
from __future__ import annotations


class AutoqueueError(Exception):
    """Base class for every failure the jobs recover from within a tick."""


class ConfigError(AutoqueueError, ValueError):
    pass


class NoSourcesAvailable(AutoqueueError):
    pass


class NoEligibleFilesInSource(AutoqueueError):
    def __init__(self, source: str):
        super().__init__(f"No eligible audio files in source: {source}")
        self.source = source


class CandidateRejected(AutoqueueError):
    """The picked file can't be staged; the fill loop moves on to a new pick."""

    def __init__(self, path: str, message: str):
        super().__init__(message)
        self.path = path


class RecentlyPlayed(CandidateRejected):
    def __init__(self, path: str, cutoff):
        super().__init__(path, f"{path} was played after {cutoff}, it will be skipped")
        self.cutoff = cutoff


class MetadataUnreadable(CandidateRejected):
    def __init__(self, path: str, reason: object = None):
        message = f"Failed to read metadata for {path}"
        if reason is not None:
            message += f": {reason}"
        super().__init__(path, message)


class BatchTooLarge(CandidateRejected):
    def __init__(self, path: str, batch_size: int, depth: int):
        super().__init__(
            path,
            f"{path} needs {batch_size} buffer slots but the buffer only holds {depth}",
        )
        self.batch_size = batch_size


class TrackCreationFailed(AutoqueueError):
    def __init__(self, path: str, reason: object = None):
        message = f"Failed to create track for {path}"
        if reason is not None:
            message += f": {reason}"
        super().__init__(message)
        self.path = path


class PlayerChannelUnavailable(AutoqueueError):
    pass


class PersistenceUnavailable(AutoqueueError):
    pass
