# core/models.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AudioMetadata:
    duration: float               # seconds
    track_number: Optional[int]   # None when the tag is missing or zero


@dataclass
class FillResult:
    added: int = 0
    attempts: int = 0
    rejected: int = 0
    buffer_size: int = 0
    skipped: bool = False         # another tick was still running
    error: Optional[str] = None   # reason the tick stopped early


@dataclass
class FeedResult:
    dispatched: Optional[str] = None   # path sent to the player
    remaining: Optional[float] = None
    skipped: bool = False
    error: Optional[str] = None
