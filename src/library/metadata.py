import logging
import os
from typing import Optional

from mutagen import File as MutagenFile
from mutagen import MutagenError

from core.errors import MetadataUnreadable
from core.models import AudioMetadata

logger = logging.getLogger(__name__)


def _parse_track_number(raw) -> Optional[int]:
    # "3", "03", "3/12"
    if not raw:
        return None
    try:
        head = str(raw).split("/")[0].strip()
        number = int(head)
    except ValueError:
        return None
    return number or None


def read_metadata(path: str) -> AudioMetadata:
    """
    Reads duration and track number with mutagen. Raises MetadataUnreadable
    when the file is missing, isn't audio mutagen understands, or has no
    stream info.
    """
    if not os.path.isfile(path):
        raise MetadataUnreadable(path, "file does not exist")

    try:
        audio = MutagenFile(path, easy=True)
    except (MutagenError, OSError) as e:
        raise MetadataUnreadable(path, e) from e

    if audio is None or audio.info is None:
        raise MetadataUnreadable(path, "unsupported format")

    duration = float(getattr(audio.info, "length", 0.0) or 0.0)

    track_number = None
    tags = audio.tags
    if tags is not None and "tracknumber" in tags:
        values = tags["tracknumber"]
        track_number = _parse_track_number(values[0] if values else None)

    return AudioMetadata(duration=duration, track_number=track_number)


def read_track_number(path: str) -> Optional[int]:
    try:
        return read_metadata(path).track_number
    except MetadataUnreadable as e:
        logger.debug("%s", e)
        return None


def read_duration(path: str) -> Optional[float]:
    try:
        return read_metadata(path).duration
    except MetadataUnreadable as e:
        logger.debug("%s", e)
        return None
