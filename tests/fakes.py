import os
import threading

from core.errors import MetadataUnreadable, PlayerChannelUnavailable
from core.models import AudioMetadata


class FakeMetadata:
    """Stands in for mutagen: durations and track numbers keyed by file name."""

    def __init__(self, durations=None, track_numbers=None, default_duration=200.0):
        self.durations = dict(durations or {})
        self.track_numbers = dict(track_numbers or {})
        self.default_duration = default_duration
        self.unreadable = set()

    def __call__(self, path):
        name = os.path.basename(path)
        if name in self.unreadable or not os.path.isfile(path):
            raise MetadataUnreadable(path, "fake unreadable")
        return AudioMetadata(
            duration=self.durations.get(name, self.default_duration),
            track_number=self.track_numbers.get(name),
        )

    def track_number_of(self, path):
        return self.track_numbers.get(os.path.basename(path))


class FakePlayer:
    def __init__(self, remaining=None):
        self.remaining = remaining
        self.enqueued = []
        self.fail_enqueue = False
        self.fail_remaining = False
        # appends, then reports a timeout as if mpv answered too late
        self.late_reply = False
        self.on_enqueue = None
        self._lock = threading.Lock()

    def remaining_time(self):
        if self.fail_remaining:
            raise PlayerChannelUnavailable("fake player timed out")
        return self.remaining

    def enqueue(self, path):
        if self.fail_enqueue:
            raise PlayerChannelUnavailable("fake player refused")
        with self._lock:
            self.enqueued.append(path)
        if self.on_enqueue:
            self.on_enqueue(path)
        if self.late_reply:
            raise PlayerChannelUnavailable("fake player timed out after appending")

    def close(self):
        pass


class PickFirst:
    """rng whose shuffle puts the named file first and keeps the rest sorted."""

    def __init__(self, name=None):
        self.name = name

    def shuffle(self, files):
        files.sort(key=lambda p: (os.path.basename(p) != self.name, p))


def make_files(folder, *names):
    folder.mkdir(parents=True, exist_ok=True)
    paths = []
    for name in names:
        p = folder / name
        p.write_bytes(b"")
        paths.append(str(p))
    return paths
