import pytest

from core.errors import MetadataUnreadable
from library.metadata import _parse_track_number, read_duration, read_metadata, read_track_number


class TestReadMetadata:
    def test_missing_file(self, tmp_path):
        with pytest.raises(MetadataUnreadable):
            read_metadata(str(tmp_path / "nope.mp3"))

    def test_garbage_file(self, tmp_path):
        path = tmp_path / "noise.ogg"
        path.write_bytes(b"this is not audio at all" * 10)
        with pytest.raises(MetadataUnreadable):
            read_metadata(str(path))

    def test_lenient_helpers_return_none(self, tmp_path):
        path = str(tmp_path / "nope.mp3")
        assert read_track_number(path) is None
        assert read_duration(path) is None


class TestParseTrackNumber:
    @pytest.mark.parametrize("raw,expected", [
        ("3", 3),
        ("03/12", 3),
        ("0", None),
        ("", None),
        (None, None),
        ("A1", None),
    ])
    def test_values(self, raw, expected):
        assert _parse_track_number(raw) == expected
