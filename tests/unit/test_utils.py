import os

import pytest

from core.errors import ConfigError
from core.utils import disambiguate_items, get_track_uploader
from db.queries import get_config, set_config, set_config_value


class TestDisambiguate:
    def test_unique_names_stay_short(self):
        assert sorted(disambiguate_items(["/music/a/Live", "/music/b/Demo"])) == ["Demo", "Live"]

    def test_duplicates_get_parent_folders(self):
        items = ["/music/x/Live", "/music/y/Live", "/music/Demo"]
        assert sorted(disambiguate_items(items)) == ["Demo", os.path.join("x", "Live"), os.path.join("y", "Live")]

    def test_needs_more_than_one_level(self):
        items = ["/m/x/cd/Live", "/m/y/cd/Live"]
        assert sorted(disambiguate_items(items)) == [
            os.path.join("x", "cd", "Live"),
            os.path.join("y", "cd", "Live"),
        ]

    def test_identical_paths_terminate(self):
        assert len(disambiguate_items(["/a/b", "/a/b"])) == 2


class TestUploader:
    def test_first_folder_below_base(self):
        assert get_track_uploader("/srv/music/alice/album/01.mp3", "/srv/music") == "alice"

    def test_path_outside_base(self):
        assert get_track_uploader("bob/song.mp3", "/srv/music") == "bob"


class TestConfig:
    def test_defaults(self, db):
        config = get_config(db)
        assert config.buffer_target_depth == 5
        assert config.low_remaining_seconds == 10
        assert config.history_lead_seconds == 10
        assert "mp3" in config.allowed_extensions

    def test_set_value_parses_by_type(self, db):
        set_config_value(db, "buffer_target_depth", "8")
        set_config_value(db, "player_timeout_seconds", "0.5")
        set_config_value(db, "allowed_extensions", ".MP3, flac")
        config = get_config(db)
        assert config.buffer_target_depth == 8
        assert config.player_timeout_seconds == 0.5
        assert config.allowed_extensions == ["mp3", "flac"]

    def test_unknown_key(self, db):
        with pytest.raises(KeyError):
            set_config_value(db, "nope", "1")

    @pytest.mark.parametrize("key,value", [
        ("buffer_target_depth", 0),
        ("replay_window_seconds", -1),
        ("fill_interval_seconds", 0),
        ("allowed_extensions", []),
    ])
    def test_rejects_out_of_range(self, db, key, value):
        config = get_config(db)
        setattr(config, key, value)
        with pytest.raises(ConfigError):
            set_config(db, config)
        assert get_config(db).buffer_target_depth == 5
