import os
from datetime import datetime, timedelta, timezone

import pytest

from core.errors import MetadataUnreadable, NoEligibleFilesInSource, NoSourcesAvailable, RecentlyPlayed
from db.queries import add_history_record, get_config, resolve_or_create_track
from jobs.selection import Selector, bookend, is_eligible_for_replay
from library.file_system import get_all_folder_files, normalize_extensions
from tests.fakes import FakeMetadata, PickFirst, make_files

EXTS = normalize_extensions(["mp3", "flac"])
NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


class TestFolderOrdering:
    def test_numeric_track_order(self, music):
        make_files(music, "b.mp3", "a.mp3", "c.mp3")
        meta = FakeMetadata(track_numbers={"a.mp3": 10, "b.mp3": 2, "c.mp3": 1})
        ordered = get_all_folder_files(str(music), EXTS, meta.track_number_of)
        assert [os.path.basename(p) for p in ordered] == ["c.mp3", "b.mp3", "a.mp3"]

    def test_falls_back_to_file_names_without_track_numbers(self, music):
        make_files(music, "02 second.mp3", "01 first.mp3", "10 tenth.mp3")
        meta = FakeMetadata()
        ordered = get_all_folder_files(str(music), EXTS, meta.track_number_of)
        assert [os.path.basename(p) for p in ordered] == ["01 first.mp3", "02 second.mp3", "10 tenth.mp3"]

    def test_ignores_other_extensions_and_subfolders(self, music):
        make_files(music, "a.mp3", "cover.jpg", "notes.txt")
        make_files(music / "disc2", "b.mp3")
        ordered = get_all_folder_files(str(music), EXTS, FakeMetadata().track_number_of)
        assert [os.path.basename(p) for p in ordered] == ["a.mp3"]


class TestBookend:
    def test_middle_track_gets_both_neighbours(self, music):
        a, b, c = make_files(music, "a.mp3", "b.mp3", "c.mp3")
        assert bookend(b, EXTS, FakeMetadata().track_number_of) == [a, b, c]

    def test_first_track_only_gets_the_next_one(self, music):
        a, b, c = make_files(music, "a.mp3", "b.mp3", "c.mp3")
        assert bookend(a, EXTS, FakeMetadata().track_number_of) == [a, b]

    def test_last_track_only_gets_the_previous_one(self, music):
        a, b, c = make_files(music, "a.mp3", "b.mp3", "c.mp3")
        assert bookend(c, EXTS, FakeMetadata().track_number_of) == [b, c]

    def test_lonely_track_stays_alone(self, music):
        (a,) = make_files(music, "a.mp3")
        assert bookend(a, EXTS, FakeMetadata().track_number_of) == [a]

    def test_neighbours_follow_track_numbers(self, music):
        a, b, c = make_files(music, "a.mp3", "b.mp3", "c.mp3")
        meta = FakeMetadata(track_numbers={"a.mp3": 2, "b.mp3": 3, "c.mp3": 1})
        assert bookend(a, EXTS, meta.track_number_of) == [c, a, b]

    def test_neighbours_never_come_from_subfolders(self, music):
        a, b = make_files(music, "a.mp3", "b.mp3")
        make_files(music / "disc2", "a2.mp3")
        assert bookend(b, EXTS, FakeMetadata().track_number_of) == [a, b]


class TestReplayWindow:
    def test_eligibility_tracks_last_play(self, db, configure, music):
        config = configure(replay_window_seconds=3600)
        (path,) = make_files(music, "a.mp3")
        track_id = resolve_or_create_track(db, path, FakeMetadata())

        assert is_eligible_for_replay(db, path, config, NOW)

        add_history_record(db, track_id, "a.mp3", "shuffle", True, NOW - timedelta(minutes=30))
        assert not is_eligible_for_replay(db, path, config, NOW)
        # once the play falls out of the window the track is eligible again
        assert is_eligible_for_replay(db, path, config, NOW + timedelta(minutes=31))

    def test_play_exactly_at_cutoff_is_eligible(self, db, configure, music):
        config = configure(replay_window_seconds=3600)
        (path,) = make_files(music, "a.mp3")
        track_id = resolve_or_create_track(db, path, FakeMetadata())
        add_history_record(db, track_id, "a.mp3", "shuffle", True, NOW - timedelta(hours=1))
        assert is_eligible_for_replay(db, path, config, NOW)


class TestSelectBatch:
    def test_no_sources(self, db):
        selector = Selector(metadata_reader=FakeMetadata())
        with pytest.raises(NoSourcesAvailable):
            selector.select_batch(db, get_config(db), [], NOW)

    def test_empty_source(self, db, music):
        selector = Selector(metadata_reader=FakeMetadata())
        with pytest.raises(NoEligibleFilesInSource):
            selector.select_batch(db, get_config(db), [str(music)], NOW)

    def test_long_track_is_selected_alone(self, db, music):
        make_files(music, "a.mp3", "b.mp3")
        meta = FakeMetadata(default_duration=300)
        selector = Selector(meta, meta.track_number_of, rng=PickFirst("b.mp3"))
        batch = selector.select_batch(db, get_config(db), [str(music)], NOW)
        assert [os.path.basename(p) for p in batch] == ["b.mp3"]

    def test_recently_played_candidate_is_rejected(self, db, music):
        (a,) = make_files(music, "a.mp3")
        meta = FakeMetadata()
        track_id = resolve_or_create_track(db, a, meta)
        add_history_record(db, track_id, "a.mp3", "shuffle", True, NOW - timedelta(minutes=5))

        selector = Selector(meta, meta.track_number_of, rng=PickFirst("a.mp3"))
        with pytest.raises(RecentlyPlayed):
            selector.select_batch(db, get_config(db), [str(music)], NOW)

    def test_unreadable_candidate_is_rejected(self, db, music):
        make_files(music, "a.mp3")
        meta = FakeMetadata()
        meta.unreadable.add("a.mp3")
        selector = Selector(meta, meta.track_number_of, rng=PickFirst("a.mp3"))
        with pytest.raises(MetadataUnreadable):
            selector.select_batch(db, get_config(db), [str(music)], NOW)

    def test_short_track_is_bookended(self, db, music):
        a, b, c = make_files(music / "album", "a.mp3", "b.mp3", "c.mp3")
        meta = FakeMetadata(durations={"b.mp3": 30}, track_numbers={"a.mp3": 1, "b.mp3": 2, "c.mp3": 3})
        selector = Selector(meta, meta.track_number_of, rng=PickFirst("b.mp3"))
        assert selector.select_batch(db, get_config(db), [str(music)], NOW) == [a, b, c]

    def test_sources_are_visited_round_robin(self, db, music):
        first = music / "first"
        second = music / "second"
        make_files(first, "one.mp3")
        make_files(second, "two.mp3")
        selector = Selector(metadata_reader=FakeMetadata())
        sources = [str(first), str(second)]

        picks = [os.path.basename(selector.select_batch(db, get_config(db), sources, NOW)[0]) for _ in range(4)]
        assert picks == ["one.mp3", "two.mp3", "one.mp3", "two.mp3"]
