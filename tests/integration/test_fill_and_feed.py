import os
from datetime import datetime, timedelta, timezone

from db.queries import count_buffer, get_current_history, list_buffer
from jobs.buffer_filler import BufferFiller
from jobs.queue_feeder import QueueFeeder
from jobs.selection import Selector
from tests.fakes import FakeMetadata, FakePlayer, PickFirst, make_files

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


class TestFillThenFeed:
    def test_single_slot_round_trip(self, db, db_path, configure, music):
        a, b = make_files(music, "a.mp3", "b.mp3")
        configure(sources=[music], buffer_target_depth=1, bookend_threshold_seconds=30)
        meta = FakeMetadata(default_duration=240)

        fill = BufferFiller(db_path, selector=Selector(meta, meta.track_number_of), metadata_reader=meta).tick(NOW)

        assert fill.added == 1
        staged = list_buffer(db)
        assert len(staged) == 1
        assert staged[0].file_path in (a, b)

        player = FakePlayer(remaining=5)
        feed = QueueFeeder(db_path, player).tick(NOW)

        assert feed.dispatched == staged[0].file_path
        assert count_buffer(db) == 0
        assert player.enqueued == [staged[0].file_path]
        assert db.execute("SELECT COUNT(*) FROM history_records").fetchone()[0] == 1

    def test_bookended_batch_in_track_order(self, db, db_path, configure, music):
        album = music / "album"
        a, b, c = make_files(album, "x.mp3", "y.mp3", "z.mp3")
        meta = FakeMetadata(
            durations={"y.mp3": 15},
            track_numbers={"x.mp3": 1, "y.mp3": 2, "z.mp3": 3},
        )
        configure(sources=[music], buffer_target_depth=3, bookend_threshold_seconds=60)
        selector = Selector(meta, meta.track_number_of, rng=PickFirst("y.mp3"))

        fill = BufferFiller(db_path, selector=selector, metadata_reader=meta).tick(NOW)

        assert fill.added == 3
        assert [e.file_path for e in list_buffer(db)] == [a, b, c]

    def test_played_track_is_not_picked_again_within_window(self, db, db_path, configure, music):
        a, b = make_files(music, "a.mp3", "b.mp3")
        configure(sources=[music], buffer_target_depth=1, replay_window_seconds=3600)
        meta = FakeMetadata()
        player = FakePlayer(remaining=None)

        # a is always shuffled first
        selector = Selector(meta, meta.track_number_of, rng=PickFirst("a.mp3"))
        filler = BufferFiller(db_path, selector=selector, metadata_reader=meta)
        feeder = QueueFeeder(db_path, player)

        filler.tick(NOW)
        feeder.tick(NOW)
        assert player.enqueued == [a]

        # a is blocked and every pick is a, so the capped loop gives up
        later = NOW + timedelta(minutes=10)
        result = filler.tick(later)
        assert result.added == 0
        assert result.rejected == result.attempts

        # after the window a becomes eligible again
        much_later = NOW + timedelta(hours=2)
        assert filler.tick(much_later).added == 1
        assert get_current_history(db).display_name == os.path.basename(a)
