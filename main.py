import argparse
import logging
import os
import signal
import sys
from pathlib import Path

from PySide6.QtCore import QCoreApplication, QStandardPaths, QTimer

ROOT = Path(__file__).resolve().parent
SRC_DIR = ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from core.errors import AutoqueueError
from core.utils import disambiguate_items, get_track_uploader
from db.database import DB_FILE_NAME, initialize_database
from db.queries import (
    add_directory,
    get_config,
    get_current_history,
    get_directories,
    get_history_between,
    list_buffer,
    remove_directory,
    set_config_value,
)
from jobs.buffer_filler import BufferFiller
from jobs.queue_feeder import QueueFeeder
from jobs.scheduler import PeriodicJob
from library.file_system import get_all_folders, normalize_extensions, search_for_file, search_for_folder
from player.mpv_ipc import MpvBackendConfig
from player.player import MpvPlayerChannel

logger = logging.getLogger("autoqueue")


def get_app_data_dir() -> str:
    base = QStandardPaths.writableLocation(QStandardPaths.AppDataLocation)
    os.makedirs(base, exist_ok=True)
    return base


def parse_args(argv):
    parser = argparse.ArgumentParser(prog="autoqueue", description="Keeps an mpv play queue topped up from music folders.")
    parser.add_argument("--data-dir", help="directory holding db.sqlite3 (default: platform app data dir)")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser("run", help="run the buffer filler and queue feeder (default)")
    run.add_argument("--mpv-path", help="mpv binary to spawn")
    run.add_argument("--ipc", help="mpv IPC socket / named pipe")
    run.add_argument("--attach", action="store_true", help="connect to an mpv already listening on --ipc")

    hist = sub.add_parser("history", help="show what was played")
    hist.add_argument("--start", type=int, help="unix timestamp; without it only the current track is shown")
    hist.add_argument("--end", type=int)
    hist.add_argument("--page", type=int)
    hist.add_argument("--page-size", type=int)
    hist.add_argument("--desc", action="store_true")

    sub.add_parser("buffer", help="list staged tracks")

    cfg = sub.add_parser("config", help="show or change settings")
    cfg.add_argument("action", choices=["show", "set"])
    cfg.add_argument("key", nargs="?")
    cfg.add_argument("value", nargs="?")

    src = sub.add_parser("sources", help="manage content source patterns")
    src.add_argument("action", choices=["list", "add", "remove"])
    src.add_argument("pattern", nargs="?")

    search = sub.add_parser("search", help="search sources for a folder or file")
    search.add_argument("kind", choices=["folder", "file"])
    search.add_argument("term")

    return parser.parse_args(argv)


def run(db_path: str, args) -> int:
    qt_app = QCoreApplication(sys.argv)

    db = initialize_database(os.path.dirname(db_path))
    config = get_config(db)
    db.close()

    try:
        player = MpvPlayerChannel.start(
            MpvBackendConfig(mpv_path=args.mpv_path, ipc_endpoint=args.ipc, attach_only=args.attach),
            timeout_s=config.player_timeout_seconds,
        )
    except AutoqueueError as e:
        logger.error("%s", e)
        return 1

    filler = PeriodicJob("buffer filler", BufferFiller(db_path), config.fill_interval_seconds)
    feeder = PeriodicJob("queue feeder", QueueFeeder(db_path, player), config.feed_interval_seconds)

    def shutdown():
        filler.stop()
        feeder.stop()
        player.close()

    qt_app.aboutToQuit.connect(shutdown)
    signal.signal(signal.SIGINT, lambda *_: qt_app.quit())
    signal.signal(signal.SIGTERM, lambda *_: qt_app.quit())

    # Wake the interpreter regularly so Python signal handlers get to run
    wakeup = QTimer()
    wakeup.start(500)
    wakeup.timeout.connect(lambda: None)

    filler.start()
    feeder.start()
    return qt_app.exec()


def show_history(db, args) -> None:
    if args.start is None:
        entries = [e for e in [get_current_history(db)] if e]
    else:
        entries = get_history_between(db, args.start, args.end, args.page, args.page_size, args.desc)
    for e in entries:
        who = "bot" if e.bot_queued else e.on_behalf_of
        print(f"{e.played_at.astimezone():%Y-%m-%d %H:%M:%S}  {e.display_name}  [{who}]")


def main(argv=None) -> int:
    QCoreApplication.setApplicationName("autoqueue")
    args = parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    data_dir = args.data_dir or get_app_data_dir()
    db_path = os.path.join(data_dir, DB_FILE_NAME)

    if args.command in (None, "run"):
        if args.command is None:
            args = parse_args(["run"])
        return run(db_path, args)

    db = initialize_database(data_dir)
    try:
        if args.command == "history":
            show_history(db, args)
        elif args.command == "buffer":
            base_path = get_config(db).base_path
            for e in list_buffer(db):
                uploader = get_track_uploader(e.file_path, base_path)
                print(f"{e.position:>5}  {e.display_name}  ({e.on_behalf_of}, from {uploader})")
        elif args.command == "config":
            if args.action == "set":
                if not args.key or args.value is None:
                    print("config set needs KEY VALUE", file=sys.stderr)
                    return 2
                set_config_value(db, args.key, args.value)
            for key, value in vars(get_config(db)).items():
                print(f"{key} = {value}")
        elif args.command == "sources":
            if args.action == "add" and args.pattern:
                add_directory(db, args.pattern)
            elif args.action == "remove" and args.pattern:
                if not remove_directory(db, args.pattern):
                    print(f"No such source: {args.pattern}", file=sys.stderr)
                    return 1
            config = get_config(db)
            folders = get_all_folders(get_directories(db), config.base_path)
            for pattern in get_directories(db):
                print(pattern)
            if folders:
                print(f"-> {len(folders)} folders: {', '.join(disambiguate_items(folders))}")
        elif args.command == "search":
            config = get_config(db)
            folders = get_all_folders(get_directories(db), config.base_path)
            if args.kind == "folder":
                hits = search_for_folder(args.term, folders)
            else:
                hits = search_for_file(args.term, folders, normalize_extensions(config.allowed_extensions))
            for hit in hits:
                print(hit)
    except (AutoqueueError, KeyError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
