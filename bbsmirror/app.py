import argparse
import json
from pathlib import Path

from . import __version__
from .client import ForumClient
from .config import load_credentials, load_settings
from .database import get_session_factory, init_database
from .env import load_env
from .errors import ConfigError, SyncError
from .fetcher import check_thread
from .logger import get_logger
from .storage import get_thread, last_sync_time, list_comments, list_threads
from .sync import run_round, run_until_settled

MORE_MARKER = "[SYNC_MORE]"


def _store(args: argparse.Namespace, settings) -> Path:
    return Path(args.db) if args.db else settings.db_path


def _client(settings) -> ForumClient:
    try:
        credentials = load_credentials()
    except ConfigError as e:
        raise SystemExit(str(e))
    return ForumClient(credentials, base_url=settings.api_base, timeout=settings.request_timeout)


def cmd_init_db(args: argparse.Namespace, settings) -> None:
    db_path = _store(args, settings)
    init_database(db_path)
    print(f"Store ready: {db_path}")


def cmd_sync(args: argparse.Namespace, settings) -> None:
    db_path = _store(args, settings)
    init_database(db_path)
    sessions = get_session_factory(db_path)
    with _client(settings) as client:
        if args.all:
            results = run_until_settled(client, sessions, settings.limits)
            last = results[-1]
            print(json.dumps({"rounds": len(results), **last.as_dict()}))
        else:
            last = run_round(client, sessions, settings.limits)
            print(json.dumps(last.as_dict()))
    get_logger().log_metrics_summary()
    if last.has_more:
        print(MORE_MARKER)


def cmd_check(args: argparse.Namespace, settings) -> None:
    db_path = _store(args, settings)
    init_database(db_path)
    sessions = get_session_factory(db_path)
    with _client(settings) as client:
        outcome = check_thread(client, sessions, args.thread_id, settings.limits.comment_pages)
    print(f"Thread: {args.thread_id}")
    print(f"Status: {outcome}")


def cmd_list(args: argparse.Namespace, settings) -> None:
    db_path = _store(args, settings)
    if not db_path.exists():
        print(f"Store not found: {db_path}")
        return
    sessions = get_session_factory(db_path)
    with sessions() as session:
        threads = list_threads(session, sort=args.sort, limit=args.limit)
        if not threads:
            print("No threads in store.")
            return
        print(f"Last sync: {last_sync_time(session)}\n")
        for t in threads:
            print(f"[{t.thread_id}] {t.subject}")
            print(f"  Author: {t.author}  Replies: {t.replies}  Views: {t.views}")
            print(f"  Synced: {t.last_synced}")


def cmd_show(args: argparse.Namespace, settings) -> None:
    db_path = _store(args, settings)
    if args.no_refresh:
        if not db_path.exists():
            print(f"Store not found: {db_path}")
            return
        sessions = get_session_factory(db_path)
    else:
        # Opening a thread fetches it if unknown, else catches up new replies
        init_database(db_path)
        sessions = get_session_factory(db_path)
        with _client(settings) as client:
            try:
                check_thread(client, sessions, args.thread_id, settings.limits.comment_pages)
            except SyncError as e:
                get_logger().warning(f"[{args.thread_id}] refresh failed, showing stored copy", error=str(e))
    with sessions() as session:
        thread = get_thread(session, args.thread_id)
        if thread is None:
            raise SystemExit(f"Thread {args.thread_id} is not in the store.")
        print(f"[{thread.thread_id}] {thread.subject}")
        print(f"Author: {thread.author}  Replies: {thread.replies}  Views: {thread.views}\n")
        for c in list_comments(session, thread.thread_id):
            print(f"#{c.position} {c.author}")
            print(f"  {c.content}")


def main():
    # Load .env if present (BBS_AUTH, BBS_COOKIE, BBSMIRROR_DB, ...)
    load_env()
    parser = argparse.ArgumentParser(prog="bbsmirror", description="Forum mirror: incremental thread/post sync")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--db", help="Path to SQLite store (default: $BBSMIRROR_DB or data/bbsmirror.db)")

    subparsers = parser.add_subparsers(dest="command")
    ini = subparsers.add_parser("init-db", help="Create the store tables")
    ini.set_defaults(func=cmd_init_db)

    syn = subparsers.add_parser("sync", help="Run one sync round (prints [SYNC_MORE] if another is needed)")
    syn.add_argument("--all", action="store_true", help="Keep running rounds until settled (capped)")
    syn.set_defaults(func=cmd_sync)

    chk = subparsers.add_parser("check", help="Fetch or catch up a single thread")
    chk.add_argument("--thread-id", type=int, required=True, help="Thread id on the forum")
    chk.set_defaults(func=cmd_check)

    lst = subparsers.add_parser("list", help="List stored threads")
    lst.add_argument("--sort", choices=["created", "reply"], default="created", help="Order by creation or last sync")
    lst.add_argument("--limit", type=int, default=50, help="Number of threads to show (default 50)")
    lst.set_defaults(func=cmd_list)

    shw = subparsers.add_parser("show", help="Fetch or refresh a thread, then print it with its comments")
    shw.add_argument("--thread-id", type=int, required=True, help="Thread id on the forum")
    shw.add_argument("--no-refresh", action="store_true", help="Read the store only, without contacting the forum")
    shw.set_defaults(func=cmd_show)

    args = parser.parse_args()

    if args.version:
        print(__version__)
        return

    if not hasattr(args, "func"):
        parser.print_help()
        return

    try:
        settings = load_settings()
    except ConfigError as e:
        raise SystemExit(str(e))
    get_logger(level=settings.log_level, log_dir=settings.log_dir)
    args.func(args, settings)


if __name__ == "__main__":
    main()
