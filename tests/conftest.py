"""
Pytest configuration and shared fixtures.
"""

import threading
from pathlib import Path
from typing import Any, Dict, List

import pytest

from bbsmirror.database import get_session_factory, init_database
from bbsmirror.errors import ApiError, ThreadNotAccessible
from bbsmirror.logger import get_logger, reset_logger
from bbsmirror.schema import PAGE_SIZE


def make_post(thread_id: int, position: int, **overrides) -> Dict[str, Any]:
    """Build one post row in the forum's wire format."""
    row = {
        "post_id": thread_id * 1000 + position,
        "position": position,
        "author": f"user{position}",
        "message": f"post {position} of {thread_id}",
        "dateline": 1700000000 + position,
        "is_first": 1 if position == 1 else 0,
    }
    row.update(overrides)
    return row


class FakeForumApi:
    """
    In-memory stand-in for ForumClient.

    Threads are paged 20 posts per page like the real detail endpoint.
    Every call is recorded in `calls` so tests can assert what was requested.
    """

    def __init__(self):
        self.newthread: Dict[int, Any] = {}
        self.newreply: Dict[int, Any] = {}
        self.threads: Dict[int, Dict[str, Any]] = {}
        self.statuses: Dict[int, int] = {}
        self.page_statuses: Dict[tuple, int] = {}
        self.raw: Dict[int, Any] = {}
        self.calls: List[tuple] = []
        self._lock = threading.Lock()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        pass

    def add_thread(self, thread_id: int, posts: int = 1, replies: int = None, **info) -> None:
        header = {
            "thread_id": thread_id,
            "subject": f"Thread {thread_id}",
            "author": "op",
            "views": 10,
            "replies": posts if replies is None else replies,
            "dateline": 1700000000 + thread_id,
        }
        header.update(info)
        self.threads[thread_id] = {
            "thread": header,
            "posts": [make_post(thread_id, p) for p in range(1, posts + 1)],
        }

    def add_posts(self, thread_id: int, count: int, bump_replies: bool = True) -> None:
        thread = self.threads[thread_id]
        start = len(thread["posts"]) + 1
        thread["posts"].extend(make_post(thread_id, p) for p in range(start, start + count))
        if bump_replies:
            thread["thread"]["replies"] += count

    def _record(self, *call) -> None:
        with self._lock:
            self.calls.append(call)

    def _listing(self, pages: Dict[int, Any], page: int):
        value = pages.get(page, [])
        if isinstance(value, Exception):
            raise value
        return value

    def newest_threads(self, page: int):
        self._record("newthread", page)
        return self._listing(self.newthread, page)

    def newest_replies(self, page: int):
        self._record("newreply", page)
        return self._listing(self.newreply, page)

    def thread_page(self, thread_id: int, page: int = 1, forum_details: bool = False):
        self._record("thread", thread_id, page)
        status = self.page_statuses.get((thread_id, page)) or self.statuses.get(thread_id)
        if status in (403, 404):
            raise ThreadNotAccessible(f"Thread {thread_id} not accessible ({status})", status=status)
        if status:
            raise ApiError(f"Thread {thread_id} page {page} failed ({status})", status=status)
        if thread_id in self.raw:
            return self.raw[thread_id]
        thread = self.threads.get(thread_id)
        if thread is None:
            raise ThreadNotAccessible(f"Thread {thread_id} not accessible (404)", status=404)
        rows = thread["posts"][(page - 1) * PAGE_SIZE: page * PAGE_SIZE]
        return {"data": {"thread": dict(thread["thread"]), "rows": [dict(r) for r in rows]}}

    def thread_calls(self, thread_id: int = None) -> List[tuple]:
        return [c for c in self.calls if c[0] == "thread" and (thread_id is None or c[1] == thread_id)]


@pytest.fixture(autouse=True)
def quiet_logger(tmp_path):
    """Fresh global logger per test, file output only, under tmp_path."""
    reset_logger()
    logger = get_logger(log_dir=tmp_path / "logs", enable_console=False)
    yield logger
    reset_logger()


@pytest.fixture
def db_path(tmp_path) -> Path:
    """Initialized SQLite store in a temp directory."""
    path = tmp_path / "mirror.db"
    init_database(path)
    return path


@pytest.fixture
def sessions(db_path):
    """Session factory bound to the temp store."""
    factory = get_session_factory(db_path)
    yield factory
    factory.kw["bind"].dispose()


@pytest.fixture
def api() -> FakeForumApi:
    return FakeForumApi()


@pytest.fixture
def sample_detail() -> Dict[str, Any]:
    """A post/list response for a thread with two posts, one with an attachment."""
    return {
        "data": {
            "thread": {
                "thread_id": 4242,
                "subject": "Where to eat near the east gate",
                "author": "foodie",
                "views": 120,
                "replies": 1,
                "dateline": 1700000000,
            },
            "rows": [
                make_post(4242, 1, message="Any tips?"),
                make_post(4242, 2, message="See photo", attachments=[{"aid": 9, "filename": "menu.jpg"}]),
            ],
        }
    }
