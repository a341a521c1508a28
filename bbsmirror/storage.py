"""
Thread/comment repository.

Responsibilities:
- Reads that derive sync frontiers from the store.
- Upserts keyed by primary key, touching only the mutable columns.
- One commit per logical update; a failed write rolls back and propagates.

Non-Responsibilities:
- No HTTP.
- No decisions about what to fetch.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from .database import Comment, MissingThread, Thread

THREAD_MUTABLE = ("views", "replies", "last_synced")
COMMENT_MUTABLE = ("content", "raw_payload")


def latest_thread_id(session: Session) -> int:
    return session.scalar(select(func.max(Thread.thread_id))) or 0


def stored_replies(session: Session, thread_id: int) -> int:
    """Stored reply count, or -1 when the thread is unknown."""
    replies = session.scalar(select(Thread.replies).where(Thread.thread_id == thread_id))
    return -1 if replies is None else replies


def thread_exists(session: Session, thread_id: int) -> bool:
    return session.scalar(select(Thread.thread_id).where(Thread.thread_id == thread_id)) is not None


def is_tombstoned(session: Session, thread_id: int) -> bool:
    found = session.scalar(select(MissingThread.thread_id).where(MissingThread.thread_id == thread_id))
    return found is not None


def _upsert_comments(session: Session, comments: List[Dict[str, Any]]) -> None:
    if not comments:
        return
    stmt = sqlite_insert(Comment).values(comments)
    stmt = stmt.on_conflict_do_update(
        index_elements=[Comment.post_id],
        set_={col: stmt.excluded[col] for col in COMMENT_MUTABLE},
    )
    session.execute(stmt)


def save_thread(session: Session, thread: Dict[str, Any], comments: List[Dict[str, Any]]) -> None:
    """
    Upsert a thread row and its comments in one transaction.

    On insert every column is written; on conflict only views, replies and
    last_synced change on the thread and only content and raw_payload on
    comments.
    """
    row = dict(thread, last_synced=datetime.now())
    stmt = sqlite_insert(Thread).values(**row)
    stmt = stmt.on_conflict_do_update(
        index_elements=[Thread.thread_id],
        set_={col: stmt.excluded[col] for col in THREAD_MUTABLE},
    )
    try:
        session.execute(stmt)
        _upsert_comments(session, comments)
        session.commit()
    except Exception:
        session.rollback()
        raise


def save_new_comments(session: Session, thread_id: int, replies: int, comments: List[Dict[str, Any]]) -> None:
    """Upsert comments and move the thread's reply count forward, atomically."""
    try:
        _upsert_comments(session, comments)
        session.execute(
            update(Thread)
            .where(Thread.thread_id == thread_id)
            .values(replies=replies, last_synced=datetime.now())
        )
        session.commit()
    except Exception:
        session.rollback()
        raise


def add_tombstone(session: Session, thread_id: int) -> None:
    """Record thread_id as inaccessible; a no-op if already recorded."""
    stmt = sqlite_insert(MissingThread).values(thread_id=thread_id, checked_at=datetime.now())
    stmt = stmt.on_conflict_do_nothing(index_elements=[MissingThread.thread_id])
    try:
        session.execute(stmt)
        session.commit()
    except Exception:
        session.rollback()
        raise


# Read helpers for the presentation layer


def get_thread(session: Session, thread_id: int) -> Optional[Thread]:
    return session.get(Thread, thread_id)


def list_comments(session: Session, thread_id: int) -> List[Comment]:
    stmt = select(Comment).where(Comment.thread_id == thread_id).order_by(Comment.position)
    return list(session.scalars(stmt))


def list_threads(session: Session, sort: str = "created", limit: int = 50) -> List[Thread]:
    """Newest threads first; sort="reply" orders by most recent sync instead."""
    if sort == "reply":
        order = Thread.last_synced.desc()
    elif sort == "created":
        order = Thread.created_at.desc()
    else:
        raise ValueError(f"Unknown sort: {sort!r}")
    return list(session.scalars(select(Thread).order_by(order).limit(limit)))


def last_sync_time(session: Session) -> Optional[datetime]:
    return session.scalar(select(func.max(Thread.last_synced)))
