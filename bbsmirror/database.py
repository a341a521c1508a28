"""
Database schema and connection management.

Uses SQLite with SQLAlchemy for the mirrored forum content.
"""

from datetime import datetime
from pathlib import Path

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class Thread(Base):
    """Forum thread. Created on the first successful full fetch, never deleted."""

    __tablename__ = "threads"

    thread_id = Column(Integer, primary_key=True, autoincrement=False)
    subject = Column(String, nullable=False)
    author = Column(String, nullable=False)
    views = Column(Integer, nullable=False, default=0)
    replies = Column(Integer, nullable=False, default=0)  # last observed reply count
    created_at = Column(Integer, nullable=False, default=0)  # origin epoch seconds
    last_synced = Column(DateTime, nullable=False, default=datetime.now)


class Comment(Base):
    """One post (floor) of a thread."""

    __tablename__ = "comments"
    __table_args__ = (Index("ix_comments_thread_position", "thread_id", "position"),)

    post_id = Column(Integer, primary_key=True, autoincrement=False)
    thread_id = Column(Integer, nullable=False)
    position = Column(Integer, nullable=False, default=0)  # 1-based, never renumbered upstream
    author = Column(String, nullable=False)
    content = Column(Text, nullable=False, default="")
    post_date = Column(Integer, nullable=False, default=0)  # origin epoch seconds
    is_first = Column(Boolean, nullable=False, default=False)
    raw_payload = Column(Text, nullable=False)  # full upstream row as JSON


class MissingThread(Base):
    """Tombstone for a thread id the API answered 404/403 for."""

    __tablename__ = "missing_threads"

    thread_id = Column(Integer, primary_key=True, autoincrement=False)
    checked_at = Column(DateTime, nullable=False, default=datetime.now)


def _engine(db_path: Path):
    # Batch workers share the engine across threads; writes are short and
    # serialized by SQLite itself.
    return create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = _engine(db_path)
    Base.metadata.create_all(engine)
    engine.dispose()


def get_session_factory(db_path: Path) -> sessionmaker:
    """
    Build a session factory bound to one engine.

    Each unit of work opens its own session from this factory.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy sessionmaker
    """
    return sessionmaker(bind=_engine(db_path))


def get_session(db_path: Path):
    """
    Get database session.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy session
    """
    return get_session_factory(db_path)()
