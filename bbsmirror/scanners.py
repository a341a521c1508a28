"""
The three scans run by a sync round.

Each scan derives its starting point from the store, so none of them keeps
state between invocations.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from sqlalchemy.orm import sessionmaker

from .client import ForumClient
from .errors import SyncError
from .fetcher import SAVED, fetch_new_comments, fetch_thread
from .logger import get_logger
from .storage import is_tombstoned, stored_replies, thread_exists


@dataclass
class FrontierScan:
    new_threads: List[Dict[str, Any]] = field(default_factory=list)  # capped, newest first
    api_latest_id: int = 0
    discovered: int = 0
    overflow: bool = False


@dataclass
class ReplyCatchUp:
    updated: int = 0
    has_more_replies: bool = True


def scan_frontier(client: ForumClient, latest_known_id: int, max_pages: int = 3, cap: int = 15) -> FrontierScan:
    """
    Collect threads newer than latest_known_id from the newest-threads listing.

    The listing is newest-first, so the first known id ends the scan. An
    empty or failed page also ends it, keeping what was already collected.
    Only the first `cap` threads are returned; overflow is set if more were
    found.
    """
    logger = get_logger()
    found: List[Dict[str, Any]] = []
    api_latest_id = 0

    for page in range(1, max_pages + 1):
        logger.info(f"Requesting newthread listing page {page}")
        try:
            items = client.newest_threads(page)
        except SyncError as e:
            logger.warning(f"Newthread listing page {page} failed", error=str(e))
            break

        if not items:
            logger.info("No more threads in listing")
            break

        if page == 1:
            api_latest_id = int(items[0]["thread_id"])

        reached_known = False
        for item in items:
            if int(item["thread_id"]) <= latest_known_id:
                reached_known = True
                break
            found.append(item)
        if reached_known:
            break

    return FrontierScan(
        new_threads=found[:cap],
        api_latest_id=api_latest_id,
        discovered=len(found),
        overflow=len(found) > cap,
    )


def audit_backfill(client: ForumClient, sessions: sessionmaker, api_latest_id: int, window: int = 100) -> int:
    """
    Fetch every id in [api_latest_id - window, api_latest_id] that is neither
    stored nor tombstoned.

    Runs one id at a time; a failing id is logged and the scan moves on.

    Returns:
        Number of threads saved
    """
    logger = get_logger()
    logger.info("Starting backfill check", start=api_latest_id, window=window)
    lowest = max(1, api_latest_id - window)
    repaired = 0

    for thread_id in range(api_latest_id, lowest - 1, -1):
        with sessions() as session:
            if thread_exists(session, thread_id) or is_tombstoned(session, thread_id):
                continue
        try:
            if fetch_thread(client, sessions, thread_id) == SAVED:
                repaired += 1
        except Exception as e:
            logger.error(f"Backfill of {thread_id} failed: {e}")
            logger.record_failure(type(e).__name__)

    logger.info(f"Backfill check done, {repaired} threads repaired")
    return repaired


def catch_up_replies(
    client: ForumClient,
    sessions: sessionmaker,
    max_pages: int = 3,
    budget: int = 8,
    comment_pages: int = 3,
) -> ReplyCatchUp:
    """
    Walk the newest-replies listing and bring behind threads up to date.

    A thread is behind when the listed reply count exceeds the stored one
    (unknown threads count as -1 and get a full fetch). At most `budget`
    threads are dispatched; threads past the budget are still counted so a
    page is only considered settled when nothing on it was behind.

    has_more_replies is False only when a whole page needed no update.
    """
    logger = get_logger()
    logger.info("Starting reply sync")
    result = ReplyCatchUp()
    dispatched = 0

    for page in range(1, max_pages + 1):
        logger.info(f"Requesting newreply listing page {page}")
        try:
            items = client.newest_replies(page)
        except SyncError as e:
            logger.warning(f"Newreply listing page {page} failed", error=str(e))
            break

        if not items:
            logger.info("Newreply listing is empty")
            break

        behind = 0
        for item in items:
            thread_id = int(item["thread_id"])
            api_replies = item.get("replies") or 0
            with sessions() as session:
                known = stored_replies(session, thread_id)
            if api_replies <= known:
                continue

            behind += 1
            if dispatched >= budget:
                continue
            dispatched += 1

            try:
                if known < 0:
                    fetch_thread(client, sessions, thread_id)
                else:
                    fetch_new_comments(client, sessions, thread_id, api_replies, known, comment_pages)
                result.updated += 1
            except Exception as e:
                logger.error(f"Reply sync of {thread_id} failed: {e}")
                logger.record_failure(type(e).__name__)

        if behind == 0:
            logger.info("Whole page up to date, reply sync settled")
            result.has_more_replies = False
            break

    logger.info(f"Reply sync finished, {result.updated} threads updated")
    return result
