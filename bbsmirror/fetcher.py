"""
Per-thread fetch and persist.

fetch_thread mirrors a thread's header and first post page; fetch_new_comments
pulls only posts past a known reply count. Both write through storage in a
single transaction per call.
"""

from typing import Any, Dict, List

from sqlalchemy.orm import sessionmaker

from .client import ForumClient
from .errors import MalformedPayload, SyncError, ThreadNotAccessible
from .logger import get_logger
from .schema import PAGE_SIZE, comment_record, thread_record, validate_detail
from .storage import add_tombstone, save_new_comments, save_thread, stored_replies

SAVED = "saved"
TOMBSTONED = "tombstoned"
SKIPPED = "skipped"
UPDATED = "updated"
UNCHANGED = "unchanged"


def fetch_thread(client: ForumClient, sessions: sessionmaker, thread_id: int) -> str:
    """
    Fetch a thread with its first post page and upsert both.

    404/403 tombstones the id; a payload without thread or rows is skipped
    without writing anything.

    Returns:
        SAVED, TOMBSTONED or SKIPPED

    Raises:
        ApiError: On any other non-2xx response or transport failure
    """
    logger = get_logger()
    try:
        payload = client.thread_page(thread_id, page=1, forum_details=True)
    except ThreadNotAccessible as e:
        logger.warning(f"[{thread_id}] not accessible (status {e.status}), recording as missing")
        with sessions() as session:
            add_tombstone(session, thread_id)
        logger.record_tombstone()
        return TOMBSTONED
    except MalformedPayload as e:
        logger.warning(f"[{thread_id}] unreadable response, skipping", error=str(e))
        logger.record_skip()
        return SKIPPED

    problems = validate_detail(payload)
    if problems:
        logger.warning(f"[{thread_id}] incomplete payload, skipping", problems=problems)
        logger.record_skip()
        return SKIPPED

    data = payload["data"]
    thread = thread_record(data["thread"])
    comments = [comment_record(thread["thread_id"], row) for row in data["rows"]]
    with sessions() as session:
        save_thread(session, thread, comments)

    logger.info(f"[{thread_id}] synced - {thread['subject'][:15]}... ({len(comments)} posts)")
    logger.record_thread_fetched(len(comments))
    return SAVED


def _page_rows(payload: Any) -> List[Dict[str, Any]]:
    data = payload.get("data") if isinstance(payload, dict) else None
    rows = data.get("rows") if isinstance(data, dict) else None
    if not isinstance(rows, list):
        return []
    return rows


def fetch_new_comments(
    client: ForumClient,
    sessions: sessionmaker,
    thread_id: int,
    api_replies: int,
    known_replies: int,
    max_pages: int = 3,
) -> int:
    """
    Persist posts with position > known_replies.

    Starts from the page holding the last known post, so a page that was
    partial last time is read again; the position filter drops what is
    already stored. Stops on a short page, an empty page, a failed page or
    after start page + max_pages.

    When nothing new turns up, nothing is written, not even the reply count:
    the listing may report a count before the posts are visible.

    Returns:
        Number of comments written
    """
    logger = get_logger()
    start_page = max(1, known_replies // PAGE_SIZE)

    new_rows: List[Dict[str, Any]] = []
    page = start_page
    while page <= start_page + max_pages:
        try:
            payload = client.thread_page(thread_id, page=page)
        except SyncError as e:
            logger.warning(f"[{thread_id}] page {page} failed, stopping", error=str(e))
            break

        rows = _page_rows(payload)
        if not rows:
            break
        for row in rows:
            if not isinstance(row, dict) or "post_id" not in row:
                continue
            if (row.get("position") or 0) > known_replies:
                new_rows.append(row)

        if len(rows) < PAGE_SIZE:
            break
        page += 1

    if not new_rows:
        logger.debug(f"[{thread_id}] no new posts visible yet", known=known_replies, reported=api_replies)
        return 0

    comments = [comment_record(thread_id, row) for row in new_rows]
    with sessions() as session:
        save_new_comments(session, thread_id, api_replies, comments)

    logger.info(f"[{thread_id}] {len(comments)} new comments ({known_replies} -> {api_replies})")
    logger.record_comments_written(len(comments))
    return len(comments)


def check_thread(client: ForumClient, sessions: sessionmaker, thread_id: int, max_pages: int = 3) -> str:
    """
    One-off catch-up for a single thread, e.g. when a reader opens it.

    Unknown threads get a full fetch. Known threads are compared against the
    live reply count and caught up incrementally if behind. A failed or
    unusable detail response leaves the store as it is.

    Returns:
        The fetch_thread outcome for unknown threads, else UPDATED or UNCHANGED
    """
    logger = get_logger()
    with sessions() as session:
        known = stored_replies(session, thread_id)

    if known < 0:
        logger.info(f"[{thread_id}] not in store, fetching from source")
        return fetch_thread(client, sessions, thread_id)

    try:
        payload = client.thread_page(thread_id, page=1)
    except SyncError as e:
        logger.warning(f"[{thread_id}] update check failed", error=str(e))
        return UNCHANGED

    data = payload.get("data") if isinstance(payload, dict) else None
    info = data.get("thread") if isinstance(data, dict) else None
    if not isinstance(info, dict):
        return UNCHANGED

    api_replies = info.get("replies") or 0
    if api_replies <= known:
        return UNCHANGED

    logger.info(f"[{thread_id}] new replies ({known} -> {api_replies}), updating")
    written = fetch_new_comments(client, sessions, thread_id, api_replies, known, max_pages)
    return UPDATED if written else UNCHANGED
