"""
Sync round orchestration.

A round is: frontier scan, batch fetch of the new threads, backfill audit,
reply catch-up. It returns has_more when work was left over; callers resume
by running another round. No cursor is kept between rounds.
"""

import time
from dataclasses import asdict, dataclass
from typing import List

from sqlalchemy.orm import sessionmaker

from .batch import run_batch
from .client import ForumClient
from .config import Limits
from .fetcher import fetch_thread
from .logger import get_logger
from .scanners import audit_backfill, catch_up_replies, scan_frontier
from .storage import latest_thread_id


@dataclass(frozen=True)
class RoundResult:
    has_more: bool
    processed_new_threads: int
    updated_replies: int

    def as_dict(self) -> dict:
        return asdict(self)


def run_round(client: ForumClient, sessions: sessionmaker, limits: Limits = Limits()) -> RoundResult:
    logger = get_logger()
    logger.info("Starting sync round")

    with sessions() as session:
        latest_id = latest_thread_id(session)
    logger.info(f"Latest stored thread id: {latest_id}")

    scan = scan_frontier(client, latest_id, limits.listing_pages, limits.new_thread_cap)
    processed = 0
    if not scan.new_threads:
        logger.info("No new threads found")
    else:
        logger.info(f"Found {scan.discovered} new threads, processing {len(scan.new_threads)}")
        thread_ids = [int(t["thread_id"]) for t in scan.new_threads]
        batch = run_batch(thread_ids, lambda tid: fetch_thread(client, sessions, tid), limits.concurrency)
        processed = len(batch.succeeded)
        logger.info("New thread sync done", succeeded=processed, failed=len(batch.failed))

    if scan.api_latest_id > 0:
        audit_backfill(client, sessions, scan.api_latest_id, limits.backfill_window)

    replies = catch_up_replies(
        client, sessions, limits.listing_pages, limits.reply_budget, limits.comment_pages
    )

    result = RoundResult(
        has_more=scan.overflow or replies.has_more_replies,
        processed_new_threads=processed,
        updated_replies=replies.updated,
    )
    logger.info("Sync round finished", **result.as_dict())
    return result


def run_until_settled(
    client: ForumClient,
    sessions: sessionmaker,
    limits: Limits = Limits(),
    pause: float = 1.0,
) -> List[RoundResult]:
    """Run rounds while has_more is set, at most limits.max_rounds of them."""
    logger = get_logger()
    results: List[RoundResult] = []
    for round_no in range(1, limits.max_rounds + 1):
        logger.info(f"===== Round {round_no} =====")
        result = run_round(client, sessions, limits)
        results.append(result)
        if not result.has_more:
            break
        if round_no < limits.max_rounds and pause > 0:
            time.sleep(pause)
    else:
        logger.warning(f"Stopped after {limits.max_rounds} rounds with work remaining")
    return results
