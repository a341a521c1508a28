"""
Tests for batch.py - chunked, fault-isolated concurrent execution.
"""

import threading
import time

import pytest

from bbsmirror.batch import run_batch
from bbsmirror.database import Thread
from bbsmirror.fetcher import fetch_thread


class TestRunBatch:
    """Chunking and isolation."""

    def test_runs_every_item(self):
        seen = []
        lock = threading.Lock()

        def handler(item):
            with lock:
                seen.append(item)

        result = run_batch(list(range(12)), handler, concurrency=5)

        assert sorted(seen) == list(range(12))
        assert sorted(result.succeeded) == list(range(12))
        assert result.failed == []

    def test_never_exceeds_concurrency(self):
        active = [0]
        peak = [0]
        lock = threading.Lock()

        def handler(item):
            with lock:
                active[0] += 1
                peak[0] = max(peak[0], active[0])
            time.sleep(0.02)
            with lock:
                active[0] -= 1

        run_batch(list(range(13)), handler, concurrency=4)

        assert 1 <= peak[0] <= 4

    def test_chunk_settles_before_next_starts(self):
        """A slow item holds back the next chunk."""
        events = []
        lock = threading.Lock()

        def handler(item):
            with lock:
                events.append(("start", item))
            if item == 0:
                time.sleep(0.1)
            with lock:
                events.append(("end", item))

        run_batch(list(range(6)), handler, concurrency=3)

        assert events.index(("end", 0)) < events.index(("start", 3))

    def test_failure_is_isolated(self):
        def handler(item):
            if item == 2:
                raise RuntimeError("boom")
            return item

        result = run_batch(list(range(7)), handler, concurrency=5)

        assert sorted(result.succeeded) == [0, 1, 3, 4, 5, 6]
        assert len(result.failed) == 1
        item, error = result.failed[0]
        assert item == 2
        assert isinstance(error, RuntimeError)

    def test_failure_is_counted(self, quiet_logger):
        run_batch([1], lambda item: 1 / 0, concurrency=2)

        metrics = quiet_logger.get_metrics()
        assert metrics["threads_failed"] == 1
        assert metrics["errors_by_type"]["ZeroDivisionError"] == 1

    def test_empty_items(self):
        result = run_batch([], lambda item: item)

        assert result.succeeded == []
        assert result.failed == []

    def test_invalid_concurrency(self):
        with pytest.raises(ValueError):
            run_batch([1], lambda item: item, concurrency=0)

    def test_one_failing_fetch_does_not_block_siblings(self, api, sessions):
        """Concurrency 5, one item throws: the other four persist."""
        for tid in range(1, 6):
            api.add_thread(tid, posts=2)
        api.statuses[3] = 500

        result = run_batch(list(range(1, 6)), lambda tid: fetch_thread(api, sessions, tid), concurrency=5)

        assert sorted(result.succeeded) == [1, 2, 4, 5]
        with sessions() as session:
            assert sorted(t.thread_id for t in session.query(Thread)) == [1, 2, 4, 5]
