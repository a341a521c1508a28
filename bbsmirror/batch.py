"""
Concurrency-bounded batch runner.

Items run in consecutive chunks of `concurrency`; a chunk must fully settle
before the next one starts, so at most `concurrency` requests are in flight.
"""

from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, List, Sequence, Tuple

from .logger import get_logger


@dataclass
class BatchResult:
    succeeded: List[Any] = field(default_factory=list)
    failed: List[Tuple[Any, Exception]] = field(default_factory=list)


def _isolated(handler: Callable[[Any], Any], item: Any) -> Tuple[Any, bool, Any]:
    try:
        return item, True, handler(item)
    except Exception as e:
        get_logger().error(f"Item {item} failed: {e}", error_type=type(e).__name__)
        get_logger().record_failure(type(e).__name__)
        return item, False, e


def run_batch(items: Sequence[Any], handler: Callable[[Any], Any], concurrency: int = 5) -> BatchResult:
    """
    Run handler over items, at most `concurrency` at a time.

    A failing item is logged and collected; it never cancels its siblings
    or later chunks.

    Args:
        items: Work items, processed chunk by chunk in order
        handler: Called once per item from a worker thread
        concurrency: Chunk size and worker count

    Returns:
        BatchResult with succeeded items and (item, exception) pairs
    """
    if concurrency < 1:
        raise ValueError("concurrency must be at least 1")

    result = BatchResult()
    if not items:
        return result

    with ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="batch") as executor:
        for start in range(0, len(items), concurrency):
            chunk = items[start:start + concurrency]
            futures = [executor.submit(_isolated, handler, item) for item in chunk]
            wait(futures)
            for future in futures:
                item, ok, value = future.result()
                if ok:
                    result.succeeded.append(item)
                else:
                    result.failed.append((item, value))
    return result
