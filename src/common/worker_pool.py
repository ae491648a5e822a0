"""Bounded thread pool for order-preserving batch evaluation.

Workers pull ``(index, item)`` pairs from a shared FIFO and write results
into a pre-allocated list, so the output order always matches the input
order no matter which worker finishes first.
"""
from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

from common.logging_utils import extra_context, is_debug_enabled

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def run_batch(
    items: Sequence[T],
    evaluate: Callable[[T], Optional[R]],
    max_workers: int,
    on_error: Optional[Callable[[T, Exception], Optional[R]]] = None,
    name: str = "batch",
) -> List[Optional[R]]:
    """Evaluate ``items`` concurrently and return results index-aligned with them.

    Args:
        items: Ordered inputs.
        evaluate: Per-item function; may return None to skip an item.
        max_workers: Upper bound on worker threads.
        on_error: Converts an exception raised by ``evaluate`` into a result
            for that index. Without it the slot is left as None.
        name: Thread name prefix used in logs.

    Returns:
        A list of the same length as ``items``.
    """
    total = len(items)
    if total == 0:
        return []

    results: List[Optional[R]] = [None] * total
    work: "queue.Queue[Tuple[int, T]]" = queue.Queue()
    for idx, item in enumerate(items):
        work.put((idx, item))

    worker_count = max(1, min(max_workers, total))

    def _worker() -> None:
        while True:
            try:
                idx, item = work.get_nowait()
            except queue.Empty:
                return
            try:
                results[idx] = evaluate(item)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                logger.warning("%s: evaluation failed for item %d: %s", name, idx, exc)
                results[idx] = on_error(item, exc) if on_error is not None else None

    threads = [
        threading.Thread(target=_worker, name=f"{name}-{n}", daemon=True)
        for n in range(worker_count)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    if is_debug_enabled(logger):
        logger.debug(
            "Batch complete",
            extra=extra_context(
                event="function_exit",
                component="worker_pool",
                action=name,
                count=total,
                workers=worker_count
            )
        )
    return results
