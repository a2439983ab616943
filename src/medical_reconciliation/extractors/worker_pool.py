# ============================================================================
# src/medical_reconciliation/extractors/worker_pool.py
# ============================================================================
"""
Bounded async fan-out for extractor calls.

Results come back in input order regardless of completion order. Cancelling
the awaiting task cancels every in-flight call before CancelledError
propagates.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class WorkerPool:
    """Semaphore-bounded map over coroutines."""

    def __init__(self, max_concurrency: int = 2):
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
        self.max_concurrency = max_concurrency

    async def map(
        self,
        items: Sequence[T],
        fn: Callable[[T], Awaitable[R]],
        return_exceptions: bool = False
    ) -> List[R]:
        """
        Run fn over items with at most max_concurrency in flight.

        With return_exceptions, a failed item yields its exception in place
        of a result; otherwise the first failure cancels the rest and is
        raised.
        """
        if not items:
            return []

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run_with_limit(item: T) -> R:
            async with semaphore:
                return await fn(item)

        tasks = [asyncio.ensure_future(run_with_limit(item)) for item in items]
        logger.debug(f"Dispatched {len(tasks)} task(s), concurrency {self.max_concurrency}")

        try:
            return await asyncio.gather(*tasks, return_exceptions=return_exceptions)
        except BaseException:
            # Cancellation of the caller, or the first failure without
            # return_exceptions: nothing may keep running after we return
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
