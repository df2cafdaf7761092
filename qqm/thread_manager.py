#!/usr/bin/env python3

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Sequence, TypeVar
import logging
import threading

T = TypeVar("T")
R = TypeVar("R")


class ThreadManager:
    """
    Owner of the thread pools used for concurrent API lookups.

    The service has no bulk lookup call, so resolving many entities means
    many independent requests. :meth:`map_batched` runs them a batch at a
    time: requests inside a batch run concurrently, batches run one after
    another.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Args:
            logger: Optional logger; defaults to the "ThreadManager" logger.
        """
        self.logger = logger or logging.getLogger("ThreadManager")
        self._pools: Dict[str, ThreadPoolExecutor] = {}
        self._pools_lock = threading.RLock()
        self._shutdown = False

    def get_pool(self, pool_name: str, max_workers: int = 4) -> ThreadPoolExecutor:
        """
        Return the pool registered under ``pool_name``, creating it on first use.

        Args:
            pool_name: Registry key, also used as the worker thread name prefix.
            max_workers: Worker count, only applied when the pool is created.

        Returns:
            The shared executor for ``pool_name``.
        """
        with self._pools_lock:
            if self._shutdown:
                raise RuntimeError("ThreadManager has been shut down")
            pool = self._pools.get(pool_name)
            if pool is None:
                self.logger.debug(
                    f"Starting pool {pool_name!r} ({max_workers} workers)"
                )
                pool = ThreadPoolExecutor(
                    max_workers=max_workers, thread_name_prefix=f"{pool_name}_pool"
                )
                self._pools[pool_name] = pool
            return pool

    def map_batched(
        self,
        fn: Callable[[T], R],
        items: Sequence[T],
        batch_size: int,
        pool_name: str = "api",
    ) -> List[Optional[R]]:
        """
        Apply ``fn`` to every item, ``batch_size`` items at a time.

        Results keep the order of ``items``. An item whose call raises is
        logged and reported as None; it never aborts the batch.

        Args:
            fn: Function to execute per item.
            items: Items to process.
            batch_size: Maximum number of concurrent calls.
            pool_name: Name of the pool to run on.

        Returns:
            One entry per item: the result, or None on failure.
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        pool = self.get_pool(pool_name, max_workers=batch_size)
        results: List[Optional[R]] = []
        for start in range(0, len(items), batch_size):
            batch = items[start:start + batch_size]
            futures = [pool.submit(fn, item) for item in batch]
            for item, future in zip(batch, futures):
                try:
                    results.append(future.result())
                except Exception as e:
                    self.logger.debug(f"Batch item {item!r} failed: {e}")
                    results.append(None)
        return results

    def shutdown(self, wait: bool = True) -> None:
        """
        Shut every pool down and refuse to create new ones.

        Args:
            wait: Block until submitted calls have finished.
        """
        with self._pools_lock:
            self._shutdown = True
            for pool_name, pool in self._pools.items():
                self.logger.debug(f"Stopping pool {pool_name!r}")
                pool.shutdown(wait=wait)
            self._pools.clear()
