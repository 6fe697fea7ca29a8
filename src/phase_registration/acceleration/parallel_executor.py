"""
Parallel execution infrastructure for per-channel correlation.

Provides ChannelParallelExecutor for distributing independent channel
correlations across a bounded pool of worker threads. The FFT backends
release the GIL, so threads give real parallelism without copying the
sampled signals into other processes.
"""

from __future__ import annotations

import logging
import threading
import time
from multiprocessing import cpu_count
from multiprocessing.pool import ThreadPool
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


def _worker_wrapper(args: Tuple[int, Any, Callable, Dict[str, Any]]) -> Tuple[int, Any, Optional[str]]:
    """
    Worker wrapper function for parallel task processing.

    Args:
        args: Tuple of (task_index, task, worker_fn, worker_kwargs)

    Returns:
        Tuple of (task_index, result, error_message)
    """
    idx, task, worker_fn, worker_kwargs = args
    try:
        result = worker_fn(task, **worker_kwargs)
        return (idx, result, None)
    except Exception as e:
        error_msg = f"{type(e).__name__}: {str(e)}"
        logger.error(f"Worker error on task {idx}: {error_msg}")
        return (idx, None, error_msg)


class ChannelParallelExecutor:
    """
    Bounded parallel executor for channel correlation tasks.

    Manages a worker thread pool, distributes tasks and collects results in
    task order. ``map_tasks`` only returns once every task has finished, so
    callers can treat it as a fan-in barrier. The pool is created on first
    use and kept until ``close()``, which lets workers reuse their
    correlation engines across calls.

    Example:
        with ChannelParallelExecutor(n_workers=4) as executor:
            spectra = executor.map_tasks(
                tasks=channel_tasks,
                worker_fn=correlate_spatial_channel,
                worker_kwargs={'shape': (64, 64, 64), 'lower_bound': 0, 'upper_bound': 1000}
            )
    """

    def __init__(self, n_workers: Optional[int] = None):
        """
        Initialize parallel executor.

        Args:
            n_workers: Number of worker threads. If None, uses cpu_count - 1
                to leave one core for coordination. Minimum is 1.
        """
        if n_workers is None:
            n_workers = max(1, cpu_count() - 1)
        else:
            n_workers = max(1, int(n_workers))

        self.n_workers = n_workers
        self._pool: Optional[ThreadPool] = None
        self._pool_lock = threading.Lock()

        logger.debug(
            f"Initialized ChannelParallelExecutor with {self.n_workers} workers "
            f"(total CPUs: {cpu_count()})"
        )

    def __enter__(self) -> "ChannelParallelExecutor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Shut down the worker pool; a later ``map_tasks`` starts a new one."""
        with self._pool_lock:
            if self._pool is not None:
                self._pool.close()
                self._pool.join()
                self._pool = None

    def _get_pool(self) -> ThreadPool:
        with self._pool_lock:
            if self._pool is None:
                self._pool = ThreadPool(processes=self.n_workers)
            return self._pool

    def map_tasks(
        self,
        tasks: List[Any],
        worker_fn: Callable,
        worker_kwargs: Optional[Dict[str, Any]] = None,
    ) -> List[Any]:
        """
        Map worker function over tasks in parallel.

        Args:
            tasks: List of independent tasks
            worker_fn: Function applied to each task, with signature
                worker_fn(task, **worker_kwargs) -> result
            worker_kwargs: Fixed keyword arguments passed to each worker call

        Returns:
            List of results in the same order as the input tasks

        Raises:
            RuntimeError: If any task fails (raised after all tasks finished)
        """
        worker_kwargs = worker_kwargs or {}
        n_tasks = len(tasks)

        if n_tasks == 0:
            logger.warning("No tasks to process")
            return []

        start_time = time.time()

        # If only 1 worker or 1 task, use sequential processing (no pool overhead)
        if self.n_workers == 1 or n_tasks == 1:
            results = []
            for i, task in enumerate(tasks):
                try:
                    results.append(worker_fn(task, **worker_kwargs))
                except Exception as e:
                    logger.error(f"Error processing task {i}: {e}", exc_info=True)
                    raise RuntimeError(f"Task processing failed: {e}") from e
            logger.debug(
                f"Sequential processing complete: {n_tasks} tasks in {time.time() - start_time:.3f}s"
            )
            return results

        results = self._parallel_map(tasks, worker_fn, worker_kwargs)
        logger.debug(
            f"Parallel processing complete: {n_tasks} tasks on {self.n_workers} workers "
            f"in {time.time() - start_time:.3f}s"
        )
        return results

    def _parallel_map(
        self,
        tasks: List[Any],
        worker_fn: Callable,
        worker_kwargs: Dict[str, Any],
    ) -> List[Any]:
        """
        Execute parallel mapping on the thread pool.

        Uses imap_unordered for responsiveness, then reorders results to
        match input task order.
        """
        n_tasks = len(tasks)
        worker_args = [(i, task, worker_fn, worker_kwargs) for i, task in enumerate(tasks)]

        results_dict = {}
        errors = []
        for idx, result, error in self._get_pool().imap_unordered(_worker_wrapper, worker_args):
            if error:
                errors.append((idx, error))
            else:
                results_dict[idx] = result

        if errors:
            error_msg = f"{len(errors)} tasks failed out of {n_tasks}"
            logger.error(error_msg)
            for idx, error in errors[:5]:  # Log first 5 errors
                logger.error(f"  Task {idx}: {error}")
            if len(errors) > 5:
                logger.error(f"  ... and {len(errors) - 5} more errors")
            raise RuntimeError(f"{error_msg}: {errors[0][1]}")

        return [results_dict[i] for i in range(n_tasks)]
