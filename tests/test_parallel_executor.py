"""
Unit tests for parallel channel processing infrastructure.

Tests ChannelParallelExecutor and the channel worker functions for
correctness, ordering and error handling.
"""

import threading

import numpy as np
import pytest

from phase_registration.acceleration import ChannelParallelExecutor
from phase_registration.correlation import (
    ChannelTask,
    SpatialCorrelationLowPass,
    correlate_spatial_channel,
    correlate_spherical_channel,
)


def _simple_worker(task):
    """Simple worker that returns the task value."""
    return task


def _scaling_worker(task, scale=1):
    """Worker that scales the task value after a short random delay."""
    import time
    import random
    time.sleep(random.uniform(0.001, 0.01))
    return task * scale


def _error_worker(task):
    """Worker that raises an error."""
    raise ValueError(f"Intentional error on task {task}")


class TestChannelParallelExecutor:
    """Test suite for ChannelParallelExecutor."""

    def test_executor_initialization(self):
        """Test executor initializes with correct worker count."""
        executor = ChannelParallelExecutor()
        assert executor.n_workers >= 1

        executor = ChannelParallelExecutor(n_workers=4)
        assert executor.n_workers == 4

        # Minimum workers (should be at least 1)
        executor = ChannelParallelExecutor(n_workers=0)
        assert executor.n_workers == 1

    def test_sequential_fallback_one_task(self):
        """Test executor uses sequential processing for a single task."""
        with ChannelParallelExecutor(n_workers=4) as executor:
            results = executor.map_tasks(
                tasks=[3],
                worker_fn=_scaling_worker,
                worker_kwargs={'scale': 2}
            )

        assert results == [6]

    def test_sequential_fallback_one_worker(self):
        """Test executor uses sequential processing with 1 worker."""
        with ChannelParallelExecutor(n_workers=1) as executor:
            results = executor.map_tasks(
                tasks=list(range(5)),
                worker_fn=_scaling_worker,
                worker_kwargs={'scale': 1}
            )

        assert results == [0, 1, 2, 3, 4]

    def test_parallel_processing_order_preserved(self):
        """Test parallel processing preserves task order."""
        with ChannelParallelExecutor(n_workers=3) as executor:
            results = executor.map_tasks(
                tasks=list(range(10)),
                worker_fn=_scaling_worker,
                worker_kwargs={'scale': 3}
            )

        assert results == [i * 3 for i in range(10)]

    def test_empty_task_list(self):
        """Test executor handles empty task list gracefully."""
        executor = ChannelParallelExecutor(n_workers=4)
        assert executor.map_tasks(tasks=[], worker_fn=_simple_worker) == []

    def test_worker_error_handling(self):
        """Test executor reports worker errors after all tasks finished."""
        with ChannelParallelExecutor(n_workers=2) as executor:
            with pytest.raises(RuntimeError, match="failed"):
                executor.map_tasks(tasks=list(range(5)), worker_fn=_error_worker)

    def test_sequential_error_handling(self):
        with ChannelParallelExecutor(n_workers=1) as executor:
            with pytest.raises(RuntimeError, match="failed"):
                executor.map_tasks(tasks=[1], worker_fn=_error_worker)

    def test_pool_is_reused_until_closed(self):
        """Test the pool persists across calls and restarts after close()."""
        thread_names = set()

        def record_thread(task):
            thread_names.add(threading.current_thread().name)
            return task

        executor = ChannelParallelExecutor(n_workers=2)
        executor.map_tasks(list(range(8)), record_thread)
        first_pool = executor._get_pool()
        executor.map_tasks(list(range(8)), record_thread)
        assert executor._get_pool() is first_pool

        executor.close()
        assert executor.map_tasks(list(range(4)), _simple_worker) == [0, 1, 2, 3]
        executor.close()
        assert len(thread_names) >= 1


class TestWorkerFunctions:
    """Test suite for channel worker functions (integration-style tests)."""

    def test_parallel_spatial_channels_match_sequential(self):
        rng = np.random.default_rng(0)
        shape = (8, 8, 8)
        tasks = [
            ChannelTask(name=f"channel_{i}", f=rng.normal(size=shape), g=rng.normal(size=shape))
            for i in range(6)
        ]
        kwargs = {'shape': shape, 'lower_bound': 0, 'upper_bound': 1000}

        with ChannelParallelExecutor(n_workers=3) as executor:
            parallel = executor.map_tasks(tasks, correlate_spatial_channel, kwargs)

        engine = SpatialCorrelationLowPass(shape)
        for task, spectrum in zip(tasks, parallel):
            np.testing.assert_allclose(spectrum, engine.correlate_spectrum(task.f, task.g))

    def test_spherical_channel_spectrum_size(self):
        rng = np.random.default_rng(1)
        task = ChannelTask(name="range", f=rng.normal(size=64), g=rng.normal(size=64))

        spectrum = correlate_spherical_channel(task, bandwidth=4)

        assert spectrum.shape == (8 ** 3,)
        assert np.iscomplexobj(spectrum)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
