"""
Worker functions for parallel channel correlation.

Each worker function correlates a single channel independently and returns
a private copy of its spectrum. Correlation engines hold scratch buffers and
are not reentrant, so engines are pooled per worker thread: a thread reuses
its own engines across tasks and never touches another thread's.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Hashable, Tuple

import numpy as np

from .spatial_correlation import SpatialCorrelationLowPass
from .spherical_correlation import SphericalCorrelation

logger = logging.getLogger(__name__)

_thread_state = threading.local()


@dataclass(frozen=True)
class ChannelTask:
    """
    One channel of a correlation stage.

    Attributes:
        name: Channel name (e.g. 'range', 'intensity', 'density')
        f: Signal sampled from the previous cloud
        g: Signal sampled from the current cloud
    """
    name: str
    f: np.ndarray
    g: np.ndarray


def _engine_pool() -> Dict[Hashable, object]:
    pool = getattr(_thread_state, "engines", None)
    if pool is None:
        pool = {}
        _thread_state.engines = pool
    return pool


def get_spatial_engine(
    shape: Tuple[int, ...], lower_bound: int, upper_bound: int
) -> SpatialCorrelationLowPass:
    """Spatial engine owned by the calling thread."""
    key = ("spatial", tuple(shape), int(lower_bound), int(upper_bound))
    pool = _engine_pool()
    engine = pool.get(key)
    if engine is None:
        engine = SpatialCorrelationLowPass(shape, lower_bound, upper_bound)
        pool[key] = engine
        logger.debug("Created spatial correlation engine %s on %s", key, threading.current_thread().name)
    return engine


def get_spherical_engine(bandwidth: int) -> SphericalCorrelation:
    """Spherical engine owned by the calling thread."""
    key = ("spherical", int(bandwidth))
    pool = _engine_pool()
    engine = pool.get(key)
    if engine is None:
        engine = SphericalCorrelation(bandwidth)
        pool[key] = engine
        logger.debug("Created spherical correlation engine %s on %s", key, threading.current_thread().name)
    return engine


def correlate_spatial_channel(
    task: ChannelTask,
    shape: Tuple[int, ...],
    lower_bound: int,
    upper_bound: int,
) -> np.ndarray:
    """
    Correlate one channel in the spatial domain.

    Returns:
        Copy of the centred, band-limited cross-power spectrum (length N)
    """
    engine = get_spatial_engine(shape, lower_bound, upper_bound)
    return engine.correlate_spectrum(task.f, task.g).copy()


def correlate_spherical_channel(task: ChannelTask, bandwidth: int) -> np.ndarray:
    """
    Correlate one channel over SO(3).

    Returns:
        Copy of the SO(3) cross-power spectrum (length (2B)^3)
    """
    engine = get_spherical_engine(bandwidth)
    return engine.correlate_spectrum(task.f, task.g).copy()
