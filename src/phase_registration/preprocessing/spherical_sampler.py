"""
Spherical Sampling

Projects point clouds onto an equiangular, bandwidth-limited grid on the
unit sphere. For bandwidth B the grid has 2B x 2B cells indexed by
(azimuth, elevation):

    theta_j = pi * (2j + 1) / (4B)   (polar angle, j = 0..2B-1)
    phi_k   = 2 * pi * k / (2B)      (azimuth,     k = 0..2B-1)

This is the Driscoll-Healy sampling used by the spherical harmonic
transform in ``correlation.spherical_harmonics``.
"""

from __future__ import annotations

import logging
import threading
from typing import NamedTuple, Optional

import numpy as np
from sklearn.neighbors import NearestNeighbors

from ..model.function_value import SphericalFunction
from ..model.point_cloud import PointCloud

logger = logging.getLogger(__name__)


class _GridState(NamedTuple):
    bandwidth: int
    grid: np.ndarray
    cartesian: np.ndarray
    index: NearestNeighbors


def create_2bw_grid(bandwidth: int) -> np.ndarray:
    """
    Equiangular (theta, phi) grid of shape (2B, 2B, 2), indexed [azimuth, elevation].
    """
    n = 2 * bandwidth
    theta = np.pi * (2 * np.arange(n) + 1) / (4 * bandwidth)
    phi = 2 * np.pi * np.arange(n) / n
    phi_grid, theta_grid = np.meshgrid(phi, theta, indexing="ij")
    return np.stack([theta_grid, phi_grid], axis=-1)


def convert_cartesian(grid: np.ndarray) -> np.ndarray:
    """Unit direction vectors for a (theta, phi) grid; output shape (..., 3)."""
    theta = grid[..., 0]
    phi = grid[..., 1]
    sin_theta = np.sin(theta)
    return np.stack(
        [sin_theta * np.cos(phi), sin_theta * np.sin(phi), np.cos(theta)],
        axis=-1,
    )


class SphericalSampler:
    """
    Samples point clouds on a cached equiangular spherical grid.

    The grid, its Cartesian directions and the nearest-direction index are
    built once per bandwidth and shared by every ``sample_uniformly`` call.
    Sampling only reads the cached state, so concurrent sampling is safe;
    bandwidth changes are serialized by an internal lock.
    """

    def __init__(self, bandwidth: Optional[int] = None):
        self._lock = threading.Lock()
        self._state: Optional[_GridState] = None
        if bandwidth is not None:
            self.initialize(bandwidth)

    def initialize(self, bandwidth: int) -> None:
        """
        Build the grid caches for ``bandwidth``.

        No-op when already initialized with the same bandwidth.

        Raises:
            ValueError: If bandwidth is not positive
        """
        bandwidth = int(bandwidth)
        if bandwidth <= 0:
            raise ValueError(f"Bandwidth must be positive, got {bandwidth}")

        with self._lock:
            if self._state is not None and self._state.bandwidth == bandwidth:
                return

            grid = create_2bw_grid(bandwidth)
            cartesian = convert_cartesian(grid)
            index = NearestNeighbors(n_neighbors=1, algorithm="kd_tree")
            index.fit(cartesian.reshape(-1, 3))
            grid.setflags(write=False)
            cartesian.setflags(write=False)

            previous = None if self._state is None else self._state.bandwidth
            self._state = _GridState(bandwidth, grid, cartesian, index)
            logger.debug(
                "Initialized spherical grid: bandwidth %s -> %d (%d cells)",
                previous, bandwidth, grid.shape[0] * grid.shape[1],
            )

    @property
    def is_initialized(self) -> bool:
        return self._state is not None

    def get_initialized_bandwidth(self) -> Optional[int]:
        """Bandwidth of the cached grid, or None if never initialized."""
        state = self._state
        return None if state is None else state.bandwidth

    @property
    def grid(self) -> np.ndarray:
        return self._require_state().grid

    @property
    def cartesian_grid(self) -> np.ndarray:
        return self._require_state().cartesian

    def _require_state(self) -> _GridState:
        state = self._state
        if state is None:
            raise ValueError("SphericalSampler is not initialized; call initialize(bandwidth) first")
        return state

    def sample_uniformly(self, cloud: PointCloud) -> SphericalFunction:
        """
        Project every point onto its nearest grid direction and accumulate
        mean range, mean intensity and point count per cell.

        Points located exactly at the origin carry no direction and are
        ignored. An empty cloud yields an all-zero function.

        Args:
            cloud: Point cloud in the sensor frame

        Returns:
            SphericalFunction with 4B^2 values per channel, in grid order
        """
        if cloud is None:
            raise ValueError("sample_uniformly requires a point cloud")
        state = self._require_state()
        n_cells = 4 * state.bandwidth * state.bandwidth

        ranges = cloud.ranges()
        valid = ranges > 0.0
        if not np.any(valid):
            if len(cloud) > 0:
                logger.warning("All %d points lie at the sensor origin; sampling yields zeros.", len(cloud))
            return SphericalFunction.zeros(state.bandwidth)

        directions = cloud.points[valid] / ranges[valid, None]
        cell = state.index.kneighbors(directions, return_distance=False)[:, 0]

        counts = np.bincount(cell, minlength=n_cells)
        range_sum = np.bincount(cell, weights=ranges[valid], minlength=n_cells)
        intensity_sum = np.bincount(
            cell, weights=cloud.intensities_or_zeros()[valid], minlength=n_cells
        )

        occupied = counts > 0
        mean_range = np.zeros(n_cells)
        mean_intensity = np.zeros(n_cells)
        mean_range[occupied] = range_sum[occupied] / counts[occupied]
        mean_intensity[occupied] = intensity_sum[occupied] / counts[occupied]

        logger.debug(
            "Sampled %d points onto %d/%d cells (bandwidth %d)",
            int(valid.sum()), int(occupied.sum()), n_cells, state.bandwidth,
        )
        return SphericalFunction(
            bandwidth=state.bandwidth,
            ranges=mean_range,
            intensities=mean_intensity,
            densities=counts.astype(np.int64),
        )
