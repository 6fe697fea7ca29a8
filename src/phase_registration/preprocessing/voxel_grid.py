"""
Voxel grids for spatial-domain correlation.

Both clouds of a registration pair are discretized on the same cubic grid
so that a shift between the voxelized signals corresponds to a metric
translation of ``shift * voxel_size``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

import numpy as np

from ..model.point_cloud import PointCloud


@dataclass(frozen=True)
class VoxelGrid:
    """
    Cubic voxel grid with ``n_voxels`` cells per axis.

    Attributes:
        origin: (3,) coordinate of the grid's minimum corner
        side: Edge length of the cube
        n_voxels: Number of cells per axis
    """
    origin: np.ndarray
    side: float
    n_voxels: int

    @classmethod
    def from_clouds(
        cls,
        cloud_a: PointCloud,
        cloud_b: PointCloud,
        n_voxels: int,
        padding: float = 2.0,
    ) -> "VoxelGrid":
        """
        Grid centred on the joint bounding box of both clouds.

        The cube side is ``padding`` times the largest joint extent. With
        padding >= 2 any shift between the clouds stays below half the grid,
        which keeps the circular correlation free of wrap-around.
        """
        if n_voxels <= 1:
            raise ValueError(f"n_voxels must be > 1, got {n_voxels}")
        clouds = [c.points for c in (cloud_a, cloud_b) if len(c) > 0]
        if not clouds:
            return cls(origin=np.zeros(3), side=1.0, n_voxels=int(n_voxels))

        joint = np.vstack(clouds)
        lo = joint.min(axis=0)
        hi = joint.max(axis=0)
        extent = float(np.max(hi - lo))
        if extent <= 0:
            extent = 1.0
        side = padding * extent
        center = 0.5 * (lo + hi)
        return cls(origin=center - 0.5 * side, side=side, n_voxels=int(n_voxels))

    @property
    def voxel_size(self) -> float:
        return self.side / self.n_voxels

    @property
    def shape(self) -> tuple:
        return (self.n_voxels,) * 3

    def voxel_indices(self, points: np.ndarray) -> np.ndarray:
        idx = np.floor((points - self.origin) / self.voxel_size).astype(int)
        return np.clip(idx, 0, self.n_voxels - 1)

    def voxelize(self, cloud: PointCloud) -> Dict[str, np.ndarray]:
        """
        Accumulate a cloud into the grid.

        Returns:
            Dict with 'density' (point count per voxel), 'intensity' (mean
            intensity per voxel) and 'range' (mean distance to the sensor
            origin per voxel), each of shape (n, n, n)
        """
        density = np.zeros(self.shape, dtype=np.float64)
        intensity = np.zeros(self.shape, dtype=np.float64)
        ranges = np.zeros(self.shape, dtype=np.float64)
        if len(cloud) == 0:
            return {"density": density, "intensity": intensity, "range": ranges}

        idx = self.voxel_indices(cloud.points)
        cells = (idx[:, 0], idx[:, 1], idx[:, 2])
        np.add.at(density, cells, 1.0)
        np.add.at(intensity, cells, cloud.intensities_or_zeros())
        np.add.at(ranges, cells, cloud.ranges())
        occupied = density > 0
        intensity[occupied] /= density[occupied]
        ranges[occupied] /= density[occupied]
        return {"density": density, "intensity": intensity, "range": ranges}
