"""
Immutable point cloud container.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np


def _readonly(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


@dataclass(frozen=True)
class PointCloud:
    """
    Ordered collection of 3D points with an optional per-point intensity.

    Points are expressed in the sensor frame, so the distance of a point to
    the origin is its range. Arrays are copied on construction and marked
    read-only; every transform returns a new cloud.

    Attributes:
        points: (N, 3) float array of XYZ coordinates
        intensities: Optional (N,) float array of intensities
    """
    points: np.ndarray
    intensities: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        if self.points is None:
            raise ValueError("PointCloud requires a points array")
        points = np.array(self.points, dtype=np.float64, copy=True)
        if points.size == 0:
            points = points.reshape(0, 3)
        if points.ndim != 2 or points.shape[1] != 3:
            raise ValueError(f"points must have shape (N, 3), got {points.shape}")
        object.__setattr__(self, "points", _readonly(points))

        if self.intensities is not None:
            intensities = np.array(self.intensities, dtype=np.float64, copy=True).reshape(-1)
            if len(intensities) != len(points):
                raise ValueError(
                    f"intensities length {len(intensities)} does not match {len(points)} points"
                )
            object.__setattr__(self, "intensities", _readonly(intensities))

    @classmethod
    def from_array(cls, array: np.ndarray) -> "PointCloud":
        """Build a cloud from an (N, 3) array or an (N, 4) array whose last column is intensity."""
        array = np.asarray(array, dtype=np.float64)
        if array.ndim != 2 or array.shape[1] not in (3, 4):
            raise ValueError(f"Expected an (N, 3) or (N, 4) array, got shape {array.shape}")
        if array.shape[1] == 4:
            return cls(points=array[:, :3], intensities=array[:, 3])
        return cls(points=array)

    def __len__(self) -> int:
        return len(self.points)

    @property
    def size(self) -> int:
        return len(self.points)

    @property
    def has_intensities(self) -> bool:
        return self.intensities is not None

    def ranges(self) -> np.ndarray:
        """Distance of every point to the sensor origin."""
        return np.linalg.norm(self.points, axis=1)

    def intensities_or_zeros(self) -> np.ndarray:
        if self.intensities is None:
            return np.zeros(len(self.points))
        return self.intensities

    def transform(self, transform: np.ndarray) -> "PointCloud":
        """Apply a 4x4 homogeneous transform."""
        transform = np.asarray(transform, dtype=np.float64)
        if transform.shape != (4, 4):
            raise ValueError(f"transform must be 4x4, got {transform.shape}")
        if len(self.points) == 0:
            return PointCloud(points=self.points, intensities=self.intensities)
        homog = np.column_stack([self.points, np.ones(len(self.points))])
        out = (transform @ homog.T).T
        return PointCloud(points=out[:, :3], intensities=self.intensities)

    def rotate(self, rotation: np.ndarray) -> "PointCloud":
        T = np.eye(4)
        T[:3, :3] = rotation
        return self.transform(T)

    def translate(self, translation: np.ndarray) -> "PointCloud":
        T = np.eye(4)
        T[:3, 3] = np.asarray(translation, dtype=np.float64).reshape(3)
        return self.transform(T)
