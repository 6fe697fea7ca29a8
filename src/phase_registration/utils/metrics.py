"""
Distance metrics between point clouds and rotations.
"""

from __future__ import annotations

from typing import Union

import numpy as np
from sklearn.neighbors import NearestNeighbors

from ..model.point_cloud import PointCloud

CloudLike = Union[PointCloud, np.ndarray]


def _as_points(cloud: CloudLike) -> np.ndarray:
    if isinstance(cloud, PointCloud):
        return cloud.points
    points = np.asarray(cloud, dtype=float)
    if points.ndim != 2 or points.shape[1] < 3:
        raise ValueError(f"Expected an (N, 3) array, got shape {points.shape}")
    return points[:, :3]


def _directed_distances(A: np.ndarray, B: np.ndarray) -> np.ndarray:
    nbrs = NearestNeighbors(n_neighbors=1, algorithm="kd_tree").fit(B)
    d, _ = nbrs.kneighbors(A)
    return d.reshape(-1)


def hausdorff_distance(cloud_a: CloudLike, cloud_b: CloudLike) -> float:
    """
    Symmetric Hausdorff distance between two point clouds.

    Returns inf if exactly one of the clouds is empty and 0.0 if both are.
    """
    A = _as_points(cloud_a)
    B = _as_points(cloud_b)
    if len(A) == 0 and len(B) == 0:
        return 0.0
    if len(A) == 0 or len(B) == 0:
        return float("inf")
    d_ab = _directed_distances(A, B)
    d_ba = _directed_distances(B, A)
    return float(max(d_ab.max(), d_ba.max()))


def nn_rmse(cloud_a: CloudLike, cloud_b: CloudLike) -> float:
    """Root mean square nearest-neighbour distance from ``cloud_a`` to ``cloud_b``."""
    A = _as_points(cloud_a)
    B = _as_points(cloud_b)
    if len(A) == 0 or len(B) == 0:
        return float("inf")
    d = _directed_distances(A, B)
    return float(np.sqrt(np.mean(d ** 2)))


def rotation_angle_deg(R_a: np.ndarray, R_b: np.ndarray) -> float:
    """Geodesic angle in degrees between two rotation matrices."""
    R = np.asarray(R_a, dtype=float).T @ np.asarray(R_b, dtype=float)
    cos_angle = np.clip((np.trace(R) - 1.0) / 2.0, -1.0, 1.0)
    return float(np.rad2deg(np.arccos(cos_angle)))
