"""
Preprocessing Module

Discretization of point clouds for correlation:
- SphericalSampler: equiangular spherical grid (rotation stage)
- VoxelGrid: shared cubic voxel grid (translation stage)
- InMemoryDatasource: point cloud streaming interface
"""

from .spherical_sampler import SphericalSampler, create_2bw_grid, convert_cartesian
from .voxel_grid import VoxelGrid
from .datasource import InMemoryDatasource

__all__ = [
    "SphericalSampler",
    "create_2bw_grid",
    "convert_cartesian",
    "VoxelGrid",
    "InMemoryDatasource",
]
