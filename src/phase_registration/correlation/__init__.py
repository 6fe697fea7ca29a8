"""
Correlation Module

Frequency-domain correlation engines:
- SpatialCorrelationLowPass: band-limited FFT cross-correlation (translation)
- SphericalCorrelation: SO(3) correlation of spherical functions (rotation)
- worker functions that run one channel per task on per-thread engines
"""

from .spatial_correlation import SpatialCorrelationLowPass
from .spherical_correlation import SphericalCorrelation
from .spherical_harmonics import euler_grid, polar_angles
from .workers import (
    ChannelTask,
    correlate_spatial_channel,
    correlate_spherical_channel,
    get_spatial_engine,
    get_spherical_engine,
)

__all__ = [
    "SpatialCorrelationLowPass",
    "SphericalCorrelation",
    "euler_grid",
    "polar_angles",
    "ChannelTask",
    "correlate_spatial_channel",
    "correlate_spherical_channel",
    "get_spatial_engine",
    "get_spherical_engine",
]
