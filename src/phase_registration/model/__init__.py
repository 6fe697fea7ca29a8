"""
Data Model Module

Point clouds, sampled spherical functions and registration results.
"""

from .point_cloud import PointCloud
from .function_value import CHANNELS, FunctionValue, SphericalFunction
from .registration_result import RegistrationResult, RegistrationStage

__all__ = [
    "PointCloud",
    "CHANNELS",
    "FunctionValue",
    "SphericalFunction",
    "RegistrationResult",
    "RegistrationStage",
]
