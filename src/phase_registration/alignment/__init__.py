"""
Registration Module

This module provides the phase correlation registration pipeline for
aligning a current point cloud onto a previous one: rotation via SO(3)
correlation of spherical samples, translation via band-limited spatial
correlation of voxel grids.
"""

from .phase_aligner import PhaseAligner
from .registration import Registration, SphRegistration
from .mock_registration import (
    MockRotatedRegistration,
    MockTranslatedRegistration,
    create_registration,
)

__all__ = [
    "PhaseAligner",
    "Registration",
    "SphRegistration",
    "MockRotatedRegistration",
    "MockTranslatedRegistration",
    "create_registration",
]
