"""
Mock registration variants.

Both variants perturb the current cloud by a known transform before handing
it to a wrapped registration, so that the recovered transform can be
checked against ground truth:

- MockRotatedRegistration rotates by intrinsic ZYZ Euler angles and runs
  the full pipeline.
- MockTranslatedRegistration translates and runs only the translation
  stage.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
from scipy.spatial.transform import Rotation

from ..model.point_cloud import PointCloud
from ..model.registration_result import RegistrationResult
from ..utils.config import AppConfig
from .registration import SphRegistration

logger = logging.getLogger(__name__)


class MockRotatedRegistration:
    """Registration that rotates the current cloud by a known rotation first."""

    def __init__(
        self,
        registration: SphRegistration,
        alpha: float = 0.0,
        beta: float = 0.0,
        gamma: float = 0.0,
    ):
        self.registration = registration
        self.set_random_rotation(alpha, beta, gamma)

    def set_random_rotation(self, alpha: float, beta: float, gamma: float) -> None:
        """Set the injected rotation (radians, intrinsic ZYZ)."""
        self.alpha, self.beta, self.gamma = float(alpha), float(beta), float(gamma)

    @property
    def mock_rotation(self) -> np.ndarray:
        return Rotation.from_euler("ZYZ", [self.alpha, self.beta, self.gamma]).as_matrix()

    def perturb(self, cloud: PointCloud) -> PointCloud:
        return cloud.rotate(self.mock_rotation)

    def register_point_cloud(
        self, cloud_prev: PointCloud, cloud_cur: PointCloud
    ) -> RegistrationResult:
        logger.info(
            "Mock rotation (ZYZ, deg): %s",
            np.round(np.rad2deg([self.alpha, self.beta, self.gamma]), 2),
        )
        return self.registration.register_point_cloud(cloud_prev, self.perturb(cloud_cur))

    def close(self) -> None:
        self.registration.close()


class MockTranslatedRegistration:
    """Registration that translates the current cloud and estimates translation only."""

    def __init__(
        self,
        registration: SphRegistration,
        x: float = 0.0,
        y: float = 0.0,
        z: float = 0.0,
    ):
        self.registration = registration
        self.set_random_translation(x, y, z)

    def set_random_translation(self, x: float, y: float, z: float) -> None:
        self.translation = np.array([x, y, z], dtype=np.float64)

    def perturb(self, cloud: PointCloud) -> PointCloud:
        return cloud.translate(self.translation)

    def register_point_cloud(
        self, cloud_prev: PointCloud, cloud_cur: PointCloud
    ) -> RegistrationResult:
        logger.info("Mock translation: %s", np.round(self.translation, 3))
        result = RegistrationResult.identity(self.perturb(cloud_cur))
        return self.registration.estimate_translation(cloud_prev, result)

    def close(self) -> None:
        self.registration.close()


def create_registration(variant: str = "default", config: Optional[AppConfig] = None):
    """
    Build a registration pipeline.

    Args:
        variant: 'default', 'mock_rotated' or 'mock_translated'
        config: Application configuration passed to the underlying pipeline

    Returns:
        SphRegistration or one of the mock wrappers around it
    """
    if variant not in ("default", "mock_rotated", "mock_translated"):
        raise ValueError(f"Unknown registration variant '{variant}'")
    registration = SphRegistration(config)
    if variant == "mock_rotated":
        return MockRotatedRegistration(registration)
    if variant == "mock_translated":
        return MockTranslatedRegistration(registration)
    return registration
