"""
Registration result returned by the registration pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, TYPE_CHECKING

import numpy as np

from .point_cloud import PointCloud

if TYPE_CHECKING:
    from ..uncertainty.phase_correlation_eval import UncertaintyEstimate


class RegistrationStage(Enum):
    ROTATION_ESTIMATION = "rotation_estimation"
    TRANSLATION_ESTIMATION = "translation_estimation"
    DONE = "done"


def _frozen_array(values, shape) -> np.ndarray:
    array = np.array(values, dtype=np.float64, copy=True).reshape(shape)
    array.setflags(write=False)
    return array


@dataclass(frozen=True)
class RegistrationResult:
    """
    Outcome of registering a current cloud onto a previous one.

    ``rotation`` and ``translation`` map the current cloud onto the previous
    one: ``registered = rotation @ p + translation`` for every current point p.
    A stage that could not find a distinguishable correlation peak keeps the
    identity for its component and reports ``found_* = False``.

    Attributes:
        registered_cloud: Current cloud after applying the estimated transform
        rotation: 3x3 rotation matrix
        rotation_euler: Intrinsic ZYZ Euler angles (radians) of ``rotation``
        translation: (3,) translation vector
        rotation_uncertainty: Peak evaluation of the rotation stage
        translation_uncertainty: Peak evaluation of the translation stage
        found_rotation: Whether the rotation stage found a solution
        found_translation: Whether the translation stage found a solution
        stage: Pipeline stage the result is in (the next stage to run, or DONE)
    """
    registered_cloud: PointCloud
    rotation: np.ndarray = field(default_factory=lambda: np.eye(3))
    rotation_euler: np.ndarray = field(default_factory=lambda: np.zeros(3))
    translation: np.ndarray = field(default_factory=lambda: np.zeros(3))
    rotation_uncertainty: Optional["UncertaintyEstimate"] = None
    translation_uncertainty: Optional["UncertaintyEstimate"] = None
    found_rotation: bool = False
    found_translation: bool = False
    stage: RegistrationStage = RegistrationStage.ROTATION_ESTIMATION

    def __post_init__(self) -> None:
        object.__setattr__(self, "rotation", _frozen_array(self.rotation, (3, 3)))
        object.__setattr__(self, "rotation_euler", _frozen_array(self.rotation_euler, (3,)))
        object.__setattr__(self, "translation", _frozen_array(self.translation, (3,)))

    @classmethod
    def identity(cls, cloud: PointCloud) -> "RegistrationResult":
        """Result with identity transform, used before any stage has run."""
        return cls(registered_cloud=cloud)

    @property
    def transformation(self) -> np.ndarray:
        T = np.eye(4)
        T[:3, :3] = self.rotation
        T[:3, 3] = self.translation
        return T

    def found_solution_for_rotation(self) -> bool:
        return self.found_rotation

    def found_solution_for_translation(self) -> bool:
        return self.found_translation

    def is_success(self) -> bool:
        return self.found_rotation and self.found_translation
