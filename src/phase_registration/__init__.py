"""
Phase Registration Package

A Python package for rigid registration of consecutive point clouds using
phase correlation. Rotation is recovered from the SO(3) correlation of
spherically sampled range, intensity and density channels; translation from
the band-limited FFT correlation of voxelized clouds. Channels are fused
with a Laplace pyramid and every estimate carries a peak-based confidence.
"""

__version__ = "0.1.0"

from .model import *
from .preprocessing import *
from .correlation import *
from .fusion import *
from .uncertainty import *
from .alignment import *
from .acceleration import *
from .utils import *

__all__ = [
    "model",
    "preprocessing",
    "correlation",
    "fusion",
    "uncertainty",
    "alignment",
    "acceleration",
    "utils",
]
