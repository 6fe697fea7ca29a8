"""
Fusion Module

Multi-channel spectrum fusion with a Laplace pyramid.
"""

from .laplace_pyramid import LaplacePyramid, PyramidLevel

__all__ = [
    "LaplacePyramid",
    "PyramidLevel",
]
