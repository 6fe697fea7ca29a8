"""
Phase Aligner

Extracts transform components from correlation surfaces by locating the
dominant peak and refining it with a three-point parabolic fit per axis.
"""

from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np
from scipy.spatial.transform import Rotation


class PhaseAligner:
    def find_peak(self, surface: np.ndarray) -> Tuple[int, ...]:
        """Index of the global maximum (first occurrence on ties)."""
        surface = np.asarray(surface)
        if surface.size == 0:
            raise ValueError("find_peak requires a non-empty surface")
        return tuple(int(i) for i in np.unravel_index(np.argmax(surface), surface.shape))

    def refine_peak(
        self,
        surface: np.ndarray,
        peak: Sequence[int],
        periodic: Sequence[bool],
    ) -> np.ndarray:
        """
        Sub-sample peak position.

        Neighbours wrap on periodic axes; on bounded axes a peak at the
        border is not refined.
        """
        surface = np.asarray(surface, dtype=np.float64)
        refined = np.asarray(peak, dtype=np.float64)
        for axis, n in enumerate(surface.shape):
            if n < 3:
                continue
            i = peak[axis]
            if periodic[axis]:
                lo, hi = (i - 1) % n, (i + 1) % n
            elif 0 < i < n - 1:
                lo, hi = i - 1, i + 1
            else:
                continue
            index = list(peak)
            index[axis] = lo
            y0 = surface[tuple(index)]
            index[axis] = hi
            y2 = surface[tuple(index)]
            y1 = surface[tuple(peak)]
            denom = 2.0 * (y0 - 2.0 * y1 + y2)
            if abs(denom) > 1e-12 * max(abs(y1), 1e-300):
                offset = (y0 - y2) / denom
                refined[axis] += float(np.clip(offset, -0.5, 0.5))
        return refined

    def align_translation(
        self, surface: np.ndarray, voxel_size: float
    ) -> Tuple[np.ndarray, Tuple[int, ...]]:
        """
        Translation from a spatial correlation surface.

        The surface of ``prev`` against ``cur`` peaks at the shift that moves
        the current cloud onto the previous one; peaks beyond half the grid
        are wrapped to negative shifts.

        Returns:
            (translation (3,), integer peak index)
        """
        surface = np.asarray(surface, dtype=np.float64)
        peak = self.find_peak(surface)
        refined = self.refine_peak(surface, peak, periodic=(True,) * surface.ndim)
        shape = np.asarray(surface.shape, dtype=np.float64)
        shift = np.where(refined > shape / 2.0, refined - shape, refined)
        return shift * voxel_size, peak

    def align_rotation(
        self, surface: np.ndarray, bandwidth: int
    ) -> Tuple[np.ndarray, np.ndarray, Tuple[int, ...]]:
        """
        Rotation from an SO(3) correlation surface indexed [beta, alpha, gamma].

        Returns:
            (3x3 rotation matrix, intrinsic ZYZ Euler angles (alpha, beta, gamma),
            integer peak index)
        """
        surface = np.asarray(surface, dtype=np.float64)
        n = 2 * bandwidth
        if surface.shape != (n, n, n):
            raise ValueError(f"Expected a {(n, n, n)} surface for bandwidth {bandwidth}, got {surface.shape}")
        peak = self.find_peak(surface)
        k, j, jj = self.refine_peak(surface, peak, periodic=(False, True, True))

        step = 2.0 * np.pi / n
        alpha = (j * step) % (2.0 * np.pi)
        gamma = (jj * step) % (2.0 * np.pi)
        # beta_k = pi (2k + 1) / (4B), also for fractional k
        beta = float(np.clip(np.pi * (2.0 * k + 1.0) / (4.0 * bandwidth), 0.0, np.pi))

        euler = np.array([alpha, beta, gamma])
        rotation = Rotation.from_euler("ZYZ", euler).as_matrix()
        return rotation, euler, peak
