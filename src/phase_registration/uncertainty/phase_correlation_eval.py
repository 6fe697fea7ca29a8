"""
Peak-based uncertainty of phase correlation estimates.

The confidence of an estimate is derived from the shape of the correlation
surface around the chosen peak:

- confidence: 1 - (second - floor) / (peak - floor), where ``second`` is
  the strongest other local maximum and ``floor`` the surface minimum.
  A unique sharp peak gives values near 1; two equal peaks or a flat
  surface give 0.
- peak_to_sidelobe: (peak - mean) / std of the surface.
- axis_variances: weighted second moment of the above-half-peak samples
  along every axis through the peak (Hurtos et al., 2015).

Evaluation never raises for degenerate surfaces; they yield confidence 0.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
from scipy import ndimage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UncertaintyEstimate:
    confidence: float
    peak_value: float
    second_peak_value: float
    peak_to_sidelobe: float
    axis_variances: Tuple[float, ...]

    @classmethod
    def degenerate(cls, ndim: int, peak_value: float = 0.0) -> "UncertaintyEstimate":
        return cls(
            confidence=0.0,
            peak_value=float(peak_value),
            second_peak_value=float(peak_value),
            peak_to_sidelobe=0.0,
            axis_variances=tuple(float("inf") for _ in range(ndim)),
        )


class PhaseCorrelationEval:
    """
    Evaluates correlation peaks.

    Args:
        exclusion_radius: Samples within this index distance of the main
            peak are never counted as a second peak
        variance_window: Half-width of the per-axis window used for the
            peak variance
    """

    def __init__(self, exclusion_radius: int = 2, variance_window: int = 3):
        self.exclusion_radius = int(exclusion_radius)
        self.variance_window = int(variance_window)

    def evaluate(
        self,
        surface: np.ndarray,
        peak: Sequence[int],
        resolution: float = 1.0,
        periodic: Optional[Sequence[bool]] = None,
    ) -> UncertaintyEstimate:
        """
        Score the peak at index ``peak`` of a correlation surface.

        Args:
            surface: Real correlation surface (any dimensionality)
            peak: Integer index of the chosen peak
            resolution: Metric size of one sample, used to scale variances
            periodic: Per-axis flag, True where the surface wraps around
                (default: all axes periodic)

        Returns:
            UncertaintyEstimate
        """
        if surface is None:
            raise ValueError("evaluate requires a correlation surface")
        surface = np.asarray(surface, dtype=np.float64)
        if surface.size == 0:
            raise ValueError("evaluate requires a non-empty correlation surface")
        peak = tuple(int(i) for i in peak)
        if len(peak) != surface.ndim:
            raise ValueError(f"Peak index {peak} does not match a {surface.ndim}-D surface")
        if periodic is None:
            periodic = (True,) * surface.ndim

        if not np.all(np.isfinite(surface)):
            logger.warning("Correlation surface contains non-finite values; confidence set to 0.")
            return UncertaintyEstimate.degenerate(surface.ndim)

        peak_value = float(surface[peak])
        floor = float(surface.min())
        mean = float(surface.mean())
        std = float(surface.std())
        span = peak_value - floor
        scale = max(abs(peak_value), abs(floor), 1e-300)
        if span <= 1e-12 * scale or std <= 1e-12 * scale:
            logger.debug("Flat correlation surface; confidence set to 0.")
            return UncertaintyEstimate.degenerate(surface.ndim, peak_value)

        second = self._second_peak(surface, peak, periodic, floor)
        confidence = float(np.clip(1.0 - (second - floor) / span, 0.0, 1.0))
        variances = tuple(
            self._axis_variance(surface, peak, axis, resolution, floor)
            for axis in range(surface.ndim)
        )
        return UncertaintyEstimate(
            confidence=confidence,
            peak_value=peak_value,
            second_peak_value=float(second),
            peak_to_sidelobe=(peak_value - mean) / std,
            axis_variances=variances,
        )

    def _second_peak(
        self,
        surface: np.ndarray,
        peak: Tuple[int, ...],
        periodic: Sequence[bool],
        floor: float,
    ) -> float:
        modes = ["wrap" if p else "nearest" for p in periodic]
        local_max = ndimage.maximum_filter(surface, size=3, mode=modes) == surface

        near_peak = np.zeros(surface.shape, dtype=bool)
        offsets = np.arange(-self.exclusion_radius, self.exclusion_radius + 1)
        window = []
        for axis, n in enumerate(surface.shape):
            idx = peak[axis] + offsets
            idx = idx % n if periodic[axis] else np.clip(idx, 0, n - 1)
            window.append(np.unique(idx))
        near_peak[np.ix_(*window)] = True

        candidates = surface[local_max & ~near_peak]
        if candidates.size == 0:
            return floor
        return float(candidates.max())

    def _axis_variance(
        self,
        surface: np.ndarray,
        peak: Tuple[int, ...],
        axis: int,
        resolution: float,
        floor: float,
    ) -> float:
        n = surface.shape[axis]
        offsets = np.arange(-self.variance_window, self.variance_window + 1)
        idx = (peak[axis] + offsets) % n
        index = list(peak)
        index[axis] = idx
        line = surface[tuple(index)] - floor

        # Threshold at 50% of peak
        mask = line > 0.5 * line.max()
        if np.sum(mask) < 3:
            # Sharp peak: fewer than three samples above threshold
            return float((resolution * 0.5) ** 2)
        weights = line[mask] / np.sum(line[mask])
        var = float(np.sum(weights * offsets[mask] ** 2) * resolution ** 2)
        return max(var, (resolution * 0.5) ** 2)
