"""
Laplace Pyramid Fusion

Fuses the correlation spectra of several channels into one consensus
spectrum. Each spectrum is split into a centred low-pass band
``[lower, upper)`` with ``lower = round(n / divider)`` (at most n // 2)
and ``upper = n - lower``, and a residual that holds everything outside the
band (zero inside it). Residuals are fused winner-take-all per bin by
coefficient energy; the last low-pass band is averaged across channels.

Every pyramid level is reduced from the original full-resolution spectrum
of its channel, so the levels are repeated single-level splits rather than
a cascade over successively smaller low-pass bands.
"""

from __future__ import annotations

import logging
import math
from typing import List, NamedTuple, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)


class PyramidLevel(NamedTuple):
    """Decomposition of one spectrum: centred low-pass band and full-length residual."""
    low_pass: np.ndarray
    residual: np.ndarray


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class LaplacePyramid:
    def __init__(self, divider: float = 4.0):
        """
        Args:
            divider: Ratio controlling the low-pass band; ``n / divider`` bins
                are cut from each end of the spectrum. Must be > 1.
        """
        if divider is None or not divider > 1.0:
            raise ValueError(f"divider must be > 1, got {divider}")
        self.divider = float(divider)

    def band_bounds(self, n_coeffs: int) -> Tuple[int, int]:
        """
        Low-pass band ``[lower, upper)`` for a spectrum of ``n_coeffs`` bins.

        ``lower`` is capped at ``n_coeffs // 2``, so dividers below 2 give an
        empty (even n) or single-bin (odd n) band rather than a negative one.
        """
        lower = min(_round_half_up(n_coeffs / self.divider), n_coeffs // 2)
        return lower, n_coeffs - lower

    def reduce(self, coefficients: np.ndarray, n_coeffs: int) -> PyramidLevel:
        """
        Split a spectrum into its low-pass band and the residual outside it.

        Args:
            coefficients: Complex spectrum of at least ``n_coeffs`` bins
            n_coeffs: Number of bins to decompose

        Returns:
            PyramidLevel with ``low_pass`` of length ``n - 2 * lower`` and
            ``residual`` of length n, zero inside the band
        """
        if coefficients is None:
            raise ValueError("reduce requires a coefficient array")
        if n_coeffs <= 0:
            raise ValueError(f"n_coeffs must be positive, got {n_coeffs}")
        coefficients = np.asarray(coefficients, dtype=np.complex128).reshape(-1)
        if len(coefficients) < n_coeffs:
            raise ValueError(f"Spectrum has {len(coefficients)} bins, expected {n_coeffs}")

        lower, upper = self.band_bounds(n_coeffs)
        logger.debug("[LaplacePyramid] lower: %d, upper: %d, n_low_pass: %d", lower, upper, upper - lower)

        low_pass = coefficients[lower:upper].copy()
        low_pass_full = np.zeros(n_coeffs, dtype=np.complex128)
        low_pass_full[lower:upper] = low_pass
        residual = coefficients[:n_coeffs] - low_pass_full
        return PyramidLevel(low_pass, residual)

    def expand(self, low_pass: np.ndarray, residual: np.ndarray) -> np.ndarray:
        """
        Write a low-pass band back into a residual, in place.

        Bounds are recomputed from the residual's length. A full-length
        reconstruction from a coarser level may be passed as ``low_pass``;
        its own band is used.

        Returns:
            The (mutated) residual, now a full-length reconstruction
        """
        if low_pass is None or residual is None:
            raise ValueError("expand requires both a low-pass band and a residual")
        lower, upper = self.band_bounds(len(residual))
        if len(low_pass) == len(residual) and len(residual) != upper - lower:
            low_pass = low_pass[lower:upper]
        if len(low_pass) != upper - lower:
            raise ValueError(
                f"Low-pass band has {len(low_pass)} bins, expected {upper - lower}"
            )
        residual[lower:upper] = low_pass
        return residual

    def fuse_level_by_max_coeff(
        self, levels_per_channel: Sequence[PyramidLevel], n_coeffs: int
    ) -> np.ndarray:
        """
        Fuse residuals bin by bin, keeping the coefficient of the channel with
        the highest energy (re^2 + im^2). Ties go to the first channel.
        """
        if not levels_per_channel:
            raise ValueError("fuse_level_by_max_coeff requires at least one channel")
        if n_coeffs <= 0:
            raise ValueError(f"n_coeffs must be positive, got {n_coeffs}")

        residuals = np.stack([level.residual[:n_coeffs] for level in levels_per_channel])
        energies = residuals.real ** 2 + residuals.imag ** 2
        winners = np.argmax(energies, axis=0)
        return np.take_along_axis(residuals, winners[None, :], axis=0)[0]

    def fuse_last_low_pass_layer(self, levels_per_channel: Sequence[PyramidLevel]) -> np.ndarray:
        """Element-wise mean of the channels' low-pass bands."""
        if not levels_per_channel:
            raise ValueError("fuse_last_low_pass_layer requires at least one channel")
        low_passes = np.stack([level.low_pass for level in levels_per_channel])
        return low_passes.mean(axis=0)

    def fuse_channels(
        self, channels: Sequence[np.ndarray], n_coeffs: int, n_levels: int
    ) -> np.ndarray:
        """
        Fuse per-channel spectra into one consensus spectrum.

        Args:
            channels: Complex spectra, one per channel
            n_coeffs: Number of bins per spectrum
            n_levels: Number of pyramid levels

        Returns:
            Fused spectrum of length ``n_coeffs``
        """
        if not channels:
            raise ValueError("fuse_channels requires at least one channel")
        if any(channel is None for channel in channels):
            raise ValueError("fuse_channels received a missing channel spectrum")
        if n_levels <= 0:
            raise ValueError(f"n_levels must be positive, got {n_levels}")

        fused_levels: List[np.ndarray] = []
        pyramids_per_level: List[List[PyramidLevel]] = []
        for _ in range(n_levels):
            pyramid_level = [self.reduce(channel, n_coeffs) for channel in channels]
            fused_levels.append(self.fuse_level_by_max_coeff(pyramid_level, n_coeffs))
            pyramids_per_level.append(pyramid_level)

        recon = self.fuse_last_low_pass_layer(pyramids_per_level[-1])
        for i in range(n_levels - 1, -1, -1):
            recon = self.expand(recon, fused_levels[i])
        return recon
