"""
Spatial Phase Correlation (low-pass variant)

Cross-correlates two real signals of fixed size through the frequency
domain:

1. copy both signals into the engine's input buffers
2. forward FFT of each
3. shift both spectra so the zero frequency sits in the centre
4. multiply C = F * conj(G) bin by bin
5. zero the bins outside the retained low-pass band
6. inverse shift and inverse FFT

The engine owns its buffers for its whole lifetime and always returns views
into them, so an instance must never be used by two threads at once. Run
channels in parallel by giving each worker its own engine.
"""

from __future__ import annotations

import logging
from typing import Sequence, Tuple, Union

import numpy as np
from scipy import fft

logger = logging.getLogger(__name__)

ShapeLike = Union[int, Sequence[int]]


def _clamp(value: int, low: int, high: int) -> int:
    return int(min(max(int(value), low), high))


class SpatialCorrelationLowPass:
    """
    Band-limited cross-correlation engine for 1D or nD signals.

    Bounds are bin indices of the centred spectrum, ``[lower, upper)``,
    clamped into ``[0, N]`` where N is the total number of bins. For nD
    signals the band applies along every axis, each axis keeping the
    centred bins in ``[lower, min(upper, n_axis))``.
    """

    def __init__(
        self,
        n_voxels: ShapeLike,
        lower_bound: int = 0,
        upper_bound: int = 1000,
    ):
        """
        Args:
            n_voxels: Signal length, or signal shape for multi-dimensional signals
            lower_bound: First centred frequency bin to retain
            upper_bound: Bin after the last retained centred frequency bin
        """
        if np.isscalar(n_voxels):
            shape: Tuple[int, ...] = (int(n_voxels),)
        else:
            shape = tuple(int(n) for n in n_voxels)
        if not shape or any(n <= 0 for n in shape):
            raise ValueError(f"Signal shape must be non-empty and positive, got {n_voxels}")

        self.shape = shape
        self.total_n_voxels = int(np.prod(shape))
        self.low_pass_lower_bound = _clamp(lower_bound, 0, self.total_n_voxels)
        self.low_pass_upper_bound = _clamp(upper_bound, 0, self.total_n_voxels)
        if (self.low_pass_lower_bound, self.low_pass_upper_bound) != (lower_bound, upper_bound):
            logger.debug(
                "Clamped low-pass bounds [%d, %d) to [%d, %d) for %d bins",
                lower_bound, upper_bound,
                self.low_pass_lower_bound, self.low_pass_upper_bound, self.total_n_voxels,
            )

        self._f = np.zeros(shape, dtype=np.float64)
        self._g = np.zeros(shape, dtype=np.float64)
        self._F = np.zeros(shape, dtype=np.complex128)
        self._G = np.zeros(shape, dtype=np.complex128)
        self._C = np.zeros(shape, dtype=np.complex128)
        self._c = np.zeros(shape, dtype=np.float64)

        self._band = self._build_band_mask()
        self._full_band = bool(self._band.all())

    def _build_band_mask(self) -> np.ndarray:
        mask = np.ones(self.shape, dtype=bool)
        for axis, n in enumerate(self.shape):
            idx = np.arange(n)
            keep = (idx >= self.low_pass_lower_bound) & (idx < min(self.low_pass_upper_bound, n))
            view = [1] * len(self.shape)
            view[axis] = n
            mask &= keep.reshape(view)
        return mask

    @property
    def band_mask(self) -> np.ndarray:
        """Boolean mask of retained bins in the centred spectrum."""
        return self._band

    def _load(self, buffer: np.ndarray, signal: np.ndarray, name: str) -> None:
        if signal is None:
            raise ValueError(f"Signal '{name}' must not be None")
        signal = np.asarray(signal, dtype=np.float64)
        if signal.size != self.total_n_voxels:
            raise ValueError(
                f"Signal '{name}' has {signal.size} values, expected {self.total_n_voxels}"
            )
        np.copyto(buffer, signal.reshape(self.shape))

    def shift_signals(self) -> None:
        self._F[...] = fft.fftshift(self._F)
        self._G[...] = fft.fftshift(self._G)

    def complex_mul_seq(self) -> None:
        # C = F * conj(G) over all bins
        np.multiply(self._F, np.conj(self._G), out=self._C)

    def correlate_spectrum(self, f: np.ndarray, g: np.ndarray) -> np.ndarray:
        """
        Centred, band-limited cross-power spectrum of two signals.

        Returns:
            Flat complex view of length N into the engine's spectrum buffer
        """
        self._load(self._f, f, "f")
        self._load(self._g, g, "g")

        logger.debug("Performing FFT on both signals (%s).", "x".join(map(str, self.shape)))
        self._F[...] = fft.fftn(self._f)
        self._G[...] = fft.fftn(self._g)

        self.shift_signals()
        self.complex_mul_seq()
        if not self._full_band:
            self._C[~self._band] = 0.0
        return self._C.reshape(-1)

    def inverse_transform(self, spectrum: np.ndarray) -> np.ndarray:
        """
        Spatial correlation surface of a centred spectrum.

        The inverse transform is left unnormalized.

        Returns:
            Real view of the engine's output buffer, shaped like the signals
        """
        if spectrum is None:
            raise ValueError("Spectrum must not be None")
        spectrum = np.asarray(spectrum)
        if spectrum.size != self.total_n_voxels:
            raise ValueError(
                f"Spectrum has {spectrum.size} bins, expected {self.total_n_voxels}"
            )
        if not np.shares_memory(spectrum, self._C):
            np.copyto(self._C, spectrum.reshape(self.shape))

        logger.debug("Shifting back and performing IFFT on the low-pass correlation.")
        self._c[...] = fft.ifftn(fft.ifftshift(self._C), norm="forward").real
        return self._c

    def correlate_signals(self, f: np.ndarray, g: np.ndarray) -> np.ndarray:
        """Spatial correlation surface of ``f`` against ``g``; peaks at the shift of f relative to g."""
        return self.inverse_transform(self.correlate_spectrum(f, g))
