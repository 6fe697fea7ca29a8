"""
Spherical (SO(3)) Correlation

Correlates two band-limited functions on the sphere over all rotations:

    C(R) = integral f(w) * g(R^-1 w) dw
         = sum_l sum_{m',m} f_lm' conj(g_lm) exp(i m' alpha) d^l_m'm(beta) exp(i m gamma)

The cross-power spectrum ``S[k, m', m] = sum_l f_lm' conj(g_lm) d^l_m'm(beta_k)``
plays the role of the spectrum in the spatial engine: it is what channel
fusion operates on. A 2D inverse FFT per beta slice turns it into the
correlation surface on the Euler grid, indexed [beta, alpha, gamma].

Like SpatialCorrelationLowPass, an instance owns its buffers and is not
reentrant.
"""

from __future__ import annotations

import logging

import numpy as np
from scipy import fft

from .spherical_harmonics import legendre_table, quadrature_weights, wigner_d_tables

logger = logging.getLogger(__name__)


class SphericalCorrelation:
    """Rotation-domain correlation engine for bandwidth B."""

    def __init__(self, bandwidth: int):
        bandwidth = int(bandwidth)
        if bandwidth <= 0:
            raise ValueError(f"Bandwidth must be positive, got {bandwidth}")
        self.bandwidth = bandwidth
        n = 2 * bandwidth
        self.grid_shape = (n, n)
        self.shape = (n, n, n)
        self.total_n_voxels = n ** 3

        self._weights = quadrature_weights(bandwidth)
        self._legendre = legendre_table(bandwidth)
        self._wigner = wigner_d_tables(bandwidth)
        # FFT row holding order m, for m = -(B-1)..B-1
        self._m_rows = np.arange(-(bandwidth - 1), bandwidth) % n

        self._f = np.zeros(self.grid_shape, dtype=np.float64)
        self._g = np.zeros(self.grid_shape, dtype=np.float64)
        self._S = np.zeros(self.shape, dtype=np.complex128)
        self._c = np.zeros(self.shape, dtype=np.float64)

    def _load(self, buffer: np.ndarray, values: np.ndarray, name: str) -> None:
        if values is None:
            raise ValueError(f"Function '{name}' must not be None")
        values = np.asarray(values, dtype=np.float64)
        if values.size != buffer.size:
            raise ValueError(f"Function '{name}' has {values.size} samples, expected {buffer.size}")
        np.copyto(buffer, values.reshape(self.grid_shape))

    def transform(self, values: np.ndarray) -> np.ndarray:
        """
        Spherical harmonic coefficients of a function sampled on the grid.

        Args:
            values: (2B, 2B) samples indexed [azimuth, elevation]

        Returns:
            Complex array (B, 2B-1), entry [l, m + B - 1] = f_lm
        """
        B = self.bandwidth
        values = np.asarray(values, dtype=np.float64).reshape(self.grid_shape)
        # sum_k f(theta_j, phi_k) exp(-i m phi_k) for every order m
        azimuthal = fft.fft(values, axis=0)[self._m_rows, :]
        return (np.pi / B) * np.einsum(
            "lmj,mj,j->lm", self._legendre, azimuthal, self._weights
        )

    def correlate_spectrum(self, f: np.ndarray, g: np.ndarray) -> np.ndarray:
        """
        SO(3) cross-power spectrum of two sampled functions.

        Returns:
            Flat complex view of length (2B)^3 into the engine's spectrum buffer
        """
        self._load(self._f, f, "f")
        self._load(self._g, g, "g")
        B = self.bandwidth
        n = 2 * B

        f_lm = self.transform(self._f)
        g_lm = self.transform(self._g)

        self._S.fill(0.0)
        for l in range(B):
            orders = slice(B - 1 - l, B + l)
            outer = np.outer(f_lm[l, orders], np.conj(g_lm[l, orders]))
            rows = np.arange(-l, l + 1) % n
            self._S[:, rows[:, None], rows[None, :]] += self._wigner[l] * outer[None, :, :]
        return self._S.reshape(-1)

    def inverse_transform(self, spectrum: np.ndarray) -> np.ndarray:
        """
        Correlation surface on the Euler grid, indexed [beta, alpha, gamma].

        The inverse transform is left unnormalized.
        """
        if spectrum is None:
            raise ValueError("Spectrum must not be None")
        spectrum = np.asarray(spectrum)
        if spectrum.size != self.total_n_voxels:
            raise ValueError(
                f"Spectrum has {spectrum.size} bins, expected {self.total_n_voxels}"
            )
        if not np.shares_memory(spectrum, self._S):
            np.copyto(self._S, spectrum.reshape(self.shape))

        self._c[...] = fft.ifft2(self._S, axes=(1, 2), norm="forward").real
        return self._c

    def correlate_signals(self, f: np.ndarray, g: np.ndarray) -> np.ndarray:
        return self.inverse_transform(self.correlate_spectrum(f, g))
