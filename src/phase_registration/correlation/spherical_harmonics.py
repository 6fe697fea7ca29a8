"""
Spherical harmonic and Wigner-d tables for bandwidth-limited functions.

All tables depend only on the bandwidth, are computed once, cached, and
returned read-only so that every correlation engine (and every worker
thread) can share them.

Conventions:
- Spherical harmonics are scipy's ``sph_harm_y`` (orthonormal, with the
  Condon-Shortley phase), degrees ``l < B`` and orders ``|m| <= l``.
- ``d^l_{m'm}(beta) = <l m'| exp(-i beta J_y) |l m>``, so that the Wigner
  D-matrix of the intrinsic ZYZ rotation (alpha, beta, gamma) is
  ``exp(-i m' alpha) d^l_{m'm}(beta) exp(-i m gamma)``.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Tuple

import numpy as np
from scipy import linalg
from scipy.special import sph_harm_y


def _readonly(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


def polar_angles(bandwidth: int) -> np.ndarray:
    """theta_j = pi (2j + 1) / (4B), j = 0..2B-1."""
    return np.pi * (2 * np.arange(2 * bandwidth) + 1) / (4 * bandwidth)


def euler_grid(bandwidth: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Sample positions (alpha, beta, gamma) of the SO(3) correlation grid."""
    n = 2 * bandwidth
    alphas = 2 * np.pi * np.arange(n) / n
    betas = polar_angles(bandwidth)
    gammas = 2 * np.pi * np.arange(n) / n
    return alphas, betas, gammas


@lru_cache(maxsize=8)
def quadrature_weights(bandwidth: int) -> np.ndarray:
    """
    Driscoll-Healy quadrature weights for the polar angle.

    The weights integrate ``sin(theta) dtheta`` exactly for band-limited
    functions and sum to 2.
    """
    B = bandwidth
    j = np.arange(2 * B)
    k = np.arange(B)
    theta = polar_angles(B)
    series = np.sin(np.outer(2 * j + 1, 2 * k + 1) * np.pi / (4 * B)) / (2 * k + 1)
    weights = (2.0 / B) * np.sin(theta) * series.sum(axis=1)
    return _readonly(weights)


@lru_cache(maxsize=8)
def legendre_table(bandwidth: int) -> np.ndarray:
    """
    Polar part of the spherical harmonics on the grid.

    Returns:
        Real array P of shape (B, 2B-1, 2B) with
        ``P[l, m + B - 1, j] = Y_l^m(theta_j, 0)`` and zeros where |m| > l
    """
    B = bandwidth
    l = np.arange(B)[:, None, None]
    m = np.arange(-(B - 1), B)[None, :, None]
    theta = polar_angles(B)[None, None, :]
    valid = np.abs(m) <= l
    m_safe = np.clip(m, -l, l)
    values = sph_harm_y(l, m_safe, theta, 0.0).real
    return _readonly(np.where(valid, values, 0.0))


def wigner_d_matrix(degree: int, betas: np.ndarray) -> np.ndarray:
    """
    Wigner small-d matrices of one degree for a set of angles.

    Computed from the eigen-decomposition of J_y, which stays numerically
    stable for high degrees.

    Returns:
        Array of shape (len(betas), 2l+1, 2l+1), indexed [beta, m' + l, m + l]
    """
    l = degree
    size = 2 * l + 1
    m = np.arange(-l, l)
    ladder = np.sqrt(l * (l + 1) - m * (m + 1))
    J_y = np.zeros((size, size), dtype=np.complex128)
    idx = np.arange(size - 1)
    J_y[idx + 1, idx] = -0.5j * ladder
    J_y[idx, idx + 1] = 0.5j * ladder

    eigenvalues, V = linalg.eigh(J_y)
    phases = np.exp(-1j * np.outer(betas, eigenvalues))
    d = np.einsum("ab,kb,cb->kac", V, phases, V.conj())
    return d.real


@lru_cache(maxsize=8)
def wigner_d_tables(bandwidth: int) -> Tuple[np.ndarray, ...]:
    """Wigner-d matrices of every degree l < B on the beta grid."""
    betas = polar_angles(bandwidth)
    return tuple(_readonly(wigner_d_matrix(l, betas)) for l in range(bandwidth))
