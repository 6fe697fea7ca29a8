"""
Tests for spherical harmonic tables and SO(3) correlation.
"""

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from phase_registration.alignment import PhaseAligner
from phase_registration.correlation import SphericalCorrelation
from phase_registration.correlation.spherical_harmonics import (
    legendre_table,
    quadrature_weights,
    wigner_d_matrix,
)
from phase_registration.preprocessing import convert_cartesian, create_2bw_grid
from phase_registration.utils import rotation_angle_deg


def _sample(bandwidth, fn):
    """Evaluate fn(unit directions) on the (azimuth, elevation) grid."""
    directions = convert_cartesian(create_2bw_grid(bandwidth))
    return fn(directions)


def test_quadrature_weights_integrate_sin_theta():
    for bandwidth in (4, 8, 16):
        assert quadrature_weights(bandwidth).sum() == pytest.approx(2.0)


def test_tables_are_cached_and_read_only():
    assert legendre_table(4) is legendre_table(4)
    with pytest.raises(ValueError):
        legendre_table(4)[0, 0, 0] = 1.0


def test_wigner_d_reduces_to_identity_at_zero():
    d = wigner_d_matrix(3, np.array([0.0]))
    np.testing.assert_allclose(d[0], np.eye(7), atol=1e-12)


def test_wigner_d_degree_one_matches_closed_form():
    beta = 0.7
    d = wigner_d_matrix(1, np.array([beta]))[0]
    # d^1_{00} = cos(beta), d^1_{1,1} = (1 + cos(beta)) / 2
    assert d[1, 1] == pytest.approx(np.cos(beta))
    assert d[2, 2] == pytest.approx((1 + np.cos(beta)) / 2)


def test_constant_function_has_only_degree_zero():
    engine = SphericalCorrelation(8)

    coeffs = engine.transform(np.ones((16, 16)))

    assert coeffs[0, 7] == pytest.approx(np.sqrt(4 * np.pi))
    coeffs[0, 7] = 0
    np.testing.assert_allclose(coeffs, 0, atol=1e-10)


def test_transform_of_z_coordinate():
    bandwidth = 8
    engine = SphericalCorrelation(bandwidth)
    values = _sample(bandwidth, lambda d: d[..., 2])

    coeffs = engine.transform(values)

    # z = sqrt(4 pi / 3) Y_1^0
    assert coeffs[1, bandwidth - 1].real == pytest.approx(np.sqrt(4 * np.pi / 3))
    coeffs[1, bandwidth - 1] = 0
    np.testing.assert_allclose(coeffs, 0, atol=1e-10)


def test_correlation_peaks_at_known_rotation():
    bandwidth = 8
    engine = SphericalCorrelation(bandwidth)
    aligner = PhaseAligner()

    def bump(directions, axis):
        axis = np.asarray(axis) / np.linalg.norm(axis)
        return np.exp(4.0 * (directions @ axis))

    # Asymmetric function: two bumps of different height
    def f_fn(d):
        return bump(d, [1.0, 0.2, 0.3]) + 0.5 * bump(d, [-0.2, 1.0, -0.4])

    rotation = Rotation.from_euler("ZYZ", [np.pi / 2, np.pi * 5 / 32, np.pi / 4])
    R = rotation.as_matrix()
    # g is f rotated by R: g(w) = f(R^-1 w)
    f = _sample(bandwidth, f_fn)
    g = _sample(bandwidth, lambda d: f_fn(d @ R))

    surface = engine.correlate_signals(g, f)
    R_est, _, _ = aligner.align_rotation(surface, bandwidth)

    assert rotation_angle_deg(R_est, R) < 15.0


def test_invalid_inputs():
    with pytest.raises(ValueError):
        SphericalCorrelation(0)
    engine = SphericalCorrelation(4)
    with pytest.raises(ValueError):
        engine.correlate_spectrum(None, np.zeros(64))
    with pytest.raises(ValueError):
        engine.correlate_spectrum(np.zeros(63), np.zeros(64))
    with pytest.raises(ValueError):
        engine.inverse_transform(np.zeros(10, dtype=complex))
