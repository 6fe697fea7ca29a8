"""
Tests for the full registration pipeline and its mock variants.
"""

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from phase_registration.alignment import (
    MockRotatedRegistration,
    MockTranslatedRegistration,
    SphRegistration,
    create_registration,
)
from phase_registration.model import PointCloud, RegistrationStage
from phase_registration.utils import AppConfig, NullStatisticsManager, StatisticsManager, rotation_angle_deg


def _make_room(seed=0, n=20000) -> PointCloud:
    """
    Closed, asymmetric room seen from a sensor off its centre.

    Wall intensity depends on the wall, so both range and intensity vary
    with direction.
    """
    rng = np.random.default_rng(seed)
    lo = np.array([-8.0, -5.0, -2.0])
    hi = np.array([14.0, 10.0, 5.0])
    faces = [(axis, side) for axis in range(3) for side in (0, 1)]
    intensity_of_face = [0.1, 0.3, 0.5, 0.7, 0.9, 0.6]

    extents = hi - lo
    areas = np.array([np.prod(np.delete(extents, axis)) for axis, _ in faces])
    counts = rng.multinomial(n - 2000, areas / areas.sum())

    points, intensities = [], []
    for (axis, side), count, intensity in zip(faces, counts, intensity_of_face):
        p = lo + rng.uniform(0, 1, size=(count, 3)) * extents
        p[:, axis] = hi[axis] if side else lo[axis]
        points.append(p)
        intensities.append(np.full(count, intensity))

    # Box standing in one corner
    box = rng.uniform([8.0, 5.0, -2.0], [12.0, 9.0, 1.0], size=(2000, 3))
    face = rng.integers(0, 3, size=2000)
    box[face == 0, 0] = 8.0
    box[face == 1, 1] = 5.0
    box[face == 2, 2] = 1.0
    points.append(box)
    intensities.append(np.full(2000, 1.0))

    return PointCloud(points=np.vstack(points), intensities=np.concatenate(intensities))


def _config(**overrides):
    raw = {
        "sampling": {"bandwidth": 16},
        "registration": {"rotation_channels": ["range", "intensity"], "min_confidence": 0.0},
        "parallel": {"n_workers": 2},
    }
    for key, value in overrides.items():
        raw.setdefault(key, {}).update(value)
    return AppConfig.model_validate(raw)


def test_rotation_recovered_by_mock_rotated_pipeline():
    cloud = _make_room()
    alpha, beta, gamma = np.pi / 4, 11 * np.pi / 64, np.pi / 2

    with SphRegistration(_config()) as registration:
        mock = MockRotatedRegistration(registration)
        mock.set_random_rotation(alpha, beta, gamma)
        result = mock.register_point_cloud(cloud, cloud)

    R_mock = Rotation.from_euler("ZYZ", [alpha, beta, gamma]).as_matrix()
    # The estimate maps the rotated cloud back onto the original
    assert rotation_angle_deg(result.rotation, R_mock.T) < 15.0
    assert result.stage is RegistrationStage.DONE
    assert result.found_solution_for_rotation()
    assert result.rotation_uncertainty is not None
    np.testing.assert_allclose(
        Rotation.from_euler("ZYZ", result.rotation_euler).as_matrix(), result.rotation, atol=1e-9
    )


def test_register_point_cloud_reports_every_stage():
    cloud = _make_room(seed=1, n=6000)
    config = _config(sampling={"bandwidth": 8}, correlation={"translation_voxels": 32})

    with SphRegistration(config) as registration:
        result = registration.register_point_cloud(cloud, cloud)
        stats = StatisticsManager()
        registration.get_statistics(stats)
        registration.get_statistics(NullStatisticsManager())

    assert result.stage is RegistrationStage.DONE
    assert result.transformation.shape == (4, 4)
    assert len(result.registered_cloud) == len(cloud)
    assert result.rotation_uncertainty is not None
    assert result.translation_uncertainty is not None

    for key in (
        "rotation.bandwidth",
        "rotation.n_channels",
        "rotation.confidence",
        "rotation.duration_s",
        "translation.low_pass_lower_bound",
        "translation.low_pass_upper_bound",
        "translation.n_channels",
        "translation.confidence",
        "translation.duration_s",
    ):
        assert key in stats
    assert stats.get_values("rotation.bandwidth") == [8.0]
    assert stats.get_values("rotation.n_channels") == [2.0]


def test_registered_cloud_matches_transform():
    cloud = _make_room(seed=2, n=5000)
    config = _config(sampling={"bandwidth": 8}, correlation={"translation_voxels": 32})

    with SphRegistration(config) as registration:
        result = registration.register_point_cloud(cloud, cloud.translate([1.0, 0.5, 0.0]))

    moved = cloud.translate([1.0, 0.5, 0.0]).transform(result.transformation)
    np.testing.assert_allclose(moved.points, result.registered_cloud.points, atol=1e-9)


def test_no_informative_rotation_channel_keeps_identity():
    cloud = _make_room(seed=3, n=4000)
    bare = PointCloud(points=cloud.points)
    config = _config(
        sampling={"bandwidth": 4},
        registration={"rotation_channels": ["intensity"]},
        correlation={"translation_voxels": 16},
    )

    with SphRegistration(config) as registration:
        result = registration.estimate_rotation(bare, bare)

    assert not result.found_solution_for_rotation()
    np.testing.assert_array_equal(result.rotation, np.eye(3))
    assert result.registered_cloud is bare
    assert result.stage is RegistrationStage.TRANSLATION_ESTIMATION


def test_set_bandwidth():
    with SphRegistration(_config(sampling={"bandwidth": 4})) as registration:
        assert registration.bandwidth == 4
        registration.set_bandwidth(6)
        assert registration.bandwidth == 6
        with pytest.raises(ValueError):
            registration.set_bandwidth(0)


def test_missing_clouds_raise():
    with SphRegistration(_config(sampling={"bandwidth": 4})) as registration:
        with pytest.raises(ValueError):
            registration.register_point_cloud(None, _make_room(n=3000))


def test_create_registration_variants():
    config = _config(sampling={"bandwidth": 4})

    default = create_registration("default", config)
    rotated = create_registration("mock_rotated", config)
    translated = create_registration("mock_translated", config)
    try:
        assert isinstance(default, SphRegistration)
        assert isinstance(rotated, MockRotatedRegistration)
        assert isinstance(translated, MockTranslatedRegistration)
        np.testing.assert_allclose(rotated.mock_rotation, np.eye(3))
    finally:
        for registration in (default, rotated, translated):
            registration.close()

    with pytest.raises(ValueError):
        create_registration("icp", config)


def test_rotation_stage_hands_over_to_translation():
    cloud = _make_room(seed=4, n=4000)
    config = _config(sampling={"bandwidth": 4}, correlation={"translation_voxels": 16})

    with SphRegistration(config) as registration:
        rotated = registration.estimate_rotation(cloud, cloud)
        done = registration.estimate_translation(cloud, rotated)

    assert rotated.stage is RegistrationStage.TRANSLATION_ESTIMATION
    assert done.stage is RegistrationStage.DONE


def test_statistics_describe_only_the_last_registration():
    cloud = _make_room(seed=5, n=4000)
    config = _config(sampling={"bandwidth": 4}, correlation={"translation_voxels": 16})

    with SphRegistration(config) as registration:
        registration.register_point_cloud(cloud, cloud)
        registration.register_point_cloud(cloud, cloud)
        twice = StatisticsManager()
        registration.get_statistics(twice)

        MockTranslatedRegistration(registration, 1.0, 0.0, 0.0).register_point_cloud(cloud, cloud)
        after_translation_only = StatisticsManager()
        registration.get_statistics(after_translation_only)

    assert twice.get_values("rotation.bandwidth") == [4.0]
    assert len(twice.get_values("translation.confidence")) == 1
    assert "translation.confidence" in after_translation_only
    assert not [key for key in after_translation_only.keys() if key.startswith("rotation.")]
