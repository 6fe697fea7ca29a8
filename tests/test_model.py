"""
Tests for point clouds, voxel grids, registration results and the datasource.
"""

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from phase_registration.model import PointCloud, RegistrationResult, RegistrationStage
from phase_registration.preprocessing import InMemoryDatasource, VoxelGrid


class TestPointCloud:
    def test_from_array_with_intensity_column(self):
        array = np.array([[1.0, 2.0, 3.0, 0.5], [4.0, 5.0, 6.0, 0.7]])

        cloud = PointCloud.from_array(array)

        assert len(cloud) == 2
        assert cloud.has_intensities
        np.testing.assert_array_equal(cloud.intensities, [0.5, 0.7])

    def test_arrays_are_copied_and_read_only(self):
        points = np.zeros((3, 3))
        cloud = PointCloud(points=points)
        points[0, 0] = 5.0

        assert cloud.points[0, 0] == 0.0
        with pytest.raises(ValueError):
            cloud.points[0, 0] = 1.0

    def test_malformed_input(self):
        with pytest.raises(ValueError):
            PointCloud(points=np.zeros((4, 2)))
        with pytest.raises(ValueError):
            PointCloud(points=np.zeros((4, 3)), intensities=np.zeros(3))
        with pytest.raises(ValueError):
            PointCloud.from_array(np.zeros((4, 5)))

    def test_transform_returns_new_cloud(self):
        cloud = PointCloud(points=np.array([[1.0, 0.0, 0.0]]), intensities=np.array([0.3]))
        R = Rotation.from_euler("z", 90, degrees=True).as_matrix()

        moved = cloud.rotate(R).translate([0.0, 0.0, 2.0])

        np.testing.assert_allclose(moved.points, [[0.0, 1.0, 2.0]], atol=1e-12)
        np.testing.assert_array_equal(moved.intensities, [0.3])
        np.testing.assert_array_equal(cloud.points, [[1.0, 0.0, 0.0]])

    def test_ranges(self):
        cloud = PointCloud(points=np.array([[3.0, 4.0, 0.0], [0.0, 0.0, 0.0]]))
        np.testing.assert_allclose(cloud.ranges(), [5.0, 0.0])
        np.testing.assert_array_equal(cloud.intensities_or_zeros(), [0.0, 0.0])


class TestRegistrationResult:
    def test_identity(self):
        cloud = PointCloud(points=np.ones((2, 3)))

        result = RegistrationResult.identity(cloud)

        assert result.registered_cloud is cloud
        np.testing.assert_array_equal(result.transformation, np.eye(4))
        assert result.stage is RegistrationStage.ROTATION_ESTIMATION
        assert not result.is_success()

    def test_transformation_composes_rotation_and_translation(self):
        R = Rotation.from_euler("ZYZ", [0.3, 0.2, 0.1]).as_matrix()
        result = RegistrationResult(
            registered_cloud=PointCloud(points=np.empty((0, 3))),
            rotation=R,
            translation=[1.0, 2.0, 3.0],
            found_rotation=True,
            found_translation=True,
        )

        T = result.transformation
        np.testing.assert_allclose(T[:3, :3], R)
        np.testing.assert_allclose(T[:3, 3], [1.0, 2.0, 3.0])
        assert result.is_success()
        with pytest.raises(ValueError):
            result.translation[0] = 0.0


class TestVoxelGrid:
    def test_grid_covers_both_clouds_with_padding(self):
        a = PointCloud(points=np.array([[0.0, 0.0, 0.0], [10.0, 2.0, 1.0]]))
        b = PointCloud(points=np.array([[5.0, 5.0, 5.0]]))

        grid = VoxelGrid.from_clouds(a, b, n_voxels=16, padding=2.0)

        assert grid.side == pytest.approx(20.0)
        assert grid.voxel_size == pytest.approx(1.25)
        np.testing.assert_allclose(grid.origin + grid.side / 2, [5.0, 2.5, 2.5])

    def test_voxelize_channels(self):
        points = np.array([[0.1, 0.1, 0.1], [0.2, 0.2, 0.2], [3.5, 0.5, 0.5]])
        cloud = PointCloud(points=points, intensities=np.array([1.0, 3.0, 5.0]))
        grid = VoxelGrid(origin=np.zeros(3), side=4.0, n_voxels=4)

        channels = grid.voxelize(cloud)

        assert channels["density"].sum() == 3
        assert channels["density"][0, 0, 0] == 2
        assert channels["intensity"][0, 0, 0] == pytest.approx(2.0)
        assert channels["intensity"][3, 0, 0] == pytest.approx(5.0)
        expected_range = np.linalg.norm(points[:2], axis=1).mean()
        assert channels["range"][0, 0, 0] == pytest.approx(expected_range)

    def test_empty_clouds(self):
        empty = PointCloud(points=np.empty((0, 3)))
        grid = VoxelGrid.from_clouds(empty, empty, n_voxels=8)

        channels = grid.voxelize(empty)

        assert all(not np.any(values) for values in channels.values())
        with pytest.raises(ValueError):
            VoxelGrid.from_clouds(empty, empty, n_voxels=1)


class TestInMemoryDatasource:
    def test_streams_in_order_to_every_subscriber(self):
        clouds = [PointCloud(points=np.full((1, 3), float(i))) for i in range(4)]
        ds = InMemoryDatasource(clouds)
        first, second = [], []
        ds.subscribe_to_point_clouds(first.append)
        ds.subscribe_to_point_clouds(second.append)

        assert ds.start_streaming(2) == 2
        assert first == clouds[:2]
        assert second == clouds[:2]

        assert ds.start_streaming() == 4
        assert len(first) == 6
