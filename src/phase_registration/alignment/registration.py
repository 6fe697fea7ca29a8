"""
Spherical Phase Correlation Registration

Registers a current point cloud onto a previous one in two stages:

1. Rotation estimation: both clouds are sampled on the spherical grid,
   every configured channel is correlated over SO(3) on the worker pool,
   the channel spectra are fused with the Laplace pyramid and the fused
   surface's peak gives the rotation.
2. Translation estimation: the previous cloud and the rotated current
   cloud are voxelized on a shared grid and the same fan-out / fuse /
   align / evaluate sequence runs in the spatial domain.

A stage whose correlation peak is not distinguishable (confidence below
``registration.min_confidence``) reports no solution and keeps the identity
for its component; it never raises.
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Callable, Dict, Hashable, List, Optional, Protocol, Sequence

import numpy as np

from ..acceleration.parallel_executor import ChannelParallelExecutor
from ..correlation.spatial_correlation import SpatialCorrelationLowPass
from ..correlation.spherical_correlation import SphericalCorrelation
from ..correlation.workers import (
    ChannelTask,
    correlate_spatial_channel,
    correlate_spherical_channel,
)
from ..fusion.laplace_pyramid import LaplacePyramid
from ..model.point_cloud import PointCloud
from ..model.registration_result import RegistrationResult, RegistrationStage
from ..preprocessing.spherical_sampler import SphericalSampler
from ..preprocessing.voxel_grid import VoxelGrid
from ..uncertainty.phase_correlation_eval import PhaseCorrelationEval
from ..utils.config import AppConfig, load_config
from ..utils.logging import configure_logging
from ..utils.statistics import StatisticsCollector
from .phase_aligner import PhaseAligner

logger = logging.getLogger(__name__)


class Registration(Protocol):
    """Anything that can register a current cloud onto a previous one."""

    def register_point_cloud(
        self, cloud_prev: PointCloud, cloud_cur: PointCloud
    ) -> RegistrationResult:
        ...


def _normalize_channel(values: np.ndarray) -> Optional[np.ndarray]:
    """Zero-mean, unit-std copy of a channel; None if the channel is flat."""
    values = np.asarray(values, dtype=np.float64)
    std = float(values.std())
    if not np.isfinite(std) or std <= 1e-12:
        return None
    return (values - values.mean()) / std


def _build_tasks(
    channels: Sequence[str],
    prev_channel: Callable[[str], np.ndarray],
    cur_channel: Callable[[str], np.ndarray],
) -> List[ChannelTask]:
    tasks = []
    for name in channels:
        f = _normalize_channel(prev_channel(name))
        g = _normalize_channel(cur_channel(name))
        if f is None or g is None:
            logger.debug("Skipping flat channel '%s'.", name)
            continue
        tasks.append(ChannelTask(name=name, f=f, g=g))
    return tasks


class SphRegistration:
    """
    Production registration pipeline.

    One instance handles one registration call at a time; the per-channel
    work inside a call runs on the instance's bounded worker pool.
    """

    def __init__(self, config: Optional[AppConfig] = None):
        """
        Args:
            config: Application configuration. If None, loads
                config/default.yaml (or the built-in defaults).
        """
        self.config = config if config is not None else load_config()
        configure_logging(self.config.logging)

        self.sampler = SphericalSampler(self.config.sampling.bandwidth)
        self.aligner = PhaseAligner()
        self.evaluator = PhaseCorrelationEval()
        self.pyramid = LaplacePyramid(self.config.fusion.divider)
        self.executor = ChannelParallelExecutor(n_workers=self.config.parallel.n_workers)

        # Engines used for the inverse transform after fan-in
        self._inverse_engines: Dict[Hashable, object] = {}
        self._stats: Dict[str, float] = {}

    def __enter__(self) -> "SphRegistration":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self.executor.close()

    @property
    def bandwidth(self) -> int:
        return self.sampler.get_initialized_bandwidth()

    def set_bandwidth(self, bandwidth: int) -> None:
        self.sampler.initialize(bandwidth)

    # ------------------------ Pipeline ------------------------
    def register_point_cloud(
        self, cloud_prev: PointCloud, cloud_cur: PointCloud
    ) -> RegistrationResult:
        """
        Estimate the rigid transform mapping ``cloud_cur`` onto ``cloud_prev``.

        Args:
            cloud_prev: Previous (reference) cloud
            cloud_cur: Current cloud

        Returns:
            RegistrationResult in stage DONE
        """
        if cloud_prev is None or cloud_cur is None:
            raise ValueError("register_point_cloud requires two point clouds")
        logger.info(
            "Registering point clouds (previous=%d points, current=%d points).",
            len(cloud_prev), len(cloud_cur),
        )
        result = self.estimate_rotation(cloud_prev, cloud_cur)
        return self._translate(cloud_prev, result)

    def estimate_rotation(
        self, cloud_prev: PointCloud, cloud_cur: PointCloud
    ) -> RegistrationResult:
        """
        Rotation stage: spherical sampling, SO(3) correlation per channel,
        fusion, peak extraction and evaluation.

        Starts a new registration: statistics of earlier calls are dropped.

        Returns:
            RegistrationResult in stage TRANSLATION_ESTIMATION holding the
            rotation and the rotated current cloud
        """
        if cloud_prev is None or cloud_cur is None:
            raise ValueError("estimate_rotation requires two point clouds")
        self._stats = {}
        start = time.time()
        bandwidth = self.bandwidth
        result = RegistrationResult.identity(cloud_cur)

        f_values = self.sampler.sample_uniformly(cloud_prev)
        h_values = self.sampler.sample_uniformly(cloud_cur)
        tasks = _build_tasks(
            self.config.registration.rotation_channels, f_values.channel, h_values.channel
        )
        self._stats["rotation.bandwidth"] = bandwidth
        self._stats["rotation.n_channels"] = len(tasks)
        if not tasks:
            logger.warning("No informative channel for rotation estimation; keeping identity rotation.")
            self._stats["rotation.confidence"] = 0.0
            self._stats["rotation.duration_s"] = time.time() - start
            return replace(result, stage=RegistrationStage.TRANSLATION_ESTIMATION)

        spectra = self.executor.map_tasks(
            tasks, correlate_spherical_channel, {"bandwidth": bandwidth}
        )
        fused = self._fuse(spectra)
        engine = self._inverse_engine(("spherical", bandwidth), lambda: SphericalCorrelation(bandwidth))
        surface = engine.inverse_transform(fused)

        rotation, euler, peak = self.aligner.align_rotation(surface, bandwidth)
        uncertainty = self.evaluator.evaluate(
            surface, peak, resolution=np.pi / bandwidth, periodic=(False, True, True)
        )
        found = uncertainty.confidence >= self.config.registration.min_confidence
        if not found:
            logger.warning(
                "Rotation peak not distinguishable (confidence %.3f); keeping identity rotation.",
                uncertainty.confidence,
            )
            rotation, euler = np.eye(3), np.zeros(3)

        self._stats["rotation.confidence"] = uncertainty.confidence
        self._stats["rotation.duration_s"] = time.time() - start
        logger.info(
            "Rotation estimate (ZYZ, deg): %s, confidence %.3f, %d channels, %.2f s.",
            np.round(np.rad2deg(euler), 2), uncertainty.confidence, len(tasks),
            self._stats["rotation.duration_s"],
        )
        return replace(
            result,
            registered_cloud=cloud_cur.rotate(rotation),
            rotation=rotation,
            rotation_euler=euler,
            rotation_uncertainty=uncertainty,
            found_rotation=found,
            stage=RegistrationStage.TRANSLATION_ESTIMATION,
        )

    def estimate_translation(
        self, cloud_prev: PointCloud, result: RegistrationResult
    ) -> RegistrationResult:
        """
        Translation stage on the (already rotated) registered cloud of ``result``.

        Run on its own, this starts a new registration: statistics of earlier
        calls are dropped.

        Returns:
            Copy of ``result`` with translation, translated cloud and stage DONE
        """
        if cloud_prev is None or result is None:
            raise ValueError("estimate_translation requires a point cloud and a result")
        self._stats = {}
        return self._translate(cloud_prev, result)

    def _translate(self, cloud_prev: PointCloud, result: RegistrationResult) -> RegistrationResult:
        logger.debug("Entering stage %s.", RegistrationStage.TRANSLATION_ESTIMATION.name)
        start = time.time()
        corr_cfg = self.config.correlation
        cloud_rot = result.registered_cloud

        grid = VoxelGrid.from_clouds(
            cloud_prev, cloud_rot, corr_cfg.translation_voxels, corr_cfg.grid_padding
        )
        f_voxels = grid.voxelize(cloud_prev)
        g_voxels = grid.voxelize(cloud_rot)
        tasks = _build_tasks(
            self.config.registration.translation_channels, f_voxels.__getitem__, g_voxels.__getitem__
        )

        engine = self._inverse_engine(
            ("spatial", grid.shape, corr_cfg.low_pass_lower_bound, corr_cfg.low_pass_upper_bound),
            lambda: SpatialCorrelationLowPass(
                grid.shape, corr_cfg.low_pass_lower_bound, corr_cfg.low_pass_upper_bound
            ),
        )
        self._stats["translation.n_voxels"] = grid.n_voxels
        self._stats["translation.voxel_size"] = grid.voxel_size
        self._stats["translation.low_pass_lower_bound"] = engine.low_pass_lower_bound
        self._stats["translation.low_pass_upper_bound"] = engine.low_pass_upper_bound
        self._stats["translation.n_channels"] = len(tasks)
        if not tasks:
            logger.warning("No informative channel for translation estimation; keeping zero translation.")
            self._stats["translation.confidence"] = 0.0
            self._stats["translation.duration_s"] = time.time() - start
            return replace(result, found_translation=False, stage=RegistrationStage.DONE)

        spectra = self.executor.map_tasks(
            tasks,
            correlate_spatial_channel,
            {
                "shape": grid.shape,
                "lower_bound": corr_cfg.low_pass_lower_bound,
                "upper_bound": corr_cfg.low_pass_upper_bound,
            },
        )
        fused = self._fuse(spectra)
        surface = engine.inverse_transform(fused)

        translation, peak = self.aligner.align_translation(surface, grid.voxel_size)
        uncertainty = self.evaluator.evaluate(surface, peak, resolution=grid.voxel_size)
        found = uncertainty.confidence >= self.config.registration.min_confidence
        if not found:
            logger.warning(
                "Translation peak not distinguishable (confidence %.3f); keeping zero translation.",
                uncertainty.confidence,
            )
            translation = np.zeros(3)

        self._stats["translation.confidence"] = uncertainty.confidence
        self._stats["translation.duration_s"] = time.time() - start
        logger.info(
            "Translation estimate: %s, confidence %.3f, voxel %.3f, %.2f s.",
            np.round(translation, 3), uncertainty.confidence, grid.voxel_size,
            self._stats["translation.duration_s"],
        )
        return replace(
            result,
            registered_cloud=cloud_rot.translate(translation),
            translation=translation,
            translation_uncertainty=uncertainty,
            found_translation=found,
            stage=RegistrationStage.DONE,
        )

    # ------------------------ Helpers ------------------------
    def _fuse(self, spectra: List[np.ndarray]) -> np.ndarray:
        n_coeffs = len(spectra[0])
        return self.pyramid.fuse_channels(spectra, n_coeffs, self.config.fusion.n_levels)

    def _inverse_engine(self, key: Hashable, factory: Callable[[], object]):
        engine = self._inverse_engines.get(key)
        if engine is None:
            engine = factory()
            self._inverse_engines[key] = engine
        return engine

    def get_statistics(self, manager: StatisticsCollector) -> None:
        """Publish the diagnostics of the last registration to ``manager``."""
        for key, value in self._stats.items():
            manager.emplace_value(key, float(value))
