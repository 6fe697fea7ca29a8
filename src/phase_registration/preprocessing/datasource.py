"""
Point cloud datasource interface.

File ingestion lives outside this package; registration code only relies
on the subscribe/stream contract implemented here for in-memory clouds.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional

from ..model.point_cloud import PointCloud

logger = logging.getLogger(__name__)

PointCloudCallback = Callable[[PointCloud], None]


class InMemoryDatasource:
    """Streams a fixed sequence of point clouds to subscribers."""

    def __init__(self, clouds: Iterable[PointCloud]):
        self._clouds: List[PointCloud] = list(clouds)
        self._callbacks: List[PointCloudCallback] = []

    def __len__(self) -> int:
        return len(self._clouds)

    def subscribe_to_point_clouds(self, callback: PointCloudCallback) -> None:
        self._callbacks.append(callback)

    def start_streaming(self, n_clouds: Optional[int] = None) -> int:
        """
        Deliver clouds in order to every subscriber.

        Args:
            n_clouds: Maximum number of clouds to stream (None = all)

        Returns:
            Number of clouds streamed
        """
        if not self._callbacks:
            logger.warning("Streaming without subscribers")
        clouds = self._clouds if n_clouds is None else self._clouds[:n_clouds]
        for cloud in clouds:
            for callback in self._callbacks:
                callback(cloud)
        return len(clouds)
