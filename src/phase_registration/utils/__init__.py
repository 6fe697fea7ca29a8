"""
Utility Functions Module

This module provides common utility functions used across the registration project.
- Configuration loading
- Logging setup
- Statistics collection for diagnostics
- Point cloud distance metrics
"""

from .logging import setup_logger, configure_logging
from .config import AppConfig, load_config
from .statistics import StatisticsCollector, StatisticsManager, NullStatisticsManager
from .metrics import hausdorff_distance, nn_rmse, rotation_angle_deg

__all__ = [
    "setup_logger",
    "configure_logging",
    "AppConfig",
    "load_config",
    "StatisticsCollector",
    "StatisticsManager",
    "NullStatisticsManager",
    "hausdorff_distance",
    "nn_rmse",
    "rotation_angle_deg",
]
