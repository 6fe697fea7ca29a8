"""
Configuration management for phase-registration.

Provides a typed pydantic model and YAML loader with sensible defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Literal, List, Any, Dict

from pydantic import BaseModel, Field, ValidationError
import yaml


ChannelName = Literal["range", "intensity", "density"]


# -----------------------
# Typed config structures
# -----------------------


class SamplingConfig(BaseModel):
    bandwidth: int = Field(default=16, gt=0, description="Spherical bandwidth B (grid is 2B x 2B)")


class CorrelationConfig(BaseModel):
    low_pass_lower_bound: int = Field(
        default=0,
        description="Lower frequency bin (inclusive) kept by the spatial low-pass correlation",
    )
    low_pass_upper_bound: int = Field(
        default=1000,
        description="Upper frequency bin (exclusive); clamped to the channel's bin count",
    )
    translation_voxels: int = Field(default=64, gt=1, description="Voxels per axis for translation correlation")
    grid_padding: float = Field(
        default=2.0,
        ge=1.0,
        description="Voxel grid side relative to the joint extent of both clouds (>= 2 avoids wrap-around)",
    )


class FusionConfig(BaseModel):
    divider: float = Field(default=4.0, gt=1.0, description="Laplace pyramid low-pass divider ratio")
    n_levels: int = Field(default=2, ge=1, description="Number of pyramid levels used for channel fusion")


class RegistrationConfig(BaseModel):
    rotation_channels: List[ChannelName] = Field(
        default_factory=lambda: ["range", "intensity", "density"]
    )
    translation_channels: List[ChannelName] = Field(
        default_factory=lambda: ["density", "intensity"]
    )
    min_confidence: float = Field(
        default=0.05,
        ge=0.0,
        le=1.0,
        description="Peak confidence below which a stage reports no solution",
    )


class ParallelConfig(BaseModel):
    n_workers: Optional[int] = Field(default=None, description="Worker threads (None = auto-detect: cpu_count - 1)")


class LoggingConfig(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    file: Optional[str] = Field(default=None)


class AppConfig(BaseModel):
    sampling: SamplingConfig = Field(default_factory=SamplingConfig)
    correlation: CorrelationConfig = Field(default_factory=CorrelationConfig)
    fusion: FusionConfig = Field(default_factory=FusionConfig)
    registration: RegistrationConfig = Field(default_factory=RegistrationConfig)
    parallel: ParallelConfig = Field(default_factory=ParallelConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# -----------------------
# Loader
# -----------------------


def _project_root() -> Path:
    """
    Resolve the repository root directory.

    File is at: repo_root/src/phase_registration/utils/config.py
    parents sequence:
      0 -> .../src/phase_registration/utils
      1 -> .../src/phase_registration
      2 -> .../src
      3 -> repo_root
    """
    return Path(__file__).resolve().parents[3]


def load_config(path: Optional[str | Path] = None, *, allow_missing: bool = True) -> AppConfig:
    """
    Load configuration from YAML into a typed AppConfig.

    Search order when path is None:
    1) repo_root/config/default.yaml
    2) if missing and allow_missing=True: return default AppConfig()

    Args:
        path: Explicit YAML file path.
        allow_missing: If True, returns defaults when file missing; otherwise raises.

    Returns:
        AppConfig instance
    """
    cfg_path: Path
    if path is None:
        cfg_path = _project_root() / "config" / "default.yaml"
    else:
        cfg_path = Path(path)

    if not cfg_path.exists():
        if allow_missing:
            return AppConfig()
        raise FileNotFoundError(f"Config file not found: {cfg_path}")

    with cfg_path.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    try:
        return AppConfig.model_validate(raw)
    except ValidationError as e:
        # Re-raise with context to help users fix the YAML
        raise ValueError(f"Invalid configuration in {cfg_path}: {e}")
