"""
Sampled spherical functions.

A SphericalFunction holds one value per grid cell for every channel the
sampler accumulates. Channel arrays are flat and in grid order, i.e. the
row-major flattening of a (2B, 2B) grid indexed by (azimuth, elevation).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, Tuple

import numpy as np

CHANNELS: Tuple[str, ...] = ("range", "intensity", "density")


@dataclass(frozen=True)
class FunctionValue:
    """Accumulated sample on one grid cell."""
    index: int
    range: float
    intensity: float
    density: int


@dataclass(frozen=True)
class SphericalFunction:
    bandwidth: int
    ranges: np.ndarray
    intensities: np.ndarray
    densities: np.ndarray

    def __post_init__(self) -> None:
        n_cells = 4 * self.bandwidth * self.bandwidth
        for name in ("ranges", "intensities", "densities"):
            values = getattr(self, name)
            if values.shape != (n_cells,):
                raise ValueError(f"{name} must have shape ({n_cells},), got {values.shape}")
            values.setflags(write=False)

    @classmethod
    def zeros(cls, bandwidth: int) -> "SphericalFunction":
        n_cells = 4 * bandwidth * bandwidth
        return cls(
            bandwidth=bandwidth,
            ranges=np.zeros(n_cells),
            intensities=np.zeros(n_cells),
            densities=np.zeros(n_cells, dtype=np.int64),
        )

    def channel(self, name: str) -> np.ndarray:
        """Flat channel values in grid order."""
        if name == "range":
            return self.ranges
        if name == "intensity":
            return self.intensities
        if name == "density":
            return self.densities.astype(np.float64)
        raise ValueError(f"Unknown channel '{name}', expected one of {CHANNELS}")

    def as_grid(self, name: str) -> np.ndarray:
        """Channel values reshaped to (azimuth, elevation)."""
        n = 2 * self.bandwidth
        return self.channel(name).reshape(n, n)

    def channels(self) -> Dict[str, np.ndarray]:
        return {name: self.channel(name) for name in CHANNELS}

    def __len__(self) -> int:
        return len(self.ranges)

    def __getitem__(self, index: int) -> FunctionValue:
        return FunctionValue(
            index=int(index),
            range=float(self.ranges[index]),
            intensity=float(self.intensities[index]),
            density=int(self.densities[index]),
        )

    def __iter__(self) -> Iterator[FunctionValue]:
        for i in range(len(self)):
            yield self[i]
