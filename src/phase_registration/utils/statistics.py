"""
Statistics collection for registration diagnostics.

Defines the StatisticsCollector protocol accepted by
``SphRegistration.get_statistics`` and two implementations:
StatisticsManager (keeps every published value) and
NullStatisticsManager (no-op for when diagnostics are disabled).
"""

from __future__ import annotations

import threading
from typing import Dict, List, Protocol


class StatisticsCollector(Protocol):
    """Protocol for telemetry sinks receiving scalar diagnostics."""

    def emplace_value(self, key: str, value: float) -> None:
        """Record one scalar value under ``key``."""
        ...


class StatisticsManager:
    """
    In-memory statistics collector.

    Values are kept per key in publication order. All methods are
    thread-safe so several registration instances may report into the
    same manager.
    """

    def __init__(self, name: str = "registration"):
        self.name = name
        self._values: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def emplace_value(self, key: str, value: float) -> None:
        with self._lock:
            self._values.setdefault(key, []).append(float(value))

    def get_values(self, key: str) -> List[float]:
        with self._lock:
            return list(self._values.get(key, []))

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._values)

    def clear(self) -> None:
        with self._lock:
            self._values.clear()

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._values

    def __repr__(self) -> str:
        return f"StatisticsManager(name={self.name!r}, keys={len(self.keys())})"


class NullStatisticsManager:
    """No-op collector; every value is dropped."""

    def emplace_value(self, key: str, value: float) -> None:
        pass
