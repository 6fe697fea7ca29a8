"""
Acceleration Module

Bounded parallel execution of independent correlation tasks.
"""

from .parallel_executor import ChannelParallelExecutor

__all__ = [
    "ChannelParallelExecutor",
]
