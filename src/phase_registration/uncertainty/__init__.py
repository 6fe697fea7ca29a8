"""
Uncertainty Module

Confidence scoring of correlation-based estimates.
"""

from .phase_correlation_eval import PhaseCorrelationEval, UncertaintyEstimate

__all__ = [
    "PhaseCorrelationEval",
    "UncertaintyEstimate",
]
