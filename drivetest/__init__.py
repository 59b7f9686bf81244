"""
Drive-test coverage engine.

Turns normalized drive-test samples and project boundaries into colored
quality zones, per-category breakdowns and best-network rankings.
"""

from .composite_scoring import CompositeOptions, calculate_best_network
from .pipeline import ZoneCache, ZoneConfig, compute_best_network, compute_zones

__all__ = [
    "CompositeOptions",
    "ZoneCache",
    "ZoneConfig",
    "calculate_best_network",
    "compute_best_network",
    "compute_zones",
]
