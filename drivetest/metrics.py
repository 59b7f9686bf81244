"""Metric key resolution and domain table helpers."""

from __future__ import annotations

from typing import Dict, Mapping, Optional

from domain.coverage.models import MetricDomain

from .config import DEFAULT_METRIC, METRIC_CATALOG, METRIC_DOMAINS, METRIC_KEY_ALIASES
from .exceptions import InvalidConfigurationError


def resolve_metric_key(key: Optional[str]) -> str:
    """Map a UI metric spelling (``dl-throughput``, ``LTE_BLER``) to its catalog key.

    Missing keys fall back to the default metric; unknown keys are rejected.
    """

    if not key:
        return DEFAULT_METRIC
    lowered = str(key).strip().lower()
    lowered = METRIC_KEY_ALIASES.get(lowered, lowered)
    if lowered not in METRIC_CATALOG:
        raise InvalidConfigurationError(f"Unknown metric '{key}'")
    return lowered


def metric_field(key: Optional[str]) -> str:
    return METRIC_CATALOG[resolve_metric_key(key)]["field"]


def threshold_key_for(key: Optional[str]) -> str:
    """Threshold table key for a metric, e.g. ``dl_tpt`` -> ``dl_thpt``."""

    return METRIC_CATALOG[resolve_metric_key(key)]["threshold_key"]


def build_metric_domains(
    raw: Optional[Mapping[str, Mapping[str, float]]] = None,
) -> Dict[str, MetricDomain]:
    """Turn a ``{metric: {min, max, higher_is_better}}`` table into domain objects."""

    table = METRIC_DOMAINS if raw is None else raw
    domains: Dict[str, MetricDomain] = {}
    for name, bounds in table.items():
        if isinstance(bounds, MetricDomain):
            domains[name] = bounds
            continue
        try:
            domains[name] = MetricDomain(
                min=float(bounds["min"]),
                max=float(bounds["max"]),
                higher_is_better=bool(bounds.get("higher_is_better", True)),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidConfigurationError(f"Invalid domain for metric '{name}': {exc}") from exc
    return domains


__all__ = [
    "build_metric_domains",
    "metric_field",
    "resolve_metric_key",
    "threshold_key_for",
]
