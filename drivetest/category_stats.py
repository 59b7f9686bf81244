"""Per-category breakdowns of drive-test samples."""

from __future__ import annotations

import math
import re
from typing import Dict, List, Optional, Sequence

import pandas as pd

from domain.coverage.models import CategoryStat, CategoryStatsResult, Point

UNKNOWN_CATEGORY = "Unknown"


def _category_label(point: Point, field: str) -> str:
    return point.category(field) or UNKNOWN_CATEGORY


def _optional(value: float) -> Optional[float]:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return None
    return float(value)


def calculate_category_stats(
    points: Sequence[Point],
    category_field: str,
    metric_field: str,
) -> Optional[CategoryStatsResult]:
    """Group ``points`` by ``category_field`` and summarise ``metric_field``.

    Groups are ordered by sample count, most frequent first; equal counts
    keep the order in which the categories were first seen. ``dominant`` is
    the most frequent group, not the best performing one. Returns ``None``
    when there are no points.
    """

    if not points:
        return None

    frame = pd.DataFrame(
        {
            "name": [_category_label(point, category_field) for point in points],
            "value": [point.metric(metric_field) for point in points],
        }
    )
    frame["value"] = pd.to_numeric(frame["value"], errors="coerce")
    grouped = frame.groupby("name", sort=False)["value"].agg(["size", "mean", "median", "min", "max"])

    total = len(points)
    stats: List[CategoryStat] = []
    for name, row in grouped.iterrows():
        size = int(row["size"])
        stats.append(
            CategoryStat(
                name=str(name),
                count=size,
                percentage=round(size / total * 100.0, 1),
                avg_value=_optional(row["mean"]),
                median_value=_optional(row["median"]),
                min_value=_optional(row["min"]),
                max_value=_optional(row["max"]),
            )
        )

    stats = sorted(stats, key=lambda stat: -stat.count)
    return CategoryStatsResult(stats=stats, dominant=stats[0], total=total)


def _band_sort_key(band: str) -> int:
    match = re.search(r"\d+", band)
    return int(match.group()) if match else 0


def available_filter_options(points: Sequence[Point]) -> Dict[str, List[str]]:
    """Distinct providers, bands and technologies present in ``points``."""

    providers = set()
    bands = set()
    technologies = set()
    for point in points:
        provider = point.category("provider")
        band = point.category("band")
        technology = point.category("technology")
        if provider:
            providers.add(provider)
        if band:
            bands.add(band)
        if technology:
            technologies.add(technology)

    return {
        "providers": sorted(providers),
        "bands": sorted(sorted(bands), key=_band_sort_key),
        "technologies": sorted(technologies),
    }


__all__ = ["UNKNOWN_CATEGORY", "available_filter_options", "calculate_category_stats"]
