"""Area breakdown for boundary polygons."""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Union

from core.config import get_settings
from domain.coverage.models import (
    AggregationMethod,
    BoundingBox,
    Point,
    PolygonZone,
    Threshold,
    ZoneAnalysis,
    ZoneResult,
)

from .aggregation import aggregate, clean_values, parse_method
from .category_stats import calculate_category_stats
from .config import BAND_COLORS, PROVIDER_ALIASES, PROVIDER_COLORS, TECHNOLOGY_COLORS
from .geometry import contains, overlaps
from .thresholds import CategoryColorMap, resolve_color

logger = logging.getLogger(__name__)

BREAKDOWN_FIELDS = ("provider", "band", "technology")


def default_category_colors() -> Dict[str, CategoryColorMap]:
    """Fixed-color maps per categorical field; unseen labels use the fallback."""

    return {
        "provider": CategoryColorMap(colors=PROVIDER_COLORS, aliases=PROVIDER_ALIASES, palette=[]),
        "band": CategoryColorMap(colors=BAND_COLORS, palette=[]),
        "technology": CategoryColorMap(colors=TECHNOLOGY_COLORS, palette=[]),
    }


def points_in_zone(zone: PolygonZone, points: Sequence[Point]) -> List[Point]:
    return [point for point in points if contains(point.lat, point.lng, zone.ring, zone.bbox)]


def analyze_polygon_zones(
    zones: Sequence[PolygonZone],
    points: Sequence[Point],
    metric_key: str,
    thresholds: Sequence[Threshold],
    color_by: Optional[str] = None,
    category_colors: Optional[Mapping[str, CategoryColorMap]] = None,
    method: Union[str, AggregationMethod, None] = AggregationMethod.MEDIAN,
    fallback_color: Optional[str] = None,
) -> List[ZoneAnalysis]:
    """Color each polygon by the aggregated ``metric_key`` or its dominant category.

    When ``color_by`` names one of the breakdown fields the polygon takes the
    color of that field's most frequent label; otherwise the aggregated
    value (median by default) is resolved against ``thresholds``.
    """

    method = parse_method(method)
    settings = get_settings()
    fallback = fallback_color or settings.fallback_color
    palettes = dict(category_colors or default_category_colors())
    if color_by is not None and color_by not in BREAKDOWN_FIELDS:
        logger.debug("Ignoring unsupported color_by field %s", color_by)
        color_by = None

    analyses: List[ZoneAnalysis] = []
    for zone in zones:
        members = points_in_zone(zone, points)
        if not members:
            analyses.append(
                ZoneAnalysis(zone=zone, member_count=0, aggregated_value=None, fill_color=settings.no_data_color)
            )
            continue

        stats = {field: calculate_category_stats(members, field, metric_key) for field in BREAKDOWN_FIELDS}
        values = clean_values(point.metric(metric_key) for point in members)
        value = aggregate(values, method) if values else None

        if color_by is not None:
            dominant = stats[color_by].dominant if stats[color_by] else None
            palette = palettes.get(color_by)
            if dominant is None:
                fill_color = settings.no_data_color
            elif palette is None:
                fill_color = fallback
            else:
                fill_color = palette.known_color(dominant.name)
        elif value is None:
            fill_color = settings.no_data_color
        else:
            fill_color = resolve_color(value, thresholds, fallback)

        analyses.append(
            ZoneAnalysis(
                zone=zone,
                member_count=len(members),
                aggregated_value=value,
                fill_color=fill_color,
                category_stats=stats,
            )
        )
    return analyses


def zone_results_from_analyses(analyses: Sequence[ZoneAnalysis]) -> List[ZoneResult]:
    return [
        ZoneResult(
            zone=analysis.zone,
            member_count=analysis.member_count,
            aggregated_value=analysis.aggregated_value,
            fill_color=analysis.fill_color,
        )
        for analysis in analyses
    ]


def visible_zones(results: Sequence[ZoneResult], viewport: Optional[BoundingBox]) -> List[ZoneResult]:
    """Results whose zone box overlaps ``viewport``; all of them without one."""

    if viewport is None:
        return list(results)
    return [result for result in results if overlaps(result.zone.bbox, viewport)]


__all__ = [
    "BREAKDOWN_FIELDS",
    "analyze_polygon_zones",
    "default_category_colors",
    "points_in_zone",
    "visible_zones",
    "zone_results_from_analyses",
]
