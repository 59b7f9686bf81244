"""Normalization of raw drive-test log records and sample filtering."""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from core.config import get_settings
from domain.coverage.models import LatLng, Point, PolygonZone

from .config import (
    CATEGORY_FIELD_ALIASES,
    LAT_FIELD_ALIASES,
    LNG_FIELD_ALIASES,
    METRIC_FIELD_ALIASES,
)
from .geometry import contains
from .thresholds import CategoryColorMap

logger = logging.getLogger(__name__)

_ENVELOPE_KEYS = ("data", "Data", "logs", "networkLogs", "result")


def _coerce_float(value: Any) -> Optional[float]:
    try:
        if value is None or isinstance(value, bool):
            return None
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _first_present(raw: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None and value != "":
            return value
    return None


def _first_number(raw: Mapping[str, Any], keys: Sequence[str]) -> Optional[float]:
    for key in keys:
        number = _coerce_float(raw.get(key))
        if number is not None:
            return number
    return None


def extract_coordinates(raw: Mapping[str, Any]) -> Tuple[Optional[float], Optional[float]]:
    """Return latitude/longitude from heterogeneous log payloads.

    Non-finite or out-of-range coordinates come back as ``None``.
    """

    latitude = _first_number(raw, LAT_FIELD_ALIASES)
    longitude = _first_number(raw, LNG_FIELD_ALIASES)

    if (latitude is None or longitude is None) and isinstance(raw.get("location"), Mapping):
        location = raw["location"]
        if latitude is None:
            latitude = _first_number(location, ("lat", "latitude"))
        if longitude is None:
            longitude = _first_number(location, ("lng", "lon", "longitude"))

    if latitude is not None and not -90.0 <= latitude <= 90.0:
        latitude = None
    if longitude is not None and not -180.0 <= longitude <= 180.0:
        longitude = None
    return latitude, longitude


def normalize_log_entry(
    raw: Mapping[str, Any],
    session_id: Optional[Any] = None,
    provider_map: Optional[CategoryColorMap] = None,
) -> Optional[Point]:
    """Turn one raw log record into a ``Point``.

    Returns ``None`` when the record has no usable position. Metric fields
    that are missing or not numeric are stored as ``None``; zero is a valid
    reading and is kept.
    """

    if not isinstance(raw, Mapping):
        return None
    lat, lng = extract_coordinates(raw)
    if lat is None or lng is None:
        return None

    metrics: Dict[str, Optional[float]] = {
        metric: _first_number(raw, aliases) for metric, aliases in METRIC_FIELD_ALIASES.items()
    }

    categories: Dict[str, str] = {}
    for category, aliases in CATEGORY_FIELD_ALIASES.items():
        value = _first_present(raw, aliases)
        text = "" if value is None else str(value).strip()
        if text:
            categories[category] = text
    if provider_map is not None and categories.get("provider"):
        categories["provider"] = provider_map.canonical(categories["provider"])
    if session_id is not None:
        categories["session_id"] = str(session_id)

    return Point(lat=lat, lng=lng, metrics=metrics, categories=categories)


def normalize_logs(
    records: Iterable[Mapping[str, Any]],
    session_id: Optional[Any] = None,
    provider_map: Optional[CategoryColorMap] = None,
) -> List[Point]:
    points: List[Point] = []
    dropped = 0
    for record in records:
        point = normalize_log_entry(record, session_id=session_id, provider_map=provider_map)
        if point is None:
            dropped += 1
            continue
        points.append(point)
    if dropped:
        logger.debug("Dropped %d log records without a valid position", dropped)
    return points


def extract_logs(payload: Any) -> List[Mapping[str, Any]]:
    """Unwrap the envelope shapes the log API responds with."""

    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping):
        for key in _ENVELOPE_KEYS:
            value = payload.get(key)
            if isinstance(value, list):
                return value
        logger.warning("Unknown log response structure: %s", sorted(payload.keys()))
    return []


class DataFilters(BaseModel):
    """Category allow-lists; an empty list means no restriction."""

    providers: List[str] = Field(default_factory=list)
    bands: List[str] = Field(default_factory=list)
    technologies: List[str] = Field(default_factory=list)

    @property
    def active_count(self) -> int:
        return sum(1 for values in (self.providers, self.bands, self.technologies) if values)


class CoverageFilter(BaseModel):
    """Keep samples whose metric reads below ``threshold`` (coverage holes)."""

    metric: str
    threshold: float
    enabled: bool = True


def apply_filters(
    points: Sequence[Point],
    data_filters: Optional[DataFilters] = None,
    coverage_filters: Optional[Sequence[CoverageFilter]] = None,
    regions: Optional[Sequence[PolygonZone]] = None,
) -> List[Point]:
    """Apply coverage-hole, category and region filters in that order."""

    result = list(points)

    active = [item for item in (coverage_filters or []) if item.enabled]
    if active:
        result = [
            point
            for point in result
            if all(
                point.metric(item.metric) is not None and point.metric(item.metric) < item.threshold
                for item in active
            )
        ]

    if data_filters is not None:
        for field, allowed in (
            ("provider", data_filters.providers),
            ("band", data_filters.bands),
            ("technology", data_filters.technologies),
        ):
            if allowed:
                allowed_set = set(allowed)
                result = [point for point in result if point.category(field) in allowed_set]

    if regions:
        result = [
            point
            for point in result
            if any(contains(point.lat, point.lng, zone.ring, zone.bbox) for zone in regions)
        ]
    return result


def map_center(points: Sequence[Point]) -> LatLng:
    """Mean sample position, or the configured default center."""

    if not points:
        settings = get_settings()
        return LatLng(lat=settings.default_center_lat, lng=settings.default_center_lng)
    return LatLng(
        lat=sum(point.lat for point in points) / len(points),
        lng=sum(point.lng for point in points) / len(points),
    )


__all__ = [
    "CoverageFilter",
    "DataFilters",
    "apply_filters",
    "extract_coordinates",
    "extract_logs",
    "map_center",
    "normalize_log_entry",
    "normalize_logs",
]
