"""Framework-independent entry points for zone coloring and provider ranking."""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Literal, Mapping, Optional, Sequence, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.config import get_settings
from domain.coverage.models import AggregationMethod, CompositeResult, Point, PolygonZone, Threshold, ZoneResult

from .boundary import build_polygon_zones
from .composite_scoring import CompositeOptions, calculate_best_network
from .exceptions import InvalidConfigurationError
from .grid import generate_grid
from .metrics import metric_field, resolve_metric_key, threshold_key_for
from .thresholds import CategoryColorMap, parse_threshold_table
from .zones import analyze_polygon_zones, zone_results_from_analyses

logger = logging.getLogger(__name__)

Boundary = Union[str, PolygonZone, Mapping[str, Any]]
T = TypeVar("T")


class ZoneConfig(BaseModel):
    """Controller-selected parameters for one zone computation."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    metric: str = "rsrp"
    zone_mode: Literal["grid", "polygon"] = "grid"
    cell_size_meters: float = Field(default_factory=lambda: get_settings().default_cell_size_meters)
    aggregation: AggregationMethod = AggregationMethod.MEDIAN
    thresholds: Dict[str, List[Threshold]] = Field(default_factory=dict)
    fallback_color: Optional[str] = None
    max_cells: Optional[int] = None
    include_empty: bool = False

    @field_validator("metric")
    @classmethod
    def _known_metric(cls, value: str) -> str:
        return resolve_metric_key(value)

    @field_validator("cell_size_meters")
    @classmethod
    def _positive_cell(cls, value: float) -> float:
        if not value > 0 or value == float("inf"):
            raise ValueError("cell_size_meters must be a positive number of metres")
        return value

    @field_validator("aggregation", mode="before")
    @classmethod
    def _lower_method(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("thresholds", mode="before")
    @classmethod
    def _parse_thresholds(cls, value: Any) -> Any:
        if isinstance(value, Mapping):
            return parse_threshold_table(value)
        return value

    @field_validator("max_cells")
    @classmethod
    def _positive_cap(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 1:
            raise ValueError("max_cells must be at least 1")
        return value


def build_zone_config(config: Union[ZoneConfig, Mapping[str, Any], None] = None) -> ZoneConfig:
    if isinstance(config, ZoneConfig):
        return config
    try:
        return ZoneConfig(**dict(config or {}))
    except ValidationError as exc:
        raise InvalidConfigurationError(str(exc)) from exc


def resolve_boundaries(boundaries: Sequence[Boundary]) -> List[PolygonZone]:
    """Accept WKT strings, ``{id, wkt, name}`` records or ready zones."""

    zones: List[PolygonZone] = []
    records: List[Mapping[str, Any]] = []
    for index, boundary in enumerate(boundaries or []):
        if isinstance(boundary, PolygonZone):
            zones.append(boundary)
        elif isinstance(boundary, str):
            records.append({"id": index, "wkt": boundary})
        elif isinstance(boundary, Mapping):
            record = dict(boundary)
            record.setdefault("id", index)
            records.append(record)
    zones.extend(build_polygon_zones(records))
    return zones


def compute_zones(
    points: Sequence[Point],
    boundaries: Sequence[Boundary],
    config: Union[ZoneConfig, Mapping[str, Any], None] = None,
) -> List[ZoneResult]:
    """Color zones over ``boundaries`` by the configured metric.

    In ``grid`` mode the boundaries are tiled into cells of
    ``cell_size_meters``; in ``polygon`` mode each boundary is a zone.
    """

    cfg = build_zone_config(config)
    zones = resolve_boundaries(boundaries)
    field = metric_field(cfg.metric)
    buckets = cfg.thresholds.get(threshold_key_for(cfg.metric), [])

    if cfg.zone_mode == "polygon":
        analyses = analyze_polygon_zones(
            zones, points, field, buckets, method=cfg.aggregation, fallback_color=cfg.fallback_color
        )
        results = zone_results_from_analyses(analyses)
    else:
        results = generate_grid(
            [(zone.ring, zone.bbox) for zone in zones],
            cfg.cell_size_meters,
            points,
            field,
            buckets,
            cfg.aggregation,
            max_cells=cfg.max_cells,
            fallback_color=cfg.fallback_color,
            include_empty=cfg.include_empty,
        )

    logger.info(
        "Computed %d %s zones for %s from %d points and %d boundaries",
        len(results),
        cfg.zone_mode,
        cfg.metric,
        len(points),
        len(zones),
    )
    return results


def compute_best_network(
    points: Sequence[Point],
    weights: Optional[Mapping[str, float]] = None,
    options: Union[CompositeOptions, Mapping[str, Any], None] = None,
    boundaries: Optional[Sequence[Boundary]] = None,
    color_map: Optional[CategoryColorMap] = None,
) -> CompositeResult:
    """Rank categories per zone.

    Supplied ``boundaries`` replace the rounded lat/lng grid; when none of them
    parse there are no zones to score.
    """

    zones = resolve_boundaries(boundaries) if boundaries is not None else None
    return calculate_best_network(points, weights, options, zones=zones, color_map=color_map)


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Mapping):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return repr(value)


def generate_cache_key(
    points_version: Any,
    boundaries_version: Any,
    metric: str,
    options: Any,
) -> str:
    """Deterministic SHA-256 key over the inputs that decide a result."""

    payload = json.dumps(
        {
            "points": _jsonable(points_version),
            "boundaries": _jsonable(boundaries_version),
            "metric": metric,
            "options": _jsonable(options),
        },
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class ZoneCache:
    """Bounded LRU memo of computed results keyed by input versions.

    Results are identical for identical inputs, so a hit can be returned
    without recomputation.
    """

    def __init__(self, maxsize: Optional[int] = None) -> None:
        size = get_settings().zone_cache_size if maxsize is None else maxsize
        if size < 1:
            raise InvalidConfigurationError("Cache size must be at least 1")
        self.maxsize = size
        self._entries: "OrderedDict[str, Any]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def get_or_compute(
        self,
        points_version: Any,
        boundaries_version: Any,
        metric: str,
        options: Any,
        compute_fn: Callable[[], T],
    ) -> T:
        key = generate_cache_key(points_version, boundaries_version, metric, options)
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                self.hits += 1
                return self._entries[key]
            self.misses += 1

        result = compute_fn()

        with self._lock:
            self._entries[key] = result
            self._entries.move_to_end(key)
            while len(self._entries) > self.maxsize:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted zone cache entry %s", evicted[:12])
        return result

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


__all__ = [
    "ZoneCache",
    "ZoneConfig",
    "build_zone_config",
    "compute_best_network",
    "compute_zones",
    "generate_cache_key",
    "resolve_boundaries",
]
