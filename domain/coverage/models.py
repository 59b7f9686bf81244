"""Drive-test coverage data structures."""
from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union


class AggregationMethod(Enum):
    """Reducers available for collapsing a cell's samples to one value."""

    MEDIAN = "median"
    MEAN = "mean"
    MIN = "min"
    MAX = "max"
    SUM = "sum"
    COUNT = "count"


class CentralTendency(Enum):
    """Central value used by the composite scorer per metric."""

    MEDIAN = "median"
    PERCENTILE = "percentile"


@dataclass(frozen=True)
class LatLng:
    lat: float
    lng: float


Ring = List[LatLng]


@dataclass(frozen=True)
class Point:
    """A single drive-test sample."""

    lat: float
    lng: float
    metrics: Dict[str, Optional[float]] = field(default_factory=dict)
    categories: Dict[str, str] = field(default_factory=dict)

    def metric(self, key: str) -> Optional[float]:
        value = self.metrics.get(key)
        if value is None or isinstance(value, bool):
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        return number if math.isfinite(number) else None

    def category(self, key: str) -> str:
        return str(self.categories.get(key) or "").strip()


@dataclass(frozen=True)
class BoundingBox:
    north: float
    south: float
    east: float
    west: float

    def __post_init__(self) -> None:
        if self.north < self.south or self.east < self.west:
            raise ValueError(
                f"Invalid bounding box: north={self.north} south={self.south} "
                f"east={self.east} west={self.west}"
            )


@dataclass(frozen=True)
class GridCell:
    id: int
    bounds: BoundingBox

    @property
    def bbox(self) -> BoundingBox:
        return self.bounds


@dataclass(frozen=True)
class PolygonZone:
    id: Any
    ring: Tuple[LatLng, ...]
    bbox: BoundingBox
    name: Optional[str] = None


Zone = Union[GridCell, PolygonZone]


@dataclass
class ZoneResult:
    zone: Zone
    member_count: int
    aggregated_value: Optional[float]
    fill_color: str


@dataclass(frozen=True)
class Threshold:
    min: float
    max: float
    color: str
    label: Optional[str] = None


@dataclass(frozen=True)
class MetricDomain:
    """Normalization bounds and polarity for a scored metric."""

    min: float
    max: float
    higher_is_better: bool = True

    def __post_init__(self) -> None:
        if not self.max > self.min:
            raise ValueError(f"Metric domain max ({self.max}) must exceed min ({self.min})")


@dataclass
class CategoryStat:
    name: str
    count: int
    percentage: float
    avg_value: Optional[float]
    median_value: Optional[float]
    min_value: Optional[float]
    max_value: Optional[float]


@dataclass
class CategoryStatsResult:
    stats: List[CategoryStat]
    dominant: CategoryStat
    total: int


@dataclass
class CompositeScore:
    category: str
    normalized_metrics: Dict[str, float]
    score: float
    sample_count: int
    central_values: Dict[str, float] = field(default_factory=dict)


@dataclass
class ZoneWinner:
    zone_key: Any
    best_category: str
    best_value: float
    score: float
    sample_count: int
    color: str


@dataclass
class WinStats:
    zones_won: int
    percentage: float
    color: str
    avg_score: float


@dataclass
class CompositeResult:
    zone_results: List[ZoneWinner]
    win_stats: Dict[str, WinStats]
    zone_scores: Dict[Any, List[CompositeScore]] = field(default_factory=dict)
    neutral_zones: List[Any] = field(default_factory=list)


@dataclass
class GridSummary:
    cells: int
    cells_with_data: int
    cell_size_meters: float
    total_grid_area_m2: float
    capped: bool = False


@dataclass
class ZoneAnalysis:
    zone: PolygonZone
    member_count: int
    aggregated_value: Optional[float]
    fill_color: str
    category_stats: Dict[str, Optional[CategoryStatsResult]] = field(default_factory=dict)


class SpatialGrid:
    """Uniform hash of points keyed by a fixed lat/lng bucket size."""

    def __init__(self, cell_lat_deg: float, cell_lng_deg: float) -> None:
        if cell_lat_deg <= 0 or cell_lng_deg <= 0:
            raise ValueError("SpatialGrid bucket sizes must be positive")
        self.cell_lat_deg = cell_lat_deg
        self.cell_lng_deg = cell_lng_deg
        self._cells: Dict[Tuple[int, int], List[Point]] = defaultdict(list)
        self._size = 0

    def __len__(self) -> int:
        return self._size

    def _index_lat(self, lat: float) -> int:
        return int(math.floor((lat + 90.0) / self.cell_lat_deg))

    def _index_lng(self, lng: float) -> int:
        return int(math.floor((lng + 180.0) / self.cell_lng_deg))

    def add_point(self, point: Point) -> None:
        key = (self._index_lat(point.lat), self._index_lng(point.lng))
        self._cells[key].append(point)
        self._size += 1

    def extend(self, points: Iterable[Point]) -> None:
        for point in points:
            self.add_point(point)

    def query_bbox(self, bbox: BoundingBox) -> Iterable[Point]:
        """Yield every indexed point in buckets touched by ``bbox``.

        Callers still need an exact bounds test; buckets are coarser than
        the box edges.
        """

        lat_start = self._index_lat(bbox.south)
        lat_end = self._index_lat(bbox.north)
        lng_start = self._index_lng(bbox.west)
        lng_end = self._index_lng(bbox.east)
        for lat_idx in range(lat_start, lat_end + 1):
            for lng_idx in range(lng_start, lng_end + 1):
                for point in self._cells.get((lat_idx, lng_idx), ()):
                    yield point


__all__ = [
    "AggregationMethod",
    "BoundingBox",
    "CategoryStat",
    "CategoryStatsResult",
    "CentralTendency",
    "CompositeResult",
    "CompositeScore",
    "GridCell",
    "GridSummary",
    "LatLng",
    "MetricDomain",
    "Point",
    "PolygonZone",
    "Ring",
    "SpatialGrid",
    "Threshold",
    "WinStats",
    "Zone",
    "ZoneAnalysis",
    "ZoneResult",
    "ZoneWinner",
]
