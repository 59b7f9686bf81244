"""Analysis of user-drawn rectangles, circles and polygons."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from core.config import get_settings
from domain.coverage.models import BoundingBox, GridSummary, LatLng, Point, Threshold, ZoneResult

from .aggregation import clean_values, summarize
from .exceptions import InvalidConfigurationError
from .geometry import (
    bbox_contains,
    circle_ring,
    compute_bbox,
    contains,
    haversine_m,
    meters_to_degrees,
    spherical_polygon_area_m2,
)
from .grid import generate_grid_with_summary


@dataclass(frozen=True)
class RectangleShape:
    bounds: BoundingBox
    shape_type: str = "rectangle"

    def bbox(self) -> BoundingBox:
        return self.bounds

    def contains(self, lat: float, lng: float) -> bool:
        return bbox_contains(self.bounds, lat, lng)

    def ring(self) -> List[LatLng]:
        b = self.bounds
        return [
            LatLng(b.south, b.west),
            LatLng(b.south, b.east),
            LatLng(b.north, b.east),
            LatLng(b.north, b.west),
        ]

    def area_m2(self) -> float:
        return spherical_polygon_area_m2(self.ring())


@dataclass(frozen=True)
class CircleShape:
    center: LatLng
    radius_m: float
    shape_type: str = "circle"

    def __post_init__(self) -> None:
        if not math.isfinite(self.radius_m) or self.radius_m <= 0:
            raise InvalidConfigurationError(f"Circle radius must be positive, got {self.radius_m}")

    def bbox(self) -> BoundingBox:
        lat_deg, lng_deg = meters_to_degrees(self.radius_m, self.center.lat)
        return BoundingBox(
            north=self.center.lat + lat_deg,
            south=self.center.lat - lat_deg,
            east=self.center.lng + lng_deg,
            west=self.center.lng - lng_deg,
        )

    def contains(self, lat: float, lng: float) -> bool:
        return haversine_m(self.center.lat, self.center.lng, lat, lng) <= self.radius_m

    def ring(self) -> List[LatLng]:
        return circle_ring(self.center.lat, self.center.lng, self.radius_m)

    def area_m2(self) -> float:
        return math.pi * self.radius_m ** 2


@dataclass(frozen=True)
class PolygonShape:
    path: Sequence[LatLng]
    shape_type: str = "polygon"

    def __post_init__(self) -> None:
        if len(self.path) < 3:
            raise InvalidConfigurationError("A drawn polygon needs at least three vertices")

    def bbox(self) -> BoundingBox:
        return compute_bbox(self.path)

    def contains(self, lat: float, lng: float) -> bool:
        return contains(lat, lng, self.path, self.bbox())

    def ring(self) -> List[LatLng]:
        return list(self.path)

    def area_m2(self) -> float:
        return spherical_polygon_area_m2(self.path)


Shape = Union[RectangleShape, CircleShape, PolygonShape]


@dataclass
class ShapeAnalysis:
    shape_type: str
    members: List[Point]
    stats: Dict[str, Optional[float]]
    area_m2: float
    cells: List[ZoneResult] = field(default_factory=list)
    grid: Optional[GridSummary] = None

    @property
    def member_count(self) -> int:
        return len(self.members)


def shape_from_geometry(geometry: Mapping[str, Any]) -> Shape:
    """Rebuild a shape from its serialized ``{type, ...}`` form."""

    kind = geometry.get("type")
    if kind == "rectangle":
        rect = geometry["rectangle"]
        return RectangleShape(
            bounds=BoundingBox(
                north=float(rect["ne"]["lat"]),
                south=float(rect["sw"]["lat"]),
                east=float(rect["ne"]["lng"]),
                west=float(rect["sw"]["lng"]),
            )
        )
    if kind == "circle":
        circle = geometry["circle"]
        center = circle["center"]
        return CircleShape(center=LatLng(float(center["lat"]), float(center["lng"])), radius_m=float(circle["radius"]))
    if kind == "polygon":
        return PolygonShape(path=tuple(LatLng(float(p["lat"]), float(p["lng"])) for p in geometry["polygon"]))
    raise InvalidConfigurationError(f"Unsupported shape type '{kind}'")


def analyze_shape(
    shape: Shape,
    points: Sequence[Point],
    metric_key: str,
    thresholds: Optional[Sequence[Threshold]] = None,
    cell_size_meters: Optional[float] = None,
    max_cells: Optional[int] = None,
    method: str = "mean",
) -> ShapeAnalysis:
    """Samples inside ``shape`` with summary stats and, optionally, a pixelated grid.

    Grid cells are aggregated with the mean, like the drawing tool's
    pixelation, unless ``method`` says otherwise. Circles are tiled through a
    64-vertex polygon approximation.
    """

    bbox = shape.bbox()
    members = [
        point
        for point in points
        if bbox_contains(bbox, point.lat, point.lng) and shape.contains(point.lat, point.lng)
    ]
    stats = summarize(clean_values(point.metric(metric_key) for point in members))

    cells: List[ZoneResult] = []
    grid: Optional[GridSummary] = None
    if cell_size_meters is not None:
        ring = shape.ring()
        cells, grid = generate_grid_with_summary(
            [(ring, compute_bbox(ring))],
            cell_size_meters,
            members,
            metric_key,
            list(thresholds or []),
            method,
            max_cells=get_settings().max_grid_cells if max_cells is None else max_cells,
            include_empty=True,
        )

    return ShapeAnalysis(
        shape_type=shape.shape_type,
        members=members,
        stats=stats,
        area_m2=shape.area_m2(),
        cells=cells,
        grid=grid,
    )


__all__ = [
    "CircleShape",
    "PolygonShape",
    "RectangleShape",
    "Shape",
    "ShapeAnalysis",
    "analyze_shape",
    "shape_from_geometry",
]
