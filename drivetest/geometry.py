"""Bounding box, containment and spherical helpers.

Everything here is stateless and works on plain ``(lat, lng)`` floats so the
grid generator, zone analysis and shape tools can share one implementation.
"""

from __future__ import annotations

import math
from typing import Iterable, List, Optional, Sequence, Tuple

from domain.coverage.models import BoundingBox, LatLng

from .config import EARTH_RADIUS_M, METERS_PER_DEGREE_LAT

Region = Tuple[Sequence[LatLng], Optional[BoundingBox]]


def compute_bbox(points: Iterable[LatLng]) -> Optional[BoundingBox]:
    """Return the bounding box of ``points`` or ``None`` when empty."""

    north = south = east = west = None
    for point in points:
        if north is None:
            north = south = point.lat
            east = west = point.lng
            continue
        north = max(north, point.lat)
        south = min(south, point.lat)
        east = max(east, point.lng)
        west = min(west, point.lng)
    if north is None:
        return None
    return BoundingBox(north=north, south=south, east=east, west=west)


def union_bbox(boxes: Iterable[Optional[BoundingBox]]) -> Optional[BoundingBox]:
    merged: Optional[BoundingBox] = None
    for box in boxes:
        if box is None:
            continue
        if merged is None:
            merged = box
            continue
        merged = BoundingBox(
            north=max(merged.north, box.north),
            south=min(merged.south, box.south),
            east=max(merged.east, box.east),
            west=min(merged.west, box.west),
        )
    return merged


def overlaps(a: BoundingBox, b: BoundingBox) -> bool:
    return not (
        a.west > b.east
        or a.east < b.west
        or a.south > b.north
        or a.north < b.south
    )


def bbox_contains(bbox: BoundingBox, lat: float, lng: float) -> bool:
    return bbox.south <= lat <= bbox.north and bbox.west <= lng <= bbox.east


def bbox_center(bbox: BoundingBox) -> LatLng:
    return LatLng(lat=(bbox.north + bbox.south) / 2.0, lng=(bbox.east + bbox.west) / 2.0)


def expand_bbox(bbox: BoundingBox, lat_margin: float, lng_margin: float) -> BoundingBox:
    return BoundingBox(
        north=bbox.north + lat_margin,
        south=bbox.south - lat_margin,
        east=bbox.east + lng_margin,
        west=bbox.west - lng_margin,
    )


def contains(
    lat: float,
    lng: float,
    ring: Sequence[LatLng],
    bbox: Optional[BoundingBox] = None,
) -> bool:
    """Even-odd ray casting test of ``(lat, lng)`` against ``ring``.

    The ring does not need to be closed. Points lying exactly on an edge or
    vertex may report either result; ray casting has no stable tie-break and
    none is promised here.
    """

    if len(ring) < 3:
        return False
    if bbox is not None and not bbox_contains(bbox, lat, lng):
        return False

    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        yi, xi = ring[i].lat, ring[i].lng
        yj, xj = ring[j].lat, ring[j].lng
        if (yi > lat) != (yj > lat):
            x_cross = (xj - xi) * (lat - yi) / (yj - yi) + xi
            if lng < x_cross:
                inside = not inside
        j = i
    return inside


def contains_any(lat: float, lng: float, regions: Iterable[Region]) -> bool:
    for ring, bbox in regions:
        if contains(lat, lng, ring, bbox):
            return True
    return False


def meters_to_degrees(meters: float, latitude: float) -> Tuple[float, float]:
    """Return ``(lat_degrees, lng_degrees)`` spanned by ``meters`` at ``latitude``.

    Longitude degrees shrink with latitude, so the longitude step is widened
    by ``1 / cos(latitude)``.
    """

    lat_deg = meters / METERS_PER_DEGREE_LAT
    meters_per_lng_deg = METERS_PER_DEGREE_LAT * math.cos(math.radians(latitude))
    if meters_per_lng_deg <= 0:
        meters_per_lng_deg = METERS_PER_DEGREE_LAT
    return lat_deg, meters / meters_per_lng_deg


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Return the great-circle distance in metres between two points."""

    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(min(1.0, a)))


def spherical_polygon_area_m2(ring: Sequence[LatLng]) -> float:
    """Approximate area of a lat/lng ring on the sphere, in square metres."""

    if len(ring) < 3:
        return 0.0
    total = 0.0
    count = len(ring)
    for idx in range(count):
        p1 = ring[idx]
        p2 = ring[(idx + 1) % count]
        total += math.radians(p2.lng - p1.lng) * (
            2 + math.sin(math.radians(p1.lat)) + math.sin(math.radians(p2.lat))
        )
    return abs(total * EARTH_RADIUS_M * EARTH_RADIUS_M / 2.0)


def circle_ring(lat: float, lng: float, radius_m: float, vertices: int = 64) -> List[LatLng]:
    """Polygonal approximation of a circle, used when a circle must be tiled."""

    lat_deg, lng_deg = meters_to_degrees(radius_m, lat)
    ring: List[LatLng] = []
    for idx in range(vertices):
        angle = 2 * math.pi * idx / vertices
        ring.append(LatLng(lat=lat + lat_deg * math.sin(angle), lng=lng + lng_deg * math.cos(angle)))
    return ring


__all__ = [
    "Region",
    "bbox_center",
    "bbox_contains",
    "circle_ring",
    "compute_bbox",
    "contains",
    "contains_any",
    "expand_bbox",
    "haversine_m",
    "meters_to_degrees",
    "overlaps",
    "spherical_polygon_area_m2",
    "union_bbox",
]
