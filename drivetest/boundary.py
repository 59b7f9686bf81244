"""Well-known-text boundary parsing.

Project boundaries arrive as ``POLYGON((lng lat, ...))`` or
``MULTIPOLYGON(((lng lat, ...)), ...)`` strings. Parsing never raises: text
that cannot be understood yields an empty list and the caller carries on
without that boundary.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Iterable, List, Mapping, Optional

from domain.coverage.models import LatLng, PolygonZone, Ring

from .geometry import compute_bbox

logger = logging.getLogger(__name__)

_WKT_PATTERN = re.compile(r"^\s*(MULTIPOLYGON|POLYGON)\s*(\(.*\))\s*$", re.IGNORECASE | re.DOTALL)
_MIN_RING_SIZE = 3


def _split_top_level(body: str) -> Optional[List[str]]:
    """Split ``(g1),(g2)`` style text into its top-level groups.

    ``body`` must start with ``(`` and end with the matching ``)``. Returns
    ``None`` when parentheses are unbalanced.
    """

    if not body.startswith("(") or not body.endswith(")"):
        return None
    inner = body[1:-1]
    groups: List[str] = []
    depth = 0
    start = None
    for idx, char in enumerate(inner):
        if char == "(":
            if depth == 0:
                start = idx
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                return None
            if depth == 0 and start is not None:
                groups.append(inner[start : idx + 1])
                start = None
        elif depth == 0 and not (char.isspace() or char == ","):
            return None
    if depth != 0:
        return None
    return groups


def _parse_pair(text: str) -> Optional[LatLng]:
    parts = text.split()
    if len(parts) < 2:
        return None
    try:
        lng = float(parts[0])
        lat = float(parts[1])
    except ValueError:
        return None
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return None
    return LatLng(lat=lat, lng=lng)


def _parse_ring(group: str) -> Ring:
    text = group.strip()
    if text.startswith("(") and text.endswith(")"):
        text = text[1:-1]
    if "(" in text or ")" in text:
        return []
    ring: Ring = []
    for chunk in text.split(","):
        pair = _parse_pair(chunk)
        if pair is not None:
            ring.append(pair)
    return ring


def _parse_polygon_body(body: str) -> List[Ring]:
    groups = _split_top_level(body.strip())
    if not groups:
        return []
    rings = [_parse_ring(group) for group in groups]
    if len(rings[0]) < _MIN_RING_SIZE:
        return []
    return [ring for ring in rings if len(ring) >= _MIN_RING_SIZE]


def parse_wkt_nested(text: Any) -> List[List[Ring]]:
    """Parse POLYGON or MULTIPOLYGON text to ``[[exterior, hole, ...], ...]``."""

    if not isinstance(text, str) or not text.strip():
        return []
    match = _WKT_PATTERN.match(text)
    if not match:
        logger.debug("Unrecognised boundary text: %.60s", text)
        return []

    kind, body = match.group(1).upper(), match.group(2)
    if kind == "POLYGON":
        polygon = _parse_polygon_body(body)
        return [polygon] if polygon else []

    members = _split_top_level(body)
    if members is None:
        logger.debug("Unbalanced MULTIPOLYGON text: %.60s", text)
        return []
    polygons = []
    for member in members:
        polygon = _parse_polygon_body(member)
        if polygon:
            polygons.append(polygon)
    return polygons


def parse_wkt_polygon(text: Any) -> List[Ring]:
    """Parse single-polygon WKT into its exterior ring.

    Coordinates are read as ``lng lat`` and stored as ``LatLng``. Malformed
    text, any other geometry type or fewer than three usable coordinate pairs
    give an empty list.
    """

    if not isinstance(text, str) or not text.strip().upper().startswith("POLYGON"):
        return []
    nested = parse_wkt_nested(text)
    return [nested[0][0]] if nested else []


def parse_wkt(text: Any) -> List[Ring]:
    """Exterior ring of every polygon in POLYGON or MULTIPOLYGON text."""

    return [polygon[0] for polygon in parse_wkt_nested(text)]


def build_polygon_zone(zone_id: Any, text: Any, name: Optional[str] = None) -> Optional[PolygonZone]:
    rings = parse_wkt(text)
    if not rings:
        return None
    ring = rings[0]
    bbox = compute_bbox(ring)
    if bbox is None:
        return None
    return PolygonZone(id=zone_id, ring=tuple(ring), bbox=bbox, name=name)


def build_polygon_zones(records: Iterable[Mapping[str, Any]]) -> List[PolygonZone]:
    """Build zones from ``{id, wkt, name}`` records.

    A MULTIPOLYGON record contributes one zone per member polygon, with ids
    suffixed ``-0``, ``-1``, ... Records that do not parse are skipped.
    """

    zones: List[PolygonZone] = []
    for index, record in enumerate(records):
        zone_id = record.get("id", index)
        name = record.get("name")
        rings = parse_wkt(record.get("wkt") or record.get("region") or record.get("geometry"))
        if not rings:
            logger.debug("Skipping boundary %s: no usable polygon", zone_id)
            continue
        for ring_index, ring in enumerate(rings):
            bbox = compute_bbox(ring)
            if bbox is None:
                continue
            member_id = zone_id if len(rings) == 1 else f"{zone_id}-{ring_index}"
            zones.append(PolygonZone(id=member_id, ring=tuple(ring), bbox=bbox, name=name))
    return zones


__all__ = [
    "build_polygon_zone",
    "build_polygon_zones",
    "parse_wkt",
    "parse_wkt_nested",
    "parse_wkt_polygon",
]
