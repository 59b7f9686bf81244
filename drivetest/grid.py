"""Quality grid generation over boundary regions.

Regions are tiled into square cells of a physical size. Cells that touch a
region keep the samples that fall inside both the cell and a region, and are
colored by the aggregated value of the selected metric.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, List, Mapping, Optional, Sequence, Tuple, Union

from core.config import get_settings
from domain.coverage.models import (
    AggregationMethod,
    BoundingBox,
    GridCell,
    GridSummary,
    LatLng,
    Point,
    SpatialGrid,
    Threshold,
    ZoneResult,
)

from .aggregation import aggregate, clean_values, parse_method
from .exceptions import InvalidConfigurationError
from .geometry import (
    Region,
    bbox_center,
    bbox_contains,
    compute_bbox,
    contains,
    contains_any,
    meters_to_degrees,
    overlaps,
    union_bbox,
)
from .metrics import threshold_key_for as default_threshold_key_for
from .thresholds import resolve_color, thresholds_for_metric

logger = logging.getLogger(__name__)

ThresholdLookup = Callable[[str], str]


def _validate_cell_size(cell_size_meters: float) -> float:
    try:
        size = float(cell_size_meters)
    except (TypeError, ValueError) as exc:
        raise InvalidConfigurationError(f"Cell size must be numeric, got {cell_size_meters!r}") from exc
    if not math.isfinite(size) or size <= 0:
        raise InvalidConfigurationError(f"Cell size must be a positive number of metres, got {cell_size_meters}")
    return size


def _normalize_regions(regions: Sequence[Region]) -> List[Tuple[Sequence[LatLng], BoundingBox]]:
    normalized = []
    for ring, bbox in regions:
        if len(ring) < 3:
            continue
        box = bbox if bbox is not None else compute_bbox(ring)
        if box is not None:
            normalized.append((ring, box))
    return normalized


def cell_steps(global_bbox: BoundingBox, cell_size_meters: float) -> Tuple[float, float]:
    """Cell height and width in degrees at the box's average latitude."""

    avg_lat = (global_bbox.north + global_bbox.south) / 2.0
    return meters_to_degrees(_validate_cell_size(cell_size_meters), avg_lat)


def _grid_shape(global_bbox: BoundingBox, step_lat: float, step_lng: float) -> Tuple[int, int]:
    rows = max(1, int(math.ceil((global_bbox.north - global_bbox.south) / step_lat)))
    cols = max(1, int(math.ceil((global_bbox.east - global_bbox.west) / step_lng)))
    return rows, cols


def candidate_cell_count(global_bbox: BoundingBox, cell_size_meters: float) -> int:
    """Number of cells the row-major walk visits before region filtering."""

    rows, cols = _grid_shape(global_bbox, *cell_steps(global_bbox, cell_size_meters))
    return rows * cols


def _cell_touches_regions(
    cell: BoundingBox,
    regions: Sequence[Tuple[Sequence[LatLng], BoundingBox]],
) -> bool:
    center = bbox_center(cell)
    probes = (
        (cell.south, cell.west),
        (cell.south, cell.east),
        (cell.north, cell.west),
        (cell.north, cell.east),
        (center.lat, center.lng),
    )
    for ring, bbox in regions:
        if not overlaps(cell, bbox):
            continue
        for lat, lng in probes:
            if contains(lat, lng, ring, bbox):
                return True
    return False


def _in_cell(cell: BoundingBox, point: Point) -> bool:
    # Half-open so a sample on a shared edge lands in exactly one cell.
    return cell.south <= point.lat < cell.north and cell.west <= point.lng < cell.east


def iter_candidate_cells(global_bbox: BoundingBox, step_lat: float, step_lng: float):
    """Yield cell bounds south-to-north, west-to-east."""

    rows, cols = _grid_shape(global_bbox, step_lat, step_lng)
    # Edges are computed from indices so neighbouring cells share exact seams.
    for row in range(rows):
        south = global_bbox.south + row * step_lat
        north = global_bbox.south + (row + 1) * step_lat
        for col in range(cols):
            west = global_bbox.west + col * step_lng
            east = global_bbox.west + (col + 1) * step_lng
            yield BoundingBox(north=north, south=south, east=east, west=west)


def generate_grid_with_summary(
    regions: Sequence[Region],
    cell_size_meters: float,
    points: Sequence[Point],
    metric_key: str,
    threshold_table: Union[Mapping[str, Sequence[Threshold]], Sequence[Threshold], None] = None,
    method: Union[str, AggregationMethod, None] = AggregationMethod.MEDIAN,
    threshold_key_for: ThresholdLookup = default_threshold_key_for,
    max_cells: Optional[int] = None,
    fallback_color: Optional[str] = None,
    no_data_color: Optional[str] = None,
    include_empty: bool = False,
) -> Tuple[List[ZoneResult], GridSummary]:
    """Tile ``regions`` and aggregate ``metric_key`` per kept cell.

    Args:
        regions: ``(ring, bbox)`` pairs; a ``None`` bbox is computed.
        cell_size_meters: Cell edge length. Must be positive.
        points: Samples to aggregate.
        metric_key: Metric read from each sample.
        threshold_table: Either a per-metric table (resolved through
            ``threshold_key_for``) or a ready bucket list.
        method: Aggregation applied to each cell's values.
        threshold_key_for: Maps a metric key to its threshold table key.
        max_cells: Stop after emitting this many cells. ``None`` emits every
            kept cell.
        fallback_color: Color when no bucket matches.
        no_data_color: Color for cells whose members carry no metric value.
        include_empty: Also emit intersecting cells without members.

    Returns:
        The emitted cells in row-major order plus a summary.
    """

    size = _validate_cell_size(cell_size_meters)
    aggregation = parse_method(method)
    settings = get_settings()
    limit = None if max_cells is None else int(max_cells)
    if limit is not None and limit <= 0:
        raise InvalidConfigurationError(f"max_cells must be positive, got {max_cells}")
    fallback = fallback_color or settings.fallback_color
    empty_color = no_data_color or settings.no_data_color

    if isinstance(threshold_table, Mapping):
        buckets = thresholds_for_metric(threshold_table, metric_key, threshold_key_for)
    else:
        buckets = list(threshold_table or [])

    sources = _normalize_regions(regions)
    global_bbox = union_bbox(bbox for _, bbox in sources)
    if global_bbox is None:
        logger.debug("Grid requested without usable regions")
        return [], GridSummary(0, 0, size, 0.0)

    step_lat, step_lng = cell_steps(global_bbox, size)
    index = SpatialGrid(step_lat, step_lng)
    index.extend(point for point in points if bbox_contains(global_bbox, point.lat, point.lng))

    results: List[ZoneResult] = []
    cells_with_data = 0
    capped = False
    next_id = 0
    for cell_bounds in iter_candidate_cells(global_bbox, step_lat, step_lng):
        if not _cell_touches_regions(cell_bounds, sources):
            continue

        members = [
            point
            for point in index.query_bbox(cell_bounds)
            if _in_cell(cell_bounds, point)
            and contains_any(point.lat, point.lng, sources)
        ]
        if not members and not include_empty:
            continue
        if limit is not None and len(results) >= limit:
            capped = True
            break

        value: Optional[float] = None
        color = empty_color
        if members:
            cells_with_data += 1
            values = clean_values(point.metric(metric_key) for point in members)
            if values:
                value = aggregate(values, aggregation)
                color = resolve_color(value, buckets, fallback)

        results.append(
            ZoneResult(
                zone=GridCell(id=next_id, bounds=cell_bounds),
                member_count=len(members),
                aggregated_value=value,
                fill_color=color,
            )
        )
        next_id += 1

    if capped:
        logger.warning("Grid capped at %d cells (cell size %.1f m)", limit, size)

    summary = GridSummary(
        cells=len(results),
        cells_with_data=cells_with_data,
        cell_size_meters=size,
        total_grid_area_m2=size * size * cells_with_data,
        capped=capped,
    )
    logger.debug(
        "Generated %d grid cells (%d with data) for metric %s",
        summary.cells,
        summary.cells_with_data,
        metric_key,
    )
    return results, summary


def generate_grid(
    regions: Sequence[Region],
    cell_size_meters: float,
    points: Sequence[Point],
    metric_key: str,
    threshold_table: Union[Mapping[str, Sequence[Threshold]], Sequence[Threshold], None] = None,
    method: Union[str, AggregationMethod, None] = AggregationMethod.MEDIAN,
    **kwargs,
) -> List[ZoneResult]:
    results, _ = generate_grid_with_summary(
        regions, cell_size_meters, points, metric_key, threshold_table, method, **kwargs
    )
    return results


__all__ = [
    "candidate_cell_count",
    "cell_steps",
    "generate_grid",
    "generate_grid_with_summary",
    "iter_candidate_cells",
]
