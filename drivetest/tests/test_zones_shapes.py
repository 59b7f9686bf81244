"""Tests for polygon zone analysis and drawn-shape analysis."""

import math

import pytest

from core.config import get_settings
from domain.coverage.models import BoundingBox, LatLng
from drivetest.boundary import build_polygon_zone
from drivetest.config import BAND_COLORS, CATEGORY_FALLBACK_COLOR, PROVIDER_COLORS
from drivetest.exceptions import InvalidConfigurationError
from drivetest.geometry import compute_bbox
from drivetest.shapes import (
    CircleShape,
    PolygonShape,
    RectangleShape,
    analyze_shape,
    shape_from_geometry,
)
from drivetest.zones import (
    analyze_polygon_zones,
    points_in_zone,
    visible_zones,
    zone_results_from_analyses,
)

from conftest import CENTER_LAT, CENTER_LNG, make_point, square_ring, square_wkt


@pytest.fixture
def zones():
    return [
        build_polygon_zone("site", square_wkt(CENTER_LAT, CENTER_LNG, 1000.0), name="Site"),
        build_polygon_zone("empty", square_wkt(CENTER_LAT + 0.5, CENTER_LNG, 1000.0)),
    ]


# ============================================================================
# Polygon zones
# ============================================================================


class TestPolygonZones:
    """Per-polygon aggregation and coloring."""

    def test_threshold_coloring(self, zones, center_points, rsrp_thresholds):
        analyses = analyze_polygon_zones(zones, center_points, "rsrp", rsrp_thresholds)
        site, empty = analyses
        assert site.member_count == 3
        assert site.aggregated_value == -85.0
        assert site.fill_color == "green"
        assert empty.member_count == 0
        assert empty.aggregated_value is None
        assert empty.fill_color == get_settings().no_data_color

    def test_category_breakdowns(self, zones, center_points, rsrp_thresholds):
        site = analyze_polygon_zones(zones, center_points, "rsrp", rsrp_thresholds)[0]
        assert site.category_stats["provider"].dominant.name == "JIO"
        assert site.category_stats["band"].dominant.name == "3"
        assert site.category_stats["technology"].total == 3

    def test_method(self, zones, center_points, rsrp_thresholds):
        site = analyze_polygon_zones(zones, center_points, "rsrp", rsrp_thresholds, method="max")[0]
        assert site.aggregated_value == -75.0

    @pytest.mark.parametrize(
        "color_by,expected",
        [("provider", PROVIDER_COLORS["JIO"]), ("band", BAND_COLORS["3"]), ("session", "green")],
    )
    def test_color_by(self, zones, center_points, rsrp_thresholds, color_by, expected):
        site = analyze_polygon_zones(zones, center_points, "rsrp", rsrp_thresholds, color_by=color_by)[0]
        assert site.fill_color == expected

    def test_unconfigured_label_uses_fallback(self, zones, rsrp_thresholds):
        points = [make_point(CENTER_LAT, CENTER_LNG, provider="Mystery", rsrp=-80.0)]
        site = analyze_polygon_zones(zones, points, "rsrp", rsrp_thresholds, color_by="provider")[0]
        assert site.fill_color == CATEGORY_FALLBACK_COLOR

    def test_results_and_viewport(self, zones, center_points, rsrp_thresholds):
        results = zone_results_from_analyses(
            analyze_polygon_zones(zones, center_points, "rsrp", rsrp_thresholds)
        )
        assert [result.zone.id for result in results] == ["site", "empty"]
        viewport = BoundingBox(
            north=CENTER_LAT + 0.01, south=CENTER_LAT - 0.01, east=CENTER_LNG + 0.01, west=CENTER_LNG - 0.01
        )
        assert [result.zone.id for result in visible_zones(results, viewport)] == ["site"]
        assert len(visible_zones(results, None)) == 2

    def test_points_in_zone(self, zones, center_points):
        far = make_point(CENTER_LAT - 1.0, CENTER_LNG)
        assert points_in_zone(zones[0], center_points + [far]) == center_points


# ============================================================================
# Drawn shapes
# ============================================================================


class TestShapes:
    """Rectangle, circle and polygon shapes."""

    def test_rectangle(self):
        shape = RectangleShape(BoundingBox(north=1.0, south=0.0, east=1.0, west=0.0))
        assert shape.contains(0.5, 0.5)
        assert not shape.contains(1.5, 0.5)
        assert len(shape.ring()) == 4
        assert shape.area_m2() > 0

    def test_circle(self):
        shape = CircleShape(LatLng(CENTER_LAT, CENTER_LNG), 100.0)
        assert shape.contains(CENTER_LAT + 0.0005, CENTER_LNG)
        assert not shape.contains(CENTER_LAT + 0.002, CENTER_LNG)
        assert shape.area_m2() == pytest.approx(math.pi * 10_000.0)
        assert shape.bbox().north > CENTER_LAT

    @pytest.mark.parametrize("radius", [0.0, -10.0, float("nan")])
    def test_circle_radius_validated(self, radius):
        with pytest.raises(InvalidConfigurationError):
            CircleShape(LatLng(0.0, 0.0), radius)

    def test_polygon_needs_three_vertices(self):
        with pytest.raises(InvalidConfigurationError):
            PolygonShape((LatLng(0, 0), LatLng(1, 1)))

    def test_polygon_area(self):
        shape = PolygonShape(tuple(square_ring(CENTER_LAT, CENTER_LNG, 1000.0)))
        assert shape.area_m2() == pytest.approx(1_000_000.0, rel=0.01)
        assert shape.contains(CENTER_LAT, CENTER_LNG)

    def test_from_geometry(self):
        rectangle = shape_from_geometry(
            {"type": "rectangle", "rectangle": {"ne": {"lat": 2, "lng": 3}, "sw": {"lat": 1, "lng": 2}}}
        )
        circle = shape_from_geometry({"type": "circle", "circle": {"center": {"lat": 1, "lng": 2}, "radius": 50}})
        polygon = shape_from_geometry(
            {"type": "polygon", "polygon": [{"lat": 0, "lng": 0}, {"lat": 0, "lng": 1}, {"lat": 1, "lng": 1}]}
        )
        assert rectangle.bounds == BoundingBox(north=2, south=1, east=3, west=2)
        assert circle.radius_m == 50.0
        assert polygon.shape_type == "polygon"

    def test_from_geometry_unknown(self):
        with pytest.raises(InvalidConfigurationError):
            shape_from_geometry({"type": "hexagon"})


class TestAnalyzeShape:
    """Samples, stats and pixelation inside a shape."""

    def test_members_and_stats(self, center_points):
        far = make_point(CENTER_LAT + 0.01, CENTER_LNG, rsrp=-140.0)
        analysis = analyze_shape(CircleShape(LatLng(CENTER_LAT, CENTER_LNG), 100.0), center_points + [far], "rsrp")
        assert analysis.member_count == 3
        assert analysis.stats["mean"] == pytest.approx(-85.0)
        assert analysis.stats["count"] == 3
        assert analysis.cells == []
        assert analysis.grid is None

    def test_pixelated_grid(self, center_points, rsrp_thresholds):
        analysis = analyze_shape(
            CircleShape(LatLng(CENTER_LAT, CENTER_LNG), 100.0),
            center_points,
            "rsrp",
            thresholds=rsrp_thresholds,
            cell_size_meters=50.0,
        )
        assert analysis.cells
        assert analysis.grid.cells == len(analysis.cells)
        assert sum(cell.member_count for cell in analysis.cells) == 3
        assert any(cell.member_count == 0 for cell in analysis.cells)

    def test_pixelation_capped_by_settings(self):
        shape = RectangleShape(compute_bbox(square_ring(CENTER_LAT, CENTER_LNG, 1000.0)))
        analysis = analyze_shape(shape, [], "rsrp", cell_size_meters=20.0)
        limit = get_settings().max_grid_cells
        assert analysis.grid.capped is True
        assert len(analysis.cells) == limit

        explicit = analyze_shape(shape, [], "rsrp", cell_size_meters=20.0, max_cells=10)
        assert len(explicit.cells) == 10

    def test_empty_shape(self):
        shape = RectangleShape(BoundingBox(north=1.0, south=0.0, east=1.0, west=0.0))
        analysis = analyze_shape(shape, [], "rsrp")
        assert analysis.member_count == 0
        assert analysis.stats["mean"] is None
