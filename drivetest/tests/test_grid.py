"""Tests for drivetest/grid.py quality grid generation."""

import pytest

from domain.coverage.models import GridCell, LatLng, Threshold
from drivetest.config import NO_DATA_COLOR
from drivetest.exceptions import InvalidConfigurationError
from drivetest.geometry import compute_bbox, expand_bbox
from drivetest.grid import (
    candidate_cell_count,
    cell_steps,
    generate_grid,
    generate_grid_with_summary,
)

from conftest import CENTER_LAT, CENTER_LNG, make_point, square_ring


# ============================================================================
# Tiling
# ============================================================================


class TestTiling:
    """Cell layout over a boundary."""

    def test_candidate_count_for_square_km(self, square_km_ring):
        count = candidate_cell_count(compute_bbox(square_km_ring), 100)
        assert 100 <= count <= 121

    def test_cells_stay_near_boundary(self, square_km_region):
        results = generate_grid([square_km_region], 100, [], "rsrp", include_empty=True)
        assert 100 <= len(results) <= 121

        bbox = square_km_region[1]
        step_lat, step_lng = cell_steps(bbox, 100)
        envelope = expand_bbox(bbox, step_lat, step_lng)
        for result in results:
            cell = result.zone.bounds
            assert envelope.south <= cell.south and cell.north <= envelope.north
            assert envelope.west <= cell.west and cell.east <= envelope.east

    def test_ids_are_sequential(self, square_km_region):
        results = generate_grid([square_km_region], 100, [], "rsrp", include_empty=True)
        assert [result.zone.id for result in results] == list(range(len(results)))
        assert all(isinstance(result.zone, GridCell) for result in results)

    def test_row_major_order(self, square_km_region):
        results = generate_grid([square_km_region], 250, [], "rsrp", include_empty=True)
        souths = [result.zone.bounds.south for result in results]
        assert souths == sorted(souths)

    def test_separate_regions_skip_gap(self):
        west = square_ring(CENTER_LAT, CENTER_LNG, 500.0)
        east = square_ring(CENTER_LAT, CENTER_LNG + 0.05, 500.0)
        results = generate_grid([(west, None), (east, None)], 100, [], "rsrp", include_empty=True)
        gap_lng = CENTER_LNG + 0.025
        assert results
        assert not any(
            result.zone.bounds.west <= gap_lng <= result.zone.bounds.east for result in results
        )


# ============================================================================
# Aggregation and coloring
# ============================================================================


class TestCellValues:
    """Member selection, aggregation and colors."""

    def test_single_cell_median(self, square_km_region, center_points, threshold_table):
        results = generate_grid([square_km_region], 1000, center_points, "rsrp", threshold_table)
        assert len(results) == 1
        assert results[0].member_count == 3
        assert results[0].aggregated_value == -85.0
        assert results[0].fill_color == "green"

    @pytest.mark.parametrize("method,value,color", [("min", -95.0, "yellow"), ("max", -75.0, "green")])
    def test_method_changes_value(self, square_km_region, center_points, threshold_table, method, value, color):
        results = generate_grid([square_km_region], 1000, center_points, "rsrp", threshold_table, method)
        assert results[0].aggregated_value == value
        assert results[0].fill_color == color

    def test_threshold_table_uses_threshold_key(self, square_km_region, threshold_table):
        points = [make_point(CENTER_LAT, CENTER_LNG, dl_tpt=50.0)]
        results = generate_grid([square_km_region], 1000, points, "dl_tpt", threshold_table)
        assert results[0].fill_color == "fast"

    def test_threshold_table_for_field_outside_catalog(self, square_km_region):
        table = {"speed": [Threshold(0, 60, "slow"), Threshold(60, 200, "fast")]}
        points = [make_point(CENTER_LAT, CENTER_LNG, speed=80.0)]
        results = generate_grid([square_km_region], 1000, points, "speed", table)
        assert results[0].fill_color == "fast"

    def test_points_outside_regions_ignored(self, square_km_region, center_points, threshold_table):
        far = make_point(CENTER_LAT + 1.0, CENTER_LNG + 1.0, rsrp=-140.0)
        results = generate_grid([square_km_region], 1000, center_points + [far], "rsrp", threshold_table)
        assert sum(result.member_count for result in results) == 3

    def test_members_without_metric_get_no_data_color(self, square_km_region, threshold_table):
        points = [make_point(CENTER_LAT, CENTER_LNG, sinr=5.0)]
        results, summary = generate_grid_with_summary(
            [square_km_region], 1000, points, "rsrp", threshold_table
        )
        assert results[0].aggregated_value is None
        assert results[0].fill_color == NO_DATA_COLOR
        assert summary.cells_with_data == 1

    def test_each_point_counted_once(self, square_km_region):
        bbox = square_km_region[1]
        points = [
            make_point(
                bbox.south + (bbox.north - bbox.south) * row / 7.0 + 1e-7,
                bbox.west + (bbox.east - bbox.west) * col / 7.0 + 1e-7,
                rsrp=-90.0,
            )
            for row in range(7)
            for col in range(7)
        ]
        results = generate_grid([square_km_region], 100, points, "rsrp")
        assert sum(result.member_count for result in results) == len(points)


# ============================================================================
# Limits and validation
# ============================================================================


class TestLimits:
    """Cell cap, summary and invalid input."""

    def test_cap_truncates_and_flags(self, square_km_region):
        results, summary = generate_grid_with_summary(
            [square_km_region], 100, [], "rsrp", include_empty=True, max_cells=5
        )
        assert len(results) == 5
        assert summary.capped is True
        assert summary.cells == 5

    def test_summary_area(self, square_km_region, center_points):
        _, summary = generate_grid_with_summary([square_km_region], 1000, center_points, "rsrp")
        assert summary.cells_with_data == 1
        assert summary.total_grid_area_m2 == pytest.approx(1_000_000.0)
        assert summary.capped is False

    @pytest.mark.parametrize("size", [0, -5, float("nan"), "abc", None])
    def test_invalid_cell_size(self, square_km_region, size):
        with pytest.raises(InvalidConfigurationError):
            generate_grid([square_km_region], size, [], "rsrp")

    def test_invalid_cap(self, square_km_region):
        with pytest.raises(InvalidConfigurationError):
            generate_grid([square_km_region], 100, [], "rsrp", max_cells=0)

    def test_no_regions(self):
        results, summary = generate_grid_with_summary([], 100, [], "rsrp")
        assert results == []
        assert summary.cells == 0

    def test_degenerate_rings_skipped(self):
        results = generate_grid([([LatLng(0, 0), LatLng(1, 1)], None)], 100, [], "rsrp")
        assert results == []
