"""Tests for the pipeline entry points and the zone cache."""

import pytest

from domain.coverage.models import AggregationMethod, GridCell, PolygonZone
from drivetest import ZoneCache, ZoneConfig, compute_best_network, compute_zones
from drivetest.exceptions import InvalidConfigurationError
from drivetest.geometry import compute_bbox
from drivetest.grid import cell_steps
from drivetest.pipeline import build_zone_config, generate_cache_key, resolve_boundaries

from conftest import CENTER_LAT, CENTER_LNG, make_point, square_ring, square_wkt


@pytest.fixture
def boundary():
    return square_wkt(CENTER_LAT, CENTER_LNG, 1000.0)


@pytest.fixture
def settings_thresholds():
    """Threshold payload as stored by the settings service."""
    return {
        "rsrp_json": '[{"min": -140, "max": -110, "color": "red"},'
        ' {"min": -110, "max": -90, "color": "yellow"},'
        ' {"min": -90, "max": -44, "color": "green"}]',
        "dl_thpt_json": '[{"min": 0, "max": 10, "color": "slow"}, {"min": 10, "max": 1000, "color": "fast"}]',
    }


# ============================================================================
# Configuration
# ============================================================================


class TestZoneConfig:
    """Config parsing and validation."""

    def test_defaults(self):
        config = build_zone_config()
        assert config.metric == "rsrp"
        assert config.zone_mode == "grid"
        assert config.cell_size_meters == 100.0
        assert config.aggregation is AggregationMethod.MEDIAN

    def test_normalizes_inputs(self, settings_thresholds):
        config = build_zone_config(
            {"metric": "DL-Throughput", "aggregation": " MEAN ", "thresholds": settings_thresholds}
        )
        assert config.metric == "dl_tpt"
        assert config.aggregation is AggregationMethod.MEAN
        assert [bucket.color for bucket in config.thresholds["dl_thpt"]] == ["slow", "fast"]

    def test_passthrough(self):
        config = ZoneConfig(cell_size_meters=250)
        assert build_zone_config(config) is config

    @pytest.mark.parametrize(
        "raw",
        [
            {"metric": "signal_bars"},
            {"zone_mode": "hexagon"},
            {"cell_size_meters": 0},
            {"cell_size_meters": -10},
            {"aggregation": "mode"},
            {"max_cells": 0},
        ],
    )
    def test_invalid(self, raw):
        with pytest.raises(InvalidConfigurationError):
            build_zone_config(raw)


class TestResolveBoundaries:
    """Boundary inputs of mixed kinds."""

    def test_mixed_inputs(self, boundary):
        ring = square_ring(CENTER_LAT, CENTER_LNG, 200.0)
        ready = PolygonZone(id="ready", ring=tuple(ring), bbox=compute_bbox(ring))
        zones = resolve_boundaries([boundary, {"id": "named", "wkt": boundary}, ready, "broken"])
        assert sorted(str(zone.id) for zone in zones) == ["0", "named", "ready"]


# ============================================================================
# Entry points
# ============================================================================


class TestComputeZones:
    """Grid and polygon zone computation."""

    def test_grid_mode(self, boundary, center_points, settings_thresholds):
        results = compute_zones(
            center_points, [boundary], {"cell_size_meters": 1000, "thresholds": settings_thresholds}
        )
        assert len(results) == 1
        assert isinstance(results[0].zone, GridCell)
        assert results[0].aggregated_value == -85.0
        assert results[0].fill_color == "green"

    def test_polygon_mode(self, boundary, center_points, settings_thresholds):
        results = compute_zones(
            center_points,
            [{"id": "site", "wkt": boundary}],
            {"zone_mode": "polygon", "thresholds": settings_thresholds, "aggregation": "min"},
        )
        assert [result.zone.id for result in results] == ["site"]
        assert results[0].aggregated_value == -95.0
        assert results[0].fill_color == "yellow"

    def test_metric_uses_threshold_key(self, boundary, settings_thresholds):
        points = [make_point(CENTER_LAT, CENTER_LNG, dl_tpt=4.0)]
        results = compute_zones(
            points,
            [boundary],
            {"metric": "dl_tpt", "cell_size_meters": 1000, "thresholds": settings_thresholds},
        )
        assert results[0].fill_color == "slow"

    def test_fallback_color_for_gap(self, boundary):
        points = [make_point(CENTER_LAT, CENTER_LNG, rsrp=-100.0)]
        config = {
            "zone_mode": "polygon",
            "fallback_color": "#000000",
            "thresholds": {"rsrp": [{"min": -140, "max": -110, "color": "red"}, {"min": -90, "max": -44, "color": "green"}]},
        }
        assert compute_zones(points, [boundary], config)[0].fill_color == "#000000"

    def test_no_boundaries(self, center_points):
        assert compute_zones(center_points, []) == []

    def test_grid_mode_emits_every_data_cell(self, boundary):
        zone = resolve_boundaries([boundary])[0]
        step_lat, step_lng = cell_steps(zone.bbox, 20)
        points = [
            make_point(
                zone.bbox.south + (row + 0.5) * step_lat,
                zone.bbox.west + (col + 0.5) * step_lng,
                rsrp=-90.0,
            )
            for row in range(50)
            for col in range(50)
        ]
        results = compute_zones(points, [boundary], {"cell_size_meters": 20})
        assert len(results) == 2500
        assert all(result.member_count == 1 for result in results)

    def test_best_network_over_boundaries(self, boundary, center_points):
        result = compute_best_network(center_points, boundaries=[{"id": "site", "wkt": boundary}])
        assert [winner.zone_key for winner in result.zone_results] == ["site"]
        assert result.zone_results[0].best_category == "Airtel"

    def test_best_network_with_only_malformed_boundaries(self, center_points):
        result = compute_best_network(center_points, boundaries=["POLYGON((garbage))"])
        assert result.zone_results == []
        assert result.win_stats == {}

    def test_best_network_without_boundaries_uses_rounded_grid(self, center_points):
        result = compute_best_network(center_points)
        winners = {winner.zone_key: winner.best_category for winner in result.zone_results}
        assert winners == {
            "28.600000,77.300000": "JIO",
            "28.600100,77.300000": "JIO",
            "28.600000,77.300100": "Airtel",
        }


# ============================================================================
# Memoization
# ============================================================================


class TestZoneCache:
    """Result memoization keyed by input versions."""

    def test_cache_key_is_stable(self):
        first = generate_cache_key("v1", "b1", "rsrp", {"a": 1, "b": [1, 2]})
        second = generate_cache_key("v1", "b1", "rsrp", {"b": [1, 2], "a": 1})
        assert first == second
        assert len(first) == 64
        assert generate_cache_key("v1", "b1", "sinr", {"a": 1, "b": [1, 2]}) != first

    def test_cache_key_accepts_models(self, settings_thresholds):
        config = build_zone_config({"thresholds": settings_thresholds})
        assert generate_cache_key(1, 1, "rsrp", config) == generate_cache_key(1, 1, "rsrp", config)

    def test_hit_skips_computation(self):
        cache = ZoneCache(maxsize=4)
        calls = []

        def compute():
            calls.append(1)
            return ["result"]

        assert cache.get_or_compute("p1", "b1", "rsrp", {}, compute) == ["result"]
        assert cache.get_or_compute("p1", "b1", "rsrp", {}, compute) == ["result"]
        assert len(calls) == 1
        assert (cache.hits, cache.misses) == (1, 1)

        cache.get_or_compute("p2", "b1", "rsrp", {}, compute)
        assert len(calls) == 2

    def test_lru_eviction(self):
        cache = ZoneCache(maxsize=2)
        cache.get_or_compute("a", 0, "rsrp", None, lambda: "a")
        cache.get_or_compute("b", 0, "rsrp", None, lambda: "b")
        cache.get_or_compute("a", 0, "rsrp", None, lambda: "unused")
        cache.get_or_compute("c", 0, "rsrp", None, lambda: "c")
        assert len(cache) == 2
        assert cache.get_or_compute("a", 0, "rsrp", None, lambda: "recomputed") == "a"
        assert cache.get_or_compute("b", 0, "rsrp", None, lambda: "recomputed") == "recomputed"

    def test_clear(self):
        cache = ZoneCache(maxsize=2)
        cache.get_or_compute("a", 0, "rsrp", None, lambda: "a")
        cache.clear()
        assert len(cache) == 0

    def test_invalid_size(self):
        with pytest.raises(InvalidConfigurationError):
            ZoneCache(maxsize=0)
