"""Pytest configuration and shared fixtures for coverage engine tests."""

import sys
from pathlib import Path

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from domain.coverage.models import LatLng, Point, Threshold  # noqa: E402
from drivetest.geometry import compute_bbox, meters_to_degrees  # noqa: E402


# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# ============================================================================
# Helpers
# ============================================================================


CENTER_LAT = 28.6
CENTER_LNG = 77.3


def make_point(lat, lng, provider=None, band=None, technology=None, **metrics):
    """Build a Point with optional categories and metric keyword values."""
    categories = {}
    if provider is not None:
        categories["provider"] = provider
    if band is not None:
        categories["band"] = band
    if technology is not None:
        categories["technology"] = technology
    return Point(lat=lat, lng=lng, metrics=metrics, categories=categories)


def square_ring(center_lat, center_lng, side_m):
    """Axis-aligned square ring of ``side_m`` metres centred on a point."""
    half_lat, half_lng = meters_to_degrees(side_m / 2.0, center_lat)
    return [
        LatLng(center_lat - half_lat, center_lng - half_lng),
        LatLng(center_lat - half_lat, center_lng + half_lng),
        LatLng(center_lat + half_lat, center_lng + half_lng),
        LatLng(center_lat + half_lat, center_lng - half_lng),
    ]


def square_wkt(center_lat, center_lng, side_m):
    ring = square_ring(center_lat, center_lng, side_m)
    closed = ring + [ring[0]]
    coords = ", ".join(f"{p.lng:.9f} {p.lat:.9f}" for p in closed)
    return f"POLYGON(({coords}))"


# ============================================================================
# Shared Fixtures
# ============================================================================


@pytest.fixture
def square_km_ring():
    """A 1 km square boundary."""
    return square_ring(CENTER_LAT, CENTER_LNG, 1000.0)


@pytest.fixture
def square_km_region(square_km_ring):
    """The 1 km square as a (ring, bbox) region."""
    return (square_km_ring, compute_bbox(square_km_ring))


@pytest.fixture
def rsrp_thresholds():
    """Three-bucket RSRP table."""
    return [
        Threshold(min=-140.0, max=-110.0, color="red"),
        Threshold(min=-110.0, max=-90.0, color="yellow"),
        Threshold(min=-90.0, max=-44.0, color="green"),
    ]


@pytest.fixture
def threshold_table(rsrp_thresholds):
    return {
        "rsrp": rsrp_thresholds,
        "dl_thpt": [
            Threshold(min=0.0, max=10.0, color="slow"),
            Threshold(min=10.0, max=1000.0, color="fast"),
        ],
    }


@pytest.fixture
def center_points():
    """Samples scattered close to the square centre."""
    return [
        make_point(CENTER_LAT, CENTER_LNG, provider="JIO", band="3", technology="4G", rsrp=-85.0, sinr=12.0),
        make_point(CENTER_LAT + 0.0001, CENTER_LNG, provider="JIO", band="3", technology="4G", rsrp=-95.0, sinr=8.0),
        make_point(CENTER_LAT, CENTER_LNG + 0.0001, provider="Airtel", band="40", technology="5G", rsrp=-75.0, sinr=20.0),
    ]
