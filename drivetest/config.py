from __future__ import annotations

import math
from typing import Dict, List, Tuple

METERS_PER_DEGREE_LAT = 111320.0
EARTH_RADIUS_M = 6371000.0

DEFAULT_METRIC = "rsrp"
NO_DATA_COLOR = "#808080"
CATEGORY_FALLBACK_COLOR = "#6C757D"
NEUTRAL_ZONE_COLOR = "#666666"

# Logical metric key -> sample field, threshold table key and display info.
METRIC_CATALOG: Dict[str, Dict[str, str]] = {
    "rsrp": {"field": "rsrp", "threshold_key": "rsrp", "label": "RSRP", "unit": "dBm"},
    "rsrq": {"field": "rsrq", "threshold_key": "rsrq", "label": "RSRQ", "unit": "dB"},
    "sinr": {"field": "sinr", "threshold_key": "sinr", "label": "SINR", "unit": "dB"},
    "dl_tpt": {"field": "dl_tpt", "threshold_key": "dl_thpt", "label": "DL Throughput", "unit": "Mbps"},
    "ul_tpt": {"field": "ul_tpt", "threshold_key": "ul_thpt", "label": "UL Throughput", "unit": "Mbps"},
    "mos": {"field": "mos", "threshold_key": "mos", "label": "MOS", "unit": ""},
    "lte_bler": {"field": "lte_bler", "threshold_key": "lte_bler", "label": "LTE BLER", "unit": "%"},
    "pci": {"field": "pci", "threshold_key": "pci", "label": "PCI", "unit": ""},
    "latency": {"field": "latency", "threshold_key": "latency", "label": "Latency", "unit": "ms"},
    "jitter": {"field": "jitter", "threshold_key": "jitter", "label": "Jitter", "unit": "ms"},
}

# UI spellings that refer to a catalog entry.
METRIC_KEY_ALIASES: Dict[str, str] = {
    "dl-throughput": "dl_tpt",
    "dl_thpt": "dl_tpt",
    "ul-throughput": "ul_tpt",
    "ul_thpt": "ul_tpt",
    "lte-bler": "lte_bler",
    "bler": "lte_bler",
}

# Raw log field spellings per metric, tried in order.
METRIC_FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "rsrp": ("rsrp", "RSRP", "rsrp_dbm", "Rsrp", "lte_rsrp"),
    "rsrq": ("rsrq", "RSRQ", "Rsrq"),
    "sinr": ("sinr", "SINR", "Sinr"),
    "dl_tpt": ("dl_tpt", "dl_thpt", "DL", "dl_throughput", "DlThpt", "download_mbps"),
    "ul_tpt": ("ul_tpt", "ul_thpt", "UL", "ul_throughput", "UlThpt", "upload_mbps"),
    "mos": ("mos", "MOS", "Mos", "voice_mos"),
    "lte_bler": ("lte_bler", "LTE_BLER", "LteBler", "bler"),
    "pci": ("pci", "PCI", "Pci"),
    "jitter": ("jitter", "Jitter"),
    "latency": ("latency", "Latency"),
    "speed": ("speed", "Speed"),
}

CATEGORY_FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "provider": ("provider", "Provider", "operator", "Operator"),
    "technology": ("network", "technology", "Network", "Technology"),
    "band": ("band", "Band"),
}

LAT_FIELD_ALIASES: Tuple[str, ...] = ("lat", "Lat", "latitude", "Latitude", "LAT", "start_lat")
LNG_FIELD_ALIASES: Tuple[str, ...] = (
    "lon",
    "lng",
    "Lng",
    "longitude",
    "Longitude",
    "LON",
    "LNG",
    "long",
    "Long",
    "start_lon",
)

# Normalization bounds for composite scoring.
METRIC_DOMAINS: Dict[str, Dict[str, float]] = {
    "rsrp": {"min": -140.0, "max": -44.0, "higher_is_better": True},
    "rsrq": {"min": -20.0, "max": -3.0, "higher_is_better": True},
    "sinr": {"min": -10.0, "max": 30.0, "higher_is_better": True},
    "dl_tpt": {"min": 0.0, "max": 300.0, "higher_is_better": True},
    "ul_tpt": {"min": 0.0, "max": 100.0, "higher_is_better": True},
    "mos": {"min": 1.0, "max": 5.0, "higher_is_better": True},
    "lte_bler": {"min": 0.0, "max": 100.0, "higher_is_better": False},
    "latency": {"min": 0.0, "max": 500.0, "higher_is_better": False},
    "jitter": {"min": 0.0, "max": 100.0, "higher_is_better": False},
}

DEFAULT_COMPOSITE_WEIGHTS: Dict[str, float] = {
    "rsrp": 40.0,
    "rsrq": 30.0,
    "sinr": 30.0,
}

# Zone keys carry six decimals; finer rounded grids would collide.
MIN_GRID_SIZE_DEGREES = 1e-6

# Raw provider label -> canonical provider name.
PROVIDER_ALIASES: Dict[str, str] = {
    "JIO": "JIO",
    "Jio True5G": "JIO",
    "JIO 4G": "JIO",
    "JIO4G": "JIO",
    "IND-JIO": "JIO",
    "IND airtel": "Airtel",
    "IND Airtel": "Airtel",
    "airtel": "Airtel",
    "Airtel 5G": "Airtel",
    "VI India": "Vi India",
    "Vi India": "Vi India",
    "Vodafone IN": "Vi India",
    "BSNL": "BSNL",
}

PROVIDER_COLORS: Dict[str, str] = {
    "JIO": "#3B82F6",
    "Airtel": "#EF4444",
    "Vi India": "#22C55E",
    "BSNL": "#F59E0B",
    "Unknown": "#6B7280",
}

BAND_COLORS: Dict[str, str] = {
    "1": "#EF4444",
    "2": "#F59E0B",
    "3": "#EF4444",
    "5": "#F59E0B",
    "7": "#10B981",
    "8": "#10B981",
    "40": "#3B82F6",
    "41": "#8B5CF6",
    "n28": "#EC4899",
    "n78": "#F472B6",
    "Unknown": "#6B7280",
}

TECHNOLOGY_COLORS: Dict[str, str] = {
    "5G": "#EC4899",
    "NR (5G)": "#EC4899",
    "NR (5G SA)": "#EC4899",
    "NR (5G NSA)": "#EC4899",
    "4G": "#8B5CF6",
    "LTE (4G)": "#8B5CF6",
    "3G": "#10B981",
    "2G": "#6B7280",
    "EDGE (2G)": "#6B7280",
    "Unknown": "#F59E0B",
}

# Colors handed out, in order, to labels with no configured color.
UNSEEN_CATEGORY_PALETTE: List[str] = ["#8B5CF6", "#10B981", "#F59E0B", "#EF4444", "#3B82F6"]

PCI_COLOR_PALETTE: List[str] = [
    "#FF6B6B", "#4ECDC4", "#45B7D1", "#FFA07A", "#98D8C8",
    "#F7DC6F", "#BB8FCE", "#85C1E2", "#F8B739", "#52BE80",
    "#EC7063", "#5DADE2", "#F39C12", "#A569BD", "#48C9B0",
    "#E74C3C", "#3498DB", "#E67E22", "#9B59B6", "#1ABC9C",
]
PCI_MAX = 503

for metric_name, weight in DEFAULT_COMPOSITE_WEIGHTS.items():
    if weight < 0 or not math.isfinite(weight):
        raise ValueError(f"Default weight for {metric_name} must be a non-negative number")
    if metric_name not in METRIC_DOMAINS:
        raise ValueError(f"Default weight references unknown metric {metric_name}")

__all__ = [
    "BAND_COLORS",
    "CATEGORY_FALLBACK_COLOR",
    "CATEGORY_FIELD_ALIASES",
    "DEFAULT_COMPOSITE_WEIGHTS",
    "DEFAULT_METRIC",
    "EARTH_RADIUS_M",
    "LAT_FIELD_ALIASES",
    "LNG_FIELD_ALIASES",
    "METERS_PER_DEGREE_LAT",
    "METRIC_CATALOG",
    "METRIC_DOMAINS",
    "METRIC_FIELD_ALIASES",
    "METRIC_KEY_ALIASES",
    "MIN_GRID_SIZE_DEGREES",
    "NEUTRAL_ZONE_COLOR",
    "NO_DATA_COLOR",
    "PCI_COLOR_PALETTE",
    "PCI_MAX",
    "PROVIDER_ALIASES",
    "PROVIDER_COLORS",
    "TECHNOLOGY_COLORS",
    "UNSEEN_CATEGORY_PALETTE",
]
