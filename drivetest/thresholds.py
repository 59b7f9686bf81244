"""Value-to-color resolution for threshold buckets and categorical labels."""

from __future__ import annotations

import json
import logging
import math
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from domain.coverage.models import Threshold

from .config import (
    CATEGORY_FALLBACK_COLOR,
    NO_DATA_COLOR,
    PCI_COLOR_PALETTE,
    PCI_MAX,
    UNSEEN_CATEGORY_PALETTE,
)
from .exceptions import InvalidConfigurationError
from .metrics import threshold_key_for

logger = logging.getLogger(__name__)


def resolve_color(
    value: Optional[float],
    thresholds: Sequence[Threshold],
    fallback: str = NO_DATA_COLOR,
) -> str:
    """Return the color of the bucket holding ``value``.

    Buckets are ``[min, max)`` except the last, which is ``[min, max]``.
    Values below the first bucket clamp to its color and values above the
    last bucket clamp to the last color. Values falling into a gap between
    buckets, non-finite values and empty bucket lists give ``fallback``.
    """

    if not thresholds or value is None or not math.isfinite(value):
        return fallback

    buckets = sorted(thresholds, key=lambda bucket: bucket.min)
    if value < buckets[0].min:
        return buckets[0].color
    last = buckets[-1]
    if value > last.max:
        return last.color

    for bucket in buckets[:-1]:
        if bucket.min <= value < bucket.max:
            return bucket.color
    if last.min <= value <= last.max:
        return last.color
    return fallback


def _threshold_from_entry(entry: Mapping[str, Any]) -> Optional[Threshold]:
    lower = entry.get("min", entry.get("from"))
    upper = entry.get("max", entry.get("to"))
    color = entry.get("color")
    if lower is None or upper is None or not color:
        return None
    try:
        lower_f = float(lower)
        upper_f = float(upper)
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(lower_f) and math.isfinite(upper_f)) or upper_f < lower_f:
        return None
    label = entry.get("label") or entry.get("range")
    return Threshold(min=lower_f, max=upper_f, color=str(color), label=label)


def parse_thresholds(raw: Any) -> List[Threshold]:
    """Build a sorted bucket list from a settings payload.

    ``raw`` may be a list of dicts or the JSON text the settings service
    stores (``rsrp_json`` and friends). Malformed entries are skipped.
    """

    if raw is None:
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw or "[]")
        except json.JSONDecodeError:
            logger.debug("Ignoring threshold payload that is not JSON")
            return []
    if not isinstance(raw, list):
        return []

    buckets = []
    for entry in raw:
        if isinstance(entry, Threshold):
            buckets.append(entry)
        elif isinstance(entry, Mapping):
            bucket = _threshold_from_entry(entry)
            if bucket is not None:
                buckets.append(bucket)
    return sorted(buckets, key=lambda bucket: bucket.min)


def parse_threshold_table(raw: Mapping[str, Any]) -> Dict[str, List[Threshold]]:
    """Parse every metric's buckets, accepting ``<key>_json`` column names."""

    table: Dict[str, List[Threshold]] = {}
    for key, payload in raw.items():
        name = key[:-5] if key.endswith("_json") else key
        table[name] = parse_thresholds(payload)
    return table


def thresholds_for_metric(
    table: Optional[Mapping[str, Sequence[Threshold]]],
    metric_key: str,
    key_for: Callable[[str], str] = threshold_key_for,
) -> List[Threshold]:
    """Buckets for ``metric_key``, falling back to the raw key for fields outside the catalog."""

    if not table:
        return []
    try:
        buckets = table.get(key_for(metric_key))
    except InvalidConfigurationError:
        buckets = None
    if buckets is None:
        buckets = table.get(metric_key, [])
    return list(buckets)


def pci_color(value: Any) -> str:
    """Physical cell ids 0-503 cycle through a fixed palette; anything else is gray."""

    try:
        number = float(value)
    except (TypeError, ValueError):
        return NO_DATA_COLOR
    if not math.isfinite(number):
        return NO_DATA_COLOR
    pci = int(math.floor(number))
    if pci < 0 or pci > PCI_MAX:
        return NO_DATA_COLOR
    return PCI_COLOR_PALETTE[pci % len(PCI_COLOR_PALETTE)]


class CategoryColorMap:
    """Injected mapping of raw labels to canonical categories and colors.

    Labels listed in ``aliases`` are folded into their canonical name.
    Canonical names without a configured color receive the next color of
    ``palette`` the first time they are seen, so the same label keeps the
    same color for the lifetime of the map.
    """

    def __init__(
        self,
        colors: Optional[Mapping[str, str]] = None,
        aliases: Optional[Mapping[str, str]] = None,
        palette: Optional[Iterable[str]] = None,
        fallback: str = CATEGORY_FALLBACK_COLOR,
    ) -> None:
        self._colors: Dict[str, str] = dict(colors or {})
        self._aliases: Dict[str, str] = {}
        for raw_label, canonical in (aliases or {}).items():
            self._aliases[raw_label.strip().lower()] = canonical
        self._palette = list(palette) if palette is not None else list(UNSEEN_CATEGORY_PALETTE)
        self._next_color = 0
        self.fallback = fallback

    def canonical(self, label: Any) -> str:
        text = str(label or "").strip()
        if not text:
            return "Unknown"
        return self._aliases.get(text.lower(), text)

    def color(self, label: Any) -> str:
        name = self.canonical(label)
        if name in self._colors:
            return self._colors[name]
        if not self._palette:
            return self.fallback
        color = self._palette[self._next_color % len(self._palette)]
        self._next_color += 1
        self._colors[name] = color
        return color

    def known_color(self, label: Any) -> str:
        """Configured color for ``label`` without assigning palette colors."""

        return self._colors.get(self.canonical(label), self.fallback)

    def as_dict(self) -> Dict[str, str]:
        return dict(self._colors)


__all__ = [
    "CategoryColorMap",
    "parse_threshold_table",
    "parse_thresholds",
    "pci_color",
    "resolve_color",
    "thresholds_for_metric",
]
