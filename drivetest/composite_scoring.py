"""Best-network ranking: weighted multi-metric scores per zone and category.

Each zone (a rounded lat/lng grid cell or a supplied polygon) is scored
independently. Within a zone every category (normally the provider) with
enough samples gets one central value per weighted metric; those values are
normalized against fixed domains, inverted for lower-is-better metrics and
combined into a weighted average. The highest score wins the zone.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from domain.coverage.models import (
    CentralTendency,
    CompositeResult,
    CompositeScore,
    MetricDomain,
    Point,
    PolygonZone,
    WinStats,
    ZoneWinner,
)

from .aggregation import clean_values, median, percentile, remove_outliers_iqr
from .config import (
    DEFAULT_COMPOSITE_WEIGHTS,
    MIN_GRID_SIZE_DEGREES,
    NEUTRAL_ZONE_COLOR,
    PROVIDER_ALIASES,
    PROVIDER_COLORS,
)
from .exceptions import InvalidConfigurationError
from .geometry import contains
from .metrics import build_metric_domains
from .thresholds import CategoryColorMap

logger = logging.getLogger(__name__)

ZoneKey = Any


class CompositeOptions(BaseModel):
    """Tuning knobs for the best-network comparison."""

    model_config = ConfigDict(frozen=True)

    grid_size_degrees: float = 0.0001
    min_samples: int = 1
    min_metrics: int = 1
    outlier_removal: bool = False
    outlier_multiplier: float = 1.5
    calculation_method: CentralTendency = CentralTendency.MEDIAN
    percentile_value: float = 50.0
    category_field: str = "provider"
    max_workers: Optional[int] = None

    @field_validator("grid_size_degrees")
    @classmethod
    def _positive_grid(cls, value: float) -> float:
        if not math.isfinite(value) or value < MIN_GRID_SIZE_DEGREES:
            raise ValueError(f"grid_size_degrees must be at least {MIN_GRID_SIZE_DEGREES}")
        return value

    @field_validator("min_samples", "min_metrics")
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @field_validator("outlier_multiplier")
    @classmethod
    def _non_negative_multiplier(cls, value: float) -> float:
        if not math.isfinite(value) or value < 0:
            raise ValueError("outlier_multiplier must be a non-negative number")
        return value

    @field_validator("percentile_value")
    @classmethod
    def _percentile_range(cls, value: float) -> float:
        if not 0.0 <= value <= 100.0:
            raise ValueError("percentile_value must be within [0, 100]")
        return value

    @field_validator("max_workers")
    @classmethod
    def _positive_workers(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 1:
            raise ValueError("max_workers must be at least 1")
        return value


def build_options(options: Union[CompositeOptions, Mapping[str, Any], None] = None) -> CompositeOptions:
    if isinstance(options, CompositeOptions):
        return options
    try:
        return CompositeOptions(**dict(options or {}))
    except ValidationError as exc:
        raise InvalidConfigurationError(str(exc)) from exc


def validate_weights(
    weights: Optional[Mapping[str, float]],
    domains: Mapping[str, MetricDomain],
) -> Dict[str, float]:
    """Return the positive weights, rejecting negative, non-finite or unknown entries."""

    source = DEFAULT_COMPOSITE_WEIGHTS if weights is None else weights
    active: Dict[str, float] = {}
    for metric, raw in source.items():
        try:
            weight = float(raw)
        except (TypeError, ValueError) as exc:
            raise InvalidConfigurationError(f"Weight for '{metric}' is not numeric") from exc
        if not math.isfinite(weight) or weight < 0:
            raise InvalidConfigurationError(f"Weight for '{metric}' must be a non-negative number, got {raw}")
        if metric not in domains:
            raise InvalidConfigurationError(f"No normalization domain for metric '{metric}'")
        if weight > 0:
            active[metric] = weight
    if not active:
        raise InvalidConfigurationError("At least one metric weight must be positive")
    return active


def normalize_metric(value: float, domain: MetricDomain) -> float:
    """Scale ``value`` into ``[0, 1]`` where 1 is always the better end."""

    normalized = (value - domain.min) / (domain.max - domain.min)
    normalized = max(0.0, min(1.0, normalized))
    return normalized if domain.higher_is_better else 1.0 - normalized


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def grid_zone_key(lat: float, lng: float, grid_size_degrees: float) -> str:
    """Key of the rounded grid cell holding ``(lat, lng)``."""

    grid_lat = _round_half_up(lat / grid_size_degrees) * grid_size_degrees
    grid_lng = _round_half_up(lng / grid_size_degrees) * grid_size_degrees
    return f"{grid_lat:.6f},{grid_lng:.6f}"


def _polygon_zone_key(point: Point, zones: Sequence[PolygonZone]) -> Optional[ZoneKey]:
    for zone in zones:
        if contains(point.lat, point.lng, zone.ring, zone.bbox):
            return zone.id
    return None


def partition_points(
    points: Sequence[Point],
    options: CompositeOptions,
    zones: Optional[Sequence[PolygonZone]] = None,
) -> Dict[ZoneKey, List[Point]]:
    """Assign points to zones, keeping first-seen zone order.

    With polygon zones a point joins the first polygon containing it; points
    outside every polygon are not scored. An empty zone list scores nothing.
    """

    partitions: Dict[ZoneKey, List[Point]] = {}
    for point in points:
        if zones is not None:
            key = _polygon_zone_key(point, zones)
            if key is None:
                continue
        else:
            key = grid_zone_key(point.lat, point.lng, options.grid_size_degrees)
        partitions.setdefault(key, []).append(point)
    return partitions


def _central_value(values: List[float], options: CompositeOptions) -> float:
    if options.calculation_method is CentralTendency.PERCENTILE:
        return percentile(values, options.percentile_value)
    return median(values)


def score_category(
    category: str,
    samples: Sequence[Point],
    weights: Mapping[str, float],
    domains: Mapping[str, MetricDomain],
    options: CompositeOptions,
) -> Optional[CompositeScore]:
    """Composite score of one category in one zone, or ``None`` if it cannot compete."""

    if len(samples) < options.min_samples:
        return None

    normalized: Dict[str, float] = {}
    central_values: Dict[str, float] = {}
    for metric in weights:
        values = clean_values(sample.metric(metric) for sample in samples)
        if options.outlier_removal:
            values = remove_outliers_iqr(values, options.outlier_multiplier)
        if not values:
            continue
        central = _central_value(values, options)
        central_values[metric] = central
        normalized[metric] = normalize_metric(central, domains[metric])

    if len(normalized) < options.min_metrics:
        return None

    weight_total = sum(weights[metric] for metric in normalized)
    score = sum(normalized[metric] * weights[metric] for metric in normalized) / weight_total
    return CompositeScore(
        category=category,
        normalized_metrics=normalized,
        score=score,
        sample_count=len(samples),
        central_values=central_values,
    )


def _group_by_category(samples: Sequence[Point], field: str, colors: CategoryColorMap) -> Dict[str, List[Point]]:
    groups: Dict[str, List[Point]] = {}
    for sample in samples:
        raw = sample.category(field)
        if not raw:
            continue
        groups.setdefault(colors.canonical(raw), []).append(sample)
    return groups


def _rank(scores: List[CompositeScore]) -> List[CompositeScore]:
    # Python's sort is stable, so equal score and count keep first-seen order.
    return sorted(scores, key=lambda item: (-item.score, -item.sample_count))


def _score_zone(
    samples: Sequence[Point],
    weights: Mapping[str, float],
    domains: Mapping[str, MetricDomain],
    options: CompositeOptions,
    colors: CategoryColorMap,
) -> List[CompositeScore]:
    scores = []
    for category, group in _group_by_category(samples, options.category_field, colors).items():
        scored = score_category(category, group, weights, domains, options)
        if scored is not None:
            scores.append(scored)
    return _rank(scores)


def _primary_metric(weights: Mapping[str, float]) -> str:
    best_metric = None
    best_weight = -1.0
    for metric, weight in weights.items():
        if weight > best_weight:
            best_metric, best_weight = metric, weight
    return best_metric


def _best_value(winner: CompositeScore, weights: Mapping[str, float]) -> float:
    """Raw central value of the heaviest weighted metric the winner reported."""

    present = {metric: weights[metric] for metric in winner.central_values}
    return winner.central_values[_primary_metric(present)]


def default_color_map() -> CategoryColorMap:
    return CategoryColorMap(colors=PROVIDER_COLORS, aliases=PROVIDER_ALIASES)


def calculate_best_network(
    points: Sequence[Point],
    weights: Optional[Mapping[str, float]] = None,
    options: Union[CompositeOptions, Mapping[str, Any], None] = None,
    domains: Optional[Mapping[str, Any]] = None,
    zones: Optional[Sequence[PolygonZone]] = None,
    color_map: Optional[CategoryColorMap] = None,
) -> CompositeResult:
    """Rank categories per zone and tally how many zones each one wins.

    Args:
        points: Drive-test samples.
        weights: Metric weight map; any positive scale, renormalized per zone
            over the metrics a category actually reported.
        options: ``CompositeOptions`` or a mapping of its fields.
        domains: ``{metric: {min, max, higher_is_better}}`` overrides.
        zones: Polygons to score instead of the rounded lat/lng grid.
        color_map: Category canonicalization and colors.

    Returns:
        Winners in zone order, win stats per category, every qualifying
        score per zone, and the zones where nothing qualified.
    """

    opts = build_options(options)
    domain_table = build_metric_domains(domains)
    active_weights = validate_weights(weights, domain_table)
    colors = color_map or default_color_map()

    partitions = partition_points(points, opts, zones)
    keys = list(partitions)

    if opts.max_workers and opts.max_workers > 1 and len(keys) > 1:
        with ThreadPoolExecutor(max_workers=opts.max_workers) as executor:
            ranked = list(
                executor.map(
                    lambda key: _score_zone(partitions[key], active_weights, domain_table, opts, colors),
                    keys,
                )
            )
    else:
        ranked = [_score_zone(partitions[key], active_weights, domain_table, opts, colors) for key in keys]

    zone_results: List[ZoneWinner] = []
    zone_scores: Dict[ZoneKey, List[CompositeScore]] = {}
    neutral_zones: List[ZoneKey] = []
    tallies: Dict[str, List[float]] = {}

    for key, scores in zip(keys, ranked):
        zone_scores[key] = scores
        if not scores:
            neutral_zones.append(key)
            continue
        winner = scores[0]
        tallies.setdefault(winner.category, []).append(winner.score)
        zone_results.append(
            ZoneWinner(
                zone_key=key,
                best_category=winner.category,
                best_value=_best_value(winner, active_weights),
                score=winner.score,
                sample_count=winner.sample_count,
                color=colors.color(winner.category),
            )
        )

    contested = len(zone_results)
    win_stats: Dict[str, WinStats] = {}
    for category, won in sorted(tallies.items(), key=lambda item: -len(item[1])):
        win_stats[category] = WinStats(
            zones_won=len(won),
            percentage=len(won) / contested * 100.0 if contested else 0.0,
            color=colors.color(category),
            avg_score=sum(won) / len(won),
        )

    logger.info(
        "Best network: %d zones scored, %d contested, %d neutral",
        len(keys),
        contested,
        len(neutral_zones),
    )
    return CompositeResult(
        zone_results=zone_results,
        win_stats=win_stats,
        zone_scores=zone_scores,
        neutral_zones=neutral_zones,
    )


def score_point(
    point: Point,
    weights: Mapping[str, float],
    domains: Mapping[str, MetricDomain],
) -> Optional[float]:
    """Weighted 0-100 score of a single sample over the metrics it carries."""

    weighted_sum = 0.0
    weight_total = 0.0
    for metric, weight in weights.items():
        value = point.metric(metric)
        if value is None:
            continue
        weighted_sum += normalize_metric(value, domains[metric]) * weight
        weight_total += weight
    if weight_total <= 0:
        return None
    return weighted_sum / weight_total * 100.0


def score_points(
    points: Sequence[Point],
    weights: Optional[Mapping[str, float]] = None,
    domains: Optional[Mapping[str, Any]] = None,
) -> List[Optional[float]]:
    domain_table = build_metric_domains(domains)
    active_weights = validate_weights(weights, domain_table)
    return [score_point(point, active_weights, domain_table) for point in points]


def flag_best_network(
    points: Sequence[Point],
    result: CompositeResult,
    options: Union[CompositeOptions, Mapping[str, Any], None] = None,
    zones: Optional[Sequence[PolygonZone]] = None,
    color_map: Optional[CategoryColorMap] = None,
) -> List[Dict[str, Any]]:
    """Mark each sample whose category won its zone.

    Winning samples take their category color; every other sample, including
    those in neutral zones, takes the neutral color.
    """

    opts = build_options(options)
    colors = color_map or default_color_map()
    winners = {winner.zone_key: winner for winner in result.zone_results}

    flagged = []
    for point in points:
        if zones is not None:
            key = _polygon_zone_key(point, zones)
        else:
            key = grid_zone_key(point.lat, point.lng, opts.grid_size_degrees)
        winner = winners.get(key)
        category = colors.canonical(point.category(opts.category_field))
        is_best = winner is not None and winner.best_category == category
        flagged.append(
            {
                "point": point,
                "zone_key": key,
                "is_best_network": is_best,
                "color": winner.color if is_best else NEUTRAL_ZONE_COLOR,
            }
        )
    return flagged


__all__ = [
    "CompositeOptions",
    "build_options",
    "calculate_best_network",
    "default_color_map",
    "flag_best_network",
    "grid_zone_key",
    "normalize_metric",
    "partition_points",
    "score_category",
    "score_point",
    "score_points",
    "validate_weights",
]
