"""Statistical reducers over metric samples.

Reducers expect a non-empty sequence of finite floats; use ``clean_values``
to drop nulls and NaNs and check for emptiness before reducing.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from domain.coverage.models import AggregationMethod

from .exceptions import InvalidConfigurationError


def _as_array(values: Sequence[float]) -> np.ndarray:
    array = np.asarray(values, dtype=float)
    if array.size == 0:
        raise ValueError("Cannot aggregate an empty sample set")
    return array


def median(values: Sequence[float]) -> float:
    return float(np.median(_as_array(values)))


def mean(values: Sequence[float]) -> float:
    return float(np.mean(_as_array(values)))


def min_value(values: Sequence[float]) -> float:
    return float(np.min(_as_array(values)))


def max_value(values: Sequence[float]) -> float:
    return float(np.max(_as_array(values)))


def total(values: Sequence[float]) -> float:
    return float(np.sum(_as_array(values)))


def count(values: Sequence[float]) -> float:
    return float(_as_array(values).size)


def percentile(values: Sequence[float], q: float) -> float:
    """Linear-interpolated percentile, ``q`` in ``[0, 100]``."""

    if not 0.0 <= q <= 100.0:
        raise ValueError(f"Percentile must be within [0, 100], got {q}")
    return float(np.percentile(_as_array(values), q))


def quartiles(values: Sequence[float]) -> Tuple[float, float]:
    q1, q3 = np.percentile(_as_array(values), [25.0, 75.0])
    return float(q1), float(q3)


def remove_outliers_iqr(values: Sequence[float], multiplier: float = 1.5) -> List[float]:
    """Drop values outside ``[Q1 - k*IQR, Q3 + k*IQR]``.

    Fewer than four samples carry no meaningful spread and are returned as is.
    """

    if len(values) < 4:
        return list(values)
    q1, q3 = quartiles(values)
    spread = q3 - q1
    lower = q1 - multiplier * spread
    upper = q3 + multiplier * spread
    return [value for value in values if lower <= value <= upper]


_REDUCERS = {
    AggregationMethod.MEDIAN: median,
    AggregationMethod.MEAN: mean,
    AggregationMethod.MIN: min_value,
    AggregationMethod.MAX: max_value,
    AggregationMethod.SUM: total,
    AggregationMethod.COUNT: count,
}


def parse_method(method: Union[str, AggregationMethod, None]) -> AggregationMethod:
    """Resolve an aggregation tag; ``None`` means median."""

    if method is None:
        return AggregationMethod.MEDIAN
    if isinstance(method, AggregationMethod):
        return method
    try:
        return AggregationMethod(str(method).strip().lower())
    except ValueError as exc:
        raise InvalidConfigurationError(f"Unknown aggregation method '{method}'") from exc


def aggregate(values: Sequence[float], method: Union[str, AggregationMethod, None] = None) -> float:
    return _REDUCERS[parse_method(method)](values)


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def clean_values(raw: Iterable[Any]) -> List[float]:
    """Keep only finite numeric values."""

    cleaned = []
    for value in raw:
        number = _to_float(value)
        if number is not None:
            cleaned.append(number)
    return cleaned


def summarize(values: Sequence[float]) -> Dict[str, Optional[float]]:
    if not values:
        return {"mean": None, "median": None, "min": None, "max": None, "count": 0}
    return {
        "mean": mean(values),
        "median": median(values),
        "min": min_value(values),
        "max": max_value(values),
        "count": len(values),
    }


__all__ = [
    "aggregate",
    "clean_values",
    "count",
    "max_value",
    "mean",
    "median",
    "min_value",
    "parse_method",
    "percentile",
    "quartiles",
    "remove_outliers_iqr",
    "summarize",
    "total",
]
