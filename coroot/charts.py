"""Building chart series from node and application metrics."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from .series import TimeSeries

_CPU_MODE_COLORS = {
    "user": "blue",
    "nice": "lightGreen",
    "system": "red",
    "wait": "orange",
    "iowait": "orange",
    "steal": "black",
    "irq": "grey",
    "softirq": "yellow",
}


@dataclass
class Series:
    """A named, coloured line of a chart."""

    name: str
    data: TimeSeries | None
    color: str = ""


@dataclass(frozen=True)
class HistogramBucket:
    """A cumulative histogram bucket: requests served in `le` seconds or less."""

    le: float
    series: TimeSeries


def _nan_sum(t: int, acc: float, v: float) -> float:
    if math.isnan(acc):
        return v
    if math.isnan(v):
        return acc
    return acc + v


def _ftoa(value: float) -> str:
    text = f"{value:.6f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def cpu_by_mode_series(modes: Mapping[str, TimeSeries]) -> list[Series]:
    """Return CPU usage series for the known modes, in a fixed order with fixed colours."""
    return [
        Series(name=mode, data=modes[mode], color=color)
        for mode, color in _CPU_MODE_COLORS.items()
        if mode in modes
    ]


def histogram_series(
    histogram: Sequence[HistogramBucket], objective_bucket: float
) -> list[Series]:
    """Turn cumulative buckets into per-range series.

    Ranges above a positive objective bucket are red, the rest green.
    """
    result = []
    prev: HistogramBucket | None = None
    for bucket in histogram:
        color = "red" if objective_bucket > 0 and bucket.le > objective_bucket else "green"
        if prev is None:
            data = bucket.series
            legend = f"0-{bucket.le * 1000:.0f} ms"
        else:
            data = bucket.series.combine(prev.series, lambda t, a, b: a - b)
            if prev.le >= 0.1:
                legend = f"{_ftoa(prev.le)}-{_ftoa(bucket.le)} s"
            else:
                legend = f"{prev.le * 1000:.0f}-{bucket.le * 1000:.0f} ms"
        result.append(Series(name=legend, data=data, color=color))
        prev = bucket
    return result


def consumers(
    usage_by_instance: Iterable[tuple[str, TimeSeries | None]]
) -> dict[str, TimeSeries]:
    """Sum container usage per owning application, ignoring missing points."""
    usage: dict[str, TimeSeries] = {}
    for app_name, series in usage_by_instance:
        if series is None:
            continue
        current = usage.get(app_name)
        if current is None:
            usage[app_name] = series.map(lambda t, v: v)
        else:
            usage[app_name] = current.combine(series, _nan_sum)
    return usage