"""Splitting a time range to fetch into chunk-aligned intervals."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from .keys import CHUNK_SIZE

_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S"


def _truncate(t: int, d: int) -> int:
    if t >= 0:
        return t // d * d
    return -((-t) // d * d)


def _format_time(t: int) -> str:
    return datetime.fromtimestamp(t, tz=timezone.utc).strftime(_TIME_FORMAT)


@dataclass(frozen=True)
class Interval:
    """Points from `chunk_ts` to `to_ts` inclusive, stored in the chunk starting at `chunk_ts`."""

    chunk_ts: int
    to_ts: int
    chunk_duration: int

    def __str__(self) -> str:
        return f"({_format_time(self.chunk_ts)}, {self.chunk_duration}, {_format_time(self.to_ts)})"


def calc_intervals(
    last_saved: int, scrape_interval: int, now: int, jitter: int
) -> list[Interval]:
    """Return the chunk intervals to fetch after `last_saved` up to `now`.

    Chunk boundaries are shifted by `jitter`; the last point of each interval
    is one scrape interval before its end.
    """
    to = _truncate(now, scrape_interval)
    start = last_saved + scrape_interval
    if to < start:
        return []
    start = _truncate(start, scrape_interval)
    result = []
    chunk_ts = _truncate(start - jitter, CHUNK_SIZE) + jitter
    while chunk_ts < to:
        to_ts = min(chunk_ts + CHUNK_SIZE, to) - scrape_interval
        if chunk_ts <= to_ts:
            result.append(Interval(chunk_ts=chunk_ts, to_ts=to_ts, chunk_duration=CHUNK_SIZE))
        chunk_ts += CHUNK_SIZE
    return result