"""Fixed-grid in-memory time series."""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Iterator

NAN = math.nan


def _format_value(value: float) -> str:
    if math.isnan(value):
        return "."
    if math.isfinite(value) and value.is_integer():
        return str(int(value))
    return repr(value)


class TimeSeries:
    """Values on a regular grid of `points_count` slots starting at `from_`, `step` seconds apart.

    Missing values are NaN.
    """

    __slots__ = ("from_", "step", "values")

    def __init__(
        self,
        from_: int,
        points_count: int,
        step: int,
        values: Iterable[float] | None = None,
    ) -> None:
        if step <= 0:
            raise ValueError(f"step must be positive, got {step}")
        if points_count < 0:
            raise ValueError(f"points count must not be negative, got {points_count}")
        self.from_ = from_
        self.step = step
        if values is None:
            self.values = [NAN] * points_count
        else:
            self.values = [float(v) for v in values]
            if len(self.values) != points_count:
                raise ValueError(
                    f"expected {points_count} values, got {len(self.values)}"
                )

    def _index(self, t: int) -> int | None:
        if t < self.from_:
            return None
        idx = (t - self.from_) // self.step
        if idx >= len(self.values):
            return None
        return idx

    def set(self, t: int, value: float) -> int:
        """Store `value` in the slot holding `t` and return that slot's time.

        Times outside the series are ignored and returned unchanged.
        """
        idx = self._index(t)
        if idx is None:
            return t
        self.values[idx] = float(value)
        return self.from_ + idx * self.step

    def get(self, t: int) -> float:
        """Return the value of the slot holding `t`, or NaN if there is none."""
        idx = self._index(t)
        if idx is None:
            return NAN
        return self.values[idx]

    def copy_from(self, other: TimeSeries | None) -> None:
        """Copy every defined point of `other` that falls within this series."""
        if other is None:
            return
        for t, v in other.points():
            if not math.isnan(v):
                self.set(t, v)

    def points(self) -> Iterator[tuple[int, float]]:
        """Yield (time, value) pairs for every slot."""
        for i, v in enumerate(self.values):
            yield self.from_ + i * self.step, v

    def last(self) -> float:
        """Return the value of the last slot, NaN if the series has no slots."""
        return self.values[-1] if self.values else NAN

    def is_empty(self) -> bool:
        """Return True if no slot holds a defined value."""
        return all(math.isnan(v) for v in self.values)

    def map(self, func: Callable[[int, float], float]) -> TimeSeries:
        """Return a new series with `func(t, v)` applied to every slot."""
        return TimeSeries(
            self.from_,
            len(self.values),
            self.step,
            (func(t, v) for t, v in self.points()),
        )

    def combine(
        self, other: TimeSeries | None, func: Callable[[int, float, float], float]
    ) -> TimeSeries:
        """Return a new series of `func(t, mine, theirs)` on this series' grid."""
        return TimeSeries(
            self.from_,
            len(self.values),
            self.step,
            (
                func(t, v, other.get(t) if other is not None else NAN)
                for t, v in self.points()
            ),
        )

    def __len__(self) -> int:
        return len(self.values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TimeSeries):
            return NotImplemented
        if (self.from_, self.step, len(self.values)) != (
            other.from_,
            other.step,
            len(other.values),
        ):
            return False
        return all(
            a == b or (math.isnan(a) and math.isnan(b))
            for a, b in zip(self.values, other.values)
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return self.__str__()

    def __str__(self) -> str:
        data = " ".join(_format_value(v) for v in self.values)
        return f"InMemoryTimeSeries({self.from_}, {len(self.values)}, {self.step}, [{data}])"