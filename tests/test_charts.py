import math

from coroot.charts import (
    HistogramBucket,
    Series,
    consumers,
    cpu_by_mode_series,
    histogram_series,
)
from coroot.series import TimeSeries


def series(*values):
    return TimeSeries(0, len(values), 30, values)


def test_cpu_modes_in_fixed_order_with_colors():
    modes = {
        "steal": series(1),
        "bogus": series(2),
        "user": series(3),
        "system": series(4),
    }
    result = cpu_by_mode_series(modes)
    assert [(s.name, s.color) for s in result] == [
        ("user", "blue"),
        ("system", "red"),
        ("steal", "black"),
    ]
    assert result[0].data is modes["user"]


def test_cpu_modes_empty():
    assert cpu_by_mode_series({}) == []


def test_histogram_empty():
    assert histogram_series([], 0.5) == []


def test_histogram_legends_and_colors():
    buckets = [
        HistogramBucket(0.1, series(1, 2)),
        HistogramBucket(0.5, series(3, 5)),
        HistogramBucket(1.0, series(4, 9)),
    ]
    result = histogram_series(buckets, 0.5)
    assert [s.name for s in result] == ["0-100 ms", "0.1-0.5 s", "0.5-1 s"]
    assert [s.color for s in result] == ["green", "green", "red"]


def test_histogram_small_buckets_in_milliseconds():
    buckets = [HistogramBucket(0.005, series(1)), HistogramBucket(0.01, series(2))]
    assert [s.name for s in histogram_series(buckets, 0)] == ["0-5 ms", "5-10 ms"]


def test_histogram_without_objective_is_green():
    buckets = [HistogramBucket(0.1, series(1)), HistogramBucket(10, series(2))]
    assert {s.color for s in histogram_series(buckets, 0)} == {"green"}


def test_histogram_ranges_add_up_to_last_bucket():
    buckets = [
        HistogramBucket(0.1, series(1, 2, 0)),
        HistogramBucket(0.5, series(3, 5, 4)),
        HistogramBucket(1.0, series(4, 9, 7)),
    ]
    result = histogram_series(buckets, 0.5)
    assert result[0].data is buckets[0].series
    for idx in range(3):
        total = sum(s.data.values[idx] for s in result)
        assert total == buckets[-1].series.values[idx]


def test_consumers_sum_per_application():
    usage = consumers(
        [
            ("app-a", series(1, math.nan, math.nan)),
            ("app-b", series(5, 5, 5)),
            ("app-a", series(2, 3, math.nan)),
            ("app-b", None),
        ]
    )
    assert set(usage) == {"app-a", "app-b"}
    assert usage["app-a"].values[:2] == [3.0, 3.0]
    assert math.isnan(usage["app-a"].values[2])
    assert usage["app-b"] == series(5, 5, 5)


def test_consumers_does_not_alias_input():
    original = series(1, 2)
    usage = consumers([("app", original), ("app", series(1, 1))])
    assert original == series(1, 2)
    assert usage["app"].last() == original.last() + 1


def test_series_defaults():
    s = Series(name="used", data=None)
    assert s.color == ""
    assert s.data is None
    assert s.name == "used"