"""On-disk chunk files holding a fixed-grid window of many metrics."""

from __future__ import annotations

import contextlib
import json
import math
import os
import struct
import tempfile
from dataclasses import dataclass, field
from collections.abc import Iterable, MutableMapping, Sequence

from .compression import compress, decompress
from .series import TimeSeries

VERSION = 1

# version, from, points count, step, finalized, compressed values size
_HEADER = struct.Struct("<BqIqBI")
# labels hash, offset of the labels within the meta section, size of the labels
_METRIC = struct.Struct("<QII")


@dataclass
class Meta:
    """What a chunk file's header says about it."""

    path: str
    from_: int
    points_count: int
    step: int
    finalized: bool


@dataclass
class MetricValues:
    """One metric: its labels, their hash and its values."""

    labels: dict[str, str] = field(default_factory=dict)
    labels_hash: int = 0
    values: TimeSeries | None = None


def _marshal(
    from_: int, points_count: int, step: int, metrics: Iterable[MetricValues]
) -> tuple[bytes, bytes]:
    values = bytearray()
    meta = bytearray()
    floats = struct.Struct(f"<{points_count}d")
    offset = 0
    for m in metrics:
        labels = json.dumps(
            m.labels, sort_keys=True, separators=(",", ":"), ensure_ascii=False
        ).encode()
        values += _METRIC.pack(m.labels_hash, offset, len(labels))
        offset += len(labels)
        ts = TimeSeries(from_, points_count, step)
        ts.copy_from(m.values)
        values += floats.pack(*ts.values)
        meta += labels
    return compress(bytes(values)), compress(bytes(meta))


def write(
    path: str | os.PathLike[str],
    from_: int,
    points_count: int,
    step: int,
    finalized: bool,
    metrics: Iterable[MetricValues],
) -> None:
    """Write a chunk atomically: into a temporary file, then renamed over `path`."""
    path = os.fspath(path)
    directory, name = os.path.split(path)
    directory = directory or "."
    values, meta = _marshal(from_, points_count, step, metrics)
    header = _HEADER.pack(VERSION, from_, points_count, step, bool(finalized), len(values))
    fd, tmp = tempfile.mkstemp(dir=directory, prefix=name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(header)
            f.write(values)
            f.write(meta)
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp)
        raise


def _unpack_header(raw: bytes) -> tuple[int, int, int, int, bool, int]:
    if len(raw) < _HEADER.size:
        raise ValueError("chunk header is truncated")
    version, from_, points_count, step, finalized, values_size = _HEADER.unpack_from(raw)
    return version, from_, points_count, step, bool(finalized), values_size


def read_meta(path: str | os.PathLike[str]) -> Meta:
    """Read a chunk's header."""
    path = os.fspath(path)
    with open(path, "rb") as f:
        raw = f.read(_HEADER.size)
    _, from_, points_count, step, finalized, _ = _unpack_header(raw)
    return Meta(path=path, from_=from_, points_count=points_count, step=step, finalized=finalized)


def _copy_window(
    target: TimeSeries | None,
    data: Sequence[float],
    chunk_from: int,
    chunk_step: int,
    from_: int,
    to: int,
    points_count: int,
    step: int,
    skip_missing: bool,
) -> TimeSeries | None:
    t_next = 0
    for i, v in enumerate(data):
        t = chunk_from + i * chunk_step
        if t < from_ or t > to or t < t_next:
            continue
        if skip_missing and math.isnan(v):
            continue
        if target is None:
            target = TimeSeries(from_, points_count, step)
        t_next = target.set(t, v) + step
    return target


def _parse_labels(raw: bytes) -> dict[str, str]:
    try:
        labels = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValueError(f"corrupt labels: {exc}") from exc
    if not isinstance(labels, dict) or not all(isinstance(v, str) for v in labels.values()):
        raise ValueError("labels must be an object of strings")
    return labels


def read(
    path: str | os.PathLike[str],
    from_: int,
    points_count: int,
    step: int,
    dest: MutableMapping[int, MetricValues],
) -> None:
    """Read the window [from_, from_ + (points_count-1)*step] of a chunk into `dest`.

    Metrics already in `dest` (keyed by labels hash) get their values updated;
    new metrics are added only if they have a defined value in the window.
    """
    with open(os.fspath(path), "rb") as f:
        raw = f.read()
    _, chunk_from, chunk_points, chunk_step, _, values_size = _unpack_header(raw)
    body = raw[_HEADER.size:]
    if len(body) < values_size:
        raise ValueError("chunk values section is truncated")
    values = decompress(body[:values_size])
    meta_section = body[values_size:]
    meta: bytes | None = None

    floats = struct.Struct(f"<{chunk_points}d")
    to = from_ + (points_count - 1) * step
    pos = 0
    while pos < len(values):
        if len(values) - pos < _METRIC.size + floats.size:
            raise ValueError("chunk metric record is truncated")
        labels_hash, meta_offset, meta_size = _METRIC.unpack_from(values, pos)
        pos += _METRIC.size
        data = floats.unpack_from(values, pos)
        pos += floats.size

        existing = dest.get(labels_hash)
        if existing is not None:
            existing.values = _copy_window(
                existing.values, data, chunk_from, chunk_step,
                from_, to, points_count, step, skip_missing=False,
            )
            continue

        series = _copy_window(
            None, data, chunk_from, chunk_step,
            from_, to, points_count, step, skip_missing=True,
        )
        if series is None:
            continue
        if meta is None:
            meta = decompress(meta_section)
        labels = _parse_labels(meta[meta_offset:meta_offset + meta_size])
        dest[labels_hash] = MetricValues(labels=labels, labels_hash=labels_hash, values=series)