import os

import pytest

from coroot.chunk import MetricValues, read
from coroot.compaction import CompactionTask
from coroot.config import Compactor
from coroot.keys import chunk_jitter
from coroot.series import TimeSeries
from coroot.state import QueryState, StateStore
from coroot.store import ChunkStore

PROJECT = "proj"
QUERY_HASH = "abc"
COMPACTOR = Compactor(src_chunk_duration=3600, dst_chunk_duration=4 * 3600)


def _metric(from_, value, points=120, step=30):
    ts = TimeSeries(from_, points, step)
    ts.set(from_, value)
    return MetricValues(labels={"a": "b"}, labels_hash=1, values=ts)


def _base():
    return 10 * COMPACTOR.dst_chunk_duration + chunk_jitter(PROJECT, QUERY_HASH)


def test_write_chunk_records_meta(tmp_path):
    store = ChunkStore(str(tmp_path))
    meta = store.write_chunk(PROJECT, QUERY_HASH, 0, 120, 30, True, [_metric(0, 1.0)])
    assert os.path.exists(meta.path)
    assert os.path.basename(meta.path) == f"{PROJECT}-{QUERY_HASH}-0-120-30.db"
    assert store.chunks(PROJECT, QUERY_HASH) == [meta]
    assert store.chunks(PROJECT, "other") == []


def test_index_is_rebuilt_from_disk(tmp_path):
    store = ChunkStore(str(tmp_path))
    store.write_chunk(PROJECT, QUERY_HASH, 0, 120, 30, True, [_metric(0, 1.0)])
    store.write_chunk(PROJECT, QUERY_HASH, 3600, 120, 30, False, [_metric(3600, 2.0)])
    project_dir = tmp_path / PROJECT
    (project_dir / "notes.txt").write_text("x")
    (project_dir / "a-b-c-d-e.db").write_bytes(b"bad")
    reopened = ChunkStore(str(tmp_path))
    assert reopened.chunks(PROJECT, QUERY_HASH) == store.chunks(PROJECT, QUERY_HASH)
    assert reopened.chunks(PROJECT, "b") == []


def test_compaction_merges_chunks(tmp_path):
    store = ChunkStore(str(tmp_path))
    base = _base()
    src_paths = []
    for i in range(4):
        from_ = base + i * 3600
        meta = store.write_chunk(PROJECT, QUERY_HASH, from_, 120, 30, True, [_metric(from_, i + 1.0)])
        src_paths.append(meta.path)

    tasks = store.compaction_tasks([COMPACTOR])
    assert len(tasks) == 1
    result = store.compact(tasks[0])

    assert result.finalized
    assert result.from_ == base
    assert result.points_count * result.step == COMPACTOR.dst_chunk_duration
    assert store.chunks(PROJECT, QUERY_HASH) == [result]
    assert not any(os.path.exists(p) for p in src_paths)

    res = {}
    read(result.path, base, result.points_count, result.step, res)
    assert res[1].labels == {"a": "b"}
    assert [res[1].values.get(base + i * 3600) for i in range(4)] == [1.0, 2.0, 3.0, 4.0]


def test_compaction_needs_complete_group(tmp_path):
    store = ChunkStore(str(tmp_path))
    base = _base()
    for i in range(3):
        from_ = base + i * 3600
        store.write_chunk(PROJECT, QUERY_HASH, from_, 120, 30, True, [_metric(from_, 1.0)])
    assert store.compaction_tasks([COMPACTOR]) == []


def test_compact_without_sources_raises(tmp_path):
    store = ChunkStore(str(tmp_path))
    task = CompactionTask(project_id=PROJECT, query_hash=QUERY_HASH, dst_chunk=0, compactor=COMPACTOR)
    with pytest.raises(ValueError):
        store.compact(task)


def test_collect_garbage_removes_old_chunks(tmp_path):
    store = ChunkStore(str(tmp_path))
    old = store.write_chunk(PROJECT, QUERY_HASH, 0, 120, 30, True, [_metric(0, 1.0)])
    fresh = store.write_chunk(PROJECT, QUERY_HASH, 9000, 120, 30, True, [_metric(9000, 1.0)])
    deleted = store.collect_garbage({PROJECT}, ttl=100, now=10000)
    assert deleted == [old.path]
    assert not os.path.exists(old.path)
    assert store.chunks(PROJECT, QUERY_HASH) == [fresh]


def test_collect_garbage_removes_inactive_projects(tmp_path):
    state = StateStore()
    state.save(QueryState("gone", "q", 1))
    store = ChunkStore(str(tmp_path), state=state)
    store.write_chunk("gone", QUERY_HASH, 9000, 120, 30, True, [_metric(9000, 1.0)])
    kept = store.write_chunk(PROJECT, QUERY_HASH, 9000, 120, 30, True, [_metric(9000, 1.0)])
    store.collect_garbage({PROJECT}, ttl=100, now=10000)
    assert not (tmp_path / "gone").exists()
    assert store.chunks("gone", QUERY_HASH) == []
    assert store.chunks(PROJECT, QUERY_HASH) == [kept]
    assert state.load("gone") == {}
    state.close()


def test_remove_project(tmp_path):
    store = ChunkStore(str(tmp_path))
    store.write_chunk(PROJECT, QUERY_HASH, 0, 120, 30, True, [_metric(0, 1.0)])
    store.remove_project(PROJECT)
    assert not (tmp_path / PROJECT).exists()
    assert store.chunks(PROJECT, QUERY_HASH) == []
    assert ChunkStore(str(tmp_path)).chunks(PROJECT, QUERY_HASH) == []