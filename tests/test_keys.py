import string

import pytest

from coroot.keys import CHUNK_SIZE, MINUTE, chunk_jitter, query_hash, query_id


def test_query_hash_of_empty_query():
    assert query_hash("") == "d41d8cd98f00b204e9800998ecf8427e"


def test_query_hash_is_hex_digest():
    h = query_hash("rate(container_cpu_usage_seconds_total[1m])")
    assert len(h) == 32
    assert set(h) <= set(string.hexdigits.lower())


def test_query_hash_distinguishes_queries():
    assert query_hash("up") == query_hash("up")
    assert query_hash("up") != query_hash("up ")


@pytest.mark.parametrize("project_id", ["p1", "project", "abc123", ""])
@pytest.mark.parametrize("query", ["up", "node_load1", "sum(rate(x[1m]))"])
def test_jitter_is_whole_minutes_within_chunk(project_id, query):
    jitter = chunk_jitter(project_id, query_hash(query))
    assert 0 <= jitter < CHUNK_SIZE
    assert jitter % MINUTE == 0


def test_jitter_is_deterministic():
    queries = ["up", "node_load1", "sum(rate(x[1m]))"]
    first = [chunk_jitter("p1", query_hash(q)) for q in queries]
    second = [chunk_jitter("p1", query_hash(q)) for q in queries]
    assert first == second
    assert all(0 <= j < CHUNK_SIZE and j % MINUTE == 0 for j in first)


def test_query_id_combines_hash_and_jitter():
    hashed, jitter = query_id("p1", "up")
    assert hashed == query_hash("up")
    assert jitter == chunk_jitter("p1", hashed)


def test_jitter_varies_across_projects():
    h = query_hash("up")
    jitters = {chunk_jitter(f"project{i}", h) for i in range(50)}
    assert len(jitters) > 1