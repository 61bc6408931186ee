# coroot

Building blocks for a metrics-driven monitoring service. Times are Unix
seconds and durations are whole seconds throughout.

## What is in the package

- `coroot.series.TimeSeries` — values on a regular grid (`from_`, points
  count, `step`), missing values as NaN. Supports `set`, `get`, `copy_from`,
  `points`, `last`, `is_empty`, `map` and `combine`.
- `coroot.compression` — `compress` / `decompress`: an LZ4 block preceded by
  its uncompressed length as a 4-byte little-endian integer.
  `decompress` raises `ValueError` on malformed input.
- `coroot.chunk` — chunk files holding many metrics over one fixed-step window.
  `write` writes atomically (temporary file, then rename), `read_meta` returns
  the header as a `Meta`, and `read` loads a time window into a dict of
  `MetricValues` keyed by labels hash, updating metrics already present.
- `coroot.config` — `Config`, `GcConfig`, `CompactionConfig`, `Compactor`,
  and `default_compaction_config()` (1h → 4h and 4h → 12h chunks).
- `coroot.keys` — `query_hash` (hex MD5), `chunk_jitter` (a whole-minute
  offset below one hour, from an FNV-1a hash of project and query) and
  `query_id`, which returns both.
- `coroot.intervals` — `calc_intervals(last_saved, scrape_interval, now, jitter)`
  splits the time to fetch into jittered, hour-long chunk `Interval`s.
- `coroot.state.StateStore` — per-project, per-query download state
  (`QueryState`) in SQLite: `save`, `load`, `delete`, `delete_project`,
  `min_update_time`, and `status`, which returns a `CacheStatus` with the
  first recorded error and the maximum and average lag. Usable as a context
  manager.
- `coroot.compaction` — `calc_compaction_tasks` groups finalized chunks of a
  compactor's source size into `CompactionTask`s, keeping only groups that
  completely fill a destination chunk.
- `coroot.store.ChunkStore` — an index of chunk files under
  `<path>/<project id>/`, rebuilt from disk on start. `write_chunk`, `chunks`,
  `compaction_tasks`, `compact` (merges sources into one finalized chunk and
  deletes them), `collect_garbage(active_projects, ttl, now)` (drops unknown
  projects and expired chunks, returning the deleted paths) and
  `remove_project` (also clears the project's states when a `StateStore` was
  given).
- `coroot.events` — `calc_rollouts`, `calc_up_down_events`,
  `calc_cluster_switchovers` and `calc_app_events` detect `Event`s of type
  `EventType`; `annotate` groups events within three steps into chart
  `Annotation`s with a message and an icon.
- `coroot.charts` — `cpu_by_mode_series`, `histogram_series` (cumulative
  buckets to per-range series, red above the objective) and `consumers`
  (usage summed per application), producing `Series`.
- `coroot.forms` — form classes with `from_dict` and `valid`, `glob_validate`,
  and `read_and_validate(form_class, body)`, which raises `InvalidForm` for a
  form of the wrong shape or one that fails validation.
- `coroot.slack` — `build_alert_message(base_url, channel, alert)` returns the
  `chat.postMessage` payload for an open or resolved incident (`Alert`,
  `Report`, `CheckResult`, `Status`).
- `coroot.search.render(application_ids, node_names)` — a `SearchView` with
  applications sorted by name and nodes sorted, and `to_dict()` for its JSON
  shape.

## Installation

```
pip install .
```

Run the test suite with:

```
pip install .[test]
pytest
```

## Examples

Writing and reading a chunk:

```python
from coroot.series import TimeSeries
from coroot.chunk import MetricValues, write, read, read_meta

ts = TimeSeries(0, 10, 30)
ts.set(180, 0.0)

write("chunk.db", 0, 10, 30, False, [
    MetricValues(labels={"a": "b"}, labels_hash=123, values=ts),
])

meta = read_meta("chunk.db")
dest = {}
read("chunk.db", 0, 8, 30, dest)
print(meta.points_count, dest[123].labels)   # 10 {'a': 'b'}
print(dest[123].values)                      # InMemoryTimeSeries(0, 8, 30, [. . . . . . 0 .])
```

Planning downloads for a query:

```python
from coroot.keys import query_id
from coroot.intervals import calc_intervals

query_hash, jitter = query_id("project-1", "up")
last_saved, now = 1605260951, 1605268151
for interval in calc_intervals(last_saved, 30, now, jitter):
    print(interval)
```

Compacting and collecting garbage:

```python
from coroot.config import default_compaction_config
from coroot.state import StateStore
from coroot.store import ChunkStore

with StateStore("state.sqlite") as state:
    store = ChunkStore("cache", state)
    for task in store.compaction_tasks(default_compaction_config().compactors):
        store.compact(task)
    store.collect_garbage({"project-1"}, ttl=7 * 24 * 3600, now=1605268151)
```

## What the package does not do

- It does not query a metrics server; the caller fetches data and hands it to
  `ChunkStore.write_chunk`.
- It runs no background workers: compaction, garbage collection and state
  updates happen only when the caller invokes them, and the intervals and
  counts in `Config` are not acted on by the package itself.
- It does not post to Slack; `build_alert_message` only builds the payload.
- It has no HTTP API, web interface or command-line program.