"""Index of the chunk files of the metric cache, with compaction and garbage collection."""

from __future__ import annotations

import logging
import os
import shutil
import threading
from collections.abc import Collection, Iterable

from .chunk import Meta, MetricValues, read, read_meta, write
from .compaction import CompactionTask, calc_compaction_tasks
from .config import Compactor
from .state import StateStore

log = logging.getLogger(__name__)


class ChunkStore:
    """Chunk files under `path`/<project id>/, indexed by project and query hash."""

    def __init__(self, path: str | os.PathLike[str], state: StateStore | None = None) -> None:
        self._path = os.fspath(path)
        self._state = state
        self._lock = threading.RLock()
        self._by_project: dict[str, dict[str, dict[str, Meta]]] = {}
        os.makedirs(self._path, exist_ok=True)
        self._load_index()

    def _load_index(self) -> None:
        with os.scandir(self._path) as entries:
            project_dirs = [e for e in entries if e.is_dir()]
        for entry in project_dirs:
            by_query: dict[str, dict[str, Meta]] = {}
            self._by_project[entry.name] = by_query
            with os.scandir(entry.path) as files:
                names = [f.name for f in files]
            for name in names:
                if not name.endswith(".db"):
                    continue
                parts = name.split("-")
                if len(parts) != 5:
                    continue
                chunk_path = os.path.join(entry.path, name)
                try:
                    meta = read_meta(chunk_path)
                except (OSError, ValueError) as exc:
                    log.error("failed to read chunk %s: %s", chunk_path, exc)
                    continue
                by_query.setdefault(parts[1], {})[meta.path] = meta

    def write_chunk(
        self,
        project_id: str,
        query_hash: str,
        from_: int,
        points_count: int,
        step: int,
        finalized: bool,
        metrics: Iterable[MetricValues],
    ) -> Meta:
        """Write a chunk file for the query and record it in the index."""
        with self._lock:
            project_dir = os.path.join(self._path, project_id)
            by_query = self._by_project.get(project_id)
            if by_query is None:
                os.makedirs(project_dir, exist_ok=True)
                by_query = self._by_project.setdefault(project_id, {})
            name = f"{project_id}-{query_hash}-{from_}-{points_count}-{step}.db"
            chunk_path = os.path.join(project_dir, name)
            write(chunk_path, from_, points_count, step, finalized, metrics)
            meta = Meta(
                path=chunk_path,
                from_=from_,
                points_count=points_count,
                step=step,
                finalized=finalized,
            )
            by_query.setdefault(query_hash, {})[chunk_path] = meta
            return meta

    def chunks(self, project_id: str, query_hash: str) -> list[Meta]:
        """Return the query's chunks ordered by start time."""
        with self._lock:
            metas = self._by_project.get(project_id, {}).get(query_hash, {})
            return sorted(metas.values(), key=lambda m: (m.from_, m.path))

    def compaction_tasks(self, compactors: Iterable[Compactor]) -> list[CompactionTask]:
        """Plan the compactions that every compactor can run now."""
        compactors = list(compactors)
        tasks: list[CompactionTask] = []
        with self._lock:
            for project_id, queries in self._by_project.items():
                for query_hash, metas in queries.items():
                    for compactor in compactors:
                        tasks.extend(
                            calc_compaction_tasks(compactor, project_id, query_hash, dict(metas))
                        )
        return tasks

    def compact(self, task: CompactionTask) -> Meta:
        """Merge the task's source chunks into one finalized chunk and delete the sources."""
        if not task.src:
            raise ValueError("no src chunks")
        src = sorted(task.src, key=lambda m: m.from_)
        step = src[0].step
        points_count = task.compactor.dst_chunk_duration // step
        metrics: dict[int, MetricValues] = {}
        for meta in src:
            try:
                read(meta.path, task.dst_chunk, points_count, step, metrics)
            except (OSError, ValueError) as exc:
                raise ValueError(
                    f"failed to read metrics from src chunk while compaction: {exc}"
                ) from exc

        with self._lock:
            result = self.write_chunk(
                task.project_id, task.query_hash, task.dst_chunk,
                points_count, step, True, metrics.values(),
            )
            metas = self._by_project.get(task.project_id, {}).get(task.query_hash)
            if metas is None:
                log.error("query data not found: %s-%s", task.project_id, task.query_hash)
                return result
            for meta in src:
                try:
                    os.remove(meta.path)
                except OSError as exc:
                    log.error("failed to delete chunk %s: %s", meta.path, exc)
                metas.pop(meta.path, None)
        log.info("%s done", task)
        return result

    def collect_garbage(self, active_projects: Collection[str], ttl: int, now: int) -> list[str]:
        """Remove projects not in `active_projects` and chunks that ended before `now - ttl`.

        Returns the paths of the chunk files deleted for age.
        """
        with self._lock:
            for project_id in list(self._by_project):
                if project_id in active_projects:
                    continue
                try:
                    self.remove_project(project_id)
                except OSError as exc:
                    log.error("failed to delete project %s: %s", project_id, exc)

            min_ts = now - ttl
            deleted: list[str] = []
            for queries in self._by_project.values():
                for query_hash in list(queries):
                    metas = queries[query_hash]
                    for chunk_path, meta in list(metas.items()):
                        if meta.from_ + meta.points_count * meta.step >= min_ts:
                            continue
                        try:
                            os.remove(chunk_path)
                        except OSError as exc:
                            log.error("failed to delete chunk %s: %s", chunk_path, exc)
                            continue
                        del metas[chunk_path]
                        deleted.append(chunk_path)
                    if not metas:
                        del queries[query_hash]
            return deleted

    def remove_project(self, project_id: str) -> None:
        """Delete the project's directory, its index entries and its query states."""
        with self._lock:
            shutil.rmtree(os.path.join(self._path, project_id), ignore_errors=False) if os.path.exists(
                os.path.join(self._path, project_id)
            ) else None
            if self._state is not None:
                self._state.delete_project(project_id)
            self._by_project.pop(project_id, None)