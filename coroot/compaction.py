"""Planning the merge of small finalized chunks into larger ones."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from .chunk import Meta
from .config import Compactor
from .keys import chunk_jitter


def _truncate(t: int, d: int) -> int:
    if t >= 0:
        return t // d * d
    return -((-t) // d * d)


@dataclass
class CompactionTask:
    """Source chunks of one query that together fill the chunk starting at `dst_chunk`."""

    project_id: str
    query_hash: str
    dst_chunk: int
    compactor: Compactor
    src: list[Meta] = field(default_factory=list)

    def __str__(self) -> str:
        src = ",".join(str(s.from_) for s in self.src)
        return (
            f"compaction task {self.query_hash} [{src}]:{self.compactor.src_chunk_duration}"
            f" -> {self.dst_chunk}:{self.compactor.dst_chunk_duration}"
        )


def calc_compaction_tasks(
    compactor: Compactor,
    project_id: str,
    query_hash: str,
    chunks: Mapping[str, Meta],
) -> list[CompactionTask]:
    """Group finalized chunks of the compactor's source size by destination chunk.

    Only groups that completely fill a destination chunk become tasks.
    """
    jitter = chunk_jitter(project_id, query_hash)
    tasks: dict[int, CompactionTask] = {}
    for meta in chunks.values():
        if meta.points_count * meta.step != compactor.src_chunk_duration:
            continue
        if not meta.finalized:
            continue
        dst = _truncate(meta.from_ - jitter, compactor.dst_chunk_duration) + jitter
        task = tasks.get(dst)
        if task is None:
            task = CompactionTask(
                project_id=project_id,
                query_hash=query_hash,
                dst_chunk=dst,
                compactor=compactor,
            )
            tasks[dst] = task
        task.src.append(meta)
    needed = compactor.dst_chunk_duration // compactor.src_chunk_duration
    return [tasks[dst] for dst in sorted(tasks) if len(tasks[dst].src) == needed]