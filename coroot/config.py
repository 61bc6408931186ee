"""Cache configuration."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class GcConfig:
    """Garbage collection: how often it runs and how long chunks live, in seconds."""

    interval: float
    ttl: float


@dataclass(frozen=True)
class Compactor:
    """Merges chunks spanning `src_chunk_duration` into chunks spanning `dst_chunk_duration` (seconds)."""

    src_chunk_duration: int
    dst_chunk_duration: int


@dataclass
class CompactionConfig:
    """Compaction schedule (interval in seconds), worker count and compactors."""

    interval: float = 10.0
    workers_num: int = 1
    compactors: list[Compactor] = field(default_factory=list)


@dataclass
class Config:
    """Where the cache lives and how it is maintained."""

    path: str
    gc: GcConfig | None = None
    compaction: CompactionConfig | None = None


def default_compaction_config() -> CompactionConfig:
    """Return a fresh copy of the default compaction configuration."""
    return CompactionConfig(
        interval=10.0,
        workers_num=1,
        compactors=[
            Compactor(src_chunk_duration=3600, dst_chunk_duration=4 * 3600),
            Compactor(src_chunk_duration=4 * 3600, dst_chunk_duration=12 * 3600),
        ],
    )