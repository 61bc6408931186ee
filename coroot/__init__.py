"""On-disk metric chunk cache with compaction and GC, query state, event detection, forms, alert payloads and search."""

__version__ = "0.1.0"