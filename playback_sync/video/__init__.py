"""Video backends: source resolution, payload extraction and player adapters.

Provides:
- Table-driven source URL resolution (adapter kind per backend)
- Progress extraction from heterogeneous player payloads
- Polling, callback and cross-origin message adapters
"""

from .extractor import EventKind, ProgressSample, classify_event, extract_progress
from .sources import (
    SOURCE_PATTERNS,
    AdapterKind,
    SourceMatch,
    SourcePattern,
    VideoBackend,
    build_embed_url,
    resolve_source,
)


__all__ = [
    "SOURCE_PATTERNS",
    "AdapterKind",
    "EventKind",
    "ProgressSample",
    "SourceMatch",
    "SourcePattern",
    "VideoBackend",
    "build_embed_url",
    "classify_event",
    "extract_progress",
    "resolve_source",
]
