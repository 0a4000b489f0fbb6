"""Models package - re-exports for convenience."""

from backend.app.models.content import (
    DocumentContent,
    FullContent,
    RawText,
    content_from_json,
    content_from_object,
    content_to_json,
    with_title,
)
from backend.app.models.documents import DocumentRecord, VersionRecord, VersionType

__all__ = [
    "DocumentContent",
    "DocumentRecord",
    "FullContent",
    "RawText",
    "VersionRecord",
    "VersionType",
    "content_from_json",
    "content_from_object",
    "content_to_json",
    "with_title",
]
