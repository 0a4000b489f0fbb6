"""Document and version records."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from backend.app.models.content import FullContent, RawText


class VersionType(str, Enum):
    """How a version came to exist."""

    user_edit = "user_edit"
    ai_edit = "ai_edit"
    restore = "restore"


@dataclass(frozen=True)
class DocumentRecord:
    """User-owned document. Content lives on its current version."""

    document_id: UUID
    owner_id: UUID
    entity_type: str
    title: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class VersionRecord:
    """Immutable content snapshot. Only is_current ever changes."""

    version_id: UUID
    document_id: UUID
    version_number: int
    content: FullContent | RawText
    version_type: VersionType
    base_version_id: UUID | None
    is_current: bool
    created_at: datetime
