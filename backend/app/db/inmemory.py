"""In-memory implementation of VersionStore."""

import asyncio
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime

from backend.app.models.documents import DocumentRecord, VersionRecord
from backend.app.versions.errors import VersionConflictError


class InMemoryVersionStore:
    """In-memory implementation of VersionStore.

    Transactions are serialized by a lock and roll back by restoring a
    snapshot of both tables. Records are immutable, so shallow copies suffice.
    """

    def __init__(self) -> None:
        self._documents: dict[uuid.UUID, DocumentRecord] = {}
        self._versions: dict[uuid.UUID, VersionRecord] = {}
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Run a block atomically."""
        async with self._lock:
            documents = dict(self._documents)
            versions = dict(self._versions)
            try:
                yield
            except BaseException:
                self._documents = documents
                self._versions = versions
                raise

    async def insert_document(self, document: DocumentRecord) -> DocumentRecord:
        """Insert a new document."""
        self._documents[document.document_id] = document
        return document

    async def get_document(self, document_id: uuid.UUID) -> DocumentRecord | None:
        """Get document by ID."""
        return self._documents.get(document_id)

    async def touch_document(
        self, document_id: uuid.UUID, *, title: str, updated_at: datetime
    ) -> None:
        """Refresh title and update timestamp."""
        document = self._documents.get(document_id)
        if document is None:
            return
        self._documents[document_id] = replace(document, title=title, updated_at=updated_at)

    async def get_version(self, version_id: uuid.UUID) -> VersionRecord | None:
        """Get version by ID."""
        return self._versions.get(version_id)

    async def get_current_version(self, document_id: uuid.UUID) -> VersionRecord | None:
        """Get the current version of a document."""
        for version in self._versions.values():
            if version.document_id == document_id and version.is_current:
                return version
        return None

    async def list_versions(self, document_id: uuid.UUID) -> list[VersionRecord]:
        """List versions ordered by version number."""
        versions = [v for v in self._versions.values() if v.document_id == document_id]
        versions.sort(key=lambda v: v.version_number)
        return versions

    async def insert_version(self, version: VersionRecord) -> VersionRecord:
        """Insert a version, enforcing unique numbers and a single current flag."""
        for existing in self._versions.values():
            if existing.document_id != version.document_id:
                continue
            if existing.version_number == version.version_number:
                raise VersionConflictError(
                    f"Version {version.version_number} already exists for document"
                )
            if version.is_current and existing.is_current:
                raise VersionConflictError("Document already has a current version")

        self._versions[version.version_id] = version
        return version

    async def mark_not_current(self, version_id: uuid.UUID) -> bool:
        """Clear the current flag if set."""
        version = self._versions.get(version_id)
        if version is None or not version.is_current:
            return False
        self._versions[version_id] = replace(version, is_current=False)
        return True

    async def mark_current(self, version_id: uuid.UUID) -> bool:
        """Set the current flag."""
        version = self._versions.get(version_id)
        if version is None:
            return False

        for existing in self._versions.values():
            if (
                existing.document_id == version.document_id
                and existing.is_current
                and existing.version_id != version_id
            ):
                raise VersionConflictError("Document already has a current version")

        self._versions[version_id] = replace(version, is_current=True)
        return True

    async def delete_versions_from(self, version_id: uuid.UUID) -> int:
        """Delete a version and all later versions of its document."""
        version = self._versions.get(version_id)
        if version is None:
            return 0

        doomed = [
            v.version_id
            for v in self._versions.values()
            if v.document_id == version.document_id
            and v.version_number >= version.version_number
        ]
        for doomed_id in doomed:
            del self._versions[doomed_id]
        return len(doomed)

    async def ping(self) -> None:
        """Always reachable."""
        return None
