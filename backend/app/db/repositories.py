"""Repository protocol interfaces for data access."""

from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Protocol
from uuid import UUID

from backend.app.models.documents import DocumentRecord, VersionRecord


class VersionStore(Protocol):
    """Store for documents and their version chains.

    Multi-step transitions run inside ``transaction()``; any exception raised
    inside it rolls back every write made within it.
    """

    def transaction(self) -> AbstractAsyncContextManager[None]:
        """Open an atomic unit of work."""
        ...

    async def insert_document(self, document: DocumentRecord) -> DocumentRecord:
        """Insert a new document.

        Args:
            document: Document record

        Returns:
            Stored document
        """
        ...

    async def get_document(self, document_id: UUID) -> DocumentRecord | None:
        """Get document by ID.

        Args:
            document_id: Document ID

        Returns:
            Document or None if not found
        """
        ...

    async def touch_document(self, document_id: UUID, *, title: str, updated_at: datetime) -> None:
        """Refresh a document's display title and update timestamp.

        Args:
            document_id: Document ID
            title: New display title
            updated_at: Update timestamp
        """
        ...

    async def get_version(self, version_id: UUID) -> VersionRecord | None:
        """Get version by ID.

        Args:
            version_id: Version ID

        Returns:
            Version or None if not found
        """
        ...

    async def get_current_version(self, document_id: UUID) -> VersionRecord | None:
        """Get the version flagged current for a document.

        Args:
            document_id: Document ID

        Returns:
            Current version or None before the first version exists
        """
        ...

    async def list_versions(self, document_id: UUID) -> list[VersionRecord]:
        """List a document's versions ordered by version number.

        Args:
            document_id: Document ID

        Returns:
            Versions, oldest first
        """
        ...

    async def insert_version(self, version: VersionRecord) -> VersionRecord:
        """Insert a version row.

        Args:
            version: Version record

        Returns:
            Stored version

        Raises:
            VersionConflictError: If the version number or current flag collides
        """
        ...

    async def mark_not_current(self, version_id: UUID) -> bool:
        """Clear the current flag, only if it is set.

        Args:
            version_id: Version ID

        Returns:
            True if the flag flipped, False if the version was not current
        """
        ...

    async def mark_current(self, version_id: UUID) -> bool:
        """Set the current flag.

        Args:
            version_id: Version ID

        Returns:
            True if the version exists and is now current
        """
        ...

    async def delete_versions_from(self, version_id: UUID) -> int:
        """Delete a version and every later version of the same document.

        Args:
            version_id: First version to delete

        Returns:
            Number of deleted versions
        """
        ...

    async def ping(self) -> None:
        """Check the store is reachable. Raises on failure."""
        ...
