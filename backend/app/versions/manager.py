"""Version lifecycle manager.

Owns the append-only version chain of each document. Per document the state is
either "no version" or "has current version N"; every transition that moves
the current pointer runs inside one store transaction and is guarded by an
optimistic freshness check (compare-and-swap on the current flag), so two
racing edits against the same version cannot both win.
"""

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from uuid import UUID

from backend.app.db.repositories import VersionStore
from backend.app.models.content import FullContent, RawText, with_title
from backend.app.models.documents import DocumentRecord, VersionRecord, VersionType
from backend.app.versions.errors import (
    VersionConflictError,
    VersionLifecycleError,
    VersionNotFoundError,
    VersionUnauthorizedError,
)

logger = logging.getLogger(__name__)


class VersionMetrics:
    """Interface for version transition metrics."""

    def inc_transition(self, transition: str, outcome: str) -> None:
        """Count a lifecycle transition attempt."""
        pass


class VersionLogger:
    """Interface for structured transition logging."""

    def log_transition(
        self,
        transition: str,
        outcome: str,
        *,
        document_id: UUID | None = None,
        version_id: UUID | None = None,
        version_number: int | None = None,
        error_code: str | None = None,
    ) -> None:
        """Log a lifecycle transition."""
        pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VersionLifecycleManager:
    """Creates, accepts, rejects and restores document versions."""

    def __init__(
        self,
        store: VersionStore,
        *,
        metrics: VersionMetrics | None = None,
        transition_logger: VersionLogger | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize manager.

        Args:
            store: Version store shared by all operations
            metrics: Transition metrics (optional, defaults to no-op)
            transition_logger: Structured logger (optional, defaults to no-op)
            clock: Timestamp source (default: timezone-aware UTC now)
        """
        self._store = store
        self._metrics = metrics or VersionMetrics()
        self._logger = transition_logger or VersionLogger()
        self._clock = clock or _utcnow

    async def _owned_document(self, document_id: UUID, user_id: UUID) -> DocumentRecord:
        document = await self._store.get_document(document_id)
        if document is None:
            raise VersionNotFoundError(f"Document {document_id} not found")
        if document.owner_id != user_id:
            raise VersionUnauthorizedError("Unauthorized document access")
        return document

    async def _owned_version(
        self, version_id: UUID, user_id: UUID
    ) -> tuple[VersionRecord, DocumentRecord]:
        version = await self._store.get_version(version_id)
        if version is None:
            raise VersionNotFoundError(f"Version {version_id} not found")
        document = await self._owned_document(version.document_id, user_id)
        return version, document

    def _record(
        self,
        transition: str,
        *,
        document_id: UUID | None = None,
        version: VersionRecord | None = None,
        error: VersionLifecycleError | None = None,
    ) -> None:
        outcome = "success" if error is None else error.code
        self._metrics.inc_transition(transition, outcome)
        self._logger.log_transition(
            transition,
            outcome,
            document_id=document_id,
            version_id=version.version_id if version else None,
            version_number=version.version_number if version else None,
            error_code=error.code if error else None,
        )

    async def create_document(
        self,
        owner_id: UUID,
        *,
        entity_type: str,
        title: str,
        content: FullContent | RawText | None = None,
    ) -> tuple[DocumentRecord, VersionRecord | None]:
        """Create a document, with its first version when content is given.

        Args:
            owner_id: Owning user
            entity_type: Document kind (e.g. LeanCanvas, Project)
            title: Display title, also used when content carries none
            content: Initial content. None leaves the document without a
                version until create_initial_version is called.

        Returns:
            (document, version 1 or None)
        """
        now = self._clock()
        document = DocumentRecord(
            document_id=uuid.uuid4(),
            owner_id=owner_id,
            entity_type=entity_type,
            title=title,
            created_at=now,
            updated_at=now,
        )

        async with self._store.transaction():
            await self._store.insert_document(document)
            version = None
            if content is not None:
                version = await self._insert_first(document, content, VersionType.user_edit)

        self._record("create_document", document_id=document.document_id, version=version)
        return document, version

    async def _insert_first(
        self,
        document: DocumentRecord,
        content: FullContent | RawText,
        version_type: VersionType,
    ) -> VersionRecord:
        if content.title is None:
            content = with_title(content, document.title)

        version = VersionRecord(
            version_id=uuid.uuid4(),
            document_id=document.document_id,
            version_number=1,
            content=content,
            version_type=version_type,
            base_version_id=None,
            is_current=True,
            created_at=self._clock(),
        )
        return await self._store.insert_version(version)

    async def create_initial_version(
        self,
        document_id: UUID,
        content: FullContent | RawText,
        *,
        user_id: UUID,
        version_type: VersionType = VersionType.user_edit,
    ) -> VersionRecord:
        """Create version 1 for a document that has none.

        Raises:
            VersionNotFoundError: Document missing
            VersionUnauthorizedError: Document owned by someone else
            VersionConflictError: A version already exists
        """
        try:
            document = await self._owned_document(document_id, user_id)

            async with self._store.transaction():
                if await self._store.get_current_version(document_id) is not None:
                    raise VersionConflictError("Document already has a current version")
                version = await self._insert_first(document, content, version_type)
                if version.content.title:
                    await self._store.touch_document(
                        document_id, title=version.content.title, updated_at=self._clock()
                    )
        except VersionLifecycleError as e:
            self._record("create_initial", document_id=document_id, error=e)
            raise

        self._record("create_initial", document_id=document_id, version=version)
        return version

    async def create_edit_version(
        self,
        document_id: UUID,
        new_content: FullContent | RawText,
        edit_type: VersionType,
        *,
        user_id: UUID,
        base_version_id: UUID | None = None,
    ) -> VersionRecord:
        """Append version N+1 on top of current version N.

        Args:
            document_id: Document to edit
            new_content: Full content of the new version. A missing title is
                carried forward from version N.
            edit_type: user_edit, ai_edit or restore
            user_id: Acting user
            base_version_id: Version the edit was computed against. Defaults
                to whatever is current when the call starts.

        Raises:
            VersionNotFoundError: Document missing or without a current version
            VersionUnauthorizedError: Document owned by someone else
            VersionConflictError: The base version is no longer current
        """
        try:
            version = await self._append(
                document_id, new_content, edit_type, user_id=user_id, base_version_id=base_version_id
            )
        except VersionLifecycleError as e:
            self._record("create_edit", document_id=document_id, error=e)
            raise

        self._record("create_edit", document_id=document_id, version=version)
        return version

    async def _append(
        self,
        document_id: UUID,
        new_content: FullContent | RawText,
        edit_type: VersionType,
        *,
        user_id: UUID,
        base_version_id: UUID | None,
    ) -> VersionRecord:
        await self._owned_document(document_id, user_id)

        base = await self._store.get_current_version(document_id)
        if base is None:
            raise VersionNotFoundError(f"Document {document_id} has no current version")
        if base_version_id is not None and base_version_id != base.version_id:
            raise VersionConflictError("Document was modified since the edit was prepared")

        if new_content.title is None:
            new_content = with_title(new_content, base.content.title)

        async with self._store.transaction():
            fresh = await self._store.get_current_version(document_id)
            if fresh is None or fresh.version_id != base.version_id:
                raise VersionConflictError("Document was modified concurrently")

            if not await self._store.mark_not_current(base.version_id):
                raise VersionConflictError("Document was modified concurrently")

            version = VersionRecord(
                version_id=uuid.uuid4(),
                document_id=document_id,
                version_number=base.version_number + 1,
                content=new_content,
                version_type=edit_type,
                base_version_id=base.version_id,
                is_current=True,
                created_at=self._clock(),
            )
            await self._store.insert_version(version)

            if new_content.title:
                await self._store.touch_document(
                    document_id, title=new_content.title, updated_at=version.created_at
                )

        logger.info(
            "Created version %d of document %s (%s)",
            version.version_number,
            document_id,
            edit_type.value,
        )
        return version

    async def accept_version(self, version_id: UUID, user_id: UUID) -> VersionRecord:
        """Confirm an AI edit. The version is already applied, so nothing changes.

        Raises:
            VersionNotFoundError: Version or document missing
            VersionUnauthorizedError: Document owned by someone else
        """
        try:
            version, document = await self._owned_version(version_id, user_id)
        except VersionLifecycleError as e:
            self._record("accept", error=e)
            raise

        self._record("accept", document_id=document.document_id, version=version)
        return version

    async def reject_version(self, version_id: UUID, user_id: UUID) -> UUID:
        """Roll back the current version to the one it was based on.

        The rejected version and anything numbered after it are deleted and
        the base version becomes current again.

        Returns:
            ID of the restored (now current) version

        Raises:
            VersionNotFoundError: Version missing, not current, or without a base
            VersionUnauthorizedError: Document owned by someone else
        """
        document_id: UUID | None = None
        try:
            _, document = await self._owned_version(version_id, user_id)
            document_id = document.document_id

            async with self._store.transaction():
                target = await self._store.get_version(version_id)
                if target is None or not target.is_current:
                    raise VersionNotFoundError("Only the current version can be rejected")
                if target.base_version_id is None:
                    raise VersionNotFoundError("Cannot reject version with no base version")

                base = await self._store.get_version(target.base_version_id)
                if base is None:
                    raise VersionNotFoundError("Base version not found")

                await self._store.delete_versions_from(target.version_id)
                if not await self._store.mark_current(base.version_id):
                    raise VersionNotFoundError("Base version not found")

                await self._store.touch_document(
                    document_id,
                    title=base.content.title or document.title,
                    updated_at=self._clock(),
                )
        except VersionLifecycleError as e:
            self._record("reject", document_id=document_id, error=e)
            raise

        self._record("reject", document_id=document_id, version=base)
        return base.version_id

    async def restore_version(self, version_id: UUID, user_id: UUID) -> VersionRecord:
        """Make an older version's content current again as a new restore version.

        Raises:
            VersionNotFoundError: Version missing or already current
            VersionUnauthorizedError: Document owned by someone else
            VersionConflictError: Current version changed during the restore
        """
        document_id: UUID | None = None
        try:
            source, document = await self._owned_version(version_id, user_id)
            document_id = document.document_id
            if source.is_current:
                raise VersionNotFoundError("Version is already current")

            version = await self._append(
                document_id,
                source.content,
                VersionType.restore,
                user_id=user_id,
                base_version_id=None,
            )
        except VersionLifecycleError as e:
            self._record("restore", document_id=document_id, error=e)
            raise

        self._record("restore", document_id=document_id, version=version)
        return version

    async def get_document(self, document_id: UUID, user_id: UUID) -> DocumentRecord:
        """Get an owned document."""
        return await self._owned_document(document_id, user_id)

    async def get_version(self, version_id: UUID, user_id: UUID) -> VersionRecord:
        """Get a version of an owned document."""
        version, _ = await self._owned_version(version_id, user_id)
        return version

    async def find_current_version(
        self, document_id: UUID, user_id: UUID
    ) -> VersionRecord | None:
        """Get the current version of an owned document, None if it has none yet."""
        await self._owned_document(document_id, user_id)
        return await self._store.get_current_version(document_id)

    async def get_current_version(self, document_id: UUID, user_id: UUID) -> VersionRecord:
        """Get the current version of an owned document.

        Raises:
            VersionNotFoundError: Document missing or without versions
            VersionUnauthorizedError: Document owned by someone else
        """
        version = await self.find_current_version(document_id, user_id)
        if version is None:
            raise VersionNotFoundError(f"Document {document_id} has no current version")
        return version

    async def list_versions(self, document_id: UUID, user_id: UUID) -> list[VersionRecord]:
        """List versions of an owned document, oldest first."""
        await self._owned_document(document_id, user_id)
        return await self._store.list_versions(document_id)
