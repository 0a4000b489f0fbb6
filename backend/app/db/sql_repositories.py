"""SQL implementation of VersionStore."""

import asyncio
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime

from sqlalchemy import delete, select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.db.models import Document, DocumentVersion
from backend.app.models.content import content_from_json, content_to_json
from backend.app.models.documents import DocumentRecord, VersionRecord, VersionType
from backend.app.versions.errors import VersionConflictError


def _to_document(row: Document) -> DocumentRecord:
    return DocumentRecord(
        document_id=row.document_id,
        owner_id=row.owner_id,
        entity_type=row.entity_type,
        title=row.title,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_version(row: DocumentVersion) -> VersionRecord:
    return VersionRecord(
        version_id=row.version_id,
        document_id=row.document_id,
        version_number=row.version_number,
        content=content_from_json(row.full_content),
        version_type=VersionType(row.version_type),
        base_version_id=row.base_version_id,
        is_current=row.is_current,
        created_at=row.created_at,
    )


class SqlVersionStore:
    """SQL implementation of VersionStore.

    A transaction binds one session to the running task; store calls made
    inside it share that session and commit or roll back together. Calls made
    outside a transaction each run in their own short session.

    The current-flag compare-and-swap is a conditional UPDATE, backed by the
    partial unique index on (document_id) WHERE is_current.

    On SQLite every session may share one connection (in-memory databases use
    a StaticPool), so sessions are serialized with a lock.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._active: ContextVar[AsyncSession | None] = ContextVar(
            f"version_store_session_{id(self)}", default=None
        )
        bind = session_factory.kw.get("bind")
        self._lock = asyncio.Lock() if bind is not None and bind.dialect.name == "sqlite" else None

    @asynccontextmanager
    async def _exclusive(self) -> AsyncIterator[None]:
        if self._lock is None:
            yield
            return

        async with self._lock:
            yield

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Run a block in one database transaction."""
        if self._active.get() is not None:
            # Nested: join the outer transaction
            yield
            return

        async with self._exclusive():
            async with self._session_factory() as session:
                async with session.begin():
                    token = self._active.set(session)
                    try:
                        yield
                    finally:
                        self._active.reset(token)

    @asynccontextmanager
    async def _use(self) -> AsyncIterator[AsyncSession]:
        session = self._active.get()
        if session is not None:
            yield session
            return

        async with self._exclusive():
            async with self._session_factory() as session:
                async with session.begin():
                    yield session

    async def insert_document(self, document: DocumentRecord) -> DocumentRecord:
        """Insert a new document."""
        async with self._use() as session:
            session.add(
                Document(
                    document_id=document.document_id,
                    owner_id=document.owner_id,
                    entity_type=document.entity_type,
                    title=document.title,
                    created_at=document.created_at,
                    updated_at=document.updated_at,
                )
            )
            await session.flush()
        return document

    async def get_document(self, document_id: uuid.UUID) -> DocumentRecord | None:
        """Get document by ID."""
        async with self._use() as session:
            result = await session.execute(
                select(Document).where(Document.document_id == document_id)
            )
            row = result.scalar_one_or_none()
            return _to_document(row) if row is not None else None

    async def touch_document(
        self, document_id: uuid.UUID, *, title: str, updated_at: datetime
    ) -> None:
        """Refresh title and update timestamp."""
        async with self._use() as session:
            await session.execute(
                update(Document)
                .where(Document.document_id == document_id)
                .values(title=title, updated_at=updated_at)
            )

    async def get_version(self, version_id: uuid.UUID) -> VersionRecord | None:
        """Get version by ID."""
        async with self._use() as session:
            result = await session.execute(
                select(DocumentVersion).where(DocumentVersion.version_id == version_id)
            )
            row = result.scalar_one_or_none()
            return _to_version(row) if row is not None else None

    async def get_current_version(self, document_id: uuid.UUID) -> VersionRecord | None:
        """Get the current version of a document."""
        async with self._use() as session:
            result = await session.execute(
                select(DocumentVersion).where(
                    DocumentVersion.document_id == document_id,
                    DocumentVersion.is_current.is_(True),
                )
            )
            row = result.scalar_one_or_none()
            return _to_version(row) if row is not None else None

    async def list_versions(self, document_id: uuid.UUID) -> list[VersionRecord]:
        """List versions ordered by version number."""
        async with self._use() as session:
            result = await session.execute(
                select(DocumentVersion)
                .where(DocumentVersion.document_id == document_id)
                .order_by(DocumentVersion.version_number)
            )
            return [_to_version(row) for row in result.scalars().all()]

    async def insert_version(self, version: VersionRecord) -> VersionRecord:
        """Insert a version row.

        Raises:
            VersionConflictError: Version number taken or a current row already exists
        """
        async with self._use() as session:
            session.add(
                DocumentVersion(
                    version_id=version.version_id,
                    document_id=version.document_id,
                    version_number=version.version_number,
                    full_content=content_to_json(version.content),
                    version_type=version.version_type.value,
                    base_version_id=version.base_version_id,
                    is_current=version.is_current,
                    created_at=version.created_at,
                )
            )
            try:
                await session.flush()
            except IntegrityError as e:
                raise VersionConflictError(
                    f"Version {version.version_number} collides with an existing version"
                ) from e
        return version

    async def mark_not_current(self, version_id: uuid.UUID) -> bool:
        """Clear the current flag, only if it is still set."""
        async with self._use() as session:
            result = await session.execute(
                update(DocumentVersion)
                .where(
                    DocumentVersion.version_id == version_id,
                    DocumentVersion.is_current.is_(True),
                )
                .values(is_current=False)
            )
            return result.rowcount == 1

    async def mark_current(self, version_id: uuid.UUID) -> bool:
        """Set the current flag.

        Raises:
            VersionConflictError: Another version of the document is current
        """
        async with self._use() as session:
            try:
                result = await session.execute(
                    update(DocumentVersion)
                    .where(DocumentVersion.version_id == version_id)
                    .values(is_current=True)
                )
            except IntegrityError as e:
                raise VersionConflictError("Document already has a current version") from e
            return result.rowcount == 1

    async def delete_versions_from(self, version_id: uuid.UUID) -> int:
        """Delete a version and all later versions of its document."""
        async with self._use() as session:
            result = await session.execute(
                select(DocumentVersion.document_id, DocumentVersion.version_number).where(
                    DocumentVersion.version_id == version_id
                )
            )
            row = result.one_or_none()
            if row is None:
                return 0

            deleted = await session.execute(
                delete(DocumentVersion).where(
                    DocumentVersion.document_id == row.document_id,
                    DocumentVersion.version_number >= row.version_number,
                )
            )
            return deleted.rowcount

    async def ping(self) -> None:
        """Run a trivial query."""
        async with self._use() as session:
            await session.execute(text("SELECT 1"))
