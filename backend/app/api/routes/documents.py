"""Document and version endpoints.

Resource routes map lifecycle errors onto 403/404/409. The accept, reject and
restore actions answer ``{"success": ...}`` bodies, with 400 for domain
failures and 409 for conflicts.
"""

import logging
from datetime import datetime
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from backend.app.api.auth import get_current_context
from backend.app.api.deps import get_manager, get_processor
from backend.app.db.context import RequestContext
from backend.app.editing.processor import DocumentEditProcessor
from backend.app.editing.segments import parse_message_segments
from backend.app.models.content import FullContent, RawText, content_from_object, content_to_json
from backend.app.models.documents import DocumentRecord, VersionRecord, VersionType
from backend.app.versions.errors import VersionConflictError, VersionLifecycleError, VersionNotFoundError
from backend.app.versions.manager import VersionLifecycleManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["documents"])

_STATUS_BY_CODE = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "unauthorized": status.HTTP_403_FORBIDDEN,
    "conflict": status.HTTP_409_CONFLICT,
}


class CreateDocumentRequest(BaseModel):
    """Request body for POST /documents."""

    entity_type: str = Field(..., min_length=1, max_length=100, description="e.g. LeanCanvas")
    title: str = Field(..., min_length=1, max_length=200, description="Display title")
    content: dict[str, str] | str | None = Field(
        None, description="Initial fields or free text; omit to create an empty document"
    )


class CreateVersionRequest(BaseModel):
    """Request body for POST /documents/{id}/versions (manual edit)."""

    content: dict[str, str] | str
    title: str | None = Field(None, max_length=200)
    base_version_id: UUID | None = Field(
        None, description="Version the edit was made against; 409 if no longer current"
    )


class ProcessEditRequest(BaseModel):
    """Request body for POST /documents/{id}/edits."""

    response: str = Field(..., min_length=1, description="Full model response text")


class VersionResponse(BaseModel):
    """Version snapshot."""

    version_id: UUID
    document_id: UUID
    version_number: int
    version_type: VersionType
    base_version_id: UUID | None
    is_current: bool
    created_at: datetime
    content: dict[str, Any]


class DocumentResponse(BaseModel):
    """Document with its current version."""

    document_id: UUID
    owner_id: UUID
    entity_type: str
    title: str
    created_at: datetime
    updated_at: datetime
    current_version: VersionResponse | None = None


class VersionListResponse(BaseModel):
    """Response for GET /documents/{id}/versions."""

    versions: list[VersionResponse]


class SegmentResponse(BaseModel):
    """Display segment of a model response."""

    type: str
    content: str
    edit_state: str | None = None


class EditResponse(BaseModel):
    """Response for POST /documents/{id}/edits."""

    processed: bool
    document_updated: bool
    mode: str | None = None
    version_id: UUID | None = None
    version_number: int | None = None
    error: str | None = None
    warnings: list[str] = Field(default_factory=list)
    segments: list[SegmentResponse] = Field(default_factory=list)


class ActionResponse(BaseModel):
    """Response for accept / reject / restore."""

    success: bool
    restored_version_id: UUID | None = None
    version_id: UUID | None = None
    error: str | None = None


def _version_response(version: VersionRecord) -> VersionResponse:
    return VersionResponse(
        version_id=version.version_id,
        document_id=version.document_id,
        version_number=version.version_number,
        version_type=version.version_type,
        base_version_id=version.base_version_id,
        is_current=version.is_current,
        created_at=version.created_at,
        content=content_to_json(version.content),
    )


def _document_response(
    document: DocumentRecord, current: VersionRecord | None
) -> DocumentResponse:
    return DocumentResponse(
        document_id=document.document_id,
        owner_id=document.owner_id,
        entity_type=document.entity_type,
        title=document.title,
        created_at=document.created_at,
        updated_at=document.updated_at,
        current_version=_version_response(current) if current else None,
    )


def _to_content(raw: dict[str, str] | str, title: str | None) -> FullContent | RawText:
    if isinstance(raw, dict):
        return content_from_object(raw, title=title)
    return RawText(title=title, text=raw)


def _http_error(error: VersionLifecycleError) -> HTTPException:
    return HTTPException(
        status_code=_STATUS_BY_CODE.get(error.code, status.HTTP_400_BAD_REQUEST),
        detail=error.message,
    )


def _action_failure(error: Exception) -> JSONResponse:
    if isinstance(error, VersionConflictError):
        code = status.HTTP_409_CONFLICT
        message = error.message
    elif isinstance(error, VersionLifecycleError):
        code = status.HTTP_400_BAD_REQUEST
        message = error.message
    else:
        logger.exception("Version action failed unexpectedly")
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
        message = "Internal server error"
    return JSONResponse(status_code=code, content={"success": False, "error": message})


async def _version_of_document(
    manager: VersionLifecycleManager, document_id: UUID, version_id: UUID, user_id: UUID
) -> VersionRecord:
    version = await manager.get_version(version_id, user_id)
    if version.document_id != document_id:
        raise VersionNotFoundError(f"Version {version_id} not found")
    return version


@router.post("", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
async def create_document(
    request: CreateDocumentRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    manager: Annotated[VersionLifecycleManager, Depends(get_manager)],
) -> DocumentResponse:
    """Create a document, with version 1 when content is given."""
    content = None
    if request.content is not None:
        content = _to_content(request.content, request.title)

    document, version = await manager.create_document(
        ctx.user_id,
        entity_type=request.entity_type,
        title=request.title,
        content=content,
    )
    return _document_response(document, version)


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    manager: Annotated[VersionLifecycleManager, Depends(get_manager)],
) -> DocumentResponse:
    """Get a document and its current version."""
    try:
        document = await manager.get_document(document_id, ctx.user_id)
        versions = await manager.list_versions(document_id, ctx.user_id)
    except VersionLifecycleError as e:
        raise _http_error(e) from e

    current = next((v for v in versions if v.is_current), None)
    return _document_response(document, current)


@router.get("/{document_id}/versions", response_model=VersionListResponse)
async def list_versions(
    document_id: UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    manager: Annotated[VersionLifecycleManager, Depends(get_manager)],
) -> VersionListResponse:
    """List a document's versions, oldest first."""
    try:
        versions = await manager.list_versions(document_id, ctx.user_id)
    except VersionLifecycleError as e:
        raise _http_error(e) from e

    return VersionListResponse(versions=[_version_response(v) for v in versions])


@router.post(
    "/{document_id}/versions",
    response_model=VersionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_version(
    document_id: UUID,
    request: CreateVersionRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    manager: Annotated[VersionLifecycleManager, Depends(get_manager)],
) -> VersionResponse:
    """Save a manual edit as a new version (version 1 for an empty document)."""
    content = _to_content(request.content, request.title)

    try:
        versions = await manager.list_versions(document_id, ctx.user_id)
        if not versions:
            version = await manager.create_initial_version(
                document_id, content, user_id=ctx.user_id
            )
        else:
            version = await manager.create_edit_version(
                document_id,
                content,
                VersionType.user_edit,
                user_id=ctx.user_id,
                base_version_id=request.base_version_id,
            )
    except VersionLifecycleError as e:
        raise _http_error(e) from e

    return _version_response(version)


@router.post("/{document_id}/edits", response_model=EditResponse)
async def process_edit(
    document_id: UUID,
    request: ProcessEditRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    processor: Annotated[DocumentEditProcessor, Depends(get_processor)],
) -> EditResponse:
    """Apply the edit carried by a model response, if any.

    Parse and match failures come back with ``processed`` true,
    ``document_updated`` false and ``error`` set.
    """
    try:
        outcome = await processor.process(document_id, ctx.user_id, request.response)
    except VersionLifecycleError as e:
        raise _http_error(e) from e

    segments = [
        SegmentResponse(
            type=segment.type.value,
            content=segment.content,
            edit_state=segment.edit_state.value if segment.edit_state else None,
        )
        for segment in parse_message_segments(request.response)
    ]

    return EditResponse(
        processed=outcome.processed,
        document_updated=outcome.document_updated,
        mode=outcome.mode.value if outcome.mode else None,
        version_id=outcome.version_id,
        version_number=outcome.version_number,
        error=outcome.error,
        warnings=outcome.warnings,
        segments=segments,
    )


@router.post("/{document_id}/versions/{version_id}/accept", response_model=None)
async def accept_version(
    document_id: UUID,
    version_id: UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    manager: Annotated[VersionLifecycleManager, Depends(get_manager)],
) -> ActionResponse | JSONResponse:
    """Confirm an AI edit. No data changes."""
    try:
        await _version_of_document(manager, document_id, version_id, ctx.user_id)
        await manager.accept_version(version_id, ctx.user_id)
    except Exception as e:
        return _action_failure(e)

    return ActionResponse(success=True)


@router.post("/{document_id}/versions/{version_id}/reject", response_model=None)
async def reject_version(
    document_id: UUID,
    version_id: UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    manager: Annotated[VersionLifecycleManager, Depends(get_manager)],
) -> ActionResponse | JSONResponse:
    """Reject the current version and restore the one it was based on."""
    try:
        await _version_of_document(manager, document_id, version_id, ctx.user_id)
        restored_id = await manager.reject_version(version_id, ctx.user_id)
    except Exception as e:
        return _action_failure(e)

    return ActionResponse(success=True, restored_version_id=restored_id)


@router.post("/{document_id}/versions/{version_id}/restore", response_model=None)
async def restore_version(
    document_id: UUID,
    version_id: UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    manager: Annotated[VersionLifecycleManager, Depends(get_manager)],
) -> ActionResponse | JSONResponse:
    """Copy an older version's content into a new current version."""
    try:
        await _version_of_document(manager, document_id, version_id, ctx.user_id)
        version = await manager.restore_version(version_id, ctx.user_id)
    except Exception as e:
        return _action_failure(e)

    return ActionResponse(success=True, version_id=version.version_id)
