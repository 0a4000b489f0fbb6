"""AI response -> committed document version.

Flow:
    1. No edit tags          -> not processed
    2. Tags but no payload   -> processed, not updated (parse failure)
    3. Full rewrite          -> payload becomes content (JSON repaired if needed)
    4. Targeted edit         -> diff blocks parsed and applied to current content
    5. New ai_edit version committed through the lifecycle manager; a full
       rewrite of a document without versions becomes its version 1

Parse and match failures come back as an EditOutcome with ``error`` set and
the document untouched. Lifecycle failures (conflict, not found,
unauthorized) propagate as VersionLifecycleError subclasses.
"""

import logging
from dataclasses import dataclass, field
from uuid import UUID

from backend.app.editing.diff_parser import DiffBlock, scan_diff_blocks
from backend.app.editing.extractor import EditMode, contains_edit_tags, extract_edit, rewrite_to_content
from backend.app.editing.patcher import apply_blocks_to_content
from backend.app.models.documents import VersionType
from backend.app.versions.manager import VersionLifecycleManager

logger = logging.getLogger(__name__)


@dataclass
class EditOutcome:
    """Result of processing one AI response."""

    processed: bool
    document_updated: bool
    mode: EditMode | None = None
    version_number: int | None = None
    version_id: UUID | None = None
    error: str | None = None
    warnings: list[str] = field(default_factory=list)


class EditMetrics:
    """Interface for edit processing metrics."""

    def inc_edit(self, mode: str, outcome: str) -> None:
        """Count a processed edit."""
        pass

    def inc_patch_match(self, strategy: str) -> None:
        """Count the strategy that matched a diff block."""
        pass


class EditLogger:
    """Interface for structured edit logging."""

    def log_edit(self, document_id: UUID, outcome: EditOutcome) -> None:
        """Log the outcome of processing an AI response."""
        pass


class DocumentEditProcessor:
    """Applies edits carried by AI responses to documents."""

    def __init__(
        self,
        manager: VersionLifecycleManager,
        *,
        metrics: EditMetrics | None = None,
        edit_logger: EditLogger | None = None,
    ) -> None:
        """Initialize processor.

        Args:
            manager: Lifecycle manager used to read and commit versions
            metrics: Edit metrics (optional, defaults to no-op)
            edit_logger: Structured logger (optional, defaults to no-op)
        """
        self._manager = manager
        self._metrics = metrics or EditMetrics()
        self._logger = edit_logger or EditLogger()

    async def process(self, document_id: UUID, user_id: UUID, response: str) -> EditOutcome:
        """Process an AI response against a document.

        Args:
            document_id: Document being edited
            user_id: Acting user (must own the document)
            response: Full model response text

        Returns:
            EditOutcome describing what happened
        """
        outcome = await self._process(document_id, user_id, response)

        mode = outcome.mode.value if outcome.mode else "none"
        if not outcome.processed:
            result = "skipped"
        elif outcome.document_updated:
            result = "applied"
        else:
            result = "failed"
        self._metrics.inc_edit(mode, result)
        self._logger.log_edit(document_id, outcome)

        return outcome

    async def _process(self, document_id: UUID, user_id: UUID, response: str) -> EditOutcome:
        if not contains_edit_tags(response):
            return EditOutcome(processed=False, document_updated=False)

        edit = extract_edit(response)
        if edit is None:
            return EditOutcome(
                processed=True,
                document_updated=False,
                error="Failed to extract document content from edit tags",
            )

        current = await self._manager.find_current_version(document_id, user_id)
        warnings: list[str] = []

        if edit.mode is EditMode.full_rewrite:
            rewrite = rewrite_to_content(edit.payload)
            if rewrite.warning:
                warnings.append(rewrite.warning)
            if rewrite.repaired:
                warnings.append("Rewrite content was repaired before parsing")
            new_content = rewrite.content
        else:
            blocks: list[DiffBlock] = []
            for diff in edit.diffs:
                parsed = scan_diff_blocks(diff)
                blocks.extend(parsed.blocks)
                warnings.extend(parsed.warnings)

            if not blocks:
                return EditOutcome(
                    processed=True,
                    document_updated=False,
                    mode=edit.mode,
                    error="No valid SEARCH/REPLACE blocks found in diff",
                    warnings=warnings,
                )

            if current is None:
                return EditOutcome(
                    processed=True,
                    document_updated=False,
                    mode=edit.mode,
                    error="Document has no content to apply diff blocks to",
                    warnings=warnings,
                )

            new_content, result = apply_blocks_to_content(current.content, blocks)
            if not result.applied:
                failed = result.failed_block if result.failed_block is not None else 0
                logger.warning(
                    "Diff block %d of %d did not match document %s",
                    failed + 1,
                    len(blocks),
                    document_id,
                )
                return EditOutcome(
                    processed=True,
                    document_updated=False,
                    mode=edit.mode,
                    error=f"Search text of diff block {failed + 1} not found in document",
                    warnings=warnings,
                )

            for match in result.matches:
                if match.strategy is not None:
                    self._metrics.inc_patch_match(match.strategy.value)

        if current is None:
            version = await self._manager.create_initial_version(
                document_id, new_content, user_id=user_id, version_type=VersionType.ai_edit
            )
        else:
            version = await self._manager.create_edit_version(
                document_id,
                new_content,
                VersionType.ai_edit,
                user_id=user_id,
                base_version_id=current.version_id,
            )

        return EditOutcome(
            processed=True,
            document_updated=True,
            mode=edit.mode,
            version_number=version.version_number,
            version_id=version.version_id,
            warnings=warnings,
        )
