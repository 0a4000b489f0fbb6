"""Structured logging for document edits and version transitions."""

import json
import logging
from typing import Any
from uuid import UUID

from backend.app.config import Settings
from backend.app.editing.processor import EditOutcome

logger = logging.getLogger(__name__)


class StructuredFormatter(logging.Formatter):
    """Appends the ``structured`` extra of a record as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        structured = getattr(record, "structured", None)
        if structured:
            message = f"{message} {json.dumps(structured, default=str, sort_keys=True)}"
        return message


_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class _AppHandler(logging.StreamHandler):  # type: ignore[type-arg]
    """Marker type so repeated configuration replaces only our own handler."""


def configure_logging(settings: Settings) -> None:
    """Install the application handler on the root logger at the configured level."""
    handler = _AppHandler()
    if settings.log_structured:
        handler.setFormatter(StructuredFormatter(_LOG_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))

    root = logging.getLogger()
    for existing in [h for h in root.handlers if isinstance(h, _AppHandler)]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(settings.log_level.upper())


class StructuredEditLogger:
    """Structured logger for edit outcomes and version transitions."""

    def log_edit(self, document_id: UUID, outcome: EditOutcome) -> None:
        """Log the outcome of processing an AI response."""
        log_data: dict[str, Any] = {
            "document_id": str(document_id),
            "processed": outcome.processed,
            "document_updated": outcome.document_updated,
            "mode": outcome.mode.value if outcome.mode else None,
        }

        if outcome.version_number is not None:
            log_data["version_number"] = outcome.version_number
        if outcome.error:
            log_data["error"] = outcome.error
        if outcome.warnings:
            log_data["warnings"] = outcome.warnings

        if outcome.processed and not outcome.document_updated:
            logger.warning("Document edit not applied", extra={"structured": log_data})
        else:
            logger.info("Document edit processed", extra={"structured": log_data})

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
        """Log a version lifecycle transition."""
        log_data: dict[str, Any] = {
            "transition": transition,
            "outcome": outcome,
            "document_id": str(document_id) if document_id else None,
            "version_id": str(version_id) if version_id else None,
            "version_number": version_number,
        }

        if error_code:
            log_data["error_code"] = error_code

        log_msg = f"Version transition: {transition} - {outcome}"

        if outcome == "success":
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})
