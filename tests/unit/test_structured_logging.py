"""Unit tests for structured edit and transition logging."""

import json
import logging
import uuid

import pytest

from backend.app.editing.extractor import EditMode
from backend.app.editing.processor import EditOutcome
from backend.app.utils.logging import StructuredEditLogger, StructuredFormatter


def test_failed_edit_logged_as_warning(caplog: pytest.LogCaptureFixture) -> None:
    """Test an unapplied edit is a warning with its error attached."""
    edit_logger = StructuredEditLogger()
    outcome = EditOutcome(
        processed=True,
        document_updated=False,
        mode=EditMode.targeted,
        error="Search text of diff block 1 not found in document",
    )

    with caplog.at_level(logging.INFO, logger="backend.app.utils.logging"):
        edit_logger.log_edit(uuid.uuid4(), outcome)

    record = caplog.records[-1]
    assert record.levelno == logging.WARNING
    assert record.structured["mode"] == "targeted"  # type: ignore[attr-defined]
    assert "not found" in record.structured["error"]  # type: ignore[attr-defined]


def test_successful_transition_logged_as_info(caplog: pytest.LogCaptureFixture) -> None:
    """Test lifecycle successes log at INFO."""
    edit_logger = StructuredEditLogger()
    version_id = uuid.uuid4()

    with caplog.at_level(logging.INFO, logger="backend.app.utils.logging"):
        edit_logger.log_transition("reject", "success", version_id=version_id, version_number=2)

    record = caplog.records[-1]
    assert record.levelno == logging.INFO
    assert record.structured["version_id"] == str(version_id)  # type: ignore[attr-defined]
    assert "error_code" not in record.structured  # type: ignore[attr-defined]


def test_formatter_appends_json() -> None:
    """Test structured extras render as JSON after the message."""
    formatter = StructuredFormatter("%(message)s")
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "hello", None, None)
    record.structured = {"b": 1, "a": "two"}

    line = formatter.format(record)

    message, payload = line.split(" ", 1)
    assert message == "hello"
    assert json.loads(payload) == {"a": "two", "b": 1}
