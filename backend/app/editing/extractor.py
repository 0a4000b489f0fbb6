"""Document edit tag extraction.

Two tag families can carry an edit in a model response:

- full rewrite: ``<write_to_file><content>...</content></write_to_file>``
  (legacy alias ``<document_edit><content>...</content></document_edit>``)
- targeted edit: ``<replace_in_file><diff>...</diff></replace_in_file>``

Classification uses complete tag blocks only. The block that starts earliest
(the outermost one) decides the family, so a tag name merely mentioned in
prose or nested inside another block's payload never changes the mode.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from backend.app.editing.json_repair import repair
from backend.app.models.content import FullContent, RawText, content_from_object

logger = logging.getLogger(__name__)

_OPENING_TAG = re.compile(r"<(write_to_file|document_edit|replace_in_file)>", re.IGNORECASE)

_WRITE_TO_FILE = re.compile(
    r"<write_to_file>\s*<content>(.*?)</content>\s*</write_to_file>", re.IGNORECASE | re.DOTALL
)
_DOCUMENT_EDIT = re.compile(
    r"<document_edit>\s*<content>(.*?)</content>\s*</document_edit>", re.IGNORECASE | re.DOTALL
)
_REPLACE_IN_FILE = re.compile(
    r"<replace_in_file>\s*<diff>(.*?)</diff>\s*</replace_in_file>", re.IGNORECASE | re.DOTALL
)


class EditMode(str, Enum):
    """How an edit changes the document."""

    full_rewrite = "full_rewrite"
    targeted = "targeted"


@dataclass(frozen=True)
class ExtractedEdit:
    """Edit payload pulled out of a response.

    For full rewrites ``payload`` is the trimmed content; for targeted edits it
    is the first diff body and ``diffs`` holds every diff body in order.
    """

    mode: EditMode
    payload: str
    diffs: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RewriteContent:
    """Content produced from a full rewrite payload."""

    content: FullContent | RawText
    repaired: bool = False
    warning: str | None = None


def contains_edit_tags(text: str) -> bool:
    """Return True if any edit tag family is opened in text."""
    return bool(_OPENING_TAG.search(text))


def extract_edit(text: str) -> ExtractedEdit | None:
    """Classify and extract the edit carried by a response.

    Returns:
        ExtractedEdit, or None when no complete edit block is present
    """
    candidates: list[tuple[int, EditMode, re.Match[str]]] = []

    for pattern, mode in (
        (_WRITE_TO_FILE, EditMode.full_rewrite),
        (_DOCUMENT_EDIT, EditMode.full_rewrite),
        (_REPLACE_IN_FILE, EditMode.targeted),
    ):
        match = pattern.search(text)
        if match is not None:
            candidates.append((match.start(), mode, match))

    if not candidates:
        return None

    _, mode, outermost = min(candidates, key=lambda candidate: candidate[0])

    if mode is EditMode.full_rewrite:
        return ExtractedEdit(mode=mode, payload=outermost.group(1).strip())

    # Collect diff blocks that are not nested inside a rewrite payload
    rewrite_spans = [
        (m.start(), m.end())
        for pattern in (_WRITE_TO_FILE, _DOCUMENT_EDIT)
        for m in pattern.finditer(text)
    ]
    diffs = [
        m.group(1).strip()
        for m in _REPLACE_IN_FILE.finditer(text)
        if not any(start < m.start() and m.end() <= end for start, end in rewrite_spans)
    ]
    return ExtractedEdit(mode=mode, payload=diffs[0], diffs=diffs)


def extract_content(text: str) -> str | None:
    """Return the trimmed payload of the outermost edit block, or None."""
    edit = extract_edit(text)
    return edit.payload if edit is not None else None


def _looks_like_object(payload: str) -> bool:
    return payload.startswith("{") and payload.endswith("}")


def rewrite_to_content(payload: str) -> RewriteContent:
    """Turn a full rewrite payload into document content.

    JSON-object payloads become structured content, going through JSON repair
    when strict parsing fails. If repair fails too, the unrepaired text is kept
    as free text and a warning is attached.
    """
    stripped = payload.strip()

    if not _looks_like_object(stripped):
        return RewriteContent(content=RawText(text=stripped))

    try:
        parsed = json.loads(stripped)
    except json.JSONDecodeError:
        parsed = None

    if isinstance(parsed, dict):
        return RewriteContent(content=content_from_object(parsed))

    repaired = repair(stripped)
    if repaired is not None:
        parsed = json.loads(repaired)
        if isinstance(parsed, dict):
            return RewriteContent(content=content_from_object(parsed), repaired=True)

    warning = "Rewrite content looks like JSON but could not be parsed or repaired"
    logger.warning(warning, extra={"structured": {"length": len(stripped)}})
    return RewriteContent(content=RawText(text=stripped), warning=warning)
