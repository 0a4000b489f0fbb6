"""Document content variants.

Version content is either a flat mapping of named fields (lean canvas sections and
similar structured documents) or a single block of free text. Both carry an optional
title that is threaded across edits.
"""

import json
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter


class FullContent(BaseModel):
    """Structured content: ordered field name -> string value."""

    kind: Literal["fields"] = "fields"
    title: str | None = None
    fields: dict[str, str] = Field(default_factory=dict)


class RawText(BaseModel):
    """Unstructured content kept as a single string."""

    kind: Literal["text"] = "text"
    title: str | None = None
    text: str = ""


DocumentContent = Annotated[FullContent | RawText, Field(discriminator="kind")]

_content_adapter: TypeAdapter[FullContent | RawText] = TypeAdapter(DocumentContent)


def content_to_json(content: FullContent | RawText) -> dict[str, Any]:
    """Serialize content for storage."""
    return content.model_dump(mode="json")


def content_from_json(data: dict[str, Any] | str) -> FullContent | RawText:
    """Deserialize stored content.

    Accepts the tagged format written by content_to_json, and the legacy
    ``{"title": ..., "content": ...}`` envelope where ``content`` is either a
    JSON object string or plain text.
    """
    if isinstance(data, str):
        data = json.loads(data)

    if "kind" in data:
        return _content_adapter.validate_python(data)

    title = data.get("title")
    inner = data.get("content", "")
    if isinstance(inner, dict):
        return content_from_object(inner, title=title)
    if isinstance(inner, str):
        stripped = inner.strip()
        if stripped.startswith("{") and stripped.endswith("}"):
            try:
                parsed = json.loads(stripped)
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, dict):
                return content_from_object(parsed, title=title)
        return RawText(title=title, text=inner)

    return RawText(title=title, text=str(inner))


def content_from_object(obj: dict[str, Any], *, title: str | None = None) -> FullContent:
    """Build structured content from a parsed JSON object.

    A ``title`` key is lifted out of the field mapping. Non-string values are
    kept as their JSON text so the mapping stays string-valued.
    """
    fields: dict[str, str] = {}
    for key, value in obj.items():
        if key == "title" and isinstance(value, str):
            title = value
            continue
        fields[key] = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)
    return FullContent(title=title, fields=fields)


def with_title(content: FullContent | RawText, title: str | None) -> FullContent | RawText:
    """Return a copy of content with the title set."""
    return content.model_copy(update={"title": title})
