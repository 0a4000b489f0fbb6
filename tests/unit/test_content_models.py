"""Unit tests for document content variants."""

import json

from backend.app.models.content import (
    FullContent,
    RawText,
    content_from_json,
    content_from_object,
    content_to_json,
    with_title,
)


def test_tagged_serialization() -> None:
    """Test stored form carries the variant tag and field order."""
    content = FullContent(title="Canvas", fields={"Problem": "x", "Solution": "y"})

    data = content_to_json(content)

    assert data["kind"] == "fields"
    assert list(data["fields"]) == ["Problem", "Solution"]

    restored = content_from_json(data)
    assert isinstance(restored, FullContent)
    assert restored == content
    assert list(restored.fields) == ["Problem", "Solution"]


def test_raw_text_from_json_string() -> None:
    """Test stored JSON text is accepted."""
    restored = content_from_json(json.dumps({"kind": "text", "title": None, "text": "notes"}))

    assert restored == RawText(text="notes")


def test_legacy_envelope_with_json_object_string() -> None:
    """Test the {title, content} envelope with serialized fields."""
    restored = content_from_json({"title": "Canvas", "content": '{"Problem": "x"}'})

    assert isinstance(restored, FullContent)
    assert restored.title == "Canvas"
    assert restored.fields == {"Problem": "x"}


def test_legacy_envelope_with_plain_text() -> None:
    """Test the {title, content} envelope with free text."""
    restored = content_from_json({"title": "Notes", "content": "some {text}"})

    assert restored == RawText(title="Notes", text="some {text}")


def test_content_from_object_lifts_title() -> None:
    """Test title is not kept as a field."""
    content = content_from_object({"Problem": "x", "title": "Canvas", "Solution": "y"})

    assert content.title == "Canvas"
    assert list(content.fields) == ["Problem", "Solution"]


def test_with_title_copies() -> None:
    """Test with_title leaves the original alone."""
    original = RawText(text="a")

    titled = with_title(original, "T")

    assert titled.title == "T"
    assert original.title is None
