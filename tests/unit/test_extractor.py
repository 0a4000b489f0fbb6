"""Unit tests for document edit tag extraction."""

from backend.app.editing.extractor import (
    EditMode,
    contains_edit_tags,
    extract_content,
    extract_edit,
    rewrite_to_content,
)
from backend.app.models.content import FullContent, RawText

DIFF = "<<<<<<< SEARCH\nold\n=======\nnew\n>>>>>>> REPLACE"


def test_contains_edit_tags() -> None:
    """Test detection of each tag family."""
    assert contains_edit_tags("x <write_to_file><content>a</content></write_to_file>")
    assert contains_edit_tags("<document_edit>")
    assert contains_edit_tags("<replace_in_file><diff>")
    assert not contains_edit_tags("No edits here, just write_to_file as a word.")


def test_write_to_file_content_trimmed() -> None:
    """Test full rewrite payload is extracted and trimmed."""
    text = "Here you go:\n<write_to_file>\n<content>\n  New text  \n</content>\n</write_to_file>"

    edit = extract_edit(text)

    assert edit is not None
    assert edit.mode == EditMode.full_rewrite
    assert edit.payload == "New text"


def test_document_edit_alias() -> None:
    """Test the legacy tag is a full rewrite."""
    edit = extract_edit("<document_edit><content>Body</content></document_edit>")

    assert edit is not None
    assert edit.mode == EditMode.full_rewrite
    assert edit.payload == "Body"


def test_replace_in_file_is_targeted() -> None:
    """Test diff payload extraction."""
    edit = extract_edit(f"Updating.\n<replace_in_file>\n<diff>\n{DIFF}\n</diff>\n</replace_in_file>")

    assert edit is not None
    assert edit.mode == EditMode.targeted
    assert edit.payload == DIFF
    assert edit.diffs == [DIFF]


def test_multiple_replace_in_file_blocks_collected() -> None:
    """Test every diff body is returned in order."""
    second = DIFF.replace("old", "older")
    text = (
        f"<replace_in_file><diff>{DIFF}</diff></replace_in_file>\n"
        f"<replace_in_file><diff>{second}</diff></replace_in_file>"
    )

    edit = extract_edit(text)

    assert edit is not None
    assert edit.diffs == [DIFF, second]


def test_rewrite_with_replace_in_file_mentioned_in_prose() -> None:
    """Test a tag name mentioned in an example does not change the mode."""
    text = (
        "<write_to_file><content>{\"Problem\": \"x\"}</content></write_to_file>\n\n"
        "Next time you can ask for a targeted edit, which uses `<replace_in_file>` tags."
    )

    edit = extract_edit(text)

    assert edit is not None
    assert edit.mode == EditMode.full_rewrite
    assert edit.payload == '{"Problem": "x"}'


def test_outermost_block_decides_mode() -> None:
    """Test a complete example block after the real edit is ignored."""
    text = (
        "<write_to_file><content>Body</content></write_to_file>\n"
        "Example of the other format:\n"
        f"<replace_in_file><diff>{DIFF}</diff></replace_in_file>"
    )

    edit = extract_edit(text)

    assert edit is not None
    assert edit.mode == EditMode.full_rewrite


def test_targeted_first_with_rewrite_mentioned_later() -> None:
    """Test a leading replace_in_file block stays targeted."""
    text = (
        f"<replace_in_file><diff>{DIFF}</diff></replace_in_file>\n"
        "For a full rewrite I would use write_to_file instead."
    )

    edit = extract_edit(text)

    assert edit is not None
    assert edit.mode == EditMode.targeted


def test_incomplete_block_not_extracted() -> None:
    """Test an opened but unfinished block yields nothing."""
    text = "<write_to_file><content>partial"

    assert contains_edit_tags(text)
    assert extract_edit(text) is None
    assert extract_content(text) is None


def test_extract_content_no_tags() -> None:
    """Test plain responses have no content."""
    assert extract_content("Just chatting.") is None


def test_extract_content_returns_payload() -> None:
    """Test extract_content for a rewrite."""
    assert extract_content("<write_to_file><content> Body </content></write_to_file>") == "Body"


def test_rewrite_plain_text_is_raw_text() -> None:
    """Test non-JSON payloads become free text."""
    rewrite = rewrite_to_content("A paragraph of notes.")

    assert isinstance(rewrite.content, RawText)
    assert rewrite.content.text == "A paragraph of notes."
    assert rewrite.warning is None


def test_rewrite_json_object_becomes_fields() -> None:
    """Test JSON payloads become structured content with the title lifted out."""
    rewrite = rewrite_to_content('{"title": "Canvas", "Problem": "x", "Solution": "y"}')

    assert isinstance(rewrite.content, FullContent)
    assert rewrite.content.title == "Canvas"
    assert rewrite.content.fields == {"Problem": "x", "Solution": "y"}
    assert not rewrite.repaired


def test_rewrite_non_string_values_kept_as_json_text() -> None:
    """Test the field mapping stays string-valued."""
    rewrite = rewrite_to_content('{"Problem": "x", "Count": 3}')

    assert isinstance(rewrite.content, FullContent)
    assert rewrite.content.fields == {"Problem": "x", "Count": "3"}


def test_rewrite_malformed_json_repaired() -> None:
    """Test malformed JSON goes through repair."""
    rewrite = rewrite_to_content('{"Problem": "x", "Solution": "y",}')

    assert rewrite.repaired
    assert isinstance(rewrite.content, FullContent)
    assert rewrite.content.fields == {"Problem": "x", "Solution": "y"}


def test_rewrite_unrepairable_json_kept_with_warning() -> None:
    """Test unrepairable JSON-looking text is kept verbatim with a warning."""
    rewrite = rewrite_to_content("{not json}")

    assert isinstance(rewrite.content, RawText)
    assert rewrite.content.text == "{not json}"
    assert rewrite.warning is not None
