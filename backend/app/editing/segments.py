"""Split a model response into prose and document-edit segments.

Used for display: prose is shown as-is and each edit block is reduced to its
payload. In streaming mode a trailing block whose closing tag has not arrived
yet is still reported, with a state saying how far it got.
"""

import re
from dataclasses import dataclass
from enum import Enum

_OPENING_TAG = re.compile(r"<(write_to_file|document_edit|replace_in_file)>", re.IGNORECASE)


class SegmentType(str, Enum):
    """Kind of message segment."""

    text = "text"
    document_edit = "document_edit"


class EditTagState(str, Enum):
    """Parsing progress of an edit block."""

    none = "none"
    waiting = "waiting"
    content = "content"
    completed = "completed"


@dataclass(frozen=True)
class MessageSegment:
    """Contiguous piece of a response."""

    type: SegmentType
    content: str
    edit_state: EditTagState | None = None


def _payload_tag(tag_name: str) -> str:
    return "diff" if tag_name == "replace_in_file" else "content"


def read_edit_block(block: str) -> tuple[EditTagState, str]:
    """Return the state and payload of a (possibly partial) edit block.

    Args:
        block: Text starting at an edit opening tag

    Returns:
        (state, payload). The payload of an unfinished block is everything
        received after the payload opening tag.
    """
    opening = _OPENING_TAG.search(block)
    if opening is None:
        return EditTagState.none, ""

    tag_name = opening.group(1).lower()
    payload_tag = _payload_tag(tag_name)
    lowered = block.lower()

    completed = f"</{tag_name}>" in lowered[opening.end() :]
    payload_start = lowered.find(f"<{payload_tag}>", opening.end())

    if payload_start < 0:
        return (EditTagState.completed if completed else EditTagState.waiting), ""

    payload_start += len(payload_tag) + 2
    payload_end = lowered.find(f"</{payload_tag}>", payload_start)
    payload = block[payload_start:] if payload_end < 0 else block[payload_start:payload_end]

    if completed:
        return EditTagState.completed, payload.strip()
    return EditTagState.content, payload


def parse_message_segments(text: str, *, streaming: bool = False) -> list[MessageSegment]:
    """Split text into ordered text and document-edit segments.

    Whitespace-only prose between blocks is dropped. Without ``streaming`` an
    unterminated block is left in the surrounding prose.
    """
    if not text:
        return []

    segments: list[MessageSegment] = []
    lowered = text.lower()
    position = 0

    def add_text(chunk: str) -> None:
        if chunk.strip():
            segments.append(MessageSegment(type=SegmentType.text, content=chunk))

    while position < len(text):
        opening = _OPENING_TAG.search(text, position)
        if opening is None:
            add_text(text[position:])
            break

        closing_tag = f"</{opening.group(1).lower()}>"
        closing = lowered.find(closing_tag, opening.end())

        if closing < 0:
            if not streaming:
                add_text(text[position:])
                break
            add_text(text[position : opening.start()])
            state, payload = read_edit_block(text[opening.start() :])
            segments.append(
                MessageSegment(type=SegmentType.document_edit, content=payload, edit_state=state)
            )
            break

        end = closing + len(closing_tag)
        add_text(text[position : opening.start()])
        state, payload = read_edit_block(text[opening.start() : end])
        segments.append(
            MessageSegment(type=SegmentType.document_edit, content=payload, edit_state=state)
        )
        position = end

    return segments
