"""SEARCH/REPLACE diff block parser.

Blocks may appear anywhere in a model response, surrounded by prose:

    <<<<<<< SEARCH
    text to find
    =======
    replacement text
    >>>>>>> REPLACE

Parsing is a line scanner with three states (scanning, search body, replace
body). Delimiter lines are compared after stripping surrounding whitespace.
A block that is not closed before the next ``<<<<<<< SEARCH`` or the end of
input is dropped whole and reported as a warning.
"""

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

SEARCH_MARKER = "<<<<<<< SEARCH"
DIVIDER_MARKER = "======="
REPLACE_MARKER = ">>>>>>> REPLACE"


@dataclass(frozen=True)
class DiffBlock:
    """One search/replace instruction."""

    search: str
    replace: str


@dataclass
class DiffParseResult:
    """Parsed blocks in order of appearance plus warnings for dropped blocks."""

    blocks: list[DiffBlock] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _join_payload(lines: list[str]) -> str:
    """Join payload lines, trimming one leading and one trailing empty line."""
    if lines and not lines[0].strip():
        lines = lines[1:]
    if lines and not lines[-1].strip():
        lines = lines[:-1]
    return "\n".join(lines)


def scan_diff_blocks(text: str) -> DiffParseResult:
    """Scan text for diff blocks.

    Args:
        text: Free-form response text (or the inner text of a diff tag)

    Returns:
        DiffParseResult with complete blocks and a warning per malformed block
    """
    result = DiffParseResult()
    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")

    state = "scan"
    start_line = 0
    search_lines: list[str] = []
    replace_lines: list[str] = []

    for number, line in enumerate(lines, start=1):
        marker = line.strip()

        if state == "scan":
            if marker == SEARCH_MARKER:
                state = "search"
                start_line = number
                search_lines = []
            continue

        if marker == SEARCH_MARKER:
            result.warnings.append(
                f"Diff block starting at line {start_line} is not closed before the next block"
            )
            state = "search"
            start_line = number
            search_lines = []
            continue

        if state == "search":
            if marker == DIVIDER_MARKER:
                state = "replace"
                replace_lines = []
            elif marker == REPLACE_MARKER:
                result.warnings.append(
                    f"Diff block starting at line {start_line} has no '{DIVIDER_MARKER}' divider"
                )
                state = "scan"
            else:
                search_lines.append(line)
            continue

        if marker == REPLACE_MARKER:
            result.blocks.append(
                DiffBlock(search=_join_payload(search_lines), replace=_join_payload(replace_lines))
            )
            state = "scan"
        else:
            replace_lines.append(line)

    if state != "scan":
        result.warnings.append(
            f"Diff block starting at line {start_line} is missing '{REPLACE_MARKER}'"
        )

    for warning in result.warnings:
        logger.warning("Dropped malformed diff block: %s", warning)

    return result


def parse_diff_blocks(text: str) -> list[DiffBlock]:
    """Return the well-formed diff blocks in text, in order."""
    return scan_diff_blocks(text).blocks
