"""Content patch engine - search/replace against named document fields.

Model-written search text often differs from stored content in superficial
ways, so matching escalates through a fixed list of strategies and stops at the
first one that finds the search text in any field:

    1. exact          exact substring
    2. whitespace     runs of spaces/tabs collapsed to one space
    3. newline        literal ``\\n`` sequences <-> real line breaks
    4. thousands      digit-group commas ignored (``$1,000`` == ``$1000``)
    5. field_prefix   leading ``"<Field Name>":`` echoed by the model removed
    6. loose_quotes   surrounding quotes ignored, curly quotes folded, whitespace collapsed

The search is strategy-major: every field is tried with strategy N before any
field is tried with strategy N+1, and within a strategy the first field in
stored order wins. Only the first occurrence inside the winning field is
replaced. Normalization is used for locating text only; the matched span of the
original value is replaced by the replace payload, which only receives the same
directional rewrite applied to the search text (newline convention, stripped
key prefix or quotes).
"""

import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from enum import Enum

from backend.app.editing.diff_parser import DiffBlock
from backend.app.models.content import FullContent, RawText

_GROUP_COMMA = re.compile(r"(?<=\d),(?=\d{3}(?!\d))")
_QUOTE_CHARS = "\"'“”„‘’"
_QUOTE_FOLD = str.maketrans(
    {"“": '"', "”": '"', "„": '"', "‘": "'", "’": "'"}
)

# Key used when free text is patched as a single pseudo-field
TEXT_FIELD = ""


class MatchStrategy(str, Enum):
    """Strategy that located the search text."""

    exact = "exact"
    whitespace = "whitespace"
    newline = "newline"
    thousands = "thousands"
    field_prefix = "field_prefix"
    loose_quotes = "loose_quotes"


@dataclass(frozen=True)
class PatchResult:
    """Outcome of a single search/replace."""

    content: dict[str, str]
    applied: bool
    matched_field: str | None = None
    strategy: MatchStrategy | None = None


@dataclass
class BlocksResult:
    """Outcome of applying a sequence of diff blocks."""

    content: dict[str, str]
    applied: bool
    matches: list[PatchResult] = field(default_factory=list)
    failed_block: int | None = None


@dataclass(frozen=True)
class _View:
    """Normalized text plus, per normalized char, its [start, end) span in the original."""

    text: str
    starts: list[int]
    ends: list[int]


def _identity(value: str) -> _View:
    return _View(value, list(range(len(value))), list(range(1, len(value) + 1)))


def _collapse_whitespace(value: str) -> _View:
    chars: list[str] = []
    starts: list[int] = []
    ends: list[int] = []
    i = 0

    while i < len(value):
        if value[i] in " \t":
            j = i
            while j < len(value) and value[j] in " \t":
                j += 1
            chars.append(" ")
            starts.append(i)
            ends.append(j)
            i = j
        else:
            chars.append(value[i])
            starts.append(i)
            ends.append(i + 1)
            i += 1

    return _View("".join(chars), starts, ends)


def _drop_group_commas(value: str) -> _View:
    skip = {m.start() for m in _GROUP_COMMA.finditer(value)}
    chars: list[str] = []
    starts: list[int] = []
    ends: list[int] = []

    for i, ch in enumerate(value):
        if i in skip:
            continue
        chars.append(ch)
        starts.append(i)
        ends.append(i + 1)

    return _View("".join(chars), starts, ends)


def _fold_quotes_collapsed(value: str) -> _View:
    # Folding is one char to one char, so spans still index the original
    return _collapse_whitespace(value.translate(_QUOTE_FOLD))


def _splice(value: str, view: _View, needle: str, replacement: str) -> str | None:
    """Replace the first occurrence of needle (in normalized space) within value."""
    if not needle:
        return None

    index = view.text.find(needle)
    if index < 0:
        return None

    start = view.starts[index]
    end = view.ends[index + len(needle) - 1]
    return value[:start] + replacement + value[end:]


def _match_exact(value: str, search: str, replace: str) -> str | None:
    return _splice(value, _identity(value), search, replace)


def _match_whitespace(value: str, search: str, replace: str) -> str | None:
    needle = _collapse_whitespace(search.strip(" \t")).text
    return _splice(value, _collapse_whitespace(value), needle, replace)


def _newline_variants(search: str, replace: str) -> Iterator[tuple[str, str]]:
    search = search.replace("\r\n", "\n")
    replace = replace.replace("\r\n", "\n")
    if "\\n" in search:
        yield search.replace("\\n", "\n"), replace.replace("\\n", "\n")
    if "\n" in search:
        yield search.replace("\n", "\\n"), replace.replace("\n", "\\n")


def _match_newline(value: str, search: str, replace: str) -> str | None:
    for variant_search, variant_replace in _newline_variants(search, replace):
        patched = _match_exact(value, variant_search, variant_replace)
        if patched is None:
            patched = _match_whitespace(value, variant_search, variant_replace)
        if patched is not None:
            return patched
    return None


def _match_thousands(value: str, search: str, replace: str) -> str | None:
    needle = _drop_group_commas(search).text
    return _splice(value, _drop_group_commas(value), needle, replace)


def _strip_quotes(text: str) -> str:
    return text.strip().strip(_QUOTE_CHARS)


def _match_loose_quotes(value: str, search: str, replace: str) -> str | None:
    needle = _fold_quotes_collapsed(_strip_quotes(search)).text
    return _splice(value, _fold_quotes_collapsed(value), needle, _strip_quotes(replace))


def _field_prefix(name: str) -> re.Pattern[str]:
    return re.compile(r'^\s*["\']?' + re.escape(name) + r'["\']?\s*:\s*')


def _strip_field_echo(text: str, prefix: re.Pattern[str]) -> str:
    """Remove an echoed ``"Field":`` prefix and the quotes wrapping the value."""
    match = prefix.match(text)
    if match is None:
        return text

    remainder = text[match.end() :].rstrip()
    if remainder.endswith(","):
        remainder = remainder[:-1].rstrip()
    if remainder.startswith('"'):
        remainder = remainder[1:]
    if remainder.endswith('"') and not remainder.endswith('\\"'):
        remainder = remainder[:-1]
    return remainder


# Strategies 1-4 are reused inside a field once an echoed key identified it
_PLAIN_MATCHERS: tuple[tuple[MatchStrategy, Callable[[str, str, str], str | None]], ...] = (
    (MatchStrategy.exact, _match_exact),
    (MatchStrategy.whitespace, _match_whitespace),
    (MatchStrategy.newline, _match_newline),
    (MatchStrategy.thousands, _match_thousands),
)


def _match_field_prefix(name: str, value: str, search: str, replace: str) -> str | None:
    prefix = _field_prefix(name)
    if prefix.match(search) is None:
        return None

    stripped_search = _strip_field_echo(search, prefix)
    stripped_replace = _strip_field_echo(replace, prefix)

    for _, matcher in _PLAIN_MATCHERS:
        patched = matcher(value, stripped_search, stripped_replace)
        if patched is not None:
            return patched
    return None


def apply_replace(document: dict[str, str], search: str, replace: str) -> PatchResult:
    """Replace the first occurrence of search in the first matching field.

    Args:
        document: Field name -> value, in stored order
        search: Text to locate
        replace: Replacement text

    Returns:
        PatchResult. When nothing matches, ``applied`` is False and ``content``
        is the very same mapping that was passed in.
    """
    if not search.strip():
        return PatchResult(content=document, applied=False)

    for strategy, matcher in _PLAIN_MATCHERS:
        for name, value in document.items():
            patched = matcher(value, search, replace)
            if patched is not None:
                return _patched(document, name, patched, strategy)

    for name, value in document.items():
        patched = _match_field_prefix(name, value, search, replace)
        if patched is not None:
            return _patched(document, name, patched, MatchStrategy.field_prefix)

    for name, value in document.items():
        patched = _match_loose_quotes(value, search, replace)
        if patched is not None:
            return _patched(document, name, patched, MatchStrategy.loose_quotes)

    return PatchResult(content=document, applied=False)


def _patched(
    document: dict[str, str], name: str, value: str, strategy: MatchStrategy
) -> PatchResult:
    content = dict(document)
    content[name] = value
    return PatchResult(content=content, applied=True, matched_field=name, strategy=strategy)


def apply_blocks(document: dict[str, str], blocks: list[DiffBlock]) -> BlocksResult:
    """Apply blocks in order, each against the previous block's output.

    All-or-nothing: on the first block that does not match, the original
    mapping is returned with ``failed_block`` set to that block's index.
    """
    current = document
    matches: list[PatchResult] = []

    for index, block in enumerate(blocks):
        result = apply_replace(current, block.search, block.replace)
        if not result.applied:
            return BlocksResult(
                content=document, applied=False, matches=matches, failed_block=index
            )
        matches.append(result)
        current = result.content

    return BlocksResult(content=current, applied=bool(blocks), matches=matches)


def apply_blocks_to_content(
    content: FullContent | RawText, blocks: list[DiffBlock]
) -> tuple[FullContent | RawText, BlocksResult]:
    """Apply blocks to either content variant.

    Free text is patched as a single pseudo-field keyed by TEXT_FIELD.
    """
    if isinstance(content, FullContent):
        result = apply_blocks(content.fields, blocks)
        if not result.applied:
            return content, result
        return content.model_copy(update={"fields": result.content}), result

    result = apply_blocks({TEXT_FIELD: content.text}, blocks)
    if not result.applied:
        return content, result
    return content.model_copy(update={"text": result.content[TEXT_FIELD]}), result
