"""Best-effort repair of near-valid JSON from model output.

Repairs are applied cumulatively in a fixed order and the candidate is re-parsed
after every step, so the first step that yields strict JSON wins:

    1. trailing commas before ``}`` / ``]``
    2. unterminated string literal (closing quote before the trailing structure)
    3. unmatched ``{`` / ``[`` (closers appended, dangling ``,`` / ``:`` fixed up)
    4. bare control characters inside string literals
    5. ``undefined`` / ``NaN`` / ``Infinity`` values
    6. unquoted object keys

Every scan tracks string literals (toggled by unescaped ``"``) so braces, commas
and keywords inside values are never treated as structure.
"""

import json
import logging
import re
from collections.abc import Callable

logger = logging.getLogger(__name__)

_CLOSERS = {"{": "}", "[": "]"}

_CONTROL_ESCAPES = {
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\b": "\\b",
    "\f": "\\f",
}

_TRAILING_COMMA = re.compile(r",(\s*[}\]])")
_TRAILING_STRUCTURE = re.compile(r"[\s,\]}]*$")
_DANGLING_KEY = re.compile(r'[{,]\s*"(?:[^"\\]|\\.)*"$')
_INVALID_LITERAL = re.compile(r"(?<![\w$])(undefined|NaN|-?Infinity)(?![\w$])")
_BARE_KEY = re.compile(r"([{,]\s*)([A-Za-z_$][\w$]*)(\s*:)")


def _reject_constant(name: str) -> None:
    raise ValueError(f"Non-standard JSON constant: {name}")


def is_valid_json(candidate: str) -> bool:
    """Strict JSON check (no NaN/Infinity, no control characters in strings)."""
    try:
        json.loads(candidate, parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        return False
    return True


def _split_strings(text: str) -> list[tuple[bool, str]]:
    """Split text into (is_string_literal, segment) parts.

    An unterminated trailing literal is reported as a string segment.
    """
    parts: list[tuple[bool, str]] = []
    buf: list[str] = []
    in_string = False
    escaped = False

    for ch in text:
        if in_string:
            buf.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                parts.append((True, "".join(buf)))
                buf = []
                in_string = False
        elif ch == '"':
            if buf:
                parts.append((False, "".join(buf)))
            buf = [ch]
            in_string = True
        else:
            buf.append(ch)

    if buf:
        parts.append((in_string, "".join(buf)))

    return parts


def _map_outside_strings(text: str, fn: Callable[[str], str]) -> str:
    return "".join(
        segment if is_string else fn(segment) for is_string, segment in _split_strings(text)
    )


def _strip_trailing_commas(text: str) -> str:
    return _map_outside_strings(text, lambda segment: _TRAILING_COMMA.sub(r"\1", segment))


def _close_unterminated_string(text: str) -> str | None:
    in_string = False
    escaped = False
    start = -1

    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
            start = i

    if not in_string:
        return None

    body = text[start + 1 :]
    if escaped:
        # Dangling backslash would escape the quote we add
        body = body[:-1]

    match = _TRAILING_STRUCTURE.search(body)
    cut = match.start() if match else len(body)
    return text[: start + 1] + body[:cut] + '"' + body[cut:]


def _balance_brackets(text: str) -> str | None:
    stack: list[str] = []
    in_string = False
    escaped = False

    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(ch)
        elif ch in "}]":
            if not stack or _CLOSERS[stack[-1]] != ch:
                # More closers than openers, or interleaved: not a truncation
                return None
            stack.pop()

    if in_string or not stack:
        return None

    tail = text.rstrip()
    if tail.endswith(","):
        tail = tail[:-1]
    elif tail.endswith(":"):
        tail += " null"
    elif stack[-1] == "{" and _DANGLING_KEY.search(tail):
        tail += ": null"

    return tail + "".join(_CLOSERS[opener] for opener in reversed(stack))


def _escape_control_characters(text: str) -> str:
    out: list[str] = []
    in_string = False
    escaped = False

    for ch in text:
        if not in_string:
            if ch == '"':
                in_string = True
            out.append(ch)
            continue

        if escaped:
            escaped = False
            out.append(ch)
        elif ch == "\\":
            escaped = True
            out.append(ch)
        elif ch == '"':
            in_string = False
            out.append(ch)
        elif ord(ch) < 0x20:
            out.append(_CONTROL_ESCAPES.get(ch, f"\\u{ord(ch):04x}"))
        else:
            out.append(ch)

    return "".join(out)


def _replace_invalid_literals(text: str) -> str:
    return _map_outside_strings(text, lambda segment: _INVALID_LITERAL.sub("null", segment))


def _quote_bare_keys(text: str) -> str:
    return _map_outside_strings(text, lambda segment: _BARE_KEY.sub(r'\1"\2"\3', segment))


_STEPS: tuple[tuple[str, Callable[[str], str | None]], ...] = (
    ("trailing_commas", _strip_trailing_commas),
    ("unterminated_string", _close_unterminated_string),
    ("unbalanced_brackets", _balance_brackets),
    ("control_characters", _escape_control_characters),
    ("invalid_literals", _replace_invalid_literals),
    ("unquoted_keys", _quote_bare_keys),
)


def repair(candidate: str) -> str | None:
    """Repair a near-valid JSON string.

    Args:
        candidate: String suspected to be JSON

    Returns:
        The candidate unchanged if it already parses, a repaired string that
        parses as strict JSON, or None if no repair succeeded. Never raises.
    """
    try:
        if is_valid_json(candidate):
            return candidate

        current = candidate
        applied: list[str] = []

        for name, step in _STEPS:
            fixed = step(current)
            if fixed is None or fixed == current:
                continue

            current = fixed
            applied.append(name)

            if is_valid_json(current):
                logger.info(
                    "Repaired malformed JSON",
                    extra={"structured": {"steps": applied, "length": len(candidate)}},
                )
                return current

    except (TypeError, ValueError, RecursionError) as e:
        logger.warning("JSON repair aborted: %s", type(e).__name__)
        return None

    logger.warning(
        "JSON repair failed",
        extra={"structured": {"steps": applied, "length": len(candidate)}},
    )
    return None
