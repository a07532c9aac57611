"""Cleanup and best-effort repair of agent JSON text.

Responses cut off by a token limit usually stop mid-string or mid-container.
``repair_truncated_json`` closes what was left open so the text parses; it
guarantees syntactic balance only, never that the content is complete.
"""

import re

_OPENING_FENCE = re.compile(r"^\s*```[A-Za-z0-9_-]*[ \t]*\n?")
_CLOSING_FENCE = re.compile(r"\n?```\s*$")

_CLOSERS = {"{": "}", "[": "]"}


def strip_code_fences(text: str) -> str:
    """Remove a surrounding Markdown code fence (```json ... ```) if present."""
    cleaned = _OPENING_FENCE.sub("", text, count=1)
    cleaned = _CLOSING_FENCE.sub("", cleaned, count=1)
    return cleaned.strip()


def _trailing_backslashes(text: str, end: int) -> int:
    count = 0
    while end - count - 1 >= 0 and text[end - count - 1] == "\\":
        count += 1
    return count


def _is_escaped(text: str, index: int) -> bool:
    """True if the character at ``index`` is preceded by an odd run of backslashes."""
    return _trailing_backslashes(text, index) % 2 == 1


def repair_truncated_json(text: str) -> str:
    """Rebalance truncated JSON text.

    Steps, in order:
    1. Drop a trailing backslash that would escape an appended quote.
    2. Close an unterminated string (odd number of unescaped quotes).
    3. Append the closers of every ``{``/``[`` still open outside strings,
       innermost first. A closer only pops the stack when it matches the top.
       A dangling comma before the appended closers is dropped.

    Args:
        text: JSON text that failed to parse

    Returns:
        Text with strings and containers closed
    """
    if _trailing_backslashes(text, len(text)) % 2 == 1:
        text = text[:-1]

    quotes = sum(
        1 for index, char in enumerate(text) if char == '"' and not _is_escaped(text, index)
    )
    if quotes % 2 == 1:
        text += '"'

    stack: list[str] = []
    in_string = False
    for index, char in enumerate(text):
        if char == '"' and not _is_escaped(text, index):
            in_string = not in_string
            continue
        if in_string:
            continue
        if char in _CLOSERS:
            stack.append(_CLOSERS[char])
        elif char in "}]":
            if stack and stack[-1] == char:
                stack.pop()

    if stack:
        stripped = text.rstrip()
        if stripped.endswith(","):
            text = stripped[:-1]

    return text + "".join(reversed(stack))
