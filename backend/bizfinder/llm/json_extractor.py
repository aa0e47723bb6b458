"""Best-effort recovery of JSON objects from free-text LLM output.

Two stages:
1. locate candidate ``{...}`` spans with a bracket-counting scanner that
   understands JSON string literals (so braces inside strings are ignored);
2. strictly parse each candidate, outermost first.

Fenced code blocks are searched first, in order, then the whole text.
"""

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"```[\w-]*[ \t]*\n?([\s\S]*?)\s*```")


def _sources(text: str) -> list[str]:
    """Fenced block contents, in order, followed by the full text."""
    return [match.group(1) for match in _FENCE_PATTERN.finditer(text)] + [text]


def find_balanced_span(text: str, start: int) -> tuple[int, int] | None:
    """Find the balanced ``{...}`` span opening at ``text[start]``.

    Args:
        text: Text to scan
        start: Index of an opening brace

    Returns:
        (start, end) with ``end`` exclusive, or None if the braces never balance
    """
    depth = 0
    in_string = False
    escaped = False

    for index in range(start, len(text)):
        char = text[index]

        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return start, index + 1

    return None


def iter_object_spans(text: str):
    """Yield candidate object spans, outermost first, left to right."""
    position = text.find("{")
    while position != -1:
        span = find_balanced_span(text, position)
        if span is not None:
            yield text[span[0]:span[1]]
        position = text.find("{", position + 1)


def _parse_object(source: str) -> dict[str, Any] | None:
    source = source.strip()
    try:
        parsed = json.loads(source)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    for candidate in iter_object_spans(source):
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def extract_json(text: str | None) -> dict[str, Any] | None:
    """Recover a JSON object from an LLM response.

    Args:
        text: Raw model output (may contain prose or markdown fences)

    Returns:
        The parsed object, or None if nothing parseable was found
    """
    if not text or not text.strip():
        return None

    for source in _sources(text):
        parsed = _parse_object(source)
        if parsed is not None:
            return parsed

    logger.debug(f"No JSON object found in response: {text[:100]}...")
    return None
