"""Extraction of a JSON object from raw LLM text."""

import json
import re
from collections.abc import Callable
from typing import Any

from roadmap_engine.core.logging import get_logger

logger = get_logger(__name__)

_TRAILING_COMMA = re.compile(r",(\s*[}\]])")
_CODE_BLOCK = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)\n?\s*```", re.DOTALL)


class LLMJSONError(ValueError):
    """Raised when no JSON object can be recovered from a model reply."""


def _loads_lenient(text: str) -> Any:
    """json.loads after stripping whitespace and trailing commas; None on failure."""
    try:
        return json.loads(_TRAILING_COMMA.sub(r"\1", text.strip()))
    except (json.JSONDecodeError, ValueError):
        return None


def _whole_text(text: str) -> str | None:
    return text


def _code_block(text: str) -> str | None:
    match = _CODE_BLOCK.search(text)
    return match.group(1) if match else None


def _first_object(text: str) -> str | None:
    """First balanced {...} span, skipping braces inside string literals."""
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        char = text[i]
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == '"':
            in_string = not in_string
        elif not in_string:
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : i + 1]
    return None


_EXTRACTORS: tuple[tuple[str, Callable[[str], str | None]], ...] = (
    ("direct", _whole_text),
    ("code_block", _code_block),
    ("substring", _first_object),
)


def parse_json_object(content: str | None) -> dict[str, Any]:
    """Recover the JSON object from an LLM reply.

    Tries the whole reply, then a fenced code block, then the first balanced
    object embedded in prose. Trailing commas are tolerated.

    Raises:
        LLMJSONError: If the reply is empty or holds no JSON object.
    """
    if not content or not content.strip():
        raise LLMJSONError("Empty LLM response")

    for strategy, extract in _EXTRACTORS:
        candidate = extract(content)
        if candidate is None:
            continue
        parsed = _loads_lenient(candidate)
        if isinstance(parsed, dict):
            logger.debug("Parsed LLM JSON", strategy=strategy)
            return parsed

    logger.warning("No JSON object in LLM response", content_preview=content[:200])
    raise LLMJSONError("LLM response did not contain a JSON object")
