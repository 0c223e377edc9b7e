"""
JSON array extraction from AI responses.

Gemini is asked to answer with only a JSON array, but it sometimes wraps the
array in a Markdown code block or surrounds it with prose. This module
recovers the array and maps its elements into typed records.
"""

import json
import logging
import re
from typing import Any, List, Optional

from update_tracker.exceptions import ExtractionError
from update_tracker.parsers.base import ElementMapper

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def strip_code_fence(text: str) -> str:
    """Returns the content of the first fenced code block, or the text itself."""
    match = _CODE_FENCE.search(text)
    if match:
        return match.group(1)
    return text


def _fail(message: str, strict: bool) -> List[Any]:
    if strict:
        logger.error(message)
        raise ExtractionError()
    logger.warning(message)
    return []


def extract_json_array(
    text: Optional[str],
    mapper: Optional[ElementMapper[Any]] = None,
    strict: bool = False,
) -> List[Any]:
    """
    Recovers a JSON array from free-form AI text.

    The array is the substring between the first '[' and the last ']', so
    several top-level arrays or stray brackets in surrounding prose will
    produce a wrong slice. When nothing usable is found the lenient mode
    returns an empty list and the strict mode raises ExtractionError.
    """
    working = strip_code_fence((text or "").strip())

    start = working.find("[")
    end = working.rfind("]")
    if start == -1 or end == -1:
        return _fail(f"No JSON array found in AI response: {text!r}", strict)

    json_string = working[start : end + 1]
    try:
        parsed = json.loads(json_string)
    except (json.JSONDecodeError, ValueError) as e:
        return _fail(f"Failed to parse JSON array {json_string!r}: {e}", strict)

    if not isinstance(parsed, list):
        return _fail(f"AI response is not a JSON array: {json_string!r}", strict)

    if mapper is None:
        return parsed

    results = []
    for element in parsed:
        mapped = mapper(element)
        if mapped is None:
            logger.warning("Dropping malformed element from AI response: %r", element)
            continue
        results.append(mapped)
    return results
