"""
JSON utilities for pulling structured values out of LLM responses.
"""

import json
from typing import Any, Optional

_CLOSERS = {'{': '}', '[': ']'}


def clean_json_response(response: str) -> str:
    """Clean LLM response by removing code block markers.

    Args:
        response: Raw LLM response

    Returns:
        Cleaned JSON string
    """
    response = response.strip()

    # Remove ```json and ``` markers
    if response.startswith('```json'):
        response = response[7:]
    elif response.startswith('```'):
        response = response[3:]

    if response.endswith('```'):
        response = response[:-3]

    return response.strip()


def _balanced_end(text: str, start: int) -> int:
    """Return the index just past the value opened at ``start``, or -1."""
    stack = [_CLOSERS[text[start]]]
    in_string = False
    escaped = False

    for i in range(start + 1, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(_CLOSERS[ch])
        elif ch in ('}', ']'):
            if ch != stack.pop():
                return -1
            if not stack:
                return i + 1

    return -1


def extract_json(response: str) -> Optional[Any]:
    """Find and decode the first balanced JSON object or array in a response.

    Text before and after the value (prose, code fences) is ignored. A
    candidate that is balanced but fails to decode is skipped and the scan
    continues from the next opening bracket.

    Args:
        response: Raw LLM response

    Returns:
        Decoded JSON value, or None if no decodable object/array is present
    """
    if not response:
        return None

    text = clean_json_response(response)
    for start, ch in enumerate(text):
        if ch not in _CLOSERS:
            continue
        end = _balanced_end(text, start)
        if end == -1:
            continue
        try:
            return json.loads(text[start:end])
        except json.JSONDecodeError:
            continue

    return None
