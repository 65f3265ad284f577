# src/sigstruct/codec/json_codec.py
"""
Tolerant JSON decoding for model output.

Handles:
- Commentary before or after the payload ("Sure! Here it is: {...} Hope this helps")
- Single-quoted strings, ``True`` / ``False`` and trailing commas (via ``json_repair``)
- Stray brackets in prose ("see [1] for details: {...}"); the longest
  decodable value wins
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterator, List, Optional, Tuple

from json_repair import repair_json

from ..errors import DecodeError

logger = logging.getLogger(__name__)

MAX_CANDIDATES = 32
SNIPPET_RADIUS = 24

_decoder = json.JSONDecoder()


def encode_json(value: Any, *, indent: Optional[int] = None) -> str:
    """Serialise a value tree as JSON."""
    return json.dumps(value, indent=indent, ensure_ascii=False)


def decode_json(text: str) -> Any:
    """
    Decode the JSON value embedded in *text*.

    Raises:
        DecodeError: If no decodable JSON value is present
    """
    value, _, _ = locate_json(text)
    return value


def locate_json(text: str) -> Tuple[Any, int, int]:
    """
    Find the JSON value embedded in *text*.

    Every ``{`` / ``[`` outside an already decoded span is a candidate.
    A candidate is decoded strictly first and repaired second. Strict
    successes outrank repaired ones; within each, the longest span wins.

    Returns:
        ``(value, start, end)`` where ``text[start:end]`` is the payload

    Raises:
        DecodeError: If no decodable JSON value is present
    """
    if text is None or not text.strip():
        raise DecodeError("Empty payload", snippet="", offset=0, data_format="json")

    first_error: Optional[Tuple[str, int]] = None
    found: List[Tuple[bool, Any, int, int]] = []
    covered = -1

    for start in _candidate_starts(text):
        if start < covered:
            continue
        strict = True
        try:
            value, end = _decoder.raw_decode(text, start)
        except json.JSONDecodeError as e:
            if first_error is None:
                first_error = (e.msg, e.pos)
            strict = False
            value, end = _repair(text, start)
        except ValueError as e:
            if first_error is None:
                first_error = (str(e), start)
            continue
        if end is None:
            continue
        found.append((strict, value, start, end))
        covered = end

    if found:
        _, value, start, end = max(found, key=lambda item: (item[0], item[3] - item[2]))
        return value, start, end

    stripped = text.strip()
    leading = len(text) - len(text.lstrip())
    if first_error is None:
        try:
            return json.loads(stripped), leading, leading + len(stripped)
        except json.JSONDecodeError as e:
            first_error = (e.msg, leading + e.pos)

    message, pos = first_error
    raise DecodeError(
        f"Invalid JSON: {message}",
        snippet=_snippet(text, pos),
        offset=len(text[:pos].encode("utf-8")),
        data_format="json",
    )


def _repair(text: str, start: int) -> Tuple[Any, Optional[int]]:
    """Repair the bracketed span at *start*; ``(None, None)`` if nothing useful comes back."""
    end = _balanced_end(text, start)
    try:
        value = repair_json(text[start:end], return_objects=True)
    except (ValueError, TypeError, RecursionError) as e:
        logger.debug("json_repair failed at offset %d: %s", start, e)
        return None, None
    # An empty container means json_repair found nothing to keep
    if not isinstance(value, (dict, list)) or not value:
        return None, None
    return value, end


def _balanced_end(text: str, start: int) -> int:
    """End of the bracketed span opened at *start*, or end of text if it never closes."""
    depth = 0
    quote = None
    i = start
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch in "{[":
            depth += 1
        elif ch in "}]":
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    return len(text)


def _candidate_starts(text: str) -> Iterator[int]:
    count = 0
    for match in re.finditer(r"[\[{]", text):
        yield match.start()
        count += 1
        if count >= MAX_CANDIDATES:
            return


def _snippet(text: str, pos: int) -> str:
    start = max(0, pos - SNIPPET_RADIUS)
    return text[start:pos + SNIPPET_RADIUS]
