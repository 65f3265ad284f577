# src/sigstruct/codec/toon.py
"""
TOON: a compact, line-oriented notation for value trees.

Objects are ``key: value`` lines with nested objects indented two
spaces. Arrays declare their length in the header. Homogeneous arrays
of flat records are written as a field header plus one row per record,
which is where most of the token savings come from::

    title: Mug
    tags[2]: kitchen,ceramic
    items[2]{sku,qty}:
      A1,2
      B2,5
    owner:
      name: Ada

Arrays that are neither primitive nor tabular are written as ``- ``
list items. Strings are left bare unless they could be misread, in
which case they are double-quoted with JSON escapes.
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ..errors import DecodeError

INDENT = "  "
DELIMITER = ","

_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")
_NUMBER_RE = re.compile(r"^-?(?:0|[1-9]\d*)(?:\.\d+)?(?:[eE][+-]?\d+)?$")
_HEADER_RE = re.compile(
    r'^(?P<key>"(?:[^"\\]|\\.)*"|[A-Za-z_][A-Za-z0-9_.]*)?'
    r"\[#?(?P<length>\d+)(?P<delim>[|\t])?\]"
    r"(?:\{(?P<fields>[^}]*)\})?"
    r":(?P<rest>.*)$"
)
_UNSAFE_CHARS = set(':,"\'\\[]{}#\n\r\t|')


# ============================================================================
# ENCODING
# ============================================================================

def encode_toon(value: Any) -> str:
    """Serialise a value tree (dicts, lists, primitives) as TOON."""
    if _is_primitive(value):
        return _primitive(value)
    lines: List[Tuple[int, str]] = []
    if isinstance(value, dict):
        _encode_object(value, 0, lines)
    else:
        _encode_array(None, list(value), 0, lines)
    return "\n".join(f"{INDENT * depth}{text}" for depth, text in lines)


def _is_primitive(value: Any) -> bool:
    return value is None or isinstance(value, (str, int, float, bool))


def _primitive(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return "null"
        return repr(value)
    return _string(value)


def _string(value: str) -> str:
    if _needs_quotes(value):
        return json.dumps(value, ensure_ascii=False)
    return value


def _needs_quotes(value: str) -> bool:
    if not value or value != value.strip():
        return True
    if value in ("true", "false", "null"):
        return True
    if value[0] == "-" or value[0].isdigit():
        return True
    return any(ch in _UNSAFE_CHARS for ch in value)


def _key(key: Any) -> str:
    key = str(key)
    if _KEY_RE.match(key):
        return key
    return json.dumps(key, ensure_ascii=False)


def _encode_object(obj: Dict[str, Any], depth: int, lines: List[Tuple[int, str]]) -> None:
    for key, value in obj.items():
        _encode_pair(key, value, depth, lines)


def _encode_pair(key: Any, value: Any, depth: int, lines: List[Tuple[int, str]]) -> None:
    if _is_primitive(value):
        lines.append((depth, f"{_key(key)}: {_primitive(value)}"))
    elif isinstance(value, dict):
        lines.append((depth, f"{_key(key)}:"))
        _encode_object(value, depth + 1, lines)
    else:
        _encode_array(key, list(value), depth, lines)


def _tabular_fields(items: List[Any]) -> Optional[List[str]]:
    if not all(isinstance(item, dict) and item for item in items):
        return None
    fields = list(items[0].keys())
    for item in items:
        if list(item.keys()) != fields:
            return None
        if not all(_is_primitive(v) for v in item.values()):
            return None
    return fields


def _encode_array(
    key: Any, items: List[Any], depth: int, lines: List[Tuple[int, str]]
) -> None:
    prefix = _key(key) if key is not None else ""
    count = len(items)

    if count == 0:
        lines.append((depth, f"{prefix}[0]:"))
        return

    if all(_is_primitive(item) for item in items):
        joined = DELIMITER.join(_primitive(item) for item in items)
        lines.append((depth, f"{prefix}[{count}]: {joined}"))
        return

    fields = _tabular_fields(items)
    if fields is not None:
        header = DELIMITER.join(_key(f) for f in fields)
        lines.append((depth, f"{prefix}[{count}]{{{header}}}:"))
        for item in items:
            row = DELIMITER.join(_primitive(item[f]) for f in fields)
            lines.append((depth + 1, row))
        return

    lines.append((depth, f"{prefix}[{count}]:"))
    for item in items:
        _encode_list_item(item, depth + 1, lines)


def _encode_list_item(item: Any, depth: int, lines: List[Tuple[int, str]]) -> None:
    if _is_primitive(item):
        lines.append((depth, f"- {_primitive(item)}"))
        return

    sub: List[Tuple[int, str]] = []
    if isinstance(item, dict):
        if not item:
            lines.append((depth, "-"))
            return
        pairs = list(item.items())
        first_key, first_value = pairs[0]
        _encode_pair(first_key, first_value, depth + 1, sub)
        for key, value in pairs[1:]:
            _encode_pair(key, value, depth + 1, sub)
    else:
        _encode_array(None, list(item), depth, sub)

    # The first line moves onto the list marker.
    _, first_text = sub[0]
    sub[0] = (depth, f"- {first_text}")
    lines.extend(sub)


# ============================================================================
# DECODING
# ============================================================================

@dataclass
class _Line:
    depth: int
    content: str
    number: int
    offset: int


@dataclass
class _Header:
    key: Optional[str]
    length: int
    delimiter: str
    fields: Optional[List[str]]
    rest: str


class _Cursor:
    def __init__(self, lines: List[_Line]):
        self.lines = lines
        self.index = 0

    def peek(self) -> Optional[_Line]:
        if self.index < len(self.lines):
            return self.lines[self.index]
        return None

    def next(self) -> _Line:
        line = self.lines[self.index]
        self.index += 1
        return line

    def at_end(self) -> bool:
        return self.index >= len(self.lines)


def decode_toon(text: str) -> Any:
    """
    Decode a TOON document into a value tree.

    Leading prose before the first structural line is skipped.

    Raises:
        DecodeError: If the text is not valid TOON
    """
    lines = _scan(text or "")
    lines = _trim_commentary(lines)
    if not lines:
        raise DecodeError("Empty payload", snippet="", offset=0, data_format="toon")

    cursor = _Cursor(lines)
    first = lines[0]
    header = _parse_header(first.content)

    if header is not None and header.key is None:
        cursor.next()
        value: Any = _decode_array(header, cursor, first.depth, first)
    elif len(lines) == 1 and _find_unquoted(first.content, ":") < 0:
        cursor.next()
        value = _parse_primitive(first.content, first)
    else:
        value = _decode_object(cursor, first.depth)

    if not cursor.at_end():
        _fail("Unexpected content", cursor.peek())
    return value


def _scan(text: str) -> List[_Line]:
    raw_lines = text.replace("\r\n", "\n").split("\n")
    indents = []
    for raw in raw_lines:
        if raw.strip():
            expanded = raw.replace("\t", INDENT)
            indents.append(len(expanded) - len(expanded.lstrip(" ")))
    unit = min((i for i in indents if i > 0), default=len(INDENT))

    lines = []
    offset = 0
    for number, raw in enumerate(raw_lines, start=1):
        if raw.strip():
            expanded = raw.replace("\t", INDENT)
            indent = len(expanded) - len(expanded.lstrip(" "))
            leading = len(raw) - len(raw.lstrip())
            lines.append(_Line(
                depth=indent // unit,
                content=raw.strip(),
                number=number,
                offset=offset + len(raw[:leading].encode("utf-8")),
            ))
        offset += len(raw.encode("utf-8")) + 1
    return lines


_STRUCTURAL_RE = re.compile(
    r'^(?:"(?:[^"\\]|\\.)*"|[A-Za-z_][A-Za-z0-9_.]*)?'
    r"(?:\[#?\d+[|\t]?\](?:\{[^}]*\})?)?:(?:\s|$)"
)


def _trim_commentary(lines: List[_Line]) -> List[_Line]:
    """Drop prose lines around a document with a top-level key or header."""
    if len(lines) <= 1:
        return lines
    start = None
    for i, line in enumerate(lines):
        if line.depth == 0 and _is_structural(line.content):
            start = i
            break
    if start is None:
        return lines
    end = start + 1
    while end < len(lines):
        line = lines[end]
        if line.depth == 0 and not _is_structural(line.content):
            break
        end += 1
    return lines[start:end]


def _is_structural(content: str) -> bool:
    if not _STRUCTURAL_RE.match(content):
        return False
    # A bare ":" prefix is not a key.
    return not content.startswith(":")


def _decode_object(cursor: _Cursor, depth: int) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    while True:
        line = cursor.peek()
        if line is None or line.depth < depth:
            break
        if line.depth > depth:
            _fail("Unexpected indentation", line)
        if _is_list_item(line.content):
            _fail("List item outside of an array", line)
        cursor.next()
        key, value = _decode_pair(line.content, cursor, depth, line)
        result[key] = value
    return result


def _decode_pair(
    content: str, cursor: _Cursor, depth: int, line: _Line
) -> Tuple[str, Any]:
    header = _parse_header(content)
    if header is not None and header.key is not None:
        return header.key, _decode_array(header, cursor, depth, line)

    colon = _find_unquoted(content, ":")
    if colon < 0:
        _fail("Expected 'key: value'", line)
    key = _parse_key(content[:colon].strip(), line)
    rest = content[colon + 1:].strip()

    if rest:
        return key, _parse_primitive(rest, line)

    nxt = cursor.peek()
    if nxt is not None and nxt.depth > depth:
        return key, _decode_object(cursor, depth + 1)
    return key, {}


def _decode_array(header: _Header, cursor: _Cursor, depth: int, line: _Line) -> List[Any]:
    if header.rest:
        values = [_parse_primitive(tok, line) for tok in _split(header.rest, header.delimiter)]
        _check_length(header, len(values), line)
        return values

    items: List[Any] = []
    if header.fields is not None:
        width = len(header.fields)
        while len(items) < header.length:
            row_line = cursor.peek()
            if row_line is None or row_line.depth != depth + 1 or _is_list_item(row_line.content):
                break
            cursor.next()
            cells = _split(row_line.content, header.delimiter)
            if len(cells) != width:
                _fail(f"Row has {len(cells)} values, header declares {width}", row_line)
            items.append({
                name: _parse_primitive(cell, row_line)
                for name, cell in zip(header.fields, cells)
            })
    else:
        while len(items) < header.length:
            item_line = cursor.peek()
            if item_line is None or item_line.depth != depth + 1:
                break
            if not _is_list_item(item_line.content):
                break
            items.append(_decode_list_item(cursor, depth + 1))

    _check_length(header, len(items), line)
    return items


def _decode_list_item(cursor: _Cursor, depth: int) -> Any:
    line = cursor.next()
    rest = line.content[1:].strip()
    if not rest:
        return {}

    header = _parse_header(rest)
    if header is not None and header.key is None:
        return _decode_array(header, cursor, depth, line)

    if _find_unquoted(rest, ":") < 0:
        return _parse_primitive(rest, line)

    key, value = _decode_pair(rest, cursor, depth + 1, line)
    obj = {key: value}
    while True:
        nxt = cursor.peek()
        if nxt is None or nxt.depth != depth + 1 or _is_list_item(nxt.content):
            break
        cursor.next()
        key, value = _decode_pair(nxt.content, cursor, depth + 1, nxt)
        obj[key] = value
    return obj


def _is_list_item(content: str) -> bool:
    return content == "-" or content.startswith("- ")


def _check_length(header: _Header, actual: int, line: _Line) -> None:
    if actual != header.length:
        _fail(f"Array declares {header.length} items, found {actual}", line)


def _parse_header(content: str) -> Optional[_Header]:
    match = _HEADER_RE.match(content)
    if not match:
        return None
    raw_key = match.group("key")
    key = None
    if raw_key is not None:
        key = json.loads(raw_key) if raw_key.startswith('"') else raw_key
    delimiter = match.group("delim") or DELIMITER
    fields = None
    if match.group("fields") is not None:
        fields = [_unquote_key(f.strip()) for f in _split(match.group("fields"), delimiter)]
    return _Header(
        key=key,
        length=int(match.group("length")),
        delimiter=delimiter,
        fields=fields,
        rest=match.group("rest").strip(),
    )


def _parse_key(raw: str, line: _Line) -> str:
    if not raw:
        _fail("Empty key", line)
    return _unquote_key(raw)


def _unquote_key(raw: str) -> str:
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in "\"'":
        return _unquote(raw)
    return raw


def _parse_primitive(token: str, line: _Line) -> Any:
    token = token.strip()
    if not token:
        return None
    if token[0] in "\"'":
        if len(token) < 2 or token[-1] != token[0]:
            _fail("Unterminated string", line)
        return _unquote(token)
    if token == "null":
        return None
    if token == "true":
        return True
    if token == "false":
        return False
    if _NUMBER_RE.match(token):
        if any(ch in token for ch in ".eE"):
            return float(token)
        return int(token)
    return token


def _unquote(token: str) -> str:
    inner = token[1:-1]
    if token[0] == "'":
        inner = inner.replace("\\'", "'").replace('"', '\\"')
    try:
        return json.loads(f'"{inner}"')
    except json.JSONDecodeError:
        return inner


def _find_unquoted(text: str, target: str) -> int:
    quote = None
    i = 0
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
        elif ch == target:
            return i
        i += 1
    return -1


def _split(text: str, delimiter: str) -> List[str]:
    parts = []
    while True:
        index = _find_unquoted(text, delimiter)
        if index < 0:
            parts.append(text.strip())
            return parts
        parts.append(text[:index].strip())
        text = text[index + 1:]


def _fail(message: str, line: Optional[_Line]) -> None:
    if line is None:
        raise DecodeError(message, data_format="toon")
    raise DecodeError(
        f"{message} (line {line.number})",
        snippet=line.content,
        offset=line.offset,
        data_format="toon",
    )
