# src/sigstruct/strategies/patterns.py
"""
Heuristics for locating a payload inside free-form response text.

Tried in order; the first candidate that decodes wins:

1. A fenced block tagged with the payload format (```json / ```toon)
2. The text after a ``## Output values`` section header
3. Any fenced block
4. The whole trimmed response

For JSON the returned payload is the decoded span only; commentary
around it is dropped.
"""

from __future__ import annotations

import logging
import re
from typing import Iterator, List, Optional, Tuple

from ..codec.base import DataFormat, PayloadCodec
from ..errors import DecodeError

logger = logging.getLogger(__name__)

OUTPUT_HEADER = "## Output values"

_FENCE_RE = re.compile(r"```[ \t]*([A-Za-z0-9_+-]*)[ \t]*\r?\n(.*?)```", re.DOTALL)


def fenced_blocks(content: str) -> List[Tuple[str, str]]:
    """Return ``(tag, body)`` for every fenced block, in order."""
    return [(m.group(1).lower(), m.group(2)) for m in _FENCE_RE.finditer(content)]


def candidates(content: str, data_format: DataFormat) -> Iterator[Tuple[str, str]]:
    blocks = fenced_blocks(content)

    for tag, body in blocks:
        if tag == data_format.value:
            yield "tagged_fence", body

    if OUTPUT_HEADER in content:
        after = content.split(OUTPUT_HEADER)[-1]
        header_blocks = fenced_blocks(after)
        if header_blocks:
            yield "output_header", header_blocks[0][1]
        else:
            yield "output_header", after

    for _, body in blocks:
        yield "fence", body

    yield "whole", content


def extract_payload(
    content: Optional[str],
    data_format: DataFormat,
    codec: PayloadCodec,
) -> Optional[str]:
    """Return the payload of the first decodable candidate, or None."""
    if content is None or not content.strip():
        return None
    for source, text in candidates(content, data_format):
        text = text.strip()
        if not text:
            continue
        try:
            payload = codec.locate(text, data_format)
        except DecodeError:
            continue
        logger.debug("Payload located via %s", source)
        return payload
    return None
