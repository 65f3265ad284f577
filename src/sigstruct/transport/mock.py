# src/sigstruct/transport/mock.py
"""
ScriptedTransport: replays queued responses for tests and examples.

Each queued item is one of:

* ``str`` -> returned as response text
* ``RawResponse`` -> returned as-is
* ``BaseException`` instance -> raised
* callable ``(OutgoingMessage) -> item`` -> called, then handled as above
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Any, Deque, Iterable, List, Optional

from ..errors import TransportError
from .base import BaseTransport, OutgoingMessage, RawResponse, ToolCall


class ScriptedTransport(BaseTransport):
    def __init__(self, script: Optional[Iterable[Any]] = None, *, delay: float = 0.0):
        self._script: Deque[Any] = deque(script or [])
        self.delay = delay
        self.sent: List[OutgoingMessage] = []

    @property
    def call_count(self) -> int:
        return len(self.sent)

    @property
    def remaining(self) -> int:
        return len(self._script)

    def queue(self, *items: Any) -> "ScriptedTransport":
        self._script.extend(items)
        return self

    async def send(self, message: OutgoingMessage) -> RawResponse:
        self.sent.append(message)
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self._script:
            raise TransportError("No scripted responses left", retryable=False)

        item = self._script.popleft()
        if callable(item) and not isinstance(item, BaseException):
            item = item(message)
        if isinstance(item, BaseException):
            raise item
        return RawResponse.coerce(item)

    # ------------------------------------------------------------------ #
    # Response builders                                                   #
    # ------------------------------------------------------------------ #

    @staticmethod
    def text(content: str) -> RawResponse:
        return RawResponse(content=content)

    @staticmethod
    def tool(name: str, arguments: Any, content: Optional[str] = None) -> RawResponse:
        return RawResponse(content=content, tool_calls=(ToolCall(name=name, arguments=arguments),))

    @staticmethod
    def parsed(value: Any, content: Optional[str] = None) -> RawResponse:
        return RawResponse(content=content, parsed=value)
