# src/sigstruct/transport/base.py
"""
Transport interface and the message types that cross it.

The pipeline never talks to a provider directly. It hands an
``OutgoingMessage`` to a ``BaseTransport`` and gets back a
``RawResponse`` (or plain text, which is wrapped into one).
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union


@dataclass(frozen=True)
class OutgoingMessage:
    """
    A request ready to be sent.

    Strategies never mutate a message; ``with_messages`` and
    ``with_params`` return modified copies.
    """

    provider: str
    model: str
    messages: Tuple[Dict[str, Any], ...] = ()
    params: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        provider: str,
        model: str,
        messages: Sequence[Mapping[str, Any]],
        params: Optional[Mapping[str, Any]] = None,
    ) -> "OutgoingMessage":
        return cls(
            provider=provider,
            model=model,
            messages=tuple(dict(m) for m in messages),
            params=dict(params or {}),
        )

    def with_messages(self, messages: Sequence[Mapping[str, Any]]) -> "OutgoingMessage":
        return replace(self, messages=tuple(dict(m) for m in messages))

    def with_params(self, **params: Any) -> "OutgoingMessage":
        merged = dict(self.params)
        merged.update(params)
        return replace(self, params=merged)

    def append_to_last_user(self, text: str) -> "OutgoingMessage":
        """Append *text* to the last user message, or add one if none exists."""
        messages = [dict(m) for m in self.messages]
        for message in reversed(messages):
            if message.get("role") == "user" and isinstance(message.get("content"), str):
                message["content"] = f"{message['content']}\n\n{text}"
                return self.with_messages(messages)
        messages.append({"role": "user", "content": text})
        return self.with_messages(messages)


@dataclass(frozen=True)
class ToolCall:
    name: str
    arguments: Any

    @property
    def arguments_text(self) -> str:
        if isinstance(self.arguments, str):
            return self.arguments
        return json.dumps(self.arguments, ensure_ascii=False)


@dataclass(frozen=True)
class RawResponse:
    """What came back from the provider, before any extraction."""

    content: Optional[str] = None
    tool_calls: Tuple[ToolCall, ...] = ()
    parsed: Any = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_text(cls, text: Optional[str]) -> "RawResponse":
        return cls(content=text)

    @classmethod
    def coerce(cls, value: Union["RawResponse", str, None]) -> "RawResponse":
        if isinstance(value, RawResponse):
            return value
        if value is None or isinstance(value, str):
            return cls.from_text(value)
        raise TypeError(f"Transport returned unsupported response type {type(value).__name__}")

    def tool_call(self, name: str) -> Optional[ToolCall]:
        for call in self.tool_calls:
            if call.name == name:
                return call
        return None


class BaseTransport(ABC):
    """
    Abstract provider transport.

    Implementations send one message and return the raw response. Any
    exception they raise is wrapped into ``TransportError`` by the
    pipeline and classified as retryable or not.
    """

    @abstractmethod
    async def send(self, message: OutgoingMessage) -> Union[RawResponse, str]:
        raise NotImplementedError


def normalize_tool_calls(raw_calls: Optional[List[Any]]) -> Tuple[ToolCall, ...]:
    """Accept OpenAI-style ``{"function": {...}}`` dicts, flat dicts or objects."""
    calls = []
    for raw in raw_calls or []:
        if isinstance(raw, ToolCall):
            calls.append(raw)
            continue
        if isinstance(raw, Mapping):
            fn = raw.get("function", raw)
            name = fn.get("name", "")
            arguments = fn.get("arguments", fn.get("input"))
        else:
            fn = getattr(raw, "function", raw)
            name = getattr(fn, "name", "")
            arguments = getattr(fn, "arguments", getattr(fn, "input", None))
        calls.append(ToolCall(name=name, arguments=arguments))
    return tuple(calls)
