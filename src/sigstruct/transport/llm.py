# src/sigstruct/transport/llm.py
"""
Adapter from an LLM client to the transport interface.

Any object with an async ``call(model=..., messages=..., **params)``
returning an OpenAI-shaped response (``choices[0].message``) can be
used as a transport.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from ..errors import TransportError
from .base import BaseTransport, OutgoingMessage, RawResponse, normalize_tool_calls

logger = logging.getLogger(__name__)


class LLMTransport(BaseTransport):
    def __init__(self, llm: Any):
        if not callable(getattr(llm, "call", None)):
            raise TypeError(f"{type(llm).__name__} has no call() method")
        self.llm = llm

    async def send(self, message: OutgoingMessage) -> RawResponse:
        try:
            response = await self.llm.call(
                model=message.model,
                messages=[dict(m) for m in message.messages],
                **dict(message.params),
            )
        except TransportError:
            raise
        except Exception as e:
            wrapped = TransportError.wrap(e)
            logger.debug("LLM call failed (retryable=%s): %s", wrapped.retryable, e)
            raise wrapped from e
        return to_raw_response(response)


def to_raw_response(response: Any) -> RawResponse:
    """Normalise ``choices[0].message`` (object or dict) into a RawResponse."""
    if isinstance(response, RawResponse):
        return response
    if response is None or isinstance(response, str):
        return RawResponse.from_text(response)

    choices = _get(response, "choices")
    if not choices:
        raise TransportError("Response has no choices", retryable=False)
    message = _get(choices[0], "message")
    if message is None:
        raise TransportError("Response choice has no message", retryable=False)

    tool_calls = _get(message, "tool_calls")
    if not tool_calls and _get(message, "function_call"):
        tool_calls = [_get(message, "function_call")]

    return RawResponse(
        content=_get(message, "content"),
        tool_calls=normalize_tool_calls(tool_calls),
        parsed=_get(message, "parsed"),
        metadata={"model": _get(response, "model")},
    )


def _get(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)
