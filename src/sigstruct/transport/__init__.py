# src/sigstruct/transport/__init__.py
"""Provider transport interface, LLM adapter and scripted mock."""

from .base import BaseTransport, OutgoingMessage, RawResponse, ToolCall, normalize_tool_calls
from .llm import LLMTransport, to_raw_response
from .mock import ScriptedTransport

__all__ = [
    "BaseTransport",
    "OutgoingMessage",
    "RawResponse",
    "ToolCall",
    "normalize_tool_calls",
    "LLMTransport",
    "to_raw_response",
    "ScriptedTransport",
]
