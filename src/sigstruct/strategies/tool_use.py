# src/sigstruct/strategies/tool_use.py
"""
ToolUse: the schema is wrapped as a single forced tool and the payload
is read back from the tool-call arguments.

Anthropic gets ``{"name", "description", "input_schema"}`` with
``tool_choice={"type": "tool", "name": ...}``; every other provider gets
the OpenAI function-tool shape.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Optional

from ..codec.base import DataFormat, PayloadCodec
from ..errors import ToolCallDeclined, TransportError
from ..schema.compiler import SchemaDocument, SchemaFormat
from ..schema.json_schema import normalize_provider
from ..transport.base import OutgoingMessage, RawResponse
from .base import BaseStrategy
from .capabilities import supports_tool_use

DEFAULT_TOOL_NAME = "json_output"
TOOL_DESCRIPTION = "Output the result in the required JSON format"

_XML_INPUT_RE = re.compile(r"<tool_use>.*?<input>(.*?)</input>.*?</tool_use>", re.DOTALL)
_TOOL_ERROR_HINTS = ("tool", "invalid_request_error")


class ToolUse(BaseStrategy):
    id = "tool_use"
    priority = 95
    default_max_attempts = 2
    data_formats = (DataFormat.JSON,)
    preferred_schema_format = SchemaFormat.JSON
    schema_format_fixed = True

    def __init__(self, codec: Optional[PayloadCodec] = None, *, tool_name: str = DEFAULT_TOOL_NAME):
        super().__init__(codec)
        self.tool_name = tool_name

    def is_available(self, provider: str, model: str) -> bool:
        return supports_tool_use(provider, model)

    def prepare_request(
        self,
        schema: SchemaDocument,
        message: OutgoingMessage,
        *,
        data_format: DataFormat = DataFormat.JSON,
    ) -> OutgoingMessage:
        self.check_data_format(data_format)
        prepared = message.with_params(**self.request_params(schema, message.provider))
        return prepared.append_to_last_user(
            f"Please use the {self.tool_name} tool to provide your response."
        )

    def request_params(self, schema: SchemaDocument, provider: str) -> Dict[str, Any]:
        if normalize_provider(provider) == "anthropic":
            return {
                "tools": [{
                    "name": self.tool_name,
                    "description": TOOL_DESCRIPTION,
                    "input_schema": schema.content,
                }],
                "tool_choice": {"type": "tool", "name": self.tool_name},
            }
        return {
            "tools": [{
                "type": "function",
                "function": {
                    "name": self.tool_name,
                    "description": TOOL_DESCRIPTION,
                    "parameters": schema.content,
                },
            }],
            "tool_choice": {"type": "function", "function": {"name": self.tool_name}},
        }

    def extract(
        self,
        response: RawResponse,
        *,
        data_format: DataFormat = DataFormat.JSON,
    ) -> str:
        call = response.tool_call(self.tool_name)
        if call is not None:
            if call.arguments is None or call.arguments == "":
                raise self._declined(f"Tool '{self.tool_name}' was called without arguments", response)
            return call.arguments_text

        # Some providers inline the tool call as text.
        if response.content:
            match = _XML_INPUT_RE.search(response.content)
            if match and match.group(1).strip():
                return match.group(1).strip()

        if response.tool_calls:
            names = ", ".join(c.name for c in response.tool_calls)
            raise self._declined(
                f"Expected a call to '{self.tool_name}', got: {names}", response
            )
        raise self._declined(
            f"Model answered with text instead of calling '{self.tool_name}'", response
        )

    def handle_error(self, error: BaseException) -> bool:
        if super().handle_error(error):
            return True
        if isinstance(error, TransportError) and not error.retryable:
            message = str(error).lower()
            return any(hint in message for hint in _TOOL_ERROR_HINTS)
        return False

    def _declined(self, message: str, response: RawResponse) -> ToolCallDeclined:
        return ToolCallDeclined(message, strategy_id=self.id, raw_output=response.content)
