# src/sigstruct/strategies/native.py
"""
NativeStructuredOutput: the schema travels as the provider's own
structured-output parameter and the payload comes back as plain JSON.

Parameter per provider:

- openai / xai: ``response_format={"type": "json_schema", ...}``
- gemini: ``generation_config={"response_mime_type": ..., "response_schema": ...}``
- ollama: ``format=<schema>``
"""

from __future__ import annotations

import json
from typing import Any, Dict

from ..codec.base import DataFormat
from ..errors import TransportError
from ..schema.compiler import SchemaDocument, SchemaFormat
from ..schema.json_schema import normalize_provider
from ..transport.base import OutgoingMessage, RawResponse
from .base import BaseStrategy
from .capabilities import supports_native_output

_SCHEMA_ERROR_HINTS = ("schema", "response_format", "generation_config", "json_schema")


class NativeStructuredOutput(BaseStrategy):
    id = "native_structured_output"
    priority = 100
    default_max_attempts = 2
    data_formats = (DataFormat.JSON,)
    preferred_schema_format = SchemaFormat.JSON
    schema_format_fixed = True

    def is_available(self, provider: str, model: str) -> bool:
        return supports_native_output(provider, model)

    def prepare_request(
        self,
        schema: SchemaDocument,
        message: OutgoingMessage,
        *,
        data_format: DataFormat = DataFormat.JSON,
    ) -> OutgoingMessage:
        self.check_data_format(data_format)
        return message.with_params(**self.request_params(schema, message.provider))

    def request_params(self, schema: SchemaDocument, provider: str) -> Dict[str, Any]:
        dialect = normalize_provider(provider)
        if dialect == "gemini":
            return {
                "generation_config": {
                    "response_mime_type": "application/json",
                    "response_schema": schema.content,
                }
            }
        if dialect == "ollama":
            return {"format": schema.content}
        return {
            "response_format": {
                "type": "json_schema",
                "json_schema": {
                    "name": schema.name,
                    "strict": True,
                    "schema": schema.content,
                },
            }
        }

    def extract(
        self,
        response: RawResponse,
        *,
        data_format: DataFormat = DataFormat.JSON,
    ) -> str:
        if response.parsed is not None:
            return json.dumps(response.parsed, ensure_ascii=False, default=_plain)
        if response.content and response.content.strip():
            return response.content.strip()
        raise self._failure("Structured output response has no content", response)

    def handle_error(self, error: BaseException) -> bool:
        if super().handle_error(error):
            return True
        # The provider rejected the schema itself; another strategy may still work.
        if isinstance(error, TransportError) and not error.retryable:
            message = str(error).lower()
            return any(hint in message for hint in _SCHEMA_ERROR_HINTS)
        return False


def _plain(value: Any) -> Any:
    dump = getattr(value, "model_dump", None)
    if callable(dump):
        return dump()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
