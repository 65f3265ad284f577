# src/sigstruct/strategies/pattern_extraction.py
"""
PatternExtraction: ask for an isolated payload in plain text, then dig
it out with the heuristics in ``patterns``.

Uses the compact BAML schema by default; the payload may be JSON or
TOON.
"""

from __future__ import annotations

from ..codec.base import DataFormat
from ..schema.compiler import SchemaDocument, SchemaFormat
from ..transport.base import OutgoingMessage, RawResponse
from .base import BaseStrategy, format_label
from .capabilities import supports_pattern_extraction
from .patterns import extract_payload


class PatternExtraction(BaseStrategy):
    id = "pattern_extraction"
    priority = 90
    default_max_attempts = 3
    preferred_schema_format = SchemaFormat.BAML

    def is_available(self, provider: str, model: str) -> bool:
        return supports_pattern_extraction(provider, model)

    def prepare_request(
        self,
        schema: SchemaDocument,
        message: OutgoingMessage,
        *,
        data_format: DataFormat = DataFormat.JSON,
    ) -> OutgoingMessage:
        self.check_data_format(data_format)
        return message.append_to_last_user(self.instruction(schema, data_format))

    def instruction(self, schema: SchemaDocument, data_format: DataFormat) -> str:
        label = format_label(data_format)
        tag = data_format.value
        return (
            f"Respond with a {label} value matching this schema:\n"
            f"```{schema.format.value}\n{schema.text.rstrip()}\n```\n\n"
            f"Put only the {label} value in a single ```{tag} fenced block, "
            "with no other text inside the block."
        )

    def extract(
        self,
        response: RawResponse,
        *,
        data_format: DataFormat = DataFormat.JSON,
    ) -> str:
        if not response.content or not response.content.strip():
            raise self._failure("Response has no text content", response)
        payload = extract_payload(response.content, data_format, self.codec)
        if payload is None:
            raise self._failure(
                f"No decodable {data_format.value} payload found in response", response
            )
        return payload
