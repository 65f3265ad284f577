# src/sigstruct/strategies/enhanced_prompting.py
"""
EnhancedPrompting: the universal fallback. Works with any provider by
embedding the verbose schema, an example payload and explicit
formatting rules in the prompt.
"""

from __future__ import annotations

from typing import Any, Dict, List

from ..codec.base import DataFormat
from ..schema.compiler import SchemaDocument, SchemaFormat
from ..transport.base import OutgoingMessage, RawResponse
from ..types.descriptors import (
    Array, EnumType, Nilable, Primitive, PrimitiveKind, Struct, TaggedUnion,
    TypeDescriptor,
)
from .base import BaseStrategy, format_label
from .patterns import extract_payload

SYSTEM_PROMPT = (
    "You are a helpful assistant that always responds with valid {label} when requested."
)

_EXAMPLE_PRIMITIVES = {
    PrimitiveKind.INTEGER: 42,
    PrimitiveKind.FLOAT: 3.14,
    PrimitiveKind.BOOLEAN: True,
}


class EnhancedPrompting(BaseStrategy):
    id = "enhanced_prompting"
    priority = 50
    default_max_attempts = 3
    universal = True
    preferred_schema_format = SchemaFormat.JSON

    def is_available(self, provider: str, model: str) -> bool:
        return True

    def prepare_request(
        self,
        schema: SchemaDocument,
        message: OutgoingMessage,
        *,
        data_format: DataFormat = DataFormat.JSON,
    ) -> OutgoingMessage:
        self.check_data_format(data_format)
        prepared = message.append_to_last_user(self.instruction(schema, data_format))
        if not any(m.get("role") == "system" for m in prepared.messages):
            system = {"role": "system", "content": SYSTEM_PROMPT.format(label=format_label(data_format))}
            prepared = prepared.with_messages([system, *prepared.messages])
        return prepared

    def instruction(self, schema: SchemaDocument, data_format: DataFormat) -> str:
        label = format_label(data_format)
        tag = data_format.value
        lines = []

        if schema.descriptor is not None:
            example = self.codec.encode(example_value(schema.descriptor), data_format)
            lines += [
                f"IMPORTANT: You must respond with valid {label} that matches this structure:",
                f"```{tag}",
                example,
                "```",
                "",
            ]
            required = required_fields(schema.descriptor)
            lines += [f"Required fields: {', '.join(required) if required else 'none'}", ""]
        else:
            lines += [f"IMPORTANT: You must respond with valid {label}.", ""]

        lines += [
            "Schema:",
            f"```{schema.format.value}",
            schema.text.rstrip(),
            "```",
            "",
            "Ensure your response:",
            f"1. Is valid {label}" + (" (properly quoted strings, no trailing commas)" if data_format is DataFormat.JSON else ""),
            "2. Includes all required fields",
            "3. Uses the correct data types for each field",
            f"4. Is wrapped in ```{tag}``` markdown code blocks",
        ]
        return "\n".join(lines)

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


def example_value(descriptor: TypeDescriptor, description: str | None = None) -> Any:
    """Build an illustrative value tree for *descriptor*."""
    if isinstance(descriptor, Primitive):
        if descriptor.kind is PrimitiveKind.STRING:
            return description or "example string"
        return _EXAMPLE_PRIMITIVES[descriptor.kind]
    if isinstance(descriptor, EnumType):
        return descriptor.values[0]
    if isinstance(descriptor, Array):
        return [example_value(descriptor.element)]
    if isinstance(descriptor, Nilable):
        return example_value(descriptor.inner, description)
    if isinstance(descriptor, Struct):
        return {f.name: example_value(f.type, f.description) for f in descriptor.fields}
    if isinstance(descriptor, TaggedUnion):
        variant = descriptor.variants[0]
        result: Dict[str, Any] = {descriptor.discriminator_field: variant.name}
        if isinstance(variant, Struct):
            result.update(example_value(variant))
        return result
    return "example value"


def required_fields(descriptor: TypeDescriptor) -> List[str]:
    if isinstance(descriptor, Struct):
        return [f.name for f in descriptor.fields if f.required and not f.has_default]
    return []
