# src/sigstruct/schema/compiler.py
"""
SchemaCompiler: descriptor tree -> provider-facing schema document.

Compilation is pure. The same descriptor, format and provider always
produce byte-identical ``SchemaDocument.text``, which is what makes the
schema cache safe.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from ..errors import ConfigurationError
from ..types.descriptors import Struct, TypeDescriptor, ensure_resolved
from .baml import to_baml
from .json_schema import normalize_provider, to_json_schema

logger = logging.getLogger(__name__)


class SchemaFormat(str, Enum):
    """
    How a contract is rendered for the provider.

    JSON is the verbose, self-describing JSON-Schema document; BAML is the
    compact line-per-field notation for inline prompts.
    """

    JSON = "json"
    BAML = "baml"

    @classmethod
    def parse(cls, value: Union["SchemaFormat", str]) -> "SchemaFormat":
        """
        Convert a string to a SchemaFormat.

        Raises:
            ConfigurationError: If the value names no known format
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            known = ", ".join(f.value for f in cls)
            raise ConfigurationError(
                f"Unknown schema format '{value}'. Known formats: {known}"
            ) from None


@dataclass(frozen=True)
class SchemaDocument:
    """A compiled schema.

    ``content`` is a dict for JSON and a string for BAML; ``text`` is the
    canonical serialised form in both cases. ``descriptor`` is the tree it
    was compiled from.
    """

    format: SchemaFormat
    content: Any
    name: str
    provider: Optional[str] = None
    descriptor: Optional[TypeDescriptor] = field(default=None, compare=False, repr=False)

    @property
    def text(self) -> str:
        if self.format is SchemaFormat.JSON:
            return json.dumps(self.content, indent=2, ensure_ascii=False)
        return self.content


class SchemaCompiler:
    """Renders descriptor trees into ``SchemaDocument`` objects.

    Stateless; one instance can be shared by every pipeline.
    """

    def compile(
        self,
        descriptor: TypeDescriptor,
        schema_format: Union[SchemaFormat, str] = SchemaFormat.JSON,
        *,
        provider: Optional[str] = None,
    ) -> SchemaDocument:
        """
        Compile *descriptor* into *schema_format*.

        Args:
            descriptor: Fully resolved descriptor tree
            schema_format: ``json`` or ``baml``
            provider: Provider dialect for JSON documents (openai, gemini, ...)

        Raises:
            ConfigurationError: Unknown format or unresolved descriptor
        """
        fmt = SchemaFormat.parse(schema_format)
        ensure_resolved(descriptor)
        dialect = normalize_provider(provider)

        if fmt is SchemaFormat.JSON:
            content: Any = to_json_schema(descriptor, provider=dialect)
        else:
            content = to_baml(descriptor)

        name = descriptor.name if isinstance(descriptor, Struct) else "output"
        logger.debug("Compiled %s schema for %s (provider=%s)", fmt.value, name, dialect)
        return SchemaDocument(
            format=fmt, content=content, name=name, provider=dialect, descriptor=descriptor
        )
