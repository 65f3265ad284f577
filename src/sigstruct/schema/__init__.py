# src/sigstruct/schema/__init__.py
"""Schema compilation: JSON Schema and compact BAML-like notation."""

from .baml import to_baml, type_expr
from .compiler import SchemaCompiler, SchemaDocument, SchemaFormat
from .json_schema import normalize_provider, to_json_schema

__all__ = [
    "SchemaCompiler",
    "SchemaDocument",
    "SchemaFormat",
    "to_json_schema",
    "to_baml",
    "type_expr",
    "normalize_provider",
]
