# src/sigstruct/schema/json_schema.py
"""
Render type descriptors as JSON Schema documents.

The generic document uses the standard keywords (``type``,
``properties``, ``required``, ``items``, ``enum``). Providers with
stricter dialects get a cleaned copy:

- ``openai``: ``additionalProperties: false`` on every object, every
  property listed in ``required`` (optional ones become nullable), no
  ``title`` / ``default``
- ``gemini``: no ``additionalProperties``, ``const`` rewritten as a
  single-value ``enum``, nullability expressed as ``nullable: true``
"""

from __future__ import annotations

import copy
import json
from typing import Any, Dict, Optional

from ..errors import ConfigurationError
from ..types.descriptors import (
    Array, EnumType, Nilable, Primitive, PrimitiveKind, Ref, Struct,
    StructField, TaggedUnion, TypeDescriptor,
)

_PRIMITIVE_TYPES = {
    PrimitiveKind.STRING: "string",
    PrimitiveKind.INTEGER: "integer",
    PrimitiveKind.FLOAT: "number",
    PrimitiveKind.BOOLEAN: "boolean",
}

PROVIDER_ALIASES = {
    "google": "gemini",
    "vertex": "gemini",
    "azure": "openai",
    "azure_openai": "openai",
}


def normalize_provider(provider: Optional[str]) -> Optional[str]:
    if provider is None:
        return None
    key = provider.lower()
    return PROVIDER_ALIASES.get(key, key)


# ============================================================================
# GENERIC DOCUMENT
# ============================================================================

def to_json_schema(
    descriptor: TypeDescriptor,
    *,
    provider: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Convert a descriptor to a JSON Schema dictionary.

    Args:
        descriptor: Fully resolved descriptor tree
        provider: Optimize for a specific provider dialect (openai, gemini)

    Returns:
        JSON Schema dictionary
    """
    schema = _node(descriptor)
    dialect = normalize_provider(provider)
    if dialect == "openai":
        schema = _clean_for_openai(schema)
    elif dialect == "gemini":
        schema = _clean_for_gemini(schema)
    return schema


def _node(descriptor: TypeDescriptor) -> Dict[str, Any]:
    if isinstance(descriptor, Primitive):
        return {"type": _PRIMITIVE_TYPES[descriptor.kind]}

    if isinstance(descriptor, EnumType):
        schema: Dict[str, Any] = {"type": "string", "enum": list(descriptor.values)}
        if descriptor.description:
            schema["description"] = descriptor.description
        return schema

    if isinstance(descriptor, Struct):
        return _struct(descriptor)

    if isinstance(descriptor, Array):
        return {"type": "array", "items": _node(descriptor.element)}

    if isinstance(descriptor, Nilable):
        inner = _node(descriptor.inner)
        if set(inner) == {"type"} and isinstance(inner["type"], str):
            return {"type": [inner["type"], "null"]}
        return {"anyOf": [inner, {"type": "null"}]}

    if isinstance(descriptor, TaggedUnion):
        return {
            "anyOf": [
                _struct(variant, discriminator=descriptor.discriminator_field)
                for variant in descriptor.variants
            ]
        }

    if isinstance(descriptor, Ref):
        raise ConfigurationError(f"Cannot compile unresolved reference '{descriptor.name}'")

    raise ConfigurationError(f"Not a type descriptor: {descriptor!r}")


def _struct(struct: Struct, *, discriminator: Optional[str] = None) -> Dict[str, Any]:
    properties: Dict[str, Any] = {}
    required = []

    if discriminator is not None:
        properties[discriminator] = {"type": "string", "const": struct.name}
        required.append(discriminator)

    for f in struct.fields:
        properties[f.name] = _property(f)
        if f.required and not f.has_default:
            required.append(f.name)

    schema: Dict[str, Any] = {
        "type": "object",
        "title": struct.name,
        "properties": properties,
        "required": required,
    }
    if struct.description:
        schema["description"] = struct.description
    return schema


def _property(f: StructField) -> Dict[str, Any]:
    prop = _node(f.type)
    if f.description:
        prop = dict(prop)
        prop["description"] = f.description
    if f.has_default and _is_json_value(f.default):
        prop = dict(prop)
        prop["default"] = f.default
    return prop


def _is_json_value(value: Any) -> bool:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return False
    return True


# ============================================================================
# PROVIDER DIALECTS
# ============================================================================

def _clean_for_openai(schema: Dict[str, Any]) -> Dict[str, Any]:
    """OpenAI strict mode: closed objects, every property required."""
    schema = copy.deepcopy(schema)
    return _openai_node(schema)


def _openai_node(node: Dict[str, Any]) -> Dict[str, Any]:
    node.pop("title", None)
    node.pop("default", None)

    if "anyOf" in node:
        node["anyOf"] = [_openai_node(opt) for opt in node["anyOf"]]

    if node.get("type") == "object" and "properties" in node:
        required = set(node.get("required", []))
        properties = {}
        for key, prop in node["properties"].items():
            prop = _openai_node(prop)
            if key not in required:
                prop = _make_nullable(prop)
            properties[key] = prop
        node["properties"] = properties
        node["required"] = list(properties.keys())
        node["additionalProperties"] = False

    if node.get("type") == "array" and "items" in node:
        node["items"] = _openai_node(node["items"])

    return node


def _make_nullable(prop: Dict[str, Any]) -> Dict[str, Any]:
    types = prop.get("type")
    if isinstance(types, list) and "null" in types:
        return prop
    if any(opt.get("type") == "null" for opt in prop.get("anyOf", [])):
        return prop
    if isinstance(types, str) and set(prop) <= {"type", "description"}:
        nullable = dict(prop)
        nullable["type"] = [types, "null"]
        return nullable
    return {"anyOf": [prop, {"type": "null"}]}


def _clean_for_gemini(schema: Dict[str, Any]) -> Dict[str, Any]:
    """Gemini response_schema: OpenAPI subset with ``nullable``."""
    schema = copy.deepcopy(schema)
    return _gemini_node(schema)


def _gemini_node(node: Dict[str, Any]) -> Dict[str, Any]:
    node.pop("additionalProperties", None)
    node.pop("title", None)
    node.pop("default", None)

    if "const" in node:
        node["enum"] = [node.pop("const")]

    types = node.get("type")
    if isinstance(types, list):
        non_null = [t for t in types if t != "null"]
        node["type"] = non_null[0] if len(non_null) == 1 else non_null
        if "null" in types:
            node["nullable"] = True

    if "anyOf" in node:
        options = [opt for opt in node["anyOf"] if opt.get("type") != "null"]
        nullable = len(options) != len(node["anyOf"])
        if len(options) == 1:
            merged = _gemini_node(options[0])
            for key, value in node.items():
                if key != "anyOf":
                    merged.setdefault(key, value)
            node = merged
        else:
            node["anyOf"] = [_gemini_node(opt) for opt in options]
        if nullable:
            node["nullable"] = True

    if node.get("type") == "object" and "properties" in node:
        node["properties"] = {
            key: _gemini_node(prop) for key, prop in node["properties"].items()
        }

    if node.get("type") == "array" and "items" in node:
        node["items"] = _gemini_node(node["items"])

    return node
