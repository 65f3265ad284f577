# src/sigstruct/schema/baml.py
"""
Render type descriptors in a compact, BAML-like notation.

Meant to be embedded inline in prompts, where a full JSON Schema would
cost several times the tokens::

    enum Status { ACTIVE | INACTIVE }

    class Product {
      title string
      price float
      tags string[]
      note string?
      status Status
    }

Optional fields carry a ``?`` suffix. Union variants get a literal
discriminator line (``_type "Buy"``). A root that is not itself a class
is declared last as ``output <type>``.
"""

from __future__ import annotations

import json
from typing import Dict, List

from ..errors import ConfigurationError
from ..types.descriptors import (
    Array, EnumType, Nilable, Primitive, PrimitiveKind, Ref, Struct,
    TaggedUnion, TypeDescriptor, named_definitions, walk,
)

_PRIMITIVE_NAMES = {
    PrimitiveKind.STRING: "string",
    PrimitiveKind.INTEGER: "int",
    PrimitiveKind.FLOAT: "float",
    PrimitiveKind.BOOLEAN: "bool",
}

INDENT = "  "


def to_baml(descriptor: TypeDescriptor) -> str:
    """Render *descriptor* and every named type it depends on."""
    discriminators = _union_discriminators(descriptor)
    blocks: List[str] = []

    for definition in named_definitions(descriptor):
        if isinstance(definition, EnumType):
            blocks.append(_enum_block(definition))
        else:
            blocks.append(_class_block(definition, discriminators.get(definition.name)))

    if not isinstance(descriptor, Struct):
        blocks.append(f"output {type_expr(descriptor)}")

    return "\n\n".join(blocks) + "\n"


def type_expr(descriptor: TypeDescriptor) -> str:
    """Inline type expression, e.g. ``string[]`` or ``(Buy | Refund)?``."""
    if isinstance(descriptor, Primitive):
        return _PRIMITIVE_NAMES[descriptor.kind]
    if isinstance(descriptor, (EnumType, Struct, Ref)):
        return descriptor.name
    if isinstance(descriptor, Array):
        return f"{_grouped(descriptor.element)}[]"
    if isinstance(descriptor, Nilable):
        return f"{_grouped(descriptor.inner)}?"
    if isinstance(descriptor, TaggedUnion):
        return " | ".join(v.name for v in descriptor.variants)
    raise ConfigurationError(f"Not a type descriptor: {descriptor!r}")


def _grouped(descriptor: TypeDescriptor) -> str:
    expr = type_expr(descriptor)
    if isinstance(descriptor, TaggedUnion) and len(descriptor.variants) > 1:
        return f"({expr})"
    return expr


def _enum_block(enum: EnumType) -> str:
    lines = []
    if enum.description:
        lines.append(f"// {enum.description}")
    lines.append(f"enum {enum.name} {{ {' | '.join(enum.values)} }}")
    return "\n".join(lines)


def _class_block(struct: Struct, discriminator: str | None) -> str:
    lines = []
    if struct.description:
        lines.append(f"// {struct.description}")
    lines.append(f"class {struct.name} {{")
    if discriminator is not None:
        lines.append(f"{INDENT}{discriminator} {json.dumps(struct.name)}")
    for f in struct.fields:
        expr = type_expr(f.type)
        optional = not f.required or f.has_default
        if optional and not isinstance(f.type, Nilable):
            expr = f"{_grouped(f.type)}?"
        line = f"{INDENT}{f.name} {expr}"
        if f.description:
            line += f" @description({json.dumps(f.description)})"
        lines.append(line)
    lines.append("}")
    return "\n".join(lines)


def _union_discriminators(root: TypeDescriptor) -> Dict[str, str]:
    result: Dict[str, str] = {}
    for node in walk(root):
        if isinstance(node, TaggedUnion):
            for variant in node.variants:
                result[variant.name] = node.discriminator_field
    return result
