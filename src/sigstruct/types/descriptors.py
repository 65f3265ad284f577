# src/sigstruct/types/descriptors.py
"""
Type descriptors: the declared shape of a contract.

A descriptor tree is built once per contract and never mutated. Every
node is a frozen dataclass; the concrete node types are:

- ``Primitive``   string / integer / float / boolean
- ``EnumType``    closed set of string values
- ``Struct``      ordered, named fields
- ``Array``       homogeneous list
- ``Nilable``     value may be absent or null
- ``TaggedUnion`` exactly one of several structs, selected by a
                  discriminator field (``_type`` by default)
- ``Ref``         forward reference, only valid before ``resolve()``
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union,
)

from ..errors import ContractError

DEFAULT_DISCRIMINATOR = "_type"


class _NoDefault:
    """Sentinel for fields without a default value."""

    _instance: Optional["_NoDefault"] = None

    def __new__(cls) -> "_NoDefault":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_DEFAULT"

    def __bool__(self) -> bool:
        return False


NO_DEFAULT: Any = _NoDefault()


class PrimitiveKind(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"


@dataclass(frozen=True)
class Primitive:
    kind: PrimitiveKind

    def __post_init__(self):
        object.__setattr__(self, "kind", PrimitiveKind(self.kind))


@dataclass(frozen=True)
class EnumType:
    """Closed set of allowed string values, in declaration order."""

    name: str
    values: Tuple[str, ...]
    description: Optional[str] = None
    python_type: Optional[type] = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        values = tuple(self.values)
        if not values:
            raise ContractError(f"Enum '{self.name}' must declare at least one value")
        if len(set(values)) != len(values):
            raise ContractError(f"Enum '{self.name}' declares duplicate values")
        object.__setattr__(self, "values", values)


@dataclass(frozen=True)
class StructField:
    """One field of a struct."""

    name: str
    type: "TypeDescriptor"
    required: bool = True
    default: Any = NO_DEFAULT
    description: Optional[str] = None

    @property
    def has_default(self) -> bool:
        return self.default is not NO_DEFAULT


@dataclass(frozen=True)
class Struct:
    name: str
    fields: Tuple[StructField, ...]
    description: Optional[str] = None
    python_type: Optional[type] = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        fields = tuple(self.fields)
        names = [f.name for f in fields]
        if len(set(names)) != len(names):
            duplicates = sorted({n for n in names if names.count(n) > 1})
            raise ContractError(
                f"Struct '{self.name}' declares duplicate fields: {', '.join(duplicates)}"
            )
        object.__setattr__(self, "fields", fields)

    def get_field(self, name: str) -> Optional[StructField]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]


@dataclass(frozen=True)
class Array:
    element: "TypeDescriptor"


@dataclass(frozen=True)
class Nilable:
    inner: "TypeDescriptor"


@dataclass(frozen=True)
class TaggedUnion:
    """
    Exactly one of ``variants``. The variant is named by the value of
    ``discriminator_field``, which equals the variant struct's name.
    """

    variants: Tuple[Union["Struct", "Ref"], ...]
    discriminator_field: str = DEFAULT_DISCRIMINATOR

    def __post_init__(self):
        variants = tuple(self.variants)
        if not variants:
            raise ContractError("Union must declare at least one variant")
        names = []
        for variant in variants:
            if not isinstance(variant, (Struct, Ref)):
                raise ContractError(
                    f"Union variants must be structs, got {type(variant).__name__}"
                )
            if isinstance(variant, Struct) and variant.get_field(self.discriminator_field):
                raise ContractError(
                    f"Struct '{variant.name}' already declares '{self.discriminator_field}', "
                    "which is reserved as the union discriminator"
                )
            names.append(variant.name)
        if len(set(names)) != len(names):
            raise ContractError(f"Union declares duplicate variants: {names}")
        object.__setattr__(self, "variants", variants)

    def variant_named(self, name: str) -> List["Struct"]:
        return [v for v in self.variants if v.name == name]


@dataclass(frozen=True)
class Ref:
    """Forward reference to a named struct or enum."""

    name: str


TypeDescriptor = Union[Primitive, EnumType, Struct, Array, Nilable, TaggedUnion, Ref]

STRING = Primitive(PrimitiveKind.STRING)
INTEGER = Primitive(PrimitiveKind.INTEGER)
FLOAT = Primitive(PrimitiveKind.FLOAT)
BOOLEAN = Primitive(PrimitiveKind.BOOLEAN)


# ============================================================================
# RESOLUTION
# ============================================================================

def resolve(
    root: TypeDescriptor,
    definitions: Optional[Mapping[str, TypeDescriptor]] = None,
) -> TypeDescriptor:
    """
    Replace every ``Ref`` in *root* with its definition.

    Raises:
        ContractError: If a reference is unknown or a struct contains itself
    """
    definitions = dict(definitions or {})
    resolved: Dict[str, TypeDescriptor] = {}

    def visit(node: TypeDescriptor, stack: Tuple[str, ...]) -> TypeDescriptor:
        if isinstance(node, Ref):
            if node.name in stack:
                chain = " -> ".join(stack + (node.name,))
                raise ContractError(f"Self-referential contract: {chain}")
            if node.name in resolved:
                return resolved[node.name]
            if node.name not in definitions:
                raise ContractError(f"Unresolved reference to '{node.name}'")
            result = visit(definitions[node.name], stack)
            resolved[node.name] = result
            return result
        if isinstance(node, Struct):
            if node.name in stack:
                chain = " -> ".join(stack + (node.name,))
                raise ContractError(f"Self-referential contract: {chain}")
            inner_stack = stack + (node.name,)
            fields = tuple(
                dataclasses.replace(f, type=visit(f.type, inner_stack))
                for f in node.fields
            )
            return dataclasses.replace(node, fields=fields)
        if isinstance(node, Array):
            return Array(visit(node.element, stack))
        if isinstance(node, Nilable):
            return Nilable(visit(node.inner, stack))
        if isinstance(node, TaggedUnion):
            variants = []
            for variant in node.variants:
                target = visit(variant, stack)
                if not isinstance(target, Struct):
                    raise ContractError(
                        f"Union variant '{variant.name}' does not resolve to a struct"
                    )
                variants.append(target)
            return TaggedUnion(tuple(variants), node.discriminator_field)
        return node

    return visit(root, ())


def ensure_resolved(root: TypeDescriptor) -> TypeDescriptor:
    """Raise ContractError if *root* still contains a ``Ref``."""
    for node in walk(root):
        if isinstance(node, Ref):
            raise ContractError(f"Unresolved reference to '{node.name}'")
    return root


def contract(
    root: TypeDescriptor,
    definitions: Optional[Mapping[str, TypeDescriptor]] = None,
) -> TypeDescriptor:
    """Resolve and validate a descriptor tree in one step."""
    result = resolve(root, definitions)
    ensure_resolved(result)
    named_definitions(result)
    return result


# ============================================================================
# TRAVERSAL
# ============================================================================

def walk(root: TypeDescriptor) -> Iterator[TypeDescriptor]:
    """Yield every node of the tree, parents before children."""
    yield root
    if isinstance(root, Struct):
        for f in root.fields:
            yield from walk(f.type)
    elif isinstance(root, Array):
        yield from walk(root.element)
    elif isinstance(root, Nilable):
        yield from walk(root.inner)
    elif isinstance(root, TaggedUnion):
        for variant in root.variants:
            yield from walk(variant)


def named_definitions(root: TypeDescriptor) -> List[Union[Struct, EnumType]]:
    """
    Return the named structs and enums of *root*, dependencies first.

    The root itself comes last when it is named. Two different shapes
    sharing a name are rejected.
    """
    ordered: List[Union[Struct, EnumType]] = []
    seen: Dict[str, Union[Struct, EnumType]] = {}

    def visit(node: TypeDescriptor) -> None:
        if isinstance(node, Struct):
            for f in node.fields:
                visit(f.type)
        elif isinstance(node, Array):
            visit(node.element)
        elif isinstance(node, Nilable):
            visit(node.inner)
        elif isinstance(node, TaggedUnion):
            for variant in node.variants:
                visit(variant)
            return
        if isinstance(node, (Struct, EnumType)):
            existing = seen.get(node.name)
            if existing is None:
                seen[node.name] = node
                ordered.append(node)
            elif existing != node:
                raise ContractError(
                    f"Two different definitions share the name '{node.name}'"
                )

    visit(root)
    return ordered


def unwrap_nilable(descriptor: TypeDescriptor) -> Tuple[TypeDescriptor, bool]:
    """Return ``(inner, True)`` for Nilable, ``(descriptor, False)`` otherwise."""
    nilable = False
    while isinstance(descriptor, Nilable):
        descriptor = descriptor.inner
        nilable = True
    return descriptor, nilable


# ============================================================================
# FINGERPRINTING
# ============================================================================

def to_dict(descriptor: TypeDescriptor) -> Dict[str, Any]:
    """Canonical, JSON-serialisable description of a descriptor."""
    if isinstance(descriptor, Primitive):
        return {"kind": "primitive", "type": descriptor.kind.value}
    if isinstance(descriptor, EnumType):
        return {
            "kind": "enum",
            "name": descriptor.name,
            "description": descriptor.description,
            "values": list(descriptor.values),
        }
    if isinstance(descriptor, Struct):
        return {
            "kind": "struct",
            "name": descriptor.name,
            "description": descriptor.description,
            "fields": [
                {
                    "name": f.name,
                    "type": to_dict(f.type),
                    "required": f.required,
                    "default": repr(f.default) if f.has_default else None,
                    "description": f.description,
                }
                for f in descriptor.fields
            ],
        }
    if isinstance(descriptor, Array):
        return {"kind": "array", "element": to_dict(descriptor.element)}
    if isinstance(descriptor, Nilable):
        return {"kind": "nilable", "inner": to_dict(descriptor.inner)}
    if isinstance(descriptor, TaggedUnion):
        return {
            "kind": "union",
            "discriminator": descriptor.discriminator_field,
            "variants": [to_dict(v) for v in descriptor.variants],
        }
    if isinstance(descriptor, Ref):
        return {"kind": "ref", "name": descriptor.name}
    raise ContractError(f"Not a type descriptor: {descriptor!r}")


def fingerprint(descriptor: TypeDescriptor) -> str:
    """Stable hash of a descriptor tree, used as a schema cache key."""
    canonical = json.dumps(to_dict(descriptor), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:32]
