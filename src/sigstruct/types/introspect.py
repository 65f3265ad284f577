# src/sigstruct/types/introspect.py
"""
Build type descriptors from Python types.

Supported inputs:
- Pydantic ``BaseModel`` subclasses (recommended)
- Dataclasses
- ``enum.Enum`` subclasses and ``Literal["a", "b"]``
- ``Optional[X]``, ``list[X]`` and unions of models
- ``str``, ``int``, ``float``, ``bool``

Introspection happens once per type; the result is cached.
"""

from __future__ import annotations

import dataclasses
import enum
import functools
import types
from typing import (
    Any, List, Literal, Tuple, Union,
    get_args, get_origin, get_type_hints,
)

from pydantic import BaseModel
from pydantic_core import PydanticUndefined

from ..errors import ContractError
from .descriptors import (
    BOOLEAN, DEFAULT_DISCRIMINATOR, FLOAT, INTEGER, NO_DEFAULT, STRING,
    Array, EnumType, Nilable, Struct, StructField, TaggedUnion, TypeDescriptor,
)

_PRIMITIVES = {
    str: STRING,
    int: INTEGER,
    float: FLOAT,
    bool: BOOLEAN,
}


# ============================================================================
# TYPE DETECTION
# ============================================================================

def is_pydantic(tp: Any) -> bool:
    """Check if type is a Pydantic BaseModel."""
    try:
        return isinstance(tp, type) and issubclass(tp, BaseModel)
    except TypeError:
        return False


def is_dataclass(tp: Any) -> bool:
    """Check if type is a dataclass."""
    return dataclasses.is_dataclass(tp) and isinstance(tp, type)


def is_enum(tp: Any) -> bool:
    return isinstance(tp, type) and issubclass(tp, enum.Enum)


def _is_union(origin: Any) -> bool:
    return origin is Union or origin is types.UnionType


# ============================================================================
# CONVERSION
# ============================================================================

@functools.lru_cache(maxsize=None)
def descriptor_for(tp: Any, discriminator_field: str = DEFAULT_DISCRIMINATOR) -> TypeDescriptor:
    """
    Return the descriptor for a Python type.

    Unions of models are tagged with *discriminator_field*.

    Raises:
        ContractError: If the type is unsupported or refers to itself
    """
    return _convert(tp, (), discriminator_field)


def _convert(tp: Any, stack: Tuple[type, ...], disc: str) -> TypeDescriptor:
    if tp in _PRIMITIVES:
        return _PRIMITIVES[tp]

    origin = get_origin(tp)
    args = get_args(tp)

    if _is_union(origin):
        non_none = [a for a in args if a is not type(None)]
        inner = _convert_union(non_none, stack, disc)
        return Nilable(inner) if len(non_none) != len(args) else inner

    if origin in (list, List, tuple, set, frozenset):
        if not args:
            raise ContractError(f"Collection type {tp!r} needs an element type")
        return Array(_convert(args[0], stack, disc))

    if origin is Literal:
        values = tuple(str(a) for a in args)
        return EnumType(name=_literal_name(values), values=values)

    if is_enum(tp):
        return EnumType(
            name=tp.__name__,
            values=tuple(str(member.value) for member in tp),
            description=_doc(tp),
            python_type=tp,
        )

    if is_pydantic(tp) or is_dataclass(tp):
        if tp in stack:
            chain = " -> ".join(t.__name__ for t in stack + (tp,))
            raise ContractError(f"Self-referential contract: {chain}")
        return _convert_struct(tp, stack + (tp,), disc)

    raise ContractError(f"Cannot build a type descriptor for {tp!r}")


def _convert_union(members: List[Any], stack: Tuple[type, ...], disc: str) -> TypeDescriptor:
    if len(members) == 1:
        return _convert(members[0], stack, disc)
    variants = []
    for member in members:
        converted = _convert(member, stack, disc)
        if not isinstance(converted, Struct):
            raise ContractError(
                f"Unions may only combine structured types, got {member!r}"
            )
        variants.append(converted)
    return TaggedUnion(tuple(variants), disc)


def _convert_struct(tp: type, stack: Tuple[type, ...], disc: str) -> Struct:
    fields: List[StructField] = []

    if is_pydantic(tp):
        hints = get_type_hints(tp)
        for name, info in tp.model_fields.items():
            annotation = hints.get(name, info.annotation)
            default = NO_DEFAULT
            if info.default is not PydanticUndefined:
                default = info.default
            elif info.default_factory is not None:
                default = info.default_factory()
            fields.append(
                StructField(
                    name=info.alias or name,
                    type=_convert(annotation, stack, disc),
                    required=info.is_required(),
                    default=default,
                    description=info.description,
                )
            )
    else:
        hints = get_type_hints(tp)
        for f in dataclasses.fields(tp):
            default = NO_DEFAULT
            if f.default is not dataclasses.MISSING:
                default = f.default
            elif f.default_factory is not dataclasses.MISSING:
                default = f.default_factory()
            fields.append(
                StructField(
                    name=f.name,
                    type=_convert(hints.get(f.name, str), stack, disc),
                    required=default is NO_DEFAULT,
                    default=default,
                    description=f.metadata.get("description"),
                )
            )

    return Struct(
        name=tp.__name__,
        fields=tuple(fields),
        description=_doc(tp),
        python_type=tp,
    )


def _doc(tp: type) -> str | None:
    doc = tp.__doc__
    if not doc or is_dataclass(tp) and doc.startswith(f"{tp.__name__}("):
        return None
    if is_enum(tp) and doc in (enum.Enum.__doc__, "An enumeration."):
        return None
    if is_pydantic(tp) and doc == BaseModel.__doc__:
        return None
    return " ".join(doc.split())


def _literal_name(values: Tuple[str, ...]) -> str:
    parts = ["".join(ch for ch in v.title() if ch.isalnum()) for v in values]
    return "Literal" + "".join(parts)
