# src/sigstruct/types/__init__.py
"""
Type contracts for sigstruct.

Declare a contract explicitly::

    from sigstruct.types import Struct, StructField, STRING, FLOAT

    Product = Struct("Product", (
        StructField("title", STRING),
        StructField("price", FLOAT),
    ))

or derive it from a Pydantic model / dataclass::

    from sigstruct.types import descriptor_for

    Product = descriptor_for(ProductModel)
"""

from .descriptors import (
    BOOLEAN,
    DEFAULT_DISCRIMINATOR,
    FLOAT,
    INTEGER,
    NO_DEFAULT,
    STRING,
    Array,
    EnumType,
    Nilable,
    Primitive,
    PrimitiveKind,
    Ref,
    Struct,
    StructField,
    TaggedUnion,
    TypeDescriptor,
    contract,
    ensure_resolved,
    fingerprint,
    named_definitions,
    resolve,
    to_dict,
    unwrap_nilable,
    walk,
)
from .introspect import descriptor_for
from .records import Record

__all__ = [
    # Descriptors
    "TypeDescriptor",
    "Primitive",
    "PrimitiveKind",
    "EnumType",
    "Struct",
    "StructField",
    "Array",
    "Nilable",
    "TaggedUnion",
    "Ref",
    "STRING",
    "INTEGER",
    "FLOAT",
    "BOOLEAN",
    "NO_DEFAULT",
    "DEFAULT_DISCRIMINATOR",
    # Construction
    "contract",
    "resolve",
    "ensure_resolved",
    "descriptor_for",
    # Utilities
    "walk",
    "named_definitions",
    "unwrap_nilable",
    "to_dict",
    "fingerprint",
    # Values
    "Record",
]
