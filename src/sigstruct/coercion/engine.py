# src/sigstruct/coercion/engine.py
"""
TypeCoercionEngine: value tree -> typed value, and back.

Rules, per descriptor:

- Primitive: exact match or a lossless conversion ("42" -> 42,
  3.0 -> 3); anything else is TYPE_MISMATCH
- Enum: must be one of the allowed values, else INVALID_ENUM_VALUE
- Struct: absent required fields without default are MISSING_FIELD;
  optional fields get their default or None; unknown keys are dropped
- Array: must be a list; every element is coerced
- Nilable: null or absent short-circuits to None
- Union: the discriminator names exactly one variant, else
  UNRESOLVED_UNION
"""

from __future__ import annotations

import copy
import enum
import logging
import math
import re
from typing import Any, Callable, Dict, List, Mapping, Optional

from pydantic import BaseModel, ValidationError

from ..errors import CoercionError, CoercionErrorKind, ConfigurationError
from ..types.descriptors import (
    Array, EnumType, Nilable, Primitive, PrimitiveKind, Ref, Struct,
    TaggedUnion, TypeDescriptor,
)
from ..types.records import Record

logger = logging.getLogger(__name__)

_INT_RE = re.compile(r"^[+-]?\d+$")
_FLOAT_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")


class TypeCoercionEngine:
    """Stateless; safe to share."""

    # ------------------------------------------------------------------ #
    # Value tree -> typed value                                           #
    # ------------------------------------------------------------------ #

    def coerce(self, value: Any, descriptor: TypeDescriptor, *, path: str = "$") -> Any:
        """
        Coerce a decoded value tree into the typed value *descriptor* declares.

        Raises:
            CoercionError: With the kind and JSON path of the first mismatch
        """
        if isinstance(descriptor, Nilable):
            if value is None:
                return None
            return self.coerce(value, descriptor.inner, path=path)
        if isinstance(descriptor, Primitive):
            return _coerce_primitive(value, descriptor.kind, path)
        if isinstance(descriptor, EnumType):
            return _coerce_enum(value, descriptor, path)
        if isinstance(descriptor, Struct):
            return self._coerce_struct(value, descriptor, path)
        if isinstance(descriptor, Array):
            return self._coerce_array(value, descriptor, path)
        if isinstance(descriptor, TaggedUnion):
            return self._coerce_union(value, descriptor, path)
        if isinstance(descriptor, Ref):
            raise ConfigurationError(f"Cannot coerce against unresolved reference '{descriptor.name}'")
        raise ConfigurationError(f"Not a type descriptor: {descriptor!r}")

    def _coerce_struct(self, value: Any, struct: Struct, path: str) -> Any:
        if isinstance(value, Record):
            value = value.to_dict()
        if not isinstance(value, Mapping):
            raise CoercionError(
                CoercionErrorKind.TYPE_MISMATCH,
                f"expected object {struct.name}, got {_kind(value)}",
                path=path,
                raw_output=value,
            )

        values: Dict[str, Any] = {}
        for f in struct.fields:
            field_path = f"{path}.{f.name}"
            optional = f.has_default or not f.required
            raw = value.get(f.name)

            if f.name not in value or (raw is None and optional and not isinstance(f.type, Nilable)):
                if f.has_default:
                    values[f.name] = copy.deepcopy(f.default)
                elif not f.required or isinstance(f.type, Nilable):
                    values[f.name] = None
                else:
                    raise CoercionError(
                        CoercionErrorKind.MISSING_FIELD,
                        f"missing required field '{f.name}' of {struct.name}",
                        path=field_path,
                        raw_output=value,
                    )
                continue

            values[f.name] = self.coerce(raw, f.type, path=field_path)

        dropped = [k for k in value if struct.get_field(k) is None]
        if dropped:
            logger.debug("Dropped unknown keys at %s: %s", path, dropped)

        return _build(struct, values, path)

    def _coerce_array(self, value: Any, array: Array, path: str) -> List[Any]:
        if not isinstance(value, (list, tuple)):
            raise CoercionError(
                CoercionErrorKind.TYPE_MISMATCH,
                f"expected array, got {_kind(value)}",
                path=path,
                raw_output=value,
            )
        return [
            self.coerce(item, array.element, path=f"{path}[{i}]")
            for i, item in enumerate(value)
        ]

    def _coerce_union(self, value: Any, union: TaggedUnion, path: str) -> Any:
        field = union.discriminator_field
        if isinstance(value, Record):
            value = {field: value.type_name, **value.to_dict()}
        if not isinstance(value, Mapping):
            raise CoercionError(
                CoercionErrorKind.TYPE_MISMATCH,
                f"expected object, got {_kind(value)}",
                path=path,
                raw_output=value,
            )

        names = ", ".join(v.name for v in union.variants)
        if field not in value:
            raise CoercionError(
                CoercionErrorKind.UNRESOLVED_UNION,
                f"missing discriminator '{field}' (expected one of {names})",
                path=path,
                raw_output=value,
            )

        tag = value[field]
        matches = union.variant_named(tag) if isinstance(tag, str) else []
        if len(matches) != 1:
            raise CoercionError(
                CoercionErrorKind.UNRESOLVED_UNION,
                f"unknown variant {tag!r} (expected one of {names})",
                path=path,
                raw_output=value,
            )

        variant = matches[0]
        if isinstance(variant, Ref):
            raise ConfigurationError(f"Cannot coerce against unresolved reference '{variant.name}'")
        return self._coerce_struct(value, variant, path)

    # ------------------------------------------------------------------ #
    # Typed value -> value tree                                           #
    # ------------------------------------------------------------------ #

    def dump(self, value: Any, descriptor: TypeDescriptor) -> Any:
        """
        Turn a typed value back into a value tree.

        Union values get their discriminator injected as the first key.
        """
        if isinstance(descriptor, Nilable):
            return None if value is None else self.dump(value, descriptor.inner)
        if isinstance(descriptor, Primitive):
            return value.value if isinstance(value, enum.Enum) else value
        if isinstance(descriptor, EnumType):
            return str(value.value) if isinstance(value, enum.Enum) else value
        if isinstance(descriptor, Struct):
            return self._dump_struct(value, descriptor)
        if isinstance(descriptor, Array):
            return [self.dump(item, descriptor.element) for item in value]
        if isinstance(descriptor, TaggedUnion):
            return self._dump_union(value, descriptor)
        raise ConfigurationError(f"Cannot dump against {descriptor!r}")

    def _dump_struct(self, value: Any, struct: Struct) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for f in struct.fields:
            result[f.name] = self.dump(_field_value(value, f.name), f.type)
        return result

    def _dump_union(self, value: Any, union: TaggedUnion) -> Dict[str, Any]:
        name = _variant_name(value, union.discriminator_field)
        matches = union.variant_named(name) if name else []
        if len(matches) != 1 or not isinstance(matches[0], Struct):
            raise CoercionError(
                CoercionErrorKind.UNRESOLVED_UNION,
                f"value of type {type(value).__name__} matches no union variant",
            )
        result: Dict[str, Any] = {union.discriminator_field: name}
        result.update(self._dump_struct(value, matches[0]))
        return result


# ============================================================================
# HELPERS
# ============================================================================

def _kind(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def _mismatch(value: Any, expected: str, path: str) -> CoercionError:
    return CoercionError(
        CoercionErrorKind.TYPE_MISMATCH,
        f"expected {expected}, got {_kind(value)} {_preview(value)}",
        path=path,
        raw_output=value,
    )


def _preview(value: Any) -> str:
    # repr of an int past the digit limit raises ValueError
    try:
        return repr(value)
    except ValueError:
        return "<too many digits>"


def _convert(convert: Callable[[Any], Any], value: Any, expected: str, path: str) -> Any:
    """Apply a numeric conversion; overflow and non-finite results are mismatches."""
    try:
        result = convert(value)
    except (OverflowError, ValueError):
        raise _mismatch(value, expected, path) from None
    if isinstance(result, float) and not math.isfinite(result):
        raise _mismatch(value, expected, path)
    return result


def _coerce_primitive(value: Any, kind: PrimitiveKind, path: str) -> Any:
    if kind is PrimitiveKind.STRING:
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return _convert(str, value, "string", path)
        raise _mismatch(value, "string", path)

    if kind is PrimitiveKind.INTEGER:
        if isinstance(value, bool):
            raise _mismatch(value, "integer", path)
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            text = value.strip()
            if _INT_RE.match(text):
                return _convert(int, text, "integer", path)
            if _FLOAT_RE.match(text):
                number = _convert(float, text, "integer", path)
                if number.is_integer():
                    return int(number)
        raise _mismatch(value, "integer", path)

    if kind is PrimitiveKind.FLOAT:
        if isinstance(value, bool):
            raise _mismatch(value, "float", path)
        if isinstance(value, (int, float)):
            return _convert(float, value, "float", path)
        if isinstance(value, str) and _FLOAT_RE.match(value.strip()):
            return _convert(float, value.strip(), "float", path)
        raise _mismatch(value, "float", path)

    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise _mismatch(value, "boolean", path)


def _coerce_enum(value: Any, descriptor: EnumType, path: str) -> Any:
    if isinstance(value, enum.Enum):
        value = value.value
    text = value if isinstance(value, str) else None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            text = str(value)
        except ValueError:
            text = None

    if text is None or text not in descriptor.values:
        raise CoercionError(
            CoercionErrorKind.INVALID_ENUM_VALUE,
            f"{_preview(value)} is not one of {', '.join(descriptor.values)}",
            path=path,
            raw_output=value,
        )

    if descriptor.python_type is not None:
        for member in descriptor.python_type:
            if str(member.value) == text:
                return member
    return text


def _build(struct: Struct, values: Dict[str, Any], path: str) -> Any:
    tp = struct.python_type
    if tp is None:
        return Record(struct.name, values)
    try:
        if isinstance(tp, type) and issubclass(tp, BaseModel):
            return tp.model_validate(values)
        return tp(**values)
    except (ValidationError, TypeError, ValueError) as e:
        raise CoercionError(
            CoercionErrorKind.TYPE_MISMATCH,
            f"could not build {struct.name}: {e}",
            path=path,
            raw_output=values,
        ) from e


def _field_value(value: Any, name: str) -> Any:
    if isinstance(value, (Record, Mapping)):
        return value.get(name)
    if isinstance(value, BaseModel):
        for attr, info in type(value).model_fields.items():
            if (info.alias or attr) == name:
                return getattr(value, attr)
        return None
    return getattr(value, name, None)


def _variant_name(value: Any, field: str) -> Optional[str]:
    if isinstance(value, Record):
        return value.type_name
    if isinstance(value, Mapping):
        return value.get(field)
    return type(value).__name__
