# src/sigstruct/types/records.py
"""
Record: the typed value produced for a struct that is not bound to a
Python class.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, Mapping


class Record:
    """Immutable struct value with attribute and item access.

    Two records are equal when they carry the same type name and the
    same field values.

    Usage::

        r = Record("Product", {"title": "Mug", "price": 9.99})
        r.title          # "Mug"
        r["price"]       # 9.99
        r.type_name      # "Product"
    """

    __slots__ = ("_type_name", "_values")

    def __init__(self, type_name: str, values: Mapping[str, Any]):
        object.__setattr__(self, "_type_name", type_name)
        object.__setattr__(self, "_values", dict(values))

    @property
    def type_name(self) -> str:
        return self._type_name

    def __getattr__(self, name: str) -> Any:
        values = object.__getattribute__(self, "_values")
        try:
            return values[name]
        except KeyError:
            raise AttributeError(
                f"'{self._type_name}' record has no field '{name}'"
            ) from None

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Record is immutable")

    def __getitem__(self, name: str) -> Any:
        return self._values[name]

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def keys(self):
        return self._values.keys()

    def get(self, name: str, default: Any = None) -> Any:
        return self._values.get(name, default)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return self._type_name == other._type_name and self._values == other._values

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        body = ", ".join(f"{k}={v!r}" for k, v in self._values.items())
        return f"{self._type_name}({body})"

    def to_dict(self) -> Dict[str, Any]:
        """Plain nested dict; nested records are converted too."""
        return {k: _plain(v) for k, v in self._values.items()}


def _plain(value: Any) -> Any:
    if isinstance(value, Record):
        return value.to_dict()
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value
