"""Tests for TypeCoercionEngine."""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union

import pytest
from pydantic import BaseModel, Field

from sigstruct.codec import DataFormat, PayloadCodec
from sigstruct.coercion import TypeCoercionEngine
from sigstruct.errors import CoercionError, CoercionErrorKind
from sigstruct.types import (
    BOOLEAN, FLOAT, INTEGER, STRING,
    Array, EnumType, Nilable, Record, Struct, StructField, TaggedUnion, descriptor_for,
)


class Color(Enum):
    RED = "red"
    GREEN = "green"


class Widget(BaseModel):
    name: str
    color: Color
    tags: List[str] = Field(default_factory=list)
    weight: Optional[float] = None


@dataclass
class Point:
    x: int
    y: int = 0


class Deposit(BaseModel):
    amount: float


class Withdrawal(BaseModel):
    amount: float
    reason: str


@pytest.fixture
def engine():
    return TypeCoercionEngine()


def coercion_error(engine, value, descriptor):
    with pytest.raises(CoercionError) as exc_info:
        engine.coerce(value, descriptor)
    return exc_info.value


# ═══════════════════════════════════════════════════════════════════════════════
# Primitives and enums
# ═══════════════════════════════════════════════════════════════════════════════


class TestPrimitives:

    @pytest.mark.parametrize("value,descriptor,expected", [
        ("Mug", STRING, "Mug"),
        (42, STRING, "42"),
        (42, INTEGER, 42),
        (3.0, INTEGER, 3),
        ("42", INTEGER, 42),
        (" 7.0 ", INTEGER, 7),
        (2, FLOAT, 2.0),
        ("9.99", FLOAT, 9.99),
        (True, BOOLEAN, True),
        ("false", BOOLEAN, False),
    ])
    def test_lossless_conversions(self, engine, value, descriptor, expected):
        result = engine.coerce(value, descriptor)
        assert result == expected
        assert type(result) is type(expected)

    @pytest.mark.parametrize("value,descriptor", [
        (3.5, INTEGER),
        ("forty", INTEGER),
        (True, INTEGER),
        ("cheap", FLOAT),
        (None, STRING),
        ("yes", BOOLEAN),
        ([1], STRING),
        (10 ** 400, FLOAT),
        ("1e400", FLOAT),
        ("1e400", INTEGER),
        (float("inf"), FLOAT),
    ])
    def test_mismatches(self, engine, value, descriptor):
        err = coercion_error(engine, value, descriptor)
        assert err.kind is CoercionErrorKind.TYPE_MISMATCH
        assert err.path == "$"

    def test_overflowing_price(self, engine, product):
        err = coercion_error(engine, {"title": "Mug", "price": 10 ** 400}, product)
        assert err.kind is CoercionErrorKind.TYPE_MISMATCH
        assert err.path == "$.price"
        assert "expected float, got integer" in str(err)

    def test_enum_values(self, engine):
        size = EnumType("Size", ("S", "M", "L"))
        assert engine.coerce("M", size) == "M"
        err = coercion_error(engine, "XL", size)
        assert err.kind is CoercionErrorKind.INVALID_ENUM_VALUE

    def test_enum_member(self, engine):
        assert engine.coerce("red", descriptor_for(Color)) is Color.RED

    def test_numeric_enum_values(self, engine):
        level = EnumType("Level", ("1", "2"))
        assert engine.coerce(2, level) == "2"


# ═══════════════════════════════════════════════════════════════════════════════
# Structs and arrays
# ═══════════════════════════════════════════════════════════════════════════════


class TestStructs:

    def test_record(self, engine, product):
        record = engine.coerce({"title": "Mug", "price": "9.99", "extra": 1}, product)
        assert record == Record("Product", {"title": "Mug", "price": 9.99})
        assert "extra" not in record

    def test_missing_field(self, engine, product):
        err = coercion_error(engine, {"title": "Mug"}, product)
        assert err.kind is CoercionErrorKind.MISSING_FIELD
        assert err.path == "$.price"
        assert str(err).startswith("$.price: missing required field 'price'")

    def test_nested_path(self, engine, product):
        cart = Struct("Cart", (StructField("items", Array(product)),))
        err = coercion_error(engine, {"items": [{"title": "Mug", "price": 1}, {"title": "Pan", "price": "x"}]}, cart)
        assert err.path == "$.items[1].price"

    def test_defaults_and_optional(self, engine):
        settings = Struct("Settings", (
            StructField("retries", INTEGER, required=False, default=3),
            StructField("tags", Array(STRING), required=False, default=[]),
            StructField("note", Nilable(STRING)),
            StructField("label", STRING, required=False),
        ))
        first = engine.coerce({}, settings)
        second = engine.coerce({"retries": None}, settings)
        assert first == Record("Settings", {"retries": 3, "tags": [], "note": None, "label": None})
        assert second.retries == 3
        assert first.tags is not second.tags

    def test_not_an_object(self, engine, product):
        err = coercion_error(engine, ["Mug", 9.99], product)
        assert err.kind is CoercionErrorKind.TYPE_MISMATCH
        assert "expected object Product, got array" in str(err)

    def test_array_requires_list(self, engine):
        err = coercion_error(engine, "a,b", Array(STRING))
        assert err.kind is CoercionErrorKind.TYPE_MISMATCH


# ═══════════════════════════════════════════════════════════════════════════════
# Unions
# ═══════════════════════════════════════════════════════════════════════════════


class TestUnions:

    def test_variant_selected_by_discriminator(self, engine, order_action):
        value = engine.coerce({"_type": "Refund", "order_id": "A-1"}, order_action)
        assert value == Record("Refund", {"order_id": "A-1"})
        assert value.type_name == "Refund"

    def test_unknown_variant(self, engine, order_action):
        err = coercion_error(engine, {"_type": "Ship", "order_id": "A-1"}, order_action)
        assert err.kind is CoercionErrorKind.UNRESOLVED_UNION
        assert "unknown variant 'Ship' (expected one of Buy, Refund)" in str(err)

    def test_missing_discriminator(self, engine, order_action):
        err = coercion_error(engine, {"sku": "A1", "qty": 1}, order_action)
        assert err.kind is CoercionErrorKind.UNRESOLVED_UNION

    def test_dump_puts_discriminator_first(self, engine, order_action):
        value = engine.coerce({"qty": "2", "sku": "A1", "_type": "Buy"}, order_action)
        dumped = engine.dump(value, order_action)
        assert list(dumped) == ["_type", "sku", "qty"]
        assert dumped == {"_type": "Buy", "sku": "A1", "qty": 2}

    def test_union_of_models(self, engine):
        descriptor = descriptor_for(Union[Deposit, Withdrawal])
        value = engine.coerce({"_type": "Withdrawal", "amount": "5", "reason": "rent"}, descriptor)
        assert value == Withdrawal(amount=5.0, reason="rent")
        assert engine.dump(value, descriptor) == {"_type": "Withdrawal", "amount": 5.0, "reason": "rent"}


# ═══════════════════════════════════════════════════════════════════════════════
# Python types
# ═══════════════════════════════════════════════════════════════════════════════


class TestPythonTypes:

    def test_pydantic_model(self, engine):
        widget = engine.coerce({"name": "Gear", "color": "green"}, descriptor_for(Widget))
        assert widget == Widget(name="Gear", color=Color.GREEN)

    def test_pydantic_enum_mismatch(self, engine):
        err = coercion_error(engine, {"name": "Gear", "color": "blue"}, descriptor_for(Widget))
        assert err.kind is CoercionErrorKind.INVALID_ENUM_VALUE
        assert err.path == "$.color"

    def test_dataclass(self, engine):
        assert engine.coerce({"x": "4"}, descriptor_for(Point)) == Point(x=4, y=0)

    def test_dump_pydantic(self, engine):
        widget = Widget(name="Gear", color=Color.RED, tags=["a"], weight=1.5)
        assert engine.dump(widget, descriptor_for(Widget)) == {
            "name": "Gear", "color": "red", "tags": ["a"], "weight": 1.5,
        }

    def test_toon_payload(self, engine):
        codec = PayloadCodec()
        descriptor = descriptor_for(Widget)
        widget = Widget(name="Gear", color=Color.RED, tags=["a", "b"])
        text = codec.encode(engine.dump(widget, descriptor), DataFormat.TOON)
        assert engine.coerce(codec.decode(text, DataFormat.TOON), descriptor) == widget


# ═══════════════════════════════════════════════════════════════════════════════
# Round trips through both data formats
# ═══════════════════════════════════════════════════════════════════════════════

SIZE = EnumType("Size", ("S", "M", "L"))
ITEM = Struct("Item", (StructField("title", STRING), StructField("price", FLOAT)))
ADDRESS = Struct("Address", (StructField("street", STRING), StructField("zip", STRING)))
CUSTOMER = Struct("Customer", (StructField("name", STRING), StructField("address", ADDRESS)))
BUY = Struct("Buy", (StructField("sku", STRING), StructField("qty", INTEGER)))
REFUND = Struct("Refund", (StructField("order_id", STRING),))
NOTE = Struct("Note", (StructField("text", STRING), StructField("tags", Array(STRING))))
ACTION = TaggedUnion((BUY, REFUND, NOTE))

ADA = Record("Customer", {
    "name": "Ada",
    "address": Record("Address", {"street": "1 Main St", "zip": "02139"}),
})

SHAPES = [
    pytest.param(SIZE, "M", id="enum"),
    pytest.param(Nilable(STRING), None, id="nilable-null"),
    pytest.param(Nilable(INTEGER), 7, id="nilable-present"),
    pytest.param(CUSTOMER, ADA, id="nested-struct"),
    pytest.param(Array(ITEM), [
        Record("Item", {"title": "Mug", "price": 9.99}),
        Record("Item", {"title": "Pan", "price": 24.5}),
    ], id="array-of-structs"),
    pytest.param(Array(ITEM), [], id="empty-array"),
    pytest.param(ACTION, Record("Buy", {"sku": "A1", "qty": 2}), id="union-first"),
    pytest.param(ACTION, Record("Refund", {"order_id": "R-9"}), id="union-second"),
    pytest.param(ACTION, Record("Note", {"text": "call back", "tags": ["urgent", "vip"]}), id="union-third"),
    pytest.param(NOTE, Record("Note", {"text": "true", "tags": []}), id="primitive-array-field"),
]


def envelope(descriptor):
    return Struct("Envelope", (StructField("value", descriptor),))


@pytest.fixture
def codec():
    return PayloadCodec()


class TestRoundTrips:

    @pytest.mark.parametrize("data_format", [DataFormat.JSON, DataFormat.TOON])
    @pytest.mark.parametrize("descriptor,value", SHAPES)
    def test_dump_encode_decode_coerce(self, engine, codec, data_format, descriptor, value):
        wrapper = envelope(descriptor)
        original = Record("Envelope", {"value": value})
        text = codec.encode(engine.dump(original, wrapper), data_format)
        assert engine.coerce(codec.decode(text, data_format), wrapper) == original

    @pytest.mark.parametrize("data_format", [DataFormat.JSON, DataFormat.TOON])
    def test_extra_keys_in_nested_struct(self, engine, codec, data_format):
        tree = engine.dump(ADA, CUSTOMER)
        tree["vip"] = True
        tree["address"]["country"] = "US"
        text = codec.encode(tree, data_format)
        value = engine.coerce(codec.decode(text, data_format), CUSTOMER)
        assert value == ADA
        assert "country" not in value.address

    @pytest.mark.parametrize("data_format", [DataFormat.JSON, DataFormat.TOON])
    def test_extra_keys_in_union_variant(self, engine, codec, data_format):
        orders = Struct("Orders", (StructField("actions", Array(ACTION)),))
        original = Record("Orders", {"actions": [
            Record("Buy", {"sku": "A1", "qty": 2}),
            Record("Refund", {"order_id": "R-9"}),
        ]})
        tree = engine.dump(original, orders)
        tree["actions"][0]["rush"] = True
        tree["actions"][1]["reason"] = "damaged"
        text = codec.encode(tree, data_format)
        value = engine.coerce(codec.decode(text, data_format), orders)
        assert value == original
        assert "reason" not in value.actions[1]
