"""
Tests for the polymorphic Identifier.

Covers normalization rules, wire/storage forms, equality, ordering and
pydantic integration.
"""

from __future__ import annotations

import pickle
import uuid

import pytest
from bson import ObjectId
from pydantic import BaseModel, ValidationError

from docaccess.core.errors import ParseError
from docaccess.domain.identifier import NATIVE_ID_PREFIX, Identifier, IdKind, compare

OID = ObjectId("65a1b2c3d4e5f60718293a4b")


class TestNormalize:
    """Identifier.normalize input rules."""

    def test_object_id_is_native(self) -> None:
        ident = Identifier.normalize(OID)
        assert ident.kind is IdKind.NATIVE
        assert ident.value == OID

    def test_plain_string_is_text(self) -> None:
        ident = Identifier.normalize("user-42")
        assert ident.kind is IdKind.TEXT
        assert ident.value == "user-42"

    def test_int_is_integer(self) -> None:
        assert Identifier.normalize(42).kind is IdKind.INTEGER

    def test_marker_string_is_native(self) -> None:
        ident = Identifier.normalize(f"{NATIVE_ID_PREFIX}{OID}")
        assert ident == Identifier.native(OID)

    def test_twelve_bytes_is_native(self) -> None:
        assert Identifier.normalize(OID.binary) == Identifier.native(OID)

    def test_identifier_passes_through(self) -> None:
        ident = Identifier.text("x")
        assert Identifier.normalize(ident) is ident

    @pytest.mark.parametrize(
        "raw",
        [True, False, 1.5, None, [1], {"a": 1}, b"short", "$oid:not-hex", 1 << 63],
    )
    def test_unsupported_input_raises(self, raw: object) -> None:
        with pytest.raises(ParseError):
            Identifier.normalize(raw)

    def test_int64_bounds_accepted(self) -> None:
        assert Identifier.normalize((1 << 63) - 1).kind is IdKind.INTEGER
        assert Identifier.normalize(-(1 << 63)).kind is IdKind.INTEGER


class TestWireAndStorage:
    """Client-facing and stored representations."""

    def test_wire_forms(self) -> None:
        assert Identifier.text("abc").to_wire() == "abc"
        assert Identifier.integer(7).to_wire() == 7
        assert Identifier.native(OID).to_wire() == f"$oid:{OID}"

    @pytest.mark.parametrize(
        "ident",
        [
            Identifier.text("abc"),
            Identifier.integer(-3),
            Identifier.native(OID),
            Identifier.text(f"$oid:{OID}"),
            Identifier.text("$oid:hello"),
            Identifier.text("$txt:nested"),
        ],
    )
    def test_wire_round_trip_keeps_variant(self, ident: Identifier) -> None:
        back = Identifier.from_wire(ident.to_wire())
        assert back == ident
        assert back.kind is ident.kind

    def test_marker_text_is_escaped_on_the_wire(self) -> None:
        assert Identifier.text("$oid:hello").to_wire() == "$txt:$oid:hello"
        assert Identifier.text("$other").to_wire() == "$other"
        assert Identifier.from_wire("$txt:abc") == Identifier.text("abc")

    def test_from_storage_does_not_interpret_marker(self) -> None:
        ident = Identifier.from_storage(f"$oid:{OID}")
        assert ident.kind is IdKind.TEXT

    def test_storage_values(self) -> None:
        assert Identifier.native(OID).to_storage() == OID
        assert Identifier.integer(9).to_storage() == 9

    def test_from_storage_rejects_other_types(self) -> None:
        with pytest.raises(ParseError):
            Identifier.from_storage(3.2)

    def test_str_is_string_form(self) -> None:
        assert str(Identifier.integer(5)) == "5"
        assert str(Identifier.native(OID)) == f"$oid:{OID}"


class TestEqualityAndOrdering:
    def test_same_value_different_kind_not_equal(self) -> None:
        assert Identifier.text("1") != Identifier.integer(1)

    def test_equal_ids_hash_equal(self) -> None:
        ids = {Identifier.text("a"), Identifier.normalize("a"), Identifier.native(OID)}
        assert len(ids) == 2

    def test_total_order_by_kind_then_value(self) -> None:
        native = Identifier.native(OID)
        ordered = sorted(
            [native, Identifier.text("b"), Identifier.integer(5), Identifier.text("a"), Identifier.integer(-1)]
        )
        assert ordered == [
            Identifier.integer(-1),
            Identifier.integer(5),
            Identifier.text("a"),
            Identifier.text("b"),
            native,
        ]

    def test_compare(self) -> None:
        assert compare(Identifier.text("a"), Identifier.text("a")) == 0
        assert compare(Identifier.integer(100), Identifier.text("0")) == -1
        assert compare(Identifier.native(OID), Identifier.text("z")) == 1

    def test_normalized_bytes_tagged(self) -> None:
        assert Identifier.text("1").normalized() != Identifier.integer(1).normalized()


class TestImmutability:
    def test_cannot_set_attributes(self) -> None:
        ident = Identifier.text("a")
        with pytest.raises(AttributeError):
            ident._value = "b"  # type: ignore[misc]

    def test_pickle_round_trip(self) -> None:
        ident = Identifier.native(OID)
        assert pickle.loads(pickle.dumps(ident)) == ident


class TestGeneration:
    def test_generate_text_is_uuid4(self) -> None:
        ident = Identifier.generate_text()
        assert ident.kind is IdKind.TEXT
        assert uuid.UUID(str(ident.value)).version == 4

    def test_generated_ids_unique(self) -> None:
        assert Identifier.generate_native() != Identifier.generate_native()
        assert Identifier.generate_text() != Identifier.generate_text()


class _Record(BaseModel):
    id: Identifier


class TestPydantic:
    """Identifier as a pydantic field type."""

    def test_validates_through_normalize(self) -> None:
        assert _Record(id=f"$oid:{OID}").id == Identifier.native(OID)
        assert _Record(id=3).id.kind is IdKind.INTEGER

    def test_invalid_value_is_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            _Record.model_validate({"id": True})

    def test_json_dump_uses_wire_form(self) -> None:
        assert _Record(id=OID).model_dump(mode="json") == {"id": f"$oid:{OID}"}
        assert _Record(id=5).model_dump(mode="json") == {"id": 5}

    def test_python_dump_keeps_identifier(self) -> None:
        assert isinstance(_Record(id="a").model_dump()["id"], Identifier)
