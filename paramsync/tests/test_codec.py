"""
Tests for storage-kind encoding and decoding of parameter values.
"""

from unittest.mock import Mock

import pytest

from ..codec import (
    decode_value,
    element_id_value,
    encode_parameter,
    parse_integer,
    parse_real,
    storage_kind_of,
)
from ..json_model import JsonDB
from ..types import NOT_FOUND, StorageKind
from .builders import P, make_document


def _param(storage: str, value):
    doc = make_document(elements={"u1": {"X": P(storage, value)}})
    return doc.GetElement("u1").LookupParameter("X")


class TestEncodeParameter:
    """Tests for encode_parameter()."""

    def test_missing_parameter_is_not_found(self):
        assert encode_parameter(None, JsonDB) == NOT_FOUND

    def test_unset_parameter_is_not_found(self):
        assert encode_parameter(_param("String", None), JsonDB) == NOT_FOUND
        assert encode_parameter(_param("Integer", None), JsonDB) == NOT_FOUND

    def test_text_value(self):
        assert encode_parameter(_param("String", "Door 12"), JsonDB) == "Door 12"

    def test_empty_text_is_a_value(self):
        assert encode_parameter(_param("String", ""), JsonDB) == ""

    def test_text_without_string_value_encodes_empty(self):
        param = Mock()
        param.HasValue = True
        param.StorageType = JsonDB.StorageType.String
        param.AsString.return_value = None
        assert encode_parameter(param, JsonDB) == ""

    def test_integer_value(self):
        assert encode_parameter(_param("Integer", -42), JsonDB) == "-42"

    def test_real_value_is_locale_invariant(self):
        assert encode_parameter(_param("Double", 12.5), JsonDB) == "12.5"
        assert encode_parameter(_param("Double", 3), JsonDB) == "3"

    def test_whole_real_encodes_like_integer(self):
        assert encode_parameter(_param("Double", 3.0), JsonDB) == encode_parameter(
            _param("Integer", 3), JsonDB
        )
        assert encode_parameter(_param("Double", -0.0), JsonDB) == "0"
        assert encode_parameter(_param("Double", 1e20), JsonDB) == "1e+20"

    def test_element_id_value(self):
        assert encode_parameter(_param("ElementId", 316), JsonDB) == "316"

    def test_unsupported_storage_encodes_empty(self):
        assert encode_parameter(_param("None", "anything"), JsonDB) == ""


class TestStorageKindOf:
    def test_maps_every_storage_type(self):
        assert storage_kind_of(_param("String", "a"), JsonDB) is StorageKind.TEXT
        assert storage_kind_of(_param("Integer", 1), JsonDB) is StorageKind.INTEGER
        assert storage_kind_of(_param("Double", 1.0), JsonDB) is StorageKind.REAL
        assert storage_kind_of(_param("ElementId", 1), JsonDB) is StorageKind.ELEMENT_ID
        assert storage_kind_of(_param("None", 1), JsonDB) is StorageKind.UNSUPPORTED


class TestElementIdValue:
    def test_prefers_value(self):
        assert element_id_value(JsonDB.ElementId(7)) == 7

    def test_falls_back_to_integer_value(self):
        legacy = Mock(spec=["IntegerValue"])
        legacy.IntegerValue = 99
        assert element_id_value(legacy) == 99

    def test_none_is_invalid_id(self):
        assert element_id_value(None) == -1


class TestParsing:
    """Tests for the strict number parsers used on write-back."""

    def test_parse_integer(self):
        assert parse_integer("12") == 12
        assert parse_integer(" -3 ") == -3
        assert parse_integer("+7") == 7

    @pytest.mark.parametrize("text", ["12.5", "", "abc", "1_000", "2147483648", "1e3"])
    def test_parse_integer_rejects(self, text):
        with pytest.raises(ValueError):
            parse_integer(text)

    def test_parse_real(self):
        assert parse_real("12.5") == 12.5
        assert parse_real("1e-05") == 1e-05
        assert parse_real("4") == 4.0

    @pytest.mark.parametrize("text", ["abc", "", "nan", "inf", "1_0"])
    def test_parse_real_rejects(self, text):
        with pytest.raises(ValueError):
            parse_real(text)


class TestDecodeValue:
    """Tests for decode_value()."""

    def test_text_passes_through(self):
        assert decode_value(StorageKind.TEXT, "") == ""
        assert decode_value(StorageKind.TEXT, "12.5") == "12.5"

    def test_integer_and_real(self):
        assert decode_value(StorageKind.INTEGER, "5") == 5
        assert decode_value(StorageKind.REAL, "5") == 5.0
        assert decode_value(StorageKind.REAL, "1e-05") == 1e-05

    def test_whole_real_text_decodes_as_integer(self):
        assert decode_value(StorageKind.INTEGER, "3") == 3

    @pytest.mark.parametrize(
        "kind, text",
        [
            (StorageKind.INTEGER, "+7"),
            (StorageKind.INTEGER, " 3"),
            (StorageKind.INTEGER, "007"),
            (StorageKind.INTEGER, "-0"),
            (StorageKind.REAL, "1.50"),
            (StorageKind.REAL, "3.0"),
            (StorageKind.REAL, " 2.5"),
            (StorageKind.REAL, "1E-05"),
        ],
    )
    def test_non_canonical_numbers_rejected(self, kind, text):
        with pytest.raises(ValueError):
            decode_value(kind, text)

    def test_not_found_never_decodes(self):
        with pytest.raises(ValueError):
            decode_value(StorageKind.TEXT, NOT_FOUND)

    def test_element_id_not_writable(self):
        with pytest.raises(TypeError):
            decode_value(StorageKind.ELEMENT_ID, "316")

    def test_unsupported_not_writable(self):
        with pytest.raises(TypeError):
            decode_value(StorageKind.UNSUPPORTED, "x")
