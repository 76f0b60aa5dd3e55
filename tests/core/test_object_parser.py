from __future__ import annotations

import pytest

from pdftextx.core.objects import (
    ObjectId,
    PdfDictionary,
    PdfReference,
    PdfStream,
    PdfString,
    expect,
)
from pdftextx.core.parser import ObjectParser
from pdftextx.exceptions import MalformedObject, TypeMismatch


def test_parses_nested_dictionary() -> None:
    value = ObjectParser(
        b"<< /Type /Font /Size 12 /Kids [1 0 R 2 0 R] /Flag true /Missing null /Sub << /A (x) >> >>"
    ).parse_value(0)

    assert isinstance(value, PdfDictionary)
    assert value["Type"] == "Font"
    assert value["Size"] == 12
    assert value["Kids"] == [PdfReference(1, 0), PdfReference(2, 0)]
    assert value["Flag"] is True
    assert "Missing" in value and value["Missing"] is None
    assert value["Sub"]["A"] == PdfString(b"x")


def test_numbers_are_not_mistaken_for_references() -> None:
    assert ObjectParser(b"[1 2 3]").parse_value(0) == [1, 2, 3]


def test_reference_followed_by_number() -> None:
    assert ObjectParser(b"[1 0 R 5]").parse_value(0) == [PdfReference(1, 0), 5]


def test_hex_and_literal_strings_are_tagged() -> None:
    value = ObjectParser(b"[(lit) <6869>]").parse_value(0)

    assert value == [PdfString(b"lit"), PdfString(b"hi", hexadecimal=True)]


def test_indirect_object() -> None:
    indirect = ObjectParser(b"7 0 obj\n(hi)\nendobj").parse_indirect_object(0)

    assert indirect.object_id == ObjectId(7, 0)
    assert indirect.value == PdfString(b"hi")


def test_missing_endobj_is_tolerated() -> None:
    data = b"7 0 obj\n42\n8 0 obj 1 endobj"

    assert ObjectParser(data).parse_indirect_object(0).value == 42


def test_unexpected_object_id_raises() -> None:
    with pytest.raises(MalformedObject):
        ObjectParser(b"7 0 obj 1 endobj").parse_indirect_object(0, ObjectId(8, 0))


def test_missing_object_header_raises() -> None:
    with pytest.raises(MalformedObject):
        ObjectParser(b"<< /A 1 >>").parse_indirect_object(0)


def test_stream_with_direct_length() -> None:
    data = b"1 0 obj\n<< /Length 5 >>\nstream\nhello\nendstream\nendobj"

    stream = ObjectParser(data).parse_indirect_object(0).value

    assert isinstance(stream, PdfStream)
    assert stream.raw == b"hello"
    assert stream.object_id == ObjectId(1, 0)


def test_stream_with_indirect_length_uses_resolver() -> None:
    data = b"1 0 obj\n<< /Length 2 0 R >>\nstream\nhel)lo\nendstream\nendobj"
    seen: list[PdfReference] = []

    def resolver(reference: PdfReference) -> int:
        seen.append(reference)
        return 6

    stream = ObjectParser(data, length_resolver=resolver).parse_indirect_object(0).value

    assert seen == [PdfReference(2, 0)]
    assert stream.raw == b"hel)lo"


def test_unresolvable_length_falls_back_to_endstream_search() -> None:
    data = b"1 0 obj\n<< /Length 2 0 R >>\nstream\nhello\nendstream\nendobj"

    stream = ObjectParser(data, length_resolver=lambda reference: None).parse_indirect_object(0).value

    assert stream.raw == b"hello"


def test_wrong_direct_length_falls_back_to_endstream_search() -> None:
    data = b"1 0 obj\n<< /Length 99 >>\nstream\nhello\nendstream\nendobj"

    assert ObjectParser(data).parse_indirect_object(0).value.raw == b"hello"


def test_unterminated_array_raises() -> None:
    with pytest.raises(MalformedObject):
        ObjectParser(b"[1 2").parse_value(0)


def test_unbalanced_dictionary_end_in_array_raises() -> None:
    with pytest.raises(MalformedObject):
        ObjectParser(b"[1 >> 2]").parse_value(0)


def test_non_name_dictionary_key_is_skipped() -> None:
    value = ObjectParser(b"<< 12 /A 1 >>").parse_value(0)

    assert value == {"A": 1}


def test_typed_accessors_raise_type_mismatch() -> None:
    value = ObjectParser(b"<< /Count 3 /Name /X /Flag true /Kids [1] >>").parse_value(0)

    assert value.get_int("Count") == 3
    assert value.get_name("Name") == "X"
    assert value.get_array("Kids") == [1]
    assert value.get_int("Absent", 7) == 7
    with pytest.raises(TypeMismatch):
        value.get_int("Name")
    with pytest.raises(TypeMismatch):
        value.get_int("Flag")
    with pytest.raises(TypeMismatch):
        expect(value["Kids"], PdfDictionary, "Kids")


def test_text_string_decoding() -> None:
    assert PdfString(b"\xfe\xff\x00H\x00i").to_text() == "Hi"
    assert PdfString(b"\xef\xbb\xbfH\xc3\xa9").to_text() == "Hé"
    assert PdfString(b"Caf\xe9").to_text() == "Café"
