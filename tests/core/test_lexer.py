from __future__ import annotations

import pytest

from pdftextx.core.lexer import Lexer, TokenKind, decode_literal_string
from pdftextx.exceptions import LexError


def _values(data: bytes) -> list:
    return [token.value for token in Lexer(data)]


def _string(data: bytes) -> bytes:
    token = Lexer(data).next_token()
    assert token.kind is TokenKind.STRING
    return token.value


def test_tokenizes_dictionary_tokens() -> None:
    tokens = list(Lexer(b"<< /Type /Page /Count 3 /Scale -1.5 >>"))

    assert [token.kind for token in tokens] == [
        TokenKind.DICT_START,
        TokenKind.NAME,
        TokenKind.NAME,
        TokenKind.NAME,
        TokenKind.NUMBER,
        TokenKind.NAME,
        TokenKind.NUMBER,
        TokenKind.DICT_END,
    ]
    assert tokens[2].value == "Page"
    assert tokens[4].value == 3
    assert tokens[6].value == -1.5


def test_tolerant_number_forms() -> None:
    assert _values(b"--5 5. .5 +3 -.25 007") == [-5, 5.0, 0.5, 3, -0.25, 7]


def test_name_hex_escapes() -> None:
    assert _values(b"/A#20B /#41bc /Adobe#2DIdentity") == ["A B", "Abc", "Adobe-Identity"]


def test_comments_and_whitespace_runs_are_skipped() -> None:
    tokens = list(Lexer(b"% leading comment\n  \r\n\t 42 % trailing comment\r/Name\x00\x0c"))

    assert [(token.kind, token.value) for token in tokens] == [
        (TokenKind.NUMBER, 42),
        (TokenKind.NAME, "Name"),
    ]


def test_keywords_and_delimiters() -> None:
    tokens = list(Lexer(b"[1 2]{3} true null T* '"))

    assert [token.kind for token in tokens] == [
        TokenKind.ARRAY_START,
        TokenKind.NUMBER,
        TokenKind.NUMBER,
        TokenKind.ARRAY_END,
        TokenKind.PROC_START,
        TokenKind.NUMBER,
        TokenKind.PROC_END,
        TokenKind.KEYWORD,
        TokenKind.KEYWORD,
        TokenKind.KEYWORD,
        TokenKind.KEYWORD,
    ]
    assert tokens[-2].value == "T*"
    assert tokens[-1].value == "'"


def test_literal_string_keeps_balanced_parentheses() -> None:
    assert _string(b"(a (nested (deep)) string)") == b"a (nested (deep)) string"


def test_literal_string_named_escapes() -> None:
    assert _string(rb"(\n\r\t\b\f\(\)\\)") == b"\n\r\t\b\f()\\"


def test_escaped_backslash_followed_by_octal_code() -> None:
    # Backslash, backslash, backslash, "000": one literal backslash then NUL.
    assert _string(rb"(\\\000)") == b"\\\x00"
    assert _string(rb"(Say\\\261)") == b"Say\\\xb1"


def test_octal_escapes_of_one_to_three_digits() -> None:
    assert _string(rb"(\101\7\0101)") == b"A\x07\x081"


def test_octal_escape_overflow_keeps_low_byte() -> None:
    assert _string(rb"(\501)") == b"A"


def test_line_continuation_and_end_of_line_normalisation() -> None:
    assert _string(b"(ab\\\ncd\\\r\nef)") == b"abcdef"
    assert _string(b"(a\r\nb\rc\nd)") == b"a\nb\nc\nd"


def test_unknown_escape_drops_backslash() -> None:
    assert _string(rb"(\q\%)") == b"q%"


def test_decode_literal_string_returns_end_offset() -> None:
    data = b"(abc) rest"

    value, end = decode_literal_string(data, 1)

    assert value == b"abc"
    assert data[end:] == b" rest"


def test_unterminated_literal_string_raises() -> None:
    with pytest.raises(LexError):
        Lexer(b"(abc").next_token()


def test_hex_strings() -> None:
    tokens = list(Lexer(b"<48 65 6C6C\n6F> <414>"))

    assert [token.kind for token in tokens] == [TokenKind.HEX_STRING, TokenKind.HEX_STRING]
    assert tokens[0].value == b"Hello"
    assert tokens[1].value == b"A@"


def test_unterminated_hex_string_raises() -> None:
    with pytest.raises(LexError):
        Lexer(b"<4142").next_token()


def test_peek_does_not_consume() -> None:
    lexer = Lexer(b"  1 2")

    peeked = lexer.peek_token()

    assert lexer.tell() == 2
    assert lexer.next_token() == peeked
    assert lexer.next_token().value == 2
    assert lexer.next_token().kind is TokenKind.EOF


def test_seek_restarts_anywhere() -> None:
    lexer = Lexer(b"/A /B /C")
    list(lexer)

    lexer.seek(3)

    assert lexer.next_token().value == "B"


def test_read_stream_body_trusts_correct_length() -> None:
    data = b"stream\nhello\nendstream"

    body, end = Lexer(data).read_stream_body(len(b"stream"), 5)

    assert body == b"hello"
    assert end == len(data)


def test_read_stream_body_searches_when_length_is_wrong() -> None:
    data = b"stream\r\nhello\r\nendstream"

    assert Lexer(data).read_stream_body(len(b"stream"), 3)[0] == b"hello"
    assert Lexer(data).read_stream_body(len(b"stream"), 999)[0] == b"hello"
    assert Lexer(data).read_stream_body(len(b"stream"))[0] == b"hello"


def test_read_stream_body_without_endstream_raises() -> None:
    with pytest.raises(LexError):
        Lexer(b"stream\nhello").read_stream_body(len(b"stream"), 5)
