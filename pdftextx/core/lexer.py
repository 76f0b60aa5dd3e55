"""Byte level tokenizer for PDF files and content streams."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator

from ..exceptions import LexError
from .objects import PdfName

__all__ = [
    "Lexer",
    "Token",
    "TokenKind",
    "WHITESPACE",
    "DELIMITERS",
    "decode_literal_string",
    "decode_hex_string",
    "decode_name",
]

LOGGER = logging.getLogger("pdftextx.lexer")

WHITESPACE = b"\x00\t\n\x0c\r "
DELIMITERS = b"()<>[]{}/%"
_STOP = frozenset(WHITESPACE + DELIMITERS)
_WHITESPACE = frozenset(WHITESPACE)

_NUMBER_RE = re.compile(rb"^([+-]*)(\d+\.?\d*|\.\d+)$")
_NAME_ESCAPE_RE = re.compile(rb"#([0-9A-Fa-f]{2})")
_HEX_DIGITS = frozenset(b"0123456789abcdefABCDEF")

_ESCAPES = {
    ord("n"): b"\n",
    ord("r"): b"\r",
    ord("t"): b"\t",
    ord("b"): b"\b",
    ord("f"): b"\f",
    ord("("): b"(",
    ord(")"): b")",
    ord("\\"): b"\\",
}
_OCTAL = frozenset(b"01234567")


class TokenKind(Enum):
    NUMBER = "number"
    NAME = "name"
    STRING = "string"
    HEX_STRING = "hex_string"
    KEYWORD = "keyword"
    ARRAY_START = "["
    ARRAY_END = "]"
    DICT_START = "<<"
    DICT_END = ">>"
    PROC_START = "{"
    PROC_END = "}"
    EOF = "eof"


@dataclass(frozen=True, slots=True)
class Token:
    kind: TokenKind
    value: Any
    position: int

    def is_keyword(self, *names: str) -> bool:
        return self.kind is TokenKind.KEYWORD and self.value in names


def decode_literal_string(data: bytes, start: int) -> tuple[bytes, int]:
    """Decode a literal string whose opening parenthesis precedes ``start``.

    Returns the decoded bytes and the offset just past the closing parenthesis.
    Escapes are consumed left to right, so ``\\\\`` followed by ``\\000`` yields a
    backslash and a NUL byte.
    """

    out = bytearray()
    depth = 1
    index = start
    length = len(data)
    while index < length:
        byte = data[index]
        if byte == 0x5C:  # backslash
            index += 1
            if index >= length:
                break
            escaped = data[index]
            if escaped in _ESCAPES:
                out += _ESCAPES[escaped]
                index += 1
            elif escaped in _OCTAL:
                end = index
                while end < length and end - index < 3 and data[end] in _OCTAL:
                    end += 1
                out.append(int(data[index:end], 8) & 0xFF)
                index = end
            elif escaped == 0x0D:
                index += 1
                if index < length and data[index] == 0x0A:
                    index += 1
            elif escaped == 0x0A:
                index += 1
            else:
                out.append(escaped)
                index += 1
            continue
        if byte == 0x28:
            depth += 1
        elif byte == 0x29:
            depth -= 1
            if depth == 0:
                return bytes(out), index + 1
        elif byte == 0x0D:
            out.append(0x0A)
            index += 1
            if index < length and data[index] == 0x0A:
                index += 1
            continue
        out.append(byte)
        index += 1
    raise LexError("Unterminated literal string", start - 1)


def decode_hex_string(body: bytes) -> bytes:
    digits = bytes(b for b in body if b in _HEX_DIGITS)
    if len(digits) % 2:
        digits += b"0"
    return bytes.fromhex(digits.decode("ascii"))


def decode_name(raw: bytes) -> PdfName:
    unescaped = _NAME_ESCAPE_RE.sub(lambda m: bytes([int(m.group(1), 16)]), raw)
    try:
        return PdfName(unescaped.decode("utf-8"))
    except UnicodeDecodeError:
        return PdfName(unescaped.decode("latin-1"))


class Lexer:
    """Tokenizer over an in-memory buffer, restartable at any offset."""

    def __init__(self, data: bytes, position: int = 0) -> None:
        self.data = data
        self.position = position
        self._peeked: Token | None = None

    def tell(self) -> int:
        if self._peeked is not None:
            return self._peeked.position
        return self.position

    def seek(self, position: int) -> None:
        self.position = max(0, min(position, len(self.data)))
        self._peeked = None

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self.next_token()
            if token.kind is TokenKind.EOF:
                return
            yield token

    def peek_token(self) -> Token:
        if self._peeked is None:
            self._peeked = self._read_token()
        return self._peeked

    def next_token(self) -> Token:
        if self._peeked is not None:
            token = self._peeked
            self._peeked = None
            return token
        return self._read_token()

    def skip_whitespace(self) -> int:
        data = self.data
        length = len(data)
        index = self.position
        while index < length:
            byte = data[index]
            if byte in _WHITESPACE:
                index += 1
            elif byte == 0x25:  # %
                while index < length and data[index] not in b"\r\n":
                    index += 1
            else:
                break
        self.position = index
        return index

    def read_regular(self) -> bytes:
        data = self.data
        start = index = self.position
        while index < len(data) and data[index] not in _STOP:
            index += 1
        self.position = index
        return data[start:index]

    def _read_token(self) -> Token:
        data = self.data
        start = self.skip_whitespace()
        if start >= len(data):
            return Token(TokenKind.EOF, None, start)

        byte = data[start]
        if byte == 0x2F:  # /
            self.position = start + 1
            return Token(TokenKind.NAME, decode_name(self.read_regular()), start)
        if byte == 0x28:  # (
            value, self.position = decode_literal_string(data, start + 1)
            return Token(TokenKind.STRING, value, start)
        if byte == 0x3C:  # <
            if data[start + 1 : start + 2] == b"<":
                self.position = start + 2
                return Token(TokenKind.DICT_START, "<<", start)
            end = data.find(b">", start + 1)
            if end == -1:
                raise LexError("Unterminated hex string", start)
            self.position = end + 1
            return Token(TokenKind.HEX_STRING, decode_hex_string(data[start + 1 : end]), start)
        if byte == 0x3E:  # >
            if data[start + 1 : start + 2] == b">":
                self.position = start + 2
                return Token(TokenKind.DICT_END, ">>", start)
            self.position = start + 1
            return Token(TokenKind.KEYWORD, ">", start)
        single = {
            0x5B: TokenKind.ARRAY_START,
            0x5D: TokenKind.ARRAY_END,
            0x7B: TokenKind.PROC_START,
            0x7D: TokenKind.PROC_END,
        }.get(byte)
        if single is not None:
            self.position = start + 1
            return Token(single, chr(byte), start)
        if byte == 0x29:  # stray )
            self.position = start + 1
            return Token(TokenKind.KEYWORD, ")", start)

        raw = self.read_regular()
        match = _NUMBER_RE.match(raw)
        if match:
            signs, body = match.groups()
            number: int | float
            if b"." in body:
                number = float(body)
            else:
                number = int(body)
            if b"-" in signs:
                number = -number
            return Token(TokenKind.NUMBER, number, start)
        return Token(TokenKind.KEYWORD, raw.decode("latin-1"), start)

    def read_stream_body(self, start: int, length: int | None = None) -> tuple[bytes, int]:
        """Return the stream bytes following the ``stream`` keyword ending at ``start``.

        ``length`` is trusted only when ``endstream`` follows it, otherwise the
        body ends at the next ``endstream``.  The lexer is left after the
        ``endstream`` keyword.
        """

        data = self.data
        body_start = start
        if data[body_start : body_start + 2] == b"\r\n":
            body_start += 2
        elif data[body_start : body_start + 1] in (b"\n", b"\r"):
            body_start += 1

        if length is not None and length >= 0 and body_start + length <= len(data):
            tail = body_start + length
            probe = tail
            while probe < len(data) and data[probe] in _WHITESPACE:
                probe += 1
            if data.startswith(b"endstream", probe):
                self.seek(probe + len(b"endstream"))
                return data[body_start:tail], self.position
            LOGGER.debug("Stream length %s at offset %s is wrong, searching endstream", length, start)

        end = data.find(b"endstream", body_start)
        if end == -1:
            raise LexError("Missing endstream", start)
        body_end = end
        if data[body_end - 2 : body_end] == b"\r\n":
            body_end -= 2
        elif body_end > body_start and data[body_end - 1 : body_end] in (b"\n", b"\r"):
            body_end -= 1
        self.seek(end + len(b"endstream"))
        return data[body_start:body_end], self.position
