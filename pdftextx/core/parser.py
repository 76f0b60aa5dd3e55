"""Recursive descent parser turning lexer tokens into PDF values."""

from __future__ import annotations

import logging
from typing import Any, Callable

from ..exceptions import MalformedObject, PdfTextError
from .lexer import Lexer, Token, TokenKind
from .objects import (
    IndirectObject,
    ObjectId,
    PdfArray,
    PdfDictionary,
    PdfReference,
    PdfStream,
    PdfString,
)

__all__ = ["ObjectParser", "LengthResolver"]

LOGGER = logging.getLogger("pdftextx.parser")

LengthResolver = Callable[[PdfReference], Any]

_CONSTANTS = {"true": True, "false": False, "null": None}


class ObjectParser:
    """Parse values and ``N G obj`` definitions out of a byte buffer.

    ``length_resolver`` is consulted once when a stream's ``/Length`` is an
    indirect reference; when it is missing or returns something other than an
    integer the stream body is delimited by searching for ``endstream``.
    """

    def __init__(self, data: bytes, length_resolver: LengthResolver | None = None) -> None:
        self.data = data
        self.lexer = Lexer(data)
        self.length_resolver = length_resolver

    def parse_value(self, offset: int | None = None) -> Any:
        if offset is not None:
            self.lexer.seek(offset)
        token = self.lexer.next_token()
        if token.kind is TokenKind.EOF:
            raise MalformedObject("Unexpected end of data", token.position)
        return self.parse_token(token)

    def parse_indirect_object(self, offset: int, expected: ObjectId | None = None) -> IndirectObject:
        lexer = self.lexer
        lexer.seek(offset)
        number = lexer.next_token()
        generation = lexer.next_token()
        keyword = lexer.next_token()
        if not (
            _is_integer(number) and _is_integer(generation) and keyword.is_keyword("obj")
        ):
            raise MalformedObject(f"No object header at offset {offset}", offset)
        object_id = ObjectId(number.value, generation.value)
        if expected is not None and object_id != expected:
            raise MalformedObject(
                f"Expected object {expected} at offset {offset}, found {object_id}", offset
            )

        token = lexer.next_token()
        if token.is_keyword("endobj"):
            return IndirectObject(object_id, None, offset)
        if token.kind is TokenKind.EOF:
            raise MalformedObject(f"Object {object_id} has no body", offset)
        value = self.parse_token(token)
        if isinstance(value, PdfStream):
            value.object_id = object_id

        if lexer.peek_token().is_keyword("endobj"):
            lexer.next_token()
        else:
            LOGGER.debug("Object %s at offset %s is missing endobj", object_id, offset)
        return IndirectObject(object_id, value, offset)

    # -- value grammar -----------------------------------------------------

    def parse_token(self, token: Token) -> Any:
        kind = token.kind
        if kind is TokenKind.NUMBER:
            return self._number_or_reference(token)
        if kind is TokenKind.NAME:
            return token.value
        if kind is TokenKind.STRING:
            return PdfString(token.value)
        if kind is TokenKind.HEX_STRING:
            return PdfString(token.value, hexadecimal=True)
        if kind is TokenKind.ARRAY_START:
            return self._parse_array(token.position, TokenKind.ARRAY_END)
        if kind is TokenKind.PROC_START:
            return self._parse_array(token.position, TokenKind.PROC_END)
        if kind is TokenKind.DICT_START:
            return self._parse_dictionary(token.position)
        if kind is TokenKind.KEYWORD and token.value in _CONSTANTS:
            return _CONSTANTS[token.value]
        raise MalformedObject(f"Unexpected token {token.value!r}", token.position)

    def _number_or_reference(self, token: Token) -> Any:
        if not _is_integer(token) or token.value < 0:
            return token.value
        lexer = self.lexer
        mark = lexer.tell()
        generation = lexer.next_token()
        if _is_integer(generation) and generation.value >= 0:
            if lexer.next_token().is_keyword("R"):
                return PdfReference(token.value, generation.value)
        lexer.seek(mark)
        return token.value

    def _parse_array(self, position: int, closing: TokenKind) -> PdfArray:
        items = PdfArray()
        lexer = self.lexer
        while True:
            token = lexer.next_token()
            if token.kind is closing:
                return items
            if token.kind is TokenKind.EOF or token.is_keyword("endobj", "stream"):
                raise MalformedObject("Unterminated array", position)
            if token.kind in (TokenKind.ARRAY_END, TokenKind.DICT_END, TokenKind.PROC_END):
                raise MalformedObject(f"Unbalanced {token.value!r} in array", token.position)
            items.append(self.parse_token(token))

    def _parse_dictionary(self, position: int) -> PdfDictionary | PdfStream:
        dictionary = PdfDictionary()
        lexer = self.lexer
        while True:
            token = lexer.next_token()
            if token.kind is TokenKind.DICT_END:
                break
            if token.kind is TokenKind.EOF or token.is_keyword("endobj", "stream"):
                raise MalformedObject("Unterminated dictionary", position)
            if token.kind is TokenKind.ARRAY_END:
                raise MalformedObject("Unbalanced ']' in dictionary", token.position)
            if token.kind is not TokenKind.NAME:
                LOGGER.warning("Skipping non-name dictionary key %r at offset %s", token.value, token.position)
                continue
            value_token = lexer.next_token()
            if value_token.kind is TokenKind.DICT_END:
                dictionary[token.value] = None
                break
            if value_token.kind is TokenKind.EOF:
                raise MalformedObject("Unterminated dictionary", position)
            dictionary[token.value] = self.parse_token(value_token)

        following = lexer.peek_token()
        if not following.is_keyword("stream"):
            return dictionary
        lexer.next_token()
        length = self._stream_length(dictionary)
        raw, _ = lexer.read_stream_body(following.position + len(b"stream"), length)
        return PdfStream(dictionary, raw)

    def _stream_length(self, dictionary: PdfDictionary) -> int | None:
        length = dictionary.get("Length")
        if isinstance(length, PdfReference):
            if self.length_resolver is None:
                return None
            try:
                length = self.length_resolver(length)
            except (PdfTextError, RecursionError) as exc:
                LOGGER.debug("Unable to resolve stream length %r: %s", length, exc)
                return None
        if isinstance(length, bool) or not isinstance(length, int):
            return None
        return length


def _is_integer(token: Token) -> bool:
    return token.kind is TokenKind.NUMBER and isinstance(token.value, int)
