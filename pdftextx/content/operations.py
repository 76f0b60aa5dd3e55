"""Content stream tokenizer yielding ``(operands, operator)`` pairs."""

from __future__ import annotations

import logging
import re
from typing import Any, Iterator

from ..core.lexer import TokenKind
from ..core.parser import ObjectParser
from ..exceptions import PdfTextError

__all__ = ["iter_operations", "Operation"]

LOGGER = logging.getLogger("pdftextx.content")

Operation = tuple[list[Any], str]

_CONSTANTS = frozenset({"true", "false", "null"})
_INLINE_IMAGE_END_RE = re.compile(rb"[\x00\t\n\x0c\r ]EI(?=[\x00\t\n\x0c\r ]|$)")


def _skip_inline_image(parser: ObjectParser) -> None:
    """Consume an inline image from after ``BI`` up to and including ``EI``."""

    lexer = parser.lexer
    length: int | None = None
    while True:
        token = lexer.next_token()
        if token.kind is TokenKind.EOF:
            return
        if token.is_keyword("ID"):
            break
        if token.kind is TokenKind.NAME and token.value in ("L", "Length"):
            value = lexer.next_token()
            if value.kind is TokenKind.NUMBER and isinstance(value.value, int):
                length = value.value
    data = parser.data
    start = lexer.position + 1
    if length is not None and data[start + length : start + length + 8].lstrip().startswith(b"EI"):
        end = data.find(b"EI", start + length) + 2
    else:
        match = _INLINE_IMAGE_END_RE.search(data, start)
        end = match.end() if match else len(data)
    lexer.seek(end)


def iter_operations(data: bytes) -> Iterator[Operation]:
    """Tokenize a content stream.

    Inline images are skipped.  When a token or operand cannot be parsed the
    pending operands are dropped and scanning resumes one byte further on.
    """

    parser = ObjectParser(data)
    lexer = parser.lexer
    operands: list[Any] = []
    while True:
        start = lexer.tell()
        try:
            token = lexer.next_token()
            if token.kind is TokenKind.EOF:
                return
            if token.kind is TokenKind.KEYWORD and token.value not in _CONSTANTS:
                if token.value == "BI":
                    _skip_inline_image(parser)
                    operands = []
                    continue
                yield operands, token.value
                operands = []
                continue
            operands.append(parser.parse_token(token))
        except PdfTextError as exc:
            resume = max(lexer.position, start + 1)
            LOGGER.debug("Content stream error at %s: %s", start, exc)
            lexer.seek(resume)
            operands = []
