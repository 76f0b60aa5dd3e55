"""Low-level PDF syntax: tokens, values, streams and cross-reference data."""

from .filters import decode, decode_stream
from .lexer import Lexer, Token, TokenKind, decode_literal_string
from .objects import (
    ObjectId,
    PdfArray,
    PdfDictionary,
    PdfName,
    PdfReference,
    PdfStream,
    PdfString,
)
from .parser import ObjectParser
from .xref import CrossReferenceTable, XrefEntry, XrefResolver

__all__ = [
    "decode",
    "decode_stream",
    "Lexer",
    "Token",
    "TokenKind",
    "decode_literal_string",
    "ObjectId",
    "PdfArray",
    "PdfDictionary",
    "PdfName",
    "PdfReference",
    "PdfStream",
    "PdfString",
    "ObjectParser",
    "CrossReferenceTable",
    "XrefEntry",
    "XrefResolver",
]
