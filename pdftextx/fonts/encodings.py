"""Base encodings and glyph name to Unicode lookup.

The 256 entry tables and the Adobe Glyph List come from pypdf's bundled
codec data, so this module only adds the lookups a text extractor needs on
top: undefined positions, algorithmic ``uniXXXX`` names and ligature parts.
"""

from __future__ import annotations

import re
import unicodedata

from pypdf._codecs import adobe_glyphs, charset_encoding

__all__ = [
    "BASE_ENCODINGS",
    "base_encoding",
    "glyph_to_unicode",
    "is_known_encoding",
]

_UNI_RE = re.compile(r"^uni((?:[0-9A-F]{4})+)$")
_U_RE = re.compile(r"^u([0-9A-F]{4,6})$")

# Names accepted in /Encoding and /BaseEncoding, plus the built-in encodings
# of the two symbolic standard fonts.
BASE_ENCODINGS = ("StandardEncoding", "WinAnsiEncoding", "MacRomanEncoding", "PDFDocEncoding", "Symbol", "ZapfDingbats")


def _table(name: str) -> tuple[str | None, ...]:
    return tuple(
        None if len(char) == 1 and char != "\t" and unicodedata.category(char) == "Cc" else char
        for char in charset_encoding[f"/{name}"]
    )


_TABLES: dict[str, tuple[str | None, ...]] = {name: _table(name) for name in BASE_ENCODINGS}


def is_known_encoding(name: str) -> bool:
    return name in _TABLES


def base_encoding(name: str | None) -> tuple[str | None, ...]:
    """256 entry code to Unicode table for a named encoding, StandardEncoding by default."""

    if name is None or name not in _TABLES:
        return _TABLES["StandardEncoding"]
    return _TABLES[name]


def _is_valid_scalar(value: int) -> bool:
    return 0 <= value <= 0x10FFFF and not 0xD800 <= value <= 0xDFFF


def glyph_to_unicode(name: str) -> str | None:
    """Map a glyph name to Unicode text, ``""`` for ``.notdef``, ``None`` when unknown."""

    if not name or name == ".notdef":
        return ""
    known = adobe_glyphs.get(f"/{name}")
    if known is not None:
        return known

    match = _UNI_RE.match(name)
    if match:
        digits = match.group(1)
        values = [int(digits[i : i + 4], 16) for i in range(0, len(digits), 4)]
        if all(_is_valid_scalar(value) for value in values):
            return "".join(chr(value) for value in values)
    match = _U_RE.match(name)
    if match:
        value = int(match.group(1), 16)
        if _is_valid_scalar(value):
            return chr(value)

    # "f_f_i" ligatures and "a.sc" style variants.
    base = name.split(".", 1)[0]
    if base != name:
        return glyph_to_unicode(base) if base else None
    if "_" in name:
        parts = [glyph_to_unicode(part) for part in name.split("_")]
        if all(parts):
            return "".join(part for part in parts if part)
    return None
