"""CMap parsing for ToUnicode maps and composite font encodings."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from pypdf._cmap import _predefined_cmap

from ..core.lexer import Lexer, TokenKind
from ..exceptions import PdfTextError
from .encodings import glyph_to_unicode

__all__ = [
    "CodespaceRange",
    "CMap",
    "parse_cmap",
    "predefined_cmap",
    "decode_unicode_destination",
]

LOGGER = logging.getLogger("pdftextx.fonts.cmap")

_UNICODE_CMAP_RE = re.compile(r"^Uni\w+-(UCS2|UTF16)(-HW)?-[HV]$")
_MAX_CODEC_BYTES = 4


@dataclass(frozen=True, slots=True)
class CodespaceRange:
    low: bytes
    high: bytes

    @property
    def length(self) -> int:
        return len(self.low)

    def contains(self, code: bytes) -> bool:
        if len(code) != len(self.low):
            return False
        return all(lo <= byte <= hi for byte, lo, hi in zip(code, self.low, self.high))


def decode_unicode_destination(raw: bytes) -> str:
    """Decode a ``bfchar``/``bfrange`` destination (UTF-16BE, single bytes as Latin-1)."""

    if len(raw) == 1:
        return chr(raw[0])
    if len(raw) % 2:
        raw = b"\x00" + raw
    return raw.decode("utf-16-be", "replace")


def _offset_text(text: str, offset: int) -> str:
    if not text:
        return text
    last = ord(text[-1]) + offset
    if not 0 <= last <= 0x10FFFF:
        return text
    return text[:-1] + chr(last)


@dataclass(slots=True)
class CMap:
    """Code to CID and code to Unicode mappings with their codespace.

    ``unicode_codes`` marks the predefined UCS-2/UTF-16 CMaps whose codes are
    themselves UTF-16BE text.  ``codec`` names the Python codec of a predefined
    legacy CJK CMap (Shift-JIS, GBK, Big5, ...); such codes are split and
    decoded through the codec.
    """

    name: str | None = None
    codespace: list[CodespaceRange] = field(default_factory=list)
    vertical: bool = False
    identity: bool = False
    unicode_codes: bool = False
    codec: str | None = None
    parent: CMap | None = None
    cid_singles: dict[bytes, int] = field(default_factory=dict)
    cid_ranges: list[tuple[bytes, bytes, int]] = field(default_factory=list)
    unicode_singles: dict[bytes, str] = field(default_factory=dict)
    unicode_ranges: list[tuple[bytes, bytes, Any]] = field(default_factory=list)

    def all_codespace(self) -> list[CodespaceRange]:
        ranges = list(self.codespace)
        if self.parent is not None:
            ranges.extend(self.parent.all_codespace())
        return ranges

    @property
    def has_unicode(self) -> bool:
        return bool(self.unicode_singles or self.unicode_ranges) or (
            self.parent is not None and self.parent.has_unicode
        )

    @property
    def text_codec(self) -> str | None:
        if self.codec is not None:
            return self.codec
        return self.parent.text_codec if self.parent is not None else None

    @property
    def decodes_text(self) -> bool:
        """Whether the codes themselves encode Unicode text."""

        return self.unicode_codes or self.text_codec is not None

    def split_codes(self, data: bytes, default_length: int = 2) -> list[bytes]:
        """Split a string operand into character codes using the codespace ranges."""

        ranges = self.all_codespace()
        if not ranges and self.text_codec is not None:
            return _split_with_codec(data, self.text_codec)
        if not ranges:
            step = default_length
            return [data[i : i + step] for i in range(0, len(data), step)]
        lengths = sorted({r.length for r in ranges})
        codes: list[bytes] = []
        index = 0
        while index < len(data):
            for length in lengths:
                candidate = data[index : index + length]
                if len(candidate) == length and any(r.contains(candidate) for r in ranges):
                    break
            else:
                # Out of codespace: consume the shortest length.
                candidate = data[index : index + lengths[0]]
            codes.append(candidate)
            index += len(candidate)
        return codes

    def lookup_cid(self, code: bytes) -> int | None:
        if self.identity:
            return int.from_bytes(code, "big")
        cid = self.cid_singles.get(code)
        if cid is not None:
            return cid
        for low, high, start in self.cid_ranges:
            if len(code) == len(low) and low <= code <= high:
                return start + int.from_bytes(code, "big") - int.from_bytes(low, "big")
        if self.parent is not None:
            return self.parent.lookup_cid(code)
        return None

    def lookup_unicode(self, code: bytes) -> str | None:
        if self.unicode_codes:
            return decode_unicode_destination(code)
        if self.identity:
            value = int.from_bytes(code, "big")
            return chr(value) if 0 < value < 0xD800 or 0xE000 <= value <= 0x10FFFF else None
        if self.codec is not None:
            return _decode_with_codec(code, self.codec)
        text = self.unicode_singles.get(code)
        if text is not None:
            return text
        for low, high, destination in self.unicode_ranges:
            if len(code) != len(low) or not low <= code <= high:
                continue
            offset = int.from_bytes(code, "big") - int.from_bytes(low, "big")
            if isinstance(destination, list):
                return destination[offset] if offset < len(destination) else None
            return _offset_text(destination, offset)
        if self.parent is not None:
            return self.parent.lookup_unicode(code)
        return None


def _decode_with_codec(code: bytes, codec: str) -> str | None:
    try:
        return code.decode(codec)
    except (UnicodeDecodeError, LookupError):
        return None


def _split_with_codec(data: bytes, codec: str) -> list[bytes]:
    # Multi-byte codecs reject a truncated sequence, so the shortest decodable
    # prefix is one character code.
    codes: list[bytes] = []
    index = 0
    while index < len(data):
        for length in range(1, _MAX_CODEC_BYTES + 1):
            candidate = data[index : index + length]
            if len(candidate) < length:
                candidate = data[index : index + 1]
                break
            if _decode_with_codec(candidate, codec) is not None:
                break
        else:
            candidate = data[index : index + 1]
        codes.append(candidate)
        index += len(candidate)
    return codes


def predefined_cmap(name: str) -> CMap | None:
    """Return the built-in CMaps this package knows, ``None`` for any other name.

    Legacy CJK CMaps are backed by the codec pypdf associates with them.
    """

    if name in ("Identity-H", "Identity-V"):
        return CMap(
            name=name,
            codespace=[CodespaceRange(b"\x00\x00", b"\xff\xff")],
            vertical=name.endswith("V"),
            identity=True,
        )
    if name in ("OneByteIdentityH", "OneByteIdentityV"):
        return CMap(
            name=name,
            codespace=[CodespaceRange(b"\x00", b"\xff")],
            vertical=name.endswith("V"),
            identity=True,
        )
    match = _UNICODE_CMAP_RE.match(name)
    if match:
        codespace = [CodespaceRange(b"\x00\x00", b"\xd7\xff"), CodespaceRange(b"\xe0\x00", b"\xff\xff")]
        if match.group(1) == "UTF16":
            codespace.append(CodespaceRange(b"\xd8\x00\xdc\x00", b"\xdb\xff\xdf\xff"))
        return CMap(name=name, codespace=codespace, vertical=name.endswith("V"), unicode_codes=True)
    codec = _predefined_cmap.get(f"/{name}")
    if codec is not None:
        return CMap(name=name, vertical=name.endswith("V"), codec=codec)
    return None


def _destination(value: Any) -> str:
    if isinstance(value, bytes):
        return decode_unicode_destination(value)
    return glyph_to_unicode(str(value)) or ""


def parse_cmap(data: bytes) -> CMap:
    """Parse an embedded CMap program.

    Only the CMap operators are interpreted; the surrounding PostScript is
    skipped.  Malformed sections are dropped with a debug message, keeping
    whatever mappings were read before them.
    """

    cmap = CMap()
    lexer = Lexer(data)
    operands: list[Any] = []
    while True:
        try:
            token = lexer.next_token()
        except PdfTextError as exc:
            LOGGER.debug("Stopping CMap parse: %s", exc)
            break
        kind = token.kind
        if kind is TokenKind.EOF:
            break
        if kind is TokenKind.ARRAY_START:
            operands.append(_read_array(lexer))
            continue
        if kind is not TokenKind.KEYWORD:
            operands.append(token.value)
            continue

        keyword = token.value
        if keyword == "def" and len(operands) >= 2:
            key, value = operands[-2], operands[-1]
            if key == "CMapName" and isinstance(value, str):
                cmap.name = str(value)
            elif key == "WMode" and value == 1:
                cmap.vertical = True
        elif keyword == "usecmap" and operands:
            parent = predefined_cmap(str(operands[-1]))
            if parent is None:
                LOGGER.debug("usecmap of unknown CMap %r ignored", operands[-1])
            cmap.parent = parent
        elif keyword == "endcodespacerange":
            for low, high in _groups(operands, 2):
                if isinstance(low, bytes) and isinstance(high, bytes) and len(low) == len(high) and low:
                    cmap.codespace.append(CodespaceRange(low, high))
        elif keyword == "endcidrange":
            for low, high, cid in _groups(operands, 3):
                if isinstance(low, bytes) and isinstance(high, bytes) and isinstance(cid, int):
                    cmap.cid_ranges.append((low, high, cid))
        elif keyword == "endcidchar":
            for code, cid in _groups(operands, 2):
                if isinstance(code, bytes) and isinstance(cid, int):
                    cmap.cid_singles[code] = cid
        elif keyword == "endbfchar":
            for code, destination in _groups(operands, 2):
                if isinstance(code, bytes):
                    cmap.unicode_singles[code] = _destination(destination)
        elif keyword == "endbfrange":
            for low, high, destination in _groups(operands, 3):
                if not (isinstance(low, bytes) and isinstance(high, bytes)) or len(low) != len(high):
                    continue
                if isinstance(destination, list):
                    cmap.unicode_ranges.append((low, high, [_destination(item) for item in destination]))
                elif isinstance(destination, bytes):
                    cmap.unicode_ranges.append((low, high, decode_unicode_destination(destination)))
        operands = []
    return cmap


def _read_array(lexer: Lexer) -> list[Any]:
    items: list[Any] = []
    while True:
        token = lexer.next_token()
        if token.kind in (TokenKind.ARRAY_END, TokenKind.EOF):
            return items
        items.append(token.value)


def _groups(operands: list[Any], size: int) -> list[tuple[Any, ...]]:
    usable = len(operands) - len(operands) % size
    return [tuple(operands[i : i + size]) for i in range(0, usable, size)]
