"""Font dictionaries: character code splitting, Unicode mapping and widths.

A font turns the bytes of a string operand into :class:`Glyph` objects.  The
Unicode value of each code comes from an ordered chain of resolvers; each one
returns ``None`` to defer to the next, and a code nobody can map decodes to the
empty string.
"""

from __future__ import annotations

import logging
import re
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from pypdf._codecs import adobe_glyphs
from pypdf._codecs.core_font_metrics import CORE_FONT_METRICS

from ..core.lexer import Lexer, TokenKind
from ..core.objects import PdfDictionary, PdfName, PdfStream
from ..exceptions import FontResolutionGap, PdfTextError
from .cmap import CMap, parse_cmap, predefined_cmap
from .encodings import BASE_ENCODINGS, base_encoding, glyph_to_unicode

if TYPE_CHECKING:
    from ..core.document import Document

__all__ = [
    "Glyph",
    "Font",
    "SimpleFont",
    "Type3Font",
    "CompositeFont",
    "load_font",
    "fallback_font",
    "parse_type1_encoding",
]

LOGGER = logging.getLogger("pdftextx.fonts")

Resolver = Callable[[bytes], "str | None"]

_SUBSET_RE = re.compile(r"^[A-Z]{6}\+")
_SYMBOLIC_FLAG = 1 << 2
_DEFAULT_WIDTH = 500.0


@dataclass(frozen=True, slots=True)
class Glyph:
    """One decoded character code.

    ``width`` is the horizontal displacement in text space for a font size of
    one, ``word_space`` marks the single-byte code 32 that ``Tw`` applies to.
    """

    code: bytes
    text: str
    width: float
    word_space: bool = False


def strip_subset_tag(name: str) -> str:
    return _SUBSET_RE.sub("", name)


def parse_type1_encoding(data: bytes) -> dict[int, str]:
    """Read the built-in encoding from the cleartext part of a Type 1 font program.

    Only ``dup <code> /<glyph> put`` entries are collected, an empty mapping
    means the program uses StandardEncoding.
    """

    encoding: dict[int, str] = {}
    queue: deque[Any] = deque([], 2)
    lexer = Lexer(data)
    try:
        for token in lexer:
            if token.is_keyword("eexec"):
                break
            if token.is_keyword("put"):
                if len(queue) == 2:
                    code, name = queue
                    if isinstance(code, int) and isinstance(name, PdfName):
                        encoding[code] = str(name)
            else:
                queue.append(token.value if token.kind in (TokenKind.NUMBER, TokenKind.NAME) else None)
    except PdfTextError as exc:
        LOGGER.debug("Stopped reading Type 1 header: %s", exc)
    return encoding


class Font:
    """Base class holding the resolver chain and the ToUnicode map."""

    def __init__(self, name: str, base_font: str = "", subtype: str = "Type1") -> None:
        self.name = name
        self.base_font = base_font
        self.subtype = subtype
        self.to_unicode: CMap | None = None
        self.vertical = False
        self.resolvers: list[Resolver] = []
        self._unicode_cache: dict[bytes, str] = {}
        self._reported_gap = False

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} {self.base_font!r}>"

    @property
    def display_name(self) -> str:
        return strip_subset_tag(self.base_font) or self.name

    def split(self, data: bytes) -> list[bytes]:
        return [data[i : i + 1] for i in range(len(data))]

    def width(self, code: bytes) -> float:
        return _DEFAULT_WIDTH / 1000

    def unicode(self, code: bytes) -> str:
        cached = self._unicode_cache.get(code)
        if cached is not None:
            return cached
        text: str | None = None
        for resolver in self.resolvers:
            text = resolver(code)
            if text is not None:
                break
        if text is None:
            text = ""
            if not self._reported_gap:
                self._reported_gap = True
                LOGGER.debug("Font %s (%s) cannot map code %s", self.name, self.base_font, code.hex())
        self._unicode_cache[code] = text
        return text

    def is_space(self, code: bytes) -> bool:
        """Word spacing applies to the single-byte code 32 only."""

        return code == b" "

    def decode(self, data: bytes) -> list[Glyph]:
        return [
            Glyph(code, self.unicode(code), self.width(code), self.is_space(code))
            for code in self.split(data)
        ]

    def to_text(self, data: bytes) -> str:
        return "".join(self.unicode(code) for code in self.split(data))

    def _resolve_to_unicode(self, code: bytes) -> str | None:
        if self.to_unicode is None:
            return None
        return self.to_unicode.lookup_unicode(code)


class SimpleFont(Font):
    """Type1, MMType1 and TrueType fonts: single-byte codes through a 256 entry table."""

    def __init__(
        self,
        name: str,
        base_font: str = "",
        subtype: str = "Type1",
        *,
        encoding: tuple[str | None, ...] | None = None,
        differences: dict[int, str] | None = None,
        widths: dict[int, float] | None = None,
        missing_width: float = 0.0,
        metrics: Any = None,
        passthrough: bool = False,
    ) -> None:
        super().__init__(name, base_font, subtype)
        self.encoding = encoding if encoding is not None else base_encoding(None)
        self.differences = differences or {}
        self.widths = widths
        self.missing_width = missing_width
        self.metrics = metrics
        self.passthrough = passthrough
        self.resolvers = [
            self._resolve_to_unicode,
            self._resolve_differences,
            self._resolve_base,
            self._resolve_heuristic,
            self._resolve_passthrough,
        ]

    def _resolve_differences(self, code: bytes) -> str | None:
        name = self.differences.get(code[0])
        return glyph_to_unicode(name) if name is not None else None

    def _resolve_base(self, code: bytes) -> str | None:
        if code[0] in self.differences:
            return None
        return self.encoding[code[0]]

    def _resolve_heuristic(self, code: bytes) -> str | None:
        name = self.differences.get(code[0])
        if not name:
            return None
        for candidate in (name.lower(), name.rstrip("0123456789")):
            if candidate and candidate != name and f"/{candidate}" in adobe_glyphs:
                return adobe_glyphs[f"/{candidate}"]
        return None

    def _resolve_passthrough(self, code: bytes) -> str | None:
        if not self.passthrough:
            return None
        value = code[0]
        return chr(value) if value >= 0x20 else None

    def width(self, code: bytes) -> float:
        value = code[0]
        if self.widths is not None:
            return self.widths.get(value, self.missing_width) / 1000
        if self.metrics is not None:
            char = self.unicode(code)
            widths = self.metrics.character_widths
            return widths.get(char, widths.get("default", _DEFAULT_WIDTH)) / 1000
        return (self.missing_width or _DEFAULT_WIDTH) / 1000


class Type3Font(SimpleFont):
    """Type 3 font whose glyph widths are expressed in its own ``/FontMatrix`` space."""

    def __init__(self, name: str, *, font_matrix: tuple[float, ...] = (0.001, 0, 0, 0.001, 0, 0), **kwargs: Any) -> None:
        super().__init__(name, subtype="Type3", **kwargs)
        self.font_matrix = font_matrix

    def width(self, code: bytes) -> float:
        if self.widths is None:
            return 0.0
        return self.widths.get(code[0], self.missing_width) * self.font_matrix[0]


class CompositeFont(Font):
    """Type0 font: multi-byte codes mapped to CIDs through an encoding CMap."""

    def __init__(
        self,
        name: str,
        base_font: str = "",
        *,
        encoding: CMap,
        cid_widths: dict[int, float] | None = None,
        default_width: float = 1000.0,
    ) -> None:
        super().__init__(name, base_font, "Type0")
        self.encoding = encoding
        self.cid_widths = cid_widths or {}
        self.default_width = default_width
        self.vertical = encoding.vertical
        self.resolvers = [
            self._resolve_to_unicode,
            self._resolve_unicode_codes,
            self._resolve_cid_passthrough,
        ]

    def split(self, data: bytes) -> list[bytes]:
        return self.encoding.split_codes(data)

    def cid(self, code: bytes) -> int | None:
        return self.encoding.lookup_cid(code)

    def _resolve_unicode_codes(self, code: bytes) -> str | None:
        if not self.encoding.decodes_text:
            return None
        return self.encoding.lookup_unicode(code)

    def _resolve_cid_passthrough(self, code: bytes) -> str | None:
        cid = self.cid(code)
        if cid is None or cid == 0 or 0xD800 <= cid <= 0xDFFF or cid > 0x10FFFF:
            return None
        return chr(cid)

    def width(self, code: bytes) -> float:
        cid = self.cid(code)
        if cid is None:
            return self.default_width / 1000
        return self.cid_widths.get(cid, self.default_width) / 1000


# -- loading ---------------------------------------------------------------


def fallback_font(name: str) -> SimpleFont:
    """StandardEncoding font used when a font resource is missing or unreadable."""

    return SimpleFont(name, base_font="", subtype="Type1")


def _number(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value)


def _simple_widths(document: Document, dictionary: PdfDictionary) -> dict[int, float] | None:
    widths = document.resolve_array(dictionary.get("Widths"))
    if widths is None:
        return None
    first = int(_number(document.resolve(dictionary.get("FirstChar")), 0))
    return {first + i: _number(document.resolve(w)) for i, w in enumerate(widths)}


def parse_cid_widths(document: Document, value: Any) -> dict[int, float]:
    """Expand a ``/W`` array (``c [w1 w2 ...]`` and ``cfirst clast w`` forms)."""

    items = document.resolve_array(value) or []
    widths: dict[int, float] = {}
    pending: list[float] = []
    for item in items:
        item = document.resolve(item)
        if isinstance(item, list):
            if pending:
                start = int(pending[-1])
                for offset, width in enumerate(item):
                    widths[start + offset] = _number(document.resolve(width))
            pending = []
        elif isinstance(item, (int, float)) and not isinstance(item, bool):
            pending.append(item)
            if len(pending) == 3:
                first, last, width = pending
                for cid in range(int(first), int(last) + 1):
                    widths[cid] = float(width)
                pending = []
    return widths


def _load_to_unicode(document: Document, value: Any) -> CMap | None:
    value = document.resolve(value)
    if value is None:
        return None
    try:
        if isinstance(value, PdfName):
            cmap = predefined_cmap(str(value))
            if cmap is None or not cmap.identity:
                raise FontResolutionGap(f"Unsupported ToUnicode name /{value}")
            return cmap
        if not isinstance(value, PdfStream):
            raise FontResolutionGap("ToUnicode is neither a stream nor a name")
        cmap = parse_cmap(document.decode_stream(value))
        if not cmap.has_unicode and not cmap.identity:
            raise FontResolutionGap("ToUnicode CMap contains no mappings")
        return cmap
    except PdfTextError as exc:
        LOGGER.warning("Ignoring ToUnicode map: %s", exc)
        return None


def _builtin_encoding(document: Document, descriptor: PdfDictionary | None) -> dict[int, str]:
    if descriptor is None:
        return {}
    program = document.resolve_stream(descriptor.get("FontFile"))
    if program is None:
        return {}
    try:
        data = document.decode_stream(program)
    except PdfTextError as exc:
        LOGGER.debug("Unable to read embedded Type 1 program: %s", exc)
        return {}
    length1 = document.resolve(program.get("Length1"))
    if isinstance(length1, int) and 0 < length1 <= len(data):
        data = data[:length1]
    return parse_type1_encoding(data)


def _load_simple(document: Document, dictionary: PdfDictionary, name: str) -> SimpleFont:
    subtype = str(dictionary.get_name("Subtype", "Type1"))
    base_font = str(document.resolve(dictionary.get("BaseFont")) or "")
    plain_name = strip_subset_tag(base_font)
    descriptor = document.resolve_dictionary(dictionary.get("FontDescriptor"))
    flags = int(_number(document.resolve(descriptor.get("Flags")) if descriptor else 0))
    symbolic = bool(flags & _SYMBOLIC_FLAG)

    encoding_value = document.resolve(dictionary.get("Encoding"))
    encoding_name: str | None = None
    differences: dict[int, str] = {}
    if isinstance(encoding_value, PdfName):
        encoding_name = str(encoding_value)
    elif isinstance(encoding_value, PdfDictionary):
        base = document.resolve(encoding_value.get("BaseEncoding"))
        if isinstance(base, PdfName):
            encoding_name = str(base)
        code = 0
        for item in document.resolve_array(encoding_value.get("Differences")) or []:
            item = document.resolve(item)
            if isinstance(item, int) and not isinstance(item, bool):
                code = item
            elif isinstance(item, PdfName):
                if 0 <= code <= 255:
                    differences[code] = str(item)
                code += 1
    elif encoding_value is not None:
        LOGGER.debug("Font %s has an unusable /Encoding %r", name, encoding_value)

    passthrough = False
    if encoding_name in BASE_ENCODINGS:
        table = base_encoding(encoding_name)
    else:
        if encoding_name is not None:
            LOGGER.warning(
                "Unsupported base encoding /%s for font %s, using the font's own encoding", encoding_name, name
            )
        builtin = _builtin_encoding(document, descriptor) if subtype in ("Type1", "MMType1") else {}
        if builtin:
            standard = base_encoding("StandardEncoding")
            table = tuple(
                glyph_to_unicode(builtin[code]) if code in builtin else standard[code]
                for code in range(256)
            )
        elif plain_name in ("Symbol", "ZapfDingbats"):
            table = base_encoding(plain_name)
        elif subtype == "TrueType" and symbolic and encoding_value is None:
            table = (None,) * 256
            passthrough = True
        else:
            table = base_encoding("StandardEncoding")

    missing = _number(document.resolve(descriptor.get("MissingWidth")) if descriptor else 0)
    widths = _simple_widths(document, dictionary)
    metrics = CORE_FONT_METRICS.get(plain_name) if widths is None else None
    if widths is None and metrics is None and descriptor is not None:
        missing = _number(document.resolve(descriptor.get("AvgWidth")), missing)

    options: dict[str, Any] = dict(
        encoding=table,
        differences=differences,
        widths=widths,
        missing_width=missing,
        passthrough=passthrough,
    )
    if subtype == "Type3":
        matrix = document.resolve_array(dictionary.get("FontMatrix")) or []
        values = tuple(_number(document.resolve(v)) for v in matrix)
        font: SimpleFont = Type3Font(name, font_matrix=values if len(values) == 6 else (0.001, 0, 0, 0.001, 0, 0), **options)
        font.base_font = base_font
    else:
        font = SimpleFont(name, base_font, subtype, metrics=metrics, **options)
    font.to_unicode = _load_to_unicode(document, dictionary.get("ToUnicode"))
    return font


def _load_composite(document: Document, dictionary: PdfDictionary, name: str) -> CompositeFont:
    base_font = str(document.resolve(dictionary.get("BaseFont")) or "")
    encoding_value = document.resolve(dictionary.get("Encoding"))
    cmap: CMap | None = None
    if isinstance(encoding_value, PdfName):
        cmap = predefined_cmap(str(encoding_value))
        if cmap is None:
            LOGGER.warning("Unsupported CMap /%s for font %s, assuming two-byte CIDs", encoding_value, name)
    elif isinstance(encoding_value, PdfStream):
        try:
            cmap = parse_cmap(document.decode_stream(encoding_value))
        except PdfTextError as exc:
            LOGGER.warning("Unable to read encoding CMap for font %s: %s", name, exc)
        else:
            use = document.resolve(encoding_value.get("UseCMap"))
            if cmap.parent is None and isinstance(use, PdfName):
                cmap.parent = predefined_cmap(str(use))
    if cmap is None:
        cmap = predefined_cmap("Identity-H")

    descendants = document.resolve_array(dictionary.get("DescendantFonts")) or []
    descendant = document.resolve_dictionary(descendants[0]) if descendants else None
    cid_widths: dict[int, float] = {}
    default_width = 1000.0
    if descendant is not None:
        cid_widths = parse_cid_widths(document, descendant.get("W"))
        default_width = _number(document.resolve(descendant.get("DW")), 1000.0)

    font = CompositeFont(
        name, base_font, encoding=cmap, cid_widths=cid_widths, default_width=default_width
    )
    font.to_unicode = _load_to_unicode(document, dictionary.get("ToUnicode"))
    return font


def load_font(document: Document, value: Any, name: str = "") -> Font:
    """Build a :class:`Font` for a font dictionary (or reference to one).

    Never raises for malformed fonts: problems are logged and a StandardEncoding
    fallback is returned.
    """

    dictionary = document.resolve_dictionary(value)
    if dictionary is None:
        LOGGER.warning("Font resource %s is not a dictionary, using fallback", name)
        return fallback_font(name)
    try:
        if dictionary.get_name("Subtype") == "Type0":
            return _load_composite(document, dictionary, name)
        return _load_simple(document, dictionary, name)
    except PdfTextError as exc:
        LOGGER.warning("Unable to load font %s: %s", name, exc)
        return fallback_font(name)
