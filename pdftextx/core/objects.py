"""PDF value model.

Values are plain Python objects where the mapping is unambiguous (``None``,
``bool``, ``int``, ``float``) and small wrapper types everywhere else.  A
:class:`PdfReference` never carries the object it points at; resolution is the
job of :class:`pdftextx.core.document.Document`, which keeps the cyclic page
tree free of owning back-pointers.
"""

from __future__ import annotations

import codecs
from dataclasses import dataclass
from typing import Any, NamedTuple, TypeVar

from pypdf._codecs import _pdfdoc_encoding

from ..exceptions import TypeMismatch

__all__ = [
    "ObjectId",
    "PdfName",
    "PdfString",
    "PdfReference",
    "PdfArray",
    "PdfDictionary",
    "PdfStream",
    "IndirectObject",
    "expect",
    "type_name",
]

T = TypeVar("T")


class ObjectId(NamedTuple):
    """Object number and generation of an indirect object."""

    number: int
    generation: int

    def __str__(self) -> str:
        return f"{self.number} {self.generation}"


class PdfName(str):
    """A PDF name, stored without its leading slash."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"/{str(self)}"


@dataclass(frozen=True, slots=True)
class PdfString:
    """Raw bytes of a literal ``(...)`` or hexadecimal ``<...>`` string."""

    raw: bytes
    hexadecimal: bool = False

    def __bytes__(self) -> bytes:
        return self.raw

    def __len__(self) -> int:
        return len(self.raw)

    def to_text(self) -> str:
        """Decode a PDF text string (UTF-16BE/UTF-8 with BOM or PDFDocEncoding)."""

        raw = self.raw
        if raw.startswith(codecs.BOM_UTF16_BE):
            return raw[2:].decode("utf-16-be", "replace")
        if raw.startswith(codecs.BOM_UTF16_LE):
            return raw[2:].decode("utf-16-le", "replace")
        if raw.startswith(codecs.BOM_UTF8):
            return raw[3:].decode("utf-8", "replace")
        return "".join(_pdfdoc_encoding[byte] for byte in raw).replace("\x00", "")


@dataclass(frozen=True, slots=True)
class PdfReference:
    """``N G R`` reference to an indirect object."""

    number: int
    generation: int = 0

    @property
    def object_id(self) -> ObjectId:
        return ObjectId(self.number, self.generation)

    def __repr__(self) -> str:
        return f"PdfReference({self.number} {self.generation} R)"


class PdfArray(list):
    """PDF array."""

    __slots__ = ()


class PdfDictionary(dict):
    """PDF dictionary keyed by name (without the leading slash).

    The typed accessors never coerce: a present value of the wrong type raises
    :class:`TypeMismatch`.  Values are returned unresolved, so callers holding
    references resolve them through the document first.
    """

    __slots__ = ()

    def _typed(self, key: str, kind: type | tuple[type, ...], default: Any) -> Any:
        value = self.get(key)
        if value is None:
            return default
        return expect(value, kind, f"/{key}")

    def get_name(self, key: str, default: str | None = None) -> str | None:
        return self._typed(key, PdfName, default)

    def get_int(self, key: str, default: int | None = None) -> int | None:
        value = self._typed(key, (int, float), default)
        if isinstance(value, bool):
            raise TypeMismatch(f"/{key}: expected number, got boolean")
        return int(value) if value is not None else None

    def get_number(self, key: str, default: float | None = None) -> float | None:
        value = self._typed(key, (int, float), default)
        if isinstance(value, bool):
            raise TypeMismatch(f"/{key}: expected number, got boolean")
        return float(value) if value is not None else None

    def get_array(self, key: str, default: PdfArray | None = None) -> PdfArray | None:
        return self._typed(key, list, default)

    def get_dictionary(self, key: str, default: PdfDictionary | None = None) -> PdfDictionary | None:
        return self._typed(key, PdfDictionary, default)

    def get_string(self, key: str, default: PdfString | None = None) -> PdfString | None:
        return self._typed(key, PdfString, default)


@dataclass(slots=True)
class PdfStream:
    """Stream dictionary plus the undecoded bytes between ``stream``/``endstream``."""

    dictionary: PdfDictionary
    raw: bytes
    object_id: ObjectId | None = None

    def get(self, key: str, default: Any = None) -> Any:
        return self.dictionary.get(key, default)

    def __contains__(self, key: object) -> bool:
        return key in self.dictionary

    @property
    def type(self) -> str | None:
        value = self.dictionary.get("Type")
        return str(value) if isinstance(value, PdfName) else None


@dataclass(slots=True)
class IndirectObject:
    """Result of parsing ``N G obj ... endobj``."""

    object_id: ObjectId
    value: Any
    offset: int | None = None


def type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, PdfName):
        return "name"
    if isinstance(value, PdfString):
        return "string"
    if isinstance(value, PdfReference):
        return "reference"
    if isinstance(value, PdfStream):
        return "stream"
    if isinstance(value, PdfDictionary):
        return "dictionary"
    if isinstance(value, list):
        return "array"
    return type(value).__name__


def expect(value: Any, kind: type[T] | tuple[type, ...], what: str = "value") -> T:
    """Return ``value`` if it is an instance of ``kind``, raise :class:`TypeMismatch` otherwise."""

    if not isinstance(value, kind):
        expected = (
            " or ".join(k.__name__ for k in kind) if isinstance(kind, tuple) else kind.__name__
        )
        raise TypeMismatch(f"{what}: expected {expected}, got {type_name(value)}")
    return value
