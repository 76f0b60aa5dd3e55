"""Stream filter decoding backed by :mod:`pypdf.filters`.

The decoders themselves are pypdf's; this module maps PDF filter names (and
their inline-image abbreviations) onto them, adapts ``/DecodeParms`` into the
pypdf object model and turns decoder failures into :class:`CorruptStream`.
"""

from __future__ import annotations

import logging
import zlib
from typing import Any, Callable

from pypdf.errors import PyPdfError
from pypdf.filters import (
    ASCII85Decode,
    ASCIIHexDecode,
    FlateDecode,
    LZWDecode,
    RunLengthDecode,
)
from pypdf.generic import (
    BooleanObject,
    DictionaryObject,
    FloatObject,
    NameObject,
    NumberObject,
)

from ..exceptions import CorruptStream, UnsupportedFilter
from .objects import PdfDictionary, PdfName, PdfStream

__all__ = ["decode", "decode_stream", "normalize_filter_name", "PASSTHROUGH_FILTERS"]

LOGGER = logging.getLogger("pdftextx.filters")

Resolver = Callable[[Any], Any]

_ABBREVIATIONS = {
    "Fl": "FlateDecode",
    "LZW": "LZWDecode",
    "A85": "ASCII85Decode",
    "AHx": "ASCIIHexDecode",
    "RL": "RunLengthDecode",
    "DCT": "DCTDecode",
    "CCF": "CCITTFaxDecode",
}

_DECODERS: dict[str, Callable[..., bytes]] = {
    "FlateDecode": FlateDecode.decode,
    "LZWDecode": LZWDecode.decode,
    "ASCII85Decode": ASCII85Decode.decode,
    "ASCIIHexDecode": ASCIIHexDecode.decode,
    "RunLengthDecode": RunLengthDecode.decode,
}

# Image codecs are irrelevant to text extraction, their data is left encoded.
PASSTHROUGH_FILTERS = frozenset({"DCTDecode", "JPXDecode", "CCITTFaxDecode", "JBIG2Decode"})


def normalize_filter_name(name: str) -> str:
    return _ABBREVIATIONS.get(name, name)


def _to_pypdf_parameters(params: PdfDictionary | None) -> DictionaryObject | None:
    if not params:
        return None
    converted = DictionaryObject()
    for key, value in params.items():
        if isinstance(value, bool):
            converted[NameObject(f"/{key}")] = BooleanObject(value)
        elif isinstance(value, int):
            converted[NameObject(f"/{key}")] = NumberObject(value)
        elif isinstance(value, float):
            converted[NameObject(f"/{key}")] = FloatObject(value)
        elif isinstance(value, PdfName):
            converted[NameObject(f"/{key}")] = NameObject(f"/{value}")
    return converted


def decode(
    raw: bytes,
    filter_name: str,
    params: PdfDictionary | None = None,
    *,
    memory_limit: int = 0,
) -> bytes:
    """Apply a single filter to ``raw``."""

    name = normalize_filter_name(str(filter_name))
    if name in PASSTHROUGH_FILTERS:
        return raw
    if name == "Crypt":
        crypt_name = params.get("Name") if params else None
        if crypt_name in (None, "Identity"):
            return raw
        raise UnsupportedFilter(f"Crypt filter /{crypt_name} requires decryption")
    decoder = _DECODERS.get(name)
    if decoder is None:
        raise UnsupportedFilter(f"Unsupported filter /{name}")
    if name == "LZWDecode" and params and params.get("Predictor", 1) != 1:
        LOGGER.warning("Ignoring predictor on LZWDecode stream")

    try:
        decoded = decoder(raw, _to_pypdf_parameters(params))
    except (PyPdfError, zlib.error, ValueError) as exc:
        raise CorruptStream(f"{name} failed: {exc}") from exc
    if isinstance(decoded, str):
        decoded = decoded.encode("latin-1")
    if memory_limit and len(decoded) > memory_limit:
        raise CorruptStream(
            f"{name} output of {len(decoded)} bytes exceeds the limit of {memory_limit} bytes"
        )
    return decoded


def _as_list(value: Any, resolve: Resolver) -> list[Any]:
    value = resolve(value)
    if value is None:
        return []
    if isinstance(value, list):
        return [resolve(item) for item in value]
    return [value]


def decode_stream(
    stream: PdfStream,
    *,
    resolve: Resolver | None = None,
    memory_limit: int = 0,
) -> bytes:
    """Decode ``stream`` through its ``/Filter`` chain, left to right."""

    resolve = resolve or (lambda value: value)
    filters = _as_list(stream.get("Filter"), resolve)
    parameters = _as_list(stream.get("DecodeParms"), resolve)

    data = stream.raw
    for index, filter_name in enumerate(filters):
        if not isinstance(filter_name, PdfName):
            raise UnsupportedFilter(f"Filter entry {filter_name!r} is not a name")
        params = parameters[index] if index < len(parameters) else None
        if not isinstance(params, PdfDictionary):
            params = None
        data = decode(data, filter_name, params, memory_limit=memory_limit)
    return data
