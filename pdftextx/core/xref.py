"""Cross-reference resolution with a raw scan fallback for damaged files."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterator, Mapping

from ..exceptions import MalformedObject, PdfTextError, UnresolvableDocument
from .filters import decode_stream
from .objects import ObjectId, PdfDictionary, PdfName, PdfReference, PdfStream
from .parser import ObjectParser

__all__ = ["XrefEntry", "XrefSection", "CrossReferenceTable", "XrefResolver", "locate_startxref"]

LOGGER = logging.getLogger("pdftextx.xref")

_WHITESPACE = b"\x00\t\n\x0c\r "
_OBJECT_HEADER_RE = re.compile(rb"(\d+)\s+(\d+)\s+obj")
_OBJECT_SCAN_RE = re.compile(rb"(?<![0-9])(\d+)[\x00\t\n\x0c\r ]+(\d+)[\x00\t\n\x0c\r ]+obj(?![A-Za-z])")
_TRAILER_SCAN_RE = re.compile(rb"trailer\s*<<")
_SUBSECTION_RE = re.compile(rb"(\d+)[ \t]+(\d+)")
_ENTRY_RE = re.compile(rb"(\d{1,10})[ \t]+(\d{1,5})[ \t]*([nf])")
_CATALOG_RE = re.compile(rb"/Type\s*/Catalog(?![A-Za-z])")

# Keys describing an xref stream itself rather than the document.
_SECTION_KEYS = frozenset(
    {"Length", "Filter", "DecodeParms", "W", "Index", "Type", "Prev", "XRefStm", "First", "N"}
)


@dataclass(frozen=True, slots=True)
class XrefEntry:
    """Location of an object: a byte offset, or a slot in an object stream."""

    offset: int | None = None
    container: int | None = None
    index: int | None = None
    free: bool = False

    @property
    def compressed(self) -> bool:
        return self.container is not None


@dataclass(slots=True)
class XrefSection:
    kind: str
    offset: int
    entries: dict[ObjectId, XrefEntry] = field(default_factory=dict)
    trailer: PdfDictionary = field(default_factory=PdfDictionary)


@dataclass(frozen=True, slots=True)
class CrossReferenceTable:
    """Merged view of every cross-reference section, newest entry first."""

    entries: Mapping[ObjectId, XrefEntry]
    trailer: PdfDictionary
    recovered: bool = False
    sections: tuple[XrefSection, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[ObjectId]:
        return iter(self.entries)

    def __contains__(self, object_id: object) -> bool:
        return object_id in self.entries

    def get(self, object_id: ObjectId) -> XrefEntry | None:
        return self.entries.get(object_id)

    def find(self, number: int) -> tuple[ObjectId, XrefEntry] | None:
        """Entry for ``number`` regardless of generation, newest generation first."""

        candidates = [oid for oid in self.entries if oid.number == number]
        if not candidates:
            return None
        best = max(candidates, key=lambda oid: oid.generation)
        return best, self.entries[best]

    @property
    def kind(self) -> str:
        if self.recovered:
            return "recovered"
        kinds = {section.kind for section in self.sections}
        if len(kinds) > 1:
            return "hybrid"
        return kinds.pop() if kinds else "none"


def locate_startxref(data: bytes) -> int:
    marker = b"startxref"
    index = data.rfind(marker)
    if index == -1:
        raise MalformedObject("Unable to locate startxref marker")
    match = re.match(rb"\s*(\d+)", data[index + len(marker) :])
    if not match:
        raise MalformedObject("startxref offset not found", index)
    return int(match.group(1))


def _skip_ws(data: bytes, index: int) -> int:
    while index < len(data) and data[index] in _WHITESPACE:
        index += 1
    return index


def _decode_be_integer(buffer: bytes) -> int:
    value = 0
    for byte in buffer:
        value = (value << 8) | byte
    return value


class XrefResolver:
    """Build a :class:`CrossReferenceTable` for ``data``.

    The primary path follows ``startxref`` through ``/Prev`` and ``/XRefStm``
    links.  If the result fails validation the file is scanned for object
    headers and trailers instead.
    """

    def __init__(self, data: bytes, *, memory_limit: int = 0) -> None:
        self.data = data
        self.memory_limit = memory_limit
        self._parser = ObjectParser(data, length_resolver=self._scan_length)
        self._scan: dict[ObjectId, int] | None = None

    def resolve(self) -> CrossReferenceTable:
        primary: CrossReferenceTable | None = None
        try:
            primary = self.read_primary()
        except PdfTextError as exc:
            LOGGER.warning("Unable to read cross-reference data: %s", exc)
        else:
            problem = self.validate(primary)
            if problem is None:
                return primary
            LOGGER.warning("Cross-reference data failed validation: %s", problem)

        LOGGER.warning("Scanning the raw file for object definitions")
        recovered = self.recover(primary)
        if not recovered.entries:
            raise UnresolvableDocument("No objects found in the cross-reference data or by scanning")
        return recovered

    # -- primary path ------------------------------------------------------

    def read_primary(self) -> CrossReferenceTable:
        data = self.data
        startxref = locate_startxref(data)
        if not 0 <= startxref < len(data):
            raise MalformedObject(f"startxref offset {startxref} is out of bounds")

        sections: list[XrefSection] = []
        visited: set[int] = set()
        pending: list[int] = [startxref]
        while pending:
            offset = pending.pop(0)
            if offset in visited or not 0 <= offset < len(data):
                continue
            visited.add(offset)
            try:
                section = self.read_section(offset)
            except PdfTextError as exc:
                if not sections:
                    raise
                LOGGER.warning("Skipping unreadable xref section at %s: %s", offset, exc)
                continue
            sections.append(section)

            hybrid = section.trailer.get("XRefStm")
            if section.kind == "table" and isinstance(hybrid, int) and hybrid not in visited:
                visited.add(hybrid)
                try:
                    stream_section = self.read_section(hybrid)
                except PdfTextError as exc:
                    LOGGER.warning("Skipping unreadable /XRefStm section at %s: %s", hybrid, exc)
                else:
                    # Objects a hybrid table lists as free may live in its stream.
                    for object_id, entry in stream_section.entries.items():
                        existing = section.entries.get(object_id)
                        if existing is None or existing.free:
                            section.entries[object_id] = entry
                    sections.append(stream_section)

            follow: list[int] = []
            previous = section.trailer.get("Prev")
            if isinstance(previous, int) and not isinstance(previous, bool):
                follow.append(previous)
            pending = follow + pending

        return self._merge(sections, recovered=False)

    def read_section(self, offset: int) -> XrefSection:
        start = _skip_ws(self.data, offset)
        if self.data.startswith(b"xref", start):
            return self._read_table(start)
        return self._read_stream(offset)

    def _read_table(self, start: int) -> XrefSection:
        data = self.data
        section = XrefSection("table", start)
        index = start + len(b"xref")
        while True:
            index = _skip_ws(data, index)
            if index >= len(data):
                raise MalformedObject("xref table has no trailer", start)
            if data.startswith(b"trailer", index):
                trailer = self._parser.parse_value(index + len(b"trailer"))
                if not isinstance(trailer, PdfDictionary):
                    raise MalformedObject("trailer is not a dictionary", index)
                section.trailer = trailer
                return section
            header = _SUBSECTION_RE.match(data, index)
            if not header:
                raise MalformedObject("Malformed xref subsection header", index)
            first, count = int(header.group(1)), int(header.group(2))
            index = header.end()
            for position in range(count):
                index = _skip_ws(data, index)
                entry = _ENTRY_RE.match(data, index)
                if not entry:
                    raise MalformedObject("Malformed xref entry", index)
                index = entry.end()
                value, generation, marker = int(entry.group(1)), int(entry.group(2)), entry.group(3)
                # Some writers number the first subsection from 1 while still
                # listing the free head of object 0.
                if position == 0 and first == 1 and marker == b"f" and generation == 65535:
                    first = 0
                object_id = ObjectId(first + position, generation)
                if marker == b"n":
                    section.entries.setdefault(object_id, XrefEntry(offset=value))
                else:
                    section.entries.setdefault(
                        ObjectId(first + position, max(generation - 1, 0)), XrefEntry(free=True)
                    )

    def _read_stream(self, offset: int) -> XrefSection:
        indirect = self._parser.parse_indirect_object(offset)
        stream = indirect.value
        if not isinstance(stream, PdfStream) or stream.type != "XRef":
            raise MalformedObject(f"Object at {offset} is not an xref stream", offset)
        return self._section_from_stream(stream, offset)

    def _section_from_stream(self, stream: PdfStream, offset: int) -> XrefSection:
        dictionary = stream.dictionary
        widths = dictionary.get_array("W")
        if not widths or len(widths) != 3 or not all(isinstance(w, int) for w in widths):
            raise MalformedObject("xref stream has an invalid /W array", offset)
        entry_width = sum(widths)
        if entry_width <= 0:
            raise MalformedObject("xref stream has zero-width entries", offset)
        size = dictionary.get_int("Size", 0) or 0
        index = dictionary.get_array("Index")
        if index and len(index) % 2 == 0:
            subsections = [(int(index[i]), int(index[i + 1])) for i in range(0, len(index), 2)]
        else:
            subsections = [(0, size)]

        decoded = decode_stream(stream, memory_limit=self.memory_limit)
        section = XrefSection("stream", offset, trailer=dictionary)
        w0, w1, _ = widths
        position = 0
        for first, count in subsections:
            for number in range(first, first + count):
                end = position + entry_width
                if end > len(decoded):
                    return section
                record = decoded[position:end]
                position = end
                kind = _decode_be_integer(record[:w0]) if w0 else 1
                field2 = _decode_be_integer(record[w0 : w0 + w1])
                field3 = _decode_be_integer(record[w0 + w1 :])
                if kind == 1:
                    section.entries.setdefault(ObjectId(number, field3), XrefEntry(offset=field2))
                elif kind == 2:
                    section.entries.setdefault(
                        ObjectId(number, 0), XrefEntry(container=field2, index=field3)
                    )
                elif kind == 0:
                    section.entries.setdefault(
                        ObjectId(number, max(field3 - 1, 0)), XrefEntry(free=True)
                    )
        return section

    @staticmethod
    def _merge(sections: list[XrefSection], *, recovered: bool) -> CrossReferenceTable:
        entries: dict[ObjectId, XrefEntry] = {}
        trailer = PdfDictionary()
        for section in sections:
            for object_id, entry in section.entries.items():
                entries.setdefault(object_id, entry)
            for key, value in section.trailer.items():
                if key not in _SECTION_KEYS:
                    trailer.setdefault(key, value)
        live = {oid: entry for oid, entry in entries.items() if not entry.free}
        return CrossReferenceTable(MappingProxyType(live), trailer, recovered, tuple(sections))

    def validate(self, table: CrossReferenceTable) -> str | None:
        """Return a description of the first problem found, ``None`` if the table is usable."""

        if not table.sections:
            return "no cross-reference section"
        if not isinstance(table.trailer.get("Root"), PdfReference):
            return "trailer has no /Root reference"
        containers = {oid.number for oid, entry in table.entries.items() if not entry.compressed}
        for object_id, entry in table.entries.items():
            if entry.compressed:
                if entry.container not in containers:
                    return f"object {object_id} lives in missing object stream {entry.container}"
            elif not self.header_matches(entry.offset, object_id):
                return f"offset {entry.offset} of object {object_id} does not hold its header"
        return None

    def header_matches(self, offset: int | None, object_id: ObjectId) -> bool:
        if offset is None or not 0 <= offset < len(self.data):
            return False
        match = _OBJECT_HEADER_RE.match(self.data, _skip_ws(self.data, offset))
        return bool(match) and ObjectId(int(match.group(1)), int(match.group(2))) == object_id

    # -- recovery path -----------------------------------------------------

    def scan_objects(self) -> dict[ObjectId, int]:
        """Map every ``N G obj`` header in the file to its last offset."""

        if self._scan is None:
            found: dict[ObjectId, int] = {}
            for match in _OBJECT_SCAN_RE.finditer(self.data):
                found[ObjectId(int(match.group(1)), int(match.group(2)))] = match.start()
            self._scan = found
        return self._scan

    def _scan_length(self, reference: PdfReference) -> Any:
        offset = self.scan_objects().get(reference.object_id)
        if offset is None:
            return None
        return ObjectParser(self.data).parse_indirect_object(offset, reference.object_id).value

    def recover(self, primary: CrossReferenceTable | None = None) -> CrossReferenceTable:
        hits = self.scan_objects()
        entries: dict[ObjectId, XrefEntry] = {}
        if primary is not None:
            for object_id, entry in primary.entries.items():
                if entry.compressed or self.header_matches(entry.offset, object_id):
                    entries[object_id] = entry
        for object_id, offset in hits.items():
            entries.setdefault(object_id, XrefEntry(offset=offset))

        trailer = PdfDictionary()
        parser = ObjectParser(self.data)
        for match in _TRAILER_SCAN_RE.finditer(self.data):
            try:
                candidate = parser.parse_value(match.end() - 2)
            except PdfTextError as exc:
                LOGGER.debug("Ignoring unreadable trailer at %s: %s", match.start(), exc)
                continue
            if isinstance(candidate, PdfDictionary):
                trailer.update(candidate)

        for object_id, offset in sorted(hits.items(), key=lambda item: item[1]):
            if b"/XRef" not in self.data[offset : offset + 2048]:
                continue
            try:
                value = parser.parse_indirect_object(offset, object_id).value
                if not isinstance(value, PdfStream) or value.type != "XRef":
                    continue
                section = self._section_from_stream(value, offset)
            except PdfTextError as exc:
                LOGGER.debug("Ignoring unreadable xref stream %s: %s", object_id, exc)
                continue
            for key, item in section.trailer.items():
                if key not in _SECTION_KEYS:
                    trailer[key] = item
            for compressed_id, entry in section.entries.items():
                if entry.compressed:
                    entries.setdefault(compressed_id, entry)

        if primary is not None:
            for key, value in primary.trailer.items():
                trailer.setdefault(key, value)
        for key in _SECTION_KEYS:
            trailer.pop(key, None)

        root = trailer.get("Root")
        if not isinstance(root, PdfReference) or root.object_id not in entries:
            catalog = self.find_catalog(hits)
            if catalog is not None:
                LOGGER.warning("Using object %s as the document catalog", catalog)
                trailer["Root"] = PdfReference(catalog.number, catalog.generation)

        sections = primary.sections if primary is not None else ()
        return CrossReferenceTable(MappingProxyType(entries), trailer, True, sections)

    def find_catalog(self, hits: Mapping[ObjectId, int]) -> ObjectId | None:
        parser = ObjectParser(self.data)
        ordered = sorted(hits.items(), key=lambda item: item[1], reverse=True)
        for object_id, offset in ordered:
            window = self.data[offset : offset + 4096]
            end = window.find(b"endobj")
            if not _CATALOG_RE.search(window if end == -1 else window[:end]):
                continue
            try:
                value = parser.parse_indirect_object(offset, object_id).value
            except PdfTextError:
                continue
            if isinstance(value, PdfDictionary) and value.get("Type") == PdfName("Catalog"):
                return object_id
        return None
