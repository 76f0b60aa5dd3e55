"""Document model: object resolution, the page tree and per-page extraction."""

from __future__ import annotations

import logging
import re
import threading
import xml.etree.ElementTree as ET
from typing import Any

from ..config import ParserConfig
from ..content.interpreter import ContentStreamInterpreter
from ..exceptions import PdfTextError
from ..fonts.font import Font, load_font
from ..text.assembler import TextAssembler
from ..types import DocumentDetails, GlyphRun, PageText
from .filters import decode_stream
from .lexer import Lexer, TokenKind
from .objects import ObjectId, PdfDictionary, PdfName, PdfReference, PdfStream, PdfString
from .parser import ObjectParser
from .xref import CrossReferenceTable, XrefEntry

__all__ = ["Document", "Page"]

LOGGER = logging.getLogger("pdftextx.document")

_VERSION_RE = re.compile(rb"%PDF-(\d+\.\d+)")
_MAX_REFERENCE_CHAIN = 32

_INFO_FIELDS = {
    "Producer": "producer",
    "Creator": "creator",
    "Title": "title",
    "Author": "author",
    "Subject": "subject",
    "Keywords": "keywords",
    "CreationDate": "creation_date",
    "ModDate": "modification_date",
}

# XMP element -> Info key, applied only where the Info dictionary is silent.
_XMP_FIELDS = {
    "title": "Title",
    "creator": "Author",
    "description": "Subject",
    "Keywords": "Keywords",
    "Producer": "Producer",
    "CreatorTool": "Creator",
    "CreateDate": "CreationDate",
    "ModifyDate": "ModDate",
}


def _simple_text(value: Any) -> str:
    if isinstance(value, PdfString):
        return value.to_text()
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class Document:
    """A parsed PDF: cross-reference table, lazily resolved objects and pages.

    Resolved objects, decoded object streams and fonts are cached.  The caches
    are guarded by a re-entrant lock so pages can be extracted from several
    threads once the document exists.
    """

    def __init__(
        self,
        data: bytes,
        xref: CrossReferenceTable,
        config: ParserConfig | None = None,
    ) -> None:
        self.data = data
        self.xref = xref
        self.config = config or ParserConfig()
        self._lock = threading.RLock()
        self._objects: dict[ObjectId, Any] = {}
        self._loading: set[ObjectId] = set()
        self._object_streams: dict[int, tuple[ObjectParser, dict[int, int]] | None] = {}
        self._fonts: dict[Any, tuple[Any, Font]] = {}
        self._pages: list[Page] | None = None

    def __repr__(self) -> str:
        return f"<Document objects={len(self.xref)} xref={self.xref.kind}>"

    # -- object resolution -------------------------------------------------

    def get_object(self, object_id: ObjectId) -> Any:
        """Value of an indirect object, ``None`` when it is missing or unreadable."""

        with self._lock:
            if object_id in self._objects:
                return self._objects[object_id]
            entry = self.xref.get(object_id)
            target = object_id
            if entry is None:
                found = self.xref.find(object_id.number)
                if found is None:
                    return None
                target, entry = found
                LOGGER.debug("Object %s resolved as %s", object_id, target)
            if target in self._loading:
                LOGGER.debug("Circular load of object %s", target)
                return None

            self._loading.add(target)
            try:
                value = self._load(target, entry)
            except PdfTextError as exc:
                LOGGER.warning("Unable to read object %s: %s", target, exc)
                value = None
            finally:
                self._loading.discard(target)
            self._objects[object_id] = value
            self._objects[target] = value
            return value

    def _load(self, object_id: ObjectId, entry: XrefEntry) -> Any:
        if entry.compressed:
            return self._load_compressed(object_id, entry)
        if entry.offset is None:
            return None
        # A fresh parser per object: resolving an indirect /Length re-enters here.
        parser = ObjectParser(self.data, length_resolver=self._resolve_length)
        return parser.parse_indirect_object(entry.offset, object_id).value

    def _resolve_length(self, reference: PdfReference) -> Any:
        return self.get_object(reference.object_id)

    def _object_stream(self, container: int) -> tuple[ObjectParser, dict[int, int]] | None:
        if container in self._object_streams:
            return self._object_streams[container]
        found = self.xref.find(container)
        stream = self.get_object(found[0]) if found else None
        result = None
        if isinstance(stream, PdfStream):
            try:
                result = self._read_object_stream(stream)
            except PdfTextError as exc:
                LOGGER.warning("Unable to read object stream %s: %s", container, exc)
        else:
            LOGGER.warning("Object stream %s is missing", container)
        self._object_streams[container] = result
        return result

    def _read_object_stream(self, stream: PdfStream) -> tuple[ObjectParser, dict[int, int]]:
        data = self.decode_stream(stream)
        count = self.resolve(stream.get("N"))
        first = self.resolve(stream.get("First"))
        if not isinstance(first, int) or isinstance(first, bool):
            first = 0
        numbers: list[int] = []
        for token in Lexer(data[:first] if first else data):
            if token.kind is not TokenKind.NUMBER or not isinstance(token.value, int):
                break
            numbers.append(token.value)
            if isinstance(count, int) and len(numbers) >= 2 * count:
                break
        offsets: dict[int, int] = {}
        for index in range(0, len(numbers) - 1, 2):
            number, offset = numbers[index], numbers[index + 1]
            offsets.setdefault(number, first + offset)
        return ObjectParser(data), offsets

    def _load_compressed(self, object_id: ObjectId, entry: XrefEntry) -> Any:
        if entry.container is None:
            return None
        loaded = self._object_stream(entry.container)
        if loaded is None:
            return None
        parser, offsets = loaded
        # The index in the xref entry is only a hint; the object number decides.
        offset = offsets.get(object_id.number)
        if offset is None:
            LOGGER.warning("Object %s not found in object stream %s", object_id, entry.container)
            return None
        return parser.parse_value(offset)

    def resolve(self, value: Any) -> Any:
        """Follow references until a direct value is reached."""

        seen: set[ObjectId] = set()
        while isinstance(value, PdfReference):
            object_id = value.object_id
            if object_id in seen or len(seen) >= _MAX_REFERENCE_CHAIN:
                LOGGER.warning("Reference cycle through object %s", object_id)
                return None
            seen.add(object_id)
            value = self.get_object(object_id)
        return value

    def resolve_dictionary(self, value: Any) -> PdfDictionary | None:
        value = self.resolve(value)
        return value if isinstance(value, PdfDictionary) else None

    def resolve_array(self, value: Any) -> list[Any] | None:
        value = self.resolve(value)
        return value if isinstance(value, list) else None

    def resolve_stream(self, value: Any) -> PdfStream | None:
        value = self.resolve(value)
        return value if isinstance(value, PdfStream) else None

    def decode_stream(self, stream: PdfStream) -> bytes:
        return decode_stream(stream, resolve=self.resolve, memory_limit=self.config.decode_memory_limit)

    def get_objects_by_type(self, name: str, subtype: str | None = None) -> dict[ObjectId, Any]:
        """Every dictionary or stream whose ``/Type`` (and ``/Subtype``) matches, in id order."""

        matches: dict[ObjectId, Any] = {}
        for object_id in sorted(self.xref):
            value = self.get_object(object_id)
            dictionary = value.dictionary if isinstance(value, PdfStream) else value
            if not isinstance(dictionary, PdfDictionary):
                continue
            if dictionary.get("Type") != name:
                continue
            if subtype is not None and dictionary.get("Subtype") != subtype:
                continue
            matches[object_id] = value
        return matches

    # -- fonts -------------------------------------------------------------

    def get_font(self, value: Any, name: str = "") -> Font:
        """Font for a font dictionary reference, loaded once per document."""

        with self._lock:
            if isinstance(value, PdfReference):
                key: Any = value.object_id
                owner: Any = None
            else:
                owner = self.resolve(value)
                key = id(owner)
            cached = self._fonts.get(key)
            if cached is not None:
                return cached[1]
            font = load_font(self, value, name)
            self._fonts[key] = (owner, font)
            return font

    # -- document structure ------------------------------------------------

    @property
    def catalog(self) -> PdfDictionary | None:
        return self.resolve_dictionary(self.xref.trailer.get("Root"))

    def get_pages(self) -> list[Page]:
        with self._lock:
            if self._pages is None:
                self._pages = self._collect_pages()
            return self._pages

    def _collect_pages(self) -> list[Page]:
        pages: list[Page] = []
        catalog = self.catalog
        if catalog is not None:
            visited: set[Any] = set()
            stack: list[Any] = [catalog.get("Pages")]
            while stack:
                value = stack.pop()
                key = value.object_id if isinstance(value, PdfReference) else id(value)
                if key in visited:
                    LOGGER.warning("Page tree node %s visited twice", key)
                    continue
                visited.add(key)
                node = self.resolve_dictionary(value)
                if node is None:
                    continue
                kids = self.resolve_array(node.get("Kids"))
                if node.get("Type") == "Pages" or (kids is not None and node.get("Type") != "Page"):
                    stack.extend(reversed(kids or []))
                    continue
                object_id = value.object_id if isinstance(value, PdfReference) else None
                pages.append(Page(self, node, len(pages) + 1, object_id))
        else:
            LOGGER.warning("Document has no catalog")

        if not pages:
            found = self.get_objects_by_type("Page")
            if found:
                LOGGER.warning("Page tree unusable, collected %d page objects by type", len(found))
            for object_id, node in found.items():
                if isinstance(node, PdfDictionary):
                    pages.append(Page(self, node, len(pages) + 1, object_id))
        return pages

    def get_text(self) -> str:
        return self.config.page_separator.join(page.get_text() for page in self.get_pages())

    def get_page_texts(self) -> list[PageText]:
        return [PageText(page.number, page.get_text(), page.get_runs()) for page in self.get_pages()]

    def pdf_version(self) -> str | None:
        catalog = self.catalog
        version = catalog.get("Version") if catalog is not None else None
        match = _VERSION_RE.search(self.data[:1024])
        header = match.group(1).decode("ascii") if match else None
        if isinstance(version, PdfName):
            if header is None:
                return str(version)
            try:
                if float(version) > float(header):
                    return str(version)
            except ValueError:
                LOGGER.debug("Ignoring catalog /Version %s", version)
        return header

    def _extract_info(self) -> dict[str, str]:
        info: dict[str, str] = {}
        dictionary = self.resolve_dictionary(self.xref.trailer.get("Info"))
        if dictionary is None:
            return info
        for key, value in dictionary.items():
            resolved = self.resolve(value)
            if resolved is None or isinstance(resolved, (PdfDictionary, PdfStream, list)):
                continue
            info[str(key)] = _simple_text(resolved)
        return info

    def _extract_xmp_metadata(self) -> dict[str, str]:
        metadata: dict[str, str] = {}
        catalog = self.catalog
        stream = self.resolve_stream(catalog.get("Metadata")) if catalog is not None else None
        if stream is None:
            return metadata
        try:
            text = self.decode_stream(stream).decode("utf-8", "ignore")
        except PdfTextError as exc:
            LOGGER.debug("Unable to read XMP metadata: %s", exc)
            return metadata
        try:
            xml_root = ET.fromstring(text.strip())
        except ET.ParseError as exc:
            LOGGER.debug("Malformed XMP metadata: %s", exc)
            return metadata

        def _iter_text(tag: str) -> list[str]:
            values: list[str] = []
            for element in xml_root.findall(f".//{{*}}{tag}"):
                content = "".join(element.itertext()).strip()
                if content:
                    values.append(content)
            return values

        for tag, key in _XMP_FIELDS.items():
            values = _iter_text(tag)
            if values:
                metadata.setdefault(key, values[0])
        return metadata

    def get_details(self) -> DocumentDetails:
        info = self._extract_info()
        for key, value in self._extract_xmp_metadata().items():
            info.setdefault(key, value)
        details = DocumentDetails(
            page_count=len(self.get_pages()),
            pdf_version=self.pdf_version(),
            xref_kind=self.xref.kind,
            recovered=self.xref.recovered,
            info=info,
        )
        for key, attribute in _INFO_FIELDS.items():
            if key in info:
                setattr(details, attribute, info[key])
        return details


class Page:
    """A leaf of the page tree with inherited attributes resolved on demand."""

    def __init__(
        self,
        document: Document,
        dictionary: PdfDictionary,
        number: int,
        object_id: ObjectId | None = None,
    ) -> None:
        self.document = document
        self.dictionary = dictionary
        self.number = number
        self.object_id = object_id
        self._runs: list[GlyphRun] | None = None

    def __repr__(self) -> str:
        return f"<Page {self.number}>"

    def _inherit(self, key: str) -> Any:
        visited: set[int] = set()
        current: PdfDictionary | None = self.dictionary
        while current is not None:
            if id(current) in visited:
                break
            visited.add(id(current))
            value = self.document.resolve(current.get(key))
            if value is not None:
                return value
            current = self.document.resolve_dictionary(current.get("Parent"))
        return None

    @property
    def resources(self) -> PdfDictionary:
        value = self._inherit("Resources")
        return value if isinstance(value, PdfDictionary) else PdfDictionary()

    @property
    def media_box(self) -> tuple[float, ...] | None:
        value = self._inherit("MediaBox")
        if not isinstance(value, list) or len(value) != 4:
            return None
        numbers = [self.document.resolve(item) for item in value]
        if not all(isinstance(n, (int, float)) and not isinstance(n, bool) for n in numbers):
            return None
        return tuple(float(n) for n in numbers)

    def get_content(self) -> bytes:
        """Decoded page content, every stream of a ``/Contents`` array concatenated."""

        document = self.document
        value = document.resolve(self.dictionary.get("Contents"))
        items = value if isinstance(value, list) else [value]
        chunks: list[bytes] = []
        for item in items:
            stream = document.resolve_stream(item)
            if stream is None:
                if item is not None:
                    LOGGER.debug("Page %s content entry is not a stream", self.number)
                continue
            try:
                chunks.append(document.decode_stream(stream))
            except PdfTextError as exc:
                LOGGER.warning("Skipping content stream on page %s: %s", self.number, exc)
        return b"\n".join(chunks)

    def get_runs(self) -> list[GlyphRun]:
        if self._runs is None:
            interpreter = ContentStreamInterpreter(self.document, self.document.config)
            runs = interpreter.run(self.get_content(), self.resources)
            with self.document._lock:
                if self._runs is None:
                    self._runs = runs
        return list(self._runs)

    def get_text(self) -> str:
        return TextAssembler(self.document.config).assemble(self.get_runs())

    def get_text_array(self) -> list[str]:
        return TextAssembler(self.document.config).text_array(self.get_runs())

    def get_data_tm(self) -> list[list[Any]]:
        return TextAssembler(self.document.config).data_tm(self.get_runs())

    def get_fonts(self) -> dict[str, Font]:
        fonts = self.document.resolve_dictionary(self.resources.get("Font"))
        if fonts is None:
            return {}
        return {str(name): self.document.get_font(value, str(name)) for name, value in fonts.items()}
