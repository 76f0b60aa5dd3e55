"""Entry points turning PDF bytes or files into :class:`Document` objects."""

from __future__ import annotations

import logging
from pathlib import Path

from .config import ParserConfig
from .core.document import Document
from .core.xref import XrefResolver
from .exceptions import InvalidPDFError
from .utils import as_bytes, resolve_path

__all__ = ["Parser", "extract_text"]

LOGGER = logging.getLogger("pdftextx.parser")

_HEADER_WINDOW = 1024


class Parser:
    """Build documents from in-memory buffers or files on disk.

    The parser holds no state besides its configuration; one instance can
    parse any number of documents.
    """

    def __init__(self, config: ParserConfig | None = None) -> None:
        self.config = config or ParserConfig()

    def parse_content(self, data: bytes | bytearray | memoryview) -> Document:
        """Parse a fully buffered PDF.

        Raises:
            UnresolvableDocument: If no object can be located, even by scanning.
        """

        buffer = as_bytes(data)
        if b"%PDF-" not in buffer[:_HEADER_WINDOW]:
            LOGGER.warning("No %%PDF- header in the first %d bytes", _HEADER_WINDOW)
        table = XrefResolver(buffer, memory_limit=self.config.decode_memory_limit).resolve()
        LOGGER.debug("Resolved %d objects from %s cross-reference data", len(table), table.kind)
        return Document(buffer, table, self.config)

    def parse_file(self, path: str | Path) -> Document:
        """Read and parse the PDF at ``path``.

        Raises:
            InvalidPDFError: If the file does not exist or is not a PDF.
            UnresolvableDocument: If no object can be located, even by scanning.
        """

        resolved = resolve_path(path)
        if not resolved.is_file():
            raise InvalidPDFError(f"File not found: {resolved}")
        try:
            data = resolved.read_bytes()
        except OSError as exc:
            raise InvalidPDFError(f"Unable to read {resolved}: {exc}") from exc
        if b"%PDF-" not in data[:_HEADER_WINDOW]:
            raise InvalidPDFError(f"Not a PDF file: {resolved}")
        LOGGER.info("Parsing %s (%d bytes)", resolved, len(data))
        return self.parse_content(data)


def extract_text(data: bytes, config: ParserConfig | None = None) -> str:
    """Text of every page of ``data`` joined with the configured page separator."""

    return Parser(config).parse_content(data).get_text()
