"""
pdftextx - Tolerant text extraction for real-world PDF files.

The library reads PDFs whose cross-reference data, compression or font
encodings are damaged or generator specific, and reassembles reading-order
text that keeps meaningful whitespace (tabs, line breaks, repeated spaces).

Quick Start:
    >>> from pdftextx import Parser
    >>> document = Parser().parse_file('input.pdf')
    >>> print(document.get_text())

Main Classes:
    - Parser: Build a Document from bytes or a file
    - Document: Object resolution, page tree and document details
    - Page: Text, glyph runs and positional data of one page

Data Classes:
    - ParserConfig: Tunable extraction parameters
    - GlyphRun: Positioned text shown by one string operand
    - PageText: Assembled text of one page
    - DocumentDetails: Information dictionary and structural facts

Exceptions:
    - PdfTextError: Base exception
    - UnresolvableDocument: No object could be located at all
    - InvalidPDFError: Missing or non-PDF input file

For CLI usage, use the 'pdftextx' command after installation.
"""

# Core classes
from pdftextx.core.document import Document, Page
from pdftextx.parser import Parser, extract_text

# Data types
from pdftextx.config import ParserConfig
from pdftextx.types import DocumentDetails, GlyphRun, PageText

# Exceptions
from pdftextx.exceptions import (
    PdfTextError,
    LexError,
    MalformedObject,
    UnsupportedFilter,
    CorruptStream,
    FontResolutionGap,
    UnresolvableDocument,
    TypeMismatch,
    InvalidPDFError,
)

__version__ = "1.0.0"
__license__ = "MIT"

__all__ = [
    # Main classes
    "Parser",
    "Document",
    "Page",
    "extract_text",
    # Data types
    "ParserConfig",
    "GlyphRun",
    "PageText",
    "DocumentDetails",
    # Exceptions
    "PdfTextError",
    "LexError",
    "MalformedObject",
    "UnsupportedFilter",
    "CorruptStream",
    "FontResolutionGap",
    "UnresolvableDocument",
    "TypeMismatch",
    "InvalidPDFError",
    # Version info
    "__version__",
]
