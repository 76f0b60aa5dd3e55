"""
Custom exceptions for pdftextx.

Object, stream and font level errors are raised where they originate and
caught by the component that owns the affected unit, so a single damaged
object never aborts extraction of the remaining document.
"""


class PdfTextError(Exception):
    """Base exception for all pdftextx errors."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    @property
    def default_message(self) -> str:
        return "An unknown PDF text extraction error occurred."


class LexError(PdfTextError):
    """Raised when the byte stream cannot be tokenized at the current position."""

    def __init__(self, message: str = "", position: int | None = None) -> None:
        super().__init__(message)
        self.position = position

    @property
    def default_message(self) -> str:
        return "Malformed token stream."


class MalformedObject(PdfTextError):
    """Raised when an object definition lacks a required delimiter or keyword."""

    def __init__(self, message: str = "", position: int | None = None) -> None:
        super().__init__(message)
        self.position = position

    @property
    def default_message(self) -> str:
        return "Malformed PDF object."


class UnsupportedFilter(PdfTextError):
    """Raised when a stream declares a filter that cannot be decoded."""

    @property
    def default_message(self) -> str:
        return "Unsupported stream filter."


class CorruptStream(PdfTextError):
    """Raised when a stream's encoded data cannot be decoded."""

    @property
    def default_message(self) -> str:
        return "Corrupt stream data."


class FontResolutionGap(PdfTextError):
    """Raised when a font offers no usable code to Unicode mapping."""

    @property
    def default_message(self) -> str:
        return "Font character codes could not be mapped to Unicode."


class UnresolvableDocument(PdfTextError):
    """Raised when no object could be located, even by scanning the raw bytes."""

    @property
    def default_message(self) -> str:
        return "No PDF objects could be located in the document."


class TypeMismatch(PdfTextError):
    """Raised when a PDF value does not have the type a caller asked for."""

    @property
    def default_message(self) -> str:
        return "PDF value has an unexpected type."


class InvalidPDFError(PdfTextError):
    """Raised when an input file is missing or is not a PDF."""

    @property
    def default_message(self) -> str:
        return "Invalid or unreadable PDF file."
