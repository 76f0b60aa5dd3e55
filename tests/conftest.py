from __future__ import annotations

from pathlib import Path
from typing import Callable
import sys
import zlib

import pytest
from pypdf import PdfWriter

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

HELVETICA = "<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica /Encoding /WinAnsiEncoding >>"
# Every printable code 500 units wide.
MONO = (
    "<< /Type /Font /Subtype /Type1 /BaseFont /Mono /FirstChar 32 /LastChar 126 /Widths ["
    + " ".join(["500"] * 95)
    + "] /Encoding /WinAnsiEncoding >>"
)


def xref_table(offsets: dict[int, int], size: int) -> bytes:
    rows = [b"xref\n", f"0 {size}\n".encode(), b"0000000000 65535 f \n"]
    for number in range(1, size):
        if number in offsets:
            rows.append(f"{offsets[number]:010d} 00000 n \n".encode())
        else:
            rows.append(b"0000000000 00000 f \n")
    return b"".join(rows)


class PdfBuilder:
    """Assemble PDF files object by object with full control over the bytes."""

    def __init__(self, version: str = "1.4") -> None:
        self.version = version
        self.objects: dict[int, bytes] = {}

    def reserve(self) -> int:
        return self.add(b"null")

    def add(self, body: str | bytes, number: int | None = None) -> int:
        if number is None:
            number = max(self.objects, default=0) + 1
        self.objects[number] = body.encode("latin-1") if isinstance(body, str) else body
        return number

    def add_stream(
        self,
        data: bytes,
        dictionary: str = "",
        *,
        compress: bool = False,
        number: int | None = None,
    ) -> int:
        if compress:
            data = zlib.compress(data)
            dictionary = f"{dictionary} /Filter /FlateDecode"
        head = f"<< {dictionary} /Length {len(data)} >>\nstream\n".encode("latin-1")
        return self.add(head + data + b"\nendstream", number)

    def body(self) -> tuple[bytearray, dict[int, int]]:
        out = bytearray(f"%PDF-{self.version}\n".encode("ascii") + b"%\xe2\xe3\xcf\xd3\n")
        offsets: dict[int, int] = {}
        for number in sorted(self.objects):
            offsets[number] = len(out)
            out += f"{number} 0 obj\n".encode("ascii") + self.objects[number] + b"\nendobj\n"
        return out, offsets

    def build(
        self,
        root: int,
        *,
        info: int | None = None,
        xref: str = "table",
        trailer: str = "",
    ) -> bytes:
        out, offsets = self.body()
        size = max(offsets, default=0) + 1
        extra = f" /Root {root} 0 R"
        if info is not None:
            extra += f" /Info {info} 0 R"
        if trailer:
            extra += f" {trailer}"

        if xref == "none":
            return bytes(out) + b"%%EOF\n"
        if xref == "table":
            start = len(out)
            out += xref_table(offsets, size)
            out += f"trailer\n<< /Size {size}{extra} >>\n".encode("latin-1")
        elif xref == "stream":
            number = size
            size += 1
            start = len(out)
            offsets[number] = start
            rows = bytearray()
            for n in range(size):
                if n in offsets:
                    rows += b"\x01" + offsets[n].to_bytes(4, "big") + b"\x00\x00"
                else:
                    rows += b"\x00\x00\x00\x00\x00\xff\xff"
            head = f"<< /Type /XRef /Size {size} /W [1 4 2]{extra} /Length {len(rows)} >>\nstream\n"
            out += f"{number} 0 obj\n".encode("ascii") + head.encode("latin-1")
            out += bytes(rows) + b"\nendstream\nendobj\n"
        else:
            raise ValueError(xref)
        out += f"startxref\n{start}\n%%EOF\n".encode("ascii")
        return bytes(out)

    def text_document(
        self,
        pages: list[bytes] | bytes,
        fonts: dict[str, str | int] | None = None,
        *,
        xref: str = "table",
        compress: bool = False,
        info: dict[str, str] | None = None,
        xobjects: dict[str, int] | None = None,
    ) -> bytes:
        """One page per content stream, sharing one resource dictionary."""

        if isinstance(pages, bytes):
            pages = [pages]
        fonts = {"F1": HELVETICA} if fonts is None else fonts
        refs = {
            name: font if isinstance(font, int) else self.add(font) for name, font in fonts.items()
        }
        font_entries = " ".join(f"/{name} {number} 0 R" for name, number in refs.items())
        xobject_entries = ""
        if xobjects:
            xobject_entries = " /XObject << " + " ".join(
                f"/{name} {number} 0 R" for name, number in xobjects.items()
            ) + " >>"
        resources = self.add(f"<< /Font << {font_entries} >>{xobject_entries} >>")
        tree = self.reserve()
        kids = []
        for content in pages:
            contents = self.add_stream(content, compress=compress)
            kids.append(
                self.add(
                    f"<< /Type /Page /Parent {tree} 0 R /MediaBox [0 0 612 792]"
                    f" /Resources {resources} 0 R /Contents {contents} 0 R >>"
                )
            )
        self.add(
            "<< /Type /Pages /Kids [" + " ".join(f"{kid} 0 R" for kid in kids) + f"] /Count {len(kids)} >>",
            tree,
        )
        catalog = self.add(f"<< /Type /Catalog /Pages {tree} 0 R >>")
        info_number = None
        if info:
            info_number = self.add(
                "<< " + " ".join(f"/{key} ({value})" for key, value in info.items()) + " >>"
            )
        return self.build(catalog, info=info_number, xref=xref)


@pytest.fixture()
def pdf_builder() -> PdfBuilder:
    return PdfBuilder()


@pytest.fixture()
def make_pdf() -> Callable[..., bytes]:
    def _create(pages: list[bytes] | bytes, fonts: dict[str, str | int] | None = None, **options) -> bytes:
        return PdfBuilder().text_document(pages, fonts, **options)

    return _create


@pytest.fixture()
def sample_pdf(tmp_path: Path, make_pdf: Callable[..., bytes]) -> Path:
    pdf_path = tmp_path / "sample.pdf"
    pdf_path.write_bytes(
        make_pdf(
            [b"BT /F1 12 Tf 72 720 Td (First page) Tj ET", b"BT /F1 12 Tf 72 720 Td (Second page) Tj ET"],
            info={"Title": "Sample", "Producer": "pdftextx-tests"},
        )
    )
    return pdf_path


@pytest.fixture()
def blank_pdf(tmp_path: Path) -> Path:
    pdf_path = tmp_path / "blank.pdf"
    writer = PdfWriter()
    for _ in range(3):
        writer.add_blank_page(width=200, height=200)
    writer.add_metadata({"/Producer": "pdftextx-tests", "/Title": "Blank"})
    with pdf_path.open("wb") as stream:
        writer.write(stream)
    return pdf_path


@pytest.fixture()
def mono_font() -> str:
    return MONO
