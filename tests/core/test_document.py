from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from pdftextx import Parser
from pdftextx.core.document import Document
from pdftextx.core.objects import ObjectId, PdfReference
from pdftextx.core.xref import CrossReferenceTable, XrefEntry

HELVETICA = "<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica /Encoding /WinAnsiEncoding >>"

XMP = (
    b'<?xpacket begin="" id="W5M0MpCehiHzreSzNTczkc9d"?>'
    b'<x:xmpmeta xmlns:x="adobe:ns:meta/">'
    b'<rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#">'
    b'<rdf:Description xmlns:dc="http://purl.org/dc/elements/1.1/" xmlns:pdf="http://ns.adobe.com/pdf/1.3/">'
    b'<dc:title><rdf:Alt><rdf:li xml:lang="x-default">XMP Title</rdf:li></rdf:Alt></dc:title>'
    b"<pdf:Producer>XMP Producer</pdf:Producer>"
    b"<pdf:Keywords>alpha, beta</pdf:Keywords>"
    b"</rdf:Description></rdf:RDF></x:xmpmeta>"
    b'<?xpacket end="w"?>'
)


def single_page(builder, content: bytes, *, catalog_extra: str = "", page_extra: str = "") -> int:
    """Add a one page document to ``builder`` and return the catalog number."""

    font = builder.add(HELVETICA)
    contents = builder.add_stream(content)
    tree = builder.reserve()
    page = builder.add(
        f"<< /Type /Page /Parent {tree} 0 R /Resources << /Font << /F1 {font} 0 R >> >>"
        f" /Contents {contents} 0 R{page_extra} >>"
    )
    builder.add(f"<< /Type /Pages /Kids [{page} 0 R] /Count 1 >>", tree)
    return builder.add(f"<< /Type /Catalog /Pages {tree} 0 R{catalog_extra} >>")


def test_resolve_follows_reference_chains(pdf_builder) -> None:
    pdf_builder.add("2 0 R")
    pdf_builder.add("3 0 R")
    pdf_builder.add("(end of chain)")
    catalog = single_page(pdf_builder, b"")
    document = Parser().parse_content(pdf_builder.build(catalog))

    assert document.resolve(PdfReference(1, 0)).to_text() == "end of chain"


def test_reference_cycle_resolves_to_none(pdf_builder) -> None:
    pdf_builder.add("2 0 R")
    pdf_builder.add("1 0 R")
    catalog = single_page(pdf_builder, b"")
    document = Parser().parse_content(pdf_builder.build(catalog))

    assert document.resolve(PdfReference(1, 0)) is None


def test_missing_object_resolves_to_none(make_pdf) -> None:
    document = Parser().parse_content(make_pdf(b""))

    assert document.get_object(ObjectId(99, 0)) is None
    assert document.resolve(PdfReference(99, 0)) is None


def test_compressed_entry_without_object_stream_resolves_to_none(make_pdf) -> None:
    data = make_pdf(b"")
    table = Parser().parse_content(data).xref
    entries = dict(table.entries)
    entries[ObjectId(40, 0)] = XrefEntry(container=99, index=0)
    document = Document(data, CrossReferenceTable(entries, table.trailer))

    assert document.get_object(ObjectId(40, 0)) is None
    assert document._load_compressed(ObjectId(41, 0), XrefEntry(offset=0)) is None


def test_generation_mismatch_falls_back_to_object_number(make_pdf) -> None:
    document = Parser().parse_content(make_pdf(b"BT /F1 12 Tf (x) Tj ET"))

    assert document.get_object(ObjectId(6, 3)) == document.get_object(ObjectId(6, 0))


def test_page_inherits_resources_and_media_box(pdf_builder) -> None:
    font = pdf_builder.add(HELVETICA)
    contents = pdf_builder.add_stream(b"BT /F1 10 Tf 10 10 Td (Inherited) Tj ET")
    page = pdf_builder.add(f"<< /Type /Page /Parent 4 0 R /Contents {contents} 0 R >>")
    pdf_builder.add(
        f"<< /Type /Pages /Kids [{page} 0 R] /Count 1 /MediaBox [0 0 300 400]"
        f" /Resources << /Font << /F1 {font} 0 R >> >> >>"
    )
    catalog = pdf_builder.add("<< /Type /Catalog /Pages 4 0 R >>")
    document = Parser().parse_content(pdf_builder.build(catalog))

    (only,) = document.get_pages()

    assert only.media_box == (0.0, 0.0, 300.0, 400.0)
    assert "F1" in only.get_fonts()
    assert only.get_text() == "Inherited"


def test_contents_array_is_concatenated(pdf_builder) -> None:
    first = pdf_builder.add_stream(b"BT /F1 12 Tf 72 720 Td")
    second = pdf_builder.add_stream(b"(Split content) Tj ET", compress=True)
    catalog = single_page(pdf_builder, b"")
    page, own_contents = catalog - 1, catalog - 3
    pdf_builder.objects[page] = pdf_builder.objects[page].replace(
        f"/Contents {own_contents} 0 R".encode(), f"/Contents [{first} 0 R {second} 0 R]".encode()
    )
    document = Parser().parse_content(pdf_builder.build(catalog))

    assert document.get_pages()[0].get_text() == "Split content"


def test_corrupt_content_stream_is_skipped(pdf_builder) -> None:
    broken = pdf_builder.add_stream(b"zz not hex>", "/Filter /ASCIIHexDecode")
    catalog = single_page(pdf_builder, b"BT /F1 12 Tf 72 720 Td (Survivor) Tj ET")
    pdf_builder.objects[5] = pdf_builder.objects[5].replace(
        b"/Contents 3 0 R", f"/Contents [{broken} 0 R 3 0 R]".encode()
    )
    document = Parser().parse_content(pdf_builder.build(catalog))

    assert document.get_text() == "Survivor"


def test_page_tree_cycle_terminates(pdf_builder) -> None:
    catalog = single_page(pdf_builder, b"BT /F1 12 Tf 72 720 Td (Once) Tj ET")
    pdf_builder.objects[3] = b"<< /Type /Pages /Kids [4 0 R 3 0 R] /Count 2 >>"
    document = Parser().parse_content(pdf_builder.build(catalog))

    assert [page.get_text() for page in document.get_pages()] == ["Once"]


def test_pages_collected_by_type_when_tree_is_missing(pdf_builder) -> None:
    catalog = single_page(pdf_builder, b"BT /F1 12 Tf 72 720 Td (Orphan) Tj ET")
    pdf_builder.objects[catalog] = b"<< /Type /Catalog >>"
    document = Parser().parse_content(pdf_builder.build(catalog))

    pages = document.get_pages()

    assert len(pages) == 1
    assert pages[0].object_id == ObjectId(4, 0)
    assert document.get_text() == "Orphan"


def test_details_from_info_dictionary(sample_pdf) -> None:
    details = Parser().parse_file(sample_pdf).get_details()

    assert details.title == "Sample"
    assert details.producer == "pdftextx-tests"
    assert details.page_count == 2
    assert details.pdf_version == "1.4"
    assert details.xref_kind == "table"
    assert not details.recovered
    assert details.to_dict()["info"]["Title"] == "Sample"


def test_xmp_metadata_fills_missing_info_keys(pdf_builder) -> None:
    metadata = pdf_builder.add_stream(XMP, "/Type /Metadata /Subtype /XML")
    info = pdf_builder.add("<< /Producer (Info Producer) >>")
    catalog = single_page(pdf_builder, b"", catalog_extra=f" /Metadata {metadata} 0 R")
    document = Parser().parse_content(pdf_builder.build(catalog, info=info))

    details = document.get_details()

    assert details.producer == "Info Producer"
    assert details.title == "XMP Title"
    assert details.keywords == "alpha, beta"


def test_catalog_version_overrides_older_header(pdf_builder) -> None:
    catalog = single_page(pdf_builder, b"", catalog_extra=" /Version /1.7")

    assert Parser().parse_content(pdf_builder.build(catalog)).pdf_version() == "1.7"


def test_header_version_kept_when_catalog_version_is_older(pdf_builder) -> None:
    pdf_builder.version = "1.7"
    catalog = single_page(pdf_builder, b"", catalog_extra=" /Version /1.4")

    assert Parser().parse_content(pdf_builder.build(catalog)).pdf_version() == "1.7"


def test_get_objects_by_type(make_pdf) -> None:
    document = Parser().parse_content(make_pdf([b"", b""]))

    pages = document.get_objects_by_type("Page")
    fonts = document.get_objects_by_type("Font", "Type1")

    assert list(pages) == [ObjectId(5, 0), ObjectId(7, 0)]
    assert list(fonts) == [ObjectId(1, 0)]
    assert document.get_objects_by_type("Font", "TrueType") == {}


def test_fonts_are_loaded_once_per_document(make_pdf) -> None:
    document = Parser().parse_content(make_pdf([b"", b""]))

    first, second = (page.get_fonts()["F1"] for page in document.get_pages())

    assert first is second
    assert document.get_font(PdfReference(1, 0)) is first


def test_pages_extracted_from_several_threads(make_pdf) -> None:
    contents = [f"BT /F1 12 Tf 72 720 Td (Page {n}) Tj ET".encode() for n in range(1, 9)]
    document = Parser().parse_content(make_pdf(contents))

    with ThreadPoolExecutor(max_workers=4) as pool:
        texts = list(pool.map(lambda page: page.get_text(), document.get_pages()))

    assert texts == [f"Page {n}" for n in range(1, 9)]


def test_runs_are_cached_per_page(make_pdf) -> None:
    page = Parser().parse_content(make_pdf(b"BT /F1 12 Tf 72 720 Td (Cached) Tj ET")).get_pages()[0]

    first = page.get_runs()
    first.clear()

    assert [run.text for run in page.get_runs()] == ["Cached"]
