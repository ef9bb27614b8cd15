import io
import re
import zipfile

import pytest
from lxml import etree

from crosspoint_sender.errors import PackagingError
from crosspoint_sender.markdown_xhtml import XhtmlFragment, convert
from crosspoint_sender.package import (
    Compression,
    build_entries,
    markdown_to_epub,
    package,
    write_epub,
)

EXPECTED_NAMES = [
    "mimetype",
    "META-INF/container.xml",
    "OEBPS/content.opf",
    "OEBPS/toc.ncx",
    "OEBPS/content.html",
]

NS = {
    "c": "urn:oasis:names:tc:opendocument:xmlns:container",
    "opf": "http://www.idpf.org/2007/opf",
    "dc": "http://purl.org/dc/elements/1.1/",
    "ncx": "http://www.daisy.org/z3986/2005/ncx/",
    "html": "http://www.w3.org/1999/xhtml",
}


def _open(data: bytes) -> zipfile.ZipFile:
    return zipfile.ZipFile(io.BytesIO(data), "r")


def test_archive_contains_exactly_five_entries_in_order():
    data = markdown_to_epub("# Hello World\nThis is a **bold** test!", "test.md")
    with _open(data) as zf:
        assert zf.namelist() == EXPECTED_NAMES
        assert zf.testzip() is None


def test_mimetype_is_stored_first_and_exact():
    data = markdown_to_epub("text", "test.md")
    with _open(data) as zf:
        info = zf.getinfo("mimetype")
        assert info.compress_type == zipfile.ZIP_STORED
        assert info.flag_bits & 0x1 == 0
        assert zf.read("mimetype") == b"application/epub+zip"
        for name in EXPECTED_NAMES[1:]:
            assert zf.getinfo(name).compress_type == zipfile.ZIP_DEFLATED

    # Readers sniff the raw bytes: the first local header is the mimetype entry.
    assert data[:4] == b"PK\x03\x04"
    assert data[30:38] == b"mimetype"
    assert data[38:58] == b"application/epub+zip"


def test_container_points_at_package_document():
    with _open(markdown_to_epub("text", "test.md")) as zf:
        container = etree.fromstring(zf.read("META-INF/container.xml"))
    rootfiles = container.xpath("//c:rootfile", namespaces=NS)
    assert len(rootfiles) == 1
    assert rootfiles[0].get("full-path") == "OEBPS/content.opf"
    assert rootfiles[0].get("media-type") == "application/oebps-package+xml"


@pytest.mark.parametrize(
    "filename",
    ["test.md", "Tom & Jerry <draft>.md", 'quotes "double" and \'single\'.md', "Ünïcödé notes.md"],
)
def test_dc_title_equals_filename(filename):
    with _open(markdown_to_epub("text", filename)) as zf:
        opf = etree.fromstring(zf.read("OEBPS/content.opf"))
        ncx = etree.fromstring(zf.read("OEBPS/toc.ncx"))
        content = etree.fromstring(zf.read("OEBPS/content.html"))
    assert opf.xpath("string(//dc:title)", namespaces=NS) == filename
    assert ncx.xpath("string(//ncx:docTitle/ncx:text)", namespaces=NS) == filename
    assert content.xpath("string(//html:head/html:title)", namespaces=NS) == filename


def test_reserved_characters_in_title_are_escaped():
    with _open(markdown_to_epub("text", "a & b <c>.md")) as zf:
        raw = zf.read("OEBPS/content.opf").decode("utf-8")
    assert "<dc:title>a &amp; b &lt;c&gt;.md</dc:title>" in raw


def test_manifest_and_spine():
    with _open(markdown_to_epub("text", "test.md")) as zf:
        opf = etree.fromstring(zf.read("OEBPS/content.opf"))
    assert opf.get("version") == "2.0"
    items = opf.xpath("//opf:manifest/opf:item", namespaces=NS)
    assert {(i.get("id"), i.get("href"), i.get("media-type")) for i in items} == {
        ("content", "content.html", "application/xhtml+xml"),
        ("toc", "toc.ncx", "application/x-dtbncx+xml"),
    }
    spine = opf.find("opf:spine", NS)
    assert spine.get("toc") == "toc"
    assert [ref.get("idref") for ref in spine] == ["content"]
    unique_id = opf.get("unique-identifier")
    assert opf.xpath(f"//dc:identifier[@id='{unique_id}']", namespaces=NS)


def test_ncx_single_nav_point():
    with _open(markdown_to_epub("text", "test.md")) as zf:
        ncx = etree.fromstring(zf.read("OEBPS/toc.ncx"))
    assert ncx.get("version") == "2005-1"
    points = ncx.xpath("//ncx:navMap/ncx:navPoint", namespaces=NS)
    assert len(points) == 1
    assert points[0].get("playOrder") == "1"
    assert points[0].find("ncx:content", NS).get("src") == "content.html"


def test_content_document_shell():
    with _open(markdown_to_epub("# Hello World\nThis is a **bold** test!", "test.md")) as zf:
        raw = zf.read("OEBPS/content.html").decode("utf-8")

    assert raw.startswith(
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<!DOCTYPE html PUBLIC "-//W3C//DTD XHTML 1.1//EN" '
        '"http://www.w3.org/TR/xhtml11/DTD/xhtml11.dtd">\n'
    )
    assert re.search(r"<h1[^>]*>Hello World</h1>", raw)
    assert re.search(r"<strong[^>]*>bold</strong>", raw)

    root = etree.fromstring(raw.encode("utf-8"))
    assert root.tag == "{http://www.w3.org/1999/xhtml}html"
    assert root.get("{http://www.w3.org/XML/1998/namespace}lang") == "en"
    assert root.find("html:body/html:div", NS) is not None


def test_heading_and_bold_survive_attribute_noise():
    source = (
        '<span id="s" style="color:red" data-x="1">x</span>\n\n'
        "# Title\n\n"
        'Some **strong** words <span class="n" title="a &amp; b">here</span>'
    )
    with _open(markdown_to_epub(source, "noise.md")) as zf:
        root = etree.fromstring(zf.read("OEBPS/content.html"))
    assert root.xpath("string(//html:h1)", namespaces=NS) == "Title"
    assert root.xpath("string(//html:strong)", namespaces=NS) == "strong"
    assert root.xpath("//html:span[@class='n']/@title", namespaces=NS) == ["a & b"]
    assert root.xpath("//html:span[@id='s']", namespaces=NS)


def test_build_entries_compression_modes():
    entries = build_entries(convert("text"), "t.md")
    assert [e.path for e in entries] == EXPECTED_NAMES
    assert entries[0].compression is Compression.STORE
    assert all(e.compression is Compression.DEFLATE for e in entries[1:])


def test_language_is_configurable():
    with _open(package(convert("texte"), "fr.md", language="fr")) as zf:
        opf = etree.fromstring(zf.read("OEBPS/content.opf"))
        content = etree.fromstring(zf.read("OEBPS/content.html"))
    assert opf.xpath("string(//dc:language)", namespaces=NS) == "fr"
    assert content.get("{http://www.w3.org/XML/1998/namespace}lang") == "fr"


def test_assembly_failure_raises_packaging_error():
    with pytest.raises(PackagingError):
        package(XhtmlFragment(root=None), "broken.md")


def test_write_epub(tmp_path):
    target = write_epub("# Chapter", "chapter.md", tmp_path / "out" / "chapter.epub")
    assert target.exists()
    with zipfile.ZipFile(target) as zf:
        assert zf.namelist() == EXPECTED_NAMES
