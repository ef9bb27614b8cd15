from __future__ import annotations

import enum
import io
import logging
import time
import uuid
import zipfile
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import List, Union

from lxml import etree

from .common import EPUB_MEDIA_TYPE
from .errors import PackagingError
from .markdown_xhtml import XHTML_NS, XML_NS, XhtmlFragment, convert, strip_invalid_xml_chars

logger = logging.getLogger(__name__)


XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
XHTML11_DOCTYPE = (
    '<!DOCTYPE html PUBLIC "-//W3C//DTD XHTML 1.1//EN" '
    '"http://www.w3.org/TR/xhtml11/DTD/xhtml11.dtd">'
)

CONTAINER_NS = "urn:oasis:names:tc:opendocument:xmlns:container"
OPF_NS = "http://www.idpf.org/2007/opf"
DC_NS = "http://purl.org/dc/elements/1.1/"
NCX_NS = "http://www.daisy.org/z3986/2005/ncx/"

OPF_PATH = "OEBPS/content.opf"
NCX_HREF = "toc.ncx"
CONTENT_HREF = "content.html"

DEFLATE_LEVEL = 5


class Compression(enum.Enum):
    STORE = zipfile.ZIP_STORED
    DEFLATE = zipfile.ZIP_DEFLATED


@dataclass(frozen=True)
class ContainerEntry:
    """A single file inside the EPUB archive."""

    path: str
    content: bytes
    compression: Compression = Compression.DEFLATE


def _serialize(root: etree._Element, doctype: str | None = None, *, pretty_print: bool = True) -> bytes:
    header = [XML_DECLARATION]
    if doctype:
        header.append(doctype)
    body = etree.tostring(root, encoding="UTF-8", pretty_print=pretty_print, xml_declaration=False)
    return ("\n".join(header) + "\n").encode("utf-8") + body


def _container_xml() -> bytes:
    container = etree.Element(f"{{{CONTAINER_NS}}}container", nsmap={None: CONTAINER_NS})
    container.set("version", "1.0")
    rootfiles = etree.SubElement(container, f"{{{CONTAINER_NS}}}rootfiles")
    etree.SubElement(
        rootfiles,
        f"{{{CONTAINER_NS}}}rootfile",
        attrib={"full-path": OPF_PATH, "media-type": "application/oebps-package+xml"},
    )
    return _serialize(container)


def _content_opf(title: str, language: str, book_id: str) -> bytes:
    package = etree.Element(f"{{{OPF_NS}}}package", nsmap={None: OPF_NS, "dc": DC_NS})
    package.set("version", "2.0")
    package.set("unique-identifier", "BookId")

    metadata = etree.SubElement(package, f"{{{OPF_NS}}}metadata")
    etree.SubElement(metadata, f"{{{DC_NS}}}title").text = title
    etree.SubElement(metadata, f"{{{DC_NS}}}language").text = language
    etree.SubElement(metadata, f"{{{DC_NS}}}identifier", id="BookId").text = book_id

    manifest = etree.SubElement(package, f"{{{OPF_NS}}}manifest")
    etree.SubElement(
        manifest,
        f"{{{OPF_NS}}}item",
        attrib={"id": "content", "href": CONTENT_HREF, "media-type": "application/xhtml+xml"},
    )
    etree.SubElement(
        manifest,
        f"{{{OPF_NS}}}item",
        attrib={"id": "toc", "href": NCX_HREF, "media-type": "application/x-dtbncx+xml"},
    )

    spine = etree.SubElement(package, f"{{{OPF_NS}}}spine", toc="toc")
    etree.SubElement(spine, f"{{{OPF_NS}}}itemref", idref="content")
    return _serialize(package)


def _toc_ncx(title: str, book_id: str) -> bytes:
    ncx = etree.Element(f"{{{NCX_NS}}}ncx", nsmap={None: NCX_NS})
    ncx.set("version", "2005-1")

    head = etree.SubElement(ncx, f"{{{NCX_NS}}}head")
    etree.SubElement(head, f"{{{NCX_NS}}}meta", name="dtb:uid", content=book_id)
    etree.SubElement(head, f"{{{NCX_NS}}}meta", name="dtb:depth", content="1")

    doc_title = etree.SubElement(ncx, f"{{{NCX_NS}}}docTitle")
    etree.SubElement(doc_title, f"{{{NCX_NS}}}text").text = title

    nav_map = etree.SubElement(ncx, f"{{{NCX_NS}}}navMap")
    nav_point = etree.SubElement(nav_map, f"{{{NCX_NS}}}navPoint", id="navPoint-1", playOrder="1")
    nav_label = etree.SubElement(nav_point, f"{{{NCX_NS}}}navLabel")
    etree.SubElement(nav_label, f"{{{NCX_NS}}}text").text = "Start"
    etree.SubElement(nav_point, f"{{{NCX_NS}}}content", src=CONTENT_HREF)
    return _serialize(ncx)


def _content_document(fragment: XhtmlFragment, title: str, language: str) -> bytes:
    html = etree.Element(f"{{{XHTML_NS}}}html", nsmap={None: XHTML_NS})
    html.set(f"{{{XML_NS}}}lang", language)
    head = etree.SubElement(html, f"{{{XHTML_NS}}}head")
    etree.SubElement(head, f"{{{XHTML_NS}}}title").text = title
    body = etree.SubElement(html, f"{{{XHTML_NS}}}body")
    body.append(deepcopy(fragment.root))
    etree.cleanup_namespaces(html)
    # No pretty printing: indentation would leak into <pre> blocks.
    return _serialize(html, XHTML11_DOCTYPE, pretty_print=False)


def build_entries(fragment: XhtmlFragment, title: str, *, language: str = "en") -> List[ContainerEntry]:
    """Return the five archive entries, ``mimetype`` first."""

    title = strip_invalid_xml_chars(title)
    book_id = f"urn:uuid:{uuid.uuid4()}"
    return [
        ContainerEntry("mimetype", EPUB_MEDIA_TYPE.encode("ascii"), Compression.STORE),
        ContainerEntry("META-INF/container.xml", _container_xml()),
        ContainerEntry(OPF_PATH, _content_opf(title, language, book_id)),
        ContainerEntry(f"OEBPS/{NCX_HREF}", _toc_ncx(title, book_id)),
        ContainerEntry(f"OEBPS/{CONTENT_HREF}", _content_document(fragment, title, language)),
    ]


def write_archive(entries: List[ContainerEntry]) -> bytes:
    buffer = io.BytesIO()
    date_time = time.localtime(time.time())[:6]
    with zipfile.ZipFile(buffer, "w") as zf:
        for entry in entries:
            info = zipfile.ZipInfo(entry.path, date_time=date_time)
            info.compress_type = entry.compression.value
            info.external_attr = 0o644 << 16
            if entry.compression is Compression.DEFLATE:
                zf.writestr(info, entry.content, compresslevel=DEFLATE_LEVEL)
            else:
                zf.writestr(info, entry.content)
    return buffer.getvalue()


def package(xhtml: XhtmlFragment, title: str, *, language: str = "en") -> bytes:
    """Assemble the EPUB archive for *xhtml*, titled *title*."""

    try:
        entries = build_entries(xhtml, title, language=language)
        data = write_archive(entries)
    except PackagingError:
        raise
    except Exception as exc:  # noqa: BLE001
        raise PackagingError(f"EPUB packaging failed: {exc}", cause=exc) from exc
    logger.debug("Packaged %s into %d byte EPUB", title, len(data))
    return data


def markdown_to_epub(source: str, filename: str) -> bytes:
    """Convert markdown straight to EPUB bytes, titled with *filename*."""

    return package(convert(source), filename)


def write_epub(source: str, filename: str, out_path: Union[str, Path]) -> Path:
    target = Path(out_path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(markdown_to_epub(source, filename))
    logger.info("Wrote %s", target)
    return target
