from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

import lxml.html
import markdown
from lxml import etree

from .errors import ConversionError

logger = logging.getLogger(__name__)


XHTML_NS = "http://www.w3.org/1999/xhtml"
XML_NS = "http://www.w3.org/XML/1998/namespace"

# nl2br keeps single newlines as hard breaks, like the editor preview does.
MARKDOWN_EXTENSIONS = ["nl2br", "tables", "fenced_code", "sane_lists"]

# Code point ranges allowed in XML 1.0 documents.
_XML_CHAR_RANGES = [(0x9, 0xA), (0xD, 0xD), (0x20, 0xD7FF), (0xE000, 0xFFFD), (0x10000, 0x10FFFF)]
_invalid_xml_chars_re = re.compile(
    "[^" + "".join(f"{chr(low)}-{chr(high)}" for low, high in _XML_CHAR_RANGES) + "]"
)
_xml_name_re = re.compile(r"^[^\W\d][\w.\-]*$")


@dataclass
class XhtmlFragment:
    """Converted body content, held under a single XHTML ``div``."""

    root: etree._Element

    def to_xml(self) -> str:
        return etree.tostring(self.root, encoding="unicode")


def strip_invalid_xml_chars(text: Optional[str]) -> str:
    if not text:
        return ""
    return _invalid_xml_chars_re.sub("", text)


def _is_xml_name(name: str) -> bool:
    return bool(_xml_name_re.match(name))


def _append_text(parent: etree._Element, text: Optional[str]) -> None:
    text = strip_invalid_xml_chars(text)
    if not text:
        return
    if len(parent):
        last = parent[-1]
        last.tail = (last.tail or "") + text
    else:
        parent.text = (parent.text or "") + text


def _start_tag_text(node: etree._Element) -> str:
    attrs = "".join(f' {name}="{value}"' for name, value in node.attrib.items())
    return f"<{node.tag}{attrs}>"


def _copy_attribute(element: etree._Element, name: str, value: str) -> None:
    value = strip_invalid_xml_chars(value)
    if name in {"xml:lang", "xml:space"}:
        element.set(f"{{{XML_NS}}}{name[4:]}", value)
        return
    if name == "xmlns" or ":" in name or not _is_xml_name(name):
        logger.debug("Dropping attribute %r on <%s>", name, etree.QName(element).localname)
        return
    try:
        element.set(name, value)
    except ValueError:
        logger.debug("Dropping attribute %r on <%s>", name, etree.QName(element).localname)


def _copy_node(node, parent: etree._Element) -> None:
    if isinstance(node, etree._Comment):
        text = strip_invalid_xml_chars(node.text)
        if "--" not in text and not text.endswith("-"):
            parent.append(etree.Comment(text))
        _append_text(parent, node.tail)
        return
    if not isinstance(node.tag, str):
        # processing instructions and entity references
        _append_text(parent, node.tail)
        return

    element = None
    if _is_xml_name(node.tag):
        try:
            element = etree.SubElement(parent, f"{{{XHTML_NS}}}{node.tag}")
        except ValueError:
            element = None

    if element is not None:
        for name, value in node.attrib.items():
            _copy_attribute(element, name, value)
        _append_text(element, node.text)
        for child in node:
            _copy_node(child, element)
        if node.tag == "p" and not len(element) and not (element.text or "").strip():
            # Left behind when raw HTML blocks are split out of a paragraph.
            parent.remove(element)
    else:
        # Not representable as an XML element: keep it as literal text.
        _append_text(parent, _start_tag_text(node))
        _append_text(parent, node.text)
        for child in node:
            _copy_node(child, parent)
        _append_text(parent, f"</{node.tag}>")

    _append_text(parent, node.tail)


def html_to_xhtml(html: str) -> XhtmlFragment:
    """Canonicalise an HTML snippet into a well-formed XHTML fragment.

    The snippet is parsed with the lenient HTML parser and copied node by
    node into a fresh tree in the XHTML namespace. Names that XML cannot
    express are either dropped (attributes) or kept as escaped text
    (elements), so serialising the result always yields well-formed XML.
    """

    container = etree.Element(f"{{{XHTML_NS}}}div", nsmap={None: XHTML_NS})
    html = strip_invalid_xml_chars(html)
    if not html.strip():
        return XhtmlFragment(container)

    document = lxml.html.document_fromstring(f"<html><body>{html}</body></html>")
    body = document.find("body")
    if body is None:
        body = document

    _append_text(container, body.text)
    for child in body:
        _copy_node(child, container)
    return XhtmlFragment(container)


def render_markdown(source: str) -> str:
    try:
        return markdown.markdown(source, extensions=MARKDOWN_EXTENSIONS, output_format="xhtml")
    except Exception as exc:  # noqa: BLE001
        raise ConversionError(f"Markdown rendering failed: {exc}", cause=exc) from exc


def convert(source: str) -> XhtmlFragment:
    """Convert markdown text into an XHTML body fragment."""

    html = render_markdown(source)
    fragment = html_to_xhtml(html)
    logger.debug("Converted %d characters of markdown into %d top-level nodes", len(source), len(fragment.root))
    return fragment
