"""
Helpers for parsing OOXML parts held in a ZipContext.

Element and attribute lookups go by local name. Transitional and strict
OOXML use different namespace URIs for the same vocabulary, and threaded
comment parts are written with several prefixes, so matching on the
namespace would drop data from perfectly readable files.
"""

import logging
from typing import Iterator
from xml.etree import ElementTree as ET

from xlsx2comments.exceptions import ContainerError, MalformedXmlError
from xlsx2comments.extractors.util.zip_context import ZipContext

logger = logging.getLogger(__name__)

# Relationship namespace used for r:id attributes in transitional OOXML
R_NS = "{http://schemas.openxmlformats.org/officeDocument/2006/relationships}"
R_ID = f"{R_NS}id"


def local_name(tag: str) -> str:
    """Strip the ``{namespace}`` prefix from a tag or attribute name."""
    if tag.startswith("{"):
        return tag.rsplit("}", 1)[-1]
    return tag


def parse_xml(data: bytes, part: str = "<memory>") -> ET.Element:
    """Parse part bytes into an element tree root.

    Raises:
        MalformedXmlError: If the bytes are not well-formed XML.
    """
    try:
        return ET.fromstring(data)
    except ET.ParseError as exc:
        raise MalformedXmlError(part, cause=exc) from exc


def read_optional_xml(ctx: ZipContext, path: str) -> ET.Element | None:
    """Root of an optional part, or ``None`` if it is absent or malformed."""
    data = ctx.entry(path)
    if data is None:
        logger.debug(f"Optional part not present: [{path}]")
        return None
    try:
        return parse_xml(data, path)
    except MalformedXmlError as exc:
        logger.warning(f"Ignoring malformed part [{path}]: {exc.__cause__}")
        return None


def read_required_xml(ctx: ZipContext, path: str) -> ET.Element:
    """Root of a part the extraction cannot do without.

    Raises:
        ContainerError: If the part is missing from the archive.
        MalformedXmlError: If the part is not well-formed XML.
    """
    data = ctx.entry(path)
    if data is None:
        raise ContainerError(f"Workbook container has no [{path}] part")
    return parse_xml(data, path)


def iter_local(root: ET.Element, name: str) -> Iterator[ET.Element]:
    """All descendants (and root itself) whose local tag name is `name`."""
    for element in root.iter():
        if local_name(element.tag) == name:
            yield element


def find_local(element: ET.Element, name: str) -> ET.Element | None:
    """First descendant with local tag name `name`, depth-first."""
    for child in element.iter():
        if child is not element and local_name(child.tag) == name:
            return child
    return None


def get_local_attr(element: ET.Element, name: str, default: str = "") -> str:
    """Attribute value by local name, whatever namespace it was written in."""
    value = element.get(name)
    if value is not None:
        return value
    for key, value in element.attrib.items():
        if local_name(key) == name:
            return value
    return default


def text_content(element: ET.Element | None) -> str:
    """Concatenated text of an element and its descendants."""
    if element is None:
        return ""
    return "".join(element.itertext())
