"""Normalization of model XML into a stable description."""

import logging
import xml.etree.ElementTree as ET
from pathlib import Path

from pgreport.exceptions import ParseFailureError


logger = logging.getLogger(__name__)

# Attribute rewritten run to run by model dumping tools.
VOLATILE_ATTRIBUTE = "name"

XML_DECLARATION = '<?xml version="1.0"?>'


def load_model(path: str | Path) -> ET.ElementTree:
    """Parse the document at `path`. Raises ParseFailureError."""
    try:
        return ET.parse(path)
    except (OSError, ET.ParseError) as e:
        raise ParseFailureError(f"Cannot load model document: {e}", path=str(path)) from e


def strip_attribute(root: ET.Element, attribute: str = VOLATILE_ATTRIBUTE) -> int:
    """Remove `attribute` from every element under `root`, pre-order.

    Returns the number of elements that carried it.
    """
    removed = 0
    for element in root.iter():
        if attribute in element.attrib:
            del element.attrib[attribute]
            removed += 1
    return removed


def normalize_model_xml(path: str | Path) -> str:
    """Return the model at `path` without volatile attributes, unindented.

    The output is an XML declaration followed by the root element. Comments
    and processing instructions are not kept, and namespaced elements are
    written with generated `ns0`-style prefixes. An unreadable or malformed
    document yields an empty string, which callers treat as "no description
    available".
    """
    try:
        tree = load_model(path)
    except ParseFailureError as e:
        logger.warning("%s", e)
        return ""

    root = tree.getroot()
    strip_attribute(root)
    body = ET.tostring(root, encoding="unicode", short_empty_elements=True)
    return XML_DECLARATION + body
