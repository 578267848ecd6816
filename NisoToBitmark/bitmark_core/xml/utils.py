"""
XML Utility Functions
=====================

Small helpers shared by the tree builder, the registry readers and the
markup generator: namespace-aware element names and text escaping.
"""

from typing import Any, Dict, Optional
import logging
import re

logger = logging.getLogger(__name__)

MATHML_NS = "http://www.w3.org/1998/Math/MathML"
XLINK_NS = "http://www.w3.org/1999/xlink"
XML_NS = "http://www.w3.org/XML/1998/namespace"

# Prefixes used when a namespace is not declared with a prefix of its own
DEFAULT_PREFIXES: Dict[str, str] = {
    MATHML_NS: "mml",
    XLINK_NS: "xlink",
    XML_NS: "xml",
}

_XML_ESCAPES = (
    ("&", "&amp;"),
    ("'", "&apos;"),
    (">", "&gt;"),
    ("<", "&lt;"),
    ('"', "&quot;"),
)

_TAB_RE = re.compile(r"\t")
_SPACE_RUN_RE = re.compile(r"(\S) {4,}(?=\S)")
_LINE_BREAK_RE = re.compile(r"\r?\n|\r")


def local_name(element: Any) -> str:
    """
    Local name of an lxml element, without any namespace.

    Comments and processing instructions yield an empty string.
    """
    tag = element.tag
    if not isinstance(tag, str):
        return ""
    return split_clark(tag)[1]


def split_clark(name: str):
    """Split ``{uri}local`` into ``(uri, local)``; uri is None when absent."""
    if name.startswith("{"):
        uri, local = name[1:].split("}", 1)
        return uri, local
    return None, name


def prefixed_name(name: str, prefixes: Optional[Dict[str, str]] = None) -> str:
    """
    Convert a Clark-notation name to its ``prefix:local`` form.

    Example:
        >>> prefixed_name("{http://www.w3.org/1998/Math/MathML}mi")
        'mml:mi'
        >>> prefixed_name("{http://www.w3.org/1999/xlink}href")
        'xlink:href'
    """
    uri, local = split_clark(name)
    if uri is None:
        return local
    prefix = (prefixes or {}).get(uri)
    if prefix is None:
        prefix = DEFAULT_PREFIXES.get(uri, "")
    return f"{prefix}:{local}" if prefix else local


def escape_xml_text(text: str) -> str:
    """Escape the five XML special characters."""
    for char, entity in _XML_ESCAPES:
        text = text.replace(char, entity)
    return text


def normalize_line_breaks(text: str) -> str:
    return _LINE_BREAK_RE.sub(" ", text)


def eliminate_multiple_spaces(text: str) -> str:
    """Remove tabs and collapse runs of four or more spaces between words."""
    if not text:
        return text
    return _SPACE_RUN_RE.sub(r"\1 ", _TAB_RE.sub("", text))


def attributes_as_html(attributes: Dict[str, str]) -> str:
    """Render attributes as `` key='value'`` pairs."""
    return "".join(f" {key}='{value}'" for key, value in attributes.items())
