"""
XML Utilities
=============
"""

from bitmark_core.xml.utils import (
    DEFAULT_PREFIXES,
    MATHML_NS,
    XLINK_NS,
    XML_NS,
    attributes_as_html,
    eliminate_multiple_spaces,
    escape_xml_text,
    local_name,
    normalize_line_breaks,
    prefixed_name,
    split_clark,
)

__all__ = [
    "DEFAULT_PREFIXES",
    "MATHML_NS",
    "XLINK_NS",
    "XML_NS",
    "attributes_as_html",
    "eliminate_multiple_spaces",
    "escape_xml_text",
    "local_name",
    "normalize_line_breaks",
    "prefixed_name",
    "split_clark",
]
