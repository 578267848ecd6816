"""
Inline Graphics
===============

Publishes inline graphics (and private characters without a font glyph)
and returns the inline image markup referencing them.
"""

from pathlib import Path
from typing import Optional
import logging
import re

from bitmark_core.adapters.base import AssetPublisher
from bitmark_core.tree.node import Node

logger = logging.getLogger(__name__)

ERROR_MARKUP = "!! Error processing inline graphic !!"

_UNSAFE_CHARS_RE = re.compile(r"[./]")


def public_filename(href: str) -> str:
    """
    Flat public name for an inline graphic href.

    Example:
        >>> public_filename("images/sym.v1.png")
        'inlineGraphic_images-sym-v1.png'
    """
    stem, dot, extension = href.rpartition(".")
    if not dot:
        stem, extension = href, ""
    suffix = f".{extension}" if extension else ""
    return f"inlineGraphic_{_UNSAFE_CHARS_RE.sub('-', stem)}{suffix}"


class InlineGraphicBuilder:
    """Builds ``imageInline`` markup for ``inline-graphic`` nodes."""

    def __init__(self, ressource_path: str, ressource_base_url: str,
                 publisher: Optional[AssetPublisher] = None):
        self.ressource_path = ressource_path
        self.ressource_base_url = ressource_base_url
        self.publisher = publisher

    def build(self, node: Optional[Node]) -> str:
        href = node.attr("xlink:href") if node is not None else None
        if not href:
            logger.warning(f"Inline graphic without xlink:href: {node!r}")
            return ERROR_MARKUP

        filename = public_filename(href)
        url = f"{self.ressource_base_url}{filename}"
        if self.publisher is not None:
            url = self.publisher.publish(Path(f"{self.ressource_path}{href}"), filename)
        return f"==??==|imageInline:{url}|alignmentVertical:middle|size:line-height|"
