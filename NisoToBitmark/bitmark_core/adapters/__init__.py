"""
Collaborators
=============

Services the markup generator delegates to.

Components:
- ImageRenderer, FormulaConverter, AssetPublisher: abstract interfaces
- HtmlFileTableRenderer, MathMLLatexConverter, LocalAssetPublisher:
  local default implementations
"""

from bitmark_core.adapters.base import (
    AssetPublisher,
    FormulaConverter,
    ImageRenderer,
)
from bitmark_core.adapters.local import (
    HtmlFileTableRenderer,
    LocalAssetPublisher,
    MathMLLatexConverter,
    generate_html_page,
    wrap_mathml,
)

__all__ = [
    "AssetPublisher",
    "FormulaConverter",
    "ImageRenderer",
    "HtmlFileTableRenderer",
    "LocalAssetPublisher",
    "MathMLLatexConverter",
    "generate_html_page",
    "wrap_mathml",
]
