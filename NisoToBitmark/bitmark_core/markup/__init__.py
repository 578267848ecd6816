"""
Bitmark Markup
==============

Generation of bitmark text from document partitions.

Components:
- templates: bit templates and inline fragments
- LegendBuilder: legend bodies from definition lists
- InlineGraphicBuilder: inline image markup
- paragraph: inline text rendering and complex structure splitting
- visitors: one visitor per node name
- MarkupGenerator: partition walk, link resolution, collaborator calls
"""

from bitmark_core.markup import templates
from bitmark_core.markup.legend import LegendBuilder
from bitmark_core.markup.inline_graphic import InlineGraphicBuilder, public_filename
from bitmark_core.markup.table_html import TableHtml, table_to_html
from bitmark_core.markup.paragraph import (
    COMPLEX_TAGS,
    is_complex_structure,
    process_paragraph,
    split_paragraph,
)
from bitmark_core.markup.visitors import VISITOR_TABLE, NodeVisitor, PrintVisitor, visitor_for
from bitmark_core.markup.generator import MarkupGenerator, extract_mathml

__all__ = [
    "templates",
    "LegendBuilder",
    "InlineGraphicBuilder",
    "public_filename",
    "TableHtml",
    "table_to_html",
    "COMPLEX_TAGS",
    "is_complex_structure",
    "process_paragraph",
    "split_paragraph",
    "VISITOR_TABLE",
    "NodeVisitor",
    "PrintVisitor",
    "visitor_for",
    "MarkupGenerator",
    "extract_mathml",
]
