"""
Bit Writers
===========

Choose the template family for a node from its mode flags and write the
filled bit to the generator's output.

- remark nodes use the remark templates
- normative nodes use the article templates
- everything else uses the note templates

Boxed nodes and non-normative nodes select the non-normative variant of
each family.
"""

from typing import TYPE_CHECKING, Optional, Tuple
import logging

from bitmark_core.markup import templates
from bitmark_core.tracking.transformer_log import Category
from bitmark_core.tree.node import Node

if TYPE_CHECKING:
    from bitmark_core.markup.visitors import NodeVisitor

logger = logging.getLogger(__name__)

NO_ANCHOR_ID = "no_anchorId"
NO_CUSTOMER_ID = "no_customerId"


def get_anchor_and_customer_id(node: Node, visitor: 'NodeVisitor') -> Tuple[Optional[str], str]:
    """
    Ids written into a node's bit.

    Overload ids (set when a paragraph inherits the label of its
    paragraph-section) take precedence over the node's own ids.
    """
    log = visitor.generator.log
    if node.overload_anchor_id or node.overload_customer_id:
        if not node.overload_anchor_id or not node.overload_customer_id:
            log.warn(Category.LINK, "NoCustomerId(overload)",
                     f"overloadAnchorId: {node.overload_anchor_id}")
        return (node.overload_anchor_id or NO_ANCHOR_ID,
                node.overload_customer_id or NO_CUSTOMER_ID)

    if not node.customer_id:
        log.warn(Category.LINK, "NoCustomerId", f"anchorId: {node.anchor_id}")
    return node.anchor_id, node.customer_id or NO_CUSTOMER_ID


def _non_normative(node: Node) -> bool:
    return node.is_boxedtext or not node.is_normative


def _finish(node: Node) -> None:
    # label, title and search terms belong to the first bit only
    node.reset_rendering()


def write_article_or_note(node: Node, content: Optional[str], visitor: 'NodeVisitor',
                          show_title_as_instruction: bool = False) -> None:
    if not content:
        return
    lang = visitor.generator.lang
    if node.is_remark:
        write = templates.standard_remark
    elif node.is_normative:
        write = templates.standard_article
    else:
        write = templates.standard_note

    visitor.write(write(
        node.label or "",
        node.title or "",
        content,
        get_anchor_and_customer_id(node, visitor),
        node.search_terms_csv(),
        _non_normative(node),
        show_title_as_instruction,
        lang,
    ))
    _finish(node)


def write_legend(node: Node, content: str, visitor: 'NodeVisitor',
                 show_title_as_instruction: bool = False) -> None:
    visitor.write(templates.legend(
        node.label or "",
        node.title or "",
        content,
        get_anchor_and_customer_id(node, visitor),
        node.search_terms_csv(),
        _non_normative(node),
        show_title_as_instruction,
        visitor.generator.lang,
    ))
    _finish(node)


def write_formula(node: Node, content: str, visitor: 'NodeVisitor',
                  show_title_as_instruction: bool = False) -> None:
    visitor.write(templates.formula(
        node.label or "",
        node.title or "",
        content,
        get_anchor_and_customer_id(node, visitor),
        node.search_terms_csv(),
        _non_normative(node),
        show_title_as_instruction,
        visitor.generator.lang,
    ))
    _finish(node)


def write_table(node: Node, label: str, title: str, raw_txt: str, url: str,
                visitor: 'NodeVisitor') -> None:
    write = templates.standard_remark_table if node.is_remark else templates.standard_table
    visitor.write(write(
        label or "",
        title or "",
        "",
        raw_txt,
        get_anchor_and_customer_id(node, visitor),
        url,
        _non_normative(node),
        visitor.generator.lang,
    ))


def write_image_figure(node: Node, label: str, title: str, legend_txt: Optional[str],
                       url: str, width: float, height: float,
                       visitor: 'NodeVisitor') -> None:
    ids = get_anchor_and_customer_id(node, visitor)
    lang = visitor.generator.lang
    if node.is_remark:
        bit = templates.figure_remark(label or "", title, legend_txt, url, width, height, ids, lang)
    else:
        bit = templates.standard_image_figure(label or "", title, legend_txt, url, width, height,
                                              ids, _non_normative(node), lang)
    visitor.write(bit)
