"""
Bitmark Templates
=================

Text templates for every bit the markup generator emits, plus the small
helpers that fill them.

Bits take an ``ids`` pair ``(anchor_id, customer_id)``. An empty member
drops its ``[▼...]`` or ``[@customerId:...]`` line from the bit. Labels,
titles and leads are embedded inside bracketed directives, so their
closing brackets are masked as ``^]``.
"""

from typing import Optional, Sequence, Union
import re

Ids = Optional[Sequence[Optional[str]]]
Number = Union[int, float]

TAB = "\t"
SPACE = " "

NORMATIVE_TAGS = {
    "de": "[@tag:normativ]",
    "fr": "[@tag:normatif]",
    "it": "[@tag:normativo]",
}

# Non-normative bits carry the "explanations and examples" tag
EXPLANATION_TAGS = {
    "de": "[@tag:B+E]",
    "fr": "[@tag:E+C]",
    "it": "[@tag:E+S]",
}

# ============================================================================
# Templates
# ============================================================================

T_ANCHOR = "\n[▼{anchor}]"
T_CUSTOMER_ID = "\n[@customerId:{customer_id}]"
T_LABEL = "\n[%{item}]{lead}"
T_SEARCH = "\n[@search:{search}]"
T_INSTRUCTION = "\n[!{instruction}]"
T_CAPTION = "@caption:{caption}|"
T_EXTERNAL_LINK = "== {text} ==|link:{link}|"
T_IMAGE_INLINE = "\n|image:{url}|@width:{width}|\n"

T_BOOK = ("[.book]\n[@language:{lang}]\n[@publisher:{publisher}]\n[@theme:{theme}]\n"
          "[@coverColor:{cover_color}]\n[#{title}]\n")
T_CHAPTER = "\n[.chapter]{anchor}{customer_id}{search}\n[{level}{text}]\n[%{label}]\n"

_TEXT_BODY = "{tag}{anchor}{customer_id}{search}{itemlead}{instruction}\n{text}"

T_STANDARD_ARTICLE_NORMATIVE = "\n\n[.standard-article-normative:bitmark++&image]\n" + _TEXT_BODY
T_STANDARD_ARTICLE_NON_NORMATIVE = "\n\n[.standard-article-non-normative:bitmark++&image]\n" + _TEXT_BODY
T_STANDARD_NOTE_NORMATIVE = "\n\n[.standard-note-normative:bitmark++&image]\n" + _TEXT_BODY
T_STANDARD_NOTE_NON_NORMATIVE = "\n\n[.standard-note-non-normative:bitmark++&image]\n" + _TEXT_BODY
T_STANDARD_REMARK_NORMATIVE = "\n\n[.standard-remark-normative:bitmark++&image]\n" + _TEXT_BODY
T_STANDARD_REMARK_NON_NORMATIVE = "\n\n[.standard-remark-non-normative:bitmark++&image]\n" + _TEXT_BODY
T_FORMULA_NORMATIVE = "\n\n[.smart-standard-formula-normative:bitmark++&image]\n" + _TEXT_BODY
T_FORMULA_NON_NORMATIVE = "\n\n[.smart-standard-formula-non-normative:bitmark++&image]\n" + _TEXT_BODY
T_LEGEND_NORMATIVE = "\n\n[.smart-standard-legend-normative:bitmark++&image]\n" + _TEXT_BODY
T_LEGEND_NON_NORMATIVE = "\n\n[.smart-standard-legend-non-normative:bitmark++&image]\n" + _TEXT_BODY

T_ARTICLE = "\n\n[.article&image:bitmark++]{anchor}{customer_id}{search}{itemlead}\n{text}"
T_INFO = "\n\n[.info:bitmark++]{anchor}{customer_id}{search}{itemlead}\n{text}"
T_NOTE = "\n\n[.note:bitmark++&image]{anchor}{customer_id}{search}{itemlead}\n{text}"
T_EXAMPLE = "\n\n[.example:bitmark++&image]{anchor}{customer_id}{search}{itemlead}\n{text}"
T_SIDE_NOTE = "\n\n[.side-note:bitmark++&image]{anchor}{customer_id}{search}{itemlead}\n{text}"

_TABLE_BODY = "{tag}{anchor}{customer_id}{itemlead}{instruction}\n[&image:{url}]\n{body}"

T_TABLE_NORMATIVE = "\n\n[.standard-table-image-normative:bitmark++]\n" + _TABLE_BODY
T_TABLE_NON_NORMATIVE = "\n\n[.standard-table-image-non-normative:bitmark++]\n" + _TABLE_BODY
T_REMARK_TABLE_NORMATIVE = "\n\n[.standard-remark-table-image-normative:bitmark++]\n" + _TABLE_BODY
T_REMARK_TABLE_NON_NORMATIVE = "\n\n[.standard-remark-table-image-non-normative:bitmark++]\n" + _TABLE_BODY

T_FIGURE_NORMATIVE = (
    "\n\n[.smart-standard-image-figure-normative:bitmark++&image]\n"
    "{tag}{anchor}{customer_id}{itemlead}{instruction}\n[&image:{url}][@width:{width}]\n{legend}"
)
T_FIGURE_NON_NORMATIVE = (
    "\n\n[.smart-standard-image-figure-non-normative:bitmark++]\n"
    "{tag}{anchor}{customer_id}{itemlead}{instruction}\n[&image:{url}][@width:{width}]\n{legend}"
)
T_FIGURE_REMARK = (
    "\n\n[.standard-remark-non-normative:bitmark++&image]"
    "{anchor}{customer_id}{itemlead}{instruction}\n|image:{url}|@width:{width}|{legend}"
)

# list-type -> item marker
LIST_MARKERS = {
    "bullet": "• ",
    "dash": "• ",
    "alpha-lower": "•a ",
    "alpha-upper": "•A ",
    "simple": "•_ ",
    "order": "•{start} ",
    "roman-lower": "•{start}i ",
    "roman-upper": "•{start}I ",
}

_UNMASKED_CLOSING_BRACKET = re.compile(r"(?<!\^)\]")


# ============================================================================
# Helpers
# ============================================================================

def mask_closing_brackets(text: Optional[str]) -> Optional[str]:
    """
    Mask every ``]`` not already preceded by ``^``.

    Example:
        >>> mask_closing_brackets("see [1] and ^]")
        'see [1^] and ^]'
    """
    if not text or not isinstance(text, str):
        return text
    return _UNMASKED_CLOSING_BRACKET.sub("^]", text)


def format_number(value: Number) -> str:
    """Integral floats without a trailing ``.0``."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def image_directive(bit: str) -> str:
    """Drop the ``&image`` bit flag when the bit embeds no image."""
    if not bit or not isinstance(bit, str):
        return bit
    if "[&image:" not in bit and "|image:" not in bit:
        return bit.replace("++&image]", "++]", 1)
    return bit


def language_tag(template: str, lang: str) -> str:
    if "-non-normative:" in template:
        return EXPLANATION_TAGS.get(lang, EXPLANATION_TAGS["de"])
    if "-normative:" in template:
        return NORMATIVE_TAGS.get(lang, NORMATIVE_TAGS["de"])
    return ""


def id_fields(ids: Ids) -> dict:
    anchor, customer_id = (tuple(ids) + (None, None))[:2] if ids else (None, None)
    return {
        "anchor": T_ANCHOR.format(anchor=anchor) if anchor else "",
        "customer_id": T_CUSTOMER_ID.format(customer_id=customer_id) if customer_id else "",
    }


def search_tag(search_csv: Optional[str]) -> str:
    return T_SEARCH.format(search=mask_closing_brackets(search_csv)) if search_csv else ""


def instruction_tag(text: Optional[str]) -> str:
    return T_INSTRUCTION.format(instruction=mask_closing_brackets(text)) if text else ""


def item_lead_tag(item: Optional[str] = "", lead: Optional[str] = "") -> str:
    """``[%item]`` optionally followed by ``[%lead]``."""
    lead_tag = f"[%{mask_closing_brackets(lead)}]" if lead else ""
    return T_LABEL.format(item=mask_closing_brackets(item or ""), lead=lead_tag)


def caption_tag(caption: Optional[str]) -> str:
    return T_CAPTION.format(caption=mask_closing_brackets(caption)) if caption else ""


def _fill(template: str, ids: Ids, lang: str, **fields) -> str:
    return template.format(tag=language_tag(template, lang), **id_fields(ids), **fields)


# ============================================================================
# Structural bits
# ============================================================================

def book(title: str, lang: str = "de", publisher: str = "electrosuisse",
         theme: str = "nin", cover_color: str = "#fa6800") -> str:
    return T_BOOK.format(lang=lang, publisher=publisher, theme=theme,
                         cover_color=cover_color, title=mask_closing_brackets(title))


def chapter(level: int, label: str, text: str, ids: Ids = None,
            search_csv: str = "", lang: str = "de") -> str:
    return _fill(
        T_CHAPTER, ids, lang,
        search=search_tag(search_csv),
        level="#" * max(level, 0),
        text=mask_closing_brackets(text or ""),
        label=mask_closing_brackets(label or ""),
    )


# ============================================================================
# Text bits
# ============================================================================

def article_txt(label: Optional[str], lead: Optional[str], text: Optional[str],
                ids: Ids, search_csv: Optional[str], template: str,
                show_lead_as_instruction: bool = False, lang: str = "de") -> str:
    """
    Fill a text-bearing template.

    With ``show_lead_as_instruction`` the lead goes into an ``[!...]``
    instruction line instead of a second ``[%...]`` item.
    """
    if show_lead_as_instruction:
        itemlead = item_lead_tag(label, "")
        instruction = instruction_tag(lead)
    else:
        itemlead = item_lead_tag(label, lead)
        instruction = ""
    return image_directive(_fill(
        template, ids, lang,
        text=text or "",
        itemlead=itemlead,
        search=search_tag(search_csv),
        instruction=instruction,
    ))


def standard_article(label, title, text, ids, search_csv="", non_normative=False,
                     show_title_as_instruction=False, lang="de") -> str:
    template = T_STANDARD_ARTICLE_NON_NORMATIVE if non_normative else T_STANDARD_ARTICLE_NORMATIVE
    return article_txt(label, title, text, ids, search_csv, template, show_title_as_instruction, lang)


def standard_note(label, title, text, ids, search_csv="", non_normative=False,
                  show_title_as_instruction=False, lang="de") -> str:
    template = T_STANDARD_NOTE_NON_NORMATIVE if non_normative else T_STANDARD_NOTE_NORMATIVE
    return article_txt(label, title, text, ids, search_csv, template, show_title_as_instruction, lang)


def standard_remark(label, title, text, ids, search_csv="", non_normative=False,
                    show_title_as_instruction=False, lang="de") -> str:
    template = T_STANDARD_REMARK_NON_NORMATIVE if non_normative else T_STANDARD_REMARK_NORMATIVE
    return article_txt(label, title, text, ids, search_csv, template, show_title_as_instruction, lang)


def formula(label, title, text, ids, search_csv="", non_normative=False,
            show_title_as_instruction=False, lang="de") -> str:
    template = T_FORMULA_NON_NORMATIVE if non_normative else T_FORMULA_NORMATIVE
    return article_txt(label, title, text, ids, search_csv, template, show_title_as_instruction, lang)


def legend(label, title, text, ids, search_csv="", non_normative=False,
           show_title_as_instruction=False, lang="de") -> str:
    template = T_LEGEND_NON_NORMATIVE if non_normative else T_LEGEND_NORMATIVE
    return article_txt(label, title, text, ids, search_csv, template, show_title_as_instruction, lang)


def article(label="", title="", text="", ids=None, search_csv="") -> str:
    return article_txt(label, title, text, ids, search_csv, T_ARTICLE)


def info(label="", title="", text="", ids=None, search_csv="") -> str:
    return article_txt(label, title, text, ids, search_csv, T_INFO)


def note(label="", title="", text="", ids=None, search_csv="") -> str:
    return article_txt(label, title, text, ids, search_csv, T_NOTE)


def example(label="", title="", text="", ids=None, search_csv="") -> str:
    return article_txt(label, title, text, ids, search_csv, T_EXAMPLE)


def side_note(label="", title="", text="", ids=None, search_csv="") -> str:
    return article_txt(label, title, text, ids, search_csv, T_SIDE_NOTE)


# ============================================================================
# Tables and figures
# ============================================================================

def article_table_txt(label: Optional[str], title: Optional[str], caption: Optional[str],
                      raw_txt: Optional[str], ids: Ids, url: str, template: str,
                      lang: str = "de") -> str:
    bit = _fill(
        template, ids, lang,
        url=url,
        itemlead=item_lead_tag(label, ""),
        instruction=instruction_tag(title),
        body=raw_txt or "",
    )
    return bit + caption_tag(caption)


def standard_table(label, title, caption, raw_txt, ids, url, non_normative=False, lang="de") -> str:
    template = T_TABLE_NON_NORMATIVE if non_normative else T_TABLE_NORMATIVE
    return article_table_txt(label, title, caption, raw_txt, ids, url, template, lang)


def standard_remark_table(label, title, caption, raw_txt, ids, url, non_normative=False,
                          lang="de") -> str:
    template = T_REMARK_TABLE_NON_NORMATIVE if non_normative else T_REMARK_TABLE_NORMATIVE
    return article_table_txt(label, title, caption, raw_txt, ids, url, template, lang)


def figure_txt(label: Optional[str], title: Optional[str], legend_txt: Optional[str],
               url: str, width: Number, height: Number, ids: Ids, template: str,
               lang: str = "de") -> str:
    return _fill(
        template, ids, lang,
        itemlead=item_lead_tag(label, ""),
        instruction=instruction_tag(title),
        legend=legend_txt or "",
        url=url,
        width=format_number(width),
        height=format_number(height),
    )


def standard_image_figure(label, title, legend_txt, url, width=1024, height=472, ids=None,
                          non_normative=False, lang="de") -> str:
    template = T_FIGURE_NON_NORMATIVE if non_normative else T_FIGURE_NORMATIVE
    return figure_txt(label, title, legend_txt, url, width, height, ids, template, lang)


def figure_remark(label, title, legend_txt, url, width=1024, height=472, ids=None,
                  lang="de") -> str:
    return figure_txt(label, title, legend_txt, url, width, height, ids, T_FIGURE_REMARK, lang)


# ============================================================================
# Inline fragments
# ============================================================================

def list_item(list_type: Optional[str], level: int, text: str, start: int = 1) -> str:
    """One list line; unknown list types render as bullets."""
    marker = LIST_MARKERS.get(list_type or "", LIST_MARKERS["bullet"]).format(start=start)
    return f"\n{TAB * max(level - 1, 0)}{marker}{text}"


def external_link(text: str, link: str = "") -> str:
    return T_EXTERNAL_LINK.format(text=text, link=link)


def image_inline(url: str, width: Number, height: Number) -> str:
    return T_IMAGE_INLINE.format(url=url, width=format_number(width))
