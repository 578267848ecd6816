"""
Bit Template and Collaborator Tests

Run with: pytest NisoToBitmark/tests/test_templates.py -v
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from bitmark_core.adapters import (
    HtmlFileTableRenderer,
    LocalAssetPublisher,
    MathMLLatexConverter,
    generate_html_page,
    wrap_mathml,
)
from bitmark_core.markup import InlineGraphicBuilder, LegendBuilder, public_filename, templates
from bitmark_core.tree import Node

MATHML = '<math xmlns="http://www.w3.org/1998/Math/MathML">{}</math>'


class TestHelpers:
    """Tests for the template helpers."""

    def test_mask_closing_brackets(self):
        assert templates.mask_closing_brackets("see [1] and ^]") == "see [1^] and ^]"
        assert templates.mask_closing_brackets("") == ""
        assert templates.mask_closing_brackets(None) is None

    def test_format_number(self):
        assert templates.format_number(1580.0) == "1580"
        assert templates.format_number(118.5) == "118.5"
        assert templates.format_number(3) == "3"

    def test_image_directive(self):
        assert templates.image_directive("[.x:bitmark++&image]\ntext") == "[.x:bitmark++]\ntext"
        kept = "[.x:bitmark++&image]\n|image:u|"
        assert templates.image_directive(kept) == kept

    def test_language_tags(self):
        assert templates.language_tag(templates.T_STANDARD_ARTICLE_NORMATIVE, "fr") == "[@tag:normatif]"
        assert templates.language_tag(templates.T_STANDARD_NOTE_NON_NORMATIVE, "it") == "[@tag:E+S]"
        assert templates.language_tag(templates.T_STANDARD_ARTICLE_NORMATIVE, "en") == "[@tag:normativ]"
        assert templates.language_tag(templates.T_ARTICLE, "de") == ""

    def test_missing_ids_drop_their_lines(self):
        assert templates.id_fields(None) == {"anchor": "", "customer_id": ""}
        assert templates.id_fields((None, "c-1")) == {"anchor": "", "customer_id": "\n[@customerId:c-1]"}


class TestTextBits:
    """Tests for text-bearing bits."""

    def test_standard_article(self):
        bit = templates.standard_article("1.1", "Titel", "Text", ("sec_1", "sec-1"), "a,b")
        assert bit == ("\n\n[.standard-article-normative:bitmark++]\n[@tag:normativ]\n[▼sec_1]\n"
                       "[@customerId:sec-1]\n[@search:a,b]\n[%1.1][%Titel]\nText")

    def test_title_as_instruction(self):
        bit = templates.standard_note("1", "Lead", "T", (None, "c"),
                                      non_normative=True, show_title_as_instruction=True)
        assert bit == ("\n\n[.standard-note-non-normative:bitmark++]\n[@tag:B+E]\n"
                       "[@customerId:c]\n[%1]\n[!Lead]\nT")

    def test_inline_image_keeps_image_flag(self):
        bit = templates.standard_article("", "", "x |image:u|@width:10|", None)
        assert bit.startswith("\n\n[.standard-article-normative:bitmark++&image]")

    def test_label_brackets_masked(self):
        bit = templates.standard_remark("[1]", "", "T", None, lang="it")
        assert "[%[1^]]" in bit
        assert "[@tag:normativo]" in bit

    def test_info_has_no_tag(self):
        assert templates.info("", "", "NIN 2025", ("r_1", "r-1")) == (
            "\n\n[.info:bitmark++]\n[▼r_1]\n[@customerId:r-1]\n[%]\nNIN 2025")

    def test_chapter(self):
        assert templates.chapter(2, "1.1", "Titel [a]", ("sec_1", "sec-1")) == (
            "\n[.chapter]\n[▼sec_1]\n[@customerId:sec-1]\n[##Titel [a^]]\n[%1.1]\n")

    def test_book(self):
        assert templates.book("Norm", "fr") == (
            "[.book]\n[@language:fr]\n[@publisher:electrosuisse]\n[@theme:nin]\n"
            "[@coverColor:#fa6800]\n[#Norm]\n")

    def test_book_title_brackets_masked(self):
        assert "\n[#Norm [2025^]]\n" in templates.book("Norm [2025]")

    def test_search_and_caption_brackets_masked(self):
        assert templates.search_tag("Klasse [I],Erdung") == "\n[@search:Klasse [I^],Erdung]"
        assert templates.caption_tag("Quelle [3]") == "@caption:Quelle [3^]|"
        assert templates.caption_tag("Quelle [3^]") == "@caption:Quelle [3^]|"


class TestTableAndFigureBits:
    """Tests for image-bearing bits."""

    def test_standard_table(self):
        bit = templates.standard_table("Tabelle 1", "Werte", "", "\nA", ("t_1", "t-1"), "https://x/t.png")
        assert bit == ("\n\n[.standard-table-image-normative:bitmark++]\n[@tag:normativ]\n[▼t_1]\n"
                       "[@customerId:t-1]\n[%Tabelle 1]\n[!Werte]\n[&image:https://x/t.png]\n\nA")

    def test_table_caption(self):
        bit = templates.standard_table("T", "", "Quelle", "", None, "u")
        assert bit.endswith("@caption:Quelle|")

    def test_remark_table(self):
        bit = templates.standard_remark_table("T", "", "", "", None, "u", non_normative=True)
        assert bit.startswith("\n\n[.standard-remark-table-image-non-normative:bitmark++]\n[@tag:B+E]")

    def test_standard_image_figure(self):
        bit = templates.standard_image_figure("Bild 1", "T", None, "u", 1580.0, 472.0, ("fig_1_1", "f-1"))
        assert bit == ("\n\n[.smart-standard-image-figure-normative:bitmark++&image]\n[@tag:normativ]\n"
                       "[▼fig_1_1]\n[@customerId:f-1]\n[%Bild 1]\n[!T]\n[&image:u][@width:1580]\n")

    def test_figure_remark(self):
        bit = templates.figure_remark("Bild 2", "", "\nlegende", "u", 395.0, 118.0)
        assert bit.startswith("\n\n[.standard-remark-non-normative:bitmark++&image]")
        assert bit.endswith("|image:u|@width:395|\nlegende")

    def test_image_inline(self):
        assert templates.image_inline("u", 100.0, 50) == "\n|image:u|@width:100|\n"


class TestInlineFragments:
    """Tests for list items and links."""

    def test_ordered_list_item(self):
        assert templates.list_item("order", 2, "x", start=3) == "\n\t•3 x"

    def test_unknown_list_type_is_bullet(self):
        assert templates.list_item("fancy", 1, "y") == "\n• y"

    def test_roman_list_item(self):
        assert templates.list_item("roman-lower", 1, "z", start=2) == "\n•2i z"

    def test_external_link(self):
        assert templates.external_link("t", "u") == "== t ==|link:u|"


class TestLegendBuilder:
    def test_title_and_items(self):
        legend = LegendBuilder().set_title("Legende ").add_def_item("①", "Schalter")
        assert legend.build() == "\n====\n[#Legende]\n--\n[#]\n\n====\n①\n--\nSchalter"

    def test_list_items_not_indented(self):
        legend = LegendBuilder().add_def_item("a", "\n\t• x")
        assert "\t" not in legend.build()

    def test_empty(self):
        assert LegendBuilder().build() == ""


class TestInlineGraphics:
    """Tests for inline graphic markup."""

    def test_public_filename(self):
        assert public_filename("images/sym.v1.png") == "inlineGraphic_images-sym-v1.png"
        assert public_filename("noext") == "inlineGraphic_noext"

    def test_build(self):
        builder = InlineGraphicBuilder("/data/", "https://host/")
        node = Node(name="inline-graphic", attributes={"xlink:href": "sym/a.png"})
        assert builder.build(node) == (
            "==??==|imageInline:https://host/inlineGraphic_sym-a.png|"
            "alignmentVertical:middle|size:line-height|")

    def test_build_publishes(self, tmp_path):
        (tmp_path / "sym").mkdir()
        (tmp_path / "sym" / "a.png").write_bytes(b"png")
        publisher = LocalAssetPublisher(tmp_path / "public", "https://host/")
        builder = InlineGraphicBuilder(f"{tmp_path}/", "https://ignored/", publisher)

        markup = builder.build(Node(name="inline-graphic", attributes={"xlink:href": "sym/a.png"}))
        assert "imageInline:https://host/inlineGraphic_sym-a.png|" in markup
        assert (tmp_path / "public" / "inlineGraphic_sym-a.png").read_bytes() == b"png"

    def test_missing_href(self):
        markup = InlineGraphicBuilder("", "").build(Node(name="inline-graphic"))
        assert markup == "!! Error processing inline graphic !!"


class TestMathMLLatexConverter:
    """Tests for the MathML to LaTeX conversion."""

    converter = MathMLLatexConverter()

    def test_fraction(self):
        result = self.converter.convert(MATHML.format("<mfrac><mi>a</mi><mn>2</mn></mfrac>"))
        assert result == "==\\begin{align*}\\frac{a}{2}\\end{align*}==|latex|"

    def test_superscript(self):
        result = self.converter.convert(MATHML.format("<msup><mi>x</mi><mn>2</mn></msup>"))
        assert "{x}^{2}" in result

    def test_operators_and_names(self):
        result = self.converter.convert(MATHML.format(
            "<mi>sin</mi><mi>a</mi><mo>×</mo><mi>b</mi>"))
        assert "\\mathrm{sin}a\\times b" in result

    def test_hdots_replaced(self):
        result = self.converter.convert(MATHML.format("<mo>…</mo>"))
        assert result == "==\\begin{align*}\\cdots\\end{align*}==|latex|"

    def test_invalid_input(self):
        assert self.converter.convert("<math") == MathMLLatexConverter.ERROR_MARKUP
        assert self.converter.convert("") == MathMLLatexConverter.ERROR_MARKUP
        assert self.converter.convert(MATHML.format("")) == MathMLLatexConverter.ERROR_MARKUP

    def test_prefixed_fragment(self):
        fragment = wrap_mathml("<mml:math><mml:mi>x</mml:mi></mml:math>")
        assert 'xmlns:mml="http://www.w3.org/1998/Math/MathML"' in fragment
        assert self.converter.convert(fragment) == "==\\begin{align*}x\\end{align*}==|latex|"


class TestAssetPublisher:
    def test_publish_copies(self, tmp_path):
        source = tmp_path / "fig1.png"
        source.write_bytes(b"data")
        publisher = LocalAssetPublisher(tmp_path / "public", "https://host/img/")

        assert publisher.publish(source, "images_fig1.png") == "https://host/img/images_fig1.png"
        assert (tmp_path / "public" / "images_fig1.png").read_bytes() == b"data"
        assert publisher.published == ["images_fig1.png"]

    def test_missing_source(self, tmp_path):
        publisher = LocalAssetPublisher(tmp_path / "public", "https://host/")
        assert publisher.publish(tmp_path / "nope.png", "nope.png") == "https://host/nope.png"
        assert publisher.published == []


class TestHtmlFileTableRenderer:
    """Tests for the table page queue."""

    def test_render_writes_page_and_list(self, tmp_path):
        renderer = HtmlFileTableRenderer(tmp_path)
        renderer.render("<table><tr><td>1</td></tr></table>", "tab_1_1")

        html_path, png_path = renderer.pending()[0]
        assert html_path == tmp_path / "images" / "tab_1_1.html"
        assert png_path.name == "tab_1_1.png"
        page = html_path.read_text(encoding="utf-8")
        assert "<td>1</td>" in page
        assert "border-collapse: collapse" in page

    def test_flush_in_order(self, tmp_path):
        rendered = []

        def rasterize(html_path, png_path):
            rendered.append(png_path.name)
            png_path.write_bytes(b"png")

        publisher = LocalAssetPublisher(tmp_path / "public", "https://host/")
        renderer = HtmlFileTableRenderer(tmp_path / "work", publisher=publisher, rasterizer=rasterize)
        renderer.render("<table/>", "tab_1_1")
        renderer.render("<table/>", "tab_2_2")

        assert renderer.flush() == 2
        assert rendered == ["tab_1_1.png", "tab_2_2.png"]
        assert publisher.published == ["tab_1_1.png", "tab_2_2.png"]

    def test_flush_without_rasterizer_keeps_list(self, tmp_path):
        renderer = HtmlFileTableRenderer(tmp_path)
        renderer.render("<table/>", "tab_1_1")
        assert renderer.flush() == 0
        assert len(renderer.pending()) == 1

    def test_new_run_starts_with_empty_list(self, tmp_path):
        HtmlFileTableRenderer(tmp_path).render("<table/>", "tab_1_1")
        assert HtmlFileTableRenderer(tmp_path).pending() == []

    def test_page_without_border(self):
        page = generate_html_page("<table/>", {"td": "border: none;"})
        assert "td { border: none; }" in page
