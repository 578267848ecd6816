"""
Local Collaborators
===================

Default collaborator implementations that work on the local file system:

- LocalAssetPublisher: copies assets into a public images directory
- HtmlFileTableRenderer: writes table HTML pages plus an upload list and
  rasterizes them after the walk through a pluggable callable
- MathMLLatexConverter: MathML to LaTeX conversion based on lxml
"""

from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union
import logging
import shutil

from lxml import etree

from bitmark_core.adapters.base import AssetPublisher, FormulaConverter, ImageRenderer
from bitmark_core.xml.utils import MATHML_NS, local_name

logger = logging.getLogger(__name__)

UPLOAD_LIST_FILENAME = "upload_file_list.txt"

# Rasterizer signature: (html_path, png_path) -> None
Rasterizer = Callable[[Path, Path], None]


# ============================================================================
# Asset publishing
# ============================================================================

class LocalAssetPublisher(AssetPublisher):
    """
    Copy assets into a directory served under ``base_url``.

    Example usage:
        publisher = LocalAssetPublisher("public/images", "https://host/images/")
        url = publisher.publish("work/fig1.svg", "fig1.svg")
    """

    def __init__(self, public_dir: Union[str, Path], base_url: str = ""):
        self.public_dir = Path(public_dir)
        self.base_url = base_url
        self.published: List[str] = []

    def publish(self, local_path: Union[str, Path], public_filename: str) -> str:
        url = f"{self.base_url}{public_filename}"
        source = Path(local_path)
        if not source.is_file():
            logger.error(f"Cannot publish {source}: file not found")
            return url

        self.public_dir.mkdir(parents=True, exist_ok=True)
        destination = self.public_dir / public_filename
        shutil.copyfile(source, destination)
        self.published.append(public_filename)
        logger.debug(f"Published {source} -> {destination}")
        return url


# ============================================================================
# Table rendering
# ============================================================================

TABLE_CSS: Dict[str, str] = {
    ".table-container": "margin: 1mm 3px 5px 3px; padding: 0px 0px 3px 0px;",
    ".img-container": "display: inline-block; vertical-align: baseline;",
    ".img-container img": "vertical-align: middle; display: inline-block;",
    "table": "border-collapse: collapse; font-family: 'Univers LT Std', sans-serif;",
    "th": "border: 1px solid #000; background-color: transparent; padding: 3px; empty-cells: show;",
    "td": "border: 1px solid #000; padding: 5px; vertical-align: top; empty-cells: show;",
    "tr": "display: table-row; vertical-align: top; background-color: transparent;",
}

NO_BORDER_CSS: Dict[str, str] = dict(
    TABLE_CSS,
    th="border: 1px solid transparent; background-color: transparent; padding: 3px; empty-cells: show;",
    td="border: 1px solid transparent; padding: 5px; vertical-align: top; empty-cells: show;",
)


def generate_html_page(table_html: str, css: Optional[Dict[str, str]] = None) -> str:
    """Wrap a table fragment into a standalone HTML page."""
    css = css or TABLE_CSS
    rules = "\n".join(f"        {selector} {{ {style} }}" for selector, style in css.items())
    return (
        "<!DOCTYPE html>\n"
        "<html lang=\"en\">\n"
        "<head>\n"
        "    <meta charset=\"UTF-8\">\n"
        "    <title>HTML Table to PNG</title>\n"
        "    <style>\n"
        f"{rules}\n"
        "    </style>\n"
        "</head>\n"
        "<body>\n"
        "    <div class=\"table-container\">\n"
        f"        {table_html}\n"
        "    </div>\n"
        "</body>\n"
        "</html>\n"
    )


class HtmlFileTableRenderer(ImageRenderer):
    """
    Writes ``<filename>.html`` pages and an upload list; rasterizes on flush.

    Every ``render`` call writes the HTML page into ``<work_dir>/<images>``
    and appends a ``html_path,png_path`` line to ``upload_file_list.txt``.
    ``flush`` walks the list strictly in order. Each page is rasterized by
    the configured callable and the resulting PNG is handed to the
    publisher; without a rasterizer the list is left for an external tool.

    Example usage:
        renderer = HtmlFileTableRenderer("work/session1", rasterizer=screenshot)
        renderer.render("<table>...</table>", "tab_1_1700000000")
        renderer.flush()
    """

    def __init__(self, work_dir: Union[str, Path], images_dirname: str = "images",
                 publisher: Optional[AssetPublisher] = None,
                 rasterizer: Optional[Rasterizer] = None):
        self.work_dir = Path(work_dir)
        self.images_dir = self.work_dir / images_dirname
        self.file_list_path = self.work_dir / UPLOAD_LIST_FILENAME
        self.publisher = publisher
        self.rasterizer = rasterizer

        self.images_dir.mkdir(parents=True, exist_ok=True)
        if self.file_list_path.exists():
            self.file_list_path.unlink()

    def render(self, html: str, filename: str, no_border: bool = False) -> None:
        html_path = self.images_dir / f"{filename}.html"
        png_path = self.images_dir / f"{filename}.png"
        html_path.write_text(
            generate_html_page(html, NO_BORDER_CSS if no_border else TABLE_CSS),
            encoding="utf-8",
        )
        with open(self.file_list_path, "a", encoding="utf-8") as f:
            f.write(f"{html_path},{png_path}\n")
        logger.debug(f"Queued table page {html_path.name}")

    def pending(self) -> List[Tuple[Path, Path]]:
        """Queued (html, png) pairs in queue order."""
        if not self.file_list_path.exists():
            return []
        pairs = []
        for line in self.file_list_path.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            html_file, png_file = line.split(",", 1)
            pairs.append((Path(html_file.strip()), Path(png_file.strip())))
        return pairs

    def flush(self) -> int:
        pairs = self.pending()
        if not pairs:
            return 0
        if self.rasterizer is None:
            logger.info(f"{len(pairs)} table pages listed in {self.file_list_path} "
                        f"for external rendering")
            return 0

        processed = 0
        for index, (html_path, png_path) in enumerate(pairs, start=1):
            if not html_path.exists():
                logger.error(f"HTML file does not exist: {html_path}")
                continue
            logger.debug(f"[{index}/{len(pairs)}] rendering {html_path.name}")
            self.rasterizer(html_path, png_path)
            if self.publisher is not None:
                self.publisher.publish(png_path, png_path.name)
            processed += 1

        logger.info(f"Rendered {processed} of {len(pairs)} table images")
        return processed


# ============================================================================
# MathML to LaTeX
# ============================================================================

# Operators and identifiers with a LaTeX command of their own
LATEX_SYMBOLS: Dict[str, str] = {
    "×": r"\times ",
    "·": r"\cdot ",
    "⋅": r"\cdot ",
    "÷": r"\div ",
    "±": r"\pm ",
    "∓": r"\mp ",
    "≤": r"\leq ",
    "≥": r"\geq ",
    "≠": r"\neq ",
    "≈": r"\approx ",
    "≡": r"\equiv ",
    "∞": r"\infty ",
    "→": r"\rightarrow ",
    "←": r"\leftarrow ",
    "∑": r"\sum ",
    "∏": r"\prod ",
    "∫": r"\int ",
    "∂": r"\partial ",
    "∆": r"\Delta ",
    "Δ": r"\Delta ",
    "Ω": r"\Omega ",
    "Φ": r"\Phi ",
    "Σ": r"\Sigma ",
    "α": r"\alpha ",
    "β": r"\beta ",
    "γ": r"\gamma ",
    "δ": r"\delta ",
    "ε": r"\varepsilon ",
    "η": r"\eta ",
    "θ": r"\theta ",
    "λ": r"\lambda ",
    "μ": r"\mu ",
    "π": r"\pi ",
    "ρ": r"\rho ",
    "σ": r"\sigma ",
    "τ": r"\tau ",
    "φ": r"\varphi ",
    "ω": r"\omega ",
    "…": r"\hdots ",
    "⋯": r"\cdots ",
    "%": r"\%",
    "&": r"\&",
    "#": r"\#",
}

_FENCES = {"(": "(", ")": ")", "[": "[", "]": "]", "{": r"\{", "}": r"\}", "|": "|"}


class MathMLLatexConverter(FormulaConverter):
    """
    Converts MathML into a ``latex`` inline markup fragment.

    The result is ``==\\begin{align*}...\\end{align*}==|latex|``. ``\\hdots``
    is replaced by ``\\cdots`` for the downstream renderer; content that
    cannot be parsed or yields nothing becomes ``==Error in Formula==|latex|``.
    """

    ERROR_MARKUP = "==Error in Formula==|latex|"

    def convert(self, mathml: str) -> str:
        if not mathml:
            return self.ERROR_MARKUP
        try:
            root = etree.fromstring(mathml.encode("utf-8"))
        except etree.XMLSyntaxError as e:
            logger.warning(f"Unparseable MathML: {e}")
            return self.ERROR_MARKUP

        latex = self.to_latex(root).strip()
        if not latex:
            return self.ERROR_MARKUP
        latex = latex.replace(r"\hdots", r"\cdots")
        return f"==\\begin{{align*}}{latex}\\end{{align*}}==|latex|"

    # -- element conversion ------------------------------------------------

    def to_latex(self, element) -> str:
        name = local_name(element)
        handler = getattr(self, f"_m_{name.replace('-', '_')}", None)
        if handler is not None:
            return handler(element)
        # math, mrow, mstyle, mpadded, semantics ...
        return self._children(element)

    def _children(self, element) -> str:
        return "".join(self.to_latex(child) for child in element if local_name(child))

    def _args(self, element) -> List[str]:
        return [self.to_latex(child) for child in element if local_name(child)]

    @staticmethod
    def _text(element) -> str:
        return "".join(element.itertext()).strip()

    def _symbol(self, element) -> str:
        text = self._text(element)
        return "".join(LATEX_SYMBOLS.get(ch, ch) for ch in text)

    def _m_mi(self, element) -> str:
        text = self._text(element)
        if len(text) > 1 and text not in LATEX_SYMBOLS:
            return rf"\mathrm{{{text}}}"
        return self._symbol(element)

    def _m_mn(self, element) -> str:
        return self._text(element)

    def _m_mo(self, element) -> str:
        return self._symbol(element)

    def _m_mtext(self, element) -> str:
        text = self._text(element)
        return rf"\text{{{text}}}" if text else ""

    def _m_mspace(self, element) -> str:
        return r"\ "

    def _m_mfrac(self, element) -> str:
        args = self._args(element) + ["", ""]
        return rf"\frac{{{args[0]}}}{{{args[1]}}}"

    def _m_msqrt(self, element) -> str:
        return rf"\sqrt{{{self._children(element)}}}"

    def _m_mroot(self, element) -> str:
        args = self._args(element) + ["", ""]
        return rf"\sqrt[{args[1]}]{{{args[0]}}}"

    def _m_msup(self, element) -> str:
        args = self._args(element) + ["", ""]
        return f"{{{args[0]}}}^{{{args[1]}}}"

    def _m_msub(self, element) -> str:
        args = self._args(element) + ["", ""]
        return f"{{{args[0]}}}_{{{args[1]}}}"

    def _m_msubsup(self, element) -> str:
        args = self._args(element) + ["", "", ""]
        return f"{{{args[0]}}}_{{{args[1]}}}^{{{args[2]}}}"

    def _m_munder(self, element) -> str:
        args = self._args(element) + ["", ""]
        return rf"\underset{{{args[1]}}}{{{args[0]}}}"

    def _m_mover(self, element) -> str:
        args = self._args(element) + ["", ""]
        if args[1].strip() in ("¯", "‾", "-"):
            return rf"\overline{{{args[0]}}}"
        return rf"\overset{{{args[1]}}}{{{args[0]}}}"

    def _m_munderover(self, element) -> str:
        args = self._args(element) + ["", "", ""]
        return f"{args[0]}_{{{args[1]}}}^{{{args[2]}}}"

    def _m_mfenced(self, element) -> str:
        opening = _FENCES.get(element.get("open", "("), element.get("open", "("))
        closing = _FENCES.get(element.get("close", ")"), element.get("close", ")"))
        separator = element.get("separators", ",")[:1]
        inner = separator.join(self._args(element))
        return rf"\left{opening}{inner}\right{closing}"

    def _m_mtable(self, element) -> str:
        rows = [self.to_latex(row) for row in element if local_name(row) in ("mtr", "mlabeledtr")]
        return r" \\ ".join(rows)

    def _m_mtr(self, element) -> str:
        return " & ".join(self._args(element))

    def _m_mtd(self, element) -> str:
        return self._children(element)

    def _m_annotation(self, element) -> str:
        return ""

    def _m_annotation_xml(self, element) -> str:
        return ""


def wrap_mathml(fragment: str) -> str:
    """Declare the ``mml`` prefix on a serialized ``mml:math`` fragment."""
    if "xmlns:mml=" in fragment:
        return fragment
    return fragment.replace("<mml:math", f'<mml:math xmlns:mml="{MATHML_NS}"', 1)
