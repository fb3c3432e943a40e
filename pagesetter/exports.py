"""
Non-PDF exports: Word-compatible HTML, standalone HTML, and plain text.
"""

from __future__ import annotations

import html as htmllib
import logging
from pathlib import Path

from .cleaning import clean_lines, strip_soft_hyphens
from .models import Break, ContentNode, Document, Element, Leaf, Text
from .parser import BLOCK_TAGS, to_html
from .pdf.builder import paginate_document
from .pdf.pdf_settings import PageSettings

logger = logging.getLogger(__name__)

_WORD_TEMPLATE = """<html xmlns:o="urn:schemas-microsoft-com:office:office" \
xmlns:w="urn:schemas-microsoft-com:office:word" xmlns="http://www.w3.org/TR/REC-html40">
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
@page {{ size: {width}mm {height}mm; margin: {top}mm {right}mm {bottom}mm {left}mm; }}
body {{ font-family: {font}; }}
</style>
</head>
<body>
{body}
</body>
</html>
"""

_HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
@page {{ size: {width}mm {height}mm; margin: {top}mm {right}mm {bottom}mm {left}mm; }}
</style>
</head>
<body>
{body}
</body>
</html>
"""


def export_word_html(
    document: Document,
    *,
    settings: PageSettings | None = None,
    px_per_mm: float | None = None,
    base_dir: Path | None = None,
) -> str:
    """Return Word-compatible HTML holding only the first page's content.

    Args:
        document: Document to export.
        settings: Optional PageSettings override.
        px_per_mm: Live pixel density.
        base_dir: Directory for relative image paths.
    Returns:
        HTML text with an ``@page`` rule for the paper size and margins.
    """

    pages = paginate_document(document, settings=settings, px_per_mm=px_per_mm, base_dir=base_dir)
    first = pages[0]
    if len(pages) > 1:
        logger.info("Word export keeps page 1 of %d", len(pages))
    geometry = first.geometry
    return _WORD_TEMPLATE.format(
        title=htmllib.escape(document.title),
        width=_mm(geometry.paper_width_mm),
        height=_mm(geometry.paper_height_mm),
        top=_mm(geometry.margin_top_mm),
        right=_mm(geometry.margin_right_mm),
        bottom=_mm(geometry.margin_bottom_mm),
        left=_mm(geometry.margin_left_mm),
        font=(settings or PageSettings()).font_name,
        body=to_html(first.nodes),
    )


def export_html(document: Document, *, settings: PageSettings | None = None) -> str:
    """Return a standalone HTML page wrapping the whole document.

    Page breaks are kept as break markers so the file can be re-imported.
    """

    resolved = settings or PageSettings()
    width, height = resolved.paper_mm
    sides = document.margins.as_mm()
    return _HTML_TEMPLATE.format(
        title=htmllib.escape(document.title),
        width=_mm(width),
        height=_mm(height),
        top=_mm(sides["top"]),
        right=_mm(sides["right"]),
        bottom=_mm(sides["bottom"]),
        left=_mm(sides["left"]),
        body=to_html(document.content.children),
    )


def export_text(document: Document) -> str:
    """Return the document as plain text.

    Block elements end a line; lines are trimmed and blank lines dropped.

    Example:
        >>> from pagesetter.parser import parse_html
        >>> export_text(Document("t", parse_html("<h1> A </h1><p>b</p>")))
        'A\\nb'
    """

    parts: list[str] = []
    _collect_text(document.content.children, parts)
    return clean_lines(strip_soft_hyphens("".join(parts)))


def _collect_text(nodes: tuple[ContentNode, ...], parts: list[str]) -> None:
    for node in nodes:
        if isinstance(node, Text):
            parts.append(node.text)
        elif isinstance(node, Break):
            parts.append("\n")
        elif isinstance(node, (Element, Leaf)):
            if node.tag == "br":
                parts.append("\n")
                continue
            _collect_text(node.children, parts)
            if node.tag in BLOCK_TAGS or node.tag in {"tr", "td", "th"}:
                parts.append("\n")


def _mm(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".")
