"""Conversion of content nodes into ReportLab flowables."""

from __future__ import annotations

import html as htmllib
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Sequence

from pyphen import Pyphen
from reportlab.lib import colors
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.utils import ImageReader
from reportlab.platypus import Flowable, Paragraph, Preformatted, Spacer, Table
from reportlab.platypus.flowables import HRFlowable
from reportlab.platypus.tables import TableStyle

from ..models import ContentNode, Element, Leaf, Text, text_content
from ..parser import BLOCK_TAGS
from ..text import hyphenate_text
from ..units import parse_length, px_to_mm
from .pdf_assets import ImageAsset
from .pdf_constants import POINTS_PER_MM

_INLINE_TAGS = {
    "b": "b",
    "strong": "b",
    "i": "i",
    "em": "i",
    "u": "u",
    "ins": "u",
    "s": "strike",
    "strike": "strike",
    "del": "strike",
    "sup": "super",
    "sub": "sub",
}
_MONO_TAGS = {"code", "kbd", "samp", "tt"}
_CONTAINER_STYLES = {"blockquote": "blockquote", "pre": "pre", "figcaption": "caption"}
_DEFAULT_BOX_PX = (300.0, 150.0)
_BARE_NUMBER = re.compile(r"^\s*\d+(\.\d+)?\s*$")


@dataclass(slots=True)
class FlowContext:
    """Inputs needed to turn nodes into flowables.

    Args:
        styles: Paragraph styles keyed by tag or role.
        width: Available content width in points.
        px_per_mm: Ratio for ``px`` attributes.
        assets: Loaded images keyed by ``src``.
        hyphenator: Optional Pyphen dictionary for soft hyphens.
    """

    styles: Dict[str, ParagraphStyle]
    width: float
    px_per_mm: float
    assets: Mapping[str, ImageAsset] = field(default_factory=dict)
    hyphenator: Pyphen | None = None


class StackedFlowable(Flowable):
    """Stack child flowables vertically as a single unbreakable block.

    Vertical space between neighbours is the sum of the upper flowable's
    ``spaceAfter`` and the lower one's ``spaceBefore``; no space is added
    above the first or below the last child.
    """

    def __init__(self, content: Sequence[Flowable]) -> None:
        super().__init__()
        self.content = list(content)
        self.width = 0.0
        self.height = 0.0
        self._placements: List[tuple[Flowable, float]] = []

    def wrap(self, aW: float, aH: float) -> tuple[float, float]:
        """Measure total height for the stacked content.

        Args:
            aW: Available width for wrapping.
            aH: Available height for wrapping.
        Returns:
            Tuple of (width, height).
        """

        self.width = aW
        y = 0.0
        placements: List[tuple[Flowable, float]] = []
        last = len(self.content) - 1
        for idx, child in enumerate(self.content):
            if idx > 0:
                y += child.getSpaceBefore()
            _, height = child.wrap(aW, aH)
            y += height
            placements.append((child, y))
            if idx < last:
                y += child.getSpaceAfter()
        self._placements = placements
        self.height = y
        return aW, self.height

    def draw(self) -> None:
        """Draw child flowables from top to bottom."""

        for child, bottom in self._placements:
            child.drawOn(self.canv, 0, self.height - bottom)


class BoxFlowable(Flowable):
    """Fixed-size picture, or a light placeholder box when no image is loaded."""

    def __init__(self, *, width: float, height: float, image: ImageReader | None = None) -> None:
        super().__init__()
        self.width = width
        self.height = height
        self.image = image

    def wrap(self, aW: float, aH: float) -> tuple[float, float]:
        return self.width, self.height

    def draw(self) -> None:
        if self.image is not None:
            self.canv.drawImage(self.image, 0, 0, self.width, self.height, mask="auto")
            return
        self.canv.saveState()
        self.canv.setStrokeColor(colors.lightgrey)
        self.canv.setFillColor(colors.whitesmoke)
        self.canv.rect(0, 0, self.width, self.height, stroke=1, fill=1)
        self.canv.restoreState()


def page_flowable(*, nodes: Sequence[ContentNode], ctx: FlowContext) -> StackedFlowable:
    """Return one stacked flowable holding a page's worth of nodes."""

    return StackedFlowable(block_flowables(nodes=nodes, ctx=ctx))


def block_flowables(
    *, nodes: Sequence[ContentNode], ctx: FlowContext, style_key: str = "body", depth: int = 0
) -> List[Flowable]:
    """Convert a run of sibling nodes into block flowables.

    Consecutive text and inline elements are gathered into one Paragraph
    with ``style_key``; block elements and leaves become their own flowables.

    Args:
        nodes: Sibling content nodes.
        ctx: Flow context.
        style_key: Style used for loose inline runs.
        depth: List nesting depth.
    Returns:
        Flowables in document order.
    """

    flowables: List[Flowable] = []
    inline: List[ContentNode] = []

    def flush() -> None:
        markup = inline_markup(nodes=inline, ctx=ctx)
        inline.clear()
        if markup.strip():
            flowables.append(Paragraph(markup, ctx.styles[style_key]))

    for node in nodes:
        if isinstance(node, Text):
            inline.append(node)
        elif isinstance(node, Leaf):
            flush()
            flowables.extend(_leaf_flowables(node=node, ctx=ctx))
        elif isinstance(node, Element) and node.tag in BLOCK_TAGS:
            flush()
            flowables.extend(_element_flowables(node=node, ctx=ctx, style_key=style_key, depth=depth))
        elif isinstance(node, Element):
            inline.append(node)
    flush()
    return flowables


def _element_flowables(
    *, node: Element, ctx: FlowContext, style_key: str, depth: int
) -> List[Flowable]:
    """Return flowables for a block element.

    Args:
        node: Block element.
        ctx: Flow context.
        style_key: Inherited style key.
        depth: List nesting depth.
    Returns:
        Flowables for the element.
    """

    if node.tag in ctx.styles and node.tag.startswith("h"):
        return block_flowables(nodes=node.children, ctx=ctx, style_key=node.tag, depth=depth)
    if node.tag in {"ul", "ol"}:
        return _list_flowables(node=node, ctx=ctx, depth=depth)
    if node.tag == "pre":
        text = text_content(node.children)
        return [Preformatted(text, ctx.styles["pre"])] if text else []
    key = _CONTAINER_STYLES.get(node.tag, style_key)
    return block_flowables(nodes=node.children, ctx=ctx, style_key=key, depth=depth)


def _list_flowables(*, node: Element, ctx: FlowContext, depth: int) -> List[Flowable]:
    """Return bulleted or numbered paragraphs for a list.

    Args:
        node: ``ul`` or ``ol`` element.
        ctx: Flow context.
        depth: Nesting depth of this list.
    Returns:
        Flowables for every item, nested lists included.
    """

    ordered = node.tag == "ol"
    number = list_start(node)
    style = _list_style(base=ctx.styles["li"], depth=depth)
    flowables: List[Flowable] = []
    for child in node.children:
        if not (isinstance(child, Element) and child.tag == "li"):
            flowables.extend(block_flowables(nodes=[child], ctx=ctx, style_key="li", depth=depth))
            continue
        bullet = f"{number}." if ordered else "•"
        number += 1
        inline = [part for part in child.children if not _is_block(part)]
        blocks = [part for part in child.children if _is_block(part)]
        markup = inline_markup(nodes=inline, ctx=ctx)
        flowables.append(Paragraph(markup, style, bulletText=bullet))
        for part in blocks:
            if isinstance(part, Element) and part.tag in {"ul", "ol"}:
                flowables.extend(_list_flowables(node=part, ctx=ctx, depth=depth + 1))
            else:
                flowables.extend(block_flowables(nodes=[part], ctx=ctx, style_key="li", depth=depth))
    return flowables


def list_start(node: Element) -> int:
    """Return the first number of an ordered list."""

    try:
        return int(node.attr("start", "1") or 1)
    except ValueError:
        return 1


def _list_style(*, base: ParagraphStyle, depth: int) -> ParagraphStyle:
    if depth == 0:
        return base
    return ParagraphStyle(
        f"{base.name}-{depth}",
        parent=base,
        leftIndent=base.leftIndent * (depth + 1),
        bulletIndent=base.bulletIndent + base.leftIndent * depth,
    )


def _is_block(node: ContentNode) -> bool:
    return isinstance(node, Leaf) or (isinstance(node, Element) and node.tag in BLOCK_TAGS)


def inline_markup(*, nodes: Sequence[ContentNode], ctx: FlowContext) -> str:
    """Convert inline nodes into ReportLab paragraph markup.

    Args:
        nodes: Text and inline elements.
        ctx: Flow context.
    Returns:
        Markup string understood by ``Paragraph``.

    Example:
        >>> from pagesetter.models import element
        >>> inline_markup(nodes=[element("b", "a & b")], ctx=FlowContext(styles={}, width=1, px_per_mm=1))
        '<b>a &amp; b</b>'
    """

    parts: List[str] = []
    for node in nodes:
        if isinstance(node, Text):
            text = hyphenate_text(node.text, ctx.hyphenator) if ctx.hyphenator else node.text
            parts.append(htmllib.escape(text, quote=False))
            continue
        if not isinstance(node, (Element, Leaf)):
            continue
        if node.tag == "br":
            parts.append("<br/>")
            continue
        inner = inline_markup(nodes=node.children, ctx=ctx)
        if node.tag in _INLINE_TAGS:
            tag = _INLINE_TAGS[node.tag]
            parts.append(f"<{tag}>{inner}</{tag}>")
        elif node.tag in _MONO_TAGS:
            parts.append(f'<font face="Courier">{inner}</font>')
        elif node.tag == "a" and node.attr("href"):
            href = htmllib.escape(node.attr("href") or "", quote=True)
            parts.append(f'<a href="{href}" color="blue">{inner}</a>')
        else:
            parts.append(inner)
    return "".join(parts)


def _leaf_flowables(*, node: Leaf, ctx: FlowContext) -> List[Flowable]:
    """Return flowables for an atomic node.

    Args:
        node: Leaf node.
        ctx: Flow context.
    Returns:
        Flowables for the leaf; a figure becomes one stacked block.
    """

    if node.tag == "img":
        return [_image_flowable(node=node, ctx=ctx)]
    if node.tag == "table":
        return [_table_flowable(node=node, ctx=ctx)]
    if node.tag == "hr":
        return [
            HRFlowable(
                width="100%",
                thickness=2,
                color=colors.HexColor("#d72828"),
                spaceBefore=ctx.styles["body"].fontSize * 0.6,
                spaceAfter=ctx.styles["body"].fontSize * 0.6,
            )
        ]
    if node.tag == "figure":
        content = block_flowables(nodes=node.children, ctx=ctx)
        return [StackedFlowable(content)] if content else []
    width, height = _box_size(node=node, ctx=ctx, intrinsic=None)
    return [BoxFlowable(width=width, height=height)]


def _image_flowable(*, node: Leaf, ctx: FlowContext) -> Flowable:
    """Return a picture flowable sized from attributes or the loaded asset."""

    asset = ctx.assets.get(node.attr("src") or "")
    intrinsic = (float(asset.width_px), float(asset.height_px)) if asset else None
    width, height = _box_size(node=node, ctx=ctx, intrinsic=intrinsic)
    reader = ImageReader(asset.image) if asset else None
    return BoxFlowable(width=width, height=height, image=reader)


def _box_size(
    *, node: Leaf, ctx: FlowContext, intrinsic: tuple[float, float] | None
) -> tuple[float, float]:
    """Return (width, height) in points, scaled down to the available width.

    Args:
        node: Leaf with optional ``width``/``height`` attributes (pixels).
        ctx: Flow context.
        intrinsic: Intrinsic pixel size of a loaded image.
    Returns:
        Width and height in points.
    """

    default_w, default_h = intrinsic or _DEFAULT_BOX_PX
    width_px = _attr_px(node.attr("width"), ctx=ctx)
    height_px = _attr_px(node.attr("height"), ctx=ctx)
    if width_px is None and height_px is None:
        width_px, height_px = default_w, default_h
    elif width_px is None:
        width_px = height_px * default_w / default_h if default_h else 0.0
    elif height_px is None:
        height_px = width_px * default_h / default_w if default_w else 0.0
    width = px_to_mm(width_px, ctx.px_per_mm) * POINTS_PER_MM
    height = px_to_mm(height_px, ctx.px_per_mm) * POINTS_PER_MM
    if width > ctx.width > 0:
        height *= ctx.width / width
        width = ctx.width
    return width, height


def _attr_px(value: str | None, *, ctx: FlowContext) -> float | None:
    """Parse an HTML size attribute; bare numbers are CSS pixels."""

    if not value or value.strip().endswith("%"):
        return None
    text = f"{value.strip()}px" if _BARE_NUMBER.match(value) else value
    length = parse_length(text, fallback_mm=-1.0)
    if length.value < 0:
        return None
    return length.to_px(px_per_mm=ctx.px_per_mm)


def _table_flowable(*, node: Leaf, ctx: FlowContext) -> Flowable:
    """Return a ReportLab Table for a ``table`` leaf.

    Args:
        node: Table leaf.
        ctx: Flow context.
    Returns:
        Table flowable, or an empty spacer for a table without cells.
    """

    rows = list(_table_rows(node.children))
    if not rows:
        return Spacer(0, 0)
    columns = max(len(row) for row in rows)
    header = ParagraphStyle("CellHeader", parent=ctx.styles["cell"], fontName=ctx.styles["h6"].fontName)
    data = []
    for row in rows:
        cells = [
            Paragraph(inline_markup(nodes=cell.children, ctx=ctx), header if cell.tag == "th" else ctx.styles["cell"])
            for cell in row
        ]
        data.append(cells + [""] * (columns - len(cells)))
    col_width = ctx.width / columns if ctx.width > 0 else None
    table = Table(data, colWidths=[col_width] * columns if col_width else None)
    table.setStyle(
        TableStyle(
            [
                ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#cccccc")),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("LEFTPADDING", (0, 0), (-1, -1), 6),
                ("RIGHTPADDING", (0, 0), (-1, -1), 6),
            ]
        )
    )
    table.spaceBefore = ctx.styles["body"].fontSize
    table.spaceAfter = ctx.styles["body"].fontSize
    return table


def _table_rows(nodes: Sequence[ContentNode]):
    """Yield rows of ``td``/``th`` elements, descending through row groups."""

    for node in nodes:
        if not isinstance(node, (Element, Leaf)):
            continue
        if node.tag == "tr":
            cells = [
                cell
                for cell in node.children
                if isinstance(cell, (Element, Leaf)) and cell.tag in {"td", "th"}
            ]
            if cells:
                yield cells
        elif node.tag in {"thead", "tbody", "tfoot"}:
            yield from _table_rows(node.children)
