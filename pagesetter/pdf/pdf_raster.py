"""Raster export path: render once, then slice into page-height strips."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, List, Mapping, Protocol, Sequence, Tuple

from PIL import Image, ImageDraw, ImageFont

from ..cleaning import normalize_whitespace
from ..errors import RenderError
from ..models import Break, ContentNode, Element, Leaf, RasterPage, text_content
from ..parser import BLOCK_TAGS
from .pdf_assets import ImageAsset
from .pdf_constants import DEFAULT_SCALE, WHITE
from .pdf_flowables import _table_rows, list_start
from .pdf_geometry import PageGeometry
from .pdf_settings import HEADING_SCALE

logger = logging.getLogger(__name__)

_INK = (0, 0, 0)
_RULE = (215, 40, 40)
_GRID = (204, 204, 204)
_PLACEHOLDER = (245, 245, 245)
_DEFAULT_BOX_PX = (300.0, 150.0)


class Renderer(Protocol):
    """Renders a whole content tree onto one tall image."""

    def render(self, tree: ContentNode, *, width_px: float, scale: float) -> Image.Image:
        """Return an RGB image ``width_px * scale`` wide on a white background."""


@dataclass(slots=True)
class _DrawOp:
    """One deferred drawing instruction in surface pixels."""

    kind: str
    box: Tuple[float, float, float, float]
    text: str = ""
    size: float = 0.0
    image: Image.Image | None = None


@dataclass(slots=True)
class _Layout:
    """Top-down block layout state for :class:`PillowRenderer`."""

    width: float
    scale: float
    font_px: float
    line_ratio: float
    assets: Mapping[str, ImageAsset]
    y: float = 0.0
    ops: List[_DrawOp] = field(default_factory=list)
    _fonts: dict = field(default_factory=dict)

    def font(self, size: float) -> ImageFont.ImageFont | ImageFont.FreeTypeFont:
        key = max(1, round(size))
        if key not in self._fonts:
            self._fonts[key] = ImageFont.load_default(size=key)
        return self._fonts[key]

    def gap(self, size: float) -> None:
        if self.y > 0:
            self.y += size * 0.5

    def blocks(self, nodes: Sequence[ContentNode], *, indent: float = 0.0, size: float | None = None) -> None:
        """Lay out sibling nodes, gathering inline runs into paragraphs."""

        size = size or self.font_px * self.scale
        inline: List[ContentNode] = []

        def flush() -> None:
            text = _flat_text(inline)
            inline.clear()
            if text:
                self.gap(size)
                self.paragraph(text, indent=indent, size=size)

        for node in nodes:
            if isinstance(node, Break):
                continue
            if isinstance(node, Leaf):
                flush()
                self.leaf(node, indent=indent)
            elif isinstance(node, Element) and node.tag in BLOCK_TAGS:
                flush()
                self.element(node, indent=indent, size=size)
            else:
                inline.append(node)
        flush()

    def element(self, node: Element, *, indent: float, size: float) -> None:
        base = self.font_px * self.scale
        if node.tag in HEADING_SCALE:
            self.blocks(node.children, indent=indent, size=base * HEADING_SCALE[node.tag])
        elif node.tag in {"ul", "ol"}:
            self.list_items(node, indent=indent, size=size)
        elif node.tag == "pre":
            self.gap(size)
            for line in text_content(node.children).splitlines() or [""]:
                self.line(line, x=indent, size=size)
        elif node.tag == "blockquote":
            self.blocks(node.children, indent=indent + 2 * size, size=size)
        else:
            self.blocks(node.children, indent=indent, size=size)

    def list_items(self, node: Element, *, indent: float, size: float) -> None:
        number = list_start(node)
        inner = indent + 2 * size
        for child in node.children:
            if not (isinstance(child, Element) and child.tag == "li"):
                self.blocks([child], indent=inner, size=size)
                continue
            marker = f"{number}." if node.tag == "ol" else "•"
            number += 1
            self.gap(size)
            self.ops.append(_DrawOp(kind="text", box=(indent + size * 0.5, self.y, 0, 0), text=marker, size=size))
            top = self.y
            self.blocks(child.children, indent=inner, size=size)
            if self.y == top:
                self.y += size * self.line_ratio

    def paragraph(self, text: str, *, indent: float, size: float) -> None:
        for line in self.wrap(text, width=self.width - indent, size=size):
            self.line(line, x=indent, size=size)

    def line(self, text: str, *, x: float, size: float) -> None:
        self.ops.append(_DrawOp(kind="text", box=(x, self.y, 0, 0), text=text, size=size))
        self.y += size * self.line_ratio

    def wrap(self, text: str, *, width: float, size: float) -> List[str]:
        """Greedy word wrap; words wider than a line are broken by character."""

        font = self.font(size)
        lines: List[str] = []
        current = ""
        for word in text.split(" "):
            candidate = f"{current} {word}" if current else word
            if font.getlength(candidate) <= width or not current:
                current = candidate
            else:
                lines.append(current)
                current = word
            while font.getlength(current) > width and len(current) > 1:
                cut = len(current) - 1
                while cut > 1 and font.getlength(current[:cut]) > width:
                    cut -= 1
                lines.append(current[:cut])
                current = current[cut:]
        if current:
            lines.append(current)
        return lines

    def leaf(self, node: Leaf, *, indent: float) -> None:
        size = self.font_px * self.scale
        available = max(1.0, self.width - indent)
        if node.tag == "hr":
            self.gap(size)
            self.ops.append(_DrawOp(kind="rule", box=(indent, self.y, self.width, self.y + 2 * self.scale)))
            self.y += 2 * self.scale
            return
        if node.tag == "table":
            self.table(node, indent=indent, size=size)
            return
        if node.tag == "figure":
            self.blocks(node.children, indent=indent, size=size)
            return
        asset = self.assets.get(node.attr("src") or "") if node.tag == "img" else None
        intrinsic = (float(asset.width_px), float(asset.height_px)) if asset else _DEFAULT_BOX_PX
        width = _number(node.attr("width"))
        height = _number(node.attr("height"))
        if width is None and height is None:
            width, height = intrinsic
        elif width is None:
            width = height * intrinsic[0] / intrinsic[1]
        elif height is None:
            height = width * intrinsic[1] / intrinsic[0]
        width, height = width * self.scale, height * self.scale
        if width > available:
            height *= available / width
            width = available
        self.gap(size)
        box = (indent, self.y, indent + width, self.y + height)
        self.ops.append(_DrawOp(kind="image" if asset else "box", box=box, image=asset.image if asset else None))
        self.y += height

    def table(self, node: Leaf, *, indent: float, size: float) -> None:
        rows = list(_table_rows(node.children))
        if not rows:
            return
        columns = max(len(row) for row in rows)
        col_width = max(1.0, (self.width - indent) / columns)
        pad = 6 * self.scale
        self.gap(size)
        for row in rows:
            top = self.y
            bottom = top
            for idx, cell in enumerate(row):
                x = indent + idx * col_width
                self.y = top + pad
                text = _flat_text(cell.children)
                for line in self.wrap(text, width=col_width - 2 * pad, size=size) if text else []:
                    self.line(line, x=x + pad, size=size)
                bottom = max(bottom, self.y + pad)
            bottom = max(bottom, top + size * self.line_ratio + 2 * pad)
            for idx in range(columns):
                x = indent + idx * col_width
                self.ops.append(_DrawOp(kind="cell", box=(x, top, x + col_width, bottom)))
            self.y = bottom


def _flat_text(nodes: Sequence[ContentNode]) -> str:
    return normalize_whitespace(text_content(nodes), keep_newlines=False)


def _number(value: str | None) -> float | None:
    if not value:
        return None
    try:
        number = float(value.strip().removesuffix("px"))
    except ValueError:
        return None
    return number if number > 0 and math.isfinite(number) else None


@dataclass(slots=True)
class PillowRenderer:
    """Render content trees with Pillow's bundled font.

    Args:
        font_px: Body text size in CSS pixels before scaling.
        line_ratio: Line height as a multiple of the font size.
        assets: Loaded images keyed by ``src``.
    """

    font_px: float = 14.0
    line_ratio: float = 1.5
    assets: Mapping[str, ImageAsset] = field(default_factory=dict)

    def render(self, tree: ContentNode, *, width_px: float, scale: float) -> Image.Image:
        """Render ``tree`` onto a white image ``width_px * scale`` wide.

        Args:
            tree: Root of the content tree.
            width_px: Layout width in pixels.
            scale: Resolution multiplier.
        Returns:
            RGB image at least 1x1 pixel.
        """

        width = max(1, round(width_px * scale))
        layout = _Layout(
            width=float(width),
            scale=scale,
            font_px=self.font_px,
            line_ratio=self.line_ratio,
            assets=self.assets,
        )
        nodes = tree.children if isinstance(tree, Element) else (tree,)
        layout.blocks(nodes)
        image = Image.new("RGB", (width, max(1, math.ceil(layout.y))), WHITE)
        draw = ImageDraw.Draw(image)
        for op in layout.ops:
            _draw(draw, image=image, op=op, layout=layout)
        return image


def _draw(draw: ImageDraw.ImageDraw, *, image: Image.Image, op: _DrawOp, layout: _Layout) -> None:
    left, top, right, bottom = (round(value) for value in op.box)
    if op.kind == "text":
        draw.text((left, top), op.text, fill=_INK, font=layout.font(op.size))
    elif op.kind == "rule":
        draw.rectangle((left, top, right, max(top, bottom - 1)), fill=_RULE)
    elif op.kind == "cell":
        draw.rectangle((left, top, max(left, right - 1), max(top, bottom - 1)), outline=_GRID)
    elif op.kind == "box":
        draw.rectangle((left, top, max(left, right - 1), max(top, bottom - 1)), fill=_PLACEHOLDER, outline=_GRID)
    elif op.kind == "image" and op.image is not None:
        size = (max(1, right - left), max(1, bottom - top))
        picture = op.image.convert("RGB").resize(size)
        image.paste(picture, (left, top))
        picture.close()


def rasterize(
    tree: ContentNode,
    geometry: PageGeometry,
    scale: float = DEFAULT_SCALE,
    renderer: Renderer | None = None,
    *,
    on_surface: Callable[[Image.Image], object] | None = None,
) -> List[RasterPage]:
    """Render ``tree`` once and slice the surface into page images.

    Args:
        tree: Root of the content tree.
        geometry: Page geometry.
        scale: Resolution multiplier for the render.
        renderer: Rendering collaborator; defaults to :class:`PillowRenderer`.
        on_surface: Called with every image created, so the caller can
            release them when the export ends.
    Returns:
        One RasterPage per strip, never empty. When the margins leave no
        content area the whole render is scaled onto a single page.
    Raises:
        RenderError: When rendering fails or yields an unusable surface.
    """

    renderer = renderer or PillowRenderer()
    width_px = max(1.0, geometry.inner_width_px)
    try:
        surface = renderer.render(tree, width_px=width_px, scale=scale)
    except RenderError:
        raise
    except Exception as exc:
        raise RenderError(f"Rendering failed: {exc}") from exc
    if surface is None or surface.width <= 0 or surface.height <= 0:
        raise RenderError("Renderer returned an empty surface")
    if on_surface is not None:
        on_surface(surface)

    if geometry.inner_width_mm > 0:
        px_per_mm = surface.width / geometry.inner_width_mm
    else:
        px_per_mm = geometry.px_per_mm * scale
    slice_height = max(1, round(geometry.inner_height_mm * px_per_mm))
    page_size = (
        max(1, round(geometry.paper_width_mm * px_per_mm)),
        max(1, round(geometry.paper_height_mm * px_per_mm)),
    )
    if geometry.is_degenerate:
        logger.warning(
            "Margins leave no content area; placing the whole %dx%d render on one page",
            surface.width,
            surface.height,
        )
        page = _whole_surface_page(
            surface, geometry, page_size=page_size, px_per_mm=px_per_mm, on_surface=on_surface
        )
        return [page]
    left, top = (round(value) for value in geometry.margin_offset_px(px_per_mm))
    logger.debug(
        "Slicing %dx%d surface into %d px strips (%.3f px/mm)",
        surface.width,
        surface.height,
        slice_height,
        px_per_mm,
    )

    pages: List[RasterPage] = []
    y_offset = 0
    while y_offset < surface.height:
        bottom = min(y_offset + slice_height, surface.height)
        page = Image.new("RGB", page_size, WHITE)
        crop = surface.crop((0, y_offset, surface.width, bottom))
        page.paste(crop, (left, top))
        crop.close()
        if on_surface is not None:
            on_surface(page)
        pages.append(
            RasterPage(
                index=len(pages),
                image=page,
                strip_height_px=bottom - y_offset,
                height_mm=(bottom - y_offset) / px_per_mm,
                offset_px=(left, top),
                geometry=geometry,
            )
        )
        y_offset = bottom
    logger.info("Sliced render into %d page(s)", len(pages))
    return pages


def _whole_surface_page(
    surface: Image.Image,
    geometry: PageGeometry,
    *,
    page_size: Tuple[int, int],
    px_per_mm: float,
    on_surface: Callable[[Image.Image], object] | None,
) -> RasterPage:
    """Scale the whole surface into one sheet when there is no content box.

    The surface is shrunk to fit the paper and kept as close to the margin
    offset as the sheet allows.
    """

    ratio = min(1.0, page_size[0] / surface.width, page_size[1] / surface.height)
    size = (max(1, round(surface.width * ratio)), max(1, round(surface.height * ratio)))
    left, top = (round(value) for value in geometry.margin_offset_px(px_per_mm))
    left = max(0, min(left, page_size[0] - size[0]))
    top = max(0, min(top, page_size[1] - size[1]))
    page = Image.new("RGB", page_size, WHITE)
    scaled = surface.resize(size) if size != surface.size else surface.copy()
    page.paste(scaled, (left, top))
    scaled.close()
    if on_surface is not None:
        on_surface(page)
    return RasterPage(
        index=0,
        image=page,
        strip_height_px=surface.height,
        height_mm=size[1] / px_per_mm,
        offset_px=(left, top),
        geometry=geometry,
    )
