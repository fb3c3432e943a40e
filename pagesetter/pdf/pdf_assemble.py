"""Place finished pages onto a ReportLab canvas."""

from __future__ import annotations

import io
import logging
from typing import Callable, Sequence

from reportlab.lib.utils import ImageReader
from reportlab.pdfgen.canvas import Canvas
from reportlab.platypus import KeepInFrame

from ..errors import RenderError
from ..models import AnyPage, Page, RasterPage
from .pdf_constants import POINTS_PER_MM
from .pdf_measure import ReportLabMeasurer
from .pdf_settings import PageSettings, build_styles

logger = logging.getLogger(__name__)


def assemble(
    pages: Sequence[AnyPage],
    *,
    settings: PageSettings | None = None,
    measurer: ReportLabMeasurer | None = None,
    title: str | None = None,
    on_page: Callable[[int, int], None] | None = None,
) -> bytes:
    """Draw every page in order and return the PDF bytes.

    The first page goes onto the fresh canvas; ``showPage`` separates the
    rest. No layout decisions are made here: vector pages are drawn exactly
    as fitted, inside the inner box at the margin offset, and raster pages
    cover the whole sheet.

    Args:
        pages: Fitted vector pages or sliced raster pages.
        settings: Settings used to build a measurer when none is given.
        measurer: Measurer whose flowables draw the vector pages.
        title: Optional document title for the PDF metadata.
        on_page: Called with (done, total) after each page is drawn.
    Returns:
        PDF file contents.
    Raises:
        RenderError: When ``pages`` is empty.
    """

    if not pages:
        raise RenderError("Cannot assemble a PDF without pages")
    buffer = io.BytesIO()
    canvas = Canvas(buffer, pagesize=_page_size(pages[0]))
    if title:
        canvas.setTitle(title)
    total = len(pages)
    for idx, page in enumerate(pages):
        if idx > 0:
            canvas.showPage()
        canvas.setPageSize(_page_size(page))
        if isinstance(page, RasterPage):
            _draw_raster(canvas, page=page)
        else:
            measurer = measurer or _default_measurer(settings=settings, page=page)
            _draw_vector(canvas, page=page, measurer=measurer)
        if on_page is not None:
            on_page(idx + 1, total)
    canvas.save()
    logger.info("Assembled %d page(s)", total)
    return buffer.getvalue()


def _page_size(page: AnyPage) -> tuple[float, float]:
    geometry = page.geometry
    return geometry.paper_width_mm * POINTS_PER_MM, geometry.paper_height_mm * POINTS_PER_MM


def _default_measurer(*, settings: PageSettings | None, page: Page) -> ReportLabMeasurer:
    resolved = settings or PageSettings()
    return ReportLabMeasurer(
        settings=resolved,
        styles=build_styles(resolved),
        px_per_mm=page.geometry.px_per_mm,
    )


def _draw_vector(canvas: Canvas, *, page: Page, measurer: ReportLabMeasurer) -> None:
    """Draw a fitted page inside its inner box.

    Forced-overflow pages are shrunk to the box so nothing is clipped.

    Args:
        canvas: Target canvas.
        page: Fitted vector page.
        measurer: Source of the page's flowable.
    """

    geometry = page.geometry
    if not page.nodes or geometry.is_degenerate:
        return
    width = geometry.inner_width_mm * POINTS_PER_MM
    height = geometry.inner_height_mm * POINTS_PER_MM
    flowable = measurer.flowable(page.nodes, width_px=geometry.inner_width_px)
    frame = KeepInFrame(width, height, content=[flowable], mode="shrink")
    _, drawn_height = frame.wrapOn(canvas, width, height)
    left = geometry.margin_left_mm * POINTS_PER_MM
    top = (geometry.paper_height_mm - geometry.margin_top_mm) * POINTS_PER_MM
    frame.drawOn(canvas, left, top - drawn_height)
    if page.forced:
        logger.debug("Page %d drawn shrunk to the inner box", page.index + 1)


def _draw_raster(canvas: Canvas, *, page: RasterPage) -> None:
    width, height = _page_size(page)
    canvas.drawImage(ImageReader(page.image), 0, 0, width=width, height=height)
