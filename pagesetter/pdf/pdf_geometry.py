"""Page box dimensions and margin-aware pixel geometry."""

from __future__ import annotations

import math
from dataclasses import dataclass

from ..units import Margins, mm_to_px
from .pdf_constants import FALLBACK_PX_PER_MM


@dataclass(frozen=True, slots=True)
class PageGeometry:
    """Paper size, margins, and pixel density for one export.

    All lengths are millimetres; margins are already clamped to be
    non-negative.

    Example:
        >>> geometry = compute_geometry((210, 297), Margins())
        >>> round(geometry.inner_height_mm, 1)
        246.2
    """

    paper_width_mm: float
    paper_height_mm: float
    margin_top_mm: float
    margin_bottom_mm: float
    margin_left_mm: float
    margin_right_mm: float
    px_per_mm: float = FALLBACK_PX_PER_MM

    @property
    def inner_height_mm(self) -> float:
        """Return the usable content height."""

        return max(0.0, self.paper_height_mm - self.margin_top_mm - self.margin_bottom_mm)

    @property
    def inner_width_mm(self) -> float:
        """Return the usable content width."""

        return max(0.0, self.paper_width_mm - self.margin_left_mm - self.margin_right_mm)

    @property
    def inner_height_px(self) -> float:
        return mm_to_px(self.inner_height_mm, self.px_per_mm)

    @property
    def inner_width_px(self) -> float:
        return mm_to_px(self.inner_width_mm, self.px_per_mm)

    @property
    def page_width_px(self) -> float:
        return mm_to_px(self.paper_width_mm, self.px_per_mm)

    @property
    def page_height_px(self) -> float:
        return mm_to_px(self.paper_height_mm, self.px_per_mm)

    @property
    def is_degenerate(self) -> bool:
        """Return True when margins leave no content area."""

        return self.inner_height_mm <= 0 or self.inner_width_mm <= 0

    def margin_offset_px(self, px_per_mm: float | None = None) -> tuple[float, float]:
        """Return the (left, top) margin offset in pixels.

        Args:
            px_per_mm: Density to use instead of the geometry's own.
        Returns:
            Tuple of (left, top) pixel offsets.
        """

        ratio = px_per_mm or self.px_per_mm
        return mm_to_px(self.margin_left_mm, ratio), mm_to_px(self.margin_top_mm, ratio)


def measure_px_per_mm(container_width_px: float | None, paper_width_mm: float) -> float:
    """Derive pixel density from a rendered container representing the paper width.

    Args:
        container_width_px: Measured pixel width of the paper-wide container.
        paper_width_mm: Paper width the container stands for.
    Returns:
        Pixels per millimetre; the CSS reference density when the measurement
        is missing or unusable.

    Example:
        >>> measure_px_per_mm(420, 210)
        2.0
    """

    if (
        container_width_px is None
        or paper_width_mm <= 0
        or not math.isfinite(container_width_px)
        or container_width_px <= 0
    ):
        return FALLBACK_PX_PER_MM
    return container_width_px / paper_width_mm


def compute_geometry(
    paper_mm: tuple[float, float],
    margins: Margins,
    px_per_mm: float | None = None,
) -> PageGeometry:
    """Compute the page box for a paper size and margins.

    Args:
        paper_mm: (width, height) of the paper in millimetres.
        margins: Page margins; ``px`` margins use ``px_per_mm``.
        px_per_mm: Live pixel density; falls back to 96/25.4.
    Returns:
        PageGeometry with margins clamped to non-negative values.
    """

    ratio = px_per_mm if px_per_mm and px_per_mm > 0 and math.isfinite(px_per_mm) else FALLBACK_PX_PER_MM
    sides = margins.as_mm(px_per_mm=ratio)
    width, height = paper_mm
    return PageGeometry(
        paper_width_mm=max(0.0, float(width)),
        paper_height_mm=max(0.0, float(height)),
        margin_top_mm=max(0.0, sides["top"]),
        margin_bottom_mm=max(0.0, sides["bottom"]),
        margin_left_mm=max(0.0, sides["left"]),
        margin_right_mm=max(0.0, sides["right"]),
        px_per_mm=ratio,
    )
