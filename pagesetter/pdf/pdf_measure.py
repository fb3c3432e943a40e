"""Height measurement for candidate page contents."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Protocol, Sequence, Tuple

from reportlab.lib.styles import ParagraphStyle

from ..models import ContentNode
from ..text import hyphenator
from ..units import px_to_mm
from .pdf_assets import ImageAsset, load_assets
from .pdf_constants import FALLBACK_PX_PER_MM, POINTS_PER_MM
from .pdf_flowables import FlowContext, StackedFlowable, page_flowable
from .pdf_settings import PageSettings, build_styles

logger = logging.getLogger(__name__)

_MAX_HEIGHT = 1_000_000.0


class Measurer(Protocol):
    """Reports the rendered height of candidate page contents."""

    px_per_mm: float

    def measure(self, nodes: Sequence[ContentNode], *, width_px: float) -> float:
        """Return the laid-out height of ``nodes`` in pixels at ``width_px``."""


def measure_height(flowable: StackedFlowable, width: float) -> float:
    """Return the wrapped height for a flowable at the given width."""

    _, height = flowable.wrap(width, _MAX_HEIGHT)
    return height


@dataclass(slots=True)
class ReportLabMeasurer:
    """Measure nodes by laying them out with ReportLab font metrics.

    Heights are memoised per (nodes, width) because the fitter re-measures
    the same page prefix many times during its binary searches.

    Args:
        settings: Page settings.
        styles: Paragraph styles.
        assets: Loaded images keyed by ``src``.
        px_per_mm: Pixel density the fitter works in.
    """

    settings: PageSettings
    styles: Dict[str, ParagraphStyle]
    assets: Mapping[str, ImageAsset] = field(default_factory=dict)
    px_per_mm: float = FALLBACK_PX_PER_MM
    _cache: Dict[Tuple[Tuple[ContentNode, ...], float], float] = field(default_factory=dict)

    def context(self, *, width_px: float) -> FlowContext:
        """Return a flow context for ``width_px``."""

        lang = self.settings.hyphenation_lang
        return FlowContext(
            styles=self.styles,
            width=self.points(width_px),
            px_per_mm=self.px_per_mm,
            assets=self.assets,
            hyphenator=hyphenator(lang) if lang else None,
        )

    def points(self, px: float) -> float:
        """Convert pixels at this measurer's density to points."""

        return px_to_mm(px, self.px_per_mm) * POINTS_PER_MM

    def flowable(self, nodes: Sequence[ContentNode], *, width_px: float) -> StackedFlowable:
        """Return the stacked flowable used for both measuring and drawing."""

        return page_flowable(nodes=nodes, ctx=self.context(width_px=width_px))

    def measure(self, nodes: Sequence[ContentNode], *, width_px: float) -> float:
        """Return the height of ``nodes`` in pixels.

        Args:
            nodes: Page content to lay out.
            width_px: Inner page width in pixels.
        Returns:
            Height in pixels.
        """

        key = (tuple(nodes), round(width_px, 3))
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        flow = self.flowable(key[0], width_px=width_px)
        height_pt = measure_height(flow, self.points(width_px))
        height_px = height_pt / POINTS_PER_MM * self.px_per_mm
        self._cache[key] = height_px
        return height_px

    def clear(self) -> None:
        """Drop memoised heights."""

        self._cache.clear()


@dataclass(slots=True)
class MeasurementWorkspace:
    """Per-export measurement state: styles, loaded images, and caches.

    Args:
        measurer: Measurer bound to this export.
        assets: Loaded images owned by the workspace.
    """

    measurer: ReportLabMeasurer
    assets: Dict[str, ImageAsset]
    surfaces: List[object] = field(default_factory=list)

    def track(self, surface: object) -> object:
        """Register an offscreen surface to be closed with the workspace."""

        self.surfaces.append(surface)
        return surface

    def close(self) -> None:
        """Release caches, images, and offscreen surfaces."""

        self.measurer.clear()
        for asset in self.assets.values():
            asset.close()
        self.assets.clear()
        for surface in self.surfaces:
            close = getattr(surface, "close", None)
            if close is not None:
                close()
        self.surfaces.clear()


@contextmanager
def measurement_workspace(
    *,
    nodes: Sequence[ContentNode],
    settings: PageSettings,
    px_per_mm: float | None = None,
    base_dir: Path | None = None,
) -> Iterator[MeasurementWorkspace]:
    """Open a measurement workspace and release it on every exit path.

    Images referenced by ``nodes`` are loaded before the workspace is handed
    out, so measurement always sees fully resolved content.

    Args:
        nodes: Content that will be measured.
        settings: Page settings.
        px_per_mm: Live pixel density, when one was measured.
        base_dir: Directory for relative image paths.
    Yields:
        MeasurementWorkspace instance.
    """

    assets = load_assets(nodes, base_dir=base_dir)
    measurer = ReportLabMeasurer(
        settings=settings,
        styles=build_styles(settings),
        assets=assets,
        px_per_mm=px_per_mm or FALLBACK_PX_PER_MM,
    )
    workspace = MeasurementWorkspace(measurer=measurer, assets=assets)
    try:
        yield workspace
    finally:
        workspace.close()
        logger.debug("Measurement workspace released")
