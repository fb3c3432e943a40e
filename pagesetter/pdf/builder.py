"""PDF export for documents: paginate or rasterize, assemble, write."""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import replace
from pathlib import Path
from typing import Callable, List

from ..errors import ExportError, PagesetterError
from ..models import AnyPage, Document, Page
from .pdf_assemble import assemble
from .pdf_fit import paginate
from .pdf_geometry import PageGeometry, compute_geometry
from .pdf_measure import MeasurementWorkspace, measurement_workspace
from .pdf_raster import PillowRenderer, Renderer, rasterize
from .pdf_settings import PageSettings

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]

EXPORT_MODES = ("vector", "raster")


def export_pdf(
    document: Document,
    output_path: Path,
    *,
    mode: str = "vector",
    settings: PageSettings | None = None,
    renderer: Renderer | None = None,
    progress: ProgressCallback | None = None,
    base_dir: Path | None = None,
    px_per_mm: float | None = None,
) -> Path:
    """Export ``document`` as a PDF file.

    The export is all-or-nothing: the PDF is written to a temporary file next
    to ``output_path`` and renamed into place only after every page has been
    produced, so a failure leaves no output behind.

    Args:
        document: Document to export; its margins override ``settings``.
        output_path: Destination PDF path.
        mode: ``"vector"`` to fit content with font metrics, ``"raster"`` to
            render once and slice the image into pages.
        settings: Optional PageSettings override.
        renderer: Rendering collaborator for the raster path.
        progress: Called with a percentage (10, 30, 30-90, 100).
        base_dir: Directory relative image paths are resolved against.
        px_per_mm: Live pixel density, when the caller measured one.
    Returns:
        The written path.
    Raises:
        ExportError: When measurement, rendering, asset loading, or writing
            fails.

    Example:
        >>> export_pdf(document, Path("output/report.pdf"))  # doctest: +SKIP
        PosixPath('output/report.pdf')
    """

    if mode not in EXPORT_MODES:
        raise ValueError(f"Unknown export mode {mode!r}; expected one of {EXPORT_MODES}")
    report = progress or (lambda _percent: None)
    resolved = replace(settings or PageSettings(), margins=document.margins)
    output_path = Path(output_path)
    try:
        with measurement_workspace(
            nodes=document.content.children,
            settings=resolved,
            px_per_mm=px_per_mm,
            base_dir=base_dir,
        ) as workspace:
            geometry = _geometry(settings=resolved, workspace=workspace)
            report(10)
            pages = _pages(
                document=document,
                mode=mode,
                geometry=geometry,
                settings=resolved,
                renderer=renderer,
                workspace=workspace,
            )
            report(30)
            data = assemble(
                pages,
                measurer=workspace.measurer,
                title=document.title,
                on_page=lambda done, total: report(30 + round(60 * done / total)),
            )
        _write_atomic(output_path=output_path, data=data)
    except PagesetterError:
        logger.exception("PDF export of %r failed", document.title)
        raise
    except Exception as exc:
        logger.exception("PDF export of %r failed", document.title)
        raise ExportError(f"PDF export failed: {exc}") from exc
    report(100)
    logger.info("Wrote %d page(s) to %s", len(pages), output_path)
    return output_path


def paginate_document(
    document: Document,
    *,
    settings: PageSettings | None = None,
    px_per_mm: float | None = None,
    base_dir: Path | None = None,
) -> List[Page]:
    """Return the fitted vector pages for ``document`` without writing a PDF.

    Args:
        document: Document to paginate.
        settings: Optional PageSettings override.
        px_per_mm: Live pixel density.
        base_dir: Directory for relative image paths.
    Returns:
        Fitted pages.
    """

    resolved = replace(settings or PageSettings(), margins=document.margins)
    with measurement_workspace(
        nodes=document.content.children,
        settings=resolved,
        px_per_mm=px_per_mm,
        base_dir=base_dir,
    ) as workspace:
        geometry = _geometry(settings=resolved, workspace=workspace)
        return paginate(document.content, geometry, workspace.measurer)


def _geometry(*, settings: PageSettings, workspace: MeasurementWorkspace) -> PageGeometry:
    geometry = compute_geometry(settings.paper_mm, settings.margins, workspace.measurer.px_per_mm)
    if geometry.is_degenerate:
        logger.warning(
            "Margins leave no content area on %s paper; every page will be forced",
            settings.paper,
        )
    return geometry


def _pages(
    *,
    document: Document,
    mode: str,
    geometry: PageGeometry,
    settings: PageSettings,
    renderer: Renderer | None,
    workspace: MeasurementWorkspace,
) -> List[AnyPage]:
    """Produce vector or raster pages for the export.

    Args:
        document: Document being exported.
        mode: Export mode.
        geometry: Page geometry.
        settings: Resolved settings.
        renderer: Optional rendering collaborator.
        workspace: Open measurement workspace.
    Returns:
        Pages in order.
    """

    if mode == "raster":
        return list(
            rasterize(
                document.content,
                geometry,
                settings.scale,
                renderer or PillowRenderer(assets=workspace.assets),
                on_surface=workspace.track,
            )
        )
    return list(paginate(document.content, geometry, workspace.measurer))


def _write_atomic(*, output_path: Path, data: bytes) -> None:
    """Write ``data`` to ``output_path`` via a temporary file and rename.

    Args:
        output_path: Final destination.
        data: File contents.
    """

    output_path.parent.mkdir(parents=True, exist_ok=True)
    handle = tempfile.NamedTemporaryFile(
        dir=output_path.parent, prefix=f".{output_path.name}.", suffix=".part", delete=False
    )
    try:
        with handle:
            handle.write(data)
        os.replace(handle.name, output_path)
    except BaseException:
        Path(handle.name).unlink(missing_ok=True)
        raise
