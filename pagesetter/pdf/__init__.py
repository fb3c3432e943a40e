"""
Page geometry, fitting, rasterizing, and PDF assembly.
"""

from .builder import export_pdf, paginate_document
from .pdf_fit import PageFitter, fit, paginate, try_append
from .pdf_geometry import PageGeometry, compute_geometry, measure_px_per_mm
from .pdf_measure import Measurer, ReportLabMeasurer, measurement_workspace
from .pdf_raster import PillowRenderer, Renderer, rasterize
from .pdf_segment import segment
from .pdf_settings import PageSettings

__all__ = [
    "Measurer",
    "PageFitter",
    "PageGeometry",
    "PageSettings",
    "PillowRenderer",
    "ReportLabMeasurer",
    "Renderer",
    "compute_geometry",
    "export_pdf",
    "fit",
    "measure_px_per_mm",
    "measurement_workspace",
    "paginate",
    "paginate_document",
    "rasterize",
    "segment",
    "try_append",
]
