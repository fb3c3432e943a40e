"""Exceptions raised by the pagination and export pipeline."""

from __future__ import annotations


class PagesetterError(Exception):
    """Base class for all pagesetter errors."""


class ExportError(PagesetterError):
    """An export could not be completed; no partial output was produced."""


class MeasurementError(ExportError):
    """The measurement collaborator failed or returned an unusable height."""


class RenderError(ExportError):
    """The rendering collaborator failed to produce a raster surface."""


class AssetError(ExportError):
    """An image referenced by the content tree could not be loaded."""
