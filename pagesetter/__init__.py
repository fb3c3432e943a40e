"""
Paginate rich-text content trees onto fixed-size pages and export them.
"""

from .errors import AssetError, ExportError, MeasurementError, PagesetterError, RenderError
from .exports import export_html, export_text, export_word_html
from .models import Break, Document, Element, Leaf, Page, RasterPage, Section, Text, element, leaf
from .parser import parse_file, parse_html, to_html
from .pdf.builder import export_pdf, paginate_document
from .pdf.pdf_settings import PageSettings
from .units import Length, Margins, format_length, parse_length

__all__ = [
    "AssetError",
    "Break",
    "Document",
    "Element",
    "ExportError",
    "Leaf",
    "Length",
    "Margins",
    "MeasurementError",
    "Page",
    "PageSettings",
    "PagesetterError",
    "RasterPage",
    "RenderError",
    "Section",
    "Text",
    "element",
    "export_html",
    "export_pdf",
    "export_text",
    "export_word_html",
    "format_length",
    "leaf",
    "paginate_document",
    "parse_file",
    "parse_html",
    "parse_length",
    "to_html",
]
