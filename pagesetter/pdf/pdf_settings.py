"""Fonts, styles, and page settings for pagination and PDF output."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Mapping

from reportlab.lib import colors
from reportlab.lib.enums import TA_LEFT
from reportlab.lib.pagesizes import A4, A5, LEGAL, LETTER
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont

from ..units import Margins
from .pdf_constants import DEFAULT_SCALE, POINTS_PER_MM

logger = logging.getLogger(__name__)

PAPER_SIZES_MM: Dict[str, tuple[float, float]] = {
    name: (round(width / POINTS_PER_MM, 1), round(height / POINTS_PER_MM, 1))
    for name, (width, height) in {
        "a4": A4,
        "a5": A5,
        "letter": LETTER,
        "legal": LEGAL,
    }.items()
}

HEADING_SCALE = {"h1": 2.5, "h2": 2.0, "h3": 1.75, "h4": 1.5, "h5": 1.25, "h6": 1.0}


@dataclass(slots=True)
class PageSettings:
    """Paper, margin, and typography settings for one export.

    Example:
        >>> PageSettings().paper_mm
        (210.0, 297.0)
    """

    paper: str = "a4"
    margins: Margins = field(default_factory=Margins)
    scale: float = DEFAULT_SCALE
    font_name: str = "Helvetica"
    font_path: str | None = None
    font_size: float = 10.5
    leading_ratio: float = 1.7142857
    text_color: str = "#1f2937"
    hyphenation_lang: str | None = None

    @property
    def paper_mm(self) -> tuple[float, float]:
        """Return (width, height) of the paper in millimetres.

        Returns:
            Paper size; unknown names fall back to A4.
        """

        return PAPER_SIZES_MM.get(self.paper.lower(), PAPER_SIZES_MM["a4"])

    def with_margins(self, **sides: object) -> "PageSettings":
        """Return a copy with the given margin sides re-parsed.

        Args:
            **sides: Free-text lengths keyed by side name.
        Returns:
            New PageSettings instance.
        """

        return replace(self, margins=self.margins.update(**sides))

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "PageSettings":
        """Build settings from ``PAGESETTER_*`` environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``.
        Returns:
            PageSettings with overrides applied.
        """

        env = os.environ if environ is None else environ
        settings = cls()
        if env.get("PAGESETTER_PAPER"):
            settings.paper = env["PAGESETTER_PAPER"].strip().lower()
        settings.margins = Margins.from_strings(
            top=env.get("PAGESETTER_MARGIN_TOP"),
            bottom=env.get("PAGESETTER_MARGIN_BOTTOM"),
            left=env.get("PAGESETTER_MARGIN_LEFT"),
            right=env.get("PAGESETTER_MARGIN_RIGHT"),
        )
        if env.get("PAGESETTER_SCALE"):
            settings.scale = _positive_float(env["PAGESETTER_SCALE"], DEFAULT_SCALE)
        if env.get("PAGESETTER_FONT_SIZE"):
            settings.font_size = _positive_float(env["PAGESETTER_FONT_SIZE"], settings.font_size)
        if env.get("PAGESETTER_FONT_PATH"):
            settings.font_path = env["PAGESETTER_FONT_PATH"]
        if env.get("PAGESETTER_HYPHENATE"):
            settings.hyphenation_lang = env["PAGESETTER_HYPHENATE"]
        return settings


def _positive_float(value: str, default: float) -> float:
    """Parse a positive float, falling back to ``default``."""

    try:
        number = float(value)
    except ValueError:
        return default
    return number if number > 0 else default


def register_font(settings: PageSettings) -> str:
    """Register a TrueType font from ``settings.font_path`` when available.

    Args:
        settings: Page settings naming the font.
    Returns:
        The usable font name; Helvetica when the file is missing or invalid.
    """

    if not settings.font_path:
        return settings.font_name
    path = Path(settings.font_path)
    name = path.stem
    if name in pdfmetrics.getRegisteredFontNames():
        return name
    if not path.exists():
        logger.warning("Font file %s not found; using Helvetica", path)
        return "Helvetica"
    try:
        pdfmetrics.registerFont(TTFont(name, str(path)))
    except Exception as exc:  # reportlab raises TTFError and plain IOErrors
        logger.warning("Could not register font %s (%s); using Helvetica", path, exc)
        return "Helvetica"
    pdfmetrics.registerFontFamily(name, normal=name, bold=name, italic=name, boldItalic=name)
    return name


def build_styles(settings: PageSettings) -> Dict[str, ParagraphStyle]:
    """Create paragraph styles for block content.

    Args:
        settings: Page settings carrying the base font and size.
    Returns:
        Mapping of style keys to ParagraphStyle objects.

    Example:
        >>> styles = build_styles(PageSettings())
        >>> sorted(styles)[:3]
        ['blockquote', 'body', 'caption']
    """

    base = getSampleStyleSheet()
    font_name = register_font(settings)
    size = settings.font_size
    body = ParagraphStyle(
        "Body",
        parent=base["Normal"],
        fontName=font_name,
        fontSize=size,
        leading=size * settings.leading_ratio,
        alignment=TA_LEFT,
        textColor=colors.HexColor(settings.text_color),
        spaceBefore=0,
        spaceAfter=size,
        embeddedHyphenation=1 if settings.hyphenation_lang else 0,
    )
    styles: Dict[str, ParagraphStyle] = {"body": body}
    for tag, ratio in HEADING_SCALE.items():
        styles[tag] = _heading_style(body=body, tag=tag, ratio=ratio)
    styles["li"] = ParagraphStyle(
        "ListItem",
        parent=body,
        leftIndent=2 * size,
        bulletIndent=0.8 * size,
        spaceAfter=0.5 * size,
    )
    styles["blockquote"] = ParagraphStyle(
        "Blockquote",
        parent=body,
        leftIndent=size,
        textColor=colors.HexColor("#666666"),
        borderPadding=(0, 0, 0, size / 2),
    )
    styles["pre"] = ParagraphStyle(
        "Preformatted",
        parent=body,
        fontName="Courier",
        leading=size * 1.3,
    )
    styles["caption"] = ParagraphStyle(
        "Caption",
        parent=body,
        fontSize=size * 0.85,
        leading=size * 0.85 * settings.leading_ratio,
        textColor=colors.HexColor("#666666"),
    )
    styles["cell"] = ParagraphStyle("Cell", parent=body, spaceAfter=0)
    return styles


def _heading_style(*, body: ParagraphStyle, tag: str, ratio: float) -> ParagraphStyle:
    """Return a heading style scaled from the body size.

    Args:
        body: Body style.
        tag: Heading tag name.
        ratio: Font size multiplier.
    Returns:
        Heading ParagraphStyle.
    """

    size = body.fontSize * ratio
    return ParagraphStyle(
        f"Heading-{tag}",
        parent=body,
        fontName=_bold_name(body.fontName),
        fontSize=size,
        leading=size * 1.2,
        spaceBefore=1.5 * size,
        spaceAfter=0.75 * size,
        keepWithNext=True,
    )


def _bold_name(font_name: str) -> str:
    """Return the bold face for a font, when the family registers one."""

    candidate = f"{font_name}-Bold"
    known = set(pdfmetrics.standardFonts) | set(pdfmetrics.getRegisteredFontNames())
    return candidate if candidate in known else font_name
