"""
Length parsing and unit conversion for user-editable margin fields.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field, replace
from typing import Mapping

MM_PER_INCH = 25.4
MM_PER_CM = 10.0
CSS_PX_PER_MM = 96 / MM_PER_INCH
DEFAULT_MARGIN_MM = 25.4

_LENGTH_RE = re.compile(r"^([+-]?(?:\d+\.?\d*|\.\d+)(?:e[+-]?\d+)?)\s*(mm|cm|in|px)?$")


@dataclass(frozen=True, slots=True)
class Length:
    """A parsed length value with its unit.

    Example:
        >>> Length(2, "in").to_mm()
        50.8
    """

    value: float
    unit: str = "mm"

    def to_mm(self, *, px_per_mm: float = CSS_PX_PER_MM) -> float:
        """Return the length in millimetres.

        Args:
            px_per_mm: Ratio used when the unit is ``px``.
        Returns:
            Millimetre value.
        """

        if self.unit == "in":
            return self.value * MM_PER_INCH
        if self.unit == "cm":
            return self.value * MM_PER_CM
        if self.unit == "px":
            return px_to_mm(self.value, px_per_mm)
        return float(self.value)

    def to_px(self, *, px_per_mm: float = CSS_PX_PER_MM) -> float:
        """Return the length in pixels at ``px_per_mm``."""

        if self.unit == "px":
            return float(self.value)
        return mm_to_px(self.to_mm(), px_per_mm)


def mm_to_px(mm: float, px_per_mm: float) -> float:
    """Convert millimetres to pixels.

    Example:
        >>> round(mm_to_px(25.4, 96 / 25.4), 6)
        96.0
    """

    return mm * px_per_mm


def px_to_mm(px: float, px_per_mm: float) -> float:
    """Convert pixels to millimetres; a non-positive ratio falls back to CSS pixels."""

    if not px_per_mm or px_per_mm <= 0 or not math.isfinite(px_per_mm):
        px_per_mm = CSS_PX_PER_MM
    return px / px_per_mm


def parse_length(value: object, fallback_mm: float = DEFAULT_MARGIN_MM) -> Length:
    """Parse a free-text length such as ``"2in"`` or ``"19mm"``.

    Bare numbers are millimetres. Anything that does not parse to a finite,
    non-negative value resolves to ``fallback_mm``.

    Example:
        >>> parse_length("2in").to_mm()
        50.8
        >>> parse_length("abc")
        Length(value=25.4, unit='mm')
    """

    fallback = Length(float(fallback_mm), "mm")
    if value is None or isinstance(value, bool):
        return fallback
    if isinstance(value, (int, float)):
        number = float(value)
        return Length(number, "mm") if _usable(number) else fallback
    if isinstance(value, Length):
        return value if _usable(value.to_mm()) else fallback
    text = str(value).strip().lower()
    match = _LENGTH_RE.match(text)
    if not match:
        return fallback
    number = float(match.group(1))
    length = Length(number, match.group(2) or "mm")
    if not _usable(number) or not _usable(length.to_mm()):
        return fallback
    return length


def format_length(length: Length) -> str:
    """Return the canonical string form of a length.

    Example:
        >>> format_length(Length(1.5, "cm"))
        '1.5cm'
    """

    return f"{length.value!r}{length.unit}"


def _usable(number: float) -> bool:
    return math.isfinite(number) and number >= 0


@dataclass(frozen=True, slots=True)
class Margins:
    """Page margins; every side is always present.

    Example:
        >>> Margins.from_strings(top="2in").top.to_mm()
        50.8
    """

    top: Length = field(default_factory=lambda: Length(DEFAULT_MARGIN_MM))
    bottom: Length = field(default_factory=lambda: Length(DEFAULT_MARGIN_MM))
    left: Length = field(default_factory=lambda: Length(DEFAULT_MARGIN_MM))
    right: Length = field(default_factory=lambda: Length(DEFAULT_MARGIN_MM))

    @classmethod
    def from_strings(
        cls,
        *,
        top: object = None,
        bottom: object = None,
        left: object = None,
        right: object = None,
        fallback_mm: float = DEFAULT_MARGIN_MM,
    ) -> "Margins":
        """Build margins from free-text fields, defaulting missing sides."""

        return cls(
            top=parse_length(top, fallback_mm),
            bottom=parse_length(bottom, fallback_mm),
            left=parse_length(left, fallback_mm),
            right=parse_length(right, fallback_mm),
        )

    @classmethod
    def from_mapping(cls, values: Mapping[str, object] | None) -> "Margins":
        """Build margins from a ``{"top": ..., ...}`` mapping."""

        values = values or {}
        return cls.from_strings(
            top=values.get("top"),
            bottom=values.get("bottom"),
            left=values.get("left"),
            right=values.get("right"),
        )

    def update(self, **sides: object) -> "Margins":
        """Return new margins with the given sides re-parsed.

        Args:
            **sides: Any of ``top``, ``bottom``, ``left``, ``right``.
        Returns:
            Updated Margins instance.
        """

        unknown = set(sides) - {"top", "bottom", "left", "right"}
        if unknown:
            raise TypeError(f"Unknown margin side(s): {', '.join(sorted(unknown))}")
        parsed = {name: parse_length(value) for name, value in sides.items()}
        return replace(self, **parsed)

    def as_mm(self, *, px_per_mm: float = CSS_PX_PER_MM) -> dict[str, float]:
        """Return all four sides in millimetres."""

        return {
            "top": self.top.to_mm(px_per_mm=px_per_mm),
            "bottom": self.bottom.to_mm(px_per_mm=px_per_mm),
            "left": self.left.to_mm(px_per_mm=px_per_mm),
            "right": self.right.to_mm(px_per_mm=px_per_mm),
        }
