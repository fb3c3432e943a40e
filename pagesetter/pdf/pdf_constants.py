"""Shared constants for page geometry, fitting, and PDF output."""

from __future__ import annotations

import os

from reportlab.lib.units import mm

from ..units import CSS_PX_PER_MM

EPSILON = 1e-4
POINTS_PER_MM = mm
FALLBACK_PX_PER_MM = CSS_PX_PER_MM
DEFAULT_SCALE = 2.0
WHITE = (255, 255, 255)
DEBUG_PAGINATION = os.getenv("DEBUG_PAGINATION", "").strip().lower() not in {"", "0", "false", "no"}
