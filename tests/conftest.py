"""
Pytest configuration for pagesetter
"""

import logging
import sys
from dataclasses import dataclass, field
from typing import List, Sequence

import pytest

from pagesetter.models import Break, ContentNode, Element, Leaf, Text
from pagesetter.pdf.pdf_geometry import PageGeometry, compute_geometry
from pagesetter.units import Margins


@pytest.fixture(autouse=True)
def configure_logging():
    """Route log output to stdout at WARNING so caplog and handlers stay clean."""
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(logging.Formatter("%(name)s - %(levelname)s - %(message)s"))

    root_logger.addHandler(console_handler)
    root_logger.setLevel(logging.WARNING)

    yield

    root_logger.handlers.clear()


@dataclass
class CharMeasurer:
    """Deterministic measurer: every character is ``mm_per_char`` tall.

    Leaves report their ``data-height-mm`` attribute; elements add
    ``block_mm`` on top of their children.
    """

    px_per_mm: float = 1.0
    mm_per_char: float = 1.0
    block_mm: float = 0.0
    calls: List[int] = field(default_factory=list)

    def measure(self, nodes: Sequence[ContentNode], *, width_px: float) -> float:
        self.calls.append(len(nodes))
        return sum(self._mm(node) for node in nodes) * self.px_per_mm

    def _mm(self, node: ContentNode) -> float:
        if isinstance(node, Text):
            return len(node.text) * self.mm_per_char
        if isinstance(node, Leaf):
            return float(node.attr("data-height-mm", "0") or 0)
        if isinstance(node, Element):
            return self.block_mm + sum(self._mm(child) for child in node.children)
        if isinstance(node, Break):
            return 0.0
        return 0.0


@pytest.fixture
def measurer():
    """Character-count measurer at 1 px per mm."""
    return CharMeasurer()


@pytest.fixture
def a4_geometry() -> PageGeometry:
    """A4 with 25.4 mm margins at 1 px per mm (246.2 mm inner height)."""
    return compute_geometry((210.0, 297.0), Margins(), px_per_mm=1.0)


@pytest.fixture
def degenerate_geometry() -> PageGeometry:
    """A4 whose top and bottom margins leave no content area."""
    return compute_geometry((210.0, 297.0), Margins.from_strings(top="200mm", bottom="200mm"), px_per_mm=1.0)


@pytest.fixture
def temp_dir(tmp_path):
    """Temporary directory for written exports."""
    return tmp_path
