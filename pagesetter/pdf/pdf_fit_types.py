"""Data classes for pagination fitting."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from ..models import ContentNode
from .pdf_constants import EPSILON


@dataclass(frozen=True, slots=True)
class FitBudget:
    """Usable height on the page being built, in pixels.

    Example:
        >>> budget = FitBudget(limit=100.0).consume(40.0)
        >>> budget.remaining
        60.0
    """

    limit: float
    used: float = 0.0

    @property
    def remaining(self) -> float:
        """Return the height still available."""

        return max(0.0, self.limit - self.used)

    def fits(self, height: float) -> bool:
        """Return True when a page of ``height`` stays within the limit."""

        return height <= self.limit + EPSILON

    def consume(self, height: float) -> "FitBudget":
        """Return a budget whose page is now ``height`` tall.

        Args:
            height: Measured height of the whole page.
        Returns:
            New FitBudget; remaining height never grows.
        """

        return FitBudget(limit=self.limit, used=max(self.used, height))


@dataclass(frozen=True, slots=True)
class PageState:
    """Content placed so far on the page being built.

    Args:
        nodes: Placed nodes in document order.
        budget: Remaining height budget.
        forced: True when the page holds a forced-overflow node.
    """

    budget: FitBudget
    nodes: Tuple[ContentNode, ...] = ()
    forced: bool = False


@dataclass(frozen=True, slots=True)
class AppendOutcome:
    """Result of trying to append one node to a page.

    Args:
        fitted: False when nothing of the node could start on the page.
        state: Page state after the attempt; unchanged when ``fitted`` is False.
        carry: Remainder of a split node, to be processed next.
    """

    fitted: bool
    state: PageState
    carry: ContentNode | None = None


@dataclass(frozen=True, slots=True)
class _Placement:
    """The part of a node that fits, and what is left over."""

    head: ContentNode
    tail: ContentNode | None = None
