"""Pagination fitting: place section content onto fixed-height pages."""

from __future__ import annotations

import logging
import math
from collections import deque
from typing import Callable, List, Sequence, Tuple

from ..errors import MeasurementError
from ..models import ContentNode, Element, Leaf, Page, Section, Text, is_blank
from .pdf_constants import DEBUG_PAGINATION, EPSILON
from .pdf_fit_types import AppendOutcome, FitBudget, PageState, _Placement
from .pdf_flowables import list_start
from .pdf_geometry import PageGeometry
from .pdf_measure import Measurer
from .pdf_segment import segment

logger = logging.getLogger(__name__)

Wrap = Callable[[Tuple[ContentNode, ...]], Tuple[ContentNode, ...]]


def _debug(*, msg: str) -> None:
    """Log pagination debug output when enabled.

    Args:
        msg: Message to log.
    Returns:
        None.
    """

    if DEBUG_PAGINATION:
        logger.debug(msg)


class PageFitter:
    """Fit sections onto pages no taller than the geometry's inner height."""

    def __init__(self, *, geometry: PageGeometry, measurer: Measurer) -> None:
        """Create a fitter bound to one geometry and measurement source."""

        self.geometry = geometry
        self.measurer = measurer
        self.width_px = geometry.inner_width_px
        self.limit_px = geometry.inner_height_px

    def fresh_state(self) -> PageState:
        """Return an empty page with the full budget."""

        return PageState(budget=FitBudget(limit=self.limit_px))

    def height(self, nodes: Sequence[ContentNode]) -> float:
        """Return the measured height of ``nodes``.

        Args:
            nodes: Candidate page content.
        Returns:
            Height in pixels.
        Raises:
            MeasurementError: When the measurer fails or returns a negative or
                non-finite height.
        """

        try:
            value = self.measurer.measure(nodes, width_px=self.width_px)
        except MeasurementError:
            raise
        except Exception as exc:
            raise MeasurementError(f"Measurement failed: {exc}") from exc
        try:
            height = float(value)
        except (TypeError, ValueError) as exc:
            raise MeasurementError(f"Measurer returned a non-numeric height: {value!r}") from exc
        if not math.isfinite(height) or height < 0:
            raise MeasurementError(f"Measurer returned an invalid height: {value!r}")
        return height

    def _fits(self, nodes: Tuple[ContentNode, ...]) -> bool:
        return self.height(nodes) <= self.limit_px + EPSILON

    def fit(self, section: Section, *, start_index: int = 0) -> List[Page]:
        """Fit one section onto one or more pages.

        The whole section is tried on a single page first; only when it
        overflows is it split incrementally.

        Args:
            section: Section to fit.
            start_index: Index given to the first page produced.
        Returns:
            At least one Page.
        """

        whole = self._whole_section(section)
        if whole is not None:
            _debug(msg=f"[fit] section of {len(section.nodes)} node(s) fits on one page")
            return [self._page(state=whole, index=start_index)]
        return self._incremental(section, start_index=start_index)

    def _whole_section(self, section: Section) -> PageState | None:
        """Return the filled page if every top-level node fits, else None."""

        state = self.fresh_state()
        for node in section.nodes:
            nodes = state.nodes + (node,)
            height = self.height(nodes)
            if not state.budget.fits(height):
                return None
            state = PageState(budget=state.budget.consume(height), nodes=nodes)
        return state

    def _incremental(self, section: Section, *, start_index: int) -> List[Page]:
        """Fit a section that overflows one page, node by node.

        Args:
            section: Section to fit.
            start_index: Index of the first page.
        Returns:
            Pages in document order.
        """

        queue = deque(section.nodes)
        pages: List[Page] = []
        state = self.fresh_state()
        while queue:
            node = queue.popleft()
            outcome = self.try_append(state, node)
            if not outcome.fitted and state.nodes:
                pages.append(self._page(state=state, index=start_index + len(pages)))
                state = self.fresh_state()
                outcome = self.try_append(state, node)
            if not outcome.fitted:
                logger.warning(
                    "Content taller than the page (%.1f px available) forced onto page %d",
                    self.limit_px,
                    start_index + len(pages) + 1,
                )
                forced = PageState(budget=state.budget, nodes=(node,), forced=True)
                pages.append(self._page(state=forced, index=start_index + len(pages)))
                state = self.fresh_state()
                continue
            state = outcome.state
            if outcome.carry is not None:
                queue.appendleft(outcome.carry)
        if state.nodes or not pages:
            pages.append(self._page(state=state, index=start_index + len(pages)))
        _debug(msg=f"[fit] section split across {len(pages)} page(s)")
        return pages

    def try_append(self, state: PageState, node: ContentNode) -> AppendOutcome:
        """Try to place ``node`` (or a leading part of it) on a page.

        Args:
            state: Page being built.
            node: Node to place.
        Returns:
            AppendOutcome with the new page state and any carried remainder.
        """

        placement = self._place(node, placed=(), wrap=lambda content: state.nodes + content)
        if placement is None:
            return AppendOutcome(fitted=False, state=state)
        nodes = state.nodes + (placement.head,)
        budget = state.budget.consume(self.height(nodes))
        _debug(
            msg=f"[append] {type(node).__name__} placed, remaining={budget.remaining:.2f} "
            f"carry={placement.tail is not None}"
        )
        return AppendOutcome(
            fitted=True,
            state=PageState(budget=budget, nodes=nodes, forced=state.forced),
            carry=placement.tail,
        )

    def _place(
        self, node: ContentNode, *, placed: Tuple[ContentNode, ...], wrap: Wrap
    ) -> _Placement | None:
        """Return the part of ``node`` that fits after ``placed``.

        Args:
            node: Node to place.
            placed: Siblings already placed at this insertion point.
            wrap: Builds the full page from the content at this insertion point.
        Returns:
            _Placement, or None when nothing of the node fits.
        """

        if isinstance(node, Text):
            return self._place_text(node, placed=placed, wrap=wrap)
        if isinstance(node, Element):
            return self._place_element(node, placed=placed, wrap=wrap)
        if isinstance(node, Leaf):
            return _Placement(head=node) if self._fits(wrap(placed + (node,))) else None
        return _Placement(head=node)

    def _place_text(
        self, node: Text, *, placed: Tuple[ContentNode, ...], wrap: Wrap
    ) -> _Placement | None:
        """Binary-search the longest prefix of ``node`` that fits.

        Args:
            node: Text node.
            placed: Siblings already placed.
            wrap: Page builder for this insertion point.
        Returns:
            _Placement with the prefix and the remainder, or None.
        """

        text = node.text
        if self._fits(wrap(placed + (node,))):
            return _Placement(head=node)
        low, high, fit = 1, len(text) - 1, 0
        while low <= high:
            mid = (low + high) // 2
            if self._fits(wrap(placed + (Text(text[:mid]),))):
                fit = mid
                low = mid + 1
            else:
                high = mid - 1
        if fit == 0:
            return None
        _debug(msg=f"[split] text of {len(text)} chars split at {fit}")
        return _Placement(head=Text(text[:fit]), tail=Text(text[fit:]))

    def _place_element(
        self, node: Element, *, placed: Tuple[ContentNode, ...], wrap: Wrap
    ) -> _Placement | None:
        """Place an element whole, or as many of its children as fit.

        Args:
            node: Element node.
            placed: Siblings already placed.
            wrap: Page builder for this insertion point.
        Returns:
            _Placement whose tail continues the element, or None.
        """

        if self._fits(wrap(placed + (node,))):
            return _Placement(head=node)
        if not node.children or not self._fits(wrap(placed + (node.shallow(),))):
            return None

        def inner(content: Tuple[ContentNode, ...]) -> Tuple[ContentNode, ...]:
            return wrap(placed + (node.with_children(content),))

        kids: List[ContentNode] = []
        remaining: Tuple[ContentNode, ...] = ()
        split = False
        for idx, child in enumerate(node.children):
            result = self._place(child, placed=tuple(kids), wrap=inner)
            if result is None:
                remaining = node.children[idx:]
                break
            kids.append(result.head)
            if result.tail is not None:
                remaining = (result.tail,) + node.children[idx + 1 :]
                split = True
                break
        if all(is_blank(kid) for kid in kids):
            return None
        head = node.with_children(kids)
        if not remaining:
            return _Placement(head=head)
        return _Placement(head=head, tail=_continuation(node, kids=kids, remaining=remaining, split=split))

    def _page(self, *, state: PageState, index: int) -> Page:
        return Page(index=index, nodes=state.nodes, geometry=self.geometry, forced=state.forced)


def _continuation(
    node: Element, *, kids: Sequence[ContentNode], remaining: Tuple[ContentNode, ...], split: bool
) -> Element:
    """Return the element clone that carries ``remaining`` to the next page.

    Ordered lists keep counting from where the placed part stopped; a list
    item split across pages keeps its number, so its continuation on the next
    page shows that number (or bullet) again.
    """

    tail = node.with_children(remaining)
    if node.tag != "ol":
        return tail
    items = sum(1 for kid in kids if isinstance(kid, Element) and kid.tag == "li")
    # The split item is drawn again with the same number at the top of the next page.
    if split and kids and isinstance(kids[-1], Element) and kids[-1].tag == "li":
        items -= 1
    return tail.with_attr("start", list_start(node) + items)


def try_append(
    state: PageState, node: ContentNode, *, geometry: PageGeometry, measurer: Measurer
) -> AppendOutcome:
    """Try to place ``node`` on the page described by ``state``."""

    return PageFitter(geometry=geometry, measurer=measurer).try_append(state, node)


def fit(
    section: Section, geometry: PageGeometry, measurer: Measurer, *, start_index: int = 0
) -> List[Page]:
    """Fit one section onto pages.

    Args:
        section: Section to fit.
        geometry: Page geometry.
        measurer: Measurement source.
        start_index: Index of the first page produced.
    Returns:
        Non-empty list of pages.
    """

    return PageFitter(geometry=geometry, measurer=measurer).fit(section, start_index=start_index)


def paginate(tree: ContentNode, geometry: PageGeometry, measurer: Measurer) -> List[Page]:
    """Segment ``tree`` at page breaks and fit every section.

    Each section starts on a fresh page; page indices run across the whole
    document.

    Args:
        tree: Root of the content tree.
        geometry: Page geometry.
        measurer: Measurement source.
    Returns:
        Non-empty list of pages.
    """

    fitter = PageFitter(geometry=geometry, measurer=measurer)
    pages: List[Page] = []
    for section in segment(tree):
        pages.extend(fitter.fit(section, start_index=len(pages)))
    logger.info("Paginated content into %d page(s)", len(pages))
    return pages
