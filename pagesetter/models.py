"""
Typed containers for content trees, sections, and pages.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Iterable, Iterator, Mapping, Tuple, Union

from .units import Margins

if TYPE_CHECKING:
    from PIL import Image

    from .pdf.pdf_geometry import PageGeometry

Attrs = Tuple[Tuple[str, str], ...]


def freeze_attrs(attrs: Mapping[str, object] | Iterable[tuple[str, object]] | None) -> Attrs:
    """Return attributes as a sorted tuple of string pairs.

    Example:
        >>> freeze_attrs({"b": 1, "a": "x"})
        (('a', 'x'), ('b', '1'))
    """

    if not attrs:
        return ()
    items = attrs.items() if isinstance(attrs, Mapping) else attrs
    return tuple(sorted((str(key), _attr_value(value)) for key, value in items))


def _attr_value(value: object) -> str:
    if isinstance(value, (list, tuple)):
        return " ".join(str(part) for part in value)
    return str(value)


@dataclass(frozen=True, slots=True)
class Text:
    """A run of character data."""

    text: str


@dataclass(frozen=True, slots=True)
class Element:
    """A block or inline element that may be split between its children."""

    tag: str
    attrs: Attrs = ()
    children: Tuple["ContentNode", ...] = ()

    def attr(self, name: str, default: str | None = None) -> str | None:
        """Return an attribute value by name."""

        for key, value in self.attrs:
            if key == name:
                return value
        return default

    def shallow(self) -> "Element":
        """Return a childless clone of the element."""

        return replace(self, children=())

    def with_children(self, children: Iterable["ContentNode"]) -> "Element":
        """Return a clone carrying ``children``."""

        return replace(self, children=tuple(children))

    def with_attr(self, name: str, value: object) -> "Element":
        """Return a clone with ``name`` set to ``value``."""

        kept = [(key, val) for key, val in self.attrs if key != name]
        return replace(self, attrs=freeze_attrs(kept + [(name, value)]))


@dataclass(frozen=True, slots=True)
class Leaf:
    """Atomic content (image, whole table, rule) that never splits across pages."""

    tag: str
    attrs: Attrs = ()
    children: Tuple["ContentNode", ...] = ()

    def attr(self, name: str, default: str | None = None) -> str | None:
        """Return an attribute value by name."""

        for key, value in self.attrs:
            if key == name:
                return value
        return default


@dataclass(frozen=True, slots=True)
class Break:
    """Explicit page-break marker; consumed by segmentation."""


ContentNode = Union[Text, Element, Leaf, Break]


def element(tag: str, *children: ContentNode | str, **attrs: object) -> Element:
    """Convenience constructor; bare strings become Text nodes.

    Example:
        >>> element("p", "Body").children
        (Text(text='Body'),)
    """

    return Element(
        tag=tag,
        attrs=freeze_attrs({key.rstrip("_"): value for key, value in attrs.items()}),
        children=tuple(Text(child) if isinstance(child, str) else child for child in children),
    )


def leaf(tag: str, *children: ContentNode | str, **attrs: object) -> Leaf:
    """Convenience constructor for atomic nodes."""

    return Leaf(
        tag=tag,
        attrs=freeze_attrs({key.rstrip("_"): value for key, value in attrs.items()}),
        children=tuple(Text(child) if isinstance(child, str) else child for child in children),
    )


def iter_text(nodes: Iterable[ContentNode]) -> Iterator[str]:
    """Yield text runs in document order."""

    for node in nodes:
        if isinstance(node, Text):
            yield node.text
        elif isinstance(node, (Element, Leaf)):
            yield from iter_text(node.children)


def text_content(nodes: Iterable[ContentNode]) -> str:
    """Return the concatenated text of ``nodes``.

    Example:
        >>> text_content([element("p", "a", element("b", "c"))])
        'ac'
    """

    return "".join(iter_text(nodes))


def is_blank(node: ContentNode) -> bool:
    """Return True for whitespace-only text nodes."""

    return isinstance(node, Text) and not node.text.strip()


@dataclass(frozen=True, slots=True)
class Section:
    """Content between two page-break markers."""

    nodes: Tuple[ContentNode, ...] = ()

    def text(self) -> str:
        """Return the section's text content."""

        return text_content(self.nodes)


@dataclass(frozen=True, slots=True)
class Page:
    """One fitted page on the vector path.

    Args:
        index: Zero-based page number across the whole document.
        nodes: Content placed on the page, in document order.
        geometry: Geometry used to fit the page.
        forced: True when the page holds a node taller than the inner height.
    """

    index: int
    nodes: Tuple[ContentNode, ...]
    geometry: "PageGeometry"
    forced: bool = False

    def text(self) -> str:
        """Return the page's text content."""

        return text_content(self.nodes)


@dataclass(frozen=True, slots=True)
class RasterPage:
    """One page-sized image on the raster path.

    Args:
        index: Zero-based page number.
        image: Full-page white canvas with the strip pasted at the margin offset.
        strip_height_px: Height of the copied strip in surface pixels.
        height_mm: Strip height converted back to millimetres.
        offset_px: (left, top) margin offset of the strip on the canvas.
        geometry: Geometry used to slice the surface.
    """

    index: int
    image: "Image.Image"
    strip_height_px: int
    height_mm: float
    offset_px: Tuple[int, int]
    geometry: "PageGeometry"


@dataclass(slots=True)
class Document:
    """A titled content tree with editable margins."""

    title: str
    content: Element
    margins: Margins = field(default_factory=Margins)

    def update_margins(self, **sides: object) -> Margins:
        """Re-parse the given sides and store the result.

        Args:
            **sides: Free-text lengths keyed by side name.
        Returns:
            The updated margins.
        """

        self.margins = self.margins.update(**sides)
        return self.margins


AnyPage = Union[Page, RasterPage]
