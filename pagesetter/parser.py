"""
Parsing helpers that convert editor HTML into content trees and back.
"""

from __future__ import annotations

import html as htmllib
from pathlib import Path
from typing import Iterable, List

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

from .models import Break, ContentNode, Element, Leaf, Text, freeze_attrs

ROOT_TAG = "body"

BREAK_TAGS = frozenset({"break", "pagebreak"})
LEAF_TAGS = frozenset(
    {"img", "table", "hr", "svg", "figure", "canvas", "video", "iframe", "object"}
)
DROPPED_TAGS = frozenset({"script", "style", "template", "head", "title", "meta", "link"})
BLOCK_TAGS = frozenset(
    {
        "address",
        "article",
        "aside",
        "blockquote",
        "dd",
        "div",
        "dl",
        "dt",
        "figcaption",
        "footer",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "header",
        "li",
        "main",
        "nav",
        "ol",
        "p",
        "pre",
        "section",
        "ul",
    }
    | LEAF_TAGS
    | BREAK_TAGS
)
VOID_TAGS = frozenset({"br", "hr", "img", "wbr", "col", "source", "break", "pagebreak"})


def is_break_tag(tag: Tag) -> bool:
    """Return True when ``tag`` marks an explicit page break.

    Recognised markers are ``<break>``/``<pagebreak>`` tags, the editor's
    ``page-break`` class, and the ``data-page-break`` / ``data-type="pageBreak"``
    attributes.
    """

    if tag.name in BREAK_TAGS:
        return True
    classes = tag.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()
    if "page-break" in classes:
        return True
    return tag.has_attr("data-page-break") or tag.get("data-type") == "pageBreak"


def parse_html(html: str) -> Element:
    """Parse an HTML fragment or document into a content tree.

    Whitespace-only text between block elements is dropped; all other text is
    kept verbatim.

    Args:
        html: Editor HTML.
    Returns:
        Root Element (tag ``body``) whose children are the top-level blocks.

    Example:
        >>> root = parse_html("<h1>Title</h1><break/><p>Body</p>")
        >>> [type(node).__name__ for node in root.children]
        ['Element', 'Break', 'Element']
    """

    soup = BeautifulSoup(html or "", "html.parser")
    container: Tag | BeautifulSoup = soup.body or soup
    return Element(tag=ROOT_TAG, children=tuple(_convert_children(container)))


def parse_file(path: Path) -> Element:
    """Read and parse an HTML file."""

    return parse_html(Path(path).read_text(encoding="utf-8"))


def _convert_children(parent: Tag | BeautifulSoup) -> List[ContentNode]:
    """Convert the children of a BeautifulSoup node."""

    drop_blank = _has_block_children(parent)
    nodes: List[ContentNode] = []
    for child in parent.children:
        node = _convert(child, drop_blank=drop_blank)
        if node is not None:
            nodes.append(node)
    return nodes


def _convert(fragment: object, *, drop_blank: bool) -> ContentNode | None:
    """Convert one BeautifulSoup fragment, or return None to skip it."""

    if isinstance(fragment, PreformattedString):
        return None
    if isinstance(fragment, NavigableString):
        text = str(fragment)
        if drop_blank and not text.strip():
            return None
        return Text(text)
    if not isinstance(fragment, Tag):
        return None
    if fragment.name in DROPPED_TAGS:
        return None
    if is_break_tag(fragment):
        return Break()
    attrs = freeze_attrs(fragment.attrs)
    children = tuple(_convert_children(fragment))
    if fragment.name in LEAF_TAGS:
        return Leaf(tag=fragment.name, attrs=attrs, children=children)
    return Element(tag=fragment.name, attrs=attrs, children=children)


def _has_block_children(parent: Tag | BeautifulSoup) -> bool:
    """Return True when ``parent`` directly contains a block-level tag."""

    for child in parent.children:
        if isinstance(child, Tag) and (child.name in BLOCK_TAGS or is_break_tag(child)):
            return True
    return False


def to_html(nodes: Iterable[ContentNode]) -> str:
    """Serialize content nodes back to HTML.

    Example:
        >>> to_html([Element("p", (("class", "x"),), (Text("a < b"),))])
        '<p class="x">a &lt; b</p>'
    """

    return "".join(_node_html(node) for node in nodes)


def _node_html(node: ContentNode) -> str:
    if isinstance(node, Text):
        return htmllib.escape(node.text, quote=False)
    if isinstance(node, Break):
        return '<div class="page-break" data-page-break="true"></div>'
    attrs = "".join(
        f' {key}="{htmllib.escape(value, quote=True)}"' for key, value in node.attrs
    )
    if node.tag in VOID_TAGS and not node.children:
        return f"<{node.tag}{attrs} />"
    inner = to_html(node.children)
    return f"<{node.tag}{attrs}>{inner}</{node.tag}>"
