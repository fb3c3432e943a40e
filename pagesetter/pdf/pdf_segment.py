"""Split a content tree into sections at explicit page breaks."""

from __future__ import annotations

from typing import List

from ..models import Break, ContentNode, Element, Section


def segment(tree: ContentNode) -> List[Section]:
    """Split the top-level children of ``tree`` at Break markers.

    Break markers are consumed and never appear in a Section. Runs left empty
    by leading, trailing, or doubled breaks are dropped; a tree with no
    content at all still yields one empty Section.

    Args:
        tree: Root of the content tree.
    Returns:
        Sections in document order.

    Example:
        >>> from pagesetter.models import element
        >>> root = element("body", element("h1", "Title"), Break(), element("p", "Body"))
        >>> [section.text() for section in segment(root)]
        ['Title', 'Body']
    """

    children = tree.children if isinstance(tree, Element) else (tree,)
    sections: List[Section] = []
    current: List[ContentNode] = []
    for node in children:
        if isinstance(node, Break):
            if current:
                sections.append(Section(tuple(current)))
            current = []
            continue
        current.append(node)
    if current:
        sections.append(Section(tuple(current)))
    return sections or [Section()]
