"""
Tests for splitting content at explicit page breaks.
"""

from pagesetter.models import Break, Element, Section, element
from pagesetter.parser import parse_html
from pagesetter.pdf.pdf_segment import segment


class TestSegment:
    """Break segmentation."""

    def test_two_sections(self):
        """A break between blocks yields two sections without the marker."""
        sections = segment(parse_html("<h1>Title</h1><break/><p>Body</p>"))
        assert [section.text() for section in sections] == ["Title", "Body"]
        assert all(not isinstance(node, Break) for section in sections for node in section.nodes)

    def test_no_breaks(self):
        """Content without breaks is one section holding every top-level node."""
        root = parse_html("<p>a</p><p>b</p>")
        assert segment(root) == [Section(root.children)]

    def test_empty_runs_dropped(self):
        """Leading, trailing, and doubled breaks do not create empty sections."""
        root = element("body", Break(), element("p", "a"), Break(), Break(), element("p", "b"), Break())
        assert [section.text() for section in segment(root)] == ["a", "b"]

    def test_empty_tree(self):
        """An empty tree still produces one empty section."""
        assert segment(Element("body")) == [Section()]

    def test_only_breaks(self):
        """A tree of nothing but breaks is one empty section."""
        assert segment(element("body", Break(), Break())) == [Section()]

    def test_nested_break_is_not_a_boundary(self):
        """Only top-level markers split sections."""
        root = element("body", element("div", element("p", "a"), Break(), element("p", "b")))
        assert len(segment(root)) == 1
