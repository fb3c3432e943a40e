"""
Tests for HTML parsing into content trees.
"""

from pagesetter.models import Break, Element, Leaf, Text
from pagesetter.parser import parse_html, to_html


class TestParseHtml:
    """HTML to content tree conversion."""

    def test_break_tags(self):
        """<break/> becomes a Break marker between blocks."""
        root = parse_html("<h1>Title</h1><break/><p>Body</p>")
        assert root.tag == "body"
        assert [type(node) for node in root.children] == [Element, Break, Element]

    def test_break_markers_by_attribute(self):
        """Editor break markers are recognised by class and data attributes."""
        html = (
            "<p>a</p><div class='page-break'></div><p>b</p>"
            "<div data-page-break='true'></div><p>c</p>"
            "<div data-type='pageBreak'></div><p>d</p><pagebreak></pagebreak>"
        )
        root = parse_html(html)
        assert sum(isinstance(node, Break) for node in root.children) == 4

    def test_leaves(self):
        """Images, tables, and rules are atomic leaves."""
        root = parse_html("<p>x</p><img src='a.png'><table><tr><td>1</td></tr></table><hr>")
        leaves = [node for node in root.children if isinstance(node, Leaf)]
        assert [node.tag for node in leaves] == ["img", "table", "hr"]
        assert leaves[0].attr("src") == "a.png"

    def test_blank_text_between_blocks_dropped(self):
        """Whitespace between block elements does not become content."""
        root = parse_html("<p>a</p>\n   \n<p>b</p>")
        assert len(root.children) == 2

    def test_inline_text_kept_verbatim(self):
        """Text inside a paragraph keeps its spacing."""
        root = parse_html("<p>one <b>two</b> three</p>")
        paragraph = root.children[0]
        assert paragraph.children[0] == Text("one ")
        assert paragraph.children[2] == Text(" three")

    def test_scripts_dropped(self):
        """Script and style content is not document content."""
        root = parse_html("<style>p{}</style><p>a</p><script>alert(1)</script>")
        assert [node.tag for node in root.children] == ["p"]

    def test_full_document_uses_body(self):
        """A complete HTML document is read from its body."""
        root = parse_html("<html><head><title>T</title></head><body><p>a</p></body></html>")
        assert [node.tag for node in root.children] == ["p"]

    def test_nodes_are_hashable(self):
        """Frozen nodes can key caches."""
        root = parse_html("<p class='x'>a</p>")
        assert hash(root) == hash(parse_html("<p class='x'>a</p>"))


class TestToHtml:
    """Content tree serialisation."""

    def test_escapes_and_void_tags(self):
        """Text is escaped and void tags self-close."""
        root = parse_html("<p>a &lt; b<br></p><img src='x.png'>")
        assert to_html(root.children) == '<p>a &lt; b<br /></p><img src="x.png" />'

    def test_break_marker(self):
        """Breaks serialise to the editor's page-break div."""
        html = to_html(parse_html("<p>a</p><break/><p>b</p>").children)
        assert 'class="page-break"' in html
        assert [type(node) for node in parse_html(html).children] == [Element, Break, Element]
