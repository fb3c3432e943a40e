"""
Tests for HTML, Word, and plain text exports.
"""

from pagesetter.exports import export_html, export_text, export_word_html
from pagesetter.models import Document
from pagesetter.parser import parse_html
from pagesetter.pdf.pdf_settings import PageSettings
from pagesetter.units import Margins


class TestWordExport:
    """Word-compatible HTML."""

    def test_page_rule(self):
        """The @page rule carries paper size and margins."""
        document = Document(title="Memo", content=parse_html("<p>Hello</p>"), margins=Margins.from_strings(top="1cm"))
        html = export_word_html(document)
        assert "@page" in html
        assert "size: 210mm 297mm" in html
        assert "margin: 10mm 25.4mm 25.4mm 25.4mm" in html
        assert "<p>Hello</p>" in html
        assert "urn:schemas-microsoft-com:office:word" in html

    def test_first_page_only(self):
        """Only the content that fits on page one is exported."""
        html_in = "".join(f"<p>para{idx} " + "text " * 80 + "</p>" for idx in range(40))
        html = export_word_html(Document(title="Long", content=parse_html(html_in)))
        assert "para0 " in html
        assert "para39 " not in html

    def test_letter_paper(self):
        """Paper size follows the settings."""
        html = export_word_html(Document(title="t", content=parse_html("<p>x</p>")), settings=PageSettings(paper="letter"))
        assert "size: 215.9mm 279.4mm" in html


class TestHtmlExport:
    """Standalone HTML."""

    def test_wraps_whole_document(self):
        """The full content, breaks included, is kept."""
        document = Document(title="A & B", content=parse_html("<p>a</p><break/><p>b</p>"))
        html = export_html(document)
        assert html.startswith("<!DOCTYPE html>")
        assert "<title>A &amp; B</title>" in html
        assert "<p>a</p>" in html and "<p>b</p>" in html
        assert 'class="page-break"' in html


class TestTextExport:
    """Plain text."""

    def test_lines_trimmed_and_blank_lines_dropped(self):
        """Each block ends a line; empty lines disappear."""
        document = Document(
            title="t",
            content=parse_html("<h1>  Title </h1><p></p><p>First <b>bold</b></p><ul><li>one</li><li>two</li></ul>"),
        )
        assert export_text(document) == "Title\nFirst bold\none\ntwo"

    def test_scripts_and_styles_removed(self):
        """Script and style content never reaches the text."""
        document = Document(title="t", content=parse_html("<style>p {}</style><p>a</p><script>x()</script>"))
        assert export_text(document) == "a"

    def test_line_breaks(self):
        """<br> ends a line."""
        document = Document(title="t", content=parse_html("<p>a<br>b</p>"))
        assert export_text(document) == "a\nb"

    def test_soft_hyphens_removed(self):
        """Soft hyphens from the source never reach the text."""
        document = Document(title="t", content=parse_html("<p>ever\u00adlasting</p>"))
        assert export_text(document) == "everlasting"
