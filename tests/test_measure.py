"""
Tests for ReportLab-backed measurement and the measurement workspace.
"""

import base64
import io

import pytest
import requests
from PIL import Image

from pagesetter.errors import AssetError
from pagesetter.models import element, leaf
from pagesetter.pdf.pdf_measure import measurement_workspace
from pagesetter.pdf.pdf_settings import PageSettings

WIDTH_PX = 600.0


def _png_data_uri(width: int, height: int) -> str:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), (10, 120, 200)).save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


def _png_bytes(width: int, height: int) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), (200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeResponse:
    """Minimal stand-in for a requests response."""

    def __init__(self, content: bytes, status: int = 200):
        self.content = content
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error")


@pytest.fixture
def workspace():
    """Open workspace with default settings and no images."""
    with measurement_workspace(nodes=[], settings=PageSettings()) as opened:
        yield opened


class TestReportLabMeasurer:
    """Font-metric measurement."""

    def test_empty_content_has_no_height(self, workspace):
        """Nothing to lay out measures zero."""
        assert workspace.measurer.measure([], width_px=WIDTH_PX) == 0.0

    def test_more_text_is_taller(self, workspace):
        """Longer paragraphs wrap onto more lines."""
        short = workspace.measurer.measure([element("p", "word")], width_px=WIDTH_PX)
        long = workspace.measurer.measure([element("p", "word " * 200)], width_px=WIDTH_PX)
        assert 0 < short < long

    def test_narrower_is_taller(self, workspace):
        """The same text needs more lines in a narrower box."""
        nodes = [element("p", "word " * 100)]
        wide = workspace.measurer.measure(nodes, width_px=WIDTH_PX)
        narrow = workspace.measurer.measure(nodes, width_px=WIDTH_PX / 3)
        assert narrow > wide

    def test_heading_taller_than_body(self, workspace):
        """Headings use a larger font."""
        body = workspace.measurer.measure([element("p", "Title")], width_px=WIDTH_PX)
        heading = workspace.measurer.measure([element("h1", "Title")], width_px=WIDTH_PX)
        assert heading > body

    def test_stacking_adds_space_between_blocks(self, workspace):
        """Two paragraphs are taller than the sum of each alone."""
        one = workspace.measurer.measure([element("p", "a")], width_px=WIDTH_PX)
        two = workspace.measurer.measure([element("p", "a"), element("p", "b")], width_px=WIDTH_PX)
        assert two > 2 * one

    def test_results_are_memoised(self, workspace):
        """Repeated measurements hit the cache."""
        nodes = [element("p", "cached text")]
        first = workspace.measurer.measure(nodes, width_px=WIDTH_PX)
        second = workspace.measurer.measure(tuple(nodes), width_px=WIDTH_PX)
        assert first == second
        assert len(workspace.measurer._cache) == 1

    def test_lists_tables_and_rules_measure(self, workspace):
        """Every supported block kind produces height."""
        nodes = [
            element("ul", element("li", "one"), element("li", "two")),
            element("ol", element("li", "three"), start="4"),
            leaf("table", element("tr", element("th", "h"), element("td", "d"))),
            leaf("hr"),
            element("pre", "line 1\nline 2"),
            element("blockquote", element("p", "quoted ", element("b", "bold"), element("code", "x"))),
        ]
        for node in nodes:
            assert workspace.measurer.measure([node], width_px=WIDTH_PX) > 0


class TestImageAssets:
    """Images are loaded before measurement."""

    def test_image_height_from_intrinsic_size(self):
        """An image without size attributes measures its pixel height."""
        src = _png_data_uri(100, 50)
        nodes = [leaf("img", src=src)]
        with measurement_workspace(nodes=nodes, settings=PageSettings()) as opened:
            assert set(opened.assets) == {src}
            assert opened.measurer.measure(nodes, width_px=WIDTH_PX) == pytest.approx(50.0)

    def test_wide_image_scaled_to_width(self):
        """Images wider than the box scale down proportionally."""
        src = _png_data_uri(1200, 600)
        nodes = [leaf("img", src=src)]
        with measurement_workspace(nodes=nodes, settings=PageSettings()) as opened:
            assert opened.measurer.measure(nodes, width_px=WIDTH_PX) == pytest.approx(300.0)

    def test_size_attributes(self):
        """width/height attributes override the placeholder size."""
        nodes = [leaf("video", width="200", height="80")]
        with measurement_workspace(nodes=nodes, settings=PageSettings()) as opened:
            assert opened.measurer.measure(nodes, width_px=WIDTH_PX) == pytest.approx(80.0)

    def test_missing_image_raises(self, tmp_path):
        """An unreadable image aborts before measurement starts."""
        nodes = [leaf("img", src="missing.png")]
        with pytest.raises(AssetError):
            with measurement_workspace(nodes=nodes, settings=PageSettings(), base_dir=tmp_path):
                pass

    def test_remote_image_is_downloaded(self, monkeypatch):
        """http(s) sources are fetched instead of read from disk."""
        calls = []

        def fake_get(url, timeout):
            calls.append(url)
            return FakeResponse(_png_bytes(40, 30))

        monkeypatch.setattr("pagesetter.pdf.pdf_assets.requests.get", fake_get)
        src = "https://example.com/a.png"
        nodes = [leaf("img", src=src)]
        with measurement_workspace(nodes=nodes, settings=PageSettings()) as opened:
            assert opened.assets[src].height_px == 30
            assert opened.measurer.measure(nodes, width_px=WIDTH_PX) == pytest.approx(30.0)
        assert calls == [src]

    @pytest.mark.parametrize(
        "failure",
        [requests.ConnectionError("offline"), requests.Timeout("slow")],
    )
    def test_remote_network_failure_raises(self, monkeypatch, failure):
        """Network errors surface as AssetError with the cause chained."""

        def fake_get(url, timeout):
            raise failure

        monkeypatch.setattr("pagesetter.pdf.pdf_assets.requests.get", fake_get)
        nodes = [leaf("img", src="http://example.com/a.png")]
        with pytest.raises(AssetError) as excinfo:
            with measurement_workspace(nodes=nodes, settings=PageSettings()):
                pass
        assert excinfo.value.__cause__ is failure

    def test_remote_http_error_raises(self, monkeypatch):
        """A 404 aborts the export with the URL in the message."""
        monkeypatch.setattr(
            "pagesetter.pdf.pdf_assets.requests.get",
            lambda url, timeout: FakeResponse(b"", status=404),
        )
        nodes = [leaf("img", src="https://example.com/gone.png")]
        with pytest.raises(AssetError, match="gone.png"):
            with measurement_workspace(nodes=nodes, settings=PageSettings()):
                pass


class TestWorkspace:
    """Workspace lifetime."""

    def test_released_on_exit(self):
        """Caches, assets, and tracked surfaces are released."""

        class Surface:
            closed = 0

            def close(self):
                Surface.closed += 1

        src = _png_data_uri(10, 10)
        nodes = [leaf("img", src=src)]
        with measurement_workspace(nodes=nodes, settings=PageSettings()) as opened:
            opened.track(Surface())
            opened.measurer.measure([element("p", "x")], width_px=WIDTH_PX)
        assert Surface.closed == 1
        assert opened.assets == {}
        assert opened.measurer._cache == {}

    def test_released_on_error(self):
        """An exception inside the block still releases the workspace."""
        with pytest.raises(RuntimeError):
            with measurement_workspace(nodes=[], settings=PageSettings()) as opened:
                opened.measurer.measure([element("p", "x")], width_px=WIDTH_PX)
                raise RuntimeError("boom")
        assert opened.measurer._cache == {}
