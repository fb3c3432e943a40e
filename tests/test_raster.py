"""
Tests for the raster path: rendering and slicing.
"""

import math

import pytest
from PIL import Image

from pagesetter.errors import RenderError
from pagesetter.models import element, leaf
from pagesetter.parser import parse_html
from pagesetter.pdf.pdf_geometry import compute_geometry
from pagesetter.pdf.pdf_raster import PillowRenderer, rasterize
from pagesetter.units import Margins


class FixedRenderer:
    """Renderer returning a blank surface of a fixed height."""

    def __init__(self, height: int):
        self.height = height
        self.calls = []

    def render(self, tree, *, width_px, scale):
        self.calls.append((width_px, scale))
        return Image.new("RGB", (max(1, round(width_px * scale)), self.height), (255, 255, 255))


@pytest.fixture
def geometry():
    """A4 with default margins at CSS pixel density."""
    return compute_geometry((210, 297), Margins())


def _slice_height(geometry, surface_width):
    return max(1, round(geometry.inner_height_mm * surface_width / geometry.inner_width_mm))


class TestRasterize:
    """Slicing a tall surface into pages."""

    @pytest.mark.parametrize("height", [1, 500, 1860, 1861, 4000, 9999])
    def test_slices_cover_surface(self, geometry, height):
        """Strip heights sum to the surface height and page count is the ceiling."""
        renderer = FixedRenderer(height)
        pages = rasterize(element("body"), geometry, 2.0, renderer)
        surface_width = max(1, round(geometry.inner_width_px * 2.0))
        slice_height = _slice_height(geometry, surface_width)
        assert sum(page.strip_height_px for page in pages) == height
        assert len(pages) == max(1, math.ceil(height / slice_height))
        assert all(page.strip_height_px <= slice_height for page in pages)

    def test_render_called_once_at_scaled_width(self, geometry):
        """The whole tree is rendered once at the inner width."""
        renderer = FixedRenderer(100)
        rasterize(element("body"), geometry, 3.0, renderer)
        assert renderer.calls == [(pytest.approx(geometry.inner_width_px), 3.0)]

    def test_short_content_is_one_page(self, geometry):
        """Content shorter than a page yields exactly one page."""
        pages = rasterize(element("body"), geometry, 2.0, FixedRenderer(10))
        assert len(pages) == 1
        assert pages[0].index == 0

    def test_page_canvas_and_offset(self, geometry):
        """Each strip sits on a full-page white canvas at the margin offset."""
        pages = rasterize(element("body"), geometry, 2.0, FixedRenderer(3000))
        surface_width = max(1, round(geometry.inner_width_px * 2.0))
        px_per_mm = surface_width / geometry.inner_width_mm
        first = pages[0]
        assert first.image.size == (round(210 * px_per_mm), round(297 * px_per_mm))
        assert first.offset_px == (round(25.4 * px_per_mm), round(25.4 * px_per_mm))
        assert first.height_mm == pytest.approx(first.strip_height_px / px_per_mm)
        assert first.image.getpixel((0, 0)) == (255, 255, 255)

    def test_renderer_failure_is_wrapped(self, geometry):
        """Renderer exceptions surface as RenderError with the cause chained."""

        class Broken:
            def render(self, tree, *, width_px, scale):
                raise OSError("no display")

        with pytest.raises(RenderError) as excinfo:
            rasterize(element("body"), geometry, 2.0, Broken())
        assert isinstance(excinfo.value.__cause__, OSError)

    def test_surfaces_reported(self, geometry):
        """Every created image is handed to the surface callback."""
        seen = []
        pages = rasterize(element("body"), geometry, 2.0, FixedRenderer(4000), on_surface=seen.append)
        assert len(seen) == len(pages) + 1

    def test_degenerate_geometry_is_one_page(self, caplog):
        """With no content area the whole render is scaled onto a single sheet."""
        geometry = compute_geometry((210, 297), Margins.from_strings(top="150mm", bottom="150mm"))
        with caplog.at_level("WARNING", logger="pagesetter.pdf.pdf_raster"):
            pages = rasterize(element("body"), geometry, 2.0, FixedRenderer(20000))
        assert len(pages) == 1
        page = pages[0]
        assert page.strip_height_px == 20000
        assert page.image.size[1] < 20000
        left, top = page.offset_px
        assert 0 <= left and 0 <= top
        assert "no content area" in caplog.text

    def test_degenerate_geometry_with_real_text(self):
        """A short paragraph never fans out into one page per pixel row."""
        geometry = compute_geometry((210, 297), Margins.from_strings(top="150mm", bottom="150mm"))
        pages = rasterize(element("body", element("p", "Hello world " * 20)), geometry, 2)
        assert len(pages) == 1


class TestPillowRenderer:
    """The bundled Pillow renderer."""

    def test_width_and_background(self):
        """Output is scaled to the requested width with a white background."""
        image = PillowRenderer().render(parse_html("<p>Hello</p>"), width_px=300, scale=2.0)
        assert image.width == 600
        assert image.mode == "RGB"
        assert image.getpixel((image.width - 1, image.height - 1)) == (255, 255, 255)

    def test_more_content_is_taller(self):
        """Longer documents render taller surfaces."""
        renderer = PillowRenderer()
        short = renderer.render(parse_html("<p>Hello</p>"), width_px=300, scale=1.0)
        long = renderer.render(parse_html("<p>" + "word " * 300 + "</p>"), width_px=300, scale=1.0)
        assert long.height > short.height

    def test_text_draws_ink(self):
        """Rendered text is not blank."""
        image = PillowRenderer().render(parse_html("<h1>Heading</h1>"), width_px=300, scale=1.0)
        assert image.convert("L").getextrema()[0] < 128

    def test_mixed_blocks(self):
        """Lists, tables, rules, and placeholders all render."""
        html = (
            "<h2>Title</h2><ul><li>one</li><li>two</li></ul><ol start='3'><li>three</li></ol>"
            "<table><tr><th>a</th><td>b</td></tr></table><hr><pre>x\ny</pre>"
            "<blockquote>quote</blockquote><video width='100' height='40'></video>"
        )
        image = PillowRenderer().render(parse_html(html), width_px=400, scale=1.0)
        assert image.height > 100

    def test_empty_tree(self):
        """An empty tree still renders a 1-pixel-high surface."""
        image = PillowRenderer().render(element("body"), width_px=50, scale=1.0)
        assert image.size == (50, 1)

    def test_end_to_end_slicing(self):
        """Real renders slice into pages without losing pixels."""
        geometry = compute_geometry((210, 297), Margins())
        tree = parse_html("".join(f"<p>Paragraph {idx} " + "text " * 40 + "</p>" for idx in range(60)))
        pages = rasterize(tree, geometry, 1.0, PillowRenderer())
        assert len(pages) > 1
        assert all(isinstance(page.image, Image.Image) for page in pages)

    def test_image_leaf_uses_asset(self):
        """Loaded images are pasted at their size."""
        from pagesetter.pdf.pdf_assets import ImageAsset

        asset = ImageAsset(src="a.png", image=Image.new("RGB", (40, 20), (0, 0, 0)))
        renderer = PillowRenderer(assets={"a.png": asset})
        image = renderer.render(element("body", leaf("img", src="a.png")), width_px=100, scale=1.0)
        assert image.size == (100, 20)
        assert image.getpixel((5, 5)) == (0, 0, 0)
