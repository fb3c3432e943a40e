"""Image asset loading for ``img`` leaves."""

from __future__ import annotations

import base64
import binascii
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable

import requests
from PIL import Image, UnidentifiedImageError

from ..errors import AssetError
from ..models import ContentNode, Element, Leaf

logger = logging.getLogger(__name__)

REMOTE_SCHEMES = ("http://", "https://")
FETCH_TIMEOUT = 15


@dataclass(slots=True)
class ImageAsset:
    """A loaded image and its intrinsic pixel size.

    Args:
        src: Source string as written in the content tree.
        image: Decoded RGB(A) image.
    """

    src: str
    image: Image.Image

    @property
    def width_px(self) -> int:
        return self.image.width

    @property
    def height_px(self) -> int:
        return self.image.height

    def close(self) -> None:
        self.image.close()


def image_sources(nodes: Iterable[ContentNode]) -> list[str]:
    """Return ``src`` values of every ``img`` in document order, without repeats."""

    seen: Dict[str, None] = {}
    for node in nodes:
        if isinstance(node, Leaf) and node.tag == "img":
            src = node.attr("src")
            if src:
                seen.setdefault(src, None)
        if isinstance(node, (Element, Leaf)):
            for src in image_sources(node.children):
                seen.setdefault(src, None)
    return list(seen)


def load_assets(
    nodes: Iterable[ContentNode], *, base_dir: Path | None = None
) -> Dict[str, ImageAsset]:
    """Load every image referenced by ``nodes`` before measurement.

    Args:
        nodes: Content nodes to scan.
        base_dir: Directory relative paths are resolved against.
    Returns:
        Mapping of src to ImageAsset.
    Raises:
        AssetError: When an image cannot be read or decoded.
    """

    assets: Dict[str, ImageAsset] = {}
    try:
        for src in image_sources(nodes):
            assets[src] = ImageAsset(src=src, image=_open_image(src, base_dir=base_dir))
    except AssetError:
        for asset in assets.values():
            asset.close()
        raise
    logger.debug("Loaded %d image asset(s)", len(assets))
    return assets


def _open_image(src: str, *, base_dir: Path | None) -> Image.Image:
    """Decode an image from a path, an http(s) URL or a ``data:`` URI.

    Args:
        src: Image source.
        base_dir: Base directory for relative paths.
    Returns:
        Loaded Pillow image.
    """

    try:
        if src.startswith("data:"):
            header, _, payload = src.partition(",")
            if ";base64" not in header:
                raise AssetError(f"Unsupported data URI encoding for image: {header}")
            stream: io.BytesIO | Path = io.BytesIO(base64.b64decode(payload, validate=False))
        elif src.lower().startswith(REMOTE_SCHEMES):
            stream = io.BytesIO(_fetch(src))
        else:
            path = Path(src)
            if not path.is_absolute() and base_dir is not None:
                path = base_dir / path
            stream = path
        with Image.open(stream) as image:
            image.load()
            return image.convert("RGBA" if image.mode in {"RGBA", "LA", "P"} else "RGB")
    except (OSError, UnidentifiedImageError, binascii.Error, ValueError) as exc:
        raise AssetError(f"Could not load image {src[:80]!r}: {exc}") from exc


def _fetch(url: str) -> bytes:
    """Download a remote image.

    Raises:
        AssetError: On connection failures, timeouts or non-2xx responses.
    """

    logger.debug("Fetching image %s", url)
    try:
        response = requests.get(url, timeout=FETCH_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise AssetError(f"Could not fetch image {url[:80]!r}: {exc}") from exc
    return response.content
