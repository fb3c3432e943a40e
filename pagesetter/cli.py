"""
Command-line export: ``python -m pagesetter INPUT.html -o OUT``.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Sequence

from tqdm import tqdm

from .errors import PagesetterError
from .exports import export_html, export_text, export_word_html
from .models import Document
from .parser import parse_file
from .pdf.builder import export_pdf
from .pdf.pdf_settings import PAPER_SIZES_MM, PageSettings

logger = logging.getLogger(__name__)

FORMATS = ("pdf", "raster", "html", "doc", "txt")
_SUFFIXES = {"pdf": ".pdf", "raster": ".pdf", "html": ".export.html", "doc": ".doc", "txt": ".txt"}


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Return CLI arguments for the export command."""

    parser = argparse.ArgumentParser(
        prog="pagesetter",
        description="Paginate an HTML document and export it as PDF, HTML, Word HTML, or text.",
    )
    parser.add_argument("input", type=Path, help="HTML file to export.")
    parser.add_argument(
        "--output-file",
        "-o",
        type=Path,
        default=None,
        help="Destination file (defaults to the input name with the format's suffix).",
    )
    parser.add_argument(
        "--format",
        "-f",
        choices=FORMATS,
        default="pdf",
        help="pdf fits text with font metrics; raster renders once and slices the image.",
    )
    for side in ("top", "bottom", "left", "right"):
        parser.add_argument(
            f"--margin-{side}",
            default=None,
            metavar="LENGTH",
            help=f"{side.capitalize()} margin, e.g. 2in, 19mm, 2.5cm, 96px (default 25.4mm).",
        )
    parser.add_argument(
        "--paper",
        choices=sorted(PAPER_SIZES_MM),
        default=None,
        help="Paper size (default a4, or PAGESETTER_PAPER).",
    )
    parser.add_argument("--scale", type=float, default=None, help="Raster resolution multiplier.")
    parser.add_argument("--title", default=None, help="Document title (defaults to the file stem).")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log debug output.")
    return parser.parse_args(argv)


def _settings(args: argparse.Namespace) -> PageSettings:
    """Return PageSettings from the environment with CLI overrides applied.

    Args:
        args: Parsed CLI arguments.
    Returns:
        PageSettings instance.
    """

    settings = PageSettings.from_env()
    if args.paper:
        settings.paper = args.paper
    if args.scale and args.scale > 0:
        settings.scale = args.scale
    sides = {
        side: getattr(args, f"margin_{side}")
        for side in ("top", "bottom", "left", "right")
        if getattr(args, f"margin_{side}") is not None
    }
    if sides:
        settings = settings.with_margins(**sides)
    return settings


def _export(*, args: argparse.Namespace, document: Document, settings: PageSettings, output: Path) -> None:
    """Run the requested export and write ``output``."""

    base_dir = args.input.parent
    if args.format in {"pdf", "raster"}:
        mode = "raster" if args.format == "raster" else "vector"
        with tqdm(total=100, desc=f"Exporting {output.name}", unit="%") as bar:

            def progress(percent: int) -> None:
                bar.update(max(0, percent - bar.n))

            export_pdf(
                document,
                output,
                mode=mode,
                settings=settings,
                progress=progress,
                base_dir=base_dir,
            )
        return
    if args.format == "doc":
        text = export_word_html(document, settings=settings, base_dir=base_dir)
    elif args.format == "html":
        text = export_html(document, settings=settings)
    else:
        text = export_text(document) + "\n"
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")


def main(argv: List[str] | None = None) -> int:
    """Export an HTML document from the command line.

    Args:
        argv: Arguments to parse instead of ``sys.argv``.
    Returns:
        Process exit status.

    Example:
        >>> main(["report.html", "-o", "output/report.pdf"])  # doctest: +SKIP
        0
    """

    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(name)s - %(levelname)s - %(message)s",
    )
    settings = _settings(args)
    output = args.output_file or args.input.with_name(args.input.stem + _SUFFIXES[args.format])
    try:
        content = parse_file(args.input)
        document = Document(
            title=args.title or args.input.stem,
            content=content,
            margins=settings.margins,
        )
        _export(args=args, document=document, settings=settings, output=output)
    except (OSError, PagesetterError) as exc:
        print(f"pagesetter: {exc}", file=sys.stderr)
        return 1
    logger.info("Wrote %s", output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
