#!/usr/bin/env python3
"""
convert_files.py - Batch image/PDF conversion CLI.

Usage:
    python convert_files.py photo.jpg --kind raster-to-raster --to png
    python convert_files.py *.png --kind raster-to-pdf-merged --page-size letter
    python convert_files.py report.pdf --kind pdf-to-raster --to jpeg -q 0.8
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add parent to path when running as script
if __name__ == "__main__":
    sys.path.insert(0, str(Path(__file__).parent))

from fileease import config
from fileease.batch import BatchOrchestrator, EventKind
from fileease.errors import InputRejected
from fileease.extract import BUNDLE_NAME, bundle_results
from fileease.models import (
    ConversionDirective,
    ConversionKind,
    ItemStatus,
    Orientation,
    PageSize,
    PdfLayout,
    RasterFormat,
    WorkItem,
)
from fileease.utils import format_file_size


def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S"
    )


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Convert and optimize JPEG, PNG and PDF files locally.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Conversion kinds:
  raster-to-raster       JPEG <-> PNG (needs --to)
  raster-to-pdf          one PDF per image
  raster-to-pdf-merged   one PDF for all images, pages sorted by file name
  optimize-raster        re-encode in the same format at --quality
  pdf-to-raster          one image per page, ZIP for multi-page PDFs (needs --to)
  pdf-to-text-document   extract text into a Word-importable .doc
"""
    )

    parser.add_argument(
        "input",
        nargs="+",
        type=Path,
        help="Input file(s): JPEG, PNG or PDF, up to 50 MB each"
    )

    parser.add_argument(
        "-k", "--kind",
        required=True,
        choices=[kind.value for kind in ConversionKind],
        help="Conversion to run"
    )

    parser.add_argument(
        "-t", "--to",
        choices=[fmt.value for fmt in RasterFormat],
        help="Target image format for raster-to-raster and pdf-to-raster"
    )

    parser.add_argument(
        "-q", "--quality",
        type=float,
        default=config.DEFAULT_QUALITY,
        help=f"Quality 0.1-1.0 for JPEG output (default: {config.DEFAULT_QUALITY})"
    )

    parser.add_argument(
        "--page-size",
        choices=[size.value for size in PageSize],
        default=PageSize.A4.value,
        help="Merged PDF page size (default: a4)"
    )

    parser.add_argument(
        "--orientation",
        choices=[o.value for o in Orientation],
        default=Orientation.PORTRAIT.value,
        help="Merged PDF orientation (default: portrait)"
    )

    parser.add_argument(
        "--margin",
        type=int,
        default=config.DEFAULT_MARGIN_MM,
        help=f"Merged PDF margin in mm, 0-{config.MAX_MARGIN_MM} (default: {config.DEFAULT_MARGIN_MM})"
    )

    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("."),
        help="Output directory (default: current directory)"
    )

    parser.add_argument(
        "--zip",
        action="store_true",
        help=f"Write all results as {BUNDLE_NAME} (a single result is written as-is)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )

    return parser.parse_args(argv)


def print_progress(current: float, label: str = ""):
    """Print progress bar."""
    width = 40
    filled = int(width * current / 100)
    bar = "=" * filled + "-" * (width - filled)
    print(f"\r[{bar}] {current:3.0f}% {label[:30]:<30}", end="", file=sys.stderr)
    if current >= 100:
        print(file=sys.stderr)


def load_items(paths):
    """Read accepted inputs into work items, reporting rejected ones."""
    items = []
    for p in paths:
        if not p.is_file():
            print(f"Error: File not found: {p}", file=sys.stderr)
            continue
        mime_type = config.guess_mime_type(p)
        try:
            config.check_input(p.name, mime_type, p.stat().st_size)
        except InputRejected as e:
            print(f"Warning: Skipping {e}", file=sys.stderr)
            continue
        items.append(WorkItem.create(p.read_bytes(), p.name, mime_type))
    return items


async def run_batch(items, directive):
    orchestrator = BatchOrchestrator()
    orchestrator.initialize()

    batch = orchestrator.stream(items, directive)
    async for event in batch:
        label = event.item.input_name if event.item is not None else ""
        print_progress(event.state.overall_progress, label)
        if event.kind is EventKind.BATCH_FINISHED and event.state.overall_progress < 100:
            print(file=sys.stderr)
    return batch.items


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        directive = ConversionDirective(
            kind=ConversionKind(args.kind),
            quality=args.quality,
            target_format=RasterFormat(args.to) if args.to else None,
            layout=PdfLayout(
                page_size=PageSize(args.page_size),
                orientation=Orientation(args.orientation),
                margin_mm=args.margin
            )
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    items = load_items(args.input)
    if not items:
        print("Error: No valid input files", file=sys.stderr)
        sys.exit(1)

    items = asyncio.run(run_batch(items, directive))

    args.output_dir.mkdir(parents=True, exist_ok=True)

    bundle_path = None
    if args.zip and any(item.status is ItemStatus.COMPLETED for item in items):
        bundle_name, bundle = bundle_results(items)
        bundle_path = args.output_dir / bundle_name
        bundle_path.write_bytes(bundle.data)

    total_in = 0
    total_out = 0
    successes = 0
    for item in items:
        if item.status is ItemStatus.COMPLETED:
            output_path = bundle_path or args.output_dir / item.output_name
            if bundle_path is None:
                output_path.write_bytes(item.output_buffer)
            total_in += item.input_size
            total_out += item.output_size
            successes += 1
            print(
                f"{item.input_name} -> {output_path} "
                f"({format_file_size(item.input_size)} -> {format_file_size(item.output_size)}, "
                f"{item.compression_ratio}% saved)"
            )
        else:
            print(f"{item.input_name}: {item.status.value} {item.error_message or ''}", file=sys.stderr)
        item.release()

    print(f"\n{'='*50}")
    print(f"Batch complete: {successes}/{len(items)} files")
    print(f"Total: {format_file_size(total_in)} -> {format_file_size(total_out)}")

    sys.exit(0 if successes == len(items) else 1)


if __name__ == "__main__":
    main()
