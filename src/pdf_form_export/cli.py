# SPDX-License-Identifier: Apache-2.0
"""
PDF Form Export - CLI Tool

Fills a PDF form template, draws text annotations and a drawing overlay,
and writes the flattened result to the export storage.

Usage:
    export-pdf <template.pdf> [options]

Examples:
    export-pdf form.pdf --data values.json
    export-pdf form.pdf --annotations notes.json --drawing sketch.png
    export-pdf form.pdf --data values.json --user-id u1 --draft-id d1
    export-pdf form.pdf --list-fields
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, NoReturn, Optional, Sequence

from pdf_form_export.core.form_filler import parse_form_data_json
from pdf_form_export.core.template_inspector import inspect_template
from pdf_form_export.pipeline.errors import ExportError
from pdf_form_export.pipeline.export_pipeline import (
    ExportConfig,
    ExportPipeline,
    ExportRequest,
)
from pdf_form_export.storage.paths import DEFAULT_STORAGE_ROOT, STORAGE_ROOT_ENV

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_DEGRADED = 2


def default_output_root() -> Path:
    """Exports directory under $PDF_STORAGE_ROOT, or ./storage/exports."""
    return Path(os.getenv(STORAGE_ROOT_ENV) or DEFAULT_STORAGE_ROOT) / "exports"


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed argument Namespace.
    """
    parser = argparse.ArgumentParser(
        prog="export-pdf",
        description="PDF Form Export - Fills, annotates and flattens PDF form templates",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s form.pdf --data values.json                 # Fill form fields
  %(prog)s form.pdf --annotations notes.json           # Free-form text
  %(prog)s form.pdf --drawing sketch.png               # Drawing overlay
  %(prog)s form.pdf --user-id u1 --draft-id d1         # exports/u1/d1.pdf
  %(prog)s form.pdf --list-fields                      # Show form fields

Environment Variables:
  PDF_STORAGE_ROOT                Storage root (default: ./storage)
  PDF_EXPORT_MAX_RETRIES          Output write attempts (default: 3)
  PDF_EXPORT_RETRY_DELAY          Seconds between attempts (default: 0.1)
  PDF_EXPORT_ISOLATE_ANNOTATIONS  Skip failing annotations (default: true)
""",
    )

    parser.add_argument(
        "template",
        type=Path,
        help="Path to the PDF form template",
    )

    # Draft content
    parser.add_argument(
        "--data",
        type=Path,
        help="JSON file with an object of field name -> value",
    )
    parser.add_argument(
        "--annotations",
        type=Path,
        help="JSON file with an array of text annotations",
    )
    parser.add_argument(
        "--drawing",
        type=Path,
        help="PNG drawing to composite over the page",
    )

    # Output location
    parser.add_argument(
        "--output-root",
        type=Path,
        help="Exports directory (default: $PDF_STORAGE_ROOT/exports or ./storage/exports)",
    )
    parser.add_argument(
        "--draft-id",
        help="Output file name without extension (default: template name)",
    )
    parser.add_argument(
        "--user-id",
        help="Write the output under <output-root>/<user-id>/",
    )

    # Behavior
    parser.add_argument(
        "--max-retries",
        type=int,
        help="Output write attempts (default: 3)",
    )
    parser.add_argument(
        "--retry-delay",
        type=float,
        help="Seconds between write attempts (default: 0.1)",
    )
    parser.add_argument(
        "--strict-annotations",
        action="store_true",
        help="Treat any failing annotation as an export failure",
    )
    parser.add_argument(
        "--fail-on-degraded",
        action="store_true",
        help=f"Exit with code {EXIT_DEGRADED} when the template had to be copied unchanged",
    )
    parser.add_argument(
        "--list-fields",
        action="store_true",
        help="Print the template's form fields and exit",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> ExportConfig:
    """Start from the environment and apply command line overrides."""
    config = ExportConfig.from_env()
    overrides: dict[str, Any] = {}
    if args.max_retries is not None:
        overrides["max_retries"] = args.max_retries
    if args.retry_delay is not None:
        overrides["retry_delay"] = args.retry_delay
    if args.strict_annotations:
        overrides["isolate_annotation_errors"] = False
    return dataclasses.replace(config, **overrides)


def load_json_file(path: Path) -> Any:
    """Read a JSON file.

    Raises:
        ValueError: If the file cannot be read or is not valid JSON.
    """
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ValueError(f"Cannot read {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ValueError(f"{path} is not valid JSON: {exc}") from exc


def load_form_data_file(path: Path) -> dict[str, Any]:
    """Read a form data JSON object, keeping each value's literal text.

    Raises:
        ValueError: If the file cannot be read, is not valid JSON, or does
            not hold an object.
    """
    try:
        return parse_form_data_json(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ValueError(f"Cannot read {path}: {exc}") from exc
    except ValueError as exc:
        raise ValueError(f"{path}: {exc}") from exc


def list_fields(template_path: Path) -> int:
    """Print one line per form field."""
    info = inspect_template(template_path)
    print(f"Template: {template_path}")
    print(f"Pages: {info.page_count}")
    if not info.has_form_fields:
        print("No form fields")
        return EXIT_OK

    print(f"Fields: {len(info.fields)}")
    for field_info in info.fields:
        marker = "" if field_info.settable else " (read-only)"
        print(f"  {field_info.name} [{field_info.field_type}]{marker}")
    return EXIT_OK


async def run(args: argparse.Namespace) -> int:
    """Execute the export pipeline.

    Args:
        args: Command line arguments.

    Returns:
        Exit code (0: success, 1: failure, 2: degraded with --fail-on-degraded).
    """
    template_path: Path = args.template

    # Validate input file
    if not template_path.exists():
        print(f"Error: File not found: {template_path}", file=sys.stderr)
        return EXIT_FAILURE

    if args.list_fields:
        try:
            return list_fields(template_path)
        except Exception as e:
            print(f"Error: Cannot inspect template: {e}", file=sys.stderr)
            return EXIT_FAILURE

    try:
        config = build_config(args)
        form_data = load_form_data_file(args.data) if args.data else None
        annotations = load_json_file(args.annotations) if args.annotations else None
        if annotations is not None and not isinstance(annotations, list):
            raise ValueError(f"{args.annotations} must contain a JSON array")

        request = ExportRequest(
            template_path=template_path,
            draft_id=args.draft_id or template_path.stem,
            output_root=args.output_root or default_output_root(),
            form_data=form_data,
            annotations=annotations,
            drawing_path=args.drawing,
            user_id=args.user_id,
        )
        output_path = request.output_path
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    print(f"Template: {template_path}")
    print(f"Output: {output_path}")
    print()

    pipeline = ExportPipeline(config)
    try:
        result = await pipeline.export(request)
    except (ExportError, OSError, ValueError) as e:
        print(f"Error: Export failed: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc()
        return EXIT_FAILURE

    stats = result.stats
    if result.is_degraded:
        print(f"Degraded: {result.output_path}")
        print(f"  Reason: {result.reason}")
        return EXIT_DEGRADED if args.fail_on_degraded else EXIT_OK

    print(f"Complete: {result.output_path}")
    print(f"  Fields filled: {stats.get('fields_filled', 0)}/{stats.get('fields_total', 0)}")
    print(f"  Annotations: {stats.get('annotations_rendered', 0)}")
    if stats.get("annotations_skipped"):
        print(f"  Annotations skipped: {stats['annotations_skipped']}")
    if stats.get("drawing_composited"):
        print("  Drawing: composited")
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """Main entry point."""
    args = parse_args(argv)

    # Configure logging
    log_level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(level=log_level, format="%(levelname)s: %(message)s")

    exit_code = asyncio.run(run(args))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
