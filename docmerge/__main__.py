#!/usr/bin/env python3
"""
DocMerge CLI

Command-line interface for the DocMerge engine.

Usage:
    python -m docmerge load-table <path> [--lenient]
    python -m docmerge preview --table <path> --template <path> [--limit N]
    python -m docmerge merge --table <path> --template <path> [--dest DIR]
                             [--mode per-row|combined] [--workers N] [--zip]
                             [--strict|--lenient] [--verbose] [--no-progress]
    python -m docmerge config [--workers N] [--mode M] [--strict|--lenient]
                              [--zip|--no-zip] [--save]

All commands output JSON to stdout. Progress and log messages go to stderr.
Failures print ``"success": false`` and exit with status 1.
"""

import argparse
import json
import sys
from typing import Any

from docmerge.errors import DocMergeError
from docmerge.logging_config import setup_logging
from docmerge.settings import load_settings


def output_json(data: Any, success: bool = True) -> None:
    """Output JSON response to stdout."""
    response = {
        "success": success,
        "data": data if success else None,
        "error": None if success else data,
    }
    print(json.dumps(response, indent=2, ensure_ascii=False))


def _effective_settings(args: argparse.Namespace):
    """Persisted settings with this invocation's flags applied on top."""
    settings = load_settings()
    for name in ("workers", "mode", "strict", "archive"):
        value = getattr(args, name, None)
        if value is not None:
            setattr(settings, name, value)
    if getattr(args, "debug", False):
        settings.debug = True
    return settings.validate()


def cmd_load_table(args: argparse.Namespace) -> int:
    """Load a table file and return fields + columns."""
    from docmerge.table_reader import read_table

    try:
        settings = _effective_settings(args)
        table = read_table(args.path, strict=settings.strict)
        output_json({
            "fields": table.fields,
            "columns": table.to_dict(),
            "count": table.row_count,
        })
    except Exception as e:
        output_json(str(e), success=False)
        return 1
    return 0


def cmd_preview(args: argparse.Namespace) -> int:
    """Show what each row would substitute, without writing anything."""
    from docmerge.preview import build_preview_rows, scan_template
    from docmerge.table_reader import read_table
    from docmerge.template_store import load_template

    try:
        settings = _effective_settings(args)
        table = read_table(args.table, strict=settings.strict)
        template = load_template(args.template)

        output_json({
            "fields": table.fields,
            "tokens": scan_template(template, table),
            "preview_rows": build_preview_rows(table, template, limit=args.limit),
            "count": table.row_count,
        })
    except Exception as e:
        output_json(str(e), success=False)
        return 1
    return 0


def cmd_merge(args: argparse.Namespace) -> int:
    """Run a merge and report the result."""
    from docmerge.generator import run_merge
    from docmerge.progress import ConsoleProgressBar, ProgressReporter

    try:
        settings = _effective_settings(args)
        progress = ProgressReporter(None if args.no_progress else ConsoleProgressBar())

        result = run_merge(
            args.table,
            args.template,
            mode=settings.mode,
            dest_dir=args.dest,
            workers=settings.workers,
            archive=settings.archive,
            strict=settings.strict,
            progress=progress,
        )
        output_json(result.to_dict())
    except Exception as e:
        output_json(str(e), success=False)
        return 1
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Show the effective defaults, optionally persisting the given flags."""
    from docmerge.settings import save_settings, settings_file

    try:
        settings = _effective_settings(args)
        path = save_settings(settings) if args.save else settings_file()
        output_json({"settings": settings.to_dict(), "path": str(path), "saved": args.save})
    except Exception as e:
        output_json(str(e), success=False)
        return 1
    return 0


def _add_strictness(p: argparse.ArgumentParser) -> None:
    group = p.add_mutually_exclusive_group()
    group.add_argument("--strict", dest="strict", action="store_true", default=None,
                       help="Abort on unresolvable cells or failing rows")
    group.add_argument("--lenient", dest="strict", action="store_false",
                       help="Log unresolvable cells / failing rows and continue")


def _add_run_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--mode", choices=["per-row", "combined"], default=None,
                   help="One file per row, or one combined document")
    p.add_argument("--workers", type=int, default=None,
                   help="Parallel workers for per-row output")
    archive = p.add_mutually_exclusive_group()
    archive.add_argument("--zip", dest="archive", action="store_true", default=None,
                         help="Zip the per-row output directory")
    archive.add_argument("--no-zip", dest="archive", action="store_false")
    _add_strictness(p)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docmerge",
        description="DocMerge CLI - merge table rows into Word templates",
    )
    parser.add_argument("--verbose", "--debug", dest="debug", action="store_true",
                        help="Verbose (debug) logging on stderr")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # load-table
    p_table = subparsers.add_parser("load-table", help="Load data from a .xlsx or .csv file")
    p_table.add_argument("path", help="Path to the table file")
    _add_strictness(p_table)
    p_table.set_defaults(func=cmd_load_table)

    # preview
    p_preview = subparsers.add_parser("preview", help="Preview per-row substitutions")
    p_preview.add_argument("--table", required=True, help="Path to the table file")
    p_preview.add_argument("--template", required=True, help="Path to the .docx template")
    p_preview.add_argument("--limit", type=int, default=None, help="Only the first N rows")
    _add_strictness(p_preview)
    p_preview.set_defaults(func=cmd_preview)

    # merge
    p_merge = subparsers.add_parser("merge", help="Generate documents")
    p_merge.add_argument("--table", required=True, help="Path to the table file")
    p_merge.add_argument("--template", required=True, help="Path to the .docx template")
    p_merge.add_argument("--dest", default=None,
                         help="Destination directory (default: <templateDir>/<templateName>)")
    p_merge.add_argument("--no-progress", action="store_true", help="Hide the progress bar")
    _add_run_options(p_merge)
    p_merge.set_defaults(func=cmd_merge)

    # config
    p_config = subparsers.add_parser("config", help="Show or save default settings")
    p_config.add_argument("--save", action="store_true", help="Persist the given flags")
    _add_run_options(p_config)
    p_config.set_defaults(func=cmd_config)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        debug = args.debug or load_settings().debug
    except DocMergeError:
        debug = args.debug
    setup_logging(debug=debug)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
