# docmerge/__init__.py
"""
DocMerge - mail-merge engine for Word templates.

This module provides the core functionality for:
- Loading tabular data from .xlsx workbooks or CSV files
- Cloning a .docx template body once per data row
- Substituting @field placeholders with row values
- Writing one document per row (optionally zipped) or one combined document

Public API:
-----------
Data Loading:
    read_table(path, strict=True) -> Table
    load_workbook(path, strict=True) -> Table
    load_csv(path) -> Table

Templates:
    load_template(path) -> TemplateBody

Merging:
    run_merge(table_path, template_path, ...) -> MergeResult
    submit_merge(table_path, template_path, ...) -> Future[MergeResult]
    MergeEngine(workers, strict, cancel_event).merge(table, template, sink, progress) -> int

Preview:
    build_preview_rows(table, template) -> List[Dict]

The engine has no UI dependencies and can be used standalone.
"""

from docmerge.errors import (
    ConfigurationError,
    DataIntegrityError,
    DocMergeError,
    TemplateMissingContentError,
)
from docmerge.formatter import format_value
from docmerge.table_reader import Table, load_csv, load_workbook, read_table
from docmerge.template_store import TemplateBody, load_template
from docmerge.resolver import PlaceholderResolver
from docmerge.progress import ConsoleProgressBar, ProgressReporter
from docmerge.assembler import (
    ConcatenatingAssembler,
    OutputMode,
    PerRowFileAssembler,
    build_assembler,
)
from docmerge.generator import MergeEngine, MergeResult, RowFailure, run_merge, submit_merge
from docmerge.preview import build_preview_rows, scan_template

__all__ = [
    # Errors
    "DocMergeError",
    "ConfigurationError",
    "DataIntegrityError",
    "TemplateMissingContentError",
    # Data loading
    "Table",
    "read_table",
    "load_workbook",
    "load_csv",
    "format_value",
    # Templates
    "TemplateBody",
    "load_template",
    "PlaceholderResolver",
    # Output
    "OutputMode",
    "ConcatenatingAssembler",
    "PerRowFileAssembler",
    "build_assembler",
    # Merging
    "MergeEngine",
    "MergeResult",
    "RowFailure",
    "ProgressReporter",
    "ConsoleProgressBar",
    "run_merge",
    "submit_merge",
    # Preview
    "build_preview_rows",
    "scan_template",
]
