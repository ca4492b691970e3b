# docmerge/assembler.py

"""
Output assemblers: where substituted template content ends up.

Two variants, chosen once per run from OutputMode:

- ConcatenatingAssembler: one growing document, rows appended in order with
  a page break between them. Position-sensitive, so strictly sequential.
- PerRowFileAssembler: one copy of the template per row, substituted in
  place. Rows are independent and may run on several workers.
"""

import logging
import shutil
import threading
import zipfile
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from docx.oxml import OxmlElement
from docx.oxml.ns import qn

from docmerge.errors import ConfigurationError
from docmerge.template_store import (
    SECTION_PROPERTIES,
    TemplateBody,
    body_element,
    content_elements,
    open_document,
)

logger = logging.getLogger(__name__)


class OutputMode(str, Enum):
    COMBINED = "combined"
    PER_ROW = "per-row"

    @classmethod
    def parse(cls, value) -> "OutputMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(m.value for m in cls)
            raise ConfigurationError(
                f"Unknown output mode '{value}' (expected: {choices})"
            ) from None


# ============================================================
# helpers
# ============================================================

def default_destination(template_path: str) -> Path:
    """``<templateDir>/<templateBaseName>``"""
    p = Path(template_path)
    return p.parent / p.stem


def clear_directory(directory: Path) -> int:
    """Create ``directory`` if needed and delete every file directly inside it."""
    directory.mkdir(parents=True, exist_ok=True)
    removed = 0
    for entry in directory.iterdir():
        if entry.is_file() or entry.is_symlink():
            entry.unlink()
            removed += 1
    if removed:
        logger.info("Removed %d stale file(s) from %s", removed, directory)
    return removed


def archive_directory(directory: Path, zip_path: Path) -> Path:
    """Zip every file under ``directory`` (paths relative to it) into ``zip_path``."""
    if zip_path.exists():
        zip_path.unlink()

    files = [
        f for f in sorted(directory.rglob("*"))
        if f.is_file() and f.resolve() != zip_path.resolve()
    ]

    with zipfile.ZipFile(zip_path, mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
        for f in files:
            zf.write(f, arcname=f.relative_to(directory).as_posix())

    logger.info("Zipped %s to %s", directory, zip_path)
    return zip_path


def page_break_paragraph():
    """``<w:p><w:r><w:br w:type="page"/></w:r></w:p>``"""
    p = OxmlElement("w:p")
    r = OxmlElement("w:r")
    br = OxmlElement("w:br")
    br.set(qn("w:type"), "page")
    r.append(br)
    p.append(r)
    return p


# ============================================================
# Concatenating
# ============================================================

class ConcatenatingAssembler:
    """
    Builds one document holding every row's content.

    The template itself is opened as the output document so its styles,
    numbering and section layout carry over; its body content is removed and
    replaced by the appended clones.
    """

    mode = OutputMode.COMBINED
    parallel_safe = False

    def __init__(self, template_path: str, dest_dir: Optional[str] = None):
        self.template_path = Path(template_path)
        self.dest_dir = Path(dest_dir) if dest_dir else default_destination(template_path)
        self.output_path = self.dest_dir / (
            f"{self.template_path.stem}_Result{self.template_path.suffix}"
        )
        self._document = None
        self._body = None
        self._anchor = None
        self.rows_appended = 0
        self.separators = 0
        self.outputs: List[Path] = []

    def open(self, total: int) -> None:
        self._document = open_document(str(self.template_path))
        self._body = body_element(self._document)
        for child in content_elements(self._body):
            self._body.remove(child)
        self._anchor = self._body.find(SECTION_PROPERTIES)
        self.rows_appended = 0
        self.separators = 0
        logger.debug("Combined output prepared for %d row(s): %s", total, self.output_path)

    def _insert(self, element) -> None:
        if self._anchor is not None:
            self._anchor.addprevious(element)
        else:
            self._body.append(element)

    def append(self, index: int, body: TemplateBody) -> None:
        if self._body is None:
            raise RuntimeError("Assembler is not open")
        for element in body.elements:
            self._insert(element)
        self.rows_appended += 1

    def append_separator(self) -> None:
        self._insert(page_break_paragraph())
        self.separators += 1

    def close(self) -> List[Path]:
        if self._document is None:
            raise RuntimeError("Assembler is not open")
        self.dest_dir.mkdir(parents=True, exist_ok=True)
        self._document.save(str(self.output_path))
        logger.info("Generated document: %s", self.output_path)
        self.outputs = [self.output_path]
        self._document = self._body = self._anchor = None
        return self.outputs


# ============================================================
# Per-row files
# ============================================================

class PerRowFileAssembler:
    """
    Writes ``<destDir>/<base>_<row+1><ext>`` for every row.

    Each row copies the template file verbatim, substitutes inside the copy
    and saves it, so rows can be handed to separate workers. ``open()``
    clears the destination directory before any row is written; ``close()``
    optionally zips it after all rows are done.
    """

    mode = OutputMode.PER_ROW
    parallel_safe = True

    def __init__(
        self,
        template_path: str,
        dest_dir: Optional[str] = None,
        *,
        archive: bool = False,
        zip_path: Optional[str] = None,
        table_path: Optional[str] = None,
    ):
        self.template_path = Path(template_path)
        self.table_path = Path(table_path) if table_path else None
        self.dest_dir = Path(dest_dir) if dest_dir else default_destination(template_path)
        self.archive = archive
        self.zip_path = (
            Path(zip_path)
            if zip_path
            else self.template_path.parent / f"{self.template_path.stem}.zip"
        )
        self.archive_path: Optional[Path] = None
        self._lock = threading.Lock()
        self._written: List[Path] = []

    def path_for(self, index: int) -> Path:
        return self.dest_dir / (
            f"{self.template_path.stem}_{index + 1}{self.template_path.suffix}"
        )

    def open(self, total: int) -> None:
        if not self.template_path.is_file():
            raise FileNotFoundError(f"The template file '{self.template_path}' does not exist.")
        dest = self.dest_dir.resolve()
        for source in (self.template_path, self.table_path):
            if source is not None and source.resolve().parent == dest:
                raise ConfigurationError(
                    f"Output directory '{self.dest_dir}' holds the input file "
                    f"'{source.name}'; it is emptied before every run."
                )
        clear_directory(self.dest_dir)
        self._written = []
        self.archive_path = None
        logger.debug("Writing %d file(s) to %s", total, self.dest_dir)

    def write_row(self, index: int, substitute: Callable[[TemplateBody], object]) -> Path:
        target = self.path_for(index)
        if target.exists():
            raise FileExistsError(f"Output file '{target}' already exists.")

        shutil.copyfile(self.template_path, target)

        try:
            document = open_document(str(target))
            body = body_element(document)
            # live view over the copy's own elements: substitution edits the copy in place
            substitute(TemplateBody(content_elements(body), source_path=str(target)))
            document.save(str(target))
        except Exception:
            # an unfilled copy must not end up beside the finished rows
            target.unlink(missing_ok=True)
            raise

        with self._lock:
            self._written.append(target)
        return target

    @property
    def outputs(self) -> List[Path]:
        with self._lock:
            return sorted(self._written, key=lambda p: _row_suffix(p))

    def close(self) -> List[Path]:
        if self.archive:
            self.archive_path = archive_directory(self.dest_dir, self.zip_path)
        return self.outputs


def _row_suffix(path: Path) -> int:
    tail = path.stem.rsplit("_", 1)[-1]
    return int(tail) if tail.isdigit() else 0


# ============================================================
# factory
# ============================================================

def build_assembler(
    mode,
    template_path: str,
    dest_dir: Optional[str] = None,
    *,
    archive: bool = False,
    table_path: Optional[str] = None,
):
    """Select the assembler variant for a run."""
    mode = OutputMode.parse(mode)
    if mode is OutputMode.COMBINED:
        if archive:
            logger.warning("Archiving applies to per-row output only; ignored")
        return ConcatenatingAssembler(template_path, dest_dir)
    return PerRowFileAssembler(
        template_path, dest_dir, archive=archive, table_path=table_path
    )
