"""Shared fixtures: templates, workbooks and CSV files built on the fly."""

import logging
import zipfile
from pathlib import Path
from typing import List, Optional

import docx
import openpyxl
import pytest
from docx.oxml.ns import qn


MAIN_NS = "http://schemas.openxmlformats.org/spreadsheetml/2006/main"
REL_NS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
PKG_REL_NS = "http://schemas.openxmlformats.org/package/2006/relationships"


# =============================================================================
# Documents
# =============================================================================


@pytest.fixture
def make_template(tmp_path):
    """Factory: write a .docx whose body holds the given paragraphs (and an optional table)."""

    def _make(
        paragraphs: List[str],
        name: str = "letter.docx",
        table_rows: Optional[List[List[str]]] = None,
    ) -> Path:
        document = docx.Document()
        for text in paragraphs:
            document.add_paragraph(text)
        if table_rows:
            table = document.add_table(rows=len(table_rows), cols=len(table_rows[0]))
            for r, row in enumerate(table_rows):
                for c, text in enumerate(row):
                    table.cell(r, c).text = text
        path = tmp_path / name
        document.save(str(path))
        return path

    return _make


def document_text(path) -> str:
    """All text of a saved .docx, paragraphs and tables, one line per paragraph."""
    document = docx.Document(str(path))
    body = document.element.body
    return "\n".join(
        "".join(t.text or "" for t in p.iter(qn("w:t")))
        for p in body.iter(qn("w:p"))
    )


def page_break_count(path) -> int:
    document = docx.Document(str(path))
    return sum(
        1
        for br in document.element.body.iter(qn("w:br"))
        if br.get(qn("w:type")) == "page"
    )


# =============================================================================
# Tables
# =============================================================================


@pytest.fixture
def make_workbook(tmp_path):
    """Factory: write an .xlsx with openpyxl, first row being the header."""

    def _make(rows: List[list], name: str = "data.xlsx") -> Path:
        wb = openpyxl.Workbook()
        ws = wb.active
        for row in rows:
            ws.append(row)
        path = tmp_path / name
        wb.save(str(path))
        return path

    return _make


@pytest.fixture
def make_csv(tmp_path):
    """Factory: write a UTF-8 CSV file from raw text."""

    def _make(text: str, name: str = "data.csv") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _make


@pytest.fixture
def make_raw_workbook(tmp_path):
    """Factory: hand-written minimal .xlsx, for layouts openpyxl would never produce."""

    def _make(
        rows_xml: str,
        shared_strings: Optional[List[str]] = None,
        name: str = "raw.xlsx",
    ) -> Path:
        path = tmp_path / name
        workbook = (
            f'<workbook xmlns="{MAIN_NS}" xmlns:r="{REL_NS}">'
            '<sheets><sheet name="Sheet1" sheetId="1" r:id="rId1"/></sheets>'
            "</workbook>"
        )
        rels = (
            f'<Relationships xmlns="{PKG_REL_NS}">'
            '<Relationship Id="rId1" '
            'Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/worksheet" '
            'Target="worksheets/sheet1.xml"/>'
            "</Relationships>"
        )
        sheet = (
            f'<worksheet xmlns="{MAIN_NS}"><sheetData>{rows_xml}</sheetData></worksheet>'
        )
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("xl/workbook.xml", workbook)
            zf.writestr("xl/_rels/workbook.xml.rels", rels)
            zf.writestr("xl/worksheets/sheet1.xml", sheet)
            if shared_strings is not None:
                items = "".join(f"<si><t>{s}</t></si>" for s in shared_strings)
                zf.writestr(
                    "xl/sharedStrings.xml",
                    f'<sst xmlns="{MAIN_NS}" count="{len(shared_strings)}">{items}</sst>',
                )
        return path

    return _make


# =============================================================================
# Environment isolation
# =============================================================================


@pytest.fixture
def isolated_appdirs(monkeypatch, tmp_path):
    """Point settings and log directories at tmp_path and drop DOCMERGE_* env vars."""
    data_dir = tmp_path / "appdata"
    log_dir = tmp_path / "applogs"
    monkeypatch.setattr("docmerge.settings.user_data_dir", lambda *a, **k: str(data_dir))
    monkeypatch.setattr("docmerge.settings.user_log_dir", lambda *a, **k: str(log_dir))
    for var in ("WORKERS", "MODE", "STRICT", "ARCHIVE", "DEBUG"):
        monkeypatch.delenv(f"DOCMERGE_{var}", raising=False)

    yield data_dir

    # setup_logging() detaches the package logger from root; undo for caplog users
    logger = logging.getLogger("docmerge")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def docx_text():
    return document_text


@pytest.fixture
def docx_page_breaks():
    return page_break_count
