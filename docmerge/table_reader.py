# docmerge/table_reader.py

import csv
import logging
import posixpath
import zipfile
import xml.etree.ElementTree as ET
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from openpyxl.utils.cell import column_index_from_string, coordinate_from_string
from openpyxl.utils.exceptions import CellCoordinatesException

from docmerge.errors import ConfigurationError, DataIntegrityError

logger = logging.getLogger(__name__)


WORKBOOK_SUFFIXES = (".xlsx", ".xlsm")
CSV_SUFFIXES = (".csv",)

NS = {
    "main": "http://schemas.openxmlformats.org/spreadsheetml/2006/main",
    "r": "http://schemas.openxmlformats.org/officeDocument/2006/relationships",
    "rel": "http://schemas.openxmlformats.org/package/2006/relationships",
}

_R_ID = f"{{{NS['r']}}}id"


# -------------------------------------------------
# Table
# -------------------------------------------------

class Table:
    """
    Column-major table: field name -> values, one per data row.

    Field order is the order of first appearance in the header. The table is
    read-only once built, so it can be shared between merge workers.
    """

    def __init__(self, columns: Mapping[str, Iterable[str]]):
        self._columns: Dict[str, Tuple[str, ...]] = {
            name: tuple(values) for name, values in columns.items()
        }
        self._row_count = max(
            (sum(1 for v in values if v) for values in self._columns.values()),
            default=0,
        )

    @property
    def fields(self) -> List[str]:
        return list(self._columns)

    @property
    def columns(self) -> Mapping[str, Tuple[str, ...]]:
        return MappingProxyType(self._columns)

    @property
    def row_count(self) -> int:
        """Largest count of non-empty values in any single field."""
        return self._row_count

    def column(self, field: str) -> Tuple[str, ...]:
        return self._columns[field]

    def has_value(self, field: str, index: int) -> bool:
        return 0 <= index < len(self._columns[field])

    def value(self, field: str, index: int) -> str:
        """Raw value of ``field`` in row ``index``; empty string when out of range."""
        values = self._columns[field]
        if 0 <= index < len(values):
            return values[index]
        return ""

    def to_dict(self) -> Dict[str, List[str]]:
        return {name: list(values) for name, values in self._columns.items()}

    def __len__(self) -> int:
        return self._row_count

    def __repr__(self) -> str:
        return f"Table(fields={self.fields!r}, rows={self._row_count})"


# -------------------------------------------------
# Public API
# -------------------------------------------------

def read_table(path: str, *, strict: bool = True) -> Table:
    """
    Read a tabular source into a Table, picking the reader from the suffix.

    Raises:
        FileNotFoundError: the source does not exist
        ConfigurationError: the suffix is not a supported tabular format
        DataIntegrityError: the workbook cannot be resolved (see load_workbook)
    """
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"The table file '{path}' does not exist.")

    suffix = p.suffix.lower()
    if suffix in WORKBOOK_SUFFIXES:
        return load_workbook(str(p), strict=strict)
    if suffix in CSV_SUFFIXES:
        return load_csv(str(p))

    raise ConfigurationError(
        f"Unsupported table format '{p.suffix}'. "
        f"Expected one of: {', '.join(WORKBOOK_SUFFIXES + CSV_SUFFIXES)}"
    )


def load_csv(path: str) -> Table:
    """
    Load a Table from a local CSV file.

    Header names and values are trimmed; cells missing from short rows become
    empty strings.
    """
    with open(path, mode="r", encoding="utf-8-sig", newline="") as f:
        reader = csv.reader(f)
        try:
            header = next(reader)
        except StopIteration:
            return Table({})

        positions = _field_positions(str(h).strip() for h in header)
        columns: Dict[str, List[str]] = {name: [] for name, _ in positions}

        for row in reader:
            for name, col in positions:
                value = row[col] if col < len(row) else ""
                columns[name].append(str(value).strip())

    return Table(columns)


def load_workbook(path: str, *, strict: bool = True) -> Table:
    """
    Load a Table from the first worksheet of an .xlsx workbook.

    The first row is the header. Every later row yields one value per header
    column, positioned by the cell reference (or physical order when the
    reference is absent); missing cells become empty strings.

    Shared-string references that cannot be resolved raise DataIntegrityError
    in strict mode. In lenient mode they are logged and read as "".
    """
    try:
        with zipfile.ZipFile(path, "r") as zf:
            shared = _read_shared_strings(zf)
            root = ET.fromstring(zf.read(_first_sheet_part(zf)))
    except zipfile.BadZipFile as e:
        raise DataIntegrityError(f"'{path}' is not a readable workbook: {e}") from e
    except KeyError as e:
        raise DataIntegrityError(f"'{path}' is missing a workbook part: {e}") from e
    except ET.ParseError as e:
        raise DataIntegrityError(f"Workbook XML in '{path}' is malformed: {e}") from e

    sheet_data = root.find("main:sheetData", NS)
    rows = list(sheet_data.findall("main:row", NS)) if sheet_data is not None else []
    if not rows:
        return Table({})

    header_cells = _cells_by_column(rows[0])
    header_cols = sorted(header_cells)
    positions = _field_positions(
        _cell_text(header_cells[col], shared, strict, rows[0]).strip()
        for col in header_cols
    )
    # _field_positions numbers the header cells 0..n-1; map back to sheet columns
    positions = [(name, header_cols[idx]) for name, idx in positions]

    columns: Dict[str, List[str]] = {name: [] for name, _ in positions}

    for row in rows[1:]:
        cells = _cells_by_column(row)
        for name, col in positions:
            cell = cells.get(col)
            value = _cell_text(cell, shared, strict, row) if cell is not None else ""
            logger.debug("Row %s, Column %s: %s", row.get("r", "?"), name, value)
            columns[name].append(value)

    return Table(columns)


# -------------------------------------------------
# Internal helpers
# -------------------------------------------------

def _field_positions(headers: Iterable[str]) -> List[Tuple[str, int]]:
    """Pair each usable header name with its column position."""
    out: List[Tuple[str, int]] = []
    seen = set()

    for idx, name in enumerate(headers):
        if not name:
            logger.warning("Skipping column %d: empty header name", idx + 1)
            continue
        if name in seen:
            logger.warning("Duplicate header '%s' in column %d ignored", name, idx + 1)
            continue
        seen.add(name)
        out.append((name, idx))

    return out


def _first_sheet_part(zf: zipfile.ZipFile) -> str:
    workbook = ET.fromstring(zf.read("xl/workbook.xml"))
    sheet = workbook.find("main:sheets/main:sheet", NS)
    if sheet is None:
        raise DataIntegrityError("Workbook contains no worksheets")

    rid = sheet.get(_R_ID)
    rels = ET.fromstring(zf.read("xl/_rels/workbook.xml.rels"))
    for rel in rels.findall("rel:Relationship", NS):
        if rel.get("Id") == rid:
            target = rel.get("Target", "")
            if target.startswith("/"):
                return target.lstrip("/")
            return posixpath.normpath(posixpath.join("xl", target))

    raise DataIntegrityError(f"Worksheet relationship '{rid}' not found")


def _read_shared_strings(zf: zipfile.ZipFile) -> List[str]:
    try:
        data = zf.read("xl/sharedStrings.xml")
    except KeyError:
        return []

    root = ET.fromstring(data)
    return [_string_item_text(si) for si in root.findall("main:si", NS)]


def _string_item_text(item: ET.Element) -> str:
    # plain <t>, or rich-text runs <r><t>; phonetic runs (<rPh>) are skipped
    t = item.find("main:t", NS)
    if t is not None:
        return t.text or ""
    return "".join(rt.text or "" for rt in item.findall("main:r/main:t", NS))


def _cells_by_column(row: ET.Element) -> Dict[int, ET.Element]:
    """Map 0-based column index -> <c> element for one <row>."""
    out: Dict[int, ET.Element] = {}
    for physical, cell in enumerate(row.findall("main:c", NS)):
        ref = cell.get("r")
        if ref:
            try:
                letters, _ = coordinate_from_string(ref)
            except CellCoordinatesException as e:
                raise DataIntegrityError(f"Invalid cell reference '{ref}'") from e
            col = column_index_from_string(letters) - 1
        else:
            col = physical
        out.setdefault(col, cell)
    return out


def _cell_text(
    cell: ET.Element,
    shared: Sequence[str],
    strict: bool,
    row: Optional[ET.Element] = None,
) -> str:
    kind = cell.get("t")

    if kind == "inlineStr":
        is_el = cell.find("main:is", NS)
        return _string_item_text(is_el) if is_el is not None else ""

    v = cell.find("main:v", NS)
    raw = v.text if v is not None and v.text else ""
    if not raw or kind != "s":
        return raw

    try:
        index = int(raw)
    except ValueError:
        index = -1

    if 0 <= index < len(shared):
        return shared[index]

    where = cell.get("r") or f"row {row.get('r', '?') if row is not None else '?'}"
    msg = f"Shared string reference '{raw}' at {where} cannot be resolved"
    if strict:
        raise DataIntegrityError(msg)
    logger.warning("%s; using empty value", msg)
    return ""
