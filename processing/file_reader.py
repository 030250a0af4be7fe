"""
Sale sheet reader — decodes an uploaded CSV or Excel file into string rows.

Every cell is read as text: no numeric or NA inference, so "007", "N/A" and
"$1,250.00" reach the normalizer exactly as typed.  Header names are kept as
decoded (no trimming); schema validation compares them verbatim.  Blank lines
are skipped by the decoder itself.

Handles:
  - CSV, UTF-8 with or without BOM, falling back to Windows-1252 for sheets
    exported by older sale-barn software.
  - XLSX, first worksheet, header on the first non-empty row.

Public API:
    read_table(data, filename) → TableReadResult

Raises DecodeError for anything that cannot be read as a table.
"""

import io
import logging
import zipfile
from dataclasses import dataclass, field
from datetime import date, datetime, time
from pathlib import Path

import openpyxl
import pandas as pd

from processing.errors import DecodeError

logger = logging.getLogger(__name__)

# Encodings tried in order for CSV uploads.
_CSV_ENCODINGS: tuple[str, ...] = ("utf-8-sig", "cp1252")

_EXCEL_SUFFIXES: set[str] = {".xlsx", ".xlsm"}


# ═══════════════════════════════════════════════════════════════════════════
# Data class
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class TableReadResult:
    """Decoded sheet: header names plus one string dict per data row."""

    headers: list[str] = field(default_factory=list)
    rows: list[dict[str, str]] = field(default_factory=list)
    source_name: str = ""
    encoding: str = ""

    @property
    def row_count(self) -> int:
        return len(self.rows)


# ═══════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════

def read_table(data: bytes, filename: str = "") -> TableReadResult:
    """
    Decode raw upload bytes into headers and string rows.

    The format is picked from the filename extension; anything that is not
    .xlsx/.xlsm is treated as CSV.

    Args:
        data: Raw bytes of the uploaded file.
        filename: Original upload name (used for format detection and
                  error messages).

    Returns:
        TableReadResult with headers in sheet order and rows as
        {column: text} dicts.

    Raises:
        DecodeError: If the bytes are empty or not a readable table.
    """
    if not data:
        raise DecodeError("the file is empty", filename)

    suffix = Path(filename).suffix.lower()
    if suffix in _EXCEL_SUFFIXES:
        result = _read_excel(data, filename)
    else:
        result = _read_csv(data, filename)

    logger.info(
        f"Read '{filename}': {len(result.headers)} columns, "
        f"{result.row_count} data rows"
    )
    return result


# ═══════════════════════════════════════════════════════════════════════════
# Internal helpers
# ═══════════════════════════════════════════════════════════════════════════

def _read_csv(data: bytes, filename: str) -> TableReadResult:
    """Parse CSV bytes with pandas, every column as str."""
    last_error: Exception | None = None

    for encoding in _CSV_ENCODINGS:
        try:
            dataframe = pd.read_csv(
                io.BytesIO(data),
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                encoding=encoding,
            )
        except UnicodeDecodeError as exc:
            logger.debug(f"'{filename}' is not {encoding}: {exc}")
            last_error = exc
            continue
        except pd.errors.EmptyDataError:
            raise DecodeError("no header row found", filename)
        except (pd.errors.ParserError, ValueError) as exc:
            raise DecodeError(f"malformed CSV ({exc})", filename) from exc

        return _result_from_dataframe(dataframe, filename, encoding)

    raise DecodeError(f"unsupported text encoding ({last_error})", filename)


def _read_excel(data: bytes, filename: str) -> TableReadResult:
    """Read the first worksheet with openpyxl and build a string DataFrame."""
    try:
        workbook = openpyxl.load_workbook(
            io.BytesIO(data), read_only=True, data_only=True
        )
    except (zipfile.BadZipFile, KeyError, OSError, ValueError) as exc:
        raise DecodeError(f"not a valid Excel workbook ({exc})", filename) from exc

    try:
        worksheet = workbook.worksheets[0]
        logger.info(f"Reading sheet '{worksheet.title}' from '{filename}'")

        header: list[str] | None = None
        records: list[list[str]] = []

        for values in worksheet.iter_rows(values_only=True):
            cells = [_cell_to_text(value) for value in values]
            if not any(cell.strip() for cell in cells):
                continue
            if header is None:
                header = cells
                continue
            records.append(cells)
    finally:
        workbook.close()

    if header is None:
        raise DecodeError("no header row found", filename)

    # Trailing empty header cells are formatting leftovers, not columns
    while header and not header[-1]:
        header.pop()
    width = len(header)
    records = [(cells + [""] * width)[:width] for cells in records]

    dataframe = pd.DataFrame(records, columns=_unique_headers(header), dtype=str)
    return _result_from_dataframe(dataframe, filename, encoding="xlsx")


def _result_from_dataframe(
    dataframe: pd.DataFrame,
    filename: str,
    encoding: str,
) -> TableReadResult:
    """Convert a string DataFrame into a TableReadResult."""
    dataframe = dataframe.fillna("")
    headers = [str(column) for column in dataframe.columns]
    dataframe.columns = headers

    rows = [
        {column: str(value) for column, value in record.items()}
        for record in dataframe.to_dict(orient="records")
    ]
    return TableReadResult(
        headers=headers,
        rows=rows,
        source_name=filename,
        encoding=encoding,
    )


def _unique_headers(header: list[str]) -> list[str]:
    """
    Name blank header cells and de-duplicate repeats the way pandas.read_csv
    does ("Unnamed: 3", "Buyer.1"), so both formats yield the same headers.
    """
    seen: dict[str, int] = {}
    unique: list[str] = []

    for position, name in enumerate(header):
        if not name:
            name = f"Unnamed: {position}"
        if name in seen:
            seen[name] += 1
            candidate = f"{name}.{seen[name]}"
            while candidate in seen:
                seen[name] += 1
                candidate = f"{name}.{seen[name]}"
            name = candidate
        seen.setdefault(name, 0)
        unique.append(name)

    return unique


def _cell_to_text(value: object) -> str:
    """
    Render an Excel cell value the way it reads on screen.

    Whole-number floats lose their ".0"; dates without a time part are
    written as ISO dates.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, (date, time)):
        return value.isoformat()
    return str(value)
