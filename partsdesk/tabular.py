"""
tabular.py — Read spreadsheets into row matrices and write named sheets back.

Supports .xlsx/.xlsm, .csv/.tsv and .numbers (Apple) uploads. Rows come
back as plain lists of raw cell values (first row is the header); empty
cells are None. Writing always produces .xlsx bytes.
"""

from __future__ import annotations

import io
import logging
import math
import os
import tempfile
from pathlib import Path

import pandas as pd

from partsdesk.errors import UploadParseFailure


logger = logging.getLogger(__name__)

SUPPORTED_UPLOADS = ("xlsx", "xlsm", "csv", "tsv", "numbers")


# ── Cell helpers ───────────────────────────────────────────

def is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return False


def cell_text(value) -> str:
    """Render a raw cell as trimmed text. 4017.0 -> "4017", None/NaN -> ""."""
    if is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _frame_to_rows(df: pd.DataFrame) -> list[list]:
    return [
        [None if is_blank(v) else v for v in row]
        for row in df.itertuples(index=False, name=None)
    ]


# ── Reading ────────────────────────────────────────────────

def _read_numbers(filepath: Path) -> list[list]:
    from numbers_parser import Document
    doc = Document(str(filepath))
    table = doc.sheets[0].tables[0]
    return [
        [table.cell(r, c).value for c in range(table.num_cols)]
        for r in range(table.num_rows)
    ]


def read_rows(data: bytes, filename: str) -> list[list]:
    """
    Parse spreadsheet bytes into rows of raw cell values (first sheet only).

    Returns [] for a file with no rows. Raises UploadParseFailure when the
    bytes can't be read as the format the extension promises.
    """
    ext = Path(filename).suffix.lower()
    try:
        if ext in (".xlsx", ".xlsm"):
            df = pd.read_excel(io.BytesIO(data), header=None, dtype=object, engine="openpyxl")
        elif ext in (".csv", ".tsv"):
            sep = "\t" if ext == ".tsv" else ","
            try:
                # only truly empty cells are missing; "NA" is a valid part number
                df = pd.read_csv(io.BytesIO(data), sep=sep, header=None, dtype=str,
                                 keep_default_na=False, na_values=[""])
            except pd.errors.EmptyDataError:
                return []
        elif ext == ".numbers":
            # numbers-parser requires a file path, so write to temp file
            with tempfile.NamedTemporaryFile(suffix=".numbers", delete=False) as tmp:
                tmp.write(data)
                tmp.flush()
            try:
                return _read_numbers(Path(tmp.name))
            finally:
                os.unlink(tmp.name)
        else:
            raise UploadParseFailure(filename, f"Unsupported format: {ext or '(none)'}")
    except UploadParseFailure:
        logger.error("Unsupported upload %s", filename)
        raise
    except Exception as e:
        logger.error("Could not read %s: %s", filename, e)
        raise UploadParseFailure(filename, str(e)) from e

    return _frame_to_rows(df)


# ── Writing ────────────────────────────────────────────────

def write_workbook(sheets: dict[str, list[list]]) -> bytes:
    """Serialize {sheet name: rows} to .xlsx bytes, keeping sheet order and names."""
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        for name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=name, header=False, index=False)
    return buf.getvalue()


def records_to_rows(records: list[dict], header: list[str]) -> list[list]:
    """Keyed records -> header row + value rows, in the given column order."""
    df = pd.DataFrame(records, columns=header)
    return [list(header)] + df.fillna("").values.tolist()
