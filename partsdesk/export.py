"""
export.py — Workbooks offered for download.

- Search results: fixed file name, one "Search Results" sheet.
- Reconciled upload: "<stem>_with_tariffs.xlsx" with the updated rows and,
  once anything was matched by hand, a "Newly Matched" audit sheet.
- Full catalog: the positional 14-column layout of the parts database.
"""

from __future__ import annotations

import re

import pandas as pd

from partsdesk.catalog import catalog_rows
from partsdesk.config import ExportNames
from partsdesk.reconcile import MANUAL_MATCH_HEADER, ReconciliationSession
from partsdesk.tabular import records_to_rows, write_workbook


# (catalog field, export header)
SEARCH_EXPORT_COLUMNS: list[tuple[str, str]] = [
    ("primary_code", "Eurolink Item#"),
    ("description1", "Description 1"),
    ("description2", "Description 2"),
    ("vendor_code", "Vendor Code"),
    ("vendor_item", "Supplier Part#"),
    ("tariff", "Tariff Code"),
    ("category", "Category"),
    ("sub_category", "Sub Category"),
    ("vendor_name", "Vendor Name"),
]

_EXTENSION = re.compile(r"\.[^/.]+$")


def search_export_rows(results: pd.DataFrame) -> list[list]:
    rename = dict(SEARCH_EXPORT_COLUMNS)
    records = results.rename(columns=rename).to_dict("records")
    return records_to_rows(records, [label for _, label in SEARCH_EXPORT_COLUMNS])


def search_export(results: pd.DataFrame, names: ExportNames | None = None) -> bytes:
    names = names or ExportNames()
    return write_workbook({names.search_sheet: search_export_rows(results)})


def reconcile_sheets(session: ReconciliationSession,
                     names: ExportNames | None = None) -> dict[str, list[list]]:
    names = names or ExportNames()
    sheets = {names.updated_sheet: session.rows}
    if session.manual_matches:
        sheets[names.matched_sheet] = [list(MANUAL_MATCH_HEADER)] + [
            m.as_row() for m in session.manual_matches
        ]
    return sheets


def reconcile_export(session: ReconciliationSession, names: ExportNames | None = None) -> bytes:
    return write_workbook(reconcile_sheets(session, names))


def export_file_name(upload_name: str, suffix: str = "_with_tariffs.xlsx") -> str:
    """"parts.xls" -> "parts_with_tariffs.xlsx"; a bare "parts" gets the suffix appended."""
    if _EXTENSION.search(upload_name):
        return _EXTENSION.sub(suffix, upload_name)
    return upload_name + suffix


def catalog_export(catalog: pd.DataFrame, sheet: str = "Parts") -> bytes:
    return write_workbook({sheet: catalog_rows(catalog)})
