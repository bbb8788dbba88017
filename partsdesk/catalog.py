"""
catalog.py — Load the parts database and build tariff lookup tables.

The parts database is a positional spreadsheet (14 columns, header row
first). Column 10 is unused in the source file but keeps its slot so that
city/state/zip stay at 11-13 when the catalog is written back out.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from types import MappingProxyType

import pandas as pd

from partsdesk.errors import CatalogLoadFailure
from partsdesk.tabular import cell_text


logger = logging.getLogger(__name__)

# (column index, field name, export header). Index 10 is the reserved slot.
CATALOG_COLUMNS: list[tuple[int, str, str]] = [
    (0, "primary_code", "Eurolink Item#"),
    (1, "description1", "Description 1"),
    (2, "description2", "Description 2"),
    (3, "vendor_code", "Vendor Code"),
    (4, "vendor_item", "Supplier Part#"),
    (5, "tariff", "Tariff Code"),
    (6, "category", "Category"),
    (7, "sub_category", "Sub Category"),
    (8, "vendor_name", "Vendor Name"),
    (9, "vendor_address", "Vendor Address"),
    (11, "city", "City"),
    (12, "state", "State"),
    (13, "zip", "Zip"),
]
CATALOG_WIDTH = 14

TEXT_FIELDS = [name for _, name, _ in CATALOG_COLUMNS]


@dataclass(frozen=True)
class PartRecord:
    id: int
    primary_code: str = ""
    description1: str = ""
    description2: str = ""
    vendor_code: str = ""
    vendor_item: str = ""
    tariff: str = ""
    category: str = ""
    sub_category: str = ""
    vendor_name: str = ""
    vendor_address: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""

    @classmethod
    def from_row(cls, row) -> "PartRecord":
        """Build from a catalog DataFrame row (Series) or a plain dict."""
        values = {f.name: row.get(f.name, "") for f in fields(cls)}
        values["id"] = int(values["id"] or 0)
        for name in TEXT_FIELDS:
            values[name] = cell_text(values[name])
        return cls(**values)


def normalize_code(value) -> str:
    return cell_text(value).upper()


# ── Loading ────────────────────────────────────────────────

def _empty_catalog() -> pd.DataFrame:
    return pd.DataFrame({"id": pd.Series(dtype=int), **{f: pd.Series(dtype=str) for f in TEXT_FIELDS}})


def catalog_from_records(records: list[dict]) -> pd.DataFrame:
    """Build a catalog frame from keyed records; missing fields become ""."""
    if not records:
        return _empty_catalog()
    out = pd.DataFrame({
        name: [cell_text(r.get(name, "")) for r in records] for name in TEXT_FIELDS
    })
    out.insert(0, "id", range(len(out)))
    return out


def _catalog_from_raw(raw: pd.DataFrame) -> pd.DataFrame:
    """Map a header=None frame positionally onto catalog fields."""
    data = raw.iloc[1:].reset_index(drop=True)
    out = pd.DataFrame(index=data.index)
    for pos, name, _ in CATALOG_COLUMNS:
        if pos in data.columns:
            out[name] = data[pos].map(cell_text)
        else:
            out[name] = ""
    out.insert(0, "id", range(len(out)))
    return out


def load_catalog(source: Path | str | bytes, name: str = "") -> pd.DataFrame:
    """
    Read the parts database from a path or raw .xlsx bytes.

    Raises CatalogLoadFailure on any read or parse problem.
    """
    label = name or ("parts database" if isinstance(source, (bytes, bytearray)) else str(source))
    try:
        handle = io.BytesIO(source) if isinstance(source, (bytes, bytearray)) else source
        raw = pd.read_excel(handle, header=None, dtype=object, engine="openpyxl")
    except Exception as e:
        logger.error("Error loading parts database %s: %s", label, e)
        raise CatalogLoadFailure(label, str(e)) from e

    if raw.empty:
        catalog = _empty_catalog()
    else:
        catalog = _catalog_from_raw(raw)
    logger.info("Loaded %d parts from %s", len(catalog), label)
    return catalog


# ── Export / summary ───────────────────────────────────────

def catalog_rows(catalog: pd.DataFrame) -> list[list]:
    """Positional round-trip of the catalog: header + 14 columns, slot 10 left empty."""
    header = [""] * CATALOG_WIDTH
    for pos, _, label in CATALOG_COLUMNS:
        header[pos] = label
    rows = [header]
    for rec in catalog.to_dict("records"):
        row = [""] * CATALOG_WIDTH
        for pos, name, _ in CATALOG_COLUMNS:
            row[pos] = rec.get(name, "")
        rows.append(row)
    return rows


def catalog_summary(catalog: pd.DataFrame) -> dict:
    if catalog.empty:
        return {"parts": 0, "categories": 0, "vendors": 0, "missing_tariff": 0}
    return {
        "parts": len(catalog),
        "categories": int(catalog.loc[catalog["category"] != "", "category"].nunique()),
        "vendors": int(catalog.loc[catalog["vendor_name"] != "", "vendor_name"].nunique()),
        "missing_tariff": int((catalog["tariff"] == "").sum()),
    }


# ── Lookup index ───────────────────────────────────────────

class CatalogIndex:
    """Normalized primary code -> tariff and vendor item -> tariff."""

    def __init__(self, by_primary: dict[str, str] | None = None,
                 by_vendor: dict[str, str] | None = None):
        self._by_primary = dict(by_primary or {})
        self._by_vendor = dict(by_vendor or {})

    @classmethod
    def build(cls, catalog: pd.DataFrame) -> "CatalogIndex":
        by_primary: dict[str, str] = {}
        by_vendor: dict[str, str] = {}
        if not catalog.empty:
            # later rows overwrite earlier ones on duplicate codes
            for primary, vendor_item, tariff in zip(
                catalog["primary_code"], catalog["vendor_item"], catalog["tariff"]
            ):
                key = normalize_code(primary)
                if key:
                    by_primary[key] = tariff
                key = normalize_code(vendor_item)
                if key:
                    by_vendor[key] = tariff
        return cls(by_primary, by_vendor)

    @property
    def by_primary(self):
        return MappingProxyType(self._by_primary)

    @property
    def by_vendor(self):
        return MappingProxyType(self._by_vendor)

    def lookup(self, code) -> str | None:
        """Tariff for a part number: primary codes first, then vendor items."""
        key = normalize_code(code)
        if not key:
            return None
        # an empty tariff counts as a miss and falls through
        return self._by_primary.get(key) or self._by_vendor.get(key) or None

    def __len__(self) -> int:
        return len(self._by_primary) + len(self._by_vendor)
