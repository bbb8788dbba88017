"""
config.py — Settings for the catalog search and tariff reconciliation tool.

Reads config/partsdesk.yaml. Any key missing from the file falls back to the
built-in default below, so a partial file is fine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml


ROOT = Path(__file__).resolve().parent.parent
CONFIG_PATH = ROOT / "config" / "partsdesk.yaml"

_DEFAULTS: dict = {
    "catalog_path": "data/parts_db_8.1.2025.xlsx",
    "log_level": "INFO",
    "limits": {
        "preview": 50,
        "search": 100,
        "suggestions": 10,
        "unmatched_preview": 20,
        "near_codes": 5,
        "near_code_cutoff": 70,
    },
    "columns": {
        "primary": ["PRIMARY", "PART"],
        "tariff": ["TARIFF", "NUM"],
    },
    "export": {
        "search_file": "parts_search_results.xlsx",
        "search_sheet": "Search Results",
        "reconcile_suffix": "_with_tariffs.xlsx",
        "updated_sheet": "Updated Data",
        "matched_sheet": "Newly Matched",
    },
}


@dataclass(frozen=True)
class HeaderRule:
    """A header qualifies when its upper-cased text contains every token."""

    which: str
    tokens: tuple[str, ...]

    def matches(self, header) -> bool:
        if header is None:
            return False
        text = str(header).upper()
        return all(tok in text for tok in self.tokens)


@dataclass(frozen=True)
class Limits:
    preview: int = 50
    search: int = 100
    suggestions: int = 10
    unmatched_preview: int = 20
    near_codes: int = 5
    near_code_cutoff: float = 70


@dataclass(frozen=True)
class ExportNames:
    search_file: str = "parts_search_results.xlsx"
    search_sheet: str = "Search Results"
    reconcile_suffix: str = "_with_tariffs.xlsx"
    updated_sheet: str = "Updated Data"
    matched_sheet: str = "Newly Matched"


@dataclass(frozen=True)
class Settings:
    catalog_path: Path
    log_level: str = "INFO"
    limits: Limits = field(default_factory=Limits)
    primary_rule: HeaderRule = HeaderRule("primary", ("PRIMARY", "PART"))
    tariff_rule: HeaderRule = HeaderRule("tariff", ("TARIFF", "NUM"))
    export: ExportNames = field(default_factory=ExportNames)


def _merge(base: dict, override: dict) -> dict:
    out = dict(base)
    for key, val in (override or {}).items():
        if isinstance(val, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], val)
        else:
            out[key] = val
    return out


def settings_from_dict(raw: dict | None) -> Settings:
    """Build Settings from a (possibly partial) mapping."""
    cfg = _merge(_DEFAULTS, raw or {})

    catalog_path = Path(cfg["catalog_path"]).expanduser()
    if not catalog_path.is_absolute():
        catalog_path = ROOT / catalog_path

    cols = cfg["columns"]
    return Settings(
        catalog_path=catalog_path,
        log_level=str(cfg["log_level"]).upper(),
        limits=Limits(**cfg["limits"]),
        primary_rule=HeaderRule("primary", tuple(str(t).upper() for t in cols["primary"])),
        tariff_rule=HeaderRule("tariff", tuple(str(t).upper() for t in cols["tariff"])),
        export=ExportNames(**cfg["export"]),
    )


def load_settings(path: Path | None = None) -> Settings:
    cfg_path = path or CONFIG_PATH
    raw = {}
    if cfg_path.exists():
        with open(cfg_path) as f:
            raw = yaml.safe_load(f) or {}
    return settings_from_dict(raw)
