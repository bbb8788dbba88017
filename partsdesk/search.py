"""
search.py — Catalog search and manual-match candidate lookup.

Every typed token must hit at least one of the scope's fields (AND of ORs),
so "m20 110" finds a part whose description is split across both
description columns. Results keep catalog order; there is no scoring except
in near_codes(), which ranks "did you mean" hints for unmatched part numbers.
"""

from __future__ import annotations

import re

import pandas as pd
from rapidfuzz import fuzz, process


# ── Scopes ─────────────────────────────────────────────────

SEARCH_SCOPES: dict[str, list[str]] = {
    "all": ["primary_code", "vendor_item", "description1", "description2", "tariff", "vendor_name"],
    "primary": ["primary_code"],
    "vendor": ["vendor_item"],
    "description": ["description1", "description2"],
    "tariff": ["tariff"],
}

SUGGEST_SCOPES: dict[str, list[str]] = {
    "description": ["description1", "description2"],
    "broad": ["primary_code", "vendor_item", "description1", "description2"],
}

_NUMERIC_TOKEN = re.compile(r"\d+")


def tokenize(query: str) -> list[str]:
    return query.lower().split()


def _numeric_pattern(token: str) -> str:
    # "4017" hits "4017" and "4017-2" but not "40170" or "140170"
    return rf"\b{re.escape(token)}(?:-\d+)?\b"


def _token_mask(catalog: pd.DataFrame, token: str, columns: list[str],
                numeric_boundary: bool = False) -> pd.Series:
    """True where ``token`` appears in any of ``columns``."""
    use_pattern = numeric_boundary and _NUMERIC_TOKEN.fullmatch(token) is not None
    mask = pd.Series(False, index=catalog.index)
    for col in columns:
        values = catalog[col].fillna("").astype(str)
        if use_pattern:
            hit = values.str.contains(_numeric_pattern(token), case=False, regex=True)
        else:
            hit = values.str.lower().str.contains(token, regex=False)
        mask |= hit
    return mask


def _match_all(catalog: pd.DataFrame, tokens: list[str], columns: list[str],
               numeric_boundary: bool = False) -> pd.DataFrame:
    mask = pd.Series(True, index=catalog.index)
    for token in tokens:
        mask &= _token_mask(catalog, token, columns, numeric_boundary)
    return catalog[mask]


# ── Public API ─────────────────────────────────────────────

def preview(catalog: pd.DataFrame, limit: int = 50) -> pd.DataFrame:
    """The capped view shown before anything is typed."""
    return catalog.head(limit)


def filter_parts(
    catalog: pd.DataFrame,
    query: str,
    scope: str = "all",
    default_view: pd.DataFrame | None = None,
    limit: int = 100,
) -> pd.DataFrame:
    """
    Filter the catalog by every whitespace-separated term in ``query``.

    An empty query returns ``default_view`` (the preview) rather than the
    whole catalog. Matches are capped at ``limit`` in catalog order.
    """
    if not query.strip():
        return default_view if default_view is not None else preview(catalog)
    if scope not in SEARCH_SCOPES:
        raise ValueError(f"Unknown search scope: {scope}")
    return _match_all(catalog, tokenize(query), SEARCH_SCOPES[scope]).head(limit)


def suggest_candidates(
    catalog: pd.DataFrame,
    query: str,
    scope: str = "description",
    limit: int = 10,
) -> pd.DataFrame:
    """
    Candidate parts for a manual match.

    Same AND-of-tokens rule as filter_parts(), but purely numeric tokens only
    match on word boundaries (with an optional "-digits" suffix).
    """
    if not query.strip():
        return catalog.head(0)
    if scope not in SUGGEST_SCOPES:
        raise ValueError(f"Unknown suggestion scope: {scope}")
    return _match_all(catalog, tokenize(query), SUGGEST_SCOPES[scope],
                      numeric_boundary=True).head(limit)


def near_codes(
    part_number: str,
    catalog: pd.DataFrame,
    limit: int = 5,
    cutoff: float = 70,
) -> list[tuple[str, float, int]]:
    """
    Closest catalog codes to an unmatched part number.

    Scores primary codes and supplier part numbers with fuzz.ratio and
    returns (code, score, record id), best first, one entry per code.
    """
    query = part_number.strip().upper()
    if not query or catalog.empty:
        return []

    choices: list[str] = []
    ids: list[int] = []
    for col in ("primary_code", "vendor_item"):
        for rec_id, code in zip(catalog["id"], catalog[col]):
            code = str(code).strip().upper()
            if code:
                choices.append(code)
                ids.append(int(rec_id))

    hits = process.extract(
        query, choices, scorer=fuzz.ratio,
        limit=None, score_cutoff=cutoff,
    )

    out: list[tuple[str, float, int]] = []
    seen: set[str] = set()
    for code, score, pos in hits:
        if code in seen:
            continue
        seen.add(code)
        out.append((code, round(float(score), 1), ids[pos]))
        if len(out) >= limit:
            break
    return out
