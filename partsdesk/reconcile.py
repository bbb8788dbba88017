"""
reconcile.py — Fill tariff numbers into an uploaded sheet from the catalog.

Flow:
  1. locate_columns() finds the primary part number and tariff columns by
     header text (configurable token rules, not positions).
  2. reconcile() looks every primary part number up in the CatalogIndex,
     writes hits into the tariff column in place and collects the misses.
  3. The manual-matching loop runs on a ReconciliationSession: pick an
     unmatched part, search candidates, commit one. Every transition returns
     a new session; the previous one is never modified.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

import pandas as pd

from partsdesk.catalog import CatalogIndex, PartRecord
from partsdesk.config import HeaderRule
from partsdesk.errors import ColumnNotFound, EmptyUpload
from partsdesk.search import suggest_candidates
from partsdesk.tabular import cell_text


logger = logging.getLogger(__name__)

PRIMARY_RULE = HeaderRule("primary", ("PRIMARY", "PART"))
TARIFF_RULE = HeaderRule("tariff", ("TARIFF", "NUM"))


# ── Column detection ───────────────────────────────────────

def find_column(header_row: list, rule: HeaderRule) -> int | None:
    for i, header in enumerate(header_row):
        if rule.matches(header):
            return i
    return None


def locate_columns(
    header_row: list,
    primary_rule: HeaderRule = PRIMARY_RULE,
    tariff_rule: HeaderRule = TARIFF_RULE,
) -> tuple[int, int]:
    """Return (primary_col, tariff_col). Raises ColumnNotFound naming the missing one."""
    primary_col = find_column(header_row, primary_rule)
    if primary_col is None:
        raise ColumnNotFound("primary", primary_rule.tokens)
    tariff_col = find_column(header_row, tariff_rule)
    if tariff_col is None:
        raise ColumnNotFound("tariff", tariff_rule.tokens)
    return primary_col, tariff_col


# ── Automatic pass ─────────────────────────────────────────

@dataclass
class ReconciliationResult:
    rows: list[list]
    primary_col: int
    tariff_col: int
    matched_rows: int = 0
    unmatched_rows: int = 0
    unmatched_parts: list[str] = field(default_factory=list)
    preview_limit: int = 20

    @property
    def unique_unmatched(self) -> int:
        return len(self.unmatched_parts)

    @property
    def unmatched_preview(self) -> list[str]:
        return self.unmatched_parts[:self.preview_limit]


def _set_cell(row: list, col: int, value) -> None:
    if len(row) <= col:
        row.extend([None] * (col + 1 - len(row)))
    row[col] = value


def _primary_text(row: list, col: int) -> str:
    return cell_text(row[col]) if col < len(row) else ""


def reconcile(
    rows: list[list],
    index: CatalogIndex,
    primary_rule: HeaderRule = PRIMARY_RULE,
    tariff_rule: HeaderRule = TARIFF_RULE,
    preview_limit: int = 20,
) -> ReconciliationResult:
    """
    Fill the tariff column of ``rows`` (header first) in place.

    Rows with an empty primary part number are neither matched nor
    unmatched. Unmatched part numbers keep their original (trimmed) text and
    appear once each, in first-seen order.
    """
    if not rows:
        raise EmptyUpload()
    primary_col, tariff_col = locate_columns(rows[0], primary_rule, tariff_rule)

    result = ReconciliationResult(rows=rows, primary_col=primary_col,
                                  tariff_col=tariff_col, preview_limit=preview_limit)
    seen: set[str] = set()

    for row in rows[1:]:
        part = _primary_text(row, primary_col)
        if not part:
            continue
        tariff = index.lookup(part)
        if tariff:
            _set_cell(row, tariff_col, tariff)
            result.matched_rows += 1
        elif part not in seen:
            seen.add(part)
            result.unmatched_parts.append(part)

    # Second pass: count unmatched rows against the finished lookup state
    result.unmatched_rows = sum(
        1 for row in rows[1:]
        if _primary_text(row, primary_col) and not index.lookup(_primary_text(row, primary_col))
    )

    logger.info(
        "Reconciled %d rows: %d matched, %d unmatched (%d unique part numbers)",
        len(rows) - 1, result.matched_rows, result.unmatched_rows, result.unique_unmatched,
    )
    return result


# ── Manual matching ────────────────────────────────────────

@dataclass(frozen=True)
class ManualMatch:
    part_number: str
    tariff: str
    matched_from: str
    description1: str
    description2: str
    vendor_name: str
    rows_updated: int

    def as_row(self) -> list:
        return [self.part_number, self.tariff, self.matched_from, self.description1,
                self.description2, self.vendor_name, self.rows_updated]


MANUAL_MATCH_HEADER = [
    "Part Number", "Tariff Code", "Matched From",
    "Description 1", "Description 2", "Vendor Name", "Rows Updated",
]


@dataclass(frozen=True)
class ReconciliationSession:
    """Everything the tariff tab knows about the current upload."""

    file_name: str
    rows: list[list]
    primary_col: int
    tariff_col: int
    matched_rows: int
    unmatched_count: int                       # unique part numbers still open
    unmatched_rows: int                        # rows still without a tariff
    unmatched_parts: tuple[str, ...] = ()
    manual_matches: tuple[ManualMatch, ...] = ()
    matching_open: bool = False
    selected_part: str | None = None
    suggestion_query: str = ""
    suggestion_scope: str = "description"
    suggestion_ids: tuple[int, ...] = ()


def start_session(result: ReconciliationResult, file_name: str) -> ReconciliationSession:
    return ReconciliationSession(
        file_name=file_name,
        rows=result.rows,
        primary_col=result.primary_col,
        tariff_col=result.tariff_col,
        matched_rows=result.matched_rows,
        unmatched_count=result.unique_unmatched,
        unmatched_rows=result.unmatched_rows,
        unmatched_parts=tuple(result.unmatched_parts),
    )


def open_matching(session: ReconciliationSession) -> ReconciliationSession:
    if not session.unmatched_parts:
        return session
    return replace(session, matching_open=True)


def close_matching(session: ReconciliationSession) -> ReconciliationSession:
    return replace(session, matching_open=False, selected_part=None,
                   suggestion_query="", suggestion_ids=())


def select_unmatched(session: ReconciliationSession, part_number: str) -> ReconciliationSession:
    """Pick the part to resolve; its number becomes the starting search text."""
    return replace(session, selected_part=part_number,
                   suggestion_query=part_number, suggestion_ids=())


def search_suggestions(
    session: ReconciliationSession,
    catalog: pd.DataFrame,
    query: str,
    scope: str | None = None,
    limit: int = 10,
) -> ReconciliationSession:
    scope = scope or session.suggestion_scope
    found = suggest_candidates(catalog, query, scope=scope, limit=limit)
    return replace(session, suggestion_query=query, suggestion_scope=scope,
                   suggestion_ids=tuple(int(i) for i in found["id"]))


def commit_match(
    session: ReconciliationSession,
    part_number: str,
    record: PartRecord,
) -> ReconciliationSession:
    """
    Give every row carrying ``part_number`` the tariff of ``record``.

    The unmatched counter drops by one per committed part number, however
    many rows it fixed; the row tally drops by the rows it fixed. A part number that no longer appears in the rows
    still gets an audit entry and still decrements the counter.
    """
    rows = [list(r) for r in session.rows]
    rows_updated = 0
    for row in rows[1:]:
        if _primary_text(row, session.primary_col) == part_number:
            _set_cell(row, session.tariff_col, record.tariff)
            rows_updated += 1

    if rows_updated == 0:
        logger.warning("Manual match for %s updated no rows", part_number)

    entry = ManualMatch(
        part_number=part_number,
        tariff=record.tariff,
        matched_from=record.primary_code,
        description1=record.description1,
        description2=record.description2,
        vendor_name=record.vendor_name,
        rows_updated=rows_updated,
    )
    logger.info("Matched %s -> %s via %s (%d rows)",
                part_number, record.tariff, record.primary_code, rows_updated)

    return replace(
        session,
        rows=rows,
        matched_rows=session.matched_rows + rows_updated,
        unmatched_count=session.unmatched_count - 1,
        unmatched_rows=session.unmatched_rows - rows_updated,
        unmatched_parts=tuple(p for p in session.unmatched_parts if p != part_number),
        manual_matches=session.manual_matches + (entry,),
        selected_part=None,
        suggestion_query="",
        suggestion_ids=(),
    )
