import copy

import pytest

from partsdesk.catalog import CatalogIndex, PartRecord, catalog_from_records
from partsdesk.config import HeaderRule
from partsdesk.errors import ColumnNotFound, EmptyUpload
from partsdesk.reconcile import (
    close_matching,
    commit_match,
    locate_columns,
    open_matching,
    reconcile,
    search_suggestions,
    select_unmatched,
    start_session,
)


HEADER = ["PRIMARY PART NUMBER", "TARIFF NUM"]


@pytest.fixture
def e100_index():
    return CatalogIndex.build(catalog_from_records([{"primary_code": "E100", "tariff": "8501.10"}]))


def _record(**kwargs) -> PartRecord:
    base = {"id": 7, "primary_code": "E777", "tariff": "7318.15",
            "description1": "HEX BOLT", "description2": "M8", "vendor_name": "Boltworks"}
    base.update(kwargs)
    return PartRecord(**base)


# ── locate_columns ────────────────────────────────────────

def test_locate_columns_by_header_text() -> None:
    header = ["Line", "Tariff Number (HTS)", None, "part primary #"]
    assert locate_columns(header) == (3, 1)


def test_locate_columns_first_match_wins() -> None:
    assert locate_columns(["Primary Part", "Primary Part 2", "Tariff Num"]) == (0, 2)


def test_missing_primary_column() -> None:
    with pytest.raises(ColumnNotFound) as exc:
        locate_columns(["PART", "TARIFF NUM"])
    assert exc.value.which == "primary"
    assert exc.value.message == (
        'Could not find a primary column (header containing "PRIMARY" and "PART") '
        "in the uploaded file."
    )


def test_missing_tariff_column() -> None:
    with pytest.raises(ColumnNotFound) as exc:
        locate_columns(["PRIMARY PART NUMBER", "TARIFF"])
    assert exc.value.which == "tariff"
    assert '"TARIFF" and "NUM"' in exc.value.message
    assert exc.value.details["tokens"] == ["TARIFF", "NUM"]


def test_custom_header_rules() -> None:
    primary = HeaderRule("primary", ("ITEM",))
    tariff = HeaderRule("tariff", ("HTS",))
    assert locate_columns(["HTS Code", "Item"], primary, tariff) == (1, 0)
    with pytest.raises(ColumnNotFound) as exc:
        locate_columns(["Item", "Tariff Num"], primary, tariff)
    assert '(header containing "HTS")' in exc.value.message


# ── reconcile: end-to-end scenarios ──────────────────────

def test_scenario_a_match(e100_index) -> None:
    rows = [list(HEADER), ["E100", ""]]
    result = reconcile(rows, e100_index)
    assert rows[1][1] == "8501.10"
    assert result.matched_rows == 1
    assert result.unmatched_rows == 0
    assert result.unmatched_parts == []


def test_scenario_b_unmatched(e100_index) -> None:
    rows = [list(HEADER), ["Z999", ""]]
    result = reconcile(rows, e100_index)
    assert result.unmatched_rows == 1
    assert result.unmatched_parts == ["Z999"]
    assert rows[1][1] == ""


def test_scenario_d_missing_tariff_column_mutates_nothing(e100_index) -> None:
    rows = [["PRIMARY PART NUMBER", "TARIFF"], ["E100", ""]]
    before = copy.deepcopy(rows)
    with pytest.raises(ColumnNotFound) as exc:
        reconcile(rows, e100_index)
    assert exc.value.which == "tariff"
    assert rows == before


def test_empty_upload(e100_index) -> None:
    with pytest.raises(EmptyUpload):
        reconcile([], e100_index)


# ── reconcile: details ───────────────────────────────────

def test_lookup_normalized_but_unmatched_kept_verbatim(e100_index) -> None:
    rows = [list(HEADER), ["  e100 ", None], ["  z999x  ", None]]
    result = reconcile(rows, e100_index)
    assert rows[1][1] == "8501.10"
    assert result.unmatched_parts == ["z999x"]


def test_unmatched_parts_deduplicated_rows_counted(e100_index) -> None:
    rows = [list(HEADER), ["Z1", ""], ["Z2", ""], ["Z1", ""], ["E100", ""]]
    result = reconcile(rows, e100_index)
    assert result.unmatched_parts == ["Z1", "Z2"]
    assert result.unique_unmatched == 2
    assert result.unmatched_rows == 3
    assert result.matched_rows == 1


def test_blank_part_numbers_skipped(e100_index) -> None:
    rows = [list(HEADER), [None, ""], ["   ", ""], []]
    result = reconcile(rows, e100_index)
    assert result.matched_rows == 0
    assert result.unmatched_rows == 0
    assert result.unmatched_parts == []


def test_short_rows_are_padded() -> None:
    index = CatalogIndex.build(catalog_from_records([{"primary_code": "E100", "tariff": "8501.10"}]))
    rows = [["Desc", "PRIMARY PART", "Qty", "TARIFF NUMBER"], ["motor", "E100"]]
    reconcile(rows, index)
    assert rows[1] == ["motor", "E100", None, "8501.10"]


def test_numeric_cells_looked_up_as_text() -> None:
    index = CatalogIndex.build(catalog_from_records([{"primary_code": "4017", "tariff": "8481.80"}]))
    rows = [list(HEADER), [4017.0, None]]
    result = reconcile(rows, index)
    assert result.matched_rows == 1
    assert rows[1][1] == "8481.80"


def test_vendor_item_fallback(index) -> None:
    rows = [list(HEADER), ["hb-1170", ""]]
    result = reconcile(rows, index)
    assert rows[1][1] == "7318.15"
    assert result.matched_rows == 1


def test_unmatched_preview_is_bounded(e100_index) -> None:
    rows = [list(HEADER)] + [[f"Z{i}", ""] for i in range(30)]
    result = reconcile(rows, e100_index, preview_limit=20)
    assert len(result.unmatched_parts) == 30
    assert len(result.unmatched_preview) == 20


def test_reconcile_is_deterministic(index) -> None:
    rows = [list(HEADER), ["E100", ""], ["nope", ""], ["AC-100", ""], ["E400", ""]]
    a = copy.deepcopy(rows)
    b = copy.deepcopy(rows)
    ra = reconcile(a, index)
    rb = reconcile(b, index)
    assert a == b
    assert (ra.matched_rows, ra.unmatched_rows) == (rb.matched_rows, rb.unmatched_rows)
    assert ra.unmatched_parts == rb.unmatched_parts == ["nope", "E400"]


# ── manual matching session ──────────────────────────────

def _session(index, rows):
    return start_session(reconcile(rows, index), "upload.xlsx")


def test_scenario_c_commit_updates_all_rows(e100_index) -> None:
    rows = [list(HEADER), ["Z999", ""], ["Z999", ""]]
    session = _session(e100_index, rows)
    assert session.unmatched_count == 1

    updated = commit_match(session, "Z999", _record())

    assert updated.manual_matches[0].rows_updated == 2
    assert updated.rows[1][1] == "7318.15"
    assert updated.rows[2][1] == "7318.15"
    assert updated.unmatched_count == 0
    assert updated.unmatched_parts == ()
    assert updated.matched_rows == 2
    assert session.unmatched_rows == 2
    assert updated.unmatched_rows == 0


def test_commit_does_not_touch_previous_session(e100_index) -> None:
    session = _session(e100_index, [list(HEADER), ["Z999", ""]])
    commit_match(session, "Z999", _record())
    assert session.rows[1][1] == ""
    assert session.unmatched_parts == ("Z999",)
    assert session.manual_matches == ()


def test_commit_records_provenance(e100_index) -> None:
    session = _session(e100_index, [list(HEADER), ["Z999", ""]])
    entry = commit_match(session, "Z999", _record()).manual_matches[0]
    assert entry.part_number == "Z999"
    assert entry.tariff == "7318.15"
    assert entry.matched_from == "E777"
    assert entry.description1 == "HEX BOLT"
    assert entry.description2 == "M8"
    assert entry.vendor_name == "Boltworks"


def test_commit_matches_exact_text_only(e100_index) -> None:
    rows = [list(HEADER), ["Z999", ""], ["z999", ""]]
    session = _session(e100_index, rows)
    updated = commit_match(session, "Z999", _record())
    assert updated.rows[1][1] == "7318.15"
    assert updated.rows[2][1] == ""
    assert updated.unmatched_parts == ("z999",)
    assert updated.unmatched_count == 1
    assert updated.matched_rows + updated.unmatched_rows == 2


def test_stale_commit_still_counts(e100_index) -> None:
    session = _session(e100_index, [list(HEADER), ["Z999", ""]])
    updated = commit_match(session, "GONE", _record())
    assert updated.manual_matches[-1].rows_updated == 0
    assert updated.unmatched_count == 0
    assert updated.matched_rows == session.matched_rows
    assert updated.unmatched_rows == session.unmatched_rows == 1
    assert updated.unmatched_parts == ("Z999",)


def test_matching_transitions(catalog, e100_index) -> None:
    session = _session(e100_index, [list(HEADER), ["Z999", ""]])

    opened = open_matching(session)
    assert opened.matching_open

    picked = select_unmatched(opened, "Z999")
    assert picked.selected_part == "Z999"
    assert picked.suggestion_query == "Z999"

    searched = search_suggestions(picked, catalog, "valve", scope="description")
    assert searched.suggestion_ids == (1,)
    assert searched.suggestion_scope == "description"

    committed = commit_match(searched, searched.selected_part,
                             PartRecord.from_row(catalog.iloc[1]))
    assert committed.selected_part is None
    assert committed.suggestion_ids == ()
    assert committed.rows[1][1] == "8481.80"

    closed = close_matching(committed)
    assert not closed.matching_open


def test_open_matching_without_unmatched_is_noop(e100_index) -> None:
    session = _session(e100_index, [list(HEADER), ["E100", ""]])
    assert open_matching(session) is session
