"""
Parts Desk — Parts catalog search & tariff reconciliation.

Run with:  streamlit run app.py
"""

import logging
from datetime import datetime

import pandas as pd
import streamlit as st

from partsdesk.catalog import CatalogIndex, PartRecord, catalog_summary, load_catalog
from partsdesk.config import Settings, load_settings
from partsdesk.errors import PartsDeskError
from partsdesk.export import (
    SEARCH_EXPORT_COLUMNS,
    catalog_export,
    export_file_name,
    reconcile_export,
    search_export,
)
from partsdesk.reconcile import (
    ReconciliationSession,
    close_matching,
    commit_match,
    open_matching,
    reconcile,
    search_suggestions,
    select_unmatched,
    start_session,
)
from partsdesk.search import SEARCH_SCOPES, filter_parts, near_codes, preview
from partsdesk.tabular import SUPPORTED_UPLOADS, read_rows


# ── Config ─────────────────────────────────────────────────

@st.cache_data
def cached_load_settings() -> Settings:
    return load_settings()


@st.cache_data
def cached_load_catalog(path: str) -> pd.DataFrame:
    return load_catalog(path)


settings = cached_load_settings()
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
limits = settings.limits

SCOPE_LABELS = {
    "all": "All fields",
    "primary": "Eurolink Item#",
    "vendor": "Supplier Part#",
    "description": "Description",
    "tariff": "Tariff Code",
}


# ── Helpers ────────────────────────────────────────────────

def _display_frame(df: pd.DataFrame) -> pd.DataFrame:
    return df[[f for f, _ in SEARCH_EXPORT_COLUMNS]].rename(columns=dict(SEARCH_EXPORT_COLUMNS))


def _record_by_id(catalog: pd.DataFrame, rec_id: int) -> PartRecord:
    return PartRecord.from_row(catalog.loc[catalog["id"] == rec_id].iloc[0])


def _set_session(session: ReconciliationSession | None):
    if session is None:
        st.session_state.pop("recon", None)
    else:
        st.session_state.recon = session


def show_part_detail(part: PartRecord):
    """Render every field of a catalog record."""
    col1, col2 = st.columns([2, 1])
    with col1:
        st.markdown(f"**Eurolink Item#:** `{part.primary_code}`")
        st.markdown(f"**Description:** {part.description1}")
        if part.description2:
            st.markdown(f"**Description 2:** {part.description2}")
        if part.category or part.sub_category:
            st.markdown(f"**Category:** {part.category} / {part.sub_category}")
    with col2:
        st.metric("Tariff Code", part.tariff or "---")
        if part.vendor_item:
            st.caption(f"Supplier Part#: {part.vendor_item}")
    if part.vendor_name:
        st.markdown("---")
        location = ", ".join(p for p in (part.city, part.state) if p)
        if part.zip:
            location = f"{location} {part.zip}".strip()
        st.markdown(f"**Vendor:** {part.vendor_name} ({part.vendor_code or 'no code'})")
        if part.vendor_address or location:
            st.caption(" | ".join(p for p in (part.vendor_address, location) if p))


def process_upload(uploaded_file, index: CatalogIndex):
    """Read and reconcile an upload. Returns a new session or shows the error."""
    try:
        rows = read_rows(uploaded_file.getvalue(), uploaded_file.name)
        result = reconcile(
            rows, index,
            primary_rule=settings.primary_rule,
            tariff_rule=settings.tariff_rule,
            preview_limit=limits.unmatched_preview,
        )
    except PartsDeskError as e:
        st.session_state._recon_error = e.message
        return None
    st.session_state.pop("_recon_error", None)
    return start_session(result, uploaded_file.name)


# ── Page setup ─────────────────────────────────────────────

st.set_page_config(page_title="Parts Desk", page_icon="P", layout="wide")

try:
    catalog = cached_load_catalog(str(settings.catalog_path))
except PartsDeskError as e:
    st.title("Parts Database Search")
    st.error(e.message)
    st.stop()

if "catalog_index" not in st.session_state:
    st.session_state.catalog_index = CatalogIndex.build(catalog)
catalog_index: CatalogIndex = st.session_state.catalog_index
default_view = preview(catalog, limits.preview)


# ── Sidebar ────────────────────────────────────────────────

with st.sidebar:
    st.title("Parts Desk")

    summary = catalog_summary(catalog)
    c1, c2 = st.columns(2)
    c1.metric("Parts", f"{summary['parts']:,}")
    c2.metric("Vendors", f"{summary['vendors']:,}")
    st.caption(
        f"{summary['categories']:,} categories | "
        f"{summary['missing_tariff']:,} parts without a tariff code"
    )
    st.caption(f"Source: {settings.catalog_path.name}")

    st.divider()

    if st.button("Reload Parts Database", use_container_width=True):
        cached_load_catalog.clear()
        for k in ("catalog_index", "recon", "_upload_key", "_recon_error"):
            st.session_state.pop(k, None)
        st.rerun()

    st.download_button(
        "Download Full Catalog",
        data=catalog_export(catalog),
        file_name=f"parts_catalog_{datetime.now().strftime('%Y%m%d')}.xlsx",
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        use_container_width=True,
    )


search_tab, tariff_tab = st.tabs(["Search", "Tariff Reconciliation"])


# ── Search tab ─────────────────────────────────────────────

with search_tab:
    q_col, scope_col, clear_col = st.columns([5, 2, 1])
    with scope_col:
        scope = st.selectbox(
            "Search in", options=list(SEARCH_SCOPES.keys()),
            format_func=SCOPE_LABELS.get, label_visibility="collapsed",
        )
    with clear_col:
        if st.button("Clear", use_container_width=True):
            st.session_state.search_query = ""
    with q_col:
        query = st.text_input(
            "Search parts",
            key="search_query",
            placeholder='e.g. "m20 110", "valve 4017", "8501.10"',
            label_visibility="collapsed",
        )

    results = filter_parts(catalog, query, scope=scope, default_view=default_view,
                           limit=limits.search)

    if query.strip():
        st.caption(f"{len(results)} matches for **{query}**"
                   + (f" (showing first {limits.search})" if len(results) >= limits.search else ""))
    else:
        st.caption(f"Showing the first {len(results)} of {len(catalog):,} parts")

    if results.empty:
        st.info("No matches found. Try different keywords.")
    else:
        st.dataframe(_display_frame(results), use_container_width=True, hide_index=True)

        st.download_button(
            "Export Results",
            data=search_export(results, settings.export),
            file_name=settings.export.search_file,
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )

        options = results["id"].tolist()
        labels = dict(zip(results["id"], results["primary_code"] + " -- " + results["description1"]))
        picked = st.selectbox("Part details", options=[None] + options,
                              format_func=lambda i: "(select a part)" if i is None else labels[i])
        if picked is not None:
            with st.expander("Part details", expanded=True):
                show_part_detail(_record_by_id(catalog, picked))


# ── Tariff reconciliation tab ──────────────────────────────

with tariff_tab:
    st.markdown(
        "Upload a spreadsheet with a **Primary Part Number** column and a "
        "**Tariff Number** column. Tariff codes are filled in from the parts "
        "database by Eurolink item, then by supplier part number."
    )

    uploader_key = f"upload_{st.session_state.get('_uploader_gen', 0)}"
    uploaded_file = st.file_uploader("Upload file", type=list(SUPPORTED_UPLOADS), key=uploader_key)

    if uploaded_file is not None:
        upload_key = (uploaded_file.name, uploaded_file.size)
        if st.session_state.get("_upload_key") != upload_key:
            with st.spinner("Processing uploaded file..."):
                new_session = process_upload(uploaded_file, catalog_index)
                st.session_state._upload_key = upload_key
            if new_session is not None:
                _set_session(new_session)

    if st.session_state.get("_recon_error"):
        st.error(st.session_state._recon_error)

    recon: ReconciliationSession | None = st.session_state.get("recon")

    if recon is not None:
        st.markdown(f"### {recon.file_name}")
        m1, m2, m3, m4 = st.columns(4)
        m1.metric("Rows Matched", f"{recon.matched_rows:,}")
        m2.metric("Rows Not Found", f"{recon.unmatched_rows:,}")
        m3.metric("Unmatched Parts", f"{recon.unmatched_count:,}")
        m4.metric("Matched by Hand", f"{len(recon.manual_matches):,}")

        if recon.unmatched_parts:
            shown = recon.unmatched_parts[:limits.unmatched_preview]
            more = len(recon.unmatched_parts) - len(shown)
            st.caption("Not found: " + ", ".join(shown) + (f" ... and {more} more" if more > 0 else ""))

        a1, a2, a3 = st.columns(3)
        with a1:
            st.download_button(
                "Download Updated File",
                data=reconcile_export(recon, settings.export),
                file_name=export_file_name(recon.file_name, settings.export.reconcile_suffix),
                mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
                use_container_width=True,
            )
        with a2:
            if st.button("Match Unmatched Parts", use_container_width=True,
                         disabled=not recon.unmatched_parts):
                _set_session(open_matching(recon))
                st.rerun()
        with a3:
            if st.button("Clear Upload", use_container_width=True, type="secondary"):
                _set_session(None)
                st.session_state.pop("_upload_key", None)
                st.session_state.pop("_recon_error", None)
                st.session_state._uploader_gen = st.session_state.get("_uploader_gen", 0) + 1
                st.rerun()

        if recon.manual_matches:
            with st.expander(f"Newly Matched ({len(recon.manual_matches)})"):
                st.dataframe(
                    [{"Part Number": m.part_number, "Tariff Code": m.tariff,
                      "Matched From": m.matched_from, "Description": m.description1,
                      "Vendor": m.vendor_name, "Rows Updated": m.rows_updated}
                     for m in recon.manual_matches],
                    use_container_width=True, hide_index=True,
                )

        # ── Manual matching ──
        if recon.matching_open:
            with st.container(border=True):
                st.markdown("#### Manual Matching")

                if not recon.unmatched_parts:
                    st.success("Every part number has a tariff code.")
                else:
                    part = st.selectbox(
                        "Unmatched part number",
                        options=[None] + list(recon.unmatched_parts),
                        index=(list(recon.unmatched_parts).index(recon.selected_part) + 1
                               if recon.selected_part in recon.unmatched_parts else 0),
                        format_func=lambda p: "(select a part number)" if p is None else p,
                    )
                    if part != recon.selected_part and part is not None:
                        _set_session(select_unmatched(recon, part))
                        st.rerun()

                if recon.selected_part:
                    hints = near_codes(recon.selected_part, catalog,
                                       limit=limits.near_codes, cutoff=limits.near_code_cutoff)
                    if hints:
                        st.caption("Similar catalog codes: " + ", ".join(
                            f"{code} ({score:.0f}%)" for code, score, _ in hints))

                    s1, s2, s3 = st.columns([4, 2, 1])
                    with s1:
                        match_query = st.text_input(
                            "Search the catalog", value=recon.suggestion_query,
                            key=f"match_query_{recon.selected_part}",
                        )
                    with s2:
                        match_scope = st.radio(
                            "Search in", options=["description", "broad"],
                            index=0 if recon.suggestion_scope == "description" else 1,
                            format_func={"description": "Descriptions",
                                         "broad": "Codes + descriptions"}.get,
                            horizontal=True,
                        )
                    with s3:
                        if st.button("Search", use_container_width=True):
                            _set_session(search_suggestions(recon, catalog, match_query,
                                                            scope=match_scope,
                                                            limit=limits.suggestions))
                            st.rerun()

                    if recon.suggestion_query and not recon.suggestion_ids:
                        st.caption("No suggestions yet. Search by description keywords.")

                    for rec_id in recon.suggestion_ids:
                        cand = _record_by_id(catalog, rec_id)
                        c1, c2 = st.columns([5, 1])
                        with c1:
                            st.markdown(
                                f"**{cand.primary_code}** -- {cand.description1} {cand.description2}  \n"
                                f"Tariff: `{cand.tariff or '---'}` | {cand.vendor_name}"
                            )
                        with c2:
                            if st.button("Use", key=f"use_{rec_id}", use_container_width=True):
                                _set_session(commit_match(recon, recon.selected_part, cand))
                                st.toast(f"Matched {recon.selected_part} to {cand.primary_code}")
                                st.rerun()

                if st.button("Close Matching"):
                    _set_session(close_matching(recon))
                    st.rerun()

    elif not st.session_state.get("_recon_error"):
        st.info("Upload a file to fill in tariff codes.")
