from __future__ import annotations

import html
import logging
from enum import Enum
from typing import Dict, List, Optional, Sequence

import plotly.express as px
import streamlit as st

from ekokurikulum.config import APP_NAME, APP_VERSION, LOG_LEVEL
from ekokurikulum.core import data_loader
from ekokurikulum.core.data_loader import UserNotFoundError
from ekokurikulum.core.filter_engine import (
    DIMENSION_ANY_LABELS,
    DIMENSION_LABELS,
    Dimension,
    FilterQuery,
    derive_all_options,
    filtered_view,
    has_active_filters,
    highlight_spans,
    to_frame,
)
from ekokurikulum.core.models import Student, User
from ekokurikulum.core.record_store import RecordStore
from ekokurikulum.core.summary import (
    attendance_band,
    build_stat_cards,
    record_count_caption,
    series_frame,
)

logger = logging.getLogger(__name__)


class ViewState(str, Enum):
    LOGIN = "LOGIN"
    DASHBOARD = "DASHBOARD"


# session_state keys
VIEW_KEY = "view"
USER_KEY = "user"
STORE_KEY = "record_store"
SEARCH_KEY = "search_text"
FILTER_KEYS: Dict[Dimension, str] = {d: f"filter_{d.value}" for d in Dimension}

LOGIN_FAILED_MESSAGE = "Log masuk gagal. Sila semak ID atau Emel anda."
NO_RECORDS_MESSAGE = "Tiada rekod pelajar dijumpai."

BAND_COLOURS = {
    "good": "#16a34a",
    "fair": "#ca8a04",
    "poor": "#dc2626",
}

TABLE_HEADERS = ["Pelajar", "Kelas", "Unit Uniform", "Sukan", "Kelab", "Kehadiran"]
CSV_FILE_NAME = "senarai_pelajar.csv"


# ---------------------------------------------------------------------------
# HTML helpers
# ---------------------------------------------------------------------------

def highlight_html(text: str, term: str) -> str:
    """Escape `text` and wrap every case-insensitive hit of `term` in <mark>."""
    out: List[str] = []
    for span in highlight_spans(text, term):
        piece = html.escape(span.text)
        out.append(f"<mark>{piece}</mark>" if span.is_match else piece)
    return "".join(out)


def _attendance_cell(value: float) -> str:
    colour = BAND_COLOURS[attendance_band(value)]
    width = max(0.0, min(100.0, value))
    shown = int(value) if float(value).is_integer() else value
    return (
        f'<span style="color:{colour};font-weight:700">{shown}%</span>'
        f'<div style="width:4rem;height:0.5rem;background:#e5e7eb;border-radius:9999px;overflow:hidden">'
        f'<div style="width:{width}%;height:100%;background:{colour}"></div></div>'
    )


def render_students_table(students: Sequence[Student], term: str) -> str:
    head = "".join(f"<th>{h}</th>" for h in TABLE_HEADERS)

    if not students:
        body = f'<tr><td colspan="{len(TABLE_HEADERS)}" style="text-align:center">{NO_RECORDS_MESSAGE}</td></tr>'
    else:
        rows = []
        for s in students:
            rows.append(
                "<tr>"
                f"<td><b>{highlight_html(s.nama, term)}</b><br><small>ID: {html.escape(s.id)}</small></td>"
                f"<td>{highlight_html(s.kelas, term)}</td>"
                f"<td>{html.escape(s.unit_uniform)}</td>"
                f"<td>{html.escape(s.sukan_permainan)}</td>"
                f"<td>{html.escape(s.kelab_persatuan)}</td>"
                f"<td>{_attendance_cell(s.kehadiran_purata)}</td>"
                "</tr>"
            )
        body = "".join(rows)

    return f'<table style="width:100%"><thead><tr>{head}</tr></thead><tbody>{body}</tbody></table>'


def students_csv(students: Sequence[Student]) -> str:
    """CSV of the rows currently shown, in sheet column order."""
    return to_frame(students).to_csv(index=False)


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------

def _init_state() -> None:
    st.session_state.setdefault(VIEW_KEY, ViewState.LOGIN)
    st.session_state.setdefault(USER_KEY, None)
    st.session_state.setdefault(STORE_KEY, RecordStore())
    st.session_state.setdefault(SEARCH_KEY, "")
    for key in FILTER_KEYS.values():
        st.session_state.setdefault(key, "")


def current_query() -> FilterQuery:
    query = FilterQuery(text=st.session_state.get(SEARCH_KEY, "") or "")
    for dimension, key in FILTER_KEYS.items():
        query = query.with_selection(dimension, st.session_state.get(key, "") or "")
    return query


def _clear_filters() -> None:
    # Runs as a widget callback, before the widgets are re-created.
    st.session_state[SEARCH_KEY] = ""
    for key in FILTER_KEYS.values():
        st.session_state[key] = ""


def _clear_search() -> None:
    st.session_state[SEARCH_KEY] = ""


def _on_login_success(user: User) -> None:
    st.session_state[USER_KEY] = user
    st.session_state[STORE_KEY] = RecordStore()
    st.session_state[VIEW_KEY] = ViewState.DASHBOARD


def _logout() -> None:
    logger.info("User %s logged out", getattr(st.session_state.get(USER_KEY), "id", None))
    st.session_state[USER_KEY] = None
    st.session_state[STORE_KEY] = RecordStore()
    st.session_state[VIEW_KEY] = ViewState.LOGIN
    _clear_filters()


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------

def _render_login() -> None:
    st.title(APP_NAME)
    st.caption("Log masuk untuk akses dashboard guru")

    with st.form("login_form"):
        identifier = st.text_input("Emel Guru / No KP", placeholder="cth: g-12345678@moe-dl.edu.my")
        submitted = st.form_submit_button("Login")

    if not submitted or not identifier.strip():
        return

    try:
        with st.spinner("Sedang Memproses..."):
            user = data_loader.login(identifier)
    except UserNotFoundError:
        st.error(LOGIN_FAILED_MESSAGE)
        return

    logger.info("User %s logged in as %s", user.id, user.role)
    _on_login_success(user)
    st.rerun()


def _render_header(user: User) -> None:
    left, right = st.columns([4, 1])
    with left:
        st.subheader("Selamat Datang, Cikgu!")
        st.caption("Berikut adalah ringkasan aktiviti kokurikulum semasa.")
    with right:
        st.write(f"**{user.name}**")
        st.caption(user.role.upper())
        st.button("Log Keluar", on_click=_logout, key="logout_btn")

    st.link_button("Eksport Laporan PDF", data_loader.export_document_url(user.id))


def _render_stat_cards(store: RecordStore) -> None:
    cards = build_stat_cards(store.statistics())
    for col, card in zip(st.columns(len(cards)), cards):
        with col:
            st.metric(card.title, card.value, delta=card.trend)


def _render_overview(store: RecordStore) -> None:
    stats = store.statistics()
    if stats is None:
        return

    col1, col2 = st.columns(2)

    with col1:
        monthly = series_frame(stats.kehadiran_bulanan)
        if not monthly.empty:
            fig = px.bar(monthly, x="name", y="value", title="Kehadiran Bulanan (%)",
                         labels={"name": "Bulan", "value": "Kehadiran (%)"})
            st.plotly_chart(fig, use_container_width=True)

    with col2:
        units = series_frame(stats.pecahan_unit)
        if not units.empty:
            colours = [c for c in units["fill"].tolist() if c]
            fig = px.pie(
                units,
                names="name",
                values="value",
                title="Pecahan Unit Beruniform",
                color_discrete_sequence=colours if len(colours) == len(units) else None,
            )
            st.plotly_chart(fig, use_container_width=True)


def _render_students(store: RecordStore) -> None:
    records = store.current()
    options = derive_all_options(records)

    search_col, action_col = st.columns([3, 1])
    with search_col:
        st.text_input("Cari", key=SEARCH_KEY, placeholder="Cari nama pelajar atau kelas...")
    with action_col:
        if st.session_state.get(SEARCH_KEY):
            st.button("Kosongkan carian", on_click=_clear_search, key="clear_search_btn")
        if has_active_filters(current_query()):
            st.button("Padam", on_click=_clear_filters, key="clear_filters_btn")

    with st.expander("Tapis", expanded=False):
        cols = st.columns(len(Dimension))
        for col, dimension in zip(cols, Dimension):
            key = FILTER_KEYS[dimension]
            choices = [""] + options[dimension]
            # A value left over from a previous load may no longer exist.
            if st.session_state.get(key, "") not in choices:
                st.session_state[key] = ""
            with col:
                st.selectbox(
                    DIMENSION_LABELS[dimension],
                    options=choices,
                    format_func=lambda v, d=dimension: v or DIMENSION_ANY_LABELS[d],
                    key=key,
                )

    query = current_query()
    visible = filtered_view(records, query)

    st.markdown(render_students_table(visible, query.text), unsafe_allow_html=True)
    st.caption(record_count_caption(len(visible)))
    st.download_button(
        "Muat turun CSV",
        data=students_csv(visible),
        file_name=CSV_FILE_NAME,
        mime="text/csv",
        key="download_csv_btn",
    )


def _render_dashboard(user: User) -> None:
    store: RecordStore = st.session_state[STORE_KEY]

    _render_header(user)

    if store.loaded_for != user.id:
        with st.spinner("Memuatkan data..."):
            store.load(user.id)

    _render_stat_cards(store)

    overview_tab, students_tab = st.tabs(["Statistik & Analisis", "Senarai Pelajar"])
    with overview_tab:
        _render_overview(store)
    with students_tab:
        _render_students(store)


def run_app() -> None:
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    st.set_page_config(page_title=APP_NAME, page_icon="🏫", layout="wide")
    _init_state()

    user: Optional[User] = st.session_state.get(USER_KEY)
    if st.session_state[VIEW_KEY] == ViewState.DASHBOARD and user is not None:
        _render_dashboard(user)
    else:
        _render_login()

    st.caption(f"{APP_NAME} · versi {APP_VERSION}")
