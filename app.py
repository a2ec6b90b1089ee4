"""Streamlit front-end for the NAV history reconciliation engine."""
from __future__ import annotations

import json
from datetime import date

import pandas as pd
import streamlit as st

from nav_history import reconcile
from nav_history.config import SETTINGS
from nav_history.domain.errors import NavHistoryError
from nav_history.domain.results import ReconciliationResult
from nav_history.infrastructure.storage.portfolio_store import (
    apply_result_to_record,
    find_fund,
    fund_state_from_record,
)
from nav_history.presentation.history_report import history_to_frame, render_csv, render_html


st.set_page_config(page_title="NAV History", layout="wide")
st.title("NAV History Reconciliation")


def funds_to_dataframe(portfolio: dict) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "ISIN": fund.get("ISIN"),
                "name": fund.get("denominacion"),
                "units": fund.get("participaciones"),
                "nav": fund.get("NAV_actual"),
                "nav_date": fund.get("fecha_NAV"),
                "history_points": len(fund.get("historial") or []),
            }
            for fund in portfolio.get("fondos", [])
        ]
    )


if "portfolio" not in st.session_state:
    st.session_state["portfolio"] = None
    st.session_state["result"] = None

uploaded = st.file_uploader("Portfolio JSON", type=["json"])
if uploaded is not None:
    try:
        st.session_state["portfolio"] = json.loads(uploaded.getvalue().decode("utf-8"))
    except json.JSONDecodeError as exc:
        st.error(f"Invalid portfolio file: {exc}")

portfolio = st.session_state.get("portfolio")
if not portfolio:
    st.info("Upload a portfolio to start.")
    st.stop()

st.subheader("Funds")
st.dataframe(funds_to_dataframe(portfolio), use_container_width=True)

isins = [fund.get("ISIN") for fund in portfolio.get("fondos", []) if fund.get("ISIN")]
selected = st.selectbox("Fund", isins)
as_of = st.date_input("As of", value=date.today())
raw_response = st.text_area("Provider response", height=260)

run_btn = st.button("Reconcile", disabled=not (selected and raw_response.strip()))
if run_btn:
    try:
        record = find_fund(portfolio, selected)
        fund = fund_state_from_record(record)
    except NavHistoryError as exc:
        st.error(str(exc))
        st.stop()
    with st.spinner("Reconciling..."):
        result = reconcile(raw_response, fund, as_of=as_of)
    st.session_state["result"] = {"isin": selected, "result": result, "units": fund.held_units}

stored = st.session_state.get("result")
if stored and stored["isin"] == selected:
    result: ReconciliationResult = stored["result"]
    st.subheader("Summary")
    st.code(result.summary)
    cols = st.columns(4)
    cols[0].metric("Literal", result.stats.literal)
    cols[1].metric("Synthetic", result.stats.synthetic)
    cols[2].metric("Interpolated", result.stats.interpolated)
    cols[3].metric("Dropped", result.stats.dropped)

    frame = history_to_frame(result.updated_history, stored["units"])
    if not frame.empty:
        st.line_chart(frame.set_index("date")["total_value"])
    st.dataframe(frame, use_container_width=True)
    st.download_button(
        "Download history CSV",
        data=render_csv(result.updated_history, stored["units"]),
        file_name=f"{selected}_history.csv",
        mime="text/csv",
    )
    st.download_button(
        "Download history HTML",
        data=render_html(result.updated_history, stored["units"]).encode("utf-8"),
        file_name=f"{selected}_history.html",
        mime="text/html",
    )

    if st.button("Apply to portfolio"):
        apply_result_to_record(find_fund(portfolio, selected), result, SETTINGS.update_source_label)
        st.session_state["portfolio"] = portfolio
        st.success("Fund updated")
    st.download_button(
        "Download portfolio JSON",
        data=json.dumps(portfolio, ensure_ascii=False, indent=2).encode("utf-8"),
        file_name="portfolio.json",
        mime="application/json",
    )
