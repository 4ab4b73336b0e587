from __future__ import annotations

import streamlit as st

from mariposa_app.ui.backend_client import call_backend
from mariposa_app.ui.components import (
    analysis_card,
    opportunities_table,
    render_auth_gate,
    render_sidebar,
    whale_table,
)
from mariposa_app.ui.state import (
    cached_confluence,
    cached_opportunities,
    cached_whale_activity,
    ensure_keys,
    refresh_interval,
    token_scope,
)
from mariposa_app.utils.envs import default_symbols, get_settings
from mariposa_app.utils.error_handling import error_boundary
from mariposa_app.utils.formatting import format_money, safe_get, safe_list
from mariposa_app.utils.mock_data import generate_confluence, generate_opportunities, generate_whale_activity
from mariposa_app.utils.models import Analysis, parse_one
from mariposa_app.utils.ui import auto_refresh, safe_set_page_config

safe_set_page_config(page_title="Opportunities", page_icon="🐋", layout="wide")
ensure_keys()
render_sidebar()
render_auth_gate()

settings = get_settings()
scope = token_scope()

st.title("🐋 Opportunities & whale activity")

available = default_symbols(settings)
symbols = tuple(st.multiselect("Symbols", available, default=available, key="opportunities_symbols"))
if not symbols:
    st.info("Pick at least one symbol to scan.")
    st.stop()

left, right = st.columns(2)

with left:
    st.subheader("🎯 Opportunity scanner")
    min_score = st.slider("Minimum score", min_value=0, max_value=100, step=5, key="opportunity_min_score")
    with error_boundary("opportunities_scan", title="Opportunity scan failed"):
        payload = call_backend(
            lambda: cached_opportunities(scope, symbols, min_score),
            fallback=list,
            error_message="Failed to scan opportunities",
            mock=lambda: generate_opportunities(symbols, min_score),
        )
        items = safe_list(safe_get(payload, "opportunities", payload))
        opportunities_table(items)
        if items:
            best = items[0]
            st.caption(f"Best: {safe_get(best, 'symbol')} · {safe_get(best, 'reasoning', '')}")

with right:
    st.subheader("🐋 Whale activity")
    min_size = st.number_input("Minimum size ($)", min_value=10_000.0, step=10_000.0, key="whale_min_size")
    with error_boundary("opportunities_whales", title="Whale activity unavailable"):
        payload = call_backend(
            lambda: cached_whale_activity(scope, symbols, min_size),
            fallback=list,
            error_message="Failed to load whale activity",
            mock=lambda: generate_whale_activity(symbols, min_size),
        )
        items = safe_list(safe_get(payload, "activities", payload))
        whale_table(items)
        if items:
            total = sum(float(safe_get(item, "value", 0) or 0) for item in items)
            st.caption(f"{len(items)} trades · {format_money(total, short=True)} total")

st.divider()
st.subheader("🧭 Confluence")
confluence_symbol = st.selectbox("Symbol", symbols, key="opportunities_confluence_symbol")
with error_boundary("opportunities_confluence", title="Confluence score unavailable"):
    data = call_backend(
        lambda: cached_confluence(scope, confluence_symbol),
        fallback=dict,
        error_message="Failed to load confluence score",
        notify=False,
        mock=lambda: generate_confluence(confluence_symbol),
    )
    score = safe_get(data, "score")
    if score is not None:
        cols = st.columns(2)
        cols[0].metric("Confluence score", f"{float(score):.0f}/100")
        cols[1].metric("Strongest timeframe", safe_get(data, "strongestTimeframe", "—"))
    consensus = safe_get(data, "consensus")
    if isinstance(consensus, dict):
        analysis_card(parse_one(Analysis, {"symbol": confluence_symbol, **consensus}))
    else:
        st.caption("No confluence data.")
    for warning in safe_list(safe_get(data, "riskWarnings")):
        st.warning(str(warning))

auto_refresh(refresh_interval(settings.whale_refresh_s), key="opportunities_refresh")
