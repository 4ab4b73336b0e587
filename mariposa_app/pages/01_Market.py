from __future__ import annotations

import streamlit as st

from mariposa_app.ui.backend_client import call_backend, get_backend, perform_action
from mariposa_app.ui.components import (
    GRID_SORT_OPTIONS,
    analysis_card,
    market_metrics,
    price_chart,
    render_auth_gate,
    render_sidebar,
    token_grid_rows,
    token_grid_table,
)
from mariposa_app.ui.state import (
    cached_analysis,
    cached_bulk_analysis,
    cached_chart_data,
    cached_market_data,
    cached_symbols,
    current_token,
    ensure_keys,
    refresh_interval,
    token_scope,
)
from mariposa_app.utils.background import ensure_live_feed, get_live_client
from mariposa_app.utils.envs import get_settings
from mariposa_app.utils.error_handling import error_boundary
from mariposa_app.utils.formatting import format_ratio_percent, safe_get, safe_list
from mariposa_app.utils.mock_data import generate_chart_klines, generate_market_data
from mariposa_app.utils.models import Analysis, MarketData, parse_list, parse_one
from mariposa_app.utils.ohlcv import klines_to_frame
from mariposa_app.utils.realtime_cache import overlay_live_ticker
from mariposa_app.utils.recommendations import split_symbols
from mariposa_app.utils.ui import auto_refresh, safe_set_page_config

TIMEFRAMES = ("1m", "5m", "15m", "1h", "4h", "1d")

safe_set_page_config(page_title="Market", page_icon="📈", layout="wide")
ensure_keys()
render_sidebar()
render_auth_gate()

settings = get_settings()
scope = token_scope()
backend = get_backend()
ensure_live_feed(current_token())
state = st.session_state

st.title("📈 Market")

symbols_payload = call_backend(
    lambda: cached_symbols(scope),
    fallback=list,
    error_message="Failed to load symbols",
    notify=False,
)
symbols, priority = split_symbols(symbols_payload)
if state["selected_symbol"] not in symbols:
    symbols = [state["selected_symbol"], *symbols]

cols = st.columns([2, 1, 1])
symbol = cols[0].selectbox("Symbol", symbols, index=symbols.index(state["selected_symbol"]))
timeframe = cols[1].selectbox("Timeframe", TIMEFRAMES, index=TIMEFRAMES.index(state["chart_timeframe"]))
cols[2].write("")
if cols[2].button("🧠 Trigger analysis", use_container_width=True):
    perform_action(
        lambda: backend.trigger_analysis(symbol),
        success_message=f"Analysis for {symbol} queued",
        error_message="Failed to trigger analysis",
    )
state["selected_symbol"] = symbol
state["chart_timeframe"] = timeframe

client = get_live_client()
if client is not None:
    client.subscribe_market([symbol])

with error_boundary("market_data", title="Market data unavailable"):
    payload = call_backend(
        lambda: cached_market_data(scope, symbol),
        fallback=dict,
        error_message=f"Failed to load market data for {symbol}",
        mock=lambda: generate_market_data(symbol),
    )
    payload, live = overlay_live_ticker(payload, symbol)
    market_metrics(parse_one(MarketData, payload))
    if live:
        st.caption("Live price from the push feed")

with error_boundary("market_chart", title="Chart unavailable"):
    chart_payload = call_backend(
        lambda: cached_chart_data(scope, symbol, timeframe),
        fallback=dict,
        error_message="Failed to load chart data",
        mock=lambda: {"klines": generate_chart_klines(symbol, timeframe)},
    )
    klines = safe_get(chart_payload, "klines", chart_payload if isinstance(chart_payload, list) else [])
    price_chart(klines_to_frame(klines), title=f"{symbol} · {timeframe}")

tabs = st.tabs(["Latest analyses", "Multi-timeframe", "Real-time consensus", "Token grid"])

with tabs[0]:
    with error_boundary("market_analyses", title="Analyses unavailable"):
        analyses = parse_list(
            Analysis,
            call_backend(
                lambda: cached_analysis(scope, symbol, state["analysis_limit"]),
                fallback=list,
                error_message="Failed to load analyses",
            ),
        )
        if not analyses:
            st.info("No analyses for this symbol yet.")
        for analysis in analyses:
            analysis_card(analysis)

with tabs[1]:
    selected = st.multiselect("Timeframes", TIMEFRAMES, default=["15m", "1h", "4h"])
    if st.button("Run multi-timeframe analysis", disabled=not selected):
        with error_boundary("market_multi_timeframe", title="Multi-timeframe analysis failed"), st.spinner("Analysing…"):
            data = call_backend(
                lambda: backend.get_multi_timeframe_analysis(symbol, selected),
                fallback=dict,
                error_message="Multi-timeframe analysis failed",
            )
            for frame_name, result in (safe_get(data, "timeframes", {}) or {}).items():
                st.markdown(f"**{frame_name}**")
                analysis_card(parse_one(Analysis, {"symbol": symbol, **(result or {})}))
            consensus = safe_get(data, "consensus")
            if consensus:
                st.markdown("**Overall consensus**")
                analysis_card(parse_one(Analysis, {"symbol": symbol, **consensus}))

with tabs[2]:
    if st.button("Run real-time analysis"):
        with error_boundary("market_real_time", title="Real-time analysis failed"), st.spinner("Asking the models…"):
            data = call_backend(
                lambda: backend.get_real_time_analysis(symbol),
                fallback=dict,
                error_message="Real-time analysis failed",
            )
            consensus = safe_get(data, "consensus")
            if consensus:
                analysis_card(parse_one(Analysis, {"symbol": symbol, **consensus}))
            for model in safe_list(safe_get(data, "models")):
                st.caption(f"{safe_get(model, 'model', 'model')}: {safe_get(model, 'recommendation', 'N/A')} ({format_ratio_percent(safe_get(model, 'confidence'))})")
            for warning in safe_list(safe_get(data, "riskWarnings")):
                st.warning(str(warning))

with tabs[3]:
    cols = st.columns([2, 1, 1, 1])
    sort_by = cols[0].selectbox(
        "Sort by", list(GRID_SORT_OPTIONS), format_func=GRID_SORT_OPTIONS.get, key="grid_sort_by"
    )
    grid_filter = cols[1].selectbox("Signal", ["all", "BUY", "SELL", "HOLD"], key="grid_recommendation")
    min_confidence = cols[2].slider("Min confidence %", 0, 100, 0, step=5, key="grid_min_confidence")
    cols[3].write("")
    if cols[3].button("Queue batch analysis", use_container_width=True):
        perform_action(
            lambda: backend.trigger_batch_analysis(priority),
            success_message=f"Batch analysis queued for {len(priority)} symbols",
            error_message="Failed to queue batch analysis",
        )
    rows: list = []
    if not st.toggle("Rank priority tokens", key="grid_enabled"):
        st.caption(f"Ranks {len(priority)} priority symbols with a bulk analysis; results are cached for five minutes.")
    else:
        with error_boundary("market_token_grid", title="Token grid unavailable"), st.spinner("Ranking tokens…"):
            grid = call_backend(
                lambda: cached_bulk_analysis(scope, tuple(priority), sort_by),
                fallback=dict,
                error_message="Failed to load token analysis",
            )
            rows = token_grid_rows(grid, recommendation=grid_filter, min_confidence=min_confidence)
            token_grid_table(rows)

    detail_symbol = st.selectbox("Token details", [row["symbol"] for row in rows if row["symbol"]] or [symbol])
    if st.button("Run deep analysis"):
        with error_boundary("market_deep_analysis", title="Deep analysis failed"), st.spinner("Analysing order book and candles…"):
            deep = call_backend(
                lambda: backend.get_deep_analysis(detail_symbol),
                fallback=dict,
                error_message="Deep analysis failed",
                notify=False,
            )
            if not deep:
                deep = safe_get(
                    call_backend(
                        lambda: cached_analysis(scope, detail_symbol, 1),
                        fallback=list,
                        error_message="Failed to load the latest analysis",
                    ),
                    "0",
                )
            if isinstance(deep, dict) and deep:
                analysis_card(parse_one(Analysis, {"symbol": detail_symbol, **deep}))
            else:
                st.info(f"No analysis available for {detail_symbol}.")

auto_refresh(refresh_interval(settings.dashboard_refresh_s), key="market_refresh")
