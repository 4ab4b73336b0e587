from __future__ import annotations

import streamlit as st

from mariposa_app.ui.backend_client import call_backend
from mariposa_app.ui.components import render_auth_gate, render_sidebar
from mariposa_app.ui.state import (
    cached_analysis,
    cached_immediate_signals,
    cached_market_data,
    cached_symbols,
    ensure_keys,
    refresh_interval,
    token_scope,
)
from mariposa_app.utils.envs import get_settings
from mariposa_app.utils.error_handling import error_boundary
from mariposa_app.utils.formatting import (
    format_datetime,
    format_percent,
    format_price,
    format_ratio_percent,
    safe_get,
    safe_list,
)
from mariposa_app.utils.mock_data import generate_market_data
from mariposa_app.utils.models import Analysis, MarketData, parse_list, parse_one
from mariposa_app.utils.recommendations import (
    MAX_RECOMMENDATIONS,
    confidence_tone,
    recommendation_tone,
    split_symbols,
    top_recommendations,
)
from mariposa_app.utils.ui import auto_refresh, build_pill, safe_set_page_config

safe_set_page_config(page_title="Recommendations", page_icon="🎯", layout="wide")
ensure_keys({"recommendations_auto_update": True})
render_sidebar()
render_auth_gate()

settings = get_settings()
scope = token_scope()

st.title("🎯 AI recommendations")

symbols_payload = call_backend(
    lambda: cached_symbols(scope),
    fallback=list,
    error_message="Failed to load symbols, using defaults",
)
all_symbols, priority = split_symbols(symbols_payload)
tracked = priority[:MAX_RECOMMENDATIONS]

controls = st.columns([3, 1])
controls[0].caption("Tracking " + ", ".join(tracked))
auto_update = controls[1].toggle(f"Auto update ({settings.recommendations_refresh_s}s)", key="recommendations_auto_update")

analyses: dict[str, Analysis] = {}
market: dict[str, MarketData] = {}
with st.spinner("Loading analyses…"):
    for symbol in tracked:
        latest = parse_list(
            Analysis,
            call_backend(
                lambda symbol=symbol: cached_analysis(scope, symbol, 1),
                fallback=list,
                error_message=f"Failed to load analysis for {symbol}",
                notify=False,
            ),
        )
        if latest:
            analyses[symbol] = latest[0]
        snapshot = parse_one(
            MarketData,
            call_backend(
                lambda symbol=symbol: cached_market_data(scope, symbol),
                fallback=dict,
                error_message=f"Failed to load market data for {symbol}",
                notify=False,
                mock=lambda symbol=symbol: generate_market_data(symbol),
            ),
        )
        if snapshot is not None:
            market[symbol] = snapshot

ranked = top_recommendations(tracked, analyses, market)

with error_boundary("recommendations_top", title="Recommendations unavailable"):
    if not ranked:
        st.info("No recommendations yet. Analyses appear here once the backend has scored the priority symbols.")
    for row_start in range(0, len(ranked), 3):
        cols = st.columns(3)
        for col, item in zip(cols, ranked[row_start : row_start + 3]):
            label = str(item.analysis.recommendation or "N/A").upper()
            with col.container(border=True):
                st.markdown(
                    f"### {item.symbol}\n"
                    + build_pill(label, tone=recommendation_tone(label))
                    + build_pill(
                        f"Confidence {format_ratio_percent(item.analysis.confidence)}",
                        tone=confidence_tone(item.analysis.confidence),
                    ),
                    unsafe_allow_html=True,
                )
                st.metric(
                    "Price",
                    format_price(item.market.price),
                    format_percent(item.market.change24h, signed=True) if item.market.change24h is not None else None,
                )
                if item.profit is not None:
                    tone = {"high": "success", "medium": "warning"}.get(item.profit.potential, "neutral")
                    st.markdown(
                        build_pill(f"{item.profit.potential.title()} potential", tone=tone)
                        + f" +{item.profit.profit_pct:.2f}% · risk {item.profit.risk_pct:.2f}%"
                        + f" · R:R {item.profit.risk_reward:.2f}",
                        unsafe_allow_html=True,
                    )
                st.caption(f"Target {format_price(item.analysis.targetPrice)} · Stop {format_price(item.analysis.stopLoss)}")
                if item.analysis.reasoning:
                    with st.expander("Reasoning"):
                        st.write(item.analysis.reasoning)

st.divider()
st.subheader("⚡ Immediate signals")
signal_symbol = st.selectbox("Symbol", all_symbols, index=0, key="recommendations_signal_symbol")
if st.button("Check signals", key="recommendations_check_signals"):
    with error_boundary("recommendations_signals", title="Signal check failed"), st.spinner("Asking the models…"):
        envelope = call_backend(
            lambda: cached_immediate_signals(scope, signal_symbol),
            fallback=dict,
            error_message="Failed to load immediate signals",
        )
        signals = safe_list(safe_get(envelope, "signals"))
        if not signals:
            st.info(f"No actionable signals for {signal_symbol} right now.")
        for signal in signals:
            kind = str(safe_get(signal, "type", ""))
            if kind == "RISK_WARNING":
                st.warning("Risk warning: " + "; ".join(str(w) for w in safe_list(safe_get(signal, "warnings"))))
                continue
            st.success(
                f"{kind.replace('_', ' ')} · confidence {format_ratio_percent(safe_get(signal, 'confidence'))} · "
                f"target {format_price(safe_get(signal, 'targetPrice'))} · stop {format_price(safe_get(signal, 'stopLoss'))}"
            )
            if safe_get(signal, "reasoning"):
                st.caption(str(safe_get(signal, "reasoning")))
        if envelope:
            st.caption(
                f"{safe_get(envelope, 'signalCount', 0)} signal(s)"
                + (" · immediate action" if safe_get(envelope, "hasImmediateAction") else "")
                + f" · checked {format_datetime(safe_get(envelope, 'timestamp'))}"
            )

auto_refresh(refresh_interval(settings.recommendations_refresh_s if auto_update else None), key="recommendations_refresh")
