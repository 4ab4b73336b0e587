from __future__ import annotations

import streamlit as st

from mariposa_app.ui.backend_client import call_backend
from mariposa_app.ui.components import (
    correlation_heatmap,
    position_sizing_panel,
    render_auth_gate,
    render_sidebar,
    var_panel,
)
from mariposa_app.ui.state import (
    cached_chart_data,
    cached_market_data,
    cached_real_time_analysis,
    ensure_keys,
    refresh_interval,
    token_scope,
)
from mariposa_app.utils.envs import default_symbols, get_settings
from mariposa_app.utils.error_handling import error_boundary
from mariposa_app.utils.formatting import safe_get
from mariposa_app.utils.mock_data import generate_chart_klines, generate_market_data
from mariposa_app.utils.models import MarketData, parse_one
from mariposa_app.utils.ohlcv import align_returns, close_prices, simple_returns
from mariposa_app.utils.risk.correlation import correlation_analysis
from mariposa_app.utils.risk.sizing import SIZING_CANDLES, SIZING_TIMEFRAME, position_sizing, sizing_inputs
from mariposa_app.utils.risk.var import CONFIDENCE_LEVELS, TIME_HORIZONS, TRADING_DAYS, VAR_METHODS, var_analysis
from mariposa_app.utils.ui import auto_refresh, safe_set_page_config

CORRELATION_TIMEFRAMES = ("1h", "4h", "1d")

safe_set_page_config(page_title="Intelligence", page_icon="🧠", layout="wide")
ensure_keys()
render_sidebar()
render_auth_gate()

settings = get_settings()
scope = token_scope()
state = st.session_state

st.title("🧠 Trading intelligence")

symbols_available = default_symbols(settings)
portfolio = st.multiselect(
    "Portfolio symbols",
    symbols_available,
    default=symbols_available[:3],
    key="intelligence_symbols",
)


def load_klines(symbol: str, timeframe: str, limit: int = 200) -> list:
    payload = call_backend(
        lambda: cached_chart_data(scope, symbol, timeframe, limit),
        fallback=dict,
        error_message=f"Failed to load {symbol} candles",
        notify=False,
        mock=lambda: {"klines": generate_chart_klines(symbol, timeframe, limit)},
    )
    return safe_get(payload, "klines", payload if isinstance(payload, list) else [])


tabs = st.tabs(["Value at Risk", "Correlation", "Position sizing"])

with tabs[0]:
    cols = st.columns(4)
    confidence = cols[0].selectbox(
        "Confidence",
        CONFIDENCE_LEVELS,
        index=CONFIDENCE_LEVELS.index(state["var_confidence"]) if state["var_confidence"] in CONFIDENCE_LEVELS else 1,
        format_func=lambda value: f"{value:g}%",
    )
    horizon = cols[1].selectbox(
        "Horizon (days)",
        TIME_HORIZONS,
        index=TIME_HORIZONS.index(state["var_horizon"]) if state["var_horizon"] in TIME_HORIZONS else 0,
    )
    portfolio_value = cols[2].number_input(
        "Portfolio value ($)", min_value=100.0, step=1000.0, value=float(state["var_portfolio_value"])
    )
    method = cols[3].selectbox("Method", list(VAR_METHODS), format_func=lambda key: VAR_METHODS[key]["name"])
    state["var_confidence"] = confidence
    state["var_horizon"] = horizon
    state["var_portfolio_value"] = portfolio_value

    with error_boundary("intelligence_var", title="VaR calculation failed"):
        if not portfolio:
            st.info("Pick at least one symbol.")
        else:
            returns = align_returns(
                {symbol: simple_returns(close_prices(load_klines(symbol, "1d", TRADING_DAYS))) for symbol in portfolio}
            )
            returns = {symbol: series for symbol, series in returns.items() if series}
            if not returns:
                st.warning("Not enough price history to estimate VaR.")
            else:
                var_panel(
                    var_analysis(
                        returns,
                        confidence=confidence,
                        horizon_days=horizon,
                        portfolio_value=portfolio_value,
                    ),
                    method=method,
                )

with tabs[1]:
    timeframe = st.selectbox(
        "Timeframe",
        CORRELATION_TIMEFRAMES,
        index=CORRELATION_TIMEFRAMES.index(state["correlation_timeframe"])
        if state["correlation_timeframe"] in CORRELATION_TIMEFRAMES
        else 0,
    )
    state["correlation_timeframe"] = timeframe
    with error_boundary("intelligence_correlation", title="Correlation analysis failed"):
        if len(portfolio) < 2:
            st.info("Pick at least two symbols to compare.")
        else:
            prices = {symbol: close_prices(load_klines(symbol, timeframe)) for symbol in portfolio}
            correlation_heatmap(correlation_analysis(prices, timeframe))

with tabs[2]:
    cols = st.columns(4)
    sizing_symbol = cols[0].selectbox("Symbol", portfolio or symbols_available, key="sizing_symbol")
    balance = cols[1].number_input("Balance ($)", min_value=0.0, step=500.0, value=float(state["sizing_balance"]))
    risk_pct = cols[2].number_input(
        "Risk per trade %", min_value=0.1, max_value=100.0, step=0.5, value=float(state["sizing_risk_pct"])
    )
    stop_loss_pct = cols[3].number_input(
        "Stop loss %", min_value=0.1, max_value=50.0, step=0.5, value=float(state["sizing_stop_loss_pct"])
    )
    state["sizing_balance"] = balance
    state["sizing_risk_pct"] = risk_pct
    state["sizing_stop_loss_pct"] = stop_loss_pct

    with error_boundary("intelligence_sizing", title="Position sizing failed"):
        market = parse_one(
            MarketData,
            call_backend(
                lambda: cached_market_data(scope, sizing_symbol),
                fallback=dict,
                error_message=f"Failed to load market data for {sizing_symbol}",
                notify=False,
                mock=lambda: generate_market_data(sizing_symbol),
            ),
        )
        confidence, volatility = sizing_inputs(
            call_backend(
                lambda: cached_real_time_analysis(scope, sizing_symbol),
                fallback=dict,
                error_message=f"Failed to load the real-time analysis for {sizing_symbol}",
                notify=False,
            )
        )
        position_sizing_panel(
            position_sizing(
                sizing_symbol,
                current_price=market.price if market is not None else None,
                klines=load_klines(sizing_symbol, SIZING_TIMEFRAME, SIZING_CANDLES),
                consensus_confidence=confidence,
                volatility=volatility,
                balance=balance,
                risk_pct=risk_pct,
                stop_loss_pct=stop_loss_pct,
            )
        )

auto_refresh(refresh_interval(settings.var_refresh_s), key="intelligence_refresh")
