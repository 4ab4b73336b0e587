from __future__ import annotations

import sys
from pathlib import Path

import streamlit as st

if __package__ in (None, ""):
    project_root = Path(__file__).resolve().parent.parent
    if str(project_root) not in sys.path:
        sys.path.insert(0, str(project_root))

from mariposa_app.ui.backend_client import call_backend
from mariposa_app.ui.components import (
    agents_table,
    market_metrics,
    page_path,
    metrics_strip,
    render_auth_gate,
    render_sidebar,
    status_bar,
)
from mariposa_app.ui.state import (
    cached_agents,
    cached_balance,
    cached_market_data,
    cached_ws_snapshot,
    current_token,
    ensure_keys,
    refresh_interval,
    token_scope,
)
from mariposa_app.utils.agents import agent_symbols, summarise_agents
from mariposa_app.utils.background import ensure_live_feed
from mariposa_app.utils.envs import default_symbols, get_settings
from mariposa_app.utils.error_handling import error_boundary
from mariposa_app.utils.formatting import safe_get
from mariposa_app.utils.mock_data import generate_market_data
from mariposa_app.utils.models import Agent, MarketData, parse_list, parse_one
from mariposa_app.utils.ui import auto_refresh, navigation_link, safe_set_page_config

safe_set_page_config(page_title="Mariposa", page_icon="🦋", layout="wide")
ensure_keys()
render_sidebar()
render_auth_gate()

settings = get_settings()
scope = token_scope()
ensure_live_feed(current_token())

st.title("🦋 Mariposa dashboard")

agents_payload = call_backend(
    lambda: cached_agents(scope),
    fallback=lambda: None,
    error_message="Failed to load agents",
)
backend_ok = agents_payload is not None
agents = parse_list(Agent, agents_payload or [])
balance_payload = call_backend(
    lambda: cached_balance(scope),
    fallback=dict,
    error_message="Failed to load balance",
    notify=False,
)
balance = safe_get(balance_payload, "total", safe_get(balance_payload, "USDT"))

status_bar(backend_ok=backend_ok, ws_snapshot=cached_ws_snapshot())

with error_boundary("home_summary", title="Summary unavailable"):
    metrics_strip(summarise_agents(agents), balance=balance)

left, right = st.columns([3, 2])
with left:
    st.subheader("🤖 Agents")
    with error_boundary("home_agents", title="Agents unavailable"):
        agents_table(agents, table_key="home_agents_table")
    navigation_link(page_path("03_Agents.py"), label="Manage agents", icon="🤖", key="home_agents_link")

with right:
    st.subheader("📈 Markets")
    symbols = agent_symbols(agents) or default_symbols(settings)[:4]
    for symbol in symbols:
        with error_boundary(f"home_market_{symbol}", title=f"{symbol} unavailable"):
            payload = call_backend(
                lambda symbol=symbol: cached_market_data(scope, symbol),
                fallback=dict,
                error_message=f"Failed to load {symbol}",
                notify=False,
                mock=lambda symbol=symbol: generate_market_data(symbol),
            )
            st.markdown(f"**{symbol}**")
            market_metrics(parse_one(MarketData, payload))

auto_refresh(refresh_interval(settings.dashboard_refresh_s), key="home_refresh")
