from __future__ import annotations

import streamlit as st

from mariposa_app.ui.backend_client import call_backend, get_backend, perform_action
from mariposa_app.ui.components import (
    agents_table,
    metrics_strip,
    page_path,
    render_auth_gate,
    render_sidebar,
    trades_table,
)
from mariposa_app.ui.state import (
    cached_agent_trades,
    cached_agents,
    clear_auto_refresh_hold,
    current_token,
    ensure_keys,
    refresh_interval,
    set_auto_refresh_hold,
    token_scope,
)
from mariposa_app.utils.agents import CATEGORY_INFO, RISK_LEVELS, summarise_agents
from mariposa_app.utils.background import ensure_live_feed, get_live_client
from mariposa_app.utils.envs import get_settings
from mariposa_app.utils.error_handling import error_boundary
from mariposa_app.utils.formatting import format_money, format_percent, format_price, safe_get
from mariposa_app.utils.models import Agent, Trade, parse_list
from mariposa_app.utils.realtime_cache import live_agent_activity
from mariposa_app.utils.ui import auto_refresh, navigation_link, safe_set_page_config

safe_set_page_config(page_title="Agents", page_icon="🤖", layout="wide")
ensure_keys()
render_sidebar()
render_auth_gate()

settings = get_settings()
scope = token_scope()
backend = get_backend()
ensure_live_feed(current_token())
state = st.session_state

header = st.columns([4, 1])
header[0].title("🤖 Trading agents")
with header[1]:
    st.write("")
    navigation_link(page_path("04_Create_Agent.py"), label="New agent", icon="➕", key="agents_create_link")

agents = parse_list(
    Agent,
    call_backend(lambda: cached_agents(scope), fallback=list, error_message="Failed to load agents"),
)

with error_boundary("agents_summary", title="Summary unavailable"):
    metrics_strip(summarise_agents(agents))

show_inactive = st.toggle("Show stopped agents", key="agents_show_inactive")
visible = [agent for agent in agents if show_inactive or agent.isActive]

with error_boundary("agents_table", title="Agents unavailable"):
    agents_table(visible)

if not visible:
    auto_refresh(refresh_interval(settings.agents_refresh_s), key="agents_refresh")
    st.stop()

st.divider()
labels = {agent.id: f"{agent.name} ({'active' if agent.isActive else 'stopped'})" for agent in visible if agent.id}
selected_id = st.selectbox("Agent", list(labels), format_func=labels.get, key="agents_selected")
agent = next((item for item in visible if item.id == selected_id), None)

if agent is not None:
    client = get_live_client()
    if client is not None:
        client.subscribe_agent(agent.id)

    with st.container(border=True):
        category = CATEGORY_INFO.get(str(agent.category or "").upper())
        risk = RISK_LEVELS.get(agent.riskLevel or 0)
        cols = st.columns(4)
        cols[0].metric("Budget", format_money(agent.budget))
        cols[1].metric("P&L", format_money(agent.performance.totalPnL))
        cols[2].metric("Win rate", format_percent(agent.performance.winRate, precision=1))
        cols[3].metric("Max drawdown", format_percent(agent.performance.maxDrawdown, precision=1))
        st.caption(
            " · ".join(
                part
                for part in (
                    f"{category.icon} {category.label}" if category else agent.category,
                    f"Risk {risk.value}: {risk.label}" if risk else None,
                    agent.broker,
                    f"Min LLM confidence {agent.minLLMConfidence:.0%}" if agent.minLLMConfidence else None,
                    f"Max {agent.maxOpenPositions} open positions" if agent.maxOpenPositions else None,
                )
                if part
            )
        )
        if agent.description:
            st.write(agent.description)

        live = live_agent_activity(agent.id)
        if "performance" in live:
            perf = live["performance"]
            st.caption(
                f"Live performance: P&L {format_money(safe_get(perf, 'totalPnL'))} · "
                f"win rate {format_percent(safe_get(perf, 'winRate'), precision=1)} · "
                f"{safe_get(perf, 'totalTrades', 0)} trades"
            )
        if "trade" in live:
            trade = live["trade"]
            st.caption(
                f"Live trade: {str(safe_get(trade, 'side', '')).upper()} {safe_get(trade, 'symbol', '')} "
                f"@ {format_price(safe_get(trade, 'price'))} ({safe_get(trade, 'status', 'new')})"
            )

        actions = st.columns(3)
        if agent.isActive:
            if actions[0].button("⏸ Stop", key=f"agent_stop_{agent.id}", use_container_width=True):
                if perform_action(
                    lambda: backend.stop_agent(agent.id),
                    success_message=f"{agent.name} stopped",
                    error_message="Failed to stop agent",
                ):
                    st.rerun()
        elif actions[0].button("▶️ Start", key=f"agent_start_{agent.id}", use_container_width=True):
            if perform_action(
                lambda: backend.start_agent(agent.id),
                success_message=f"{agent.name} started",
                error_message="Failed to start agent",
            ):
                st.rerun()

        confirm_key = f"agent_confirm_delete_{agent.id}"
        if actions[1].button("🗑 Delete", key=f"agent_delete_{agent.id}", use_container_width=True):
            state[confirm_key] = True
            set_auto_refresh_hold("agents_delete", "Confirm or cancel the pending delete")
        if state.get(confirm_key):
            st.warning(f"Delete {agent.name}? This cannot be undone.")
            confirm = st.columns(2)
            if confirm[0].button("Yes, delete", key=f"agent_delete_yes_{agent.id}", type="primary"):
                state.pop(confirm_key, None)
                clear_auto_refresh_hold("agents_delete")
                if perform_action(
                    lambda: backend.delete_agent(agent.id),
                    success_message=f"{agent.name} deleted",
                    error_message="Failed to delete agent",
                ):
                    st.rerun()
            if confirm[1].button("Cancel", key=f"agent_delete_no_{agent.id}"):
                state.pop(confirm_key, None)
                clear_auto_refresh_hold("agents_delete")
                st.rerun()

    st.subheader("Trades")
    with error_boundary("agent_trades", title="Trades unavailable"):
        payload = call_backend(
            lambda: cached_agent_trades(scope, agent.id),
            fallback=list,
            error_message="Failed to load trades",
        )
        trades_table(parse_list(Trade, safe_get(payload, "trades", payload)))

auto_refresh(refresh_interval(settings.agents_refresh_s), key="agents_refresh")
