from __future__ import annotations

import streamlit as st

from mariposa_app.ui.actions import notify_error
from mariposa_app.ui.backend_client import get_backend, perform_action
from mariposa_app.ui.components import page_path, render_auth_gate, render_sidebar
from mariposa_app.ui.state import ensure_keys
from mariposa_app.utils.agents import (
    BROKERS,
    CATEGORY_INFO,
    DEFAULT_BUDGET,
    DEFAULT_RISK_LEVEL,
    MIN_BUDGET,
    RISK_LEVELS,
    auto_settings,
    budget_hint,
    build_agent_payload,
    validate_agent_form,
)
from mariposa_app.utils.formatting import format_money
from mariposa_app.utils.ui import build_pill, navigation_link, safe_set_page_config

safe_set_page_config(page_title="Create agent", page_icon="➕", layout="wide")
ensure_keys(
    {
        "agent_form_category": "SCALPING",
        "agent_form_risk": DEFAULT_RISK_LEVEL,
        "agent_form_budget": DEFAULT_BUDGET,
    }
)
render_sidebar()
render_auth_gate()

backend = get_backend()

st.title("➕ Create agent")
navigation_link(page_path("03_Agents.py"), label="Back to agents", icon="🤖", key="create_agent_back")

form_col, preview_col = st.columns([3, 2])

with form_col:
    name = st.text_input("Name", key="agent_form_name", placeholder="BTC scalper")
    category = st.selectbox(
        "Category",
        list(CATEGORY_INFO),
        format_func=lambda value: f"{CATEGORY_INFO[value].icon} {CATEGORY_INFO[value].label}",
        key="agent_form_category",
    )
    st.caption(CATEGORY_INFO[category].description)
    risk_level = st.select_slider(
        "Risk level",
        options=list(RISK_LEVELS),
        format_func=lambda value: f"{value} · {RISK_LEVELS[value].label}",
        key="agent_form_risk",
    )
    st.caption(RISK_LEVELS[risk_level].description)
    budget = st.number_input("Budget (USDT)", min_value=0.0, step=10.0, key="agent_form_budget")
    st.caption(budget_hint(budget))
    broker = st.selectbox("Broker", BROKERS, key="agent_form_broker")
    description = st.text_area("Description", key="agent_form_description", height=90)

with preview_col:
    st.subheader("Auto settings")
    settings = auto_settings(risk_level, budget, category)
    with st.container(border=True):
        cols = st.columns(2)
        cols[0].metric("Min LLM confidence", f"{settings.min_llm_confidence:.0%}")
        cols[1].metric("Max open positions", settings.max_open_positions)
        cols = st.columns(2)
        cols[0].metric("Position size", format_money(settings.position_size))
        cols[1].metric("Of budget", f"{settings.position_fraction:.0%}")
        st.markdown(
            "".join(build_pill(signal.replace("_", " ").title()) for signal in settings.allowed_signals),
            unsafe_allow_html=True,
        )
    if budget < MIN_BUDGET:
        st.warning(f"OKX needs at least {format_money(MIN_BUDGET)} to place trades.")

errors = validate_agent_form(name, budget)
if st.button("Create agent", type="primary", disabled=bool(errors)):
    try:
        payload = build_agent_payload(
            {
                "name": name,
                "category": category,
                "riskLevel": risk_level,
                "budget": budget,
                "broker": broker,
                "description": description,
            }
        )
    except ValueError as exc:
        notify_error(str(exc))
    else:
        created = perform_action(
            lambda: backend.create_agent(payload),
            success_message=f"Agent {payload['name']} created",
            error_message="Failed to create agent",
        )
        if created is not None:
            for key in ("agent_form_name", "agent_form_description"):
                st.session_state.pop(key, None)
            st.switch_page(page_path("03_Agents.py"))
elif errors and name:
    for message in errors:
        st.caption(f"⚠️ {message}")
