from __future__ import annotations

import pandas as pd
import streamlit as st

from mariposa_app.ui.actions import notify_error
from mariposa_app.ui.backend_client import call_backend, get_backend, perform_action
from mariposa_app.ui.components import api_keys_table, render_auth_gate, render_sidebar, tier_pill
from mariposa_app.ui.state import (
    cached_api_keys,
    clear_auto_refresh_hold,
    ensure_keys,
    set_auto_refresh_hold,
    token_scope,
)
from mariposa_app.utils.api_keys import API_TIERS, UNLIMITED, build_generate_payload, mask_key
from mariposa_app.utils.error_handling import error_boundary
from mariposa_app.utils.formatting import format_ratio_percent, safe_get, safe_list
from mariposa_app.utils.models import ApiKey, parse_list
from mariposa_app.utils.ui import copy_to_clipboard, safe_set_page_config

safe_set_page_config(page_title="API keys", page_icon="🔑", layout="wide")
ensure_keys()
render_sidebar()
render_auth_gate()

scope = token_scope()
backend = get_backend()
state = st.session_state

st.title("🔑 API keys")

revealed = state.get("revealed_api_key")
if revealed:
    with st.container(border=True):
        st.warning("Copy this key now. It will not be shown again.")
        copy_to_clipboard(revealed, label="New API key")
        if st.button("I have saved it", key="api_keys_dismiss_reveal"):
            state["revealed_api_key"] = None
            clear_auto_refresh_hold("api_keys_reveal")
            st.rerun()


def _reveal(response) -> None:
    key = safe_get(response.data, "apiKey")
    if key:
        state["revealed_api_key"] = str(key)
        set_auto_refresh_hold("api_keys_reveal", "A new API key is on screen")


keys = parse_list(
    ApiKey,
    call_backend(lambda: cached_api_keys(scope), fallback=list, error_message="Failed to load API keys"),
)

with error_boundary("api_keys_table", title="API keys unavailable"):
    api_keys_table(keys)

with st.expander("➕ Generate a new key", expanded=not keys):
    with st.form("api_keys_generate", clear_on_submit=False):
        name = st.text_input("Name", placeholder="Trading bot")
        tier = st.selectbox("Tier", list(API_TIERS), format_func=lambda value: API_TIERS[value].name)
        expires = st.number_input("Expires in days (0 = never)", min_value=0, step=30, value=0)
        allowed_ips = st.text_input("Allowed IPs", placeholder="1.2.3.4, 5.6.7.8")
        submitted = st.form_submit_button("Generate", use_container_width=True)
    if submitted:
        try:
            payload = build_generate_payload(name, tier, expires, allowed_ips)
        except ValueError as exc:
            notify_error(str(exc))
        else:
            response = perform_action(
                lambda: backend.generate_api_key(payload),
                success_message="API key generated",
                error_message="Failed to generate API key",
            )
            if response is not None:
                _reveal(response)
                st.rerun()

with st.expander("Tier limits"):
    for tier_key, tier in API_TIERS.items():
        per_day = "unlimited" if tier.requests_per_day == UNLIMITED else f"{tier.requests_per_day:,}/day"
        st.markdown(
            tier_pill(tier_key) + f" {per_day} · {tier.requests_per_minute}/min",
            unsafe_allow_html=True,
        )
        st.caption(", ".join(tier.features))

active = [key for key in keys if key.isActive and key.id]
if not active:
    st.stop()

st.divider()
labels = {key.id: f"{key.name or 'key'} ({mask_key(key.keyPrefix or '')})" for key in active}
selected_id = st.selectbox("Manage key", list(labels), format_func=labels.get, key="api_keys_selected")
selected = next(key for key in active if key.id == selected_id)

cols = st.columns(3)
if cols[0].button("🔄 Rotate", key=f"api_key_rotate_{selected_id}", use_container_width=True):
    response = perform_action(
        lambda: backend.rotate_api_key(selected_id),
        success_message="API key rotated. The old key no longer works.",
        error_message="Failed to rotate API key",
    )
    if response is not None:
        _reveal(response)
        st.rerun()

confirm_key = f"api_key_confirm_revoke_{selected_id}"
if cols[1].button("🚫 Revoke", key=f"api_key_revoke_{selected_id}", use_container_width=True):
    state[confirm_key] = True
if state.get(confirm_key):
    st.warning(f"Revoke {selected.name}? This cannot be undone.")
    confirm = st.columns(2)
    if confirm[0].button("Yes, revoke", key=f"api_key_revoke_yes_{selected_id}", type="primary"):
        state.pop(confirm_key, None)
        if perform_action(
            lambda: backend.revoke_api_key(selected_id),
            success_message="API key revoked",
            error_message="Failed to revoke API key",
        ):
            st.rerun()
    if confirm[1].button("Cancel", key=f"api_key_revoke_no_{selected_id}"):
        state.pop(confirm_key, None)
        st.rerun()

show_usage = cols[2].toggle("Show usage", key=f"api_key_usage_{selected_id}")
if show_usage:
    with error_boundary("api_key_usage", title="Usage unavailable"):
        usage = call_backend(
            lambda: backend.get_api_key_usage(selected_id),
            fallback=dict,
            error_message="Failed to load usage",
        )
        metrics = st.columns(4)
        remaining = safe_get(usage, "remaining")
        metrics[0].metric("Requests today", safe_get(usage, "requestsToday", 0))
        metrics[1].metric("This month", safe_get(usage, "requestsThisMonth", 0))
        metrics[2].metric("Quota used", format_ratio_percent(safe_get(usage, "quotaUsage")))
        metrics[3].metric("Remaining", "unlimited" if remaining == UNLIMITED else remaining)
        st.caption(
            f"Error rate {safe_get(usage, 'errorRate', 0)}% · avg response {safe_get(usage, 'avgResponseTime', 0)} ms"
        )
        top = safe_list(safe_get(usage, "topEndpoints"))
        if top:
            st.dataframe(pd.DataFrame(top), use_container_width=True, hide_index=True)
