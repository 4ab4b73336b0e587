from __future__ import annotations

import streamlit as st

from mariposa_app.ui.actions import notify_error
from mariposa_app.ui.backend_client import call_backend, get_backend, perform_action
from mariposa_app.ui.components import positions_table, render_auth_gate, render_sidebar, status_bar
from mariposa_app.ui.state import (
    cached_bridge_ping,
    cached_mt4_status,
    cached_ws_snapshot,
    ensure_keys,
    refresh_interval,
    token_scope,
)
from mariposa_app.utils.backend_api import mt4_credentials_payload
from mariposa_app.utils.envs import get_settings
from mariposa_app.utils.error_handling import error_boundary
from mariposa_app.utils.formatting import format_money, format_percent, safe_get
from mariposa_app.utils.models import MT4AccountInfo, MT4BridgeStatus, MT4Position, parse_list, parse_one
from mariposa_app.utils.ui import auto_refresh, build_status_card, safe_set_page_config

safe_set_page_config(page_title="MT4 bridge", page_icon="🌉", layout="wide")
ensure_keys()
render_sidebar()
render_auth_gate()

settings = get_settings()
scope = token_scope()
backend = get_backend()

st.title("🌉 MT4 bridge")

ping = cached_bridge_ping(settings.bridge_url)
status = parse_one(
    MT4BridgeStatus,
    call_backend(
        lambda: cached_mt4_status(scope),
        fallback=dict,
        error_message="Failed to load MT4 status",
        notify=False,
    ),
)
status_bar(backend_ok=status is not None, ws_snapshot=cached_ws_snapshot(), bridge=ping)

connected = bool(status and status.connected)
st.markdown(
    build_status_card(
        "Broker connection",
        (status.message or "Bridge reachable through the backend") if connected
        else (status.error if status and status.error else "Not connected. Configure credentials below."),
        icon="🟢" if connected else "🔴",
        tone="success" if connected else "danger",
    ),
    unsafe_allow_html=True,
)

if st.button("🔌 Test connection"):
    perform_action(
        backend.mt4_test_connection,
        success_message="MT4 bridge connection OK",
        error_message="MT4 connection test failed",
    )

if connected:
    with error_boundary("mt4_account", title="Account info unavailable"):
        account = parse_one(
            MT4AccountInfo,
            call_backend(backend.mt4_account, fallback=dict, error_message="Failed to load account info"),
        )
        if account is not None:
            cols = st.columns(5)
            cols[0].metric("Balance", format_money(account.balance))
            cols[1].metric("Equity", format_money(account.equity))
            cols[2].metric("Free margin", format_money(account.freeMargin))
            cols[3].metric("Margin level", format_percent(account.marginLevel, precision=0))
            cols[4].metric("Profit", format_money(account.profit))
            st.caption(
                f"Account {account.account or '—'} · {account.currency or 'USD'} · leverage 1:{account.leverage or '—'}"
            )

    st.subheader("Open positions")
    with error_boundary("mt4_positions", title="Positions unavailable"):
        payload = call_backend(backend.mt4_positions, fallback=list, error_message="Failed to load positions")
        positions_table(parse_list(MT4Position, safe_get(payload, "positions", payload)))

    with st.expander("💱 Quotes"):
        symbols = call_backend(backend.mt4_symbols, fallback=list, error_message="Failed to load MT4 symbols")
        symbols = safe_get(symbols, "symbols", symbols) or []
        if symbols:
            quote_symbol = st.selectbox("Symbol", [str(item) for item in symbols], key="mt4_quote_symbol")
            quote = call_backend(
                lambda: backend.mt4_price(quote_symbol),
                fallback=dict,
                error_message=f"Failed to load {quote_symbol} price",
            )
            cols = st.columns(2)
            cols[0].metric("Bid", safe_get(quote, "bid", "—"))
            cols[1].metric("Ask", safe_get(quote, "ask", "—"))
        else:
            st.caption("The bridge reported no symbols.")

with st.expander("⚙️ Credentials", expanded=not connected):
    with st.form("mt4_configure"):
        server_url = st.text_input("Bridge server URL", value=settings.bridge_url)
        account_number = st.text_input("Account number")
        password = st.text_input("Password", type="password")
        broker_name = st.text_input("Broker name")
        save = st.form_submit_button("Save credentials", use_container_width=True)
    if save:
        try:
            credentials = mt4_credentials_payload(server_url, account_number, password, broker_name)
        except ValueError as exc:
            notify_error(str(exc))
        else:
            perform_action(
                lambda: backend.mt4_configure(credentials),
                success_message="MT4 credentials saved",
                error_message="Failed to save MT4 credentials",
            )
    if st.button("Remove stored credentials", key="mt4_delete_credentials"):
        perform_action(
            backend.mt4_delete_credentials,
            success_message="MT4 credentials removed",
            error_message="Failed to remove MT4 credentials",
        )

auto_refresh(refresh_interval(settings.bridge_refresh_s), key="mt4_refresh")
