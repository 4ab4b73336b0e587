from __future__ import annotations

import streamlit as st

from mariposa_app.ui.actions import notify_error, notify_success
from mariposa_app.ui.backend_client import get_backend, perform_action
from mariposa_app.ui.components import render_auth_gate, render_sidebar
from mariposa_app.ui.state import (
    THEMES,
    clear_data_caches,
    current_user_email,
    ensure_keys,
    get_theme,
    set_auto_refresh_cooldown,
    set_theme,
)
from mariposa_app.utils.envs import active_backend_url, active_ws_url, get_settings, update_settings
from mariposa_app.utils.log import log
from mariposa_app.utils.ui import safe_set_page_config

ENVIRONMENTS = ("production", "development")
REFRESH_FIELDS = (
    ("dashboard_refresh_s", "Dashboard"),
    ("recommendations_refresh_s", "Recommendations"),
    ("agents_refresh_s", "Agents"),
    ("var_refresh_s", "Intelligence"),
    ("correlation_refresh_s", "Correlation"),
    ("whale_refresh_s", "Whale activity"),
    ("bridge_refresh_s", "MT4 bridge"),
)

safe_set_page_config(page_title="Settings", page_icon="⚙️", layout="wide")
ensure_keys()
render_sidebar()
render_auth_gate()

settings = get_settings()
backend = get_backend()

st.title("⚙️ Settings")
st.caption(f"Active backend `{active_backend_url(settings)}` · live feed `{active_ws_url(settings)}`")

with st.form("settings_connection"):
    st.subheader("Connection")
    environment = st.selectbox(
        "Environment",
        ENVIRONMENTS,
        index=ENVIRONMENTS.index(settings.environment) if settings.environment in ENVIRONMENTS else 0,
    )
    cols = st.columns(2)
    backend_url = cols[0].text_input("Production backend URL", value=settings.backend_url)
    ws_url = cols[1].text_input("Production live feed URL", value=settings.ws_url)
    dev_backend_url = cols[0].text_input("Development backend URL", value=settings.dev_backend_url)
    dev_ws_url = cols[1].text_input("Development live feed URL", value=settings.dev_ws_url)
    public_api_url = cols[0].text_input("Public API URL", value=settings.public_api_url)
    bridge_url = cols[1].text_input("MT4 bridge URL", value=settings.bridge_url)
    verify_ssl = st.checkbox("Verify TLS certificates", value=settings.verify_ssl)
    mock_fallback = st.checkbox(
        "Show mock data when the backend is unreachable",
        value=settings.mock_fallback,
        help="Only meant for demos; mock values are clearly labelled.",
    )
    default_symbols = st.text_input("Default symbols", value=settings.default_symbols)

    st.subheader("Auto refresh (seconds, 0 disables)")
    refresh_cols = st.columns(4)
    refresh_values = {
        name: refresh_cols[index % 4].number_input(
            label, min_value=0, max_value=3600, step=5, value=int(getattr(settings, name))
        )
        for index, (name, label) in enumerate(REFRESH_FIELDS)
    }
    saved = st.form_submit_button("Save settings", type="primary")

if saved:
    try:
        update_settings(
            environment=environment,
            backend_url=backend_url.strip(),
            ws_url=ws_url.strip(),
            dev_backend_url=dev_backend_url.strip(),
            dev_ws_url=dev_ws_url.strip(),
            public_api_url=public_api_url.strip(),
            bridge_url=bridge_url.strip(),
            verify_ssl=verify_ssl,
            mock_fallback=mock_fallback,
            default_symbols=default_symbols,
            **refresh_values,
        )
    except ValueError as exc:
        log("settings.update.invalid", severity="warning", err=str(exc))
        notify_error(f"Settings not saved: {exc}")
    else:
        clear_data_caches()
        set_auto_refresh_cooldown("Settings changed recently", 10)
        notify_success("Settings saved")
        st.rerun()

st.subheader("Appearance")
theme = st.radio("Theme", THEMES, index=THEMES.index(get_theme()), horizontal=True, format_func=str.title)
if theme != get_theme():
    set_theme(theme)
    st.rerun()

st.subheader("OKX API keys")
with st.form("settings_okx", clear_on_submit=True):
    api_key = st.text_input("API key")
    secret_key = st.text_input("Secret key", type="password")
    passphrase = st.text_input("Passphrase", type="password")
    save_okx = st.form_submit_button("Save OKX keys")
if save_okx:
    if not (api_key and secret_key and passphrase):
        notify_error("All three OKX fields are required")
    else:
        perform_action(
            lambda: backend.update_okx_keys(api_key.strip(), secret_key.strip(), passphrase.strip()),
            success_message="OKX keys updated",
            error_message="Failed to update OKX keys",
        )

st.subheader("Email")
email = st.text_input("Send a test email to", value=current_user_email() or "")
if st.button("Send test email", disabled=not email):
    perform_action(
        lambda: backend.test_email(email.strip()),
        success_message=f"Test email sent to {email}",
        error_message="Failed to send test email",
        invalidate=False,
    )
