from __future__ import annotations

import streamlit as st

from mariposa_app.ui.actions import notify_error, notify_success, run_action
from mariposa_app.ui.backend_client import get_backend
from mariposa_app.ui.components import HOME_PAGE, render_sidebar
from mariposa_app.ui.state import ensure_keys, is_authenticated, store_login
from mariposa_app.utils.formatting import format_timedelta, safe_get
from mariposa_app.utils.ui import navigation_link, safe_set_page_config

safe_set_page_config(page_title="Login", page_icon="🔐", layout="centered")
ensure_keys()
render_sidebar()

st.title("🔐 Sign in")

if is_authenticated():
    st.success("You are signed in.")
    navigation_link(HOME_PAGE, label="Open dashboard", icon="🦋", key="login_home_link")
    st.stop()

backend = get_backend()
state = st.session_state

if not state.get("login_user_id"):
    with st.form("login_request_otp"):
        email = st.text_input("Email", value=state.get("login_email", ""), placeholder="you@example.com")
        submitted = st.form_submit_button("Send code", use_container_width=True)
    if submitted:
        email = email.strip()
        if not email or "@" not in email:
            notify_error("Please enter a valid email address")
        else:
            response = run_action(
                lambda: backend.request_otp(email),
                error_message="Could not send the verification code",
            )
            user_id = None
            if response is not None:
                user_id = response.userId or safe_get(response.data, "userId")
            if response is not None and response.success and user_id:
                state["login_email"] = email
                state["login_user_id"] = str(user_id)
                notify_success(response.message or "Verification code sent")
                st.rerun()
            elif response is not None:
                notify_error(response.error or response.message or "Could not send the verification code")
    st.stop()

user_id = state["login_user_id"]
st.caption(f"A 6-digit code was sent to **{state.get('login_email')}**.")

status = run_action(lambda: backend.otp_status(user_id), description="otp_status")
if status is not None and status.success:
    remaining = safe_get(status.data, "remainingTime")
    attempts = safe_get(status.data, "attemptsRemaining")
    if remaining is not None:
        st.caption(f"Code expires in {format_timedelta(remaining)}" + (f" · {attempts} attempts left" if attempts is not None else ""))

with st.form("login_verify_otp"):
    code = st.text_input("Verification code", max_chars=6)
    verified = st.form_submit_button("Verify", use_container_width=True)

if verified:
    code = code.strip()
    if len(code) != 6 or not code.isdigit():
        notify_error("Enter the 6-digit code")
    else:
        response = run_action(lambda: backend.verify_otp(user_id, code), error_message="Verification failed")
        token = safe_get(response.data, "token") if response is not None else None
        if response is not None and response.success and token:
            email = safe_get(response.data, "user.email", state.get("login_email"))
            store_login(str(token), email=email, user_id=user_id)
            state.pop("login_user_id", None)
            notify_success("Signed in")
            st.switch_page(HOME_PAGE)
        elif response is not None:
            notify_error(response.error or response.message or "Invalid verification code")

cols = st.columns(2)
if cols[0].button("Resend code", use_container_width=True):
    run_action(
        lambda: backend.resend_otp(user_id),
        success_message="A new code is on its way",
        error_message="Could not resend the code",
    )
if cols[1].button("Use another email", use_container_width=True):
    state.pop("login_user_id", None)
    st.rerun()
