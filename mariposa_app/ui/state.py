"""Session state helpers and cached data loaders for the UI layer."""
from __future__ import annotations

from collections.abc import Mapping, MutableMapping
import hashlib
import time
from typing import Any

import streamlit as st

from mariposa_app.utils import storage
from mariposa_app.utils.background import get_ws_snapshot, stop_live_feed
from mariposa_app.utils.backend_api import ping_bridge
from mariposa_app.utils.envs import get_settings
from mariposa_app.utils.log import log
from mariposa_app.utils.models import ApiResponse

from .backend_client import get_backend

BASE_SESSION_STATE: dict[str, Any] = {
    "selected_symbol": "BTCUSDT",
    "chart_timeframe": "1h",
    "analysis_limit": 10,
    "login_email": "",
    "login_user_id": None,
    "otp_requested_at": None,
    "agents_show_inactive": True,
    "var_confidence": 95,
    "var_horizon": 1,
    "var_portfolio_value": 100_000.0,
    "correlation_timeframe": "1h",
    "sizing_balance": 10_000.0,
    "sizing_risk_pct": 2.0,
    "sizing_stop_loss_pct": 2.0,
    "whale_min_size": 50_000.0,
    "opportunity_min_score": 70,
    "tester_api_key": "",
    "tester_language": "curl",
    "revealed_api_key": None,
    "logs_limit": 400,
    "logs_query": "",
    "logs_level": "ALL",
}

_AUTO_REFRESH_HOLDS_KEY = "_auto_refresh_holds"
_COOLDOWN_UNTIL_KEY = "_auto_refresh_cooldown_until"
_COOLDOWN_REASON_KEY = "_auto_refresh_cooldown_reason"
THEMES = ("dark", "light")


def _as_mutable(state: Mapping[str, Any]) -> MutableMapping[str, Any] | None:
    if isinstance(state, MutableMapping):
        return state
    # ``st.session_state`` behaves like a mutable mapping without registering as one.
    for method_name in ("__setitem__", "__delitem__", "pop"):
        if not hasattr(state, method_name):
            return None
    return state  # type: ignore[return-value]


def ensure_keys(overrides: Mapping[str, Any] | None = None) -> None:
    """Populate ``st.session_state`` with default values for the dashboard."""

    defaults = dict(BASE_SESSION_STATE)
    defaults["ui_theme"] = get_theme()
    if overrides:
        for key, value in overrides.items():
            if value is None:
                continue
            defaults[key] = value

    state = st.session_state
    for key, value in defaults.items():
        if key not in state:
            state[key] = value


# auth -------------------------------------------------------------------


def current_token() -> str | None:
    token = st.session_state.get("token") or storage.get_item(storage.TOKEN_KEY)
    return token or None


def is_authenticated() -> bool:
    return bool(current_token())


def current_user_email() -> str | None:
    return st.session_state.get("user_email") or storage.get_item(storage.USER_EMAIL_KEY)


def store_login(token: str, *, email: str | None = None, user_id: str | None = None) -> None:
    """Remember a verified session both in memory and in local storage."""

    state = st.session_state
    state["token"] = token
    storage.set_item(storage.TOKEN_KEY, token)
    if email:
        state["user_email"] = email
        storage.set_item(storage.USER_EMAIL_KEY, email)
    if user_id:
        state["user_id"] = user_id
        storage.set_item(storage.USER_ID_KEY, user_id)
    log("auth.login", email=email)


def logout() -> None:
    storage.clear_auth()
    state = st.session_state
    for key in ("token", "user_email", "user_id", "login_user_id", "otp_requested_at", "revealed_api_key"):
        state.pop(key, None)
    stop_live_feed()
    clear_data_caches()
    log("auth.logout")


def token_scope(token: str | None = None) -> str:
    """Short digest of the token so cached reads are never shared across users."""

    value = token if token is not None else current_token()
    if not value:
        return "anonymous"
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:16]


# theme ------------------------------------------------------------------


def get_theme() -> str:
    stored = storage.get_item(storage.THEME_KEY)
    if stored in THEMES:
        return stored
    configured = str(get_settings().ui_theme).lower()
    return configured if configured in THEMES else "dark"


def set_theme(theme: str) -> str:
    theme = theme if theme in THEMES else "dark"
    storage.set_item(storage.THEME_KEY, theme)
    st.session_state["ui_theme"] = theme
    return theme


def toggle_theme() -> str:
    return set_theme("light" if get_theme() == "dark" else "dark")


# auto refresh -----------------------------------------------------------


def is_refresh_paused() -> bool:
    return bool(storage.get_json(storage.REFRESH_PAUSED_KEY, False))


def set_refresh_paused(paused: bool) -> None:
    storage.set_json(storage.REFRESH_PAUSED_KEY, bool(paused))


def set_auto_refresh_hold(key: str, reason: str | None) -> None:
    """Register a reason to temporarily pause automatic refreshes."""

    state = st.session_state
    reason_text = str(reason or "").strip() or "Auto refresh paused"
    holds = dict(state.get(_AUTO_REFRESH_HOLDS_KEY, {}))
    holds[key] = reason_text
    state[_AUTO_REFRESH_HOLDS_KEY] = holds


def clear_auto_refresh_hold(key: str) -> None:
    state = st.session_state
    holds = dict(state.get(_AUTO_REFRESH_HOLDS_KEY, {}))
    if key in holds:
        holds.pop(key)
        if holds:
            state[_AUTO_REFRESH_HOLDS_KEY] = holds
        else:
            state.pop(_AUTO_REFRESH_HOLDS_KEY, None)


def set_auto_refresh_cooldown(reason: str, duration_seconds: float) -> None:
    """Pause auto refresh for ``duration_seconds`` after an interaction."""

    seconds = max(float(duration_seconds or 0.0), 0.0)
    if seconds <= 0:
        clear_auto_refresh_cooldown()
        return
    state = st.session_state
    state[_COOLDOWN_UNTIL_KEY] = time.time() + seconds
    state[_COOLDOWN_REASON_KEY] = str(reason or "Settings changed recently")


def clear_auto_refresh_cooldown() -> None:
    state = st.session_state
    state.pop(_COOLDOWN_UNTIL_KEY, None)
    state.pop(_COOLDOWN_REASON_KEY, None)


def get_auto_refresh_cooldown(state: Mapping[str, Any] | None = None) -> tuple[str, float] | None:
    """Return the active cooldown reason and remaining seconds, if any."""

    if state is None:
        state = st.session_state

    try:
        expires_at = float(state.get(_COOLDOWN_UNTIL_KEY))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        expires_at = 0.0

    remaining = expires_at - time.time()
    if remaining <= 0:
        mutable = _as_mutable(state)
        if mutable is not None:
            mutable.pop(_COOLDOWN_UNTIL_KEY, None)
            mutable.pop(_COOLDOWN_REASON_KEY, None)
        return None

    reason = state.get(_COOLDOWN_REASON_KEY, "Settings changed recently")
    return str(reason), remaining


def get_auto_refresh_holds(state: Mapping[str, Any] | None = None) -> list[str]:
    """Return the list of active auto-refresh pause reasons."""

    if state is None:
        state = st.session_state
    holds = state.get(_AUTO_REFRESH_HOLDS_KEY, {})
    messages: list[str] = []
    if isinstance(holds, Mapping):
        for reason in holds.values():
            text = str(reason).strip()
            if text:
                messages.append(text)

    cooldown = get_auto_refresh_cooldown(state)
    if cooldown is not None:
        reason, remaining = cooldown
        messages.append(f"{reason} ({int(remaining):d}s left)" if remaining >= 1 else reason)
    return messages


def refresh_interval(seconds: float | None, state: Mapping[str, Any] | None = None) -> float | None:
    """Interval to pass to ``auto_refresh``; ``None`` while paused or held."""

    if not seconds or seconds <= 0:
        return None
    if is_refresh_paused() or get_auto_refresh_holds(state):
        return None
    return float(seconds)


# cached loaders ---------------------------------------------------------
# ``scope`` only partitions the cache per signed-in user.


@st.cache_data(ttl=15.0, show_spinner=False)
def cached_agents(scope: str) -> ApiResponse:
    return get_backend().get_agents()


@st.cache_data(ttl=15.0, show_spinner=False)
def cached_agent_trades(scope: str, agent_id: str, page: int = 1, limit: int = 50) -> ApiResponse:
    return get_backend().get_agent_trades(agent_id, page=page, limit=limit)


@st.cache_data(ttl=30.0, show_spinner=False)
def cached_balance(scope: str) -> ApiResponse:
    return get_backend().get_balance()


@st.cache_data(ttl=10.0, show_spinner=False)
def cached_market_data(scope: str, symbol: str) -> ApiResponse:
    return get_backend().get_market_data(symbol)


@st.cache_data(ttl=30.0, show_spinner=False)
def cached_analysis(scope: str, symbol: str, limit: int = 10) -> ApiResponse:
    return get_backend().get_analysis(symbol, limit=limit)


@st.cache_data(ttl=30.0, show_spinner=False)
def cached_real_time_analysis(scope: str, symbol: str) -> ApiResponse:
    return get_backend().get_real_time_analysis(symbol)


@st.cache_data(ttl=60.0, show_spinner=False)
def cached_chart_data(scope: str, symbol: str, timeframe: str = "1h", limit: int = 200) -> ApiResponse:
    return get_backend().get_chart_data(symbol, timeframe, limit=limit)


@st.cache_data(ttl=600.0, show_spinner=False)
def cached_symbols(scope: str) -> ApiResponse:
    return get_backend().get_symbols()


@st.cache_data(ttl=300.0, show_spinner=False)
def cached_bulk_analysis(
    scope: str, symbols: tuple[str, ...], sort_by: str = "profitPotential", limit: int = 18
) -> ApiResponse:
    return get_backend().get_bulk_token_analysis(symbols, sort_by=sort_by, limit=limit)


@st.cache_data(ttl=15.0, show_spinner=False)
def cached_immediate_signals(scope: str, symbol: str) -> ApiResponse:
    return get_backend().get_immediate_trading_signals(symbol)


@st.cache_data(ttl=30.0, show_spinner=False)
def cached_confluence(scope: str, symbol: str) -> ApiResponse:
    return get_backend().get_confluence_score(symbol)


@st.cache_data(ttl=30.0, show_spinner=False)
def cached_opportunities(scope: str, symbols: tuple[str, ...], min_score: float = 70) -> ApiResponse:
    return get_backend().get_opportunities(symbols, min_score=min_score)


@st.cache_data(ttl=30.0, show_spinner=False)
def cached_whale_activity(scope: str, symbols: tuple[str, ...], min_size: float = 50_000) -> ApiResponse:
    return get_backend().get_whale_activity(symbols, min_size=min_size)


@st.cache_data(ttl=30.0, show_spinner=False)
def cached_api_keys(scope: str) -> ApiResponse:
    return get_backend().list_api_keys()


@st.cache_data(ttl=20.0, show_spinner=False)
def cached_mt4_status(scope: str) -> ApiResponse:
    return get_backend().mt4_status()


@st.cache_data(ttl=20.0, show_spinner=False)
def cached_bridge_ping(bridge_url: str) -> dict[str, Any]:
    return ping_bridge(bridge_url)


@st.cache_data(ttl=5.0, show_spinner=False)
def cached_ws_snapshot() -> dict[str, Any]:
    return dict(get_ws_snapshot())


_CACHED_LOADERS = (
    cached_agents,
    cached_agent_trades,
    cached_balance,
    cached_market_data,
    cached_analysis,
    cached_real_time_analysis,
    cached_chart_data,
    cached_symbols,
    cached_bulk_analysis,
    cached_immediate_signals,
    cached_confluence,
    cached_opportunities,
    cached_whale_activity,
    cached_api_keys,
    cached_mt4_status,
    cached_bridge_ping,
    cached_ws_snapshot,
)


def clear_data_caches() -> None:
    """Invalidate cached data loaders so the next rerun refreshes state."""

    for loader in _CACHED_LOADERS:
        loader.clear()  # type: ignore[attr-defined]
