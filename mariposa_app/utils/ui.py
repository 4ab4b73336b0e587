from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from html import escape
from importlib import import_module, util
from pathlib import Path
from textwrap import dedent
from typing import Any, Callable

import streamlit as st
from streamlit.errors import StreamlitAPIException


def _load_get_script_run_ctx() -> Callable[[], Any]:
    """Return ``get_script_run_ctx`` compatible with different Streamlit versions."""

    module_names = [
        "streamlit.runtime.scriptrunner.script_run_context",
        "streamlit.runtime.scriptrunner_utils.script_run_context",
    ]

    for module_name in module_names:
        if util.find_spec(module_name) is None:
            continue

        module = import_module(module_name)
        get_ctx = getattr(module, "get_script_run_ctx", None)
        if callable(get_ctx):
            return get_ctx

    def _missing_ctx() -> None:
        return None

    return _missing_ctx


get_script_run_ctx = _load_get_script_run_ctx()

TONE_CLASSES = ("success", "warning", "danger")

_PALETTES: dict[str, dict[str, str]] = {
    "dark": {
        "surface": "rgba(15, 23, 42, 0.55)",
        "border": "rgba(148, 163, 184, 0.25)",
        "muted": "rgba(226, 232, 240, 0.7)",
        "accent": "#a855f7",
    },
    "light": {
        "surface": "rgba(248, 250, 252, 0.9)",
        "border": "rgba(100, 116, 139, 0.25)",
        "muted": "rgba(30, 41, 59, 0.7)",
        "accent": "#7c3aed",
    },
}


def rerun() -> None:
    """Trigger a Streamlit rerun across supported versions."""

    for candidate in (getattr(st, "rerun", None), getattr(st, "experimental_rerun", None)):
        if callable(candidate):
            candidate()
            return


def auto_refresh(interval_seconds: float | None, *, key: str | None = None) -> None:
    """Reload the page every ``interval_seconds``; non-positive disables it."""

    if interval_seconds is None or interval_seconds <= 0:
        return

    refresh = getattr(st, "autorefresh", None)
    if callable(refresh):
        kwargs: dict[str, int | str] = {"interval": int(interval_seconds * 1000)}
        if key is not None:
            kwargs["key"] = key
        refresh(**kwargs)
        return

    html_key = key or f"auto_refresh_{int(interval_seconds * 1000)}"
    interval_ms = int(interval_seconds * 1000)
    script = f"""
    <script>
    const refreshKey = {json.dumps(html_key)};
    const intervalMs = {interval_ms};
    window._mariposaAutoRefresh = window._mariposaAutoRefresh || {{}};
    if (!window._mariposaAutoRefresh[refreshKey]) {{
        window._mariposaAutoRefresh[refreshKey] = setInterval(() => window.location.reload(), intervalMs);
    }}
    </script>
    """
    st.markdown(script, unsafe_allow_html=True)


def _normalise_query_params(params: Mapping[str, Iterable[str] | str]) -> dict[str, list[str]]:
    normalised: dict[str, list[str]] = {}
    for key, value in params.items():
        if isinstance(value, str):
            normalised[key] = [value]
        else:
            normalised[key] = [str(item) for item in value]
    return normalised


def get_query_params() -> dict[str, list[str]]:
    """Return query parameters regardless of the Streamlit version."""

    query_params = getattr(st, "query_params", None)
    if query_params is not None:
        try:
            items = dict(query_params)  # type: ignore[arg-type]
        except TypeError:
            items = getattr(query_params, "to_dict", lambda: {})()
        if isinstance(items, Mapping):
            return _normalise_query_params(items)
    return {}


def set_query_params(params: Mapping[str, Iterable[str] | str]) -> None:
    query_params = getattr(st, "query_params", None)
    if query_params is not None and hasattr(query_params, "from_dict"):
        query_params.from_dict(params)


def safe_set_page_config(**kwargs: Any) -> None:
    """Best-effort wrapper around :func:`st.set_page_config`.

    Streamlit raises if ``set_page_config`` runs twice in one script run,
    which happens when the navigation entry point and a page both call it.
    Duplicate calls are skipped quietly.
    """

    ctx = get_script_run_ctx()
    sentinel = "_mariposa_page_configured"
    if ctx is not None:
        already_configured = bool(getattr(ctx, "_page_configured", False))
    else:
        already_configured = bool(st.session_state.get(sentinel, False))

    if already_configured:
        return

    try:
        st.set_page_config(**kwargs)
    except StreamlitAPIException:
        return

    if ctx is not None:
        setattr(ctx, "_page_configured", True)
    else:
        st.session_state[sentinel] = True


def page_slug_from_path(page: str) -> str:
    """Derive the slug Streamlit uses for a page path (``pages/2_Market.py`` -> ``Market``)."""

    stem = Path(page).stem
    parts = stem.split("_", 1)
    slug = parts[1] if len(parts) == 2 and parts[0].isdigit() else stem
    return slug.replace("_", " ").strip()


def theme_css(theme: str) -> str:
    palette = _PALETTES.get(str(theme).lower(), _PALETTES["dark"])
    return dedent(
        f"""
        .block-container {{ padding-top: 1.2rem; padding-bottom: 2rem; }}
        .stMetric {{ border-radius: 12px; padding: 0.25rem 0.5rem; }}
        pre, code {{ font-size: 0.85rem; }}
        .mariposa-pill {{ display: inline-flex; align-items: center; gap: 0.35rem; padding: 0.3rem 0.7rem; border-radius: 999px; font-weight: 600; font-size: 0.8rem; background: rgba(148, 163, 184, 0.22); color: inherit; margin-right: 0.3rem; }}
        .mariposa-pill--success {{ background: rgba(16, 185, 129, 0.2); }}
        .mariposa-pill--warning {{ background: rgba(250, 204, 21, 0.25); }}
        .mariposa-pill--danger {{ background: rgba(248, 113, 113, 0.22); }}
        .mariposa-status {{ border-radius: 16px; padding: 0.9rem 1rem; border: 1px solid {palette['border']}; background: {palette['surface']}; }}
        .mariposa-status--success {{ border-color: rgba(16, 185, 129, 0.35); background: rgba(16, 185, 129, 0.12); }}
        .mariposa-status--warning {{ border-color: rgba(250, 204, 21, 0.35); background: rgba(250, 204, 21, 0.12); }}
        .mariposa-status--danger {{ border-color: rgba(248, 113, 113, 0.35); background: rgba(248, 113, 113, 0.14); }}
        .mariposa-status__title {{ font-size: 1rem; font-weight: 600; margin-bottom: 0.35rem; display: flex; gap: 0.4rem; align-items: center; }}
        .mariposa-status p {{ margin: 0; font-size: 0.9rem; color: {palette['muted']}; }}
        .mariposa-accent {{ color: {palette['accent']}; }}
        """
    ).strip()


def inject_css(css: str | None = None, *, theme: str = "dark", include_default: bool = True) -> None:
    """Inject the dashboard styles for ``theme`` plus any extra ``css`` rules."""

    rules = theme_css(theme) if include_default else ""
    if css:
        rules = f"{rules}\n{css}" if rules else css
    st.markdown(f"<style>{rules}</style>", unsafe_allow_html=True)


def _tone_class(prefix: str, tone: str) -> str:
    tone = str(tone).lower()
    return f"{prefix}--{tone}" if tone in TONE_CLASSES else ""


def build_pill(label: str, *, icon: str | None = None, tone: str = "neutral") -> str:
    icon_part = f"{icon} " if icon else ""
    tone_class = _tone_class("mariposa-pill", tone)
    return f'<span class="mariposa-pill {tone_class}">{icon_part}{escape(str(label))}</span>'


def build_status_card(title: str, description: str, *, icon: str | None = None, tone: str = "neutral") -> str:
    tone_class = _tone_class("mariposa-status", tone)
    icon_part = f"{icon} " if icon else ""
    return dedent(
        f"""
        <div class="mariposa-status {tone_class}">
            <div class="mariposa-status__title">{icon_part}{escape(str(title))}</div>
            <p>{escape(str(description))}</p>
        </div>
        """
    ).strip()


def navigation_link(page: str, *, label: str, icon: str | None = None, key: str | None = None) -> None:
    """Render a link to another page, falling back to a query-param button."""

    page_link = getattr(st, "page_link", None)
    if callable(page_link):
        kwargs: dict[str, Any] = {"label": label}
        if icon is not None:
            kwargs["icon"] = icon
        try:
            page_link(page, **kwargs)
        except StreamlitAPIException:
            pass
        else:
            return

    slug = page_slug_from_path(page)
    icon_part = f"{icon} " if icon else ""
    button_key = key or f"nav_{slug.replace(' ', '_')}"
    if st.button(f"{icon_part}{label}", key=button_key):
        query_params = {k: v for k, v in get_query_params().items() if v}
        query_params["page"] = [slug]
        set_query_params(query_params)
        rerun()


def copy_to_clipboard(value: str, *, label: str | None = None) -> None:
    """Show ``value`` in a code block; Streamlit renders a copy button on it."""

    if label:
        st.caption(label)
    st.code(str(value), language=None)
