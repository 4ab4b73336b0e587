from __future__ import annotations

import json

import streamlit as st

from mariposa_app.ui.components import render_auth_gate, render_sidebar
from mariposa_app.ui.state import ensure_keys
from mariposa_app.utils.api_tester import (
    LANGUAGES,
    code_example,
    find_endpoint,
    group_endpoints,
    rate_limit_headers,
    status_tone,
)
from mariposa_app.utils.backend_api import PublicAPI
from mariposa_app.utils.envs import get_settings
from mariposa_app.utils.error_handling import error_boundary
from mariposa_app.utils.ui import build_pill, safe_set_page_config


@st.cache_resource(show_spinner=False)
def _public_api(base_url: str, timeout: float, verify_ssl: bool) -> PublicAPI:
    api = PublicAPI(base_url, timeout=timeout)
    api.session.verify = verify_ssl
    return api


safe_set_page_config(page_title="API tester", page_icon="🧪", layout="wide")
ensure_keys()
render_sidebar()
render_auth_gate()

settings = get_settings()
state = st.session_state

st.title("🧪 Public API tester")
st.caption(f"Base URL: `{settings.public_api_url}`")

api_key = st.text_input("API key", type="password", key="tester_api_key", placeholder="mk_live_…")

groups = group_endpoints()
picker = st.columns(2)
category = picker[0].selectbox("Category", list(groups), key="tester_category")
endpoint_name = picker[1].selectbox("Endpoint", [item.name for item in groups[category]], key="tester_endpoint")
endpoint = find_endpoint(endpoint_name)
st.markdown(
    build_pill(endpoint.method, tone="success") + f" `{endpoint.path}` " + build_pill(endpoint.tier),
    unsafe_allow_html=True,
)

params: dict[str, str] = {}
if endpoint.params:
    cols = st.columns(min(len(endpoint.params), 3))
    for index, param in enumerate(endpoint.params):
        col = cols[index % len(cols)]
        key = f"tester_param_{endpoint.name}_{param.name}"
        if param.options:
            params[param.name] = col.selectbox(param.name, param.options, key=key, help=param.description or None)
        else:
            params[param.name] = col.text_input(param.name, key=key, help=param.description or None)

send = st.button("Send request", type="primary", disabled=not api_key)
if send:
    with error_boundary("api_tester_request", title="Request failed"), st.spinner("Calling the API…"):
        result = _public_api(settings.public_api_url, settings.http_timeout_s, settings.verify_ssl).test_endpoint(
            api_key, endpoint.method, endpoint.path, params
        )
        state["tester_last_result"] = result

result = state.get("tester_last_result")
if result is not None:
    st.subheader("Response")
    st.markdown(
        build_pill(f"Status {result.status or 'network error'}", tone=status_tone(result.status))
        + build_pill(f"{result.elapsed_ms:.0f} ms"),
        unsafe_allow_html=True,
    )
    limits = rate_limit_headers(result.headers)
    if limits:
        st.caption(" · ".join(f"{name}: {value}" for name, value in limits.items()))
    if isinstance(result.data, (dict, list)):
        st.json(result.data)
    else:
        st.code(json.dumps(result.data, indent=2, default=str) if result.data is not None else "", language="json")
    with st.expander("Response headers"):
        st.json(result.headers)

st.subheader("Code example")
language = st.radio("Language", LANGUAGES, horizontal=True, key="tester_language")
st.code(
    code_example(language, endpoint, api_key or "YOUR_API_KEY", params, settings.public_api_url),
    language={"curl": "bash"}.get(language, language),
)
