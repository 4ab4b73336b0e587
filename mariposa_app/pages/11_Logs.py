from __future__ import annotations

import streamlit as st

from mariposa_app.ui.components import log_viewer, render_auth_gate, render_sidebar
from mariposa_app.ui.state import ensure_keys
from mariposa_app.utils.log import LOG_FILE, clean_logs
from mariposa_app.utils.ui import safe_set_page_config

safe_set_page_config(page_title="Logs", page_icon="🪵", layout="wide")
ensure_keys()
render_sidebar()
render_auth_gate()

header = st.columns([4, 1])
header[0].title("🪵 Application log")
header[0].caption(f"`{LOG_FILE}`")
if header[1].button("Trim log files", use_container_width=True):
    clean_logs()
    st.rerun()

log_viewer()
