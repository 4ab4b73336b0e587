"""UI helpers for the Streamlit front-end."""

from .state import ensure_keys, BASE_SESSION_STATE
from . import components

__all__ = ["ensure_keys", "BASE_SESSION_STATE", "components"]
