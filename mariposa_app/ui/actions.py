"""Toast helpers and the wrapper used for mutating backend calls."""

from __future__ import annotations

from typing import Callable, TypeVar

import streamlit as st

from ..utils.errors import describe_error
from ..utils.log import log

T = TypeVar("T")


def notify_error(message: str, *, icon: str = "⚠️") -> None:
    st.toast(message, icon=icon)


def notify_success(message: str, *, icon: str = "✅") -> None:
    st.toast(message, icon=icon)


def notify_info(message: str, *, icon: str = "ℹ️") -> None:
    st.toast(message, icon=icon)


def run_action(
    action: Callable[[], T],
    *,
    success: Callable[[T], None] | None = None,
    success_message: str | None = None,
    error_message: str | None = None,
    description: str | None = None,
) -> T | None:
    """Execute ``action`` and surface the outcome as a toast.

    Exceptions are logged and shown as ``error_message`` followed by the
    backend's own explanation; ``None`` is returned in that case.
    """

    name = description or getattr(action, "__name__", "<callable>")
    try:
        result = action()
    except Exception as exc:
        log("ui.action.error", action=name, err=str(exc))
        detail = describe_error(exc)
        notify_error(f"{error_message}: {detail}" if error_message else detail)
        return None

    if success is not None:
        try:
            success(result)
        except Exception as callback_exc:
            log("ui.action.success_callback_error", action=name, err=str(callback_exc))
            notify_error(f"Could not process the result: {callback_exc}")

    if success_message:
        notify_success(success_message)

    return result
