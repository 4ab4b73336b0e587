from __future__ import annotations

import sys
import threading
from contextlib import contextmanager
from types import TracebackType
from typing import Callable, Iterator

import streamlit as st

from .errors import describe_error
from .log import log

_installed = False
_previous_sys_hook: Callable[[type[BaseException], BaseException, TracebackType | None], None] | None = None
_previous_thread_hook: Callable[[threading.ExceptHookArgs], None] | None = None


def install_global_exception_handlers(*, force: bool = False) -> None:
    """Log unhandled exceptions from the main thread and worker threads."""

    global _installed

    if _installed and not force:
        return

    if force:
        _restore_previous_hooks()

    _install_sys_hook()
    _install_threading_hook()
    _installed = True


def _restore_previous_hooks() -> None:
    global _installed

    if _previous_sys_hook is not None:
        sys.excepthook = _previous_sys_hook
    if _previous_thread_hook is not None:
        threading.excepthook = _previous_thread_hook
    _installed = False


def _install_sys_hook() -> None:
    global _previous_sys_hook

    _previous_sys_hook = sys.excepthook
    sys.excepthook = _handle_sys_exception


def _install_threading_hook() -> None:
    global _previous_thread_hook

    _previous_thread_hook = threading.excepthook
    threading.excepthook = _handle_thread_exception  # type: ignore[assignment]


def _handle_sys_exception(
    exc_type: type[BaseException],
    exc_value: BaseException,
    exc_traceback: TracebackType | None,
) -> None:
    try:
        _process_exception(
            exc_type,
            exc_value,
            exc_traceback,
            origin="sys",
            thread_name=threading.current_thread().name,
        )
    finally:
        if _previous_sys_hook is not None:
            _previous_sys_hook(exc_type, exc_value, exc_traceback)


def _handle_thread_exception(args: threading.ExceptHookArgs) -> None:
    try:
        _process_exception(
            args.exc_type,
            args.exc_value,
            args.exc_traceback,
            origin="thread",
            thread_name=getattr(args.thread, "name", None),
        )
    finally:
        if _previous_thread_hook is not None:
            _previous_thread_hook(args)


def _process_exception(
    exc_type: type[BaseException] | None,
    exc_value: BaseException | None,
    exc_traceback: TracebackType | None,
    *,
    origin: str,
    thread_name: str | None = None,
) -> None:
    if exc_type is None or exc_value is None:
        return
    if issubclass(exc_type, (KeyboardInterrupt, SystemExit)):
        return

    payload: dict[str, object] = {"origin": origin}
    if thread_name:
        payload["thread_name"] = thread_name

    try:
        log("runtime.unhandled_exception", exc=(exc_type, exc_value, exc_traceback), **payload)
    except OSError:
        # Logging must never mask the original failure.
        pass


def _default_retry() -> None:
    st.cache_data.clear()


def render_error_fallback(
    name: str,
    exc: BaseException,
    *,
    title: str = "This panel failed to load",
    on_retry: Callable[[], None] | None = None,
) -> bool:
    """Render the static fallback panel; returns ``True`` when Retry was pressed."""

    with st.container(border=True):
        st.error(f"⚠️ {title}")
        st.caption(describe_error(exc))
        pressed = st.button("Retry", key=f"error_boundary_retry_{name}")
    if pressed:
        (on_retry or _default_retry)()
        log("ui.widget.retry", widget=name)
    return pressed


@contextmanager
def error_boundary(
    name: str,
    *,
    title: str = "This panel failed to load",
    on_retry: Callable[[], None] | None = None,
) -> Iterator[None]:
    """Contain a widget's failure to its own fallback panel.

    Streamlit control-flow signals (``st.rerun``/``st.stop``) derive from
    ``BaseException`` and pass through untouched.
    """

    try:
        yield
    except Exception as exc:
        log("ui.widget.error", widget=name, exc=exc)
        if render_error_fallback(name, exc, title=title, on_retry=on_retry):
            st.rerun()
