import contextlib
import sys
import threading
from types import SimpleNamespace

import pytest

from mariposa_app.utils import error_handling
from mariposa_app.utils.errors import BackendError


class FakeStreamlit:
    def __init__(self, *, pressed: bool = False) -> None:
        self.pressed = pressed
        self.errors: list[str] = []
        self.captions: list[str] = []
        self.reruns = 0
        self.cache_data = SimpleNamespace(clear=self._clear)
        self.cleared = 0

    def _clear(self) -> None:
        self.cleared += 1

    def container(self, **kwargs):
        return contextlib.nullcontext()

    def error(self, text: str) -> None:
        self.errors.append(text)

    def caption(self, text: str) -> None:
        self.captions.append(text)

    def button(self, label: str, key: str | None = None) -> bool:
        return self.pressed

    def rerun(self) -> None:
        self.reruns += 1


def _collect_logs(monkeypatch: pytest.MonkeyPatch) -> list[tuple[str, dict[str, object]]]:
    recorded: list[tuple[str, dict[str, object]]] = []

    def fake_log(event: str, **payload: object) -> None:
        recorded.append((event, payload))

    monkeypatch.setattr(error_handling, "log", fake_log)
    return recorded


def test_sys_excepthook_logs_and_chains(monkeypatch: pytest.MonkeyPatch) -> None:
    logs = _collect_logs(monkeypatch)
    chained: list[type] = []
    monkeypatch.setattr(error_handling, "_previous_sys_hook", lambda exc_type, *_: chained.append(exc_type))

    try:
        raise RuntimeError("boom")
    except RuntimeError:
        exc_type, exc_value, tb = sys.exc_info()

    error_handling._handle_sys_exception(exc_type, exc_value, tb)

    event, payload = logs[0]
    assert event == "runtime.unhandled_exception"
    assert payload["origin"] == "sys"
    assert payload["exc"][1] is exc_value
    assert chained == [RuntimeError]


def test_threading_excepthook_records_thread_name(monkeypatch: pytest.MonkeyPatch) -> None:
    logs = _collect_logs(monkeypatch)
    monkeypatch.setattr(error_handling, "_previous_thread_hook", lambda *_: None)

    try:
        raise ValueError("socket closed")
    except ValueError:
        exc_type, exc_value, tb = sys.exc_info()

    args = SimpleNamespace(
        exc_type=exc_type,
        exc_value=exc_value,
        exc_traceback=tb,
        thread=SimpleNamespace(name="mariposa-realtime"),
    )

    error_handling._handle_thread_exception(args)

    assert logs[0][1]["origin"] == "thread"
    assert logs[0][1]["thread_name"] == "mariposa-realtime"


def test_keyboard_interrupt_is_not_logged(monkeypatch: pytest.MonkeyPatch) -> None:
    logs = _collect_logs(monkeypatch)
    monkeypatch.setattr(error_handling, "_previous_sys_hook", None)

    error_handling._handle_sys_exception(KeyboardInterrupt, KeyboardInterrupt(), None)

    assert logs == []


def test_install_is_idempotent(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(error_handling, "_installed", False)
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    monkeypatch.setattr(threading, "excepthook", threading.excepthook)
    original = sys.excepthook

    error_handling.install_global_exception_handlers()
    error_handling.install_global_exception_handlers()

    assert sys.excepthook is error_handling._handle_sys_exception
    assert error_handling._previous_sys_hook is original


def test_error_boundary_contains_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    logs = _collect_logs(monkeypatch)
    fake_st = FakeStreamlit()
    monkeypatch.setattr(error_handling, "st", fake_st)

    with error_handling.error_boundary("agents_table", title="Agents unavailable"):
        raise BackendError("boom", payload={"error": "Agent service down"})

    assert fake_st.errors == ["⚠️ Agents unavailable"]
    assert fake_st.captions == ["Agent service down"]
    assert fake_st.reruns == 0
    assert logs[0][0] == "ui.widget.error"
    assert logs[0][1]["widget"] == "agents_table"


def test_error_boundary_retry_clears_cache_and_reruns(monkeypatch: pytest.MonkeyPatch) -> None:
    _collect_logs(monkeypatch)
    fake_st = FakeStreamlit(pressed=True)
    monkeypatch.setattr(error_handling, "st", fake_st)

    with error_handling.error_boundary("market"):
        raise RuntimeError("chart failed")

    assert fake_st.cleared == 1
    assert fake_st.reruns == 1


def test_error_boundary_uses_custom_retry(monkeypatch: pytest.MonkeyPatch) -> None:
    _collect_logs(monkeypatch)
    fake_st = FakeStreamlit(pressed=True)
    monkeypatch.setattr(error_handling, "st", fake_st)
    calls: list[str] = []

    with error_handling.error_boundary("var", on_retry=lambda: calls.append("retry")):
        raise RuntimeError("var failed")

    assert calls == ["retry"]
    assert fake_st.cleared == 0
