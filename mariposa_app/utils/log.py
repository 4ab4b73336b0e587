from __future__ import annotations

import json
import threading
import time
import traceback
from pathlib import Path
from types import TracebackType
from typing import Any, Iterable, Iterator, Mapping

from .file_io import atomic_write_text, tail_lines
from .paths import LOG_DIR
from .security import secure_file

LOG_FILE = LOG_DIR / "app.log"
ERROR_LOG_FILE = LOG_DIR / "error.log"

# Size-based retention. Tests monkeypatch these to exercise pruning.
MAX_LOG_BYTES = 5_000_000
RETAIN_LOG_LINES = 5_000
MAX_ERROR_LOG_BYTES = 2_000_000
ERROR_RETAIN_LOG_LINES = 2_000

_LOCK = threading.RLock()

_RESET_DONE = False

_SEVERITY_KEYWORDS = {
    "critical": "critical",
    "fatal": "critical",
    "error": "error",
    "fail": "error",
    "failed": "error",
    "exception": "error",
    "unauthorized": "warning",
    "warn": "warning",
    "warning": "warning",
    "retry": "warning",
}

# Payload keys lifted into the record's ``context`` block for quick filtering.
_CONTEXT_ALIASES: dict[str, tuple[str, ...]] = {
    "symbol": ("symbol",),
    "agentId": ("agentId", "agent_id"),
    "path": ("path", "endpoint"),
    "status": ("status", "status_code"),
}

_CONTEXT_ALIAS_MAP: dict[str, str] = {
    alias: canonical
    for canonical, aliases in _CONTEXT_ALIASES.items()
    for alias in aliases
}

_SENSITIVE_KEYWORDS = (
    "secret",
    "token",
    "apikey",
    "api_key",
    "api-key",
    "password",
    "passphrase",
    "otp",
    "authorization",
)

_ERROR_SEVERITIES = {"error", "critical"}


def _normalise_limit(value: int | str | None, fallback: int) -> int:
    try:
        limit = int(value) if value is not None else fallback
    except (TypeError, ValueError):
        limit = fallback
    return max(limit, 0)


def _iter_json_lines(lines: Iterable[str], *, drop_invalid: bool) -> Iterator[tuple[str, Any | None]]:
    """Yield ``(raw, parsed)`` pairs for JSON lines, tolerating blanks."""

    for raw in lines:
        text = raw.strip()
        if not text:
            if not drop_invalid:
                yield raw, None
            continue

        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            if drop_invalid:
                continue
            raise ValueError(f"invalid JSON log line: {raw!r}") from None

        yield raw, parsed


def _is_sensitive_key(key: object) -> bool:
    if not isinstance(key, str):
        return False
    lowered = key.strip().lower()
    return any(token in lowered for token in _SENSITIVE_KEYWORDS)


def sanitize_payload(value: Any) -> Any:
    """Return ``value`` with secrets masked as ``***`` at any nesting depth."""

    if isinstance(value, Mapping):
        cleaned: dict[str, Any] = {}
        for key, item in value.items():
            key_text = str(key)
            cleaned[key_text] = "***" if _is_sensitive_key(key_text) else sanitize_payload(item)
        return cleaned
    if isinstance(value, (list, tuple, set)):
        return [sanitize_payload(item) for item in value]
    return value


def _prune_log_file(path: Path, *, max_bytes: int, retain_lines: int, size_hint: int | None = None) -> None:
    """Truncate ``path`` to its last ``retain_lines`` valid records once it exceeds ``max_bytes``."""

    if max_bytes <= 0 or retain_lines <= 0 or not path.exists():
        return

    try:
        size = size_hint if size_hint is not None else path.stat().st_size
    except OSError:
        return

    if size <= max_bytes:
        return

    tail = tail_lines(path, retain_lines, drop_blank=True)
    cleaned = [raw for raw, _ in _iter_json_lines(tail, drop_invalid=True)]
    text = "\n".join(cleaned) + "\n" if cleaned else ""
    atomic_write_text(path, text, preserve_permissions=True)
    secure_file(path)


def clean_logs(*, max_bytes: int | None = None, retain_lines: int | None = None) -> None:
    """Manually trigger log pruning using optional retention overrides."""

    maximum = max_bytes if max_bytes is not None else MAX_LOG_BYTES
    keep = retain_lines if retain_lines is not None else RETAIN_LOG_LINES

    with _LOCK:
        _prune_log_file(LOG_FILE, max_bytes=maximum, retain_lines=keep)
        _prune_log_file(
            ERROR_LOG_FILE,
            max_bytes=min(maximum, MAX_ERROR_LOG_BYTES),
            retain_lines=max(keep // 2, 1),
        )


def reset_logs_on_start(*, force: bool = False) -> None:
    """Start every application launch with empty log files."""

    global _RESET_DONE

    with _LOCK:
        if _RESET_DONE and not force:
            return

        for target in (LOG_FILE, ERROR_LOG_FILE):
            target.parent.mkdir(parents=True, exist_ok=True)
            try:
                target.unlink()
            except FileNotFoundError:
                pass
            except OSError:
                atomic_write_text(target, "", preserve_permissions=True)

        _RESET_DONE = True


def _derive_severity(event: str, explicit: str | None) -> str:
    if explicit:
        return explicit.lower()

    tokens = [part.lower() for part in event.replace("-", ".").replace("_", ".").split(".") if part]
    for token in tokens:
        mapped = _SEVERITY_KEYWORDS.get(token)
        if mapped:
            return mapped
    return "info"


def _normalise_exception(
    exc: BaseException | tuple[type[BaseException], BaseException, TracebackType | None] | None,
) -> dict[str, Any] | None:
    if exc is None:
        return None

    if isinstance(exc, tuple):
        exc_type, exc_value, tb = exc
    else:
        exc_type, exc_value, tb = type(exc), exc, exc.__traceback__

    if exc_type is None or exc_value is None:
        return None

    return {
        "type": f"{exc_type.__module__}.{exc_type.__name__}",
        "message": str(exc_value),
        "traceback": "".join(traceback.format_exception(exc_type, exc_value, tb)),
    }


def _split_context(payload: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    context: dict[str, Any] = {}
    remaining: dict[str, Any] = {}
    for key, value in payload.items():
        canonical = _CONTEXT_ALIAS_MAP.get(str(key))
        if canonical is not None:
            context[canonical] = value
        else:
            remaining[key] = value
    return context, remaining


def _append_record(path: Path, text: str) -> int | None:
    with path.open("a", encoding="utf-8") as handle:
        handle.write(text + "\n")
        handle.flush()
        size_hint = handle.tell()
    secure_file(path)
    return size_hint


def log(
    event: str,
    *,
    severity: str | None = None,
    exc: BaseException | tuple[type[BaseException], BaseException, TracebackType | None] | None = None,
    **payload: Any,
) -> None:
    """Append a JSON record with ``event`` and ``payload`` to the log file."""

    context, remaining = _split_context(payload)

    record: dict[str, Any] = {
        "ts": int(time.time() * 1000),
        "event": event,
        "severity": _derive_severity(event, severity),
        "thread": threading.current_thread().name,
        "context": sanitize_payload(context),
        "payload": sanitize_payload(remaining),
    }

    exception_payload = _normalise_exception(exc)
    if exception_payload is not None:
        record["exception"] = exception_payload

    text = json.dumps(record, ensure_ascii=False, default=str)

    with _LOCK:
        LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
        size_hint = _append_record(LOG_FILE, text)
        _prune_log_file(LOG_FILE, max_bytes=MAX_LOG_BYTES, retain_lines=RETAIN_LOG_LINES, size_hint=size_hint)

        if record["severity"] in _ERROR_SEVERITIES:
            error_size = _append_record(ERROR_LOG_FILE, text)
            _prune_log_file(
                ERROR_LOG_FILE,
                max_bytes=MAX_ERROR_LOG_BYTES,
                retain_lines=ERROR_RETAIN_LOG_LINES,
                size_hint=error_size,
            )


def read_tail(n: int | str = 1000, *, parse: bool = False, drop_invalid: bool = True) -> list[Any]:
    """Return the tail of the log file, optionally parsed as JSON objects."""

    limit = _normalise_limit(n, 1000)
    if limit <= 0:
        return []

    lines = tail_lines(LOG_FILE, limit)
    if not parse:
        return lines

    return [
        parsed
        for _, parsed in _iter_json_lines(lines, drop_invalid=drop_invalid)
        if parsed is not None
    ]


reset_logs_on_start()
