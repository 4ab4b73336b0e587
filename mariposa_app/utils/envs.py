from __future__ import annotations
import os, json, re
from dataclasses import asdict, fields
from pydantic.dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from dotenv import load_dotenv

from .file_io import atomic_write_text, read_json_file
from .log import log
from .paths import ENV_FILE, SETTINGS_FILE
from .security import secure_file

CacheKey = Tuple[Optional[float], Tuple[Tuple[str, Any], ...]]

PRODUCTION_BACKEND_URL = "https://scalping.backend.mariposa.plus/api"
PRODUCTION_WS_URL = "https://scalping.backend.mariposa.plus"
DEFAULT_SYMBOLS = "BTCUSDT,ETHUSDT,SOLUSDT,DOGEUSDT,TRXUSDT,ADAUSDT"

_TRUE_STRINGS = {"1", "true", "yes", "y", "on"}
_FALSE_STRINGS = {"0", "false", "no", "n", "off"}

ENVIRONMENT_CHOICES: tuple[str, ...] = ("development", "production")


def _coerce_bool(value: Any) -> bool:
    """Return a strict boolean for configuration style inputs."""

    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if not lowered or lowered in _FALSE_STRINGS:
            return False
        return True
    return bool(value)


@dataclass
class Settings:
    # endpoints
    environment: str = "production"
    backend_url: str = PRODUCTION_BACKEND_URL
    ws_url: str = PRODUCTION_WS_URL
    dev_backend_url: str = "http://localhost:3001/api"
    dev_ws_url: str = "http://localhost:3001"
    public_api_url: str = "http://localhost:3001/api/v1"
    bridge_url: str = "http://localhost:8080/api/v1"
    verify_ssl: bool = True

    # http
    http_timeout_s: float = 30.0
    analysis_timeout_s: float = 45.0
    multi_timeframe_timeout_s: float = 60.0
    bulk_timeout_s: float = 90.0
    multi_token_timeout_s: float = 120.0
    http_retry_attempts: int = 2

    # widget refresh intervals, seconds
    dashboard_refresh_s: int = 30
    recommendations_refresh_s: int = 30
    agents_refresh_s: int = 15
    var_refresh_s: int = 60
    correlation_refresh_s: int = 300
    whale_refresh_s: int = 30
    bridge_refresh_s: int = 20

    # behaviour
    default_symbols: str = DEFAULT_SYMBOLS
    mock_fallback: bool = False
    ws_max_reconnect_attempts: int = 5
    ui_theme: str = "dark"


_ENV_MAP = {
    "environment": "MARIPOSA_APP_ENV",
    "backend_url": "MARIPOSA_BACKEND_URL",
    "ws_url": "MARIPOSA_WS_URL",
    "dev_backend_url": "MARIPOSA_DEV_BACKEND_URL",
    "dev_ws_url": "MARIPOSA_DEV_WS_URL",
    "public_api_url": "MARIPOSA_PUBLIC_API_URL",
    "bridge_url": "MARIPOSA_BRIDGE_URL",
    "verify_ssl": "MARIPOSA_VERIFY_SSL",
    "http_timeout_s": "MARIPOSA_HTTP_TIMEOUT",
    "http_retry_attempts": "MARIPOSA_HTTP_RETRIES",
    "default_symbols": "MARIPOSA_SYMBOLS",
    "mock_fallback": "MARIPOSA_MOCK_FALLBACK",
    "ws_max_reconnect_attempts": "MARIPOSA_WS_MAX_RECONNECTS",
    "ui_theme": "MARIPOSA_THEME",
}

_BOOL_FIELDS = {"verify_ssl", "mock_fallback"}
_INT_FIELDS = {
    "http_retry_attempts",
    "ws_max_reconnect_attempts",
    "dashboard_refresh_s",
    "recommendations_refresh_s",
    "agents_refresh_s",
    "var_refresh_s",
    "correlation_refresh_s",
    "whale_refresh_s",
    "bridge_refresh_s",
}
_FLOAT_FIELDS = {
    "http_timeout_s",
    "analysis_timeout_s",
    "multi_timeframe_timeout_s",
    "bulk_timeout_s",
    "multi_token_timeout_s",
}

_CACHE: dict[str, Any] = {"settings": None, "key": None}
_ENV_FILE_LOADED = False


def _load_env_file() -> None:
    global _ENV_FILE_LOADED
    if _ENV_FILE_LOADED:
        return
    _ENV_FILE_LOADED = True
    if _coerce_bool(os.getenv("MARIPOSA_DISABLE_ENV_FILE")):
        return
    if ENV_FILE.exists():
        load_dotenv(ENV_FILE, override=False)


def _cast_bool(x: Any) -> Optional[bool]:
    if x is None:
        return None
    return _coerce_bool(x)


def _cast_int(x: Any) -> Optional[int]:
    if x is None:
        return None
    try:
        return int(x)
    except (TypeError, ValueError):
        return None


def _cast_float(x: Any) -> Optional[float]:
    if x is None:
        return None
    try:
        return float(x)
    except (TypeError, ValueError):
        return None


def _caster_for(name: str) -> Callable[[Any], Any]:
    if name in _BOOL_FIELDS:
        return _cast_bool
    if name in _INT_FIELDS:
        return _cast_int
    if name in _FLOAT_FIELDS:
        return _cast_float
    return lambda value: value


def _read_env() -> Dict[str, Optional[str]]:
    return {name: os.getenv(env_key) for name, env_key in _ENV_MAP.items()}


def _env_overrides(raw_env: Dict[str, Optional[str]]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for name, raw in raw_env.items():
        if raw is None or not str(raw).strip():
            continue
        value = _caster_for(name)(raw.strip())
        if value is not None:
            overrides[name] = value
    return overrides


def _env_signature(env: Dict[str, Any]) -> Tuple[Tuple[str, Any], ...]:
    return tuple(sorted(env.items()))


def _filter_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
    allowed = {f.name for f in fields(Settings)}
    return {k: v for k, v in payload.items() if k in allowed}


def _file_mtime(path: Path) -> Optional[float]:
    try:
        return path.stat().st_mtime
    except FileNotFoundError:
        return None


def _load_file() -> Dict[str, Any]:
    try:
        payload = read_json_file(SETTINGS_FILE)
    except (OSError, ValueError) as exc:
        log("envs.settings.load_error", path=str(SETTINGS_FILE), err=str(exc))
        return {}
    if not isinstance(payload, dict):
        return {}
    return _filter_fields(payload)


def _persist_file(payload: Dict[str, Any]) -> None:
    text = json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True)
    atomic_write_text(SETTINGS_FILE, text, preserve_permissions=False)
    secure_file(SETTINGS_FILE)


def _invalidate_cache() -> None:
    _CACHE["settings"] = None
    _CACHE["key"] = None


def get_settings(force_reload: bool = False) -> Settings:
    """Return settings merged from defaults, ``settings.json`` and env vars."""

    _load_env_file()
    raw_env = _read_env()
    key: CacheKey = (_file_mtime(SETTINGS_FILE), _env_signature(raw_env))

    cached = _CACHE.get("settings")
    if not force_reload and cached is not None and _CACHE.get("key") == key:
        return cached

    merged = asdict(Settings())
    merged.update(_load_file())
    merged.update(_env_overrides(raw_env))
    settings = Settings(**merged)

    _CACHE["settings"] = settings
    _CACHE["key"] = key
    return settings


def update_settings(**kwargs: Any) -> Settings:
    """Persist ``kwargs`` into ``settings.json`` and return the fresh settings.

    Unknown field names raise :class:`ValueError`. Values equal to the default
    are dropped from the file so later default changes still apply.
    """

    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(kwargs) - known)
    if unknown:
        raise ValueError(f"unknown settings: {', '.join(unknown)}")

    defaults = asdict(Settings())
    payload = _load_file()
    for name, value in kwargs.items():
        if value is None:
            continue
        value = _caster_for(name)(value)
        if value is None:
            raise ValueError(f"invalid value for {name}")
        if value == defaults.get(name):
            payload.pop(name, None)
        else:
            payload[name] = value

    # Validate before writing so a bad value never lands on disk.
    Settings(**{**defaults, **payload})
    _persist_file(payload)
    _invalidate_cache()
    log("envs.settings.updated", fields=sorted(kwargs))
    return get_settings(force_reload=True)


def is_development(settings: Optional[Settings] = None) -> bool:
    settings = settings or get_settings()
    return str(settings.environment).strip().lower() == "development"


def active_backend_url(settings: Optional[Settings] = None) -> str:
    settings = settings or get_settings()
    url = settings.dev_backend_url if is_development(settings) else settings.backend_url
    return str(url).rstrip("/")


def active_ws_url(settings: Optional[Settings] = None) -> str:
    settings = settings or get_settings()
    url = settings.dev_ws_url if is_development(settings) else settings.ws_url
    return str(url).rstrip("/")


def symbol_list(value: object) -> list[str]:
    """Normalise CSV/whitespace separated symbols into an ordered unique list."""

    if value is None:
        return []
    if isinstance(value, str):
        parts: Iterable[object] = re.split(r"[\s,;]+", value)
    else:
        parts = value  # type: ignore[assignment]
    seen: list[str] = []
    for part in parts:
        text = str(part).strip().upper()
        if text and text not in seen:
            seen.append(text)
    return seen


def default_symbols(settings: Optional[Settings] = None) -> list[str]:
    settings = settings or get_settings()
    return symbol_list(settings.default_symbols)
