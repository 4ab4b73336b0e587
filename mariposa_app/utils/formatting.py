"""Human friendly formatting helpers shared across UI components.

Backend payloads are loosely typed: prices arrive as strings, confidences are
sometimes missing and aggregates can be ``NaN``. Every helper here accepts
whatever the API handed back and falls back to a placeholder rather than
raising, so a single malformed field never takes a widget down.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

import math

PLACEHOLDER = "—"

_UNIT_THRESHOLDS = (
    (1_000_000_000, "B"),
    (1_000_000, "M"),
    (1_000, "K"),
)


def coerce_float(value: Any) -> float | None:
    """Best-effort conversion of ``value`` to a finite ``float``.

    ``None``, ``NaN``/``inf`` and non numeric inputs return ``None`` so the
    caller can render a placeholder.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).replace(",", "").strip())
        except (TypeError, ValueError):
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def number_or(value: Any, fallback: float = 0.0) -> float:
    number = coerce_float(value)
    return fallback if number is None else number


def to_fixed(value: Any, decimals: int = 2, *, fallback: str = PLACEHOLDER) -> str:
    number = coerce_float(value)
    if number is None:
        return fallback
    return f"{number:.{decimals}f}"


def with_units(value: Any, decimals: int = 2, *, fallback: str = PLACEHOLDER) -> str:
    """Return ``value`` shortened with a K/M/B suffix."""

    number = coerce_float(value)
    if number is None:
        return fallback
    for threshold, suffix in _UNIT_THRESHOLDS:
        if abs(number) >= threshold:
            return f"{number / threshold:.{decimals}f}{suffix}"
    return f"{number:.{decimals}f}"


def format_money(value: Any, *, precision: int = 2, short: bool = False, fallback: str = PLACEHOLDER) -> str:
    """Return ``$1,234.56`` or, with ``short``, ``$1.23K``."""

    number = coerce_float(value)
    if number is None:
        return fallback
    sign = "-" if number < 0 else ""
    if short:
        return f"{sign}${with_units(abs(number), precision)}"
    return f"{sign}${abs(number):,.{precision}f}"


def format_percent(value: Any, *, precision: int = 2, signed: bool = False, fallback: str = PLACEHOLDER) -> str:
    number = coerce_float(value)
    if number is None:
        return fallback
    if signed:
        return f"{number:+.{precision}f}%"
    return f"{number:.{precision}f}%"


def format_ratio_percent(value: Any, *, precision: int = 1, fallback: str = PLACEHOLDER) -> str:
    """Format a 0..1 ratio (for example a confidence) as a percentage."""

    number = coerce_float(value)
    if number is None:
        return fallback
    return f"{number * 100:.{precision}f}%"


def format_price(value: Any, *, fallback: str = PLACEHOLDER) -> str:
    """Format a quote price with precision scaled to its magnitude."""

    number = coerce_float(value)
    if number is None:
        return fallback
    magnitude = abs(number)
    if magnitude >= 1:
        return f"${number:,.4f}"
    if magnitude >= 0.01:
        return f"${number:.6f}"
    return f"${number:.8f}"


def format_quantity(value: Any, *, precision: int = 4, fallback: str = PLACEHOLDER) -> str:
    number = coerce_float(value)
    if number is None:
        return fallback
    return f"{number:,.{precision}f}"


def format_timedelta(seconds: Any) -> str:
    number = coerce_float(seconds)
    if number is None:
        return PLACEHOLDER
    if number < 1:
        return "<1s"
    if number < 60:
        return f"{number:.0f}s"
    minutes = number / 60
    if minutes < 60:
        return f"{minutes:.0f}m"
    hours = minutes / 60
    if hours < 48:
        return f"{hours:.1f}h"
    return f"{hours / 24:.1f}d"


def parse_timestamp(value: Any) -> datetime | None:
    """Parse epoch seconds/milliseconds or ISO-8601 strings into UTC datetimes."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        seconds = float(value)
        if seconds > 1e11:
            seconds /= 1000.0
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, ValueError, OSError):
            return None
    text = str(value).strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        number = coerce_float(text)
        return parse_timestamp(number) if number is not None else None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def format_datetime(timestamp: Any, *, tz: timezone | None = timezone.utc) -> str:
    """Render ``timestamp`` as a compact human readable datetime string."""

    dt = parse_timestamp(timestamp)
    if dt is None:
        return PLACEHOLDER
    if tz is not None:
        dt = dt.astimezone(tz)
    return dt.strftime("%Y-%m-%d %H:%M:%S")


def safe_list(value: Any) -> list[Any]:
    """Return ``value`` as a list; anything that is not a sequence becomes ``[]``."""

    if isinstance(value, list):
        return value
    if isinstance(value, tuple):
        return list(value)
    return []


def has_items(value: Any) -> bool:
    return bool(safe_list(value))


def safe_get(payload: Any, path: str, default: Any = None) -> Any:
    """Walk ``payload`` along a dotted ``path`` (``"data.klines"``)."""

    current = payload
    for part in path.split("."):
        if isinstance(current, Mapping):
            if part not in current:
                return default
            current = current[part]
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            if index >= len(current):
                return default
            current = current[index]
        else:
            return default
    return default if current is None else current


def first_valid(values: Iterable[Any], fallback: float = 0.0) -> float:
    for value in values:
        number = coerce_float(value)
        if number is not None:
            return number
    return fallback
