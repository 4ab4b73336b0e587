"""Public API tiers and helpers for the API-key management page."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

UNLIMITED = -1


@dataclass(frozen=True)
class TierConfig:
    name: str
    requests_per_day: int
    requests_per_minute: int
    allowed_endpoints: tuple[str, ...]
    features: tuple[str, ...]


API_TIERS: dict[str, TierConfig] = {
    "free": TierConfig(
        name="Free",
        requests_per_day=100,
        requests_per_minute=10,
        allowed_endpoints=(
            "/api/v1/opportunities",
            "/api/v1/opportunities/top",
            "/api/v1/market-reports/available-dates",
            "/api/v1/market/*/price",
            "/api/v1/market/trending",
        ),
        features=(
            "Basic trading opportunities",
            "Top opportunities ranking",
            "Current market prices",
            "Trending symbols",
        ),
    ),
    "starter": TierConfig(
        name="Starter",
        requests_per_day=1000,
        requests_per_minute=50,
        allowed_endpoints=("*",),
        features=(
            "All Free tier features",
            "Full opportunity details",
            "Whale activity tracking",
            "Daily market reports (PDF)",
            "Order book analysis",
            "Historical data access",
        ),
    ),
    "pro": TierConfig(
        name="Pro",
        requests_per_day=10000,
        requests_per_minute=200,
        allowed_endpoints=("*",),
        features=(
            "All Starter tier features",
            "AI-powered market analysis",
            "Trading signals API",
            "Real-time signal feed",
            "Advanced analytics",
            "Priority support",
            "Webhook notifications",
        ),
    ),
    "enterprise": TierConfig(
        name="Enterprise",
        requests_per_day=UNLIMITED,
        requests_per_minute=500,
        allowed_endpoints=("*",),
        features=(
            "All Pro tier features",
            "Unlimited requests",
            "Deep multi-timeframe analysis",
            "Batch analysis endpoints",
            "WebSocket streaming",
            "Custom integrations",
            "Dedicated support",
            "SLA guarantee",
            "White-label options",
        ),
    ),
}

_TIER_TONES = {"free": "neutral", "starter": "success", "pro": "warning", "enterprise": "danger"}


def get_tier(tier: str) -> TierConfig:
    config = API_TIERS.get(str(tier).strip().lower())
    if config is None:
        raise ValueError(f"unknown API tier: {tier!r}")
    return config


def is_endpoint_allowed(tier: str, endpoint: str) -> bool:
    """Return ``True`` if ``endpoint`` is reachable with ``tier``.

    ``*`` inside a pattern matches any run of characters, including ``/``.
    """

    allowed = get_tier(tier).allowed_endpoints
    if "*" in allowed or endpoint in allowed:
        return True
    for pattern in allowed:
        if "*" not in pattern:
            continue
        regex = "^" + ".*".join(re.escape(part) for part in pattern.split("*")) + "$"
        if re.match(regex, endpoint):
            return True
    return False


def describe_limits(tier: str) -> str:
    config = get_tier(tier)
    per_day = "Unlimited" if config.requests_per_day == UNLIMITED else f"{config.requests_per_day:,}/day"
    return f"{per_day} · {config.requests_per_minute}/min"


def tier_tone(tier: str | None) -> str:
    return _TIER_TONES.get(str(tier or "").lower(), "neutral")


def parse_allowed_ips(raw: str | None) -> list[str]:
    """Split a comma separated IP whitelist, dropping blanks."""

    return [part.strip() for part in str(raw or "").split(",") if part.strip()]


def build_generate_payload(
    name: str,
    tier: str,
    expires_in_days: Any = None,
    allowed_ips: str | None = None,
) -> dict[str, Any]:
    """Validate the generate-key form and return the request body."""

    clean_name = str(name or "").strip()
    if not clean_name:
        raise ValueError("Please enter a name for your API key")
    tier_key = str(tier or "").strip().lower()
    get_tier(tier_key)

    payload: dict[str, Any] = {"name": clean_name, "tier": tier_key}
    if expires_in_days not in (None, "", 0):
        try:
            days = int(expires_in_days)
        except (TypeError, ValueError):
            raise ValueError("Expiry must be a whole number of days") from None
        if days <= 0:
            raise ValueError("Expiry must be a positive number of days")
        payload["expiresInDays"] = days
    ips = parse_allowed_ips(allowed_ips)
    if ips:
        payload["allowedIPs"] = ips
    return payload


def mask_key(key: str | None, *, visible: int = 8) -> str:
    """Show the first ``visible`` characters of a key and mask the rest."""

    text = str(key or "")
    if len(text) <= visible:
        return text
    return text[:visible] + "•" * min(len(text) - visible, 24)
