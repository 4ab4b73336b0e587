"""Agent form rules: categories, risk presets and derived auto-settings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from .formatting import coerce_float
from .models import Agent

MIN_BUDGET = 50.0
DEFAULT_BUDGET = 100.0
DEFAULT_RISK_LEVEL = 3
BROKERS: tuple[str, ...] = ("OKX", "MT4", "BINANCE")


@dataclass(frozen=True)
class CategoryInfo:
    label: str
    description: str
    icon: str
    signals: tuple[str, ...]


@dataclass(frozen=True)
class RiskLevel:
    value: int
    label: str
    min_confidence: float
    position_fraction: float

    @property
    def description(self) -> str:
        return f"{self.position_fraction:.0%} position size, {self.min_confidence:.0%} min confidence"


@dataclass(frozen=True)
class AutoSettings:
    min_llm_confidence: float
    max_open_positions: int
    position_size: float
    position_fraction: float
    allowed_signals: tuple[str, ...]


CATEGORY_INFO: dict[str, CategoryInfo] = {
    "SCALPING": CategoryInfo("Scalping", "Quick trades lasting seconds to minutes", "⚡",
                             ("MOMENTUM", "VOLUME_SURGE", "WHALE_ACTIVITY")),
    "SWING": CategoryInfo("Swing Trading", "Positions held for days to weeks", "📈",
                          ("BREAKOUT", "REVERSAL", "MOMENTUM")),
    "DAY_TRADING": CategoryInfo("Day Trading", "Intraday positions, closed daily", "☀️",
                                ("MOMENTUM", "BREAKOUT", "VOLUME_SURGE")),
    "LONG_TERM": CategoryInfo("Long Term", "Positions held for weeks to months", "🎯",
                              ("BREAKOUT", "REVERSAL")),
    "ARBITRAGE": CategoryInfo("Arbitrage", "Exploit price differences", "🔄", ("ARBITRAGE",)),
    "ALL": CategoryInfo("Mixed Strategy", "Flexible, all trading styles", "🌟",
                        ("BREAKOUT", "REVERSAL", "MOMENTUM", "ARBITRAGE", "VOLUME_SURGE", "WHALE_ACTIVITY")),
}

RISK_LEVELS: dict[int, RiskLevel] = {
    1: RiskLevel(1, "Very Conservative", 0.85, 0.10),
    2: RiskLevel(2, "Conservative", 0.75, 0.15),
    3: RiskLevel(3, "Moderate", 0.70, 0.20),
    4: RiskLevel(4, "Aggressive", 0.60, 0.30),
    5: RiskLevel(5, "Very Aggressive", 0.55, 0.40),
}


def _risk_level(value: Any) -> RiskLevel:
    try:
        level = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"invalid risk level: {value!r}") from None
    if level not in RISK_LEVELS:
        raise ValueError(f"risk level must be between 1 and 5, got {level}")
    return RISK_LEVELS[level]


def max_open_positions(risk_level: int, budget: float) -> int:
    """Concurrent position cap for a budget bracket."""

    if budget < 100:
        return 1
    if budget < 500:
        return 2 if risk_level <= 2 else 3
    if budget < 1000:
        return 3 if risk_level <= 2 else 5
    return min(risk_level * 2, 10)


def auto_settings(risk_level: int, budget: float, category: str) -> AutoSettings:
    level = _risk_level(risk_level)
    info = CATEGORY_INFO.get(str(category).upper())
    if info is None:
        raise ValueError(f"unknown agent category: {category!r}")
    amount = coerce_float(budget) or 0.0
    return AutoSettings(
        min_llm_confidence=level.min_confidence,
        max_open_positions=max_open_positions(level.value, amount),
        position_size=amount * level.position_fraction,
        position_fraction=level.position_fraction,
        allowed_signals=info.signals,
    )


def validate_agent_form(name: str | None, budget: Any) -> list[str]:
    """Return user-facing validation errors; an empty list means valid."""

    errors: list[str] = []
    if not str(name or "").strip():
        errors.append("Agent name is required")
    amount = coerce_float(budget)
    if amount is None or amount < MIN_BUDGET:
        errors.append("Minimum budget is $50 USDT (OKX requires $20 per trade)")
    return errors


def budget_hint(budget: Any) -> str:
    amount = coerce_float(budget) or 0.0
    if amount < MIN_BUDGET:
        return "Below the $50 minimum."
    if amount < 100:
        return "Small budget: a single position at a time."
    if amount < 1000:
        return "Medium budget: a few concurrent positions."
    return "Large budget: position count scales with risk level."


def build_agent_payload(form: Mapping[str, Any]) -> dict[str, Any]:
    """Build the create-agent request body from submitted form values."""

    errors = validate_agent_form(form.get("name"), form.get("budget"))
    if errors:
        raise ValueError("; ".join(errors))
    category = str(form.get("category") or "SCALPING").upper()
    if category not in CATEGORY_INFO:
        raise ValueError(f"unknown agent category: {category!r}")
    payload: dict[str, Any] = {
        "name": str(form["name"]).strip(),
        "category": category,
        "riskLevel": _risk_level(form.get("riskLevel", DEFAULT_RISK_LEVEL)).value,
        "budget": float(coerce_float(form.get("budget")) or 0.0),
    }
    broker = str(form.get("broker") or "").upper()
    if broker in BROKERS:
        payload["broker"] = broker
    description = str(form.get("description") or "").strip()
    if description:
        payload["description"] = description
    return payload


def summarise_agents(agents: Iterable[Agent]) -> dict[str, float]:
    """Totals shown on the home dashboard."""

    items = list(agents)
    total_pnl = sum(agent.performance.totalPnL or 0.0 for agent in items)
    total_trades = sum(agent.performance.totalTrades or 0 for agent in items)
    active = sum(1 for agent in items if agent.isActive)
    win_rates = [agent.performance.winRate for agent in items if agent.performance.totalTrades]
    return {
        "totalPnL": total_pnl,
        "totalTrades": total_trades,
        "activeAgents": active,
        "totalAgents": len(items),
        "avgWinRate": sum(win_rates) / len(win_rates) if win_rates else 0.0,
    }


def agent_symbols(agents: Iterable[Agent]) -> list[str]:
    """Distinct trading symbols referenced by agents, in first-seen order."""

    symbols: list[str] = []
    for agent in agents:
        symbol = (agent.symbol or "").strip().upper()
        if symbol and symbol not in symbols:
            symbols.append(symbol)
    return symbols
