"""Ranking of AI recommendations and extraction of immediate trading signals."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from .envs import symbol_list
from .formatting import coerce_float
from .models import Analysis, MarketData

DEFAULT_PRIORITY_SYMBOLS: tuple[str, ...] = (
    "BTCUSDT",
    "ETHUSDT",
    "SOLUSDT",
    "DOGEUSDT",
    "TRXUSDT",
    "ADAUSDT",
)
FALLBACK_SYMBOLS: tuple[str, ...] = DEFAULT_PRIORITY_SYMBOLS + ("MATICUSDT", "LINKUSDT")

MAX_RECOMMENDATIONS = 12
IMMEDIATE_CONFIDENCE = 0.7
DEFAULT_RISK_PCT = 2.0


@dataclass(frozen=True)
class ProfitPotential:
    profit_pct: float
    risk_pct: float
    risk_reward: float
    potential: str


@dataclass(frozen=True)
class Recommendation:
    symbol: str
    analysis: Analysis
    market: MarketData
    profit: ProfitPotential | None
    score: float


def profit_potential(analysis: Analysis, market: MarketData) -> ProfitPotential | None:
    """Return upside/risk figures, or ``None`` without a target or a price.

    ``profit_pct`` is reported as an absolute value while ``potential`` is
    graded on the signed move, so a SELL target below the price grades low.
    """

    target = coerce_float(analysis.targetPrice)
    price = coerce_float(market.price)
    if not target or not price:
        return None

    profit = (target - price) / price * 100
    stop = coerce_float(analysis.stopLoss)
    risk = (price - stop) / price * 100 if stop else DEFAULT_RISK_PCT
    risk_reward = profit / risk if risk > 0 else 0.0
    if profit > 3:
        potential = "high"
    elif profit > 1:
        potential = "medium"
    else:
        potential = "low"
    return ProfitPotential(profit_pct=abs(profit), risk_pct=risk, risk_reward=risk_reward, potential=potential)


def top_recommendations(
    symbols: Iterable[str],
    analyses: Mapping[str, Analysis],
    market: Mapping[str, MarketData],
    *,
    limit: int = MAX_RECOMMENDATIONS,
) -> list[Recommendation]:
    """Rank symbols having both an analysis and market data by ``confidence*100 + profit%``."""

    ranked: list[Recommendation] = []
    for symbol in symbols:
        analysis = analyses.get(symbol)
        snapshot = market.get(symbol)
        if analysis is None or snapshot is None:
            continue
        profit = profit_potential(analysis, snapshot)
        confidence = coerce_float(analysis.confidence) or 0.0
        score = confidence * 100 + (profit.profit_pct if profit else 0.0)
        ranked.append(Recommendation(symbol=symbol, analysis=analysis, market=snapshot, profit=profit, score=score))

    ranked.sort(key=lambda item: item.score, reverse=True)
    return ranked[: max(limit, 0)]


def immediate_signals(symbol: str, realtime: Any, *, now: datetime | None = None) -> dict[str, Any]:
    """Turn a real-time analysis payload into actionable signals.

    A BUY/SELL consensus above 70% confidence yields an ``IMMEDIATE_*``
    signal; any risk warnings add a ``RISK_WARNING`` entry.
    """

    data = realtime if isinstance(realtime, Mapping) else {}
    consensus = data.get("consensus") if isinstance(data.get("consensus"), Mapping) else {}
    signals: list[dict[str, Any]] = []

    recommendation = str(consensus.get("recommendation") or "").upper()
    confidence = coerce_float(consensus.get("confidence")) or 0.0
    if recommendation in {"BUY", "SELL"} and confidence > IMMEDIATE_CONFIDENCE:
        signals.append(
            {
                "type": f"IMMEDIATE_{recommendation}",
                "confidence": confidence,
                "targetPrice": consensus.get("targetPrice"),
                "stopLoss": consensus.get("stopLoss"),
                "timeWindow": consensus.get("timeToAction"),
                "reasoning": consensus.get("reasoning"),
            }
        )

    warnings = data.get("riskWarnings")
    if isinstance(warnings, list) and warnings:
        signals.append(
            {
                "type": "RISK_WARNING",
                "level": "HIGH",
                "warnings": list(warnings),
                "action": "REDUCE_POSITION_OR_WAIT",
            }
        )

    stamp = now or datetime.now(timezone.utc)
    return {
        "symbol": symbol,
        "signals": signals,
        "signalCount": len(signals),
        "hasImmediateAction": any("IMMEDIATE" in signal["type"] for signal in signals),
        "timestamp": stamp.isoformat(),
    }


def recommendation_tone(label: str | None) -> str:
    return {"BUY": "success", "SELL": "danger", "HOLD": "warning"}.get(str(label or "").upper(), "neutral")


def confidence_tone(confidence: Any) -> str:
    value = coerce_float(confidence)
    if value is None:
        return "neutral"
    if value >= 0.8:
        return "success"
    if value >= 0.6:
        return "warning"
    return "danger"


def split_symbols(payload: Any) -> tuple[list[str], list[str]]:
    """Return ``(all, priority)`` from a symbols response.

    The backend answers with ``{"all": [...], "priority": [...]}``; a bare
    list is treated as both. Missing priorities fall back to the defaults.
    """

    if isinstance(payload, Mapping):
        every = symbol_list(payload.get("all"))
        priority = symbol_list(payload.get("priority"))
    else:
        every = symbol_list(payload)
        priority = list(every)
    if not priority:
        priority = list(DEFAULT_PRIORITY_SYMBOLS)
    if not every:
        every = list(priority)
    return every, priority
