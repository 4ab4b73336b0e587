"""Position sizing suggestions from price, volatility and AI consensus."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..formatting import coerce_float, safe_get
from ..ohlcv import average_true_range

ATR_PERIOD = 14
ATR_FALLBACK_PCT = 0.02
AVG_WIN = 2.5
AVG_LOSS = 1.0
HIGH_CONFIDENCE = 0.75
STOP_LOSS_STEPS: tuple[float, ...] = (1, 2, 3, 5)
DEFAULT_VOLATILITY = 2.0
SIZING_TIMEFRAME = "15m"
SIZING_CANDLES = 50


@dataclass(frozen=True)
class KellyCriterion:
    win_rate: float
    avg_win: float
    avg_loss: float
    kelly_percentage: float
    recommendation: str


@dataclass(frozen=True)
class VolatilitySizing:
    atr: float
    volatility_adjustment: float
    recommended_size: float
    risk_level: str


@dataclass(frozen=True)
class SizeRecommendation:
    method: str
    size: float
    reasoning: str
    confidence: float
    risk_rating: int


@dataclass(frozen=True)
class RiskScenario:
    name: str
    probability: float
    potential_loss: float
    description: str


@dataclass(frozen=True)
class StopLossLevel:
    price: float
    distance: float
    position_size: float


@dataclass
class PositionSizingData:
    symbol: str
    current_price: float
    account_balance: float
    risk_per_trade: float
    kelly: KellyCriterion
    volatility: VolatilitySizing
    recommendations: list[SizeRecommendation] = field(default_factory=list)
    optimal_amount: float = 0.0
    optimal_percentage: float = 0.0
    risk_scenarios: list[RiskScenario] = field(default_factory=list)
    stop_loss_levels: list[StopLossLevel] = field(default_factory=list)


def kelly_criterion(confidence: Any) -> KellyCriterion:
    """Kelly fraction using the consensus confidence as win rate (0.3 to 0.8)."""

    value = coerce_float(confidence)
    win_rate = max(0.3, min(0.8, 0.5 if value is None else value))
    kelly = ((win_rate * AVG_WIN) - (1 - win_rate) * AVG_LOSS) / AVG_WIN * 100
    kelly = max(0.0, min(25.0, kelly))
    if kelly > 10:
        advice = "Aggressive sizing possible"
    elif kelly > 5:
        advice = "Moderate sizing recommended"
    else:
        advice = "Conservative sizing advised"
    return KellyCriterion(win_rate, AVG_WIN, AVG_LOSS, kelly, advice)


def sizing_inputs(real_time: Any) -> tuple[float | None, float]:
    """Consensus confidence and market volatility from a real-time analysis payload."""

    confidence = coerce_float(safe_get(real_time, "consensus.confidence"))
    volatility = coerce_float(safe_get(real_time, "marketConditions.volatility"))
    return confidence, DEFAULT_VOLATILITY if volatility is None else volatility


def volatility_adjustment(volatility: float) -> float:
    return max(0.25, min(2.0, 2 / max(0.5, volatility / 2)))


def volatility_risk_level(volatility: float) -> str:
    if volatility > 8:
        return "EXTREME"
    if volatility > 5:
        return "HIGH"
    if volatility > 3:
        return "MEDIUM"
    return "LOW"


def _safe_div(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


def position_sizing(
    symbol: str,
    *,
    current_price: Any,
    klines: Any = None,
    consensus_confidence: Any = None,
    volatility: Any = None,
    balance: float = 10_000.0,
    risk_pct: float = 2.0,
    stop_loss_pct: float = 2.0,
) -> PositionSizingData:
    """Compare four sizing methods and blend the high-confidence ones.

    Sizes are expressed in units of the base asset. A zero or missing price
    yields a report without recommendations.
    """

    price = coerce_float(current_price) or 0.0
    vol = coerce_float(volatility)
    vol = 2.0 if vol is None else vol
    atr = average_true_range(klines, ATR_PERIOD) if klines else None
    if atr is None:
        atr = price * ATR_FALLBACK_PCT

    kelly = kelly_criterion(consensus_confidence)
    adjustment = volatility_adjustment(vol)
    vol_sizing = VolatilitySizing(
        atr=atr,
        volatility_adjustment=adjustment,
        recommended_size=risk_pct * adjustment,
        risk_level=volatility_risk_level(vol),
    )
    risk_amount = balance * risk_pct / 100

    data = PositionSizingData(
        symbol=symbol,
        current_price=price,
        account_balance=balance,
        risk_per_trade=risk_pct,
        kelly=kelly,
        volatility=vol_sizing,
        risk_scenarios=[
            RiskScenario("Normal Market", 0.7, risk_amount, "Standard stop loss hit in normal conditions"),
            RiskScenario("Gap Down", 0.15, risk_amount * 2, "Gap below stop loss level"),
            RiskScenario("Flash Crash", 0.05, risk_amount * 5, "Extreme market event with significant slippage"),
            RiskScenario("Black Swan", 0.01, balance * 0.5, "Catastrophic market event"),
        ],
    )
    if price <= 0:
        return data

    if kelly.kelly_percentage > 10:
        kelly_rating = 8
    elif kelly.kelly_percentage > 5:
        kelly_rating = 6
    else:
        kelly_rating = 4
    if vol > 5:
        vol_rating = 7
    elif vol > 3:
        vol_rating = 5
    else:
        vol_rating = 3

    data.recommendations = [
        SizeRecommendation(
            "Fixed Risk %",
            _safe_div(risk_amount, price * stop_loss_pct / 100),
            f"Risk {risk_pct:g}% of capital with {stop_loss_pct:g}% stop loss",
            0.9,
            5,
        ),
        SizeRecommendation(
            "Kelly Criterion",
            balance * kelly.kelly_percentage / 100 / price,
            f"Kelly formula suggests {kelly.kelly_percentage:.1f}% allocation",
            0.7,
            kelly_rating,
        ),
        SizeRecommendation(
            "Volatility Adjusted",
            balance * vol_sizing.recommended_size / 100 / price,
            f"Adjusted for {vol:.1f}% volatility",
            0.8,
            vol_rating,
        ),
        SizeRecommendation(
            "ATR Based",
            _safe_div(risk_amount, atr * 2),
            f"2x ATR stop with {risk_pct:g}% risk",
            0.85,
            4,
        ),
    ]

    strong = [rec for rec in data.recommendations if rec.confidence > HIGH_CONFIDENCE]
    weight = sum(rec.confidence for rec in strong)
    data.optimal_amount = _safe_div(sum(rec.size * rec.confidence for rec in strong), weight)
    data.optimal_percentage = _safe_div(data.optimal_amount * price, balance) * 100
    data.stop_loss_levels = [
        StopLossLevel(
            price=price * (1 - step / 100),
            distance=step,
            position_size=risk_amount / (price * step / 100),
        )
        for step in STOP_LOSS_STEPS
    ]
    return data


def rating_tone(rating: int) -> str:
    if rating >= 8:
        return "danger"
    if rating >= 6:
        return "warning"
    if rating >= 4:
        return "neutral"
    return "success"
