"""Plausible stand-in payloads for when the backend cannot be reached.

Only used when ``Settings.mock_fallback`` is enabled and the failure looks
like an outage (see :func:`utils.errors.should_use_mock_data`). Every
generator takes an optional ``random.Random`` so tests can seed it.
"""

from __future__ import annotations

import random
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

from .models import ApiResponse

MOCK_MESSAGE = "Mock data generated successfully"

BASE_PRICES: dict[str, float] = {
    "BTCUSDT": 43000,
    "ETHUSDT": 2600,
    "SOLUSDT": 95,
    "PUMPUSDT": 0.0025,
    "TRXUSDT": 0.1,
    "ADAUSDT": 0.45,
    "MATICUSDT": 0.8,
    "LINKUSDT": 15,
    "UNIUSDT": 7,
    "AVAXUSDT": 25,
    "DOTUSDT": 6,
    "LTCUSDT": 75,
    "BNBUSDT": 310,
    "XRPUSDT": 0.6,
    "SHIBUSDT": 0.000024,
    "ATOMUSDT": 8,
    "NEARUSDT": 2.5,
    "FTMUSDT": 0.4,
}

BASE_VOLUMES: dict[str, float] = {
    "BTCUSDT": 25_000_000,
    "ETHUSDT": 15_000_000,
    "SOLUSDT": 8_000_000,
    "PUMPUSDT": 50_000_000,
    "TRXUSDT": 12_000_000,
    "ADAUSDT": 6_000_000,
}

_TIMEFRAME_SECONDS = {
    "1m": 60,
    "5m": 300,
    "15m": 900,
    "30m": 1800,
    "1h": 3600,
    "4h": 14400,
    "1d": 86400,
}

_OPPORTUNITY_REASONS = {
    "BREAKOUT": "Technical breakout pattern with strong volume confirmation and momentum",
    "REVERSAL": "Oversold conditions with bullish divergence at key support level",
    "MOMENTUM": "Strong momentum continuation with accelerating trend characteristics",
    "ARBITRAGE": "Cross-exchange price discrepancy with profitable arbitrage window",
    "VOLUME_SURGE": "Unusual volume spike indicating institutional accumulation pattern",
    "WHALE_ACTIVITY": "Large order flow detected suggesting institutional positioning",
}

_WHALE_NOTES = (
    "Large volume spike detected",
    "Stealth accumulation pattern",
    "Price level breakthrough",
    "Institutional flow pattern",
)


def _rng(rng: random.Random | None) -> random.Random:
    return rng if rng is not None else random.Random()


def mock_price(symbol: str, rng: random.Random | None = None) -> float:
    """Base price of ``symbol`` with a ±5 % variation."""

    gen = _rng(rng)
    return BASE_PRICES.get(symbol.upper(), 1.0) * (1 + gen.uniform(-0.05, 0.05))


def mock_volume(symbol: str, rng: random.Random | None = None) -> int:
    gen = _rng(rng)
    return int(BASE_VOLUMES.get(symbol.upper(), 5_000_000) * gen.uniform(0.5, 2.0))


def generate_market_data(symbol: str, rng: random.Random | None = None) -> dict[str, Any]:
    gen = _rng(rng)
    price = mock_price(symbol, gen)
    change = gen.uniform(-8, 12)
    volume = mock_volume(symbol, gen)
    return {
        "symbol": symbol,
        "price": price,
        "change24h": change,
        "priceChangePercent": change,
        "volume": volume,
        "high24h": price * (1 + abs(change) / 100 + 0.02),
        "low24h": price * (1 - abs(change) / 100 - 0.02),
        "quoteVolume": volume * price,
        "openPrice": price * (1 - change / 100),
        "timestamp": int(time.time() * 1000),
        "mock": True,
    }


def generate_chart_klines(
    symbol: str,
    timeframe: str = "1h",
    limit: int = 200,
    rng: random.Random | None = None,
    *,
    end_ms: int | None = None,
) -> list[list[float]]:
    """Random-walk candles ``[open_time, open, high, low, close, volume]``, oldest first."""

    gen = _rng(rng)
    step_ms = _TIMEFRAME_SECONDS.get(timeframe, 3600) * 1000
    end = end_ms if end_ms is not None else int(time.time() * 1000)
    count = max(int(limit), 0)
    price = mock_price(symbol, gen)
    base_volume = BASE_VOLUMES.get(symbol.upper(), 5_000_000) / 24
    klines: list[list[float]] = []
    for index in range(count):
        open_price = price
        close_price = max(open_price * (1 + gen.gauss(0, 0.01)), 1e-12)
        high = max(open_price, close_price) * (1 + abs(gen.gauss(0, 0.004)))
        low = min(open_price, close_price) * (1 - abs(gen.gauss(0, 0.004)))
        volume = base_volume * gen.uniform(0.5, 1.5)
        open_time = end - (count - index) * step_ms
        klines.append([open_time, open_price, high, low, close_price, volume])
        price = close_price
    return klines


def generate_whale_activity(
    symbols: Iterable[str],
    min_size: float = 50_000,
    rng: random.Random | None = None,
) -> list[dict[str, Any]]:
    gen = _rng(rng)
    pool = list(symbols)
    if not pool:
        return []
    now = datetime.now(timezone.utc)
    activities = []
    for index in range(gen.randint(3, 7)):
        symbol = gen.choice(pool)
        side = gen.choice(("BUY", "SELL"))
        price = mock_price(symbol, gen)
        value = gen.uniform(min_size, max(min_size, 5_000_000))
        activities.append(
            {
                "id": f"whale-{symbol}-{index}",
                "symbol": symbol,
                "type": side,
                "size": value / price,
                "price": price,
                "value": value,
                "impact": gen.choice(("LOW", "MEDIUM", "HIGH", "CRITICAL")),
                "confidence": gen.uniform(0.6, 0.95),
                "timestamp": (now - timedelta(seconds=gen.uniform(0, 3600))).isoformat(),
                "exchange": gen.choice(("Binance", "Coinbase", "Kraken", "OKX")),
                "orderType": gen.choice(("MARKET", "LIMIT", "ICEBERG", "TWAP", "VWAP")),
                "priceImpact": gen.uniform(0.1, 5.0),
                "volumeRatio": gen.uniform(1.5, 8.0),
                "unusualActivity": list(_WHALE_NOTES[: gen.randint(1, 2)]),
                "prediction": {
                    "direction": "BULLISH" if side == "BUY" else "BEARISH",
                    "timeframe": gen.choice(("15m", "30m", "1h", "4h")),
                    "probability": gen.uniform(0.65, 0.9),
                },
            }
        )
    activities.sort(key=lambda item: item["timestamp"], reverse=True)
    return activities


def generate_opportunities(
    symbols: Iterable[str],
    min_score: float = 70,
    rng: random.Random | None = None,
) -> list[dict[str, Any]]:
    """Opportunities with a risk/reward above 1.5, best score first."""

    gen = _rng(rng)
    pool = list(symbols)
    if not pool:
        return []
    opportunities = []
    for _ in range(gen.randint(4, 9)):
        symbol = gen.choice(pool)
        category = gen.choice(tuple(_OPPORTUNITY_REASONS))
        expected = gen.uniform(2.0, 12.0)
        entry = mock_price(symbol, gen)
        target = entry * (1 + expected / 100)
        stop = entry * (1 - gen.uniform(0.015, 0.05))
        risk_reward = abs(target - entry) / abs(entry - stop)
        if risk_reward <= 1.5:
            continue
        opportunities.append(
            {
                "symbol": symbol,
                "score": int(gen.uniform(min(min_score, 100), 100)),
                "confidence": gen.uniform(0.65, 0.95),
                "category": category,
                "timeframe": gen.choice(("15m", "30m", "1h", "4h")),
                "expectedReturn": expected,
                "riskLevel": gen.choice(("LOW", "MEDIUM", "HIGH")),
                "entry": entry,
                "target": target,
                "stopLoss": stop,
                "riskReward": risk_reward,
                "volume24h": mock_volume(symbol, gen),
                "priceChange": gen.uniform(-5, 10),
                "reasoning": _OPPORTUNITY_REASONS[category],
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        )
    opportunities.sort(key=lambda item: item["score"], reverse=True)
    return opportunities


def generate_confluence(symbol: str, rng: random.Random | None = None) -> dict[str, Any]:
    """Real-time consensus stand-in, same shape as the real-time analysis payload."""

    gen = _rng(rng)
    return {
        "symbol": symbol,
        "score": gen.randint(60, 99),
        "confidence": gen.uniform(0.6, 1.0),
        "strongestTimeframe": gen.choice(("1h", "4h", "1d")),
        "factors": {
            "rsi": gen.uniform(20, 80),
            "macdScore": gen.uniform(-1, 1),
            "trendScore": gen.uniform(-1, 1),
            "supportResistance": gen.uniform(-1, 1),
        },
        "consensus": {
            "recommendation": "BUY" if gen.random() > 0.5 else "SELL",
            "confidence": gen.uniform(0.6, 1.0),
            "targetPrice": 0,
            "stopLoss": 0,
            "timeToAction": "15-30 minutes",
            "reasoning": "Mock analysis - real-time API unavailable",
        },
        "riskWarnings": [],
    }


def wrap_as_api_response(data: Any) -> ApiResponse:
    return ApiResponse(success=True, data=data, message=MOCK_MESSAGE)
