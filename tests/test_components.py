from __future__ import annotations

from types import SimpleNamespace

from mariposa_app.ui.components import (
    StatusBadge,
    agent_rows,
    api_key_rows,
    log_rows,
    opportunity_rows,
    page_path,
    position_rows,
    status_badges,
    token_grid_rows,
    trade_rows,
    var_method_rows,
    whale_rows,
)
from mariposa_app.utils.formatting import PLACEHOLDER
from mariposa_app.utils.models import Agent, ApiKey, MT4Position, Trade


def test_status_badge_normalises_tone_and_renders_caption() -> None:
    badge = StatusBadge("Backend", 42, tone="purple", caption="ok")

    assert badge.tone == "neutral"
    assert badge.value == "42"
    html = badge.render()
    assert "<small>ok</small>" in html
    assert "status-badge__value'>42<" in html


def test_status_badges_cover_backend_feed_and_bridge() -> None:
    badges = status_badges(
        backend_ok=True,
        ws_snapshot={"connected": True, "last_message_at": 990.0},
        bridge={"connected": False, "latencyMs": None, "error": "refused"},
        now=1000.0,
    )

    assert [badge.label for badge in badges] == ["Backend", "Live feed", "MT4 bridge"]
    assert badges[0].tone == "success"
    assert badges[1].caption == "last message 10s ago"
    assert badges[2].value == "Disconnected"
    assert badges[2].caption == "refused"


def test_status_badges_for_unknown_backend_and_reconnecting_feed() -> None:
    badges = status_badges(backend_ok=None, ws_snapshot={"running": True, "last_error": "timeout"})

    assert badges[0].value == "Unknown"
    assert badges[1].value == "Reconnecting"
    assert badges[1].tone == "warning"
    assert badges[1].caption == "timeout"
    assert len(badges) == 2


def test_agent_rows_describe_category_and_status() -> None:
    agent = Agent.model_validate(
        {
            "_id": "a1",
            "name": "Scalper",
            "isActive": True,
            "category": "scalping",
            "performance": {"totalTrades": 12, "winRate": 58.3, "totalPnL": "42.5"},
        }
    )

    row = agent_rows([agent])[0]

    assert row["id"] == "a1"
    assert row["status"] == "🟢 Active"
    assert row["category"] == "⚡ Scalping"
    assert row["broker"] == PLACEHOLDER
    assert row["pnl"] == 42.5


def test_trade_rows_prefer_filled_values() -> None:
    trade = Trade.model_validate(
        {"symbol": "BTCUSDT", "side": "buy", "quantity": 1, "price": 100, "filledQuantity": 0.5, "filledPrice": 101}
    )

    row = trade_rows([trade])[0]

    assert row["side"] == "BUY"
    assert row["quantity"] == 0.5
    assert row["price"] == 101
    assert row["status"] == PLACEHOLDER


def test_var_method_rows_scale_to_percent_and_dollars() -> None:
    data = SimpleNamespace(
        portfolio_value=10_000.0,
        var_results=[
            SimpleNamespace(
                method="HISTORICAL", value=0.05, expected_shortfall=0.07, backtest_success=95.0, reliability="HIGH"
            )
        ],
    )

    row = var_method_rows(data)[0]

    assert row["method"] == "Historical Simulation"
    assert row["var"] == 5.0
    assert row["var_usd"] == 500.0
    assert row["reliability"] == "HIGH"


def test_api_key_rows_mask_prefix_and_describe_tier() -> None:
    key = ApiKey.model_validate({"keyId": "k1", "name": "Bot", "tier": "PRO", "keyPrefix": "mk_live_abcdef", "isActive": False})

    row = api_key_rows([key])[0]

    assert row["id"] == "k1"
    assert row["key"] == "mk_live_••••••"
    assert row["tier"] == "pro"
    assert row["limits"] == "10,000/day · 200/min"
    assert row["status"] == "Revoked"
    assert row["expires"] == "Never"


def test_feed_rows_skip_non_mappings_and_accept_aliases() -> None:
    whales = whale_rows([{"symbol": "BTCUSDT", "type": "SELL", "size": "2", "value": 130000}, "junk"])
    opportunities = opportunity_rows([{"symbol": "ETHUSDT", "type": "BREAKOUT", "entryPrice": "3000", "score": 81}])

    assert len(whales) == 1
    assert whales[0]["side"] == "SELL"
    assert whales[0]["size"] == 2.0
    assert opportunities[0]["category"] == "BREAKOUT"
    assert opportunities[0]["entry"] == 3000.0
    assert opportunities[0]["target"] is None


BULK_TOKENS = {
    "tokens": [
        {
            "symbol": "SOLUSDT",
            "rank": 1,
            "marketData": {"symbol": "SOLUSDT", "price": "182.5", "change24h": 4.2},
            "analysis": {"recommendation": "BUY", "confidence": 0.81, "targetPrice": 195, "stopLoss": 176},
            "metrics": {"profitPotential": 8.4, "riskScore": 3, "momentumScore": 7},
        },
        {
            "symbol": "ETHUSDT",
            "rank": 2,
            "marketData": {"price": 3100},
            "analysis": {"recommendation": "HOLD", "confidence": 0.55},
            "metrics": {},
        },
        {"symbol": "PUMPUSDT", "rank": 3, "marketData": {"price": 0.004}, "error": "analysis timed out"},
        "junk",
    ]
}


def test_token_grid_rows_flatten_bulk_analysis() -> None:
    rows = token_grid_rows(BULK_TOKENS)

    assert [row["symbol"] for row in rows] == ["SOLUSDT", "ETHUSDT", "PUMPUSDT"]
    assert rows[0]["price"] == 182.5
    assert rows[0]["target"] == 195.0
    assert rows[0]["profit_potential"] == 8.4
    assert rows[1]["stop"] is None
    assert rows[2]["recommendation"] is None
    assert rows[2]["error"] == "analysis timed out"


def test_token_grid_rows_filter_by_signal_and_confidence() -> None:
    assert [row["symbol"] for row in token_grid_rows(BULK_TOKENS, recommendation="BUY")] == ["SOLUSDT"]
    assert [row["symbol"] for row in token_grid_rows(BULK_TOKENS, min_confidence=60)] == ["SOLUSDT"]
    assert [row["symbol"] for row in token_grid_rows(BULK_TOKENS, min_confidence=50)] == ["SOLUSDT", "ETHUSDT"]
    assert token_grid_rows({"tokens": None}) == []
    assert len(token_grid_rows(BULK_TOKENS["tokens"])) == 3


def test_position_rows_map_numeric_type_to_side() -> None:
    positions = [
        MT4Position.model_validate({"ticket": 1, "symbol": "EURUSD", "type": 1}),
        MT4Position.model_validate({"ticket": 2, "symbol": "XAUUSD", "side": "BUY", "type": 1}),
    ]

    rows = position_rows(positions)

    assert [row["side"] for row in rows] == ["SELL", "BUY"]


def test_log_rows_filter_and_reverse() -> None:
    records = [
        {"ts": "1", "event": "backend.request", "severity": "info", "payload": {"path": "/agents"}},
        {"ts": "2", "event": "backend.error", "severity": "error", "payload": {"err": "boom"}},
        {"ts": "3", "event": "ws.connected", "severity": "info", "payload": {}},
        "not a record",
    ]

    assert [row["time"] for row in log_rows(records)] == ["3", "2", "1"]
    assert [row["event"] for row in log_rows(records, level="ERROR")] == ["backend.error"]
    assert [row["time"] for row in log_rows(records, query="AGENTS")] == ["1"]


def test_page_path_points_into_package() -> None:
    assert page_path("00_Login.py") == "mariposa_app/pages/00_Login.py"
