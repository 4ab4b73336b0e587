import pytest

from mariposa_app.utils import agents
from mariposa_app.utils.models import Agent


@pytest.mark.parametrize(
    ("risk", "budget", "expected"),
    [(5, 60, 1), (2, 250, 2), (3, 250, 3), (1, 700, 3), (4, 700, 5), (3, 5000, 6), (5, 5000, 10)],
)
def test_max_open_positions_by_budget_bracket(risk, budget, expected):
    assert agents.max_open_positions(risk, budget) == expected


def test_auto_settings_follow_risk_preset_and_category():
    settings = agents.auto_settings(4, 1000, "swing")

    assert settings.min_llm_confidence == 0.60
    assert settings.position_fraction == 0.30
    assert settings.position_size == pytest.approx(300.0)
    assert settings.max_open_positions == 8
    assert settings.allowed_signals == ("BREAKOUT", "REVERSAL", "MOMENTUM")


def test_auto_settings_reject_bad_inputs():
    with pytest.raises(ValueError, match="between 1 and 5"):
        agents.auto_settings(6, 100, "SCALPING")
    with pytest.raises(ValueError, match="invalid risk level"):
        agents.auto_settings("high", 100, "SCALPING")
    with pytest.raises(ValueError, match="unknown agent category"):
        agents.auto_settings(3, 100, "HODL")


def test_risk_level_description():
    assert agents.RISK_LEVELS[1].description == "10% position size, 85% min confidence"


def test_validate_agent_form():
    assert agents.validate_agent_form("Scalper", 50) == []
    assert agents.validate_agent_form("  ", "49.99") == [
        "Agent name is required",
        "Minimum budget is $50 USDT (OKX requires $20 per trade)",
    ]
    assert agents.validate_agent_form("x", None)


def test_budget_hint_brackets():
    assert agents.budget_hint(10).startswith("Below")
    assert agents.budget_hint(75).startswith("Small")
    assert agents.budget_hint(500).startswith("Medium")
    assert agents.budget_hint(2000).startswith("Large")


def test_build_agent_payload_normalises_form():
    payload = agents.build_agent_payload(
        {
            "name": "  BTC scalper ",
            "category": "scalping",
            "riskLevel": "2",
            "budget": "150",
            "broker": "okx",
            "description": "",
        }
    )

    assert payload == {
        "name": "BTC scalper",
        "category": "SCALPING",
        "riskLevel": 2,
        "budget": 150.0,
        "broker": "OKX",
    }


def test_build_agent_payload_defaults_and_errors():
    payload = agents.build_agent_payload({"name": "Mixed", "budget": 80, "broker": "KRAKEN", "description": " notes "})

    assert payload["category"] == "SCALPING"
    assert payload["riskLevel"] == agents.DEFAULT_RISK_LEVEL
    assert payload["description"] == "notes"
    assert "broker" not in payload

    with pytest.raises(ValueError, match="Minimum budget"):
        agents.build_agent_payload({"name": "Tiny", "budget": 10})
    with pytest.raises(ValueError, match="unknown agent category"):
        agents.build_agent_payload({"name": "Odd", "budget": 100, "category": "HODL"})


def _agent(**overrides):
    base = {"_id": "a1", "name": "A", "isActive": True, "symbol": "btcusdt"}
    base.update(overrides)
    return Agent.model_validate(base)


def test_summarise_agents_totals():
    items = [
        _agent(performance={"totalTrades": 10, "winRate": 60, "totalPnL": "12.5"}),
        _agent(_id="a2", isActive=False, performance={"totalTrades": 0, "winRate": 0, "totalPnL": -2.5}),
        _agent(_id="a3", performance={"totalTrades": 5, "winRate": 40, "totalPnL": 5}),
    ]

    summary = agents.summarise_agents(items)

    assert summary == {
        "totalPnL": pytest.approx(15.0),
        "totalTrades": 15,
        "activeAgents": 2,
        "totalAgents": 3,
        "avgWinRate": pytest.approx(50.0),
    }
    assert agents.summarise_agents([])["avgWinRate"] == 0.0


def test_agent_symbols_are_distinct_and_upper_cased():
    items = [_agent(), _agent(_id="a2", symbol="BTCUSDT"), _agent(_id="a3", symbol="ethusdt"), _agent(_id="a4", symbol=None)]

    assert agents.agent_symbols(items) == ["BTCUSDT", "ETHUSDT"]
