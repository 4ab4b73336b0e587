from __future__ import annotations

import pytest

from mariposa_app.utils import models
from mariposa_app.utils.models import Agent, ApiKey, ApiResponse, MarketData, User, parse_list, parse_one


@pytest.fixture(autouse=True)
def _silence_log(monkeypatch: pytest.MonkeyPatch) -> list[tuple[str, dict]]:
    calls: list[tuple[str, dict]] = []
    monkeypatch.setattr(models, "log", lambda event, **payload: calls.append((event, payload)))
    return calls


def test_mongo_id_alias_and_defaults() -> None:
    agent = parse_one(Agent, {"_id": "abc", "budget": "250.5"})

    assert agent is not None
    assert agent.id == "abc"
    assert agent.name == "Unnamed agent"
    assert agent.budget == 250.5
    assert agent.performance.totalTrades == 0
    assert agent.allowedSignalCategories == []


def test_unknown_fields_are_kept() -> None:
    market = parse_one(MarketData, {"symbol": "BTCUSDT", "price": "64000", "fundingRate": 0.01})

    assert market.price == 64000.0
    assert market.fundingRate == 0.01


def test_api_key_accepts_key_id() -> None:
    assert parse_one(ApiKey, {"keyId": "k-1"}).id == "k-1"
    assert parse_one(User, {"id": 7}).id == "7"


def test_parse_one_rejects_non_mappings_and_invalid_payloads(_silence_log) -> None:
    assert parse_one(Agent, None) is None
    assert parse_one(Agent, ["x"]) is None
    assert parse_one(Agent, {"riskLevel": "high"}) is None
    assert _silence_log[0][0] == "models.parse.invalid"
    assert _silence_log[0][1]["model"] == "Agent"


def test_parse_one_passes_instances_through() -> None:
    response = ApiResponse(success=True)

    assert parse_one(ApiResponse, response) is response


def test_parse_list_skips_invalid_items() -> None:
    agents = parse_list(Agent, [{"_id": "a"}, "junk", {"riskLevel": "high"}, {"id": "b"}])

    assert [agent.id for agent in agents] == ["a", "b"]
    assert parse_list(Agent, {"_id": "a"}) == []
