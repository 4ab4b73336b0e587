import random

import pytest

from mariposa_app.utils import mock_data
from mariposa_app.utils.ohlcv import klines_to_frame


def test_mock_price_stays_within_five_percent():
    rng = random.Random(1)
    for _ in range(50):
        assert 43000 * 0.95 <= mock_data.mock_price("btcusdt", rng) <= 43000 * 1.05
    assert 0.95 <= mock_data.mock_price("UNKNOWNUSDT", rng) <= 1.05


def test_generators_are_reproducible_with_seed():
    first = mock_data.generate_market_data("ETHUSDT", random.Random(42))
    second = mock_data.generate_market_data("ETHUSDT", random.Random(42))

    first.pop("timestamp")
    second.pop("timestamp")
    assert first == second
    assert first["mock"] is True
    assert first["low24h"] < first["price"] < first["high24h"]


def test_chart_klines_form_a_continuous_walk():
    klines = mock_data.generate_chart_klines("SOLUSDT", "4h", 30, random.Random(5), end_ms=1_700_000_000_000)

    assert len(klines) == 30
    assert klines[-1][0] == 1_700_000_000_000 - 4 * 3_600_000
    assert klines[1][0] - klines[0][0] == 4 * 3_600_000
    for previous, current in zip(klines, klines[1:]):
        assert current[1] == previous[4]
    for _time, open_, high, low, close, volume in klines:
        assert low <= min(open_, close) <= max(open_, close) <= high
        assert volume > 0
    assert len(klines_to_frame(klines)) == 30
    assert mock_data.generate_chart_klines("SOLUSDT", limit=0) == []


def test_whale_activity_shape():
    activities = mock_data.generate_whale_activity(["BTCUSDT", "ETHUSDT"], min_size=100_000, rng=random.Random(3))

    assert 3 <= len(activities) <= 7
    for item in activities:
        assert item["symbol"] in {"BTCUSDT", "ETHUSDT"}
        assert item["value"] >= 100_000
        assert item["size"] * item["price"] == pytest.approx(item["value"])
        assert item["prediction"]["direction"] == ("BULLISH" if item["type"] == "BUY" else "BEARISH")
    timestamps = [item["timestamp"] for item in activities]
    assert timestamps == sorted(timestamps, reverse=True)
    assert mock_data.generate_whale_activity([]) == []


def test_opportunities_respect_score_and_risk_reward():
    opportunities = mock_data.generate_opportunities(["BTCUSDT", "SOLUSDT"], min_score=80, rng=random.Random(11))

    scores = [item["score"] for item in opportunities]
    assert scores == sorted(scores, reverse=True)
    for item in opportunities:
        assert 80 <= item["score"] <= 100
        assert item["riskReward"] > 1.5
        assert item["stopLoss"] < item["entry"] < item["target"]
        assert item["reasoning"] == mock_data._OPPORTUNITY_REASONS[item["category"]]


def test_confluence_and_response_wrapper():
    payload = mock_data.generate_confluence("ADAUSDT", random.Random(9))

    assert payload["symbol"] == "ADAUSDT"
    assert payload["consensus"]["recommendation"] in {"BUY", "SELL"}
    assert 60 <= payload["score"] <= 99

    response = mock_data.wrap_as_api_response([1, 2])
    assert response.success is True
    assert response.data == [1, 2]
    assert response.message == mock_data.MOCK_MESSAGE
