import pytest

from mariposa_app.utils.risk import sizing


@pytest.mark.parametrize(
    ("confidence", "kelly", "advice"),
    [
        (0.6, 25.0, "Aggressive sizing possible"),
        (None, 25.0, "Aggressive sizing possible"),
        (0.35, 9.0, "Moderate sizing recommended"),
        (0.1, 2.0, "Conservative sizing advised"),
    ],
)
def test_kelly_criterion_is_clamped(confidence, kelly, advice):
    result = sizing.kelly_criterion(confidence)

    assert result.kelly_percentage == pytest.approx(kelly)
    assert result.recommendation == advice
    assert 0.3 <= result.win_rate <= 0.8


def test_volatility_adjustment_bounds():
    assert sizing.volatility_adjustment(2) == pytest.approx(2.0)
    assert sizing.volatility_adjustment(10) == pytest.approx(0.4)
    assert sizing.volatility_adjustment(40) == pytest.approx(0.25)
    assert sizing.volatility_risk_level(9) == "EXTREME"
    assert sizing.volatility_risk_level(6) == "HIGH"
    assert sizing.volatility_risk_level(4) == "MEDIUM"
    assert sizing.volatility_risk_level(1) == "LOW"


def test_position_sizing_compares_four_methods():
    data = sizing.position_sizing(
        "BTCUSDT",
        current_price="100",
        consensus_confidence=0.3,
        volatility=4,
        balance=10_000,
        risk_pct=2,
        stop_loss_pct=2,
    )

    by_method = {rec.method: rec for rec in data.recommendations}
    assert by_method["Fixed Risk %"].size == pytest.approx(100.0)
    assert by_method["Kelly Criterion"].size == pytest.approx(2.0)
    assert by_method["Kelly Criterion"].risk_rating == 4
    assert by_method["Volatility Adjusted"].size == pytest.approx(2.0)
    assert by_method["Volatility Adjusted"].risk_rating == 5
    # Without klines the ATR falls back to 2% of price.
    assert data.volatility.atr == pytest.approx(2.0)
    assert by_method["ATR Based"].size == pytest.approx(50.0)

    blended = (100 * 0.9 + 2 * 0.8 + 50 * 0.85) / (0.9 + 0.8 + 0.85)
    assert data.optimal_amount == pytest.approx(blended)
    assert data.optimal_percentage == pytest.approx(blended * 100 / 10_000 * 100)

    assert [level.distance for level in data.stop_loss_levels] == [1, 2, 3, 5]
    assert data.stop_loss_levels[0].price == pytest.approx(99.0)
    assert data.stop_loss_levels[0].position_size == pytest.approx(200.0)
    assert [scenario.potential_loss for scenario in data.risk_scenarios] == [200.0, 400.0, 1000.0, 5000.0]


def test_position_sizing_uses_kline_atr():
    start = 1_700_000_000_000
    klines = [[start + i * 3_600_000, 100, 102, 98, 100, 1] for i in range(20)]

    data = sizing.position_sizing("ETHUSDT", current_price=100, klines=klines)

    assert data.volatility.atr == pytest.approx(4.0)
    by_method = {rec.method: rec for rec in data.recommendations}
    assert by_method["ATR Based"].size == pytest.approx(200 / 8)


def test_missing_price_yields_no_recommendations():
    data = sizing.position_sizing("DOGEUSDT", current_price=None)

    assert data.recommendations == []
    assert data.optimal_amount == 0.0
    assert data.stop_loss_levels == []
    assert len(data.risk_scenarios) == 4


def test_rating_tone():
    assert [sizing.rating_tone(value) for value in (9, 6, 4, 2)] == ["danger", "warning", "neutral", "success"]


def test_sizing_inputs_read_real_time_analysis():
    payload = {
        "symbol": "BTCUSDT",
        "consensus": {"recommendation": "BUY", "confidence": 0.72},
        "marketConditions": {"volatility": 4.5, "trend": "up"},
    }

    assert sizing.sizing_inputs(payload) == (0.72, 4.5)


def test_sizing_inputs_default_when_fields_are_missing():
    confidence, volatility = sizing.sizing_inputs({"consensus": {}, "marketConditions": {"volatility": "n/a"}})

    assert confidence is None
    assert volatility == sizing.DEFAULT_VOLATILITY
    assert sizing.sizing_inputs(None) == (None, 2.0)
    assert (sizing.SIZING_TIMEFRAME, sizing.SIZING_CANDLES) == ("15m", 50)
