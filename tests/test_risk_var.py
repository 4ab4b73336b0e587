import math
import random

import numpy as np
import pytest

from mariposa_app.utils.mock_data import generate_chart_klines
from mariposa_app.utils.ohlcv import close_prices, simple_returns
from mariposa_app.utils.risk import var

# Twenty daily returns: two losing days in the tail, eighteen small gains.
RETURNS = [-0.10, -0.08] + [0.01] * 18


def test_historical_var_reads_the_tail_quantile():
    assert var.historical_var(RETURNS, 95) == pytest.approx(0.08)
    assert var.historical_var(RETURNS, 99) == pytest.approx(0.10)
    assert var.historical_var([], 95) == 0.0


def test_expected_shortfall_averages_the_tail():
    assert var.expected_shortfall(RETURNS, 95) == pytest.approx(0.09)
    assert var.expected_shortfall([], 95) == 0.0


def test_parametric_var_uses_z_scores():
    expected = 1.645 * math.sqrt(2 * 0.01**2)
    assert var.parametric_var([0.01, -0.01], 95) == pytest.approx(expected)
    assert var.z_score(99) == 2.326
    assert var.z_score(97.5) == var.DEFAULT_Z


def test_monte_carlo_var_is_reproducible_with_a_seeded_generator():
    first = var.monte_carlo_var(RETURNS, 95, simulations=2_000, rng=np.random.default_rng(7))
    second = var.monte_carlo_var(RETURNS, 95, simulations=2_000, rng=np.random.default_rng(7))

    assert first == second
    assert first > 0
    assert var.monte_carlo_var([0.01, 0.01], 95, simulations=100) == pytest.approx(0.01)


def test_portfolio_stats_handles_flat_series():
    stats = var.portfolio_stats([0.5, 0.5, 0.5])
    assert stats.mean == 0.5
    assert stats.std_dev == 0.0
    assert stats.skewness == 0.0
    assert var.portfolio_stats([]) == var.PortfolioStats(0.0, 0.0, 0.0, 0.0)


def test_weights_and_portfolio_returns():
    assert var.equal_weights(["BTCUSDT", "ETHUSDT"], {"BTCUSDT": 0.7}) == {"BTCUSDT": 0.7, "ETHUSDT": 0.5}

    combined = var.portfolio_returns({"BTCUSDT": [0.1, 0.2, 0.3], "ETHUSDT": [0.0, -0.1]})

    assert combined == pytest.approx([0.05, 0.05])


def test_max_drawdown_and_risk_metrics_units():
    assert var.max_drawdown([0.1, -0.5, 0.2]) == pytest.approx(0.5)

    metrics = var.risk_metrics([0.1, -0.5, 0.2])

    assert metrics.max_drawdown == pytest.approx(50.0)
    assert metrics.volatility > 0
    assert metrics.sharpe_ratio < 0


def test_backtest_counts_violations():
    result = var.backtest(RETURNS, 0.05, 95)

    assert result.violations == 2
    assert result.expected_violations == 1
    assert result.kupiec_test == pytest.approx(1.0)
    assert result.accuracy == pytest.approx(95.0)


def test_stress_tests_scale_portfolio_var():
    scenarios = var.stress_tests(0.02)

    assert [item.scenario for item in scenarios] == [
        "Black Monday Repeat",
        "Crypto Winter",
        "Flash Crash",
        "Regulatory Shutdown",
    ]
    assert scenarios[0].worst_case_var == pytest.approx(0.05)
    assert scenarios[1].portfolio_impact == -55.2


def test_recommendations_flag_risky_portfolios():
    metrics = var.RiskMetrics(0.5, 0.5, 25.0, 0.1, 80.0, 0.0, 4.0)
    weak_test = var.BacktestResult(violations=5, expected_violations=1, kupiec_test=4.0, accuracy=80.0)

    notes = var.recommendations_for(0.06, 0.0, metrics, weak_test)

    assert len(notes) == 5
    assert notes[0].startswith("Portfolio VaR exceeds 5%")

    calm = var.RiskMetrics(1.0, 1.0, 5.0, 1.0, 20.0, 0.0, 0.0)
    good_test = var.BacktestResult(violations=1, expected_violations=1, kupiec_test=0.0, accuracy=100.0)
    assert var.recommendations_for(0.01, 0.01, calm, good_test) == [
        "Risk metrics within acceptable ranges - maintain current strategy"
    ]


def test_var_analysis_scales_by_horizon():
    data = var.var_analysis(
        {"BTCUSDT": RETURNS},
        confidence=95,
        horizon_days=4,
        simulations=500,
        rng=np.random.default_rng(1),
    )

    assert data.symbol == "BTCUSDT"
    assert [item.method for item in data.var_results] == ["HISTORICAL", "PARAMETRIC", "MONTE_CARLO"]
    historical = data.result("HISTORICAL")
    assert historical.value == pytest.approx(0.16)
    assert historical.expected_shortfall == pytest.approx(0.18)
    assert historical.conditional_var == historical.expected_shortfall
    assert historical.reliability == "HIGH"
    assert data.result("PARAMETRIC").backtest_success == 88.0
    assert data.breakdown.portfolio_var == pytest.approx(0.16)
    assert data.breakdown.component_vars["BTCUSDT"] == pytest.approx(0.16)
    assert data.breakdown.diversification_benefit == pytest.approx(0.0)
    assert len(data.stress_tests) == 4
    assert data.recommendations
    assert data.result("UNKNOWN") is None


def test_var_analysis_reports_diversification():
    data = var.var_analysis(
        {"BTCUSDT": RETURNS, "ETHUSDT": list(reversed(RETURNS))},
        confidence=95,
        simulations=200,
        rng=np.random.default_rng(3),
    )

    assert data.breakdown.diversification_benefit > 0
    assert data.breakdown.portfolio_var < sum(data.breakdown.component_vars.values())


def test_one_year_of_daily_candles_feeds_the_estimate():
    klines = generate_chart_klines("BTCUSDT", "1d", var.TRADING_DAYS, random.Random(7))
    returns = simple_returns(close_prices(klines))

    assert var.TRADING_DAYS == 252
    assert len(returns) == 251
    assert var.historical_var(returns, 95) > 0
