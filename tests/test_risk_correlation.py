import math

import pytest

from mariposa_app.utils.risk import correlation as corr

SERIES = {
    "BTCUSDT": [1, 2, 3, 4, 5],
    "ETHUSDT": [2, 4, 6, 8, 10],
    "SOLUSDT": [5, 3, 4, 1, 2],
}


def test_pearson_perfect_and_inverse():
    value, p_value = corr.pearson([1, 2, 3, 4], [2, 4, 6, 8])
    assert value == pytest.approx(1.0)
    assert p_value == 0.001

    value, _ = corr.pearson([1, 2, 3, 4], [8, 6, 4, 2])
    assert value == pytest.approx(-1.0)


def test_pearson_degenerate_inputs():
    assert corr.pearson([1, 2, 3], [1, 2]) == (0.0, 1.0)
    assert corr.pearson([1], [1]) == (0.0, 1.0)
    assert corr.pearson([1, 1, 1], [1, 2, 3]) == (0.0, 0.999)


def test_significance_and_colors():
    assert corr.significance(-0.8) == "VERY_STRONG"
    assert corr.significance(0.55) == "STRONG"
    assert corr.significance(0.31) == "MODERATE"
    assert corr.significance(0.1) == "WEAK"
    assert corr.correlation_color(0.85) == corr.CORRELATION_COLORS["VERY_STRONG_POSITIVE"]
    assert corr.correlation_color(-0.5) == corr.CORRELATION_COLORS["MODERATE_NEGATIVE"]
    assert corr.correlation_color(0.1) == corr.CORRELATION_COLORS["NEUTRAL"]


def test_correlation_analysis_summary():
    data = corr.correlation_analysis(SERIES, timeframe="1d")

    assert data.symbols == ["BTCUSDT", "ETHUSDT", "SOLUSDT"]
    assert data.matrix["BTCUSDT"]["BTCUSDT"] == 1.0
    assert data.matrix["BTCUSDT"]["ETHUSDT"] == pytest.approx(1.0)
    assert data.matrix["SOLUSDT"]["BTCUSDT"] == pytest.approx(-0.8)
    assert len(data.pairs) == 3
    assert data.pairs[1].direction == "NEGATIVE"
    assert data.pairs[1].timeframe == "1d"
    assert data.pairs[1].p_value == pytest.approx(1 - 0.8 * math.sqrt(3 / 0.36) / 10)
    assert data.avg_correlation == pytest.approx(2.6 / 3)
    assert data.max_correlation == pytest.approx(1.0)
    assert data.min_correlation == pytest.approx(0.8)
    assert data.diversification_ratio == pytest.approx(1 - 2.6 / 3)
    assert data.concentration_risk == pytest.approx(100.0)
    assert data.breakdown == {"strongPositive": 1, "strongNegative": 2, "weak": 0, "unstable": 2}


def test_clusters_group_strongly_correlated_symbols():
    data = corr.correlation_analysis(SERIES)

    assert len(data.clusters) == 1
    cluster = data.clusters[0]
    assert cluster.symbols == ("BTCUSDT", "ETHUSDT", "SOLUSDT")
    assert cluster.avg_correlation == pytest.approx(0.9)
    assert cluster.risk_level == "EXTREME"
    assert cluster.description == "3 assets with 90% avg correlation"


def test_uncorrelated_symbols_do_not_cluster():
    matrix = {"A": {"B": 0.2}, "B": {"A": 0.2}}

    assert corr.correlation_clusters(["A", "B"], matrix) == []


def test_fewer_than_two_symbols_is_empty():
    data = corr.correlation_analysis({"BTCUSDT": [1, 2, 3]})

    assert data.empty
    assert data.symbols == ["BTCUSDT"]


def test_matrix_frame_keeps_symbol_order():
    frame = corr.matrix_frame(corr.correlation_analysis(SERIES))

    assert list(frame.index) == ["BTCUSDT", "ETHUSDT", "SOLUSDT"]
    assert list(frame.columns) == ["BTCUSDT", "ETHUSDT", "SOLUSDT"]
    assert frame.loc["ETHUSDT", "SOLUSDT"] == pytest.approx(-0.8)
