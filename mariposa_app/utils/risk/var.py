"""Value-at-Risk calculations for the intelligence page.

Returns are plain decimal fractions (``0.01`` is one percent). All results are
reported as positive loss fractions of portfolio value, scaled to the chosen
horizon with the square-root-of-time rule.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Mapping, Sequence

import numpy as np

from ..ohlcv import align_returns

TRADING_DAYS = 252
DEFAULT_PORTFOLIO_VALUE = 100_000.0

VAR_METHODS: dict[str, dict[str, str]] = {
    "HISTORICAL": {
        "name": "Historical Simulation",
        "reliability": "HIGH",
        "description": "Based on actual historical returns",
    },
    "PARAMETRIC": {
        "name": "Parametric (Normal)",
        "reliability": "MEDIUM",
        "description": "Assumes normal distribution",
    },
    "MONTE_CARLO": {
        "name": "Monte Carlo",
        "reliability": "HIGH",
        "description": "Simulated returns using random sampling",
    },
}

CONFIDENCE_LEVELS: tuple[float, ...] = (90, 95, 99, 99.9)
TIME_HORIZONS: tuple[int, ...] = (1, 5, 10, 22)

Z_SCORES: dict[float, float] = {90: 1.282, 95: 1.645, 99: 2.326, 99.9: 3.090}
DEFAULT_Z = 1.645

# Reported back-test success rates per method; the calculator does not run
# a per-method back-test.
_METHOD_BACKTEST = {"HISTORICAL": 95.0, "PARAMETRIC": 88.0, "MONTE_CARLO": 96.0}

_STRESS_SCENARIOS = (
    ("Black Monday Repeat", "20% market crash similar to 1987", 0.01, -18.5, 2.5,
     "3-6 months", "Increase cash allocation, add put options"),
    ("Crypto Winter", "Extended bear market with 60% decline", 0.05, -55.2, 4.0,
     "12-24 months", "Reduce crypto exposure, hedge with stablecoins"),
    ("Flash Crash", "Sudden liquidity crisis causing rapid decline", 0.02, -25.7, 3.0,
     "1-3 days", "Ensure adequate stop-losses, avoid leverage"),
    ("Regulatory Shutdown", "Major jurisdiction bans cryptocurrency trading", 0.03, -40.1, 3.5,
     "6-18 months", "Diversify across jurisdictions, hold non-custodial"),
)


@dataclass(frozen=True)
class VaRResult:
    method: str
    confidence: float
    time_horizon: int
    value: float
    expected_shortfall: float
    conditional_var: float
    backtest_success: float
    reliability: str


@dataclass(frozen=True)
class VaRBreakdown:
    portfolio_var: float
    component_vars: dict[str, float]
    marginal_vars: dict[str, float]
    incremental_vars: dict[str, float]
    diversification_benefit: float


@dataclass(frozen=True)
class StressTestResult:
    scenario: str
    description: str
    probability: float
    portfolio_impact: float
    worst_case_var: float
    recovery_time: str
    hedge_recommendation: str


@dataclass(frozen=True)
class PortfolioStats:
    mean: float
    std_dev: float
    skewness: float
    kurtosis: float


@dataclass(frozen=True)
class RiskMetrics:
    sharpe_ratio: float
    sortino_ratio: float
    max_drawdown: float
    calmar_ratio: float
    volatility: float
    skewness: float
    kurtosis: float


@dataclass(frozen=True)
class BacktestResult:
    violations: int
    expected_violations: int
    kupiec_test: float
    accuracy: float


@dataclass
class VaRData:
    symbol: str
    portfolio_value: float
    var_results: list[VaRResult]
    breakdown: VaRBreakdown
    stress_tests: list[StressTestResult]
    risk_metrics: RiskMetrics
    backtest: BacktestResult
    recommendations: list[str] = field(default_factory=list)

    def result(self, method: str) -> VaRResult | None:
        for item in self.var_results:
            if item.method == method:
                return item
        return None


def _array(returns: Sequence[float]) -> np.ndarray:
    values = np.asarray(list(returns), dtype=float)
    return values[np.isfinite(values)]


def _tail_index(confidence: float, size: int) -> int:
    return int(math.floor((1 - confidence / 100) * size))


def _sample_std(values: np.ndarray) -> float:
    if values.size < 2:
        return 0.0
    return float(np.std(values, ddof=1))


def historical_var(returns: Sequence[float], confidence: float) -> float:
    """Absolute return at the ``1 - confidence`` quantile of the sorted sample."""

    values = np.sort(_array(returns))
    if values.size == 0:
        return 0.0
    index = _tail_index(confidence, values.size)
    if index >= values.size:
        return 0.0
    return abs(float(values[index]))


def z_score(confidence: float) -> float:
    return Z_SCORES.get(float(confidence), DEFAULT_Z)


def parametric_var(returns: Sequence[float], confidence: float) -> float:
    values = _array(returns)
    if values.size == 0:
        return 0.0
    return abs(float(values.mean()) - z_score(confidence) * _sample_std(values))


def monte_carlo_var(
    returns: Sequence[float],
    confidence: float,
    simulations: int = 10_000,
    rng: np.random.Generator | None = None,
) -> float:
    """Historical VaR of normal draws sharing the sample mean and deviation."""

    values = _array(returns)
    if values.size == 0:
        return 0.0
    generator = rng if rng is not None else np.random.default_rng()
    simulated = generator.normal(float(values.mean()), _sample_std(values), int(simulations))
    return historical_var(simulated, confidence)


def expected_shortfall(returns: Sequence[float], confidence: float) -> float:
    """Mean of the sorted tail up to and including the VaR index."""

    values = np.sort(_array(returns))
    if values.size == 0:
        return 0.0
    tail = values[: _tail_index(confidence, values.size) + 1]
    if tail.size == 0:
        return 0.0
    return abs(float(tail.mean()))


def portfolio_stats(returns: Sequence[float]) -> PortfolioStats:
    """Mean, sample deviation, skewness and excess kurtosis."""

    values = _array(returns)
    if values.size == 0:
        return PortfolioStats(0.0, 0.0, 0.0, 0.0)
    mean = float(values.mean())
    std = _sample_std(values)
    if std == 0:
        return PortfolioStats(mean, std, 0.0, 0.0)
    standardised = (values - mean) / std
    skewness = float(np.mean(standardised**3))
    kurtosis = float(np.mean(standardised**4)) - 3
    return PortfolioStats(mean, std, skewness, kurtosis)


def equal_weights(symbols: Sequence[str], weights: Mapping[str, float] | None = None) -> dict[str, float]:
    """Explicit weights where given, ``1/n`` for every other symbol."""

    provided = weights or {}
    share = 1 / len(symbols) if symbols else 0.0
    return {symbol: float(provided.get(symbol) or share) for symbol in symbols}


def portfolio_returns(
    returns_by_symbol: Mapping[str, Sequence[float]],
    weights: Mapping[str, float] | None = None,
) -> list[float]:
    """Weighted sum of per-symbol returns over the common (shortest) length."""

    aligned = align_returns(returns_by_symbol)
    if not aligned:
        return []
    resolved = equal_weights(list(aligned), weights)
    length = len(next(iter(aligned.values())))
    combined = np.zeros(length, dtype=float)
    for symbol, series in aligned.items():
        combined += np.asarray(series, dtype=float) * resolved[symbol]
    return [float(value) for value in combined]


def max_drawdown(returns: Sequence[float]) -> float:
    """Largest peak-to-trough fall of the compounded equity curve, as a fraction."""

    peak = 0.0
    worst = 0.0
    equity = 1.0
    for value in _array(returns):
        equity *= 1 + value
        peak = max(peak, equity)
        if peak > 0:
            worst = max(worst, (peak - equity) / peak)
    return worst


def risk_metrics(returns: Sequence[float]) -> RiskMetrics:
    values = _array(returns)
    stats = portfolio_stats(values)
    annual_return = stats.mean * TRADING_DAYS
    annual_vol = stats.std_dev * math.sqrt(TRADING_DAYS)
    sharpe = annual_return / annual_vol if annual_vol > 0 else 0.0

    downside = values[values < 0]
    downside_dev = math.sqrt(float(np.mean(downside**2))) * math.sqrt(TRADING_DAYS) if downside.size else 0.0
    sortino = annual_return / downside_dev if downside_dev > 0 else 0.0

    drawdown = max_drawdown(values)
    calmar = annual_return / drawdown if drawdown > 0 else 0.0
    return RiskMetrics(
        sharpe_ratio=sharpe,
        sortino_ratio=sortino,
        max_drawdown=drawdown * 100,
        calmar_ratio=calmar,
        volatility=annual_vol * 100,
        skewness=stats.skewness,
        kurtosis=stats.kurtosis,
    )


def backtest(returns: Sequence[float], var_value: float, confidence: float) -> BacktestResult:
    """Count days whose absolute move exceeded the one-day VaR."""

    values = _array(returns)
    expected = _tail_index(confidence, values.size)
    violations = int(np.count_nonzero(np.abs(values) > var_value))
    gap = abs(violations - expected)
    kupiec = gap / math.sqrt(expected) if expected > 0 else 0.0
    accuracy = max(0.0, min(100.0, 100.0 - gap * 5))
    return BacktestResult(violations=violations, expected_violations=expected, kupiec_test=kupiec, accuracy=accuracy)


def stress_tests(portfolio_var: float) -> list[StressTestResult]:
    return [
        StressTestResult(
            scenario=name,
            description=description,
            probability=probability,
            portfolio_impact=impact,
            worst_case_var=portfolio_var * multiplier,
            recovery_time=recovery,
            hedge_recommendation=hedge,
        )
        for name, description, probability, impact, multiplier, recovery, hedge in _STRESS_SCENARIOS
    ]


def recommendations_for(
    portfolio_var: float,
    diversification_benefit: float,
    metrics: RiskMetrics,
    test: BacktestResult,
) -> list[str]:
    notes: list[str] = []
    if portfolio_var > 0.05:
        notes.append("Portfolio VaR exceeds 5% - consider reducing risk exposure")
    if diversification_benefit < portfolio_var * 0.1:
        notes.append("Low diversification benefit - review asset correlations")
    if metrics.max_drawdown > 20:
        notes.append("Maximum drawdown exceeds 20% - implement stricter stop-losses")
    if metrics.kurtosis > 3:
        notes.append("High kurtosis detected - fat tail risk present")
    if test.accuracy < 90:
        notes.append("VaR model accuracy below 90% - consider alternative methods")
    if not notes:
        notes.append("Risk metrics within acceptable ranges - maintain current strategy")
    return notes


def var_analysis(
    returns_by_symbol: Mapping[str, Sequence[float]],
    *,
    weights: Mapping[str, float] | None = None,
    confidence: float = 95,
    horizon_days: int = 1,
    portfolio_value: float = DEFAULT_PORTFOLIO_VALUE,
    simulations: int = 10_000,
    rng: np.random.Generator | None = None,
) -> VaRData:
    """Full VaR report for a weighted portfolio of symbols."""

    symbols = list(returns_by_symbol)
    resolved = equal_weights(symbols, weights)
    combined = portfolio_returns(returns_by_symbol, resolved)
    scale = math.sqrt(max(int(horizon_days), 1))

    historical = historical_var(combined, confidence)
    shortfall = expected_shortfall(combined, confidence) * scale
    one_day = {
        "HISTORICAL": historical,
        "PARAMETRIC": parametric_var(combined, confidence),
        "MONTE_CARLO": monte_carlo_var(combined, confidence, simulations, rng),
    }
    results = [
        VaRResult(
            method=method,
            confidence=confidence,
            time_horizon=int(horizon_days),
            value=value * scale,
            expected_shortfall=shortfall,
            conditional_var=shortfall,
            backtest_success=_METHOD_BACKTEST[method],
            reliability=VAR_METHODS[method]["reliability"],
        )
        for method, value in one_day.items()
    ]

    component: dict[str, float] = {}
    marginal: dict[str, float] = {}
    incremental: dict[str, float] = {}
    for symbol in symbols:
        symbol_var = historical_var(returns_by_symbol[symbol], confidence)
        component[symbol] = symbol_var * resolved[symbol] * scale
        marginal[symbol] = symbol_var * scale
        incremental[symbol] = symbol_var * resolved[symbol] * scale

    portfolio_var = historical * scale
    benefit = max(0.0, sum(component.values()) - portfolio_var)
    breakdown = VaRBreakdown(
        portfolio_var=portfolio_var,
        component_vars=component,
        marginal_vars=marginal,
        incremental_vars=incremental,
        diversification_benefit=benefit,
    )

    metrics = risk_metrics(combined)
    test = backtest(combined, historical, confidence)
    return VaRData(
        symbol=symbols[0] if symbols else "PORTFOLIO",
        portfolio_value=float(portfolio_value),
        var_results=results,
        breakdown=breakdown,
        stress_tests=stress_tests(portfolio_var),
        risk_metrics=metrics,
        backtest=test,
        recommendations=recommendations_for(portfolio_var, benefit, metrics, test),
    )
