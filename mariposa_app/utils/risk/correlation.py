"""Pairwise price correlation, clustering and diversification statistics."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Mapping, Sequence

import numpy as np
import pandas as pd

CLUSTER_THRESHOLD = 0.6
STRONG_THRESHOLD = 0.6
WEAK_THRESHOLD = 0.3
UNSTABLE_P_VALUE = 0.05

CORRELATION_COLORS: dict[str, str] = {
    "VERY_STRONG_POSITIVE": "#dc2626",
    "STRONG_POSITIVE": "#ea580c",
    "MODERATE_POSITIVE": "#f59e0b",
    "WEAK_POSITIVE": "#eab308",
    "NEUTRAL": "#6b7280",
    "WEAK_NEGATIVE": "#10b981",
    "MODERATE_NEGATIVE": "#059669",
    "STRONG_NEGATIVE": "#047857",
    "VERY_STRONG_NEGATIVE": "#065f46",
}


@dataclass(frozen=True)
class CorrelationPair:
    symbol1: str
    symbol2: str
    correlation: float
    p_value: float
    significance: str
    direction: str
    stability: float
    timeframe: str


@dataclass(frozen=True)
class CorrelationCluster:
    symbols: tuple[str, ...]
    avg_correlation: float
    risk_level: str
    description: str


@dataclass
class CorrelationMatrixData:
    symbols: list[str] = field(default_factory=list)
    matrix: dict[str, dict[str, float]] = field(default_factory=dict)
    pairs: list[CorrelationPair] = field(default_factory=list)
    clusters: list[CorrelationCluster] = field(default_factory=list)
    avg_correlation: float = 0.0
    max_correlation: float = 0.0
    min_correlation: float = 0.0
    diversification_ratio: float = 0.0
    concentration_risk: float = 0.0
    breakdown: dict[str, int] = field(
        default_factory=lambda: {"strongPositive": 0, "strongNegative": 0, "weak": 0, "unstable": 0}
    )

    @property
    def empty(self) -> bool:
        return not self.pairs


def pearson(x: Sequence[float], y: Sequence[float]) -> tuple[float, float]:
    """Return ``(correlation, p_value)`` for two equally long series.

    The p-value is a coarse ``1 - |t|/10`` heuristic clamped to
    ``[0.001, 0.999]``, not a t-distribution lookup.
    """

    if len(x) != len(y) or len(x) < 2:
        return 0.0, 1.0

    a = np.asarray(x, dtype=float)
    b = np.asarray(y, dtype=float)
    n = a.size
    sum_a = a.sum()
    sum_b = b.sum()
    numerator = float((a * b).sum() - sum_a * sum_b / n)
    spread = float(((a * a).sum() - sum_a * sum_a / n) * ((b * b).sum() - sum_b * sum_b / n))
    denominator = math.sqrt(spread) if spread > 0 else 0.0
    correlation = numerator / denominator if denominator else 0.0
    if not math.isfinite(correlation):
        correlation = 0.0
    correlation = max(-1.0, min(1.0, correlation))

    residual = 1 - correlation * correlation
    t_stat = math.inf if residual <= 0 else correlation * math.sqrt((n - 2) / residual)
    p_value = max(0.001, min(0.999, 1 - abs(t_stat) / 10))
    return correlation, p_value


def significance(correlation: float) -> str:
    strength = abs(correlation)
    if strength >= 0.7:
        return "VERY_STRONG"
    if strength >= 0.5:
        return "STRONG"
    if strength >= 0.3:
        return "MODERATE"
    return "WEAK"


def correlation_color(correlation: float) -> str:
    strength = abs(correlation)
    side = "POSITIVE" if correlation > 0 else "NEGATIVE"
    for bound, label in ((0.8, "VERY_STRONG"), (0.6, "STRONG"), (0.4, "MODERATE"), (0.2, "WEAK")):
        if strength >= bound:
            return CORRELATION_COLORS[f"{label}_{side}"]
    return CORRELATION_COLORS["NEUTRAL"]


def _cluster_risk(avg: float) -> str:
    if avg > 0.8:
        return "EXTREME"
    if avg > 0.7:
        return "HIGH"
    if avg > 0.5:
        return "MEDIUM"
    return "LOW"


def correlation_clusters(
    symbols: Sequence[str],
    matrix: Mapping[str, Mapping[str, float]],
    threshold: float = CLUSTER_THRESHOLD,
) -> list[CorrelationCluster]:
    """Greedy grouping: each unprocessed symbol pulls in every unprocessed
    symbol whose absolute correlation with it exceeds ``threshold``."""

    clusters: list[CorrelationCluster] = []
    processed: set[str] = set()
    for anchor in symbols:
        if anchor in processed:
            continue
        members = [anchor]
        strengths: list[float] = []
        for other in symbols:
            if other == anchor or other in processed:
                continue
            strength = abs(matrix.get(anchor, {}).get(other, 0.0))
            if strength > threshold:
                members.append(other)
                strengths.append(strength)
        if len(members) > 1:
            avg = sum(strengths) / len(strengths)
            clusters.append(
                CorrelationCluster(
                    symbols=tuple(members),
                    avg_correlation=avg,
                    risk_level=_cluster_risk(avg),
                    description=f"{len(members)} assets with {avg * 100:.0f}% avg correlation",
                )
            )
            processed.update(members)
        else:
            processed.add(anchor)
    return clusters


def correlation_analysis(
    prices_by_symbol: Mapping[str, Sequence[float]],
    timeframe: str = "1h",
) -> CorrelationMatrixData:
    """Correlation matrix and summary statistics across all symbol pairs.

    Series of different lengths correlate as 0 with a p-value of 1.
    """

    symbols = list(prices_by_symbol)
    if len(symbols) < 2:
        return CorrelationMatrixData(symbols=symbols)

    matrix: dict[str, dict[str, float]] = {symbol: {} for symbol in symbols}
    pairs: list[CorrelationPair] = []
    for i, first in enumerate(symbols):
        matrix[first][first] = 1.0
        for second in symbols[i + 1:]:
            value, p_value = pearson(prices_by_symbol[first], prices_by_symbol[second])
            matrix[first][second] = value
            matrix[second][first] = value
            pairs.append(
                CorrelationPair(
                    symbol1=first,
                    symbol2=second,
                    correlation=value,
                    p_value=p_value,
                    significance=significance(value),
                    direction="POSITIVE" if value >= 0 else "NEGATIVE",
                    stability=max(0.0, 1 - p_value),
                    timeframe=timeframe,
                )
            )

    strengths = [abs(pair.correlation) for pair in pairs]
    avg = sum(strengths) / len(strengths)
    strong = sum(1 for value in strengths if value > STRONG_THRESHOLD)
    return CorrelationMatrixData(
        symbols=symbols,
        matrix=matrix,
        pairs=pairs,
        clusters=correlation_clusters(symbols, matrix),
        avg_correlation=avg,
        max_correlation=max(strengths),
        min_correlation=min(strengths),
        diversification_ratio=max(0.0, 1 - avg),
        concentration_risk=strong / len(pairs) * 100,
        breakdown={
            "strongPositive": sum(1 for pair in pairs if pair.correlation > STRONG_THRESHOLD),
            "strongNegative": sum(1 for pair in pairs if pair.correlation < -STRONG_THRESHOLD),
            "weak": sum(1 for value in strengths if value < WEAK_THRESHOLD),
            "unstable": sum(1 for pair in pairs if pair.p_value > UNSTABLE_P_VALUE),
        },
    )


def matrix_frame(data: CorrelationMatrixData) -> pd.DataFrame:
    """Matrix as a DataFrame in symbol order, for heatmap display."""

    return pd.DataFrame(data.matrix).reindex(index=data.symbols, columns=data.symbols)
