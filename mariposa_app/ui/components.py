"""Composable Streamlit components used across the dashboard pages."""

from __future__ import annotations

from dataclasses import dataclass
import json
import textwrap
import time
from typing import Any, Iterable, Literal, Mapping, Sequence, get_args

import pandas as pd
import streamlit as st

from mariposa_app.utils.agents import CATEGORY_INFO
from mariposa_app.utils.api_keys import API_TIERS, describe_limits, mask_key, tier_tone
from mariposa_app.utils.formatting import (
    PLACEHOLDER,
    coerce_float,
    format_datetime,
    format_money,
    format_percent,
    format_price,
    format_quantity,
    format_ratio_percent,
    format_timedelta,
    safe_get,
    safe_list,
    with_units,
)
from mariposa_app.utils.log import read_tail
from mariposa_app.utils.models import Agent, Analysis, ApiKey, MarketData, MT4Position, Trade
from mariposa_app.utils.recommendations import confidence_tone, recommendation_tone
from mariposa_app.utils.risk.correlation import CorrelationMatrixData, correlation_color, matrix_frame
from mariposa_app.utils.risk.sizing import PositionSizingData, rating_tone
from mariposa_app.utils.risk.var import VAR_METHODS, VaRData
from mariposa_app.utils.ui import build_pill, inject_css, navigation_link

from .actions import notify_error, notify_info, notify_success
from .state import (
    current_user_email,
    get_theme,
    is_authenticated,
    is_refresh_paused,
    logout,
    set_refresh_paused,
    toggle_theme,
)

PAGES_DIR = "mariposa_app/pages"
HOME_PAGE = "mariposa_app/app.py"


def page_path(filename: str) -> str:
    """Page location relative to the repository root entry point."""

    return f"{PAGES_DIR}/{filename}"


LOGIN_PAGE = page_path("00_Login.py")

_STATUS_BADGE_CSS = """
<style>
.status-badge{padding:0.5rem;border-radius:0.75rem;border:1px solid rgba(148,163,184,0.2);margin-bottom:0.5rem;}
.status-badge__label{display:block;margin-bottom:0.2rem;}
.status-badge__value{font-weight:600;font-size:1.05rem;margin-top:0.25rem;}
.status-badge small{display:block;color:rgba(148,163,184,0.85);}
</style>
"""
BadgeTone = Literal["neutral", "success", "warning", "danger"]
_VALID_BADGE_TONES = set(get_args(BadgeTone))


@dataclass(frozen=True)
class StatusBadge:
    """Immutable description of a status badge rendered in the status bar."""

    label: str
    value: str
    tone: BadgeTone = "neutral"
    caption: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", str(self.value))
        object.__setattr__(self, "caption", str(self.caption or ""))
        if self.tone not in _VALID_BADGE_TONES:
            object.__setattr__(self, "tone", "neutral")

    def render(self) -> str:
        pill = build_pill(self.label, tone=self.tone)
        caption_html = f"<small>{self.caption}</small>" if self.caption else ""
        return (
            "<div class='status-badge'>"
            f"<div class='status-badge__label'>{pill}</div>"
            f"<div class='status-badge__value'>{self.value}</div>"
            f"{caption_html}"
            "</div>"
        )


def _ensure_status_badge_css() -> None:
    flag = "_status_badge_css_injected"
    if st.session_state.get(flag):
        return
    st.session_state[flag] = True
    st.markdown(_STATUS_BADGE_CSS, unsafe_allow_html=True)


def _render_badge_grid(badges: Sequence[StatusBadge], *, columns: int = 4) -> None:
    if not badges:
        return
    for start in range(0, len(badges), columns):
        row = badges[start : start + columns]
        cols = st.columns(len(row))
        for column, badge in zip(cols, row):
            with column:
                st.markdown(badge.render(), unsafe_allow_html=True)


def show_error_banner(
    message: str,
    *,
    title: str | None = None,
    details: Mapping[str, Any] | str | None = None,
) -> None:
    """Render a consistent error banner with optional structured details."""

    header = message.strip()
    if title:
        header = f"**{title.strip()}:** {header}" if header else f"**{title.strip()}**"
    if isinstance(details, Mapping) and details:
        with st.container(border=True):
            st.error(header or "Something went wrong")
            st.json(details, expanded=False)
    elif isinstance(details, str) and details.strip():
        st.error(f"{header}\n\n{details.strip()}")
    else:
        st.error(header or "Something went wrong")


# status -----------------------------------------------------------------


def status_badges(
    *,
    backend_ok: bool | None,
    ws_snapshot: Mapping[str, Any] | None,
    bridge: Mapping[str, Any] | None = None,
    now: float | None = None,
) -> list[StatusBadge]:
    """Badges for backend, live feed and MT4 bridge connectivity."""

    now = time.time() if now is None else now
    badges: list[StatusBadge] = []
    if backend_ok is None:
        badges.append(StatusBadge("Backend", "Unknown"))
    else:
        badges.append(StatusBadge("Backend", "Online" if backend_ok else "Unreachable", "success" if backend_ok else "danger"))

    ws = ws_snapshot or {}
    last = coerce_float(ws.get("last_message_at"))
    age = format_timedelta(now - last) if last else PLACEHOLDER
    if ws.get("connected"):
        badges.append(StatusBadge("Live feed", "Connected", "success", f"last message {age} ago"))
    elif ws.get("running"):
        badges.append(StatusBadge("Live feed", "Reconnecting", "warning", str(ws.get("last_error") or "")))
    else:
        badges.append(StatusBadge("Live feed", "Offline", "neutral", str(ws.get("last_error") or "")))

    if bridge is not None:
        connected = bool(bridge.get("connected"))
        latency = coerce_float(bridge.get("latencyMs"))
        caption = f"{latency:.0f} ms" if latency is not None else str(bridge.get("error") or "")
        badges.append(StatusBadge("MT4 bridge", "Connected" if connected else "Disconnected", "success" if connected else "danger", caption))
    return badges


def status_bar(
    *,
    backend_ok: bool | None,
    ws_snapshot: Mapping[str, Any] | None,
    bridge: Mapping[str, Any] | None = None,
) -> None:
    _ensure_status_badge_css()
    with st.container(border=True):
        _render_badge_grid(status_badges(backend_ok=backend_ok, ws_snapshot=ws_snapshot, bridge=bridge), columns=3)


def metrics_strip(summary: Mapping[str, Any], *, balance: Any = None) -> None:
    """Quick totals for the agents overview."""

    with st.container(border=True):
        cols = st.columns(5)
        cols[0].metric("Total P&L", format_money(summary.get("totalPnL")))
        cols[1].metric("Total trades", int(summary.get("totalTrades") or 0))
        cols[2].metric("Active agents", f"{int(summary.get('activeAgents') or 0)}/{int(summary.get('totalAgents') or 0)}")
        cols[3].metric("Avg win rate", format_percent(summary.get("avgWinRate"), precision=1))
        cols[4].metric("Balance", format_money(balance))


# agents -----------------------------------------------------------------


def agent_rows(agents: Iterable[Agent]) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for agent in agents:
        category = CATEGORY_INFO.get(str(agent.category or "").upper())
        rows.append(
            {
                "id": agent.id,
                "name": agent.name,
                "status": "🟢 Active" if agent.isActive else "⚪ Stopped",
                "category": f"{category.icon} {category.label}" if category else (agent.category or PLACEHOLDER),
                "broker": agent.broker or PLACEHOLDER,
                "symbol": agent.symbol or PLACEHOLDER,
                "budget": agent.budget,
                "risk": agent.riskLevel,
                "trades": agent.performance.totalTrades,
                "win_rate": agent.performance.winRate,
                "pnl": agent.performance.totalPnL,
            }
        )
    return rows


def agents_table(agents: Sequence[Agent], *, table_key: str = "agents_table") -> None:
    rows = agent_rows(agents)
    if not rows:
        st.info("No agents yet. Create one to start trading.")
        return
    st.dataframe(
        pd.DataFrame(rows).drop(columns=["id"]),
        use_container_width=True,
        hide_index=True,
        key=table_key,
        column_config={
            "name": st.column_config.TextColumn("Agent"),
            "status": st.column_config.TextColumn("Status"),
            "category": st.column_config.TextColumn("Category"),
            "broker": st.column_config.TextColumn("Broker"),
            "symbol": st.column_config.TextColumn("Symbol"),
            "budget": st.column_config.NumberColumn("Budget", format="$%.2f"),
            "risk": st.column_config.NumberColumn("Risk", format="%d"),
            "trades": st.column_config.NumberColumn("Trades", format="%d"),
            "win_rate": st.column_config.NumberColumn("Win rate %", format="%.1f"),
            "pnl": st.column_config.NumberColumn("P&L", format="$%.2f"),
        },
    )


def trade_rows(trades: Iterable[Trade]) -> list[dict[str, Any]]:
    return [
        {
            "time": format_datetime(trade.createdAt),
            "symbol": trade.symbol,
            "side": str(trade.side or "").upper() or PLACEHOLDER,
            "quantity": trade.filledQuantity if trade.filledQuantity is not None else trade.quantity,
            "price": trade.filledPrice if trade.filledPrice is not None else trade.price,
            "status": trade.status or PLACEHOLDER,
            "pnl": trade.pnl,
            "fees": trade.fees,
        }
        for trade in trades
    ]


def trades_table(trades: Sequence[Trade]) -> None:
    rows = trade_rows(trades)
    if not rows:
        st.caption("No trades yet.")
        return
    st.dataframe(
        pd.DataFrame(rows),
        use_container_width=True,
        hide_index=True,
        column_config={
            "quantity": st.column_config.NumberColumn("Qty", format="%.6f"),
            "price": st.column_config.NumberColumn("Price", format="%.4f"),
            "pnl": st.column_config.NumberColumn("P&L", format="$%.2f"),
            "fees": st.column_config.NumberColumn("Fees", format="$%.4f"),
        },
    )


# market & analysis ------------------------------------------------------


def market_metrics(market: MarketData | None) -> None:
    if market is None:
        st.caption("No market data.")
        return
    cols = st.columns(4)
    change = coerce_float(market.change24h)
    cols[0].metric("Price", format_price(market.price), format_percent(change, signed=True) if change is not None else None)
    cols[1].metric("24h high", format_price(market.high24h))
    cols[2].metric("24h low", format_price(market.low24h))
    cols[3].metric("Volume", with_units(market.volume))


def analysis_card(analysis: Analysis | None) -> None:
    """One consensus analysis with its per-model breakdown."""

    if analysis is None:
        st.caption("No analysis available.")
        return
    label = str(analysis.recommendation or "N/A").upper()
    with st.container(border=True):
        header = st.columns([3, 2])
        header[0].markdown(f"**{analysis.symbol or PLACEHOLDER}** · {format_datetime(analysis.timestamp)}")
        header[1].markdown(
            build_pill(label, tone=recommendation_tone(label))
            + build_pill(f"Confidence {format_ratio_percent(analysis.confidence)}", tone=confidence_tone(analysis.confidence)),
            unsafe_allow_html=True,
        )
        cols = st.columns(2)
        cols[0].caption(f"Target {format_price(analysis.targetPrice)}")
        cols[1].caption(f"Stop loss {format_price(analysis.stopLoss)}")
        if analysis.reasoning:
            st.write(analysis.reasoning)
        if analysis.individualAnalyses:
            with st.expander(f"{len(analysis.individualAnalyses)} model opinions"):
                for item in analysis.individualAnalyses:
                    st.markdown(
                        f"**{item.model or 'model'}**: {str(item.recommendation or 'N/A').upper()} "
                        f"({format_ratio_percent(item.confidence)})"
                    )
                    if item.reasoning:
                        st.caption(textwrap.shorten(item.reasoning, width=280, placeholder=" …"))


def price_chart(frame: pd.DataFrame, *, title: str | None = None) -> None:
    if frame is None or frame.empty:
        st.caption("No chart data.")
        return
    if title:
        st.caption(title)
    st.line_chart(frame.set_index("open_time")["close"], height=280)


# intelligence -----------------------------------------------------------


def var_method_rows(data: VaRData) -> list[dict[str, Any]]:
    return [
        {
            "method": VAR_METHODS.get(result.method, {}).get("name", result.method),
            "var": result.value * 100,
            "var_usd": result.value * data.portfolio_value,
            "expected_shortfall": result.expected_shortfall * 100,
            "backtest": result.backtest_success,
            "reliability": result.reliability,
        }
        for result in data.var_results
    ]


def var_panel(data: VaRData, *, method: str = "HISTORICAL") -> None:
    """Headline VaR figures, method comparison, stress tests and advice."""

    result = data.result(method)
    with st.container(border=True):
        cols = st.columns(4)
        if result is not None:
            cols[0].metric(
                f"VaR {result.confidence:g}% · {result.time_horizon}d",
                format_ratio_percent(result.value, precision=2),
                format_money(result.value * data.portfolio_value),
                delta_color="off",
            )
            cols[1].metric("Expected shortfall", format_ratio_percent(result.expected_shortfall, precision=2))
        cols[2].metric("Diversification benefit", format_ratio_percent(data.breakdown.diversification_benefit, precision=2))
        cols[3].metric("Backtest accuracy", format_percent(data.backtest.accuracy, precision=1))

    st.dataframe(
        pd.DataFrame(var_method_rows(data)),
        use_container_width=True,
        hide_index=True,
        column_config={
            "method": st.column_config.TextColumn("Method"),
            "var": st.column_config.NumberColumn("VaR %", format="%.3f"),
            "var_usd": st.column_config.NumberColumn("VaR $", format="$%.0f"),
            "expected_shortfall": st.column_config.NumberColumn("ES %", format="%.3f"),
            "backtest": st.column_config.NumberColumn("Backtest %", format="%.0f"),
            "reliability": st.column_config.TextColumn("Reliability"),
        },
    )

    metrics = data.risk_metrics
    cols = st.columns(5)
    cols[0].metric("Sharpe", f"{metrics.sharpe_ratio:.2f}")
    cols[1].metric("Sortino", f"{metrics.sortino_ratio:.2f}")
    cols[2].metric("Max drawdown", format_percent(metrics.max_drawdown))
    cols[3].metric("Volatility", format_percent(metrics.volatility))
    cols[4].metric("Kurtosis", f"{metrics.kurtosis:.2f}")

    if data.breakdown.component_vars:
        st.caption("Component VaR by asset (%)")
        st.bar_chart(pd.Series(data.breakdown.component_vars, name="component") * 100)

    with st.expander("Stress tests"):
        st.dataframe(
            pd.DataFrame(
                [
                    {
                        "scenario": test.scenario,
                        "probability": test.probability * 100,
                        "impact": test.portfolio_impact,
                        "worst_case_var": test.worst_case_var * 100,
                        "recovery": test.recovery_time,
                        "hedge": test.hedge_recommendation,
                    }
                    for test in data.stress_tests
                ]
            ),
            use_container_width=True,
            hide_index=True,
        )
    for note in data.recommendations:
        st.markdown(f"- {note}")


def correlation_heatmap(data: CorrelationMatrixData) -> None:
    if data.empty:
        st.info("Select at least two symbols with price history.")
        return
    frame = matrix_frame(data)
    st.dataframe(
        frame.style.map(lambda value: f"background-color: {correlation_color(value)}; color: #f8fafc").format("{:.2f}"),
        use_container_width=True,
    )
    cols = st.columns(4)
    cols[0].metric("Avg |correlation|", f"{data.avg_correlation:.2f}")
    cols[1].metric("Diversification", format_ratio_percent(data.diversification_ratio))
    cols[2].metric("Concentration risk", format_percent(data.concentration_risk, precision=0))
    cols[3].metric("Unstable pairs", data.breakdown.get("unstable", 0))
    for cluster in data.clusters:
        tone = {"EXTREME": "danger", "HIGH": "danger", "MEDIUM": "warning"}.get(cluster.risk_level, "neutral")
        st.markdown(
            build_pill(cluster.risk_level, tone=tone) + " " + ", ".join(cluster.symbols) + f" · {cluster.description}",
            unsafe_allow_html=True,
        )


def position_sizing_panel(data: PositionSizingData) -> None:
    if not data.recommendations:
        st.info("A current price is required to size a position.")
        return
    cols = st.columns(3)
    cols[0].metric("Optimal size", format_quantity(data.optimal_amount))
    cols[1].metric("Of balance", format_percent(data.optimal_percentage))
    cols[2].metric("Kelly", format_percent(data.kelly.kelly_percentage, precision=1), data.kelly.recommendation, delta_color="off")
    for rec in data.recommendations:
        st.markdown(
            f"**{rec.method}** · {format_quantity(rec.size)} {data.symbol} "
            f"({format_money(rec.size * data.current_price)}) "
            + build_pill(f"risk {rec.risk_rating}/10", tone=rating_tone(rec.risk_rating)),
            unsafe_allow_html=True,
        )
        st.caption(rec.reasoning)
    with st.expander("Stop-loss levels and risk scenarios"):
        st.dataframe(
            pd.DataFrame(
                [
                    {"stop": level.price, "distance %": level.distance, "size": level.position_size}
                    for level in data.stop_loss_levels
                ]
            ),
            use_container_width=True,
            hide_index=True,
        )
        st.dataframe(
            pd.DataFrame(
                [
                    {
                        "scenario": scenario.name,
                        "probability %": scenario.probability * 100,
                        "potential loss": scenario.potential_loss,
                        "description": scenario.description,
                    }
                    for scenario in data.risk_scenarios
                ]
            ),
            use_container_width=True,
            hide_index=True,
        )


# api keys ---------------------------------------------------------------


def api_key_rows(keys: Iterable[ApiKey]) -> list[dict[str, Any]]:
    return [
        {
            "id": key.id,
            "name": key.name or PLACEHOLDER,
            "key": mask_key(key.keyPrefix or ""),
            "tier": str(key.tier).lower(),
            "limits": describe_limits(key.tier) if str(key.tier).lower() in API_TIERS else PLACEHOLDER,
            "status": "Active" if key.isActive else "Revoked",
            "created": format_datetime(key.createdAt),
            "last_used": format_datetime(key.lastUsedAt),
            "expires": format_datetime(key.expiresAt) if key.expiresAt else "Never",
        }
        for key in keys
    ]


def api_keys_table(keys: Sequence[ApiKey]) -> None:
    rows = api_key_rows(keys)
    if not rows:
        st.info("No API keys yet.")
        return
    st.dataframe(pd.DataFrame(rows).drop(columns=["id"]), use_container_width=True, hide_index=True)


def tier_pill(tier: str) -> str:
    return build_pill(str(tier).upper(), tone=tier_tone(tier))


# intelligence feeds -----------------------------------------------------


def whale_rows(items: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "time": format_datetime(item.get("timestamp")),
            "symbol": item.get("symbol"),
            "side": item.get("side") or item.get("type"),
            "size": coerce_float(item.get("size")),
            "price": coerce_float(item.get("price")),
            "value": coerce_float(item.get("value")),
            "impact": item.get("impact"),
            "exchange": item.get("exchange"),
        }
        for item in items
        if isinstance(item, Mapping)
    ]


def whale_table(items: Sequence[Mapping[str, Any]]) -> None:
    rows = whale_rows(items)
    if not rows:
        st.caption("No whale activity above the threshold.")
        return
    st.dataframe(
        pd.DataFrame(rows),
        use_container_width=True,
        hide_index=True,
        column_config={
            "size": st.column_config.NumberColumn("Size", format="%.4f"),
            "price": st.column_config.NumberColumn("Price", format="%.4f"),
            "value": st.column_config.NumberColumn("Value", format="$%.0f"),
        },
    )


def opportunity_rows(items: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "symbol": item.get("symbol"),
            "category": item.get("category") or item.get("type"),
            "score": coerce_float(item.get("score")),
            "confidence": coerce_float(item.get("confidence")),
            "entry": coerce_float(item.get("entry", item.get("entryPrice"))),
            "target": coerce_float(item.get("target", item.get("targetPrice"))),
            "stop": coerce_float(item.get("stopLoss")),
            "risk_reward": coerce_float(item.get("riskReward")),
            "timeframe": item.get("timeframe"),
        }
        for item in items
        if isinstance(item, Mapping)
    ]


def opportunities_table(items: Sequence[Mapping[str, Any]]) -> None:
    rows = opportunity_rows(items)
    if not rows:
        st.caption("No opportunities above the minimum score.")
        return
    st.dataframe(
        pd.DataFrame(rows),
        use_container_width=True,
        hide_index=True,
        column_config={
            "score": st.column_config.ProgressColumn("Score", min_value=0, max_value=100, format="%.0f"),
            "confidence": st.column_config.NumberColumn("Confidence", format="%.2f"),
            "risk_reward": st.column_config.NumberColumn("R:R", format="%.2f"),
        },
    )


GRID_SORT_OPTIONS = {
    "profitPotential": "Profit potential",
    "volume": "Volume",
    "volatility": "Volatility",
    "momentum": "Momentum",
}


def token_grid_rows(payload: Any, *, recommendation: str = "all", min_confidence: float = 0.0) -> list[dict[str, Any]]:
    """Flatten a bulk analysis payload, keeping the backend's ranking.

    ``min_confidence`` is a percentage; tokens without an analysis count as
    zero confidence.
    """

    tokens = safe_get(payload, "tokens", payload if isinstance(payload, list) else [])
    rows: list[dict[str, Any]] = []
    for token in safe_list(tokens):
        if not isinstance(token, Mapping):
            continue
        label = safe_get(token, "analysis.recommendation")
        confidence = coerce_float(safe_get(token, "analysis.confidence"))
        if recommendation != "all" and label != recommendation:
            continue
        if min_confidence > 0 and (confidence or 0.0) < min_confidence / 100:
            continue
        rows.append(
            {
                "rank": safe_get(token, "rank"),
                "symbol": token.get("symbol") or safe_get(token, "marketData.symbol"),
                "price": coerce_float(safe_get(token, "marketData.price")),
                "change_24h": coerce_float(safe_get(token, "marketData.change24h")),
                "recommendation": label,
                "confidence": confidence,
                "target": coerce_float(safe_get(token, "analysis.targetPrice")),
                "stop": coerce_float(safe_get(token, "analysis.stopLoss")),
                "profit_potential": coerce_float(safe_get(token, "metrics.profitPotential")),
                "risk": coerce_float(safe_get(token, "metrics.riskScore")),
                "momentum": coerce_float(safe_get(token, "metrics.momentumScore")),
                "error": token.get("error"),
            }
        )
    return rows


def token_grid_table(rows: Sequence[Mapping[str, Any]]) -> None:
    if not rows:
        st.caption("No tokens match the current filters.")
        return
    frame = pd.DataFrame(rows)
    if not frame["error"].notna().any():
        frame = frame.drop(columns=["error"])
    st.dataframe(
        frame,
        use_container_width=True,
        hide_index=True,
        column_config={
            "price": st.column_config.NumberColumn("Price", format="%.4f"),
            "change_24h": st.column_config.NumberColumn("24h %", format="%.2f%%"),
            "confidence": st.column_config.ProgressColumn("Confidence", min_value=0.0, max_value=1.0, format="%.2f"),
            "profit_potential": st.column_config.NumberColumn("Profit potential", format="%.1f"),
        },
    )


# mt4 --------------------------------------------------------------------


def position_rows(positions: Iterable[MT4Position]) -> list[dict[str, Any]]:
    return [
        {
            "ticket": position.ticket,
            "symbol": position.symbol,
            "side": position.side or {0: "BUY", 1: "SELL"}.get(position.type, PLACEHOLDER),
            "lots": position.lots,
            "open": position.openPrice,
            "current": position.currentPrice,
            "sl": position.stopLoss,
            "tp": position.takeProfit,
            "profit": position.profit,
            "opened": format_datetime(position.openTime),
        }
        for position in positions
    ]


def positions_table(positions: Sequence[MT4Position]) -> None:
    rows = position_rows(positions)
    if not rows:
        st.caption("No open positions.")
        return
    st.dataframe(
        pd.DataFrame(rows),
        use_container_width=True,
        hide_index=True,
        column_config={"profit": st.column_config.NumberColumn("Profit", format="$%.2f")},
    )


# logs -------------------------------------------------------------------


def log_rows(records: Iterable[Any], *, level: str = "ALL", query: str = "") -> list[dict[str, Any]]:
    """Flatten parsed log records for display, newest first."""

    needle = query.strip().lower()
    rows: list[dict[str, Any]] = []
    for record in records:
        if not isinstance(record, Mapping):
            continue
        severity = str(record.get("severity") or "info").upper()
        if level != "ALL" and severity != level:
            continue
        payload_txt = json.dumps(record.get("payload", {}), ensure_ascii=False, default=str)
        event = str(record.get("event") or "")
        if needle and needle not in event.lower() and needle not in payload_txt.lower():
            continue
        rows.append(
            {
                "time": record.get("ts"),
                "severity": severity,
                "event": event,
                "payload": textwrap.shorten(payload_txt, width=160, placeholder=" …"),
            }
        )
    rows.reverse()
    return rows


def log_viewer(*, default_limit: int = 400, state: Any = None) -> None:
    """Show the tail of the JSON application log with lightweight filtering."""

    state = state if state is not None else st.session_state
    level_options = ("ALL", "INFO", "WARNING", "ERROR", "CRITICAL")
    stored_level = state.get("logs_level")
    cols = st.columns([1, 1, 2])
    level = cols[0].selectbox(
        "Level", level_options, index=level_options.index(stored_level) if stored_level in level_options else 0
    )
    limit = cols[1].number_input(
        "Records", min_value=50, max_value=5000, step=50, value=int(state.get("logs_limit") or default_limit)
    )
    query = cols[2].text_input("Search", value=str(state.get("logs_query") or ""))
    state["logs_level"] = level
    state["logs_limit"] = int(limit)
    state["logs_query"] = query

    rows = log_rows(read_tail(int(limit), parse=True), level=level, query=query)
    if not rows:
        st.info("No log records match the filters.")
        return
    st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)
    st.caption(f"Showing {len(rows)} records")


# layout -----------------------------------------------------------------


def render_auth_gate() -> None:
    """Stop the page with a pointer to the login page when signed out."""

    if is_authenticated():
        return
    st.warning("Please sign in to continue.")
    navigation_link(LOGIN_PAGE, label="Go to login", icon="🔐", key="auth_gate_login")
    st.stop()


def render_sidebar() -> None:
    """Account, theme and refresh controls shared by every page."""

    inject_css(theme=get_theme())
    with st.sidebar:
        st.markdown("### 🦋 Mariposa")
        email = current_user_email()
        if is_authenticated():
            st.caption(f"Signed in as {email}" if email else "Signed in")
        else:
            st.caption("Not signed in")

        theme = get_theme()
        if st.button("☀️ Light mode" if theme == "dark" else "🌙 Dark mode", key="sidebar_theme_toggle", use_container_width=True):
            toggle_theme()
            st.rerun()

        paused = st.toggle("Pause auto refresh", value=is_refresh_paused(), key="sidebar_refresh_paused")
        if paused != is_refresh_paused():
            set_refresh_paused(paused)

        if is_authenticated() and st.button("Log out", key="sidebar_logout", use_container_width=True):
            logout()
            notify_success("Signed out")
            st.rerun()


__all__ = [
    "StatusBadge",
    "agent_rows",
    "agents_table",
    "analysis_card",
    "api_key_rows",
    "api_keys_table",
    "correlation_heatmap",
    "log_rows",
    "log_viewer",
    "market_metrics",
    "metrics_strip",
    "notify_error",
    "notify_info",
    "notify_success",
    "opportunities_table",
    "opportunity_rows",
    "page_path",
    "position_rows",
    "position_sizing_panel",
    "positions_table",
    "price_chart",
    "render_auth_gate",
    "render_sidebar",
    "show_error_banner",
    "status_badges",
    "status_bar",
    "tier_pill",
    "trade_rows",
    "trades_table",
    "var_method_rows",
    "var_panel",
    "whale_rows",
    "whale_table",
]
