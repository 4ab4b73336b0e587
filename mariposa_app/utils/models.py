"""View-models for backend payloads.

Everything the backend returns is treated as loosely shaped JSON. The models
keep unknown fields, default every optional field to ``None`` and coerce
numeric strings, so pages can rely on attribute access without guarding each
key. They live only for the duration of a page run.
"""

from __future__ import annotations

from typing import Any, Iterable, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from .log import log

ModelT = TypeVar("ModelT", bound=BaseModel)


class _ViewModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True, coerce_numbers_to_str=True)


def _id_field() -> Any:
    return Field(default=None, validation_alias=AliasChoices("_id", "id"))


class ApiResponse(_ViewModel):
    success: bool = False
    data: Any = None
    error: str | None = None
    message: str | None = None
    requiresEmailVerification: bool | None = None
    userId: str | None = None


class User(_ViewModel):
    id: str | None = _id_field()
    email: str | None = None
    hasOkxKeys: bool = False
    isEmailVerified: bool | None = None


class AgentPerformance(_ViewModel):
    totalTrades: int = 0
    winRate: float = 0.0
    totalPnL: float = 0.0
    maxDrawdown: float = 0.0
    sharpeRatio: float = 0.0
    lastUpdated: str | None = None


class AgentConfig(_ViewModel):
    maxPositionSize: float | None = None
    stopLossPercentage: float | None = None
    takeProfitPercentage: float | None = None
    riskPercentage: float | None = None
    timeframes: list[str] = Field(default_factory=list)
    indicators: list[str] = Field(default_factory=list)


class Agent(_ViewModel):
    id: str | None = _id_field()
    name: str = "Unnamed agent"
    isActive: bool = False
    broker: str | None = None
    category: str | None = None
    riskLevel: int | None = None
    budget: float | None = None
    description: str | None = None
    enableLLMValidation: bool | None = None
    minLLMConfidence: float | None = None
    maxOpenPositions: int | None = None
    allowedSignalCategories: list[str] = Field(default_factory=list)
    symbol: str | None = None
    config: AgentConfig | None = None
    strategyType: str | None = None
    performance: AgentPerformance = Field(default_factory=AgentPerformance)
    createdAt: str | None = None
    updatedAt: str | None = None


class Trade(_ViewModel):
    id: str | None = _id_field()
    symbol: str | None = None
    side: str | None = None
    type: str | None = None
    quantity: float | None = None
    price: float | None = None
    filledPrice: float | None = None
    filledQuantity: float | None = None
    status: str | None = None
    pnl: float | None = None
    fees: float | None = None
    createdAt: str | None = None


class OrderBook(_ViewModel):
    bids: list[list[Any]] = Field(default_factory=list)
    asks: list[list[Any]] = Field(default_factory=list)


class MarketData(_ViewModel):
    symbol: str | None = None
    price: float | None = None
    volume: float | None = None
    change24h: float | None = None
    high24h: float | None = None
    low24h: float | None = None
    timestamp: Any = None
    klineData: list[Any] | None = None
    orderBook: OrderBook | None = None


class LLMAnalysis(_ViewModel):
    model: str | None = None
    recommendation: str | None = None
    confidence: float | None = None
    reasoning: str | None = None
    targetPrice: float | None = None
    stopLoss: float | None = None
    timestamp: Any = None


class Analysis(_ViewModel):
    symbol: str | None = None
    recommendation: str | None = None
    confidence: float | None = None
    reasoning: str | None = None
    targetPrice: float | None = None
    stopLoss: float | None = None
    timestamp: Any = None
    individualAnalyses: list[LLMAnalysis] = Field(default_factory=list)


class ApiKey(_ViewModel):
    id: str | None = Field(default=None, validation_alias=AliasChoices("keyId", "_id", "id"))
    name: str | None = None
    tier: str = "free"
    keyPrefix: str | None = None
    isActive: bool = True
    createdAt: Any = None
    expiresAt: Any = None
    lastUsedAt: Any = None
    allowedIPs: list[str] = Field(default_factory=list)
    usageCount: int | None = None


class MT4BridgeStatus(_ViewModel):
    connected: bool = False
    status: str | None = None
    message: str | None = None
    error: str | None = None
    bridgeUrl: str | None = None
    latencyMs: float | None = None
    timestamp: Any = None


class MT4AccountInfo(_ViewModel):
    account: int | None = None
    balance: float | None = None
    equity: float | None = None
    margin: float | None = None
    freeMargin: float | None = None
    marginLevel: float | None = None
    currency: str | None = None
    leverage: int | None = None
    profit: float | None = None
    credit: float | None = None


class MT4Position(_ViewModel):
    ticket: int | None = None
    symbol: str | None = None
    type: int | None = None
    side: str | None = None
    lots: float | None = None
    openPrice: float | None = None
    currentPrice: float | None = None
    stopLoss: float | None = None
    takeProfit: float | None = None
    profit: float | None = None
    commission: float | None = None
    swap: float | None = None
    openTime: Any = None


def parse_one(model: type[ModelT], payload: Any) -> ModelT | None:
    """Return ``payload`` validated as ``model`` or ``None`` if it does not fit."""

    if isinstance(payload, model):
        return payload
    if not isinstance(payload, dict):
        return None
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        log("models.parse.invalid", model=model.__name__, err=str(exc))
        return None


def parse_list(model: type[ModelT], payload: Any) -> list[ModelT]:
    """Validate each item of ``payload``; invalid entries are skipped and logged."""

    items: Iterable[Any] = payload if isinstance(payload, (list, tuple)) else []
    parsed: list[ModelT] = []
    for item in items:
        value = parse_one(model, item)
        if value is not None:
            parsed.append(value)
    return parsed
