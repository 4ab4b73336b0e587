"""Endpoint catalogue and snippet generation for the public API tester."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Mapping
from urllib.parse import quote

DEFAULT_PUBLIC_BASE_URL = "http://localhost:3001/api/v1"
LANGUAGES: tuple[str, ...] = ("curl", "javascript", "python")


@dataclass(frozen=True)
class EndpointParam:
    name: str
    type: str
    description: str = ""
    required: bool = False
    options: tuple[str, ...] = ()


@dataclass(frozen=True)
class Endpoint:
    name: str
    method: str
    path: str
    category: str
    tier: str
    params: tuple[EndpointParam, ...] = field(default_factory=tuple)


ENDPOINTS: tuple[Endpoint, ...] = (
    Endpoint(
        name="List Opportunities",
        method="GET",
        path="/opportunities",
        category="Opportunities",
        tier="Free+",
        params=(
            EndpointParam("limit", "number", "Max results (1-100)"),
            EndpointParam("category", "select", options=("ALL", "BREAKOUT", "REVERSAL", "MOMENTUM", "WHALE_ACTIVITY")),
            EndpointParam("minConfidence", "number", "Min confidence (0-1)"),
            EndpointParam("minScore", "number", "Min score (0-100)"),
            EndpointParam("riskLevel", "select", options=("ALL", "LOW", "MEDIUM", "HIGH")),
        ),
    ),
    Endpoint(
        name="Top Opportunities",
        method="GET",
        path="/opportunities/top",
        category="Opportunities",
        tier="Free+",
        params=(
            EndpointParam("limit", "number", "Max results (1-50)"),
            EndpointParam("sortBy", "select", options=("score", "confidence", "riskReward")),
        ),
    ),
    Endpoint(
        name="List Whale Activities",
        method="GET",
        path="/whale-activities",
        category="Whale Activities",
        tier="Starter+",
        params=(
            EndpointParam("limit", "number", "Max results (1-100)"),
            EndpointParam("type", "select", options=("ALL", "BUY_WALL", "SELL_WALL", "ACCUMULATION", "LARGE_TRADE")),
            EndpointParam("side", "select", options=("ALL", "BUY", "SELL")),
            EndpointParam("impact", "select", options=("ALL", "LOW", "MEDIUM", "HIGH")),
        ),
    ),
    Endpoint(
        name="Download Market Report",
        method="GET",
        path="/market-reports/daily",
        category="Market Reports",
        tier="Starter+",
        params=(EndpointParam("date", "text", "Date (YYYY-MM-DD)"),),
    ),
    Endpoint(
        name="Send Report to Telegram",
        method="POST",
        path="/market-reports/send-telegram",
        category="Market Reports",
        tier="Pro+",
        params=(EndpointParam("date", "text", "Date (YYYY-MM-DD)"),),
    ),
)


def group_endpoints(endpoints: tuple[Endpoint, ...] = ENDPOINTS) -> "OrderedDict[str, list[Endpoint]]":
    """Group endpoints by category, keeping catalogue order."""

    groups: OrderedDict[str, list[Endpoint]] = OrderedDict()
    for endpoint in endpoints:
        groups.setdefault(endpoint.category, []).append(endpoint)
    return groups


def find_endpoint(name: str) -> Endpoint:
    for endpoint in ENDPOINTS:
        if endpoint.name == name:
            return endpoint
    raise KeyError(name)


def filter_params(params: Mapping[str, Any]) -> dict[str, Any]:
    """Drop blank values and the ``ALL`` placeholder before sending."""

    return {
        key: value
        for key, value in params.items()
        if value is not None and value != "" and value != "ALL"
    }


def _non_blank(params: Mapping[str, Any] | None) -> list[tuple[str, Any]]:
    return [(key, value) for key, value in (params or {}).items() if value is not None and value != ""]


def _query_string(params: Mapping[str, Any] | None) -> str:
    return "&".join(f"{key}={quote(str(value), safe='')}" for key, value in _non_blank(params))


def code_example(
    language: str,
    endpoint: Endpoint,
    api_key: str,
    params: Mapping[str, Any] | None = None,
    base_url: str = DEFAULT_PUBLIC_BASE_URL,
) -> str:
    """Render a copy-paste request snippet for ``language``.

    Snippets keep ``ALL`` values the user picked; only blanks are omitted.
    """

    base = str(base_url).rstrip("/")
    url = f"{base}{endpoint.path}"
    query = _query_string(params)

    if language == "curl":
        full_url = f"{url}?{query}" if query else url
        return (
            f'curl -X {endpoint.method} "{full_url}" \\\n'
            f'  -H "Authorization: Bearer {api_key}" \\\n'
            '  -H "Content-Type: application/json"'
        )
    if language == "javascript":
        suffix = f"?{query}" if query else ""
        return (
            f"const response = await fetch('{url}{suffix}', {{\n"
            f"  method: '{endpoint.method}',\n"
            "  headers: {\n"
            f"    'Authorization': 'Bearer {api_key}',\n"
            "    'Content-Type': 'application/json'\n"
            "  }\n"
            "});\n"
            "\n"
            "const data = await response.json();\n"
            "console.log(data);"
        )
    if language == "python":
        params_str = ", ".join(f"'{key}': '{value}'" for key, value in _non_blank(params))
        return (
            "import requests\n"
            "\n"
            f"response = requests.{endpoint.method.lower()}(\n"
            f"    '{url}',\n"
            f"    headers={{'Authorization': 'Bearer {api_key}'}},\n"
            f"    params={{{params_str}}}\n"
            ")\n"
            "\n"
            "data = response.json()\n"
            "print(data)"
        )
    raise ValueError(f"unsupported language: {language!r}")


def status_tone(status: int | None) -> str:
    if not status:
        return "danger"
    if 200 <= status < 300:
        return "success"
    if 400 <= status < 500:
        return "warning"
    return "danger"


def rate_limit_headers(headers: Mapping[str, Any] | None) -> dict[str, str]:
    """Return the limit/remaining headers shown under the response, if present."""

    lowered = {str(key).lower(): str(value) for key, value in (headers or {}).items()}
    result: dict[str, str] = {}
    for name in ("x-ratelimit-limit", "x-ratelimit-remaining", "x-ratelimit-reset", "retry-after"):
        if name in lowered:
            result[name] = lowered[name]
    return result
