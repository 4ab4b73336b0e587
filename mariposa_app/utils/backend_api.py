from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping

import requests
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from .errors import AuthenticationError, BackendError, BackendUnavailableError
from .http_client import create_http_session
from .log import log
from .models import ApiResponse

_RETRYABLE_STATUSES = {429, 502, 503, 504}

_DEFAULT_TIMEOUTS = {
    "default": 30.0,
    "analysis": 45.0,
    "multi_timeframe": 60.0,
    "bulk": 90.0,
    "multi_token": 120.0,
}


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, AuthenticationError):
        return False
    if isinstance(exc, BackendUnavailableError):
        return True
    return isinstance(exc, BackendError) and exc.status in _RETRYABLE_STATUSES


def _csv(values: Iterable[str] | None) -> str | None:
    if not values:
        return None
    joined = ",".join(str(value).strip() for value in values if str(value).strip())
    return joined or None


def _drop_none(params: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in params.items() if value is not None}


def _decode_body(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        text = (response.text or "").strip()
        return {"message": text} if text else {}


def _error_message(payload: Any, fallback: str) -> str:
    if isinstance(payload, Mapping):
        for key in ("error", "message"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return fallback


def _envelope(payload: Any) -> ApiResponse:
    """Normalise a response body into the ``{success, data, error, message}`` envelope."""

    if isinstance(payload, Mapping) and "success" in payload:
        return ApiResponse.model_validate(dict(payload))
    return ApiResponse(success=True, data=payload)


def parse_rate_limit_headers(headers: Mapping[str, Any] | None) -> dict[str, object]:
    """Extract ``X-RateLimit-*``/``RateLimit-*``/``Retry-After`` values."""

    fields: dict[str, object] = {}
    if not headers:
        return fields
    for key, value in headers.items():
        lower_key = str(key).lower()
        if "ratelimit" not in lower_key and lower_key != "retry-after":
            continue
        parsed: object = value
        if isinstance(value, str):
            stripped = value.strip()
            try:
                parsed = float(stripped) if "." in stripped else int(stripped)
            except ValueError:
                parsed = stripped
        fields[str(key)] = parsed
    return fields


class BackendAPI:
    """Synchronous client for the trading backend's JSON API.

    Every call returns an :class:`ApiResponse`. Non-2xx answers raise
    :class:`BackendError` (``AuthenticationError`` for 401, after the
    ``on_unauthorized`` hook ran), transport failures raise
    :class:`BackendUnavailableError`. Only GET requests are retried.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token_provider: Callable[[], str | None] | None = None,
        on_unauthorized: Callable[[], None] | None = None,
        timeout: float = 30.0,
        timeouts: Mapping[str, float] | None = None,
        verify_ssl: bool = True,
        retry_attempts: int = 2,
    ) -> None:
        self.base_url = str(base_url).rstrip("/")
        self.token_provider = token_provider or (lambda: None)
        self.on_unauthorized = on_unauthorized
        self.timeouts = dict(_DEFAULT_TIMEOUTS)
        self.timeouts["default"] = float(timeout)
        if timeouts:
            self.timeouts.update({key: float(value) for key, value in timeouts.items()})
        self.verify_ssl = bool(verify_ssl)
        self.retry_attempts = max(1, int(retry_attempts))
        self.retry_wait = wait_exponential(multiplier=0.5, max=5.0) + wait_random(0.0, 0.5)
        self._http_local = threading.local()
        self._rate_lock = threading.Lock()
        self._last_rate_limit: dict[str, object] = {}

    @property
    def session(self) -> requests.Session:
        """Return the thread-local HTTP session."""

        session = getattr(self._http_local, "session", None)
        if session is None:
            session = create_http_session()
            self._http_local.session = session
        return session

    @session.setter
    def session(self, value: requests.Session | None) -> None:
        if value is None:
            if hasattr(self._http_local, "session"):
                delattr(self._http_local, "session")
            return
        self._http_local.session = value

    @property
    def rate_limit_snapshot(self) -> dict[str, object]:
        with self._rate_lock:
            return dict(self._last_rate_limit)

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self.token_provider()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _record_rate_limit(self, response: requests.Response) -> None:
        fields = parse_rate_limit_headers(getattr(response, "headers", None))
        if not fields:
            return
        fields["updated_at"] = time.time()
        with self._rate_lock:
            self._last_rate_limit = fields

    def _send(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        body: Any = None,
        timeout: float | None = None,
    ) -> ApiResponse:
        started = time.perf_counter()
        try:
            response = self.session.request(
                method,
                self._url(path),
                params=_drop_none(params or {}) or None,
                json=body,
                headers=self._headers(),
                timeout=timeout or self.timeouts["default"],
                verify=self.verify_ssl,
            )
        except requests.exceptions.Timeout as exc:
            log("api.network_error", method=method, path=path, err=str(exc), kind="timeout")
            raise BackendUnavailableError(f"Request timeout while calling {path}", path=path) from exc
        except requests.exceptions.RequestException as exc:
            log("api.network_error", method=method, path=path, err=str(exc))
            raise BackendUnavailableError(f"Network error while calling {path}: {exc}", path=path) from exc

        elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
        self._record_rate_limit(response)
        status = response.status_code
        payload = _decode_body(response)

        if status == 401:
            log("api.unauthorized", method=method, path=path, status=status)
            if self.on_unauthorized is not None:
                self.on_unauthorized()
            raise AuthenticationError(
                _error_message(payload, "Session expired, please sign in again"),
                status=status,
                payload=payload,
                path=path,
            )

        if status >= 400:
            message = _error_message(payload, f"HTTP error {status} while calling {path}")
            log("api.http_error", method=method, path=path, status=status, message=message)
            raise BackendError(message, status=status, payload=payload, path=path)

        log("api.request", method=method, path=path, status=status, elapsed_ms=elapsed_ms)
        return _envelope(payload)

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        body: Any = None,
        timeout: float | None = None,
    ) -> ApiResponse:
        method = method.upper()
        if method != "GET" or self.retry_attempts <= 1:
            return self._send(method, path, params=params, body=body, timeout=timeout)

        attempts = self.retry_attempts

        def _log_retry(retry_state: RetryCallState) -> None:
            if retry_state.outcome is not None and retry_state.outcome.failed:
                exc = retry_state.outcome.exception()
                log(
                    "api.request.retry",
                    method=method,
                    path=path,
                    attempt=retry_state.attempt_number,
                    maxAttempts=attempts,
                    err=str(exc),
                )

        retrying = Retrying(
            reraise=True,
            wait=self.retry_wait,
            stop=stop_after_attempt(attempts),
            retry=retry_if_exception(_is_retryable),
            after=_log_retry,
        )
        return retrying(self._send, method, path, params=params, body=body, timeout=timeout)

    # auth ---------------------------------------------------------------

    def request_otp(self, email: str) -> ApiResponse:
        return self._request("POST", "/auth/request-otp", body={"email": email})

    def verify_otp(self, user_id: str, otp_code: str) -> ApiResponse:
        return self._request("POST", "/auth/verify-otp", body={"userId": user_id, "otpCode": otp_code})

    def resend_otp(self, user_id: str) -> ApiResponse:
        return self._request("POST", "/auth/resend-otp", body={"userId": user_id})

    def otp_status(self, user_id: str) -> ApiResponse:
        return self._request("GET", f"/auth/otp-status/{user_id}")

    def test_email(self, email: str) -> ApiResponse:
        return self._request("POST", "/auth/test-email", body={"email": email})

    def update_okx_keys(self, api_key: str, secret_key: str, passphrase: str) -> ApiResponse:
        body = {"okxApiKey": api_key, "okxSecretKey": secret_key, "okxPassphrase": passphrase}
        return self._request("PUT", "/auth/okx-keys", body=body)

    # agents -------------------------------------------------------------

    def get_agents(self) -> ApiResponse:
        return self._request("GET", "/agents")

    def get_agent(self, agent_id: str) -> ApiResponse:
        return self._request("GET", f"/agents/{agent_id}")

    def create_agent(self, payload: Mapping[str, Any]) -> ApiResponse:
        return self._request("POST", "/agents", body=dict(payload))

    def update_agent(self, agent_id: str, payload: Mapping[str, Any]) -> ApiResponse:
        return self._request("PUT", f"/agents/{agent_id}", body=dict(payload))

    def delete_agent(self, agent_id: str) -> ApiResponse:
        return self._request("DELETE", f"/agents/{agent_id}")

    def start_agent(self, agent_id: str) -> ApiResponse:
        return self._request("POST", f"/agents/{agent_id}/start")

    def stop_agent(self, agent_id: str) -> ApiResponse:
        return self._request("POST", f"/agents/{agent_id}/stop")

    def get_agent_trades(self, agent_id: str, page: int = 1, limit: int = 50) -> ApiResponse:
        return self._request("GET", f"/agents/{agent_id}/trades", params={"page": page, "limit": limit})

    # market -------------------------------------------------------------

    def get_market_data(self, symbol: str) -> ApiResponse:
        return self._request("GET", f"/market/{symbol}")

    def get_analysis(self, symbol: str, limit: int = 10) -> ApiResponse:
        return self._request("GET", f"/market/{symbol}/analysis", params={"limit": limit})

    def get_deep_analysis(self, symbol: str) -> ApiResponse:
        return self._request("GET", f"/market/{symbol}/deep-analysis")

    def get_multi_timeframe_analysis(self, symbol: str, timeframes: Iterable[str] | None = None) -> ApiResponse:
        return self._request(
            "GET",
            f"/market/{symbol}/multi-timeframe",
            params={"timeframes": _csv(timeframes)},
            timeout=self.timeouts["multi_timeframe"],
        )

    def get_real_time_analysis(self, symbol: str, models: Iterable[str] | None = None) -> ApiResponse:
        return self._request(
            "GET",
            f"/market/{symbol}/real-time",
            params={"models": _csv(models)},
            timeout=self.timeouts["analysis"],
        )

    def get_chart_data(
        self,
        symbol: str,
        timeframe: str,
        limit: int = 200,
        indicators: Iterable[str] | None = None,
    ) -> ApiResponse:
        return self._request(
            "GET",
            f"/market/{symbol}/chart/{timeframe}",
            params={"limit": limit, "indicators": _csv(indicators)},
        )

    def get_bulk_token_analysis(
        self,
        symbols: Iterable[str] | None = None,
        *,
        sort_by: str | None = None,
        limit: int | None = None,
    ) -> ApiResponse:
        body = _drop_none({"symbols": list(symbols) if symbols else None, "sortBy": sort_by, "limit": limit})
        return self._request("POST", "/market/analysis/bulk", body=body, timeout=self.timeouts["bulk"])

    def get_multi_token_analysis(self, symbols: Iterable[str], timeframes: Iterable[str]) -> ApiResponse:
        body = {"symbols": list(symbols), "timeframes": list(timeframes)}
        return self._request(
            "POST", "/market/analysis/multi-token", body=body, timeout=self.timeouts["multi_token"]
        )

    def get_immediate_trading_signals(self, symbol: str) -> ApiResponse:
        """Derive actionable signals from the real-time consensus of ``symbol``."""

        from .recommendations import immediate_signals

        response = self._request("GET", f"/market/{symbol}/real-time", timeout=self.timeouts["analysis"])
        if not response.success:
            return response
        return ApiResponse(success=True, data=immediate_signals(symbol, response.data))

    def get_confluence_score(self, symbol: str) -> ApiResponse:
        return self._request("GET", f"/market/{symbol}/confluence", timeout=self.timeouts["analysis"])

    def trigger_analysis(self, symbol: str) -> ApiResponse:
        return self._request("POST", "/market/analysis", body={"symbol": symbol})

    def trigger_batch_analysis(self, symbols: Iterable[str] | None = None) -> ApiResponse:
        return self._request("POST", "/market/analysis/batch", body={"symbols": list(symbols or [])})

    def get_balance(self) -> ApiResponse:
        return self._request("GET", "/market/balance")

    def get_symbols(self) -> ApiResponse:
        return self._request("GET", "/market/symbols")

    # trading intelligence -----------------------------------------------

    def get_whale_activity(self, symbols: Iterable[str], min_size: float = 50_000) -> ApiResponse:
        body = {"symbols": list(symbols), "minSize": min_size}
        return self._request("POST", "/market/whale-activity", body=body, timeout=self.timeouts["analysis"])

    def get_opportunities(self, symbols: Iterable[str], min_score: float = 70) -> ApiResponse:
        body = {"symbols": list(symbols), "minScore": min_score}
        return self._request("POST", "/market/opportunity-scanner", body=body, timeout=self.timeouts["analysis"])

    # API keys -----------------------------------------------------------

    def list_api_keys(self) -> ApiResponse:
        return self._request("GET", "/api-keys")

    def generate_api_key(self, payload: Mapping[str, Any]) -> ApiResponse:
        return self._request("POST", "/api-keys/generate", body=dict(payload))

    def revoke_api_key(self, key_id: str) -> ApiResponse:
        return self._request("DELETE", f"/api-keys/{key_id}")

    def rotate_api_key(self, key_id: str) -> ApiResponse:
        return self._request("POST", f"/api-keys/{key_id}/rotate")

    def get_api_key_usage(self, key_id: str, start: str | None = None, end: str | None = None) -> ApiResponse:
        return self._request("GET", f"/api-keys/{key_id}/usage", params={"from": start, "to": end})

    # MT4 bridge ---------------------------------------------------------

    def mt4_test_connection(self) -> ApiResponse:
        return self._request("POST", "/mt4/test-connection")

    def mt4_status(self) -> ApiResponse:
        """Return the bridge status as an ``MT4BridgeStatus``-shaped envelope."""

        try:
            response = self.mt4_test_connection()
        except AuthenticationError:
            raise
        except BackendError as exc:
            return ApiResponse(
                success=False,
                error=str(exc),
                data={"connected": False, "error": str(exc), "timestamp": time.time()},
            )
        data = dict(response.data) if isinstance(response.data, Mapping) else {}
        connected = bool(response.success and data.get("connected"))
        status = {
            "connected": connected,
            "status": "connected" if connected else "disconnected",
            "bridgeUrl": data.get("bridgeUrl"),
            "message": response.message,
            "error": None if connected else (response.error or data.get("error") or "Bridge connection failed"),
            "timestamp": time.time(),
        }
        return ApiResponse(success=True, data=status)

    def mt4_configure(self, credentials: Mapping[str, Any]) -> ApiResponse:
        return self._request("POST", "/mt4/configure", body=dict(credentials))

    def mt4_delete_credentials(self) -> ApiResponse:
        return self._request("DELETE", "/mt4/credentials")

    def mt4_account(self) -> ApiResponse:
        return self._request("GET", "/mt4/account")

    def mt4_positions(self) -> ApiResponse:
        return self._request("GET", "/mt4/positions")

    def mt4_symbols(self) -> ApiResponse:
        return self._request("GET", "/mt4/symbols")

    def mt4_price(self, symbol: str) -> ApiResponse:
        return self._request("GET", f"/mt4/price/{symbol}")


def mt4_credentials_payload(
    server_url: str, account_number: Any, password: str, broker_name: str | None = None
) -> dict[str, Any]:
    """Validate the MT4 configure form; raises ``ValueError`` with a user-facing message."""

    url = str(server_url or "").strip()
    account = str(account_number or "").strip()
    if not url or not account or not password:
        raise ValueError("Server URL, account number and password are required")
    if not url.startswith(("http://", "https://")):
        raise ValueError("Server URL must start with http:// or https://")
    payload: dict[str, Any] = {"serverUrl": url, "accountNumber": account, "password": password}
    broker = str(broker_name or "").strip()
    if broker:
        payload["brokerName"] = broker
    return payload


def ping_bridge(bridge_url: str, *, timeout: float = 5.0, session: requests.Session | None = None) -> dict[str, Any]:
    """Ping the MT4 bridge directly; never raises."""

    url = f"{str(bridge_url).rstrip('/')}/ping"
    if session is not None:
        return _ping(session, url, timeout)
    with create_http_session(pool_connections=1, pool_maxsize=1) as client:
        return _ping(client, url, timeout)


def _ping(client: requests.Session, url: str, timeout: float) -> dict[str, Any]:
    started = time.perf_counter()
    try:
        response = client.get(url, timeout=timeout)
    except requests.exceptions.RequestException as exc:
        log("bridge.ping.error", url=url, err=str(exc))
        return {"connected": False, "status": "unreachable", "error": str(exc), "latencyMs": None, "timestamp": time.time()}

    latency_ms = round((time.perf_counter() - started) * 1000, 1)
    payload = _decode_body(response)
    connected = response.status_code < 400
    message = payload.get("message") if isinstance(payload, Mapping) else None
    result = {
        "connected": connected,
        "status": "connected" if connected else f"http_{response.status_code}",
        "message": message,
        "error": None if connected else _error_message(payload, f"HTTP {response.status_code}"),
        "latencyMs": latency_ms,
        "timestamp": time.time(),
    }
    log("bridge.ping", url=url, connected=connected, latency_ms=latency_ms)
    return result


@dataclass
class TesterResult:
    status: int
    data: Any
    elapsed_ms: float
    headers: dict[str, str] = field(default_factory=dict)
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class PublicAPI:
    """API-key authenticated client for the public ``/api/v1`` surface.

    Used by the API tester page, so HTTP errors are returned rather than raised.
    """

    def __init__(self, base_url: str, *, timeout: float = 30.0, session: requests.Session | None = None) -> None:
        self.base_url = str(base_url).rstrip("/")
        self.timeout = float(timeout)
        self.session = session or create_http_session(pool_connections=2, pool_maxsize=2)

    def test_endpoint(
        self,
        api_key: str,
        method: str,
        path: str,
        params: Mapping[str, Any] | None = None,
    ) -> TesterResult:
        from .api_tester import filter_params

        url = f"{self.base_url}/{path.lstrip('/')}"
        method = method.upper()
        clean = filter_params(params or {})
        headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
        started = time.perf_counter()
        try:
            response = self.session.request(
                method,
                url,
                params=clean if method == "GET" else None,
                json=clean if method != "GET" else None,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as exc:
            elapsed = round((time.perf_counter() - started) * 1000, 1)
            log("api_tester.request.error", path=path, err=str(exc))
            return TesterResult(status=0, data={"error": str(exc)}, elapsed_ms=elapsed, url=url)

        elapsed = round((time.perf_counter() - started) * 1000, 1)
        log("api_tester.request", path=path, status=response.status_code, elapsed_ms=elapsed)
        return TesterResult(
            status=response.status_code,
            data=_decode_body(response),
            elapsed_ms=elapsed,
            headers={str(k): str(v) for k, v in response.headers.items()},
            url=url,
        )
