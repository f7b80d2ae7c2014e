"""
Rate-Limited Provider Gateway
=============================
The only way any pipeline stage talks to the GPS51 OpenAPI.

Each call:
    limiter.acquire()                     shared budget (DB state)
    token_manager.get_valid_token()       fresh read, login if needed
    POST {base}?action=X&token=T&serverid=S  (or wrapped for the proxy)
    classify the response

Classification:
    status 0 / missing        success, clears persisted backoff
    rate-limit codes          backoff + retry, then ProviderRateLimited
    token-invalid codes       invalidate, re-login, retry once
    other nonzero             ProviderError (no retry)
    network / HTTP 429 / 5xx  backoff + retry, then ProviderUnavailable
"""

import hashlib
import time
from typing import Any, Callable, Dict, List, Optional

import requests
from sqlalchemy.orm import Session

from src.Core.config import Settings, settings as default_settings
from src.Core.exceptions import (
    ProviderError,
    ProviderRateLimited,
    ProviderTokenInvalid,
    ProviderUnavailable,
    ValidationError,
)
from src.Core.logging_config import get_logger
from src.Services.provider.rate_limiter import RateLimiter
from src.Services.provider.token_manager import LoginResult, ProviderSession, TokenManager

logger = get_logger(__name__)

LOGIN_BROWSER = "Chrome/120.0.0.0"


class ProviderResult:
    """Decoded provider response body with convenience accessors."""

    def __init__(self, action: str, payload: Dict[str, Any]):
        self.action = action
        self.payload = payload or {}

    @property
    def status(self) -> int:
        return _status_of(self.payload)

    @property
    def cause(self) -> str:
        return str(self.payload.get("cause") or "")

    def get(self, key: str, default: Any = None) -> Any:
        return self.payload.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self.payload[key]

    def records(self, key: str = "records") -> List[Dict[str, Any]]:
        """List under key, also looked up inside a nested "data" object."""
        value = self.payload.get(key)
        if value is None and isinstance(self.payload.get("data"), dict):
            value = self.payload["data"].get(key)
        return [item for item in (value or []) if isinstance(item, dict)]

    def __repr__(self):
        return f"<ProviderResult(action='{self.action}', status={self.status})>"


class _Retryable(Exception):
    """Internal marker: transient failure eligible for backoff."""

    def __init__(self, kind: str, detail: str, status: Optional[int] = None):
        self.kind = kind
        self.detail = detail
        self.status = status
        super().__init__(detail)


class ProviderGateway:

    def __init__(
        self,
        db: Session,
        config: Settings = default_settings,
        http_client: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
        token_manager: Optional[TokenManager] = None,
    ):
        self.db = db
        self.config = config
        self._owns_client = http_client is None
        self.http = http_client or requests.Session()
        self.sleep = sleep
        self.limiter = RateLimiter(
            db,
            min_interval_ms=config.PROVIDER_MIN_INTERVAL_MS,
            burst_limit=config.PROVIDER_BURST_LIMIT,
            burst_window_ms=config.PROVIDER_BURST_WINDOW_MS,
            clock=clock,
            sleep=sleep,
        )
        login_fn = self.login if (config.PROVIDER_USERNAME and config.PROVIDER_PASSWORD) else None
        self.tokens = token_manager or TokenManager(
            db,
            login_fn=login_fn,
            ttl_seconds=config.PROVIDER_TOKEN_TTL_S,
            default_server_id=config.PROVIDER_DEFAULT_SERVER_ID,
        )

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self.http.close()

    # ==========================================================
    # LOGIN
    # ==========================================================

    def login(self) -> LoginResult:
        """
        Username/password exchange. Not retried.

        Raises:
            ProviderRateLimited: Provider throttled the login (backoff stored)
            ProviderError: Any other rejection or a response without a token
        """
        body = {
            "type": "USER",
            "from": "web",
            "username": self.config.PROVIDER_USERNAME,
            "password": hashlib.md5(self.config.PROVIDER_PASSWORD.encode("utf-8")).hexdigest(),
            "browser": LOGIN_BROWSER,
        }
        self.limiter.acquire()
        try:
            payload = self._post("login", body, session=None)
        except _Retryable as exc:
            raise ProviderUnavailable(exc.status, exc.detail, "login") from exc

        status = _status_of(payload)
        cause = str(payload.get("cause") or "")
        if status in self.config.PROVIDER_RATE_LIMIT_CODES:
            self.limiter.register_backoff(self.config.PROVIDER_BACKOFF_INITIAL_MS / 1000.0)
            raise ProviderRateLimited(status, cause or "rate limited", "login")
        if status != 0:
            raise ProviderError(status, cause or "login rejected", "login")

        data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
        token = payload.get("token") or data.get("token")
        if not token:
            raise ProviderError(status, "login response carried no token", "login")

        server_id = payload.get("serverid") or data.get("serverid") or self.config.PROVIDER_DEFAULT_SERVER_ID
        logger.info("[GATEWAY] Logged in as %s", self.config.PROVIDER_USERNAME)
        return LoginResult(token=str(token), server_id=str(server_id), username=self.config.PROVIDER_USERNAME)

    # ==========================================================
    # CALL
    # ==========================================================

    def call(self, action: str, params: Optional[Dict[str, Any]] = None) -> ProviderResult:
        """
        Perform one provider action under the shared rate limit.

        Args:
            action: Provider action name (e.g. "lastposition")
            params: JSON body

        Returns:
            ProviderResult: The successful response
        """
        if not action or not action.strip():
            raise ValidationError("Provider action is required")

        body = params or {}
        attempt = 0
        token_retried = False

        while True:
            self.limiter.acquire()
            session = self.tokens.get_valid_token()

            try:
                payload = self._post(action, body, session)
            except _Retryable as exc:
                if attempt >= self.config.PROVIDER_MAX_RETRIES:
                    logger.error("[GATEWAY] %s failed after %d retries: %s", action, attempt, exc.detail)
                    raise ProviderUnavailable(exc.status, exc.detail, action) from exc
                self._backoff(action, attempt, exc.detail)
                attempt += 1
                continue

            status = _status_of(payload)
            cause = str(payload.get("cause") or "")

            if status == 0:
                self.limiter.clear_backoff()
                return ProviderResult(action, payload)

            if status in self.config.PROVIDER_RATE_LIMIT_CODES:
                if attempt >= self.config.PROVIDER_MAX_RETRIES:
                    logger.error("[GATEWAY] %s still rate limited after %d retries", action, attempt)
                    raise ProviderRateLimited(status, cause or "rate limited", action)
                self._backoff(action, attempt, f"rate limited (status {status})")
                attempt += 1
                continue

            if self._is_token_error(status, cause):
                self.tokens.invalidate(session.token)
                if token_retried:
                    raise ProviderTokenInvalid(status, cause or "token rejected", action)
                logger.warning("[GATEWAY] Token rejected on %s, refreshing", action)
                token_retried = True
                continue

            logger.error("[GATEWAY] %s returned status %s: %s", action, status, cause)
            raise ProviderError(status, cause, action)

    # ==========================================================
    # INTERNALS
    # ==========================================================

    def _is_token_error(self, status: int, cause: str) -> bool:
        return status in self.config.PROVIDER_TOKEN_INVALID_CODES or "token" in cause.lower()

    def _backoff(self, action: str, attempt: int, reason: str) -> None:
        delay_ms = min(
            self.config.PROVIDER_BACKOFF_INITIAL_MS * (2 ** attempt),
            self.config.PROVIDER_BACKOFF_MAX_MS,
        )
        logger.warning("[GATEWAY] %s: %s, retry %d in %dms", action, reason, attempt + 1, delay_ms)
        self.limiter.register_backoff(delay_ms / 1000.0)

    def _post(self, action: str, body: Dict[str, Any], session: Optional[ProviderSession]) -> Dict[str, Any]:
        query = {"action": action}
        if session is not None:
            query["token"] = session.token
            query["serverid"] = session.server_id

        timeout = self.config.PROVIDER_HTTP_TIMEOUT_S
        try:
            if self.config.PROVIDER_PROXY_URL:
                target = requests.Request("POST", self.config.PROVIDER_BASE_URL, params=query).prepare().url
                response = self.http.post(
                    self.config.PROVIDER_PROXY_URL,
                    json={"targetUrl": target, "method": "POST", "data": body},
                    timeout=timeout,
                )
            else:
                response = self.http.post(self.config.PROVIDER_BASE_URL, params=query, json=body, timeout=timeout)
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise _Retryable("network", f"{type(exc).__name__}: {exc}") from exc

        if response.status_code == 429 or response.status_code >= 500:
            raise _Retryable("http", f"HTTP {response.status_code}", response.status_code)
        if response.status_code >= 400:
            raise ProviderError(response.status_code, f"HTTP {response.status_code}", action)

        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError(None, "response body is not JSON", action) from exc
        if not isinstance(payload, dict):
            raise ProviderError(None, "response body is not an object", action)
        return payload


def _status_of(payload: Dict[str, Any]) -> int:
    raw = payload.get("status")
    if raw is None or raw == "":
        return 0
    try:
        return int(raw)
    except (TypeError, ValueError):
        return -1
