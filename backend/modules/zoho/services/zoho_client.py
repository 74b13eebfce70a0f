# backend/modules/zoho/services/zoho_client.py

"""
Zoho Analytics REST client.

Access tokens are obtained with the OAuth refresh-token grant and kept in
process memory until shortly before they expire. A rate-limited token or
API call puts the whole client into a cool-down during which every call
fails fast with ``ZohoRateLimitError`` instead of reaching the network.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional
import asyncio
import json
import logging
import time

import httpx

from core.config import Settings, settings as app_settings

from .retry import RetryConfig, retry_async

logger = logging.getLogger(__name__)

TOKEN_EXPIRY_SKEW_SECONDS = 120
FALLBACK_TOKEN_TTL_SECONDS = 50 * 60
RATE_LIMIT_MARKER = "too many requests"
INVALID_TOKEN_MARKER = "INVALID_OAUTHTOKEN"


class ZohoError(Exception):
    """Zoho Analytics call failed"""

    def __init__(self, message: str, status_code: int = 502, details: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


class ZohoConfigError(ZohoError):
    def __init__(self, message: str = "Zoho Analytics credentials not configured"):
        super().__init__(message, status_code=500)


class ZohoRateLimitError(ZohoError):
    """Zoho is rate limiting us; ``retry_after`` is in seconds"""

    def __init__(self, retry_after: float):
        super().__init__("Upstream rate limited by Zoho", status_code=503)
        self.retry_after = max(retry_after, 0.0)


class ZohoTokenStore:
    """In-memory access token and rate-limit cool-down"""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self.lock = asyncio.Lock()
        self.access_token: Optional[str] = None
        self.expires_at: float = 0.0
        self.backoff_until: float = 0.0

    def valid_token(self) -> Optional[str]:
        if self.access_token and self.clock() < self.expires_at:
            return self.access_token
        return None

    def store(self, access_token: str, expires_in: Optional[float]) -> None:
        ttl = float(expires_in) if expires_in else FALLBACK_TOKEN_TTL_SECONDS
        self.access_token = access_token
        self.expires_at = self.clock() + ttl - TOKEN_EXPIRY_SKEW_SECONDS

    def clear(self) -> None:
        self.access_token = None
        self.expires_at = 0.0

    def start_backoff(self, seconds: float) -> None:
        self.backoff_until = self.clock() + seconds

    def backoff_remaining(self) -> float:
        return max(0.0, self.backoff_until - self.clock())


def _is_rate_limited(response: httpx.Response) -> bool:
    return response.status_code == 429 or RATE_LIMIT_MARKER in response.text.lower()


class ZohoAnalyticsClient:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        token_store: Optional[ZohoTokenStore] = None,
        retry_config: Optional[RetryConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.settings = settings or app_settings
        self.token_store = token_store or ZohoTokenStore()
        self.retry_config = retry_config or RetryConfig()
        self.sleep = sleep
        self._http = httpx.AsyncClient(
            transport=transport,
            timeout=self.settings.zoho_http_timeout_seconds,
        )

    @property
    def accounts_url(self) -> str:
        return f"https://accounts.zoho.{self.settings.zoho_data_center}/oauth/v2/token"

    @property
    def base_url(self) -> str:
        return f"https://analyticsapi.zoho.{self.settings.zoho_data_center}/restapi/v2"

    @property
    def configured(self) -> bool:
        return self.settings.zoho_enabled

    def table_id(self, table_name: str) -> str:
        """Resolve a logical table name to its view id; unknown names pass through"""
        return self.settings.zoho_table_ids.get(table_name, table_name)

    def _check_backoff(self) -> None:
        remaining = self.token_store.backoff_remaining()
        if remaining > 0:
            raise ZohoRateLimitError(remaining)

    def _rate_limited(self) -> ZohoRateLimitError:
        seconds = self.settings.zoho_rate_limit_backoff_seconds
        self.token_store.start_backoff(seconds)
        logger.warning(f"Zoho rate limit hit, backing off for {seconds}s")
        return ZohoRateLimitError(seconds)

    async def get_access_token(self) -> str:
        if not self.configured:
            raise ZohoConfigError()
        self._check_backoff()

        token = self.token_store.valid_token()
        if token:
            return token

        async with self.token_store.lock:
            # Another caller may have refreshed while we waited
            self._check_backoff()
            token = self.token_store.valid_token()
            if token:
                return token

            response = await self._http.post(
                self.accounts_url,
                data={
                    "refresh_token": self.settings.zoho_refresh_token,
                    "client_id": self.settings.zoho_client_id,
                    "client_secret": self.settings.zoho_client_secret,
                    "grant_type": "refresh_token",
                },
            )
            if _is_rate_limited(response):
                raise self._rate_limited()
            if response.status_code >= 400:
                logger.error(f"Zoho OAuth token refresh failed with status {response.status_code}")
                raise ZohoError(
                    "Zoho OAuth token refresh failed",
                    status_code=502,
                    details=response.text,
                )

            payload = response.json()
            access_token = payload.get("access_token")
            if not access_token:
                raise ZohoError("No access_token received from Zoho OAuth", details=payload)
            self.token_store.store(access_token, payload.get("expires_in"))
            logger.info("Obtained new Zoho access token")
            return access_token

    def _headers(self, token: str) -> Dict[str, str]:
        headers = {"Authorization": f"Zoho-oauthtoken {token}"}
        if self.settings.zoho_org_id:
            headers["ZANALYTICS-ORGID"] = self.settings.zoho_org_id
        return headers

    async def _send(self, method: str, path: str, config: Dict[str, Any], token: str) -> httpx.Response:
        return await self._http.request(
            method,
            f"{self.base_url}/{path}",
            headers=self._headers(token),
            params={"CONFIG": json.dumps(config)},
        )

    async def _request(self, method: str, path: str, config: Dict[str, Any]) -> Any:
        token = await self.get_access_token()
        response = await self._send(method, path, config, token)

        if response.status_code == 401 or INVALID_TOKEN_MARKER in response.text:
            logger.info("Zoho rejected the access token, refreshing once")
            self.token_store.clear()
            token = await self.get_access_token()
            response = await self._send(method, path, config, token)

        if _is_rate_limited(response):
            raise self._rate_limited()
        if response.status_code >= 500:
            response.raise_for_status()
        if response.status_code >= 400:
            raise ZohoError(
                "Zoho Analytics API request failed",
                status_code=response.status_code,
                details=_response_details(response),
            )
        return _response_details(response)

    async def _call(self, operation: str, func: Callable[[], Awaitable[Any]], retry: bool) -> Any:
        try:
            if retry:
                return await retry_async(func, self.retry_config, self.sleep, operation)
            return await func()
        except httpx.HTTPError as e:
            logger.error(f"Zoho {operation} failed: {e}")
            raise ZohoError(f"Zoho Analytics API request failed: {e}")

    def _view_path(self, table_name: str, suffix: str) -> str:
        workspace = self.settings.zoho_workspace_id
        return f"workspaces/{workspace}/views/{self.table_id(table_name)}/{suffix}"

    async def read_rows(self, table_name: str, criteria: Optional[str] = None) -> List[Dict[str, Any]]:
        config: Dict[str, Any] = {"responseFormat": "json", "keyValueFormat": True}
        if criteria:
            config["criteria"] = criteria
        payload = await self._call(
            f"read {table_name}",
            lambda: self._request("GET", self._view_path(table_name, "data"), config),
            retry=True,
        )
        if isinstance(payload, dict):
            return payload.get("data") or []
        return []

    async def read_row(self, table_name: str, row_id: int) -> Optional[Dict[str, Any]]:
        rows = await self.read_rows(table_name, criteria=f'"ROWID"={int(row_id)}')
        return rows[0] if rows else None

    async def create_row(self, table_name: str, columns: Dict[str, Any]) -> Any:
        return await self._call(
            f"create row in {table_name}",
            lambda: self._request("POST", self._view_path(table_name, "rows"), {"columns": columns}),
            retry=False,
        )

    async def update_row(self, table_name: str, row_id: int, columns: Dict[str, Any]) -> Any:
        config = {"columns": columns, "criteria": f'"ROWID"={int(row_id)}'}
        return await self._call(
            f"update row {row_id} in {table_name}",
            lambda: self._request("PUT", self._view_path(table_name, "rows"), config),
            retry=False,
        )

    async def delete_row(self, table_name: str, row_id: int) -> Any:
        config = {"criteria": f'"ROWID"={int(row_id)}'}
        return await self._call(
            f"delete row {row_id} in {table_name}",
            lambda: self._request("DELETE", self._view_path(table_name, "rows"), config),
            retry=False,
        )

    def health(self) -> Dict[str, Any]:
        return {
            "configured": self.configured,
            "tokenCached": self.token_store.valid_token() is not None,
            "backoffRemainingMs": int(self.token_store.backoff_remaining() * 1000),
        }

    async def aclose(self) -> None:
        await self._http.aclose()


def _response_details(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


_client: Optional[ZohoAnalyticsClient] = None


def get_zoho_client() -> ZohoAnalyticsClient:
    """Process-wide client; the token cache lives as long as the process"""
    global _client
    if _client is None:
        _client = ZohoAnalyticsClient()
    return _client


async def close_zoho_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
