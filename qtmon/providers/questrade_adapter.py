from __future__ import annotations
from datetime import datetime, timedelta, timezone
import httpx
import structlog
from pydantic import ValidationError

from ..auth import AuthHolder, FullAuth
from ..storage.models import Account, AccountBalances, Position
from .common import BrokerAPIError, NotAuthenticatedError, clean_numbers

log = structlog.get_logger()

_BALANCE_FIELDS = ("cash", "marketValue", "totalEquity", "buyingPower", "maintenanceExcess")
_POSITION_FIELDS = (
    "openQuantity",
    "closedQuantity",
    "currentMarketValue",
    "currentPrice",
    "averageEntryPrice",
    "closedPnl",
    "dayPnl",
    "openPnl",
    "totalCost",
)


def _records(data: dict, key: str) -> list[dict]:
    items = data.get(key) or []
    if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
        raise BrokerAPIError(f"{key!r} is not a list of objects")
    return items


class QuestradeAdapter:
    """Async Questrade REST client. Reads the access token from the shared AuthHolder on every call."""

    def __init__(
        self,
        auth: AuthHolder,
        login_server: str = "https://login.questrade.com",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.auth = auth
        self.login_server = login_server.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def _get(self, path: str) -> dict:
        cred = self.auth.current
        if not isinstance(cred, FullAuth):
            raise NotAuthenticatedError("no access token; authenticate first")
        url = f"{cred.api_server.rstrip('/')}/{path.lstrip('/')}"
        headers = {"Authorization": f"{cred.token_type} {cred.access_token}", "Accept": "application/json"}
        try:
            async with self._client() as client:
                r = await client.get(url, headers=headers)
        except httpx.HTTPError as e:
            raise BrokerAPIError(f"GET {path} failed: {e}") from e
        if r.status_code == 401:
            raise NotAuthenticatedError(f"GET {path} rejected: {r.text[:200]}")
        if r.status_code != 200:
            log.warning("questrade_request_failed", path=path, status=r.status_code, body=r.text[:500])
            raise BrokerAPIError(f"GET {path} failed ({r.status_code})")
        try:
            data = r.json()
        except ValueError as e:
            raise BrokerAPIError(f"GET {path} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise BrokerAPIError(f"GET {path} returned {type(data).__name__}, expected an object")
        return data

    async def list_accounts(self) -> list[Account]:
        data = await self._get("v1/accounts")
        return [Account.model_validate(item) for item in _records(data, "accounts")]

    async def get_balances(self, account_number: str) -> AccountBalances:
        data = await self._get(f"v1/accounts/{account_number}/balances")
        return AccountBalances(
            per_currency=[clean_numbers(b, _BALANCE_FIELDS) for b in _records(data, "perCurrencyBalances")],
            start_of_day=[clean_numbers(b, _BALANCE_FIELDS) for b in _records(data, "sodPerCurrencyBalances")],
        )

    async def get_positions(self, account_number: str) -> list[Position]:
        data = await self._get(f"v1/accounts/{account_number}/positions")
        return [Position.model_validate(clean_numbers(p, _POSITION_FIELDS)) for p in _records(data, "positions")]

    async def authenticate(self, refresh_token: str) -> FullAuth:
        url = f"{self.login_server}/oauth2/token"
        params = {"grant_type": "refresh_token", "refresh_token": refresh_token}
        try:
            async with self._client() as client:
                r = await client.get(url, params=params)
        except httpx.HTTPError as e:
            raise BrokerAPIError(f"token refresh failed: {e}") from e
        if r.status_code != 200:
            raise BrokerAPIError(f"token refresh failed ({r.status_code}): {r.text[:200]}")
        try:
            data = r.json()
        except ValueError as e:
            raise BrokerAPIError("token refresh returned invalid JSON") from e
        if not isinstance(data, dict):
            raise BrokerAPIError(f"token refresh returned {type(data).__name__}, expected an object")
        if not data.get("access_token") or not data.get("api_server"):
            raise BrokerAPIError("token refresh response missing access_token/api_server")
        try:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=int(data.get("expires_in") or 0))
        except (TypeError, ValueError, OverflowError) as e:
            raise BrokerAPIError(f"token refresh returned bad expires_in: {data.get('expires_in')!r}") from e
        try:
            return FullAuth(
                refresh_token=data.get("refresh_token") or refresh_token,
                access_token=data["access_token"],
                api_server=data["api_server"],
                token_type=data.get("token_type") or "Bearer",
                expires_at=expires_at,
                is_demo="practice" in self.login_server,
            )
        except ValidationError as e:
            raise BrokerAPIError(f"token refresh response rejected: {e}") from e
