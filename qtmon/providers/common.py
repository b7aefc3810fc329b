from __future__ import annotations
from typing import Protocol

from ..auth import FullAuth
from ..storage.models import Account, AccountBalances, Position


class BrokerAPIError(Exception):
    """Any failure talking to the broker that is not an authentication problem."""


class NotAuthenticatedError(BrokerAPIError):
    """The broker rejected the access token; renewing the credential may fix it."""


class BrokerClient(Protocol):
    async def list_accounts(self) -> list[Account]: ...

    async def get_balances(self, account_number: str) -> AccountBalances: ...

    async def get_positions(self, account_number: str) -> list[Position]: ...

    async def authenticate(self, refresh_token: str) -> FullAuth: ...


def coerce_float(val):
    if val is None:
        return 0.0
    try:
        return float(val)
    except (TypeError, ValueError):
        return 0.0


def clean_numbers(item: dict, fields: tuple[str, ...]) -> dict:
    """Broker payloads sometimes carry nulls for numeric fields."""
    out = dict(item)
    for key in fields:
        if key in out:
            out[key] = coerce_float(out[key])
    return out
