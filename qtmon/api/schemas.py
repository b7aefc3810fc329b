from pydantic import BaseModel
from typing import Optional, Literal


class AccountSummary(BaseModel):
    alias: str
    number: str
    type: str
    client_account_type: str
    status: str
    is_primary: bool
    is_billing: bool


class CycleSummary(BaseModel):
    started_at_utc: str
    finished_at_utc: Optional[str] = None
    accounts_synced: int
    balances_inserted: int
    positions_inserted: int
    duplicates: int
    timeouts: list[str]
    errors: list[str]


class HealthResponse(BaseModel):
    ok: bool
    state: Literal['idle', 'discovering', 'syncing', 'persisting', 'sleeping', 'stopped']
    error: Optional[str] = None
    last_cycle: Optional[CycleSummary] = None
