from __future__ import annotations
from datetime import time
from pydantic import BaseModel, ConfigDict, Field


class Account(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)
    number: str
    type: str = ""
    client_account_type: str = Field(default="", alias="clientAccountType")
    status: str = ""
    is_primary: bool = Field(default=False, alias="isPrimary")
    is_billing: bool = Field(default=False, alias="isBilling")


class Balance(BaseModel):
    """One per-currency balance reading as returned by the broker."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)
    currency: str
    cash: float = 0.0
    market_value: float = Field(default=0.0, alias="marketValue")
    total_equity: float = Field(default=0.0, alias="totalEquity")
    buying_power: float = Field(default=0.0, alias="buyingPower")
    maintenance_excess: float = Field(default=0.0, alias="maintenanceExcess")


class BalanceSnapshot(Balance):
    time_retrieved: time

    @classmethod
    def stamp(cls, balance: Balance, time_retrieved: time) -> "BalanceSnapshot":
        return cls(**balance.model_dump(), time_retrieved=time_retrieved)


class Position(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)
    symbol: str
    open_quantity: float = Field(default=0.0, alias="openQuantity")
    closed_quantity: float = Field(default=0.0, alias="closedQuantity")
    current_market_value: float = Field(default=0.0, alias="currentMarketValue")
    current_price: float = Field(default=0.0, alias="currentPrice")
    average_entry_price: float = Field(default=0.0, alias="averageEntryPrice")
    closed_pnl: float = Field(default=0.0, alias="closedPnl")
    day_pnl: float = Field(default=0.0, alias="dayPnl")
    open_pnl: float = Field(default=0.0, alias="openPnl")
    total_cost: float = Field(default=0.0, alias="totalCost")


class PositionSnapshot(Position):
    time_retrieved: time

    @classmethod
    def stamp(cls, position: Position, time_retrieved: time) -> "PositionSnapshot":
        return cls(**position.model_dump(), time_retrieved=time_retrieved)


class AccountBalances(BaseModel):
    per_currency: list[Balance] = Field(default_factory=list, alias="perCurrencyBalances")
    start_of_day: list[Balance] = Field(default_factory=list, alias="sodPerCurrencyBalances")
    model_config = ConfigDict(populate_by_name=True)

    def pick(self, currency: str) -> tuple[Balance, Balance] | None:
        """Current and start-of-day balance in `currency`, else the first entry of each list."""
        if not self.per_currency or not self.start_of_day:
            return None
        return _pick(self.per_currency, currency), _pick(self.start_of_day, currency)


def _pick(balances: list[Balance], currency: str) -> Balance:
    for bal in balances:
        if bal.currency == currency:
            return bal
    return balances[0]
