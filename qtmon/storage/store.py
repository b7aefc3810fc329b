from __future__ import annotations
from datetime import date, time
from enum import Enum
from pydantic import BaseModel, Field

from .models import Account, Balance, BalanceSnapshot, Position, PositionSnapshot
from .days import BalanceDay, PositionDay
from .errors import (
    DuplicateAccountError,
    DuplicateAliasError,
    DuplicateBalanceError,
    DuplicatePositionError,
    NoAccountsSyncedError,
    NoBalanceForDayError,
    NoBalanceSyncedError,
    NoPositionForDayError,
    NoPositionsAtAllSyncedError,
    NoSymbolSyncedError,
    UnknownAccountError,
    UnknownIdentifierError,
)


class AccountInsert(str, Enum):
    ADDED = "added"
    REFRESHED = "refreshed"
    UNCHANGED = "unchanged"


class AccountInfo(BaseModel):
    alias: str
    account: Account


class AccountStore(BaseModel):
    """
    The single writable aggregate of synced data.
    - aliases: alias -> account number
    - accounts: account number -> Account
    - balances: account number -> date -> BalanceDay
    - positions: account number -> symbol -> date -> PositionDay
    Inserts validate before mutating, so a rejected insert leaves the store untouched.
    """
    aliases: dict[str, str] = Field(default_factory=dict)
    accounts: dict[str, Account] = Field(default_factory=dict)
    balances: dict[str, dict[date, BalanceDay]] = Field(default_factory=dict)
    positions: dict[str, dict[str, dict[date, PositionDay]]] = Field(default_factory=dict)

    # *** inserts ***

    def insert_account(self, alias: str, account: Account) -> AccountInsert:
        """Bind `account` to `alias`.

        Aliases and account numbers share one namespace: an alias never equals
        another account's number.
        """
        alias = alias or account.number
        bound = self.aliases.get(alias)
        if bound is not None and bound != account.number:
            raise DuplicateAliasError(alias, account.number)
        if alias != account.number and alias in self.accounts:
            raise DuplicateAliasError(alias, account.number)
        if bound is None and account.number in self.accounts:
            raise DuplicateAccountError(account.number, self._alias_of(account.number))
        if self.aliases.get(account.number, account.number) != account.number:
            raise DuplicateAliasError(account.number, account.number)
        if bound is not None:
            if self.accounts[bound] == account:
                return AccountInsert.UNCHANGED
            self.accounts[account.number] = account
            return AccountInsert.REFRESHED
        self.aliases[alias] = account.number
        self.accounts[account.number] = account
        return AccountInsert.ADDED

    def insert_balance(self, number: str, day: date, at: time, balance: Balance, start_of_day: Balance):
        if number not in self.accounts:
            raise UnknownAccountError(number)
        snapshot = BalanceSnapshot.stamp(balance, at)
        days = self.balances.get(number, {})
        existing = days.get(day)
        if existing is None:
            new_day = BalanceDay(day=day, start_of_day=BalanceSnapshot.stamp(start_of_day, at))
            new_day.insert(snapshot)
            days[day] = new_day
            self.balances[number] = days
            return
        if not existing.insert(snapshot):
            raise DuplicateBalanceError(number, day)

    def insert_position(self, number: str, day: date, at: time, position: Position):
        if number not in self.accounts:
            raise UnknownAccountError(number)
        snapshot = PositionSnapshot.stamp(position, at)
        by_symbol = self.positions.setdefault(number, {})
        by_day = by_symbol.setdefault(position.symbol, {})
        existing = by_day.get(day)
        if existing is None:
            by_day[day] = PositionDay(day=day, symbol=position.symbol, snapshots=[snapshot])
            return
        if not existing.insert(snapshot):
            raise DuplicatePositionError(number, position.symbol, day)

    # *** identifiers ***

    def resolve(self, identifier: str) -> str:
        """Alias or native account number -> canonical account number."""
        number = self.aliases.get(identifier)
        if number is not None:
            return number
        if identifier in self.accounts:
            return identifier
        raise UnknownIdentifierError(identifier)

    def _alias_of(self, number: str) -> str:
        for alias, num in self.aliases.items():
            if num == number:
                return alias
        return number

    # *** accounts ***

    def account_numbers(self) -> list[str]:
        return list(self.accounts)

    def list_accounts(self) -> list[str]:
        if not self.aliases:
            raise NoAccountsSyncedError()
        return list(self.aliases)

    def get_account_info(self, identifier: str) -> AccountInfo:
        number = self.resolve(identifier)
        return AccountInfo(alias=self._alias_of(number), account=self.accounts[number])

    # *** balances ***

    def _balance_day(self, identifier: str, day: date) -> BalanceDay:
        number = self.resolve(identifier)
        days = self.balances.get(number)
        if not days:
            raise NoBalanceSyncedError()
        found = days.get(day)
        if found is None:
            raise NoBalanceForDayError(day)
        return found

    def get_latest_balance(self, identifier: str, day: date) -> BalanceSnapshot:
        return self._balance_day(identifier, day).most_recent()

    def get_start_of_day_balance(self, identifier: str, day: date) -> BalanceSnapshot:
        return self._balance_day(identifier, day).start_of_day

    def get_closest_balance(self, identifier: str, day: date, at: time) -> BalanceSnapshot:
        return self._balance_day(identifier, day).closest_to(at)

    # *** positions ***

    def list_position_symbols(self, identifier: str) -> list[str]:
        number = self.resolve(identifier)
        by_symbol = self.positions.get(number)
        if not by_symbol:
            raise NoPositionsAtAllSyncedError()
        return sorted(by_symbol)

    def _position_day(self, identifier: str, symbol: str, day: date) -> PositionDay:
        number = self.resolve(identifier)
        by_symbol = self.positions.get(number)
        if not by_symbol:
            raise NoPositionsAtAllSyncedError()
        by_day = by_symbol.get(symbol)
        if not by_day:
            raise NoSymbolSyncedError(symbol)
        found = by_day.get(day)
        if found is None:
            raise NoPositionForDayError(symbol, day)
        return found

    def get_latest_position(self, identifier: str, symbol: str, day: date) -> PositionSnapshot:
        return self._position_day(identifier, symbol, day).most_recent()

    def get_closest_position(self, identifier: str, symbol: str, day: date, at: time) -> PositionSnapshot:
        return self._position_day(identifier, symbol, day).closest_to(at)
