from __future__ import annotations
from datetime import date


class StoreError(Exception):
    """Base for every error raised by the account store."""


class InsertError(StoreError):
    pass


class RetrieveError(StoreError):
    pass


# Insert failures. Duplicates are expected when re-syncing.
class DuplicateAliasError(InsertError):
    def __init__(self, alias: str, number: str):
        super().__init__(f"Could not insert account {number}: alias {alias!r} is bound to another account.")
        self.alias = alias
        self.number = number


class DuplicateAccountError(InsertError):
    def __init__(self, number: str, alias: str):
        super().__init__(f"Could not insert account {number}: already stored under alias {alias!r}.")
        self.number = number
        self.alias = alias


class DuplicateBalanceError(InsertError):
    def __init__(self, number: str, day: date):
        super().__init__(f"Could not insert balance for account {number} on {day}: duplicate already stored.")


class DuplicatePositionError(InsertError):
    def __init__(self, number: str, symbol: str, day: date):
        super().__init__(f"Could not insert position {symbol} for account {number} on {day}: duplicate already stored.")


class UnknownAccountError(InsertError):
    def __init__(self, number: str):
        super().__init__(f"Account {number} does not exist.")
        self.number = number


# Retrieval failures, surfaced to HTTP callers.
class UnknownIdentifierError(RetrieveError):
    def __init__(self, identifier: str):
        super().__init__(f"No account matching identifier: {identifier}.")
        self.identifier = identifier


class NoAccountsSyncedError(RetrieveError):
    def __init__(self):
        super().__init__("No accounts synced yet.")


class NoBalanceSyncedError(RetrieveError):
    def __init__(self):
        super().__init__("No balances at all synced for account.")


class NoBalanceForDayError(RetrieveError):
    def __init__(self, day: date):
        super().__init__(f"No balances synced for account date: {day}.")
        self.day = day


class NoPositionsAtAllSyncedError(RetrieveError):
    def __init__(self):
        super().__init__("No positions at all synced for account.")


class NoSymbolSyncedError(RetrieveError):
    def __init__(self, symbol: str):
        super().__init__(f"No positions synced for symbol: {symbol}.")
        self.symbol = symbol


class NoPositionForDayError(RetrieveError):
    def __init__(self, symbol: str, day: date):
        super().__init__(f"No positions synced for symbol: {symbol} on date: {day}.")
        self.symbol = symbol
        self.day = day


class PersistenceError(Exception):
    """Raised when the store cannot be written to durable storage."""
