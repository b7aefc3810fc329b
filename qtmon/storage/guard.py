from __future__ import annotations
import asyncio
from contextlib import asynccontextmanager
from datetime import date, time
from typing import AsyncIterator

from .models import BalanceSnapshot, PositionSnapshot
from .store import AccountInfo, AccountStore


class ReadWriteLock:
    """
    asyncio reader/writer lock.
    - any number of readers together
    - one writer, exclusive of readers and other writers
    - a waiting writer blocks newly arriving readers
    """
    def __init__(self):
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    async def acquire_read(self):
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writer and self._writers_waiting == 0)
            self._readers += 1

    async def release_read(self):
        async with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    async def acquire_write(self):
        async with self._cond:
            self._writers_waiting += 1
            try:
                await self._cond.wait_for(lambda: not self._writer and self._readers == 0)
            finally:
                self._writers_waiting -= 1
            self._writer = True

    async def release_write(self):
        async with self._cond:
            self._writer = False
            self._cond.notify_all()

    @property
    def readers(self) -> int:
        return self._readers

    @property
    def writing(self) -> bool:
        return self._writer


class StoreGuard:
    """Shared handle on the account store; every access goes through read() or write()."""

    def __init__(self, store: AccountStore | None = None):
        self._store = store if store is not None else AccountStore()
        self._lock = ReadWriteLock()

    @property
    def lock(self) -> ReadWriteLock:
        return self._lock

    @asynccontextmanager
    async def read(self) -> AsyncIterator[AccountStore]:
        await self._lock.acquire_read()
        try:
            yield self._store
        finally:
            await self._lock.release_read()

    @asynccontextmanager
    async def write(self) -> AsyncIterator[AccountStore]:
        await self._lock.acquire_write()
        try:
            yield self._store
        finally:
            await self._lock.release_write()

    # *** query API for the HTTP layer ***

    async def get_account_list(self) -> list[str]:
        async with self.read() as store:
            return store.list_accounts()

    async def get_account_info(self, identifier: str) -> AccountInfo:
        async with self.read() as store:
            return store.get_account_info(identifier)

    async def get_latest_balance(self, identifier: str, day: date) -> BalanceSnapshot:
        async with self.read() as store:
            return store.get_latest_balance(identifier, day)

    async def get_start_of_day_balance(self, identifier: str, day: date) -> BalanceSnapshot:
        async with self.read() as store:
            return store.get_start_of_day_balance(identifier, day)

    async def get_closest_balance(self, identifier: str, day: date, at: time) -> BalanceSnapshot:
        async with self.read() as store:
            return store.get_closest_balance(identifier, day, at)

    async def get_position_symbols(self, identifier: str) -> list[str]:
        async with self.read() as store:
            return store.list_position_symbols(identifier)

    async def get_latest_position(self, identifier: str, symbol: str, day: date) -> PositionSnapshot:
        async with self.read() as store:
            return store.get_latest_position(identifier, symbol, day)

    async def get_closest_position(self, identifier: str, symbol: str, day: date, at: time) -> PositionSnapshot:
        async with self.read() as store:
            return store.get_closest_position(identifier, symbol, day, at)

    async def account_numbers(self) -> list[str]:
        async with self.read() as store:
            return store.account_numbers()
