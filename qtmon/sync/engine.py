from __future__ import annotations
import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable
from pydantic import ValidationError

from ..auth import AuthRenewalError
from ..context import AppContext
from ..providers.common import BrokerAPIError, NotAuthenticatedError
from ..storage.errors import (
    DuplicateAccountError,
    DuplicateAliasError,
    DuplicateBalanceError,
    DuplicatePositionError,
    PersistenceError,
    UnknownAccountError,
)
from ..storage.store import AccountInsert
from ..utils import now_utc_iso, split_local

# Failures that skip one sub-operation for the cycle instead of stopping it.
_UPSTREAM_ERRORS = (BrokerAPIError, AuthRenewalError, ValidationError)


class SyncState(str, Enum):
    IDLE = "idle"
    DISCOVERING = "discovering"
    SYNCING = "syncing"
    PERSISTING = "persisting"
    SLEEPING = "sleeping"
    STOPPED = "stopped"


@dataclass
class CycleReport:
    started_at_utc: str
    finished_at_utc: str | None = None
    accounts_discovered: int = 0
    accounts_added: int = 0
    accounts_refreshed: int = 0
    accounts_synced: int = 0
    balances_inserted: int = 0
    positions_inserted: int = 0
    duplicates: int = 0
    bytes_written: int = 0
    timeouts: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class SyncEngine:
    """
    Periodic fetch/merge loop:
    IDLE -> DISCOVERING -> SYNCING -> PERSISTING -> SLEEPING -> IDLE
    Fetches are bounded by one deadline per cycle (now + sync delay). The write
    lock is taken per insert, never across a broker call. A failed flush is the
    only error that stops the loop.
    """

    def __init__(self, ctx: AppContext, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.ctx = ctx
        self.log = ctx.log
        self.state = SyncState.IDLE
        self.last_report: CycleReport | None = None
        self.error: str | None = None
        self._sleep = sleep
        self._auth_lock = asyncio.Lock()

    def _loop_time(self) -> float:
        return asyncio.get_running_loop().time()

    # *** main loop ***

    async def run_forever(self):
        try:
            await self.ensure_authenticated()
            while True:
                deadline = self._loop_time() + self.ctx.settings.sync_delay_seconds
                await self.run_cycle(deadline)
                self.state = SyncState.SLEEPING
                remaining = deadline - self._loop_time()
                if remaining > 0:
                    await self._sleep(remaining)
                self.state = SyncState.IDLE
        except PersistenceError as e:
            self.state = SyncState.STOPPED
            self.error = str(e)
            self.log.critical("sync_engine_stopped", err=str(e))
            raise
        except Exception as e:
            self.state = SyncState.STOPPED
            self.error = f"{type(e).__name__}: {e}"
            self.log.critical("sync_engine_crashed", err=str(e), err_type=type(e).__name__)
            raise

    async def run_cycle(self, deadline: float | None = None) -> CycleReport:
        if deadline is None:
            deadline = self._loop_time() + self.ctx.settings.sync_delay_seconds
        report = CycleReport(started_at_utc=now_utc_iso())
        self.log.info("sync_cycle_started", budget_seconds=round(deadline - self._loop_time(), 2))

        self.state = SyncState.DISCOVERING
        await self.discover_accounts(deadline, report)

        self.state = SyncState.SYNCING
        numbers = await self.ctx.guard.account_numbers()
        await asyncio.gather(*(self.sync_account(number, deadline, report) for number in numbers))
        report.accounts_synced = len(numbers)

        self.state = SyncState.PERSISTING
        report.bytes_written = await self.persist()

        report.finished_at_utc = now_utc_iso()
        self.state = SyncState.IDLE
        self.last_report = report
        self.log.info(
            "sync_cycle_finished",
            accounts=report.accounts_synced,
            balances=report.balances_inserted,
            positions=report.positions_inserted,
            duplicates=report.duplicates,
            timeouts=len(report.timeouts),
            errors=len(report.errors),
        )
        return report

    # *** auth ***

    async def ensure_authenticated(self):
        """Renew when the credential is expired or inside the grace window. Failures are logged only."""
        if not self.ctx.auth.is_expired():
            return
        try:
            await self.renew_auth(seen_version=self.ctx.auth.version)
        except AuthRenewalError as e:
            self.log.error("auth_renewal_failed", err=str(e))

    async def renew_auth(self, seen_version: int | None = None):
        async with self._auth_lock:
            if seen_version is not None and self.ctx.auth.version != seen_version:
                # another task renewed while this one waited
                return
            token = self.ctx.auth.refresh_token
            if not token:
                raise AuthRenewalError("no refresh token available")
            try:
                cred = await self.ctx.client.authenticate(token)
            except BrokerAPIError as e:
                raise AuthRenewalError(str(e)) from e
            try:
                self.ctx.auth.replace(cred)
            except OSError as e:
                raise AuthRenewalError(f"could not persist credential: {e}") from e
            self.log.info("auth_renewed", expires_at=cred.expires_at.isoformat())

    async def _with_renewal(self, op, *args):
        """Run a broker call; on NotAuthenticatedError renew once and retry once."""
        version = self.ctx.auth.version
        try:
            return await op(*args)
        except NotAuthenticatedError as e:
            self.log.warning("broker_not_authenticated", op=getattr(op, "__name__", repr(op)), err=str(e))
        await self.renew_auth(seen_version=version)
        return await op(*args)

    async def _bounded(self, deadline: float, op, *args):
        remaining = deadline - self._loop_time()
        if remaining <= 0:
            raise asyncio.TimeoutError()
        return await asyncio.wait_for(self._with_renewal(op, *args), timeout=remaining)

    # *** discovery ***

    async def discover_accounts(self, deadline: float, report: CycleReport):
        try:
            accounts = await self._bounded(deadline, self.ctx.client.list_accounts)
        except asyncio.TimeoutError:
            report.timeouts.append("list_accounts")
            self.log.warning("account_discovery_timeout")
            return
        except _UPSTREAM_ERRORS as e:
            report.errors.append(f"list_accounts: {e}")
            self.log.error("account_discovery_failed", err=str(e))
            return
        report.accounts_discovered = len(accounts)
        for account in accounts:
            for target in self.ctx.settings.accounts_to_sync:
                if not target.matches(account):
                    continue
                alias = target.alias_for(account)
                try:
                    async with self.ctx.guard.write() as store:
                        outcome = store.insert_account(alias, account)
                except (DuplicateAliasError, DuplicateAccountError) as e:
                    self.log.debug("account_insert_skipped", alias=alias, number=account.number, err=str(e))
                    continue
                if outcome == AccountInsert.ADDED:
                    report.accounts_added += 1
                    self.log.info("account_added", alias=alias, number=account.number)
                elif outcome == AccountInsert.REFRESHED:
                    report.accounts_refreshed += 1
                    self.log.info("account_refreshed", alias=alias, number=account.number, status=account.status)

    # *** balances & positions ***

    async def sync_account(self, number: str, deadline: float, report: CycleReport):
        await asyncio.gather(
            self._sync_balance(number, deadline, report),
            self._sync_positions(number, deadline, report),
        )

    async def _sync_balance(self, number: str, deadline: float, report: CycleReport):
        try:
            balances = await self._bounded(deadline, self.ctx.client.get_balances, number)
        except asyncio.TimeoutError:
            report.timeouts.append(f"balance:{number}")
            self.log.warning("balance_fetch_timeout", account=number)
            return
        except _UPSTREAM_ERRORS as e:
            report.errors.append(f"balance:{number}: {e}")
            self.log.error("balance_fetch_failed", account=number, err=str(e))
            return
        picked = balances.pick(self.ctx.settings.account_balance_currency)
        if picked is None:
            self.log.warning("balance_empty", account=number)
            return
        current, start_of_day = picked
        day, at = split_local(self.ctx.now(), self.ctx.settings.local_tz)
        try:
            async with self.ctx.guard.write() as store:
                store.insert_balance(number, day, at, current, start_of_day)
        except DuplicateBalanceError as e:
            report.duplicates += 1
            self.log.debug("balance_insert_skipped", account=number, err=str(e))
            return
        except UnknownAccountError as e:
            report.errors.append(str(e))
            self.log.error("balance_insert_failed", account=number, err=str(e))
            return
        report.balances_inserted += 1

    async def _sync_positions(self, number: str, deadline: float, report: CycleReport):
        try:
            positions = await self._bounded(deadline, self.ctx.client.get_positions, number)
        except asyncio.TimeoutError:
            report.timeouts.append(f"positions:{number}")
            self.log.warning("positions_fetch_timeout", account=number)
            return
        except _UPSTREAM_ERRORS as e:
            report.errors.append(f"positions:{number}: {e}")
            self.log.error("positions_fetch_failed", account=number, err=str(e))
            return
        day, at = split_local(self.ctx.now(), self.ctx.settings.local_tz)
        for position in positions:
            try:
                async with self.ctx.guard.write() as store:
                    store.insert_position(number, day, at, position)
            except DuplicatePositionError as e:
                report.duplicates += 1
                self.log.debug("position_insert_skipped", account=number, symbol=position.symbol, err=str(e))
                continue
            except UnknownAccountError as e:
                report.errors.append(str(e))
                self.log.error("position_insert_failed", account=number, err=str(e))
                return
            report.positions_inserted += 1

    # *** persistence ***

    async def persist(self) -> int:
        try:
            written = await self.ctx.store_file.flush(self.ctx.guard)
        except PersistenceError as e:
            self.log.critical("store_persist_failed", path=str(self.ctx.store_file.path), err=str(e))
            raise
        self.log.info("store_persisted", path=str(self.ctx.store_file.path), bytes=written)
        return written
