from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable
import structlog

from .auth import AuthHolder, RefreshTokenAuth
from .config import Settings
from .providers.common import BrokerClient
from .providers.questrade_adapter import QuestradeAdapter
from .storage.guard import StoreGuard
from .storage.persist import StoreFile, get_encoder
from .utils import now_local


@dataclass
class AppContext:
    """Everything the sync engine and the HTTP layer share, built once at startup."""
    settings: Settings
    guard: StoreGuard
    store_file: StoreFile
    auth: AuthHolder
    client: BrokerClient
    log: structlog.typing.FilteringBoundLogger = field(default_factory=structlog.get_logger)
    clock: Callable[[], datetime] | None = None

    def now(self) -> datetime:
        if self.clock is not None:
            return self.clock()
        return now_local(self.settings.local_tz)

    def today(self) -> date:
        return self.now().date()


def build_context(settings: Settings) -> AppContext:
    store_file = StoreFile(settings.store_path, get_encoder(settings.store_format))
    guard = StoreGuard(store_file.load_or_default())
    grace = timedelta(seconds=settings.auth_expiry_grace_seconds)
    if settings.auth_path.exists():
        auth = AuthHolder.from_file(settings.auth_path, grace)
    else:
        # Nothing to renew from until set_refresh_token.py has been run.
        structlog.get_logger().warning("auth_file_missing", path=str(settings.auth_path))
        auth = AuthHolder(RefreshTokenAuth(refresh_token=""), settings.auth_path, grace)
    client = QuestradeAdapter(auth, settings.login_server, settings.http_timeout_seconds)
    return AppContext(
        settings=settings,
        guard=guard,
        store_file=store_file,
        auth=auth,
        client=client,
        log=structlog.get_logger().bind(service="qtmon"),
    )
