from __future__ import annotations
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Annotated, Literal, Union
from pydantic import BaseModel, Field, TypeAdapter, field_validator
import structlog

log = structlog.get_logger()

DEFAULT_GRACE = timedelta(minutes=5)


class RefreshTokenAuth(BaseModel):
    """Only a refresh token is known, e.g. on first run."""
    kind: Literal["refresh_token"] = "refresh_token"
    refresh_token: str


class FullAuth(BaseModel):
    kind: Literal["full"] = "full"
    refresh_token: str
    access_token: str
    api_server: str
    expires_at: datetime
    token_type: str = "Bearer"
    is_demo: bool = False

    @field_validator("expires_at")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


AuthInfo = Annotated[Union[RefreshTokenAuth, FullAuth], Field(discriminator="kind")]
_adapter = TypeAdapter(AuthInfo)


class AuthRenewalError(Exception):
    """Raised when the broker refuses or fails to renew the credential."""


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_expired(auth: RefreshTokenAuth | FullAuth, now: datetime | None = None, grace: timedelta = DEFAULT_GRACE) -> bool:
    if isinstance(auth, RefreshTokenAuth):
        return True
    if isinstance(auth, FullAuth):
        now = now or _utc_now()
        return auth.expires_at - now <= grace
    raise TypeError(f"unknown credential type {type(auth).__name__}")


def refresh_token_of(auth: RefreshTokenAuth | FullAuth) -> str:
    if isinstance(auth, (RefreshTokenAuth, FullAuth)):
        return auth.refresh_token
    raise TypeError(f"unknown credential type {type(auth).__name__}")


def load_auth(path: str | Path) -> RefreshTokenAuth | FullAuth:
    return _adapter.validate_json(Path(path).read_bytes())


def save_auth(path: str | Path, auth: RefreshTokenAuth | FullAuth):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    with tmp.open("w", encoding="utf-8") as f:
        f.write(auth.model_dump_json(indent=2))
        f.flush()
        os.fsync(f.fileno())
    tmp.replace(path)


class AuthHolder:
    """
    Mutable holder of the current credential.
    `version` increases on every replacement so callers can tell whether
    someone else already renewed since they last looked.
    """
    def __init__(self, auth: RefreshTokenAuth | FullAuth, path: str | Path | None = None, grace: timedelta = DEFAULT_GRACE):
        self._auth = auth
        self.path = Path(path) if path else None
        self.grace = grace
        self.version = 0

    @classmethod
    def from_file(cls, path: str | Path, grace: timedelta = DEFAULT_GRACE) -> "AuthHolder":
        return cls(load_auth(path), path, grace)

    @property
    def current(self) -> RefreshTokenAuth | FullAuth:
        return self._auth

    @property
    def refresh_token(self) -> str:
        return refresh_token_of(self._auth)

    def is_expired(self, now: datetime | None = None) -> bool:
        return is_expired(self._auth, now, self.grace)

    def replace(self, auth: FullAuth):
        """Persist first, then swap in memory."""
        if self.path is not None:
            save_auth(self.path, auth)
        self._auth = auth
        self.version += 1
        log.info("auth_replaced", expires_at=auth.expires_at.isoformat(), api_server=auth.api_server)
