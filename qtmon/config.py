from __future__ import annotations
from pathlib import Path
from dotenv import load_dotenv
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .storage.models import Account

# Load .env from repo root for local development and scripts.
ENV_PATH = Path(__file__).resolve().parents[1] / ".env"
load_dotenv(dotenv_path=ENV_PATH)


class AccountSelector(BaseModel):
    """Every field that is set must match the account."""
    number: str | None = None
    is_primary: bool | None = None
    is_billing: bool | None = None
    type: str | None = None
    client_account_type: str | None = None
    status: str | None = None

    def matches(self, account: Account) -> bool:
        for field, want in self.model_dump(exclude_none=True).items():
            if getattr(account, field) != want:
                return False
        return True


class AccountToSync(BaseModel):
    name: str = ""
    selectors: list[AccountSelector] = Field(default_factory=list)

    def matches(self, account: Account) -> bool:
        return all(sel.matches(account) for sel in self.selectors)

    def alias_for(self, account: Account) -> str:
        return self.name or account.number


def _default_accounts() -> list[AccountToSync]:
    return [AccountToSync(name="Primary", selectors=[AccountSelector(is_primary=True)])]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=True, populate_by_name=True)
    data_dir: str = Field(default="./data", alias="DATA_DIR")
    db_path: str = Field(default="qtmon.json", alias="DB_PATH")
    store_format: str = Field(default="json", alias="STORE_FORMAT")
    auth_file_path: str = Field(default="auth.json", alias="AUTH_FILE_PATH")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_file: str = Field(default="", alias="LOG_FILE")
    log_file_level: str = Field(default="INFO", alias="LOG_FILE_LEVEL")
    http_host: str = Field(default="127.0.0.1", alias="HTTP_HOST")
    http_port: int = Field(default=49494, alias="HTTP_PORT")
    sync_delay_seconds: float = Field(default=300.0, alias="SYNC_DELAY_SECONDS")
    account_balance_currency: str = Field(default="CAD", alias="ACCOUNT_BALANCE_CURRENCY")
    accounts_to_sync: list[AccountToSync] = Field(default_factory=_default_accounts, alias="ACCOUNTS_TO_SYNC")
    local_tz: str = Field(default="America/Toronto", alias="LOCAL_TZ")
    login_server: str = Field(default="https://login.questrade.com", alias="LOGIN_SERVER")
    http_timeout_seconds: float = Field(default=30.0, alias="HTTP_TIMEOUT_SECONDS")
    auth_check_interval_seconds: int = Field(default=60, alias="AUTH_CHECK_INTERVAL_SECONDS")
    auth_expiry_grace_seconds: int = Field(default=300, alias="AUTH_EXPIRY_GRACE_SECONDS")

    def resolve_path(self, value: str) -> Path:
        """Relative paths are measured from DATA_DIR."""
        path = Path(value).expanduser()
        if path.is_absolute():
            return path
        return Path(self.data_dir).expanduser() / path

    @property
    def store_path(self) -> Path:
        return self.resolve_path(self.db_path)

    @property
    def auth_path(self) -> Path:
        return self.resolve_path(self.auth_file_path)

    @property
    def log_path(self) -> Path | None:
        return self.resolve_path(self.log_file) if self.log_file else None


def load_settings(**overrides) -> Settings:
    return Settings(**overrides)
