from __future__ import annotations
import asyncio
import gzip
import os
from pathlib import Path
from typing import Protocol
import structlog

from .errors import PersistenceError
from .guard import StoreGuard
from .store import AccountStore

log = structlog.get_logger()


class StoreEncoder(Protocol):
    suffix: str

    def encode(self, store: AccountStore) -> bytes: ...

    def decode(self, blob: bytes) -> AccountStore: ...


class JsonEncoder:
    suffix = ".json"

    def __init__(self, indent: int | None = None):
        self.indent = indent

    def encode(self, store: AccountStore) -> bytes:
        return store.model_dump_json(indent=self.indent).encode("utf-8")

    def decode(self, blob: bytes) -> AccountStore:
        return AccountStore.model_validate_json(blob)


class GzipJsonEncoder(JsonEncoder):
    suffix = ".json.gz"

    def encode(self, store: AccountStore) -> bytes:
        return gzip.compress(super().encode(store))

    def decode(self, blob: bytes) -> AccountStore:
        return super().decode(gzip.decompress(blob))


ENCODERS = {
    "json": JsonEncoder,
    "json.gz": GzipJsonEncoder,
}


def get_encoder(name: str) -> StoreEncoder:
    try:
        return ENCODERS[name]()
    except KeyError:
        raise ValueError(f"unknown store format {name!r}; expected one of {sorted(ENCODERS)}") from None


def _atomic_write(path: Path, payload: bytes):
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    with tmp.open("wb") as f:
        f.write(payload)
        f.flush()
        os.fsync(f.fileno())
    tmp.replace(path)


class StoreFile:
    """Whole-store load/save through a pluggable encoder."""

    def __init__(self, path: str | Path, encoder: StoreEncoder | None = None):
        self.path = Path(path)
        self.encoder = encoder or JsonEncoder()

    def load_or_default(self) -> AccountStore:
        if not self.path.exists():
            log.info("store_file_missing", path=str(self.path))
            return AccountStore()
        store = self.encoder.decode(self.path.read_bytes())
        log.info("store_loaded", path=str(self.path), accounts=len(store.accounts))
        return store

    def save(self, store: AccountStore):
        self.save_bytes(self.encoder.encode(store))

    def save_bytes(self, blob: bytes):
        try:
            _atomic_write(self.path, blob)
        except OSError as e:
            raise PersistenceError(f"could not write store to {self.path}: {e}") from e

    async def flush(self, guard: StoreGuard) -> int:
        """Encode under the read lock, write outside it. Returns bytes written."""
        async with guard.read() as store:
            try:
                blob = self.encoder.encode(store)
            except (TypeError, ValueError) as e:
                raise PersistenceError(f"could not encode store: {e}") from e
        await asyncio.to_thread(self.save_bytes, blob)
        return len(blob)
