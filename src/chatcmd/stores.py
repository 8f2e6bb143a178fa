"""Cooldown store implementations."""

from __future__ import annotations

import time
from collections.abc import Callable
from pathlib import Path

import msgspec

from .cooldowns import CooldownScope, CooldownStoreError
from .logging import get_logger
from .state_store import JsonStateStore

logger = get_logger(__name__)

STATE_VERSION = 1
STATE_FILENAME = "chatcmd_cooldowns.json"
RETRY_INTERVAL_S = 30.0


class _CooldownState(msgspec.Struct, forbid_unknown_fields=False):
    version: int
    users: dict[str, int] = msgspec.field(default_factory=dict)
    guilds: dict[str, int] = msgspec.field(default_factory=dict)


def resolve_cooldowns_path(config_path: Path) -> Path:
    return config_path.with_name(STATE_FILENAME)


def _record_key(command: str, subject_id: int) -> str:
    return f"{command}:{subject_id}"


def _new_state() -> _CooldownState:
    return _CooldownState(version=STATE_VERSION)


class JsonCooldownStore(JsonStateStore[_CooldownState]):
    """Cooldown expiries in a JSON file, one table per scope.

    An I/O failure marks the store unreachable. After `retry_interval`
    seconds it reports itself reachable again so the next dispatch retries the
    file; a successful read or write clears the failure.
    """

    def __init__(
        self,
        path: Path,
        *,
        retry_interval: float = RETRY_INTERVAL_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(
            path,
            version=STATE_VERSION,
            state_type=_CooldownState,
            state_factory=_new_state,
            log_prefix="cooldowns",
            logger=logger,
        )
        self._retry_interval = retry_interval
        self._clock = clock
        self._failed_at: float | None = None

    def is_reachable(self) -> bool:
        if self._failed_at is None:
            return True
        return self._clock() - self._failed_at >= self._retry_interval

    async def open(self) -> bool:
        async with self._lock:
            try:
                self._run_locked(self._reload_locked_if_needed)
            except CooldownStoreError:
                return False
        return True

    async def get_expiry(
        self, scope: CooldownScope, command: str, subject_id: int
    ) -> int | None:
        async with self._lock:
            self._run_locked(self._reload_locked_if_needed)
            return self._table_locked(scope).get(_record_key(command, subject_id))

    async def set_expiry(
        self, scope: CooldownScope, command: str, subject_id: int, expires_at: int
    ) -> None:
        async with self._lock:
            self._run_locked(self._reload_locked_if_needed)
            self._table_locked(scope)[_record_key(command, subject_id)] = expires_at
            self._run_locked(self._save_locked)

    async def delete_expired(
        self, scope: CooldownScope, command: str, before: int
    ) -> int:
        async with self._lock:
            self._run_locked(self._reload_locked_if_needed)
            table = self._table_locked(scope)
            stale = [
                key
                for key, expires_at in table.items()
                if key.rpartition(":")[0] == command and expires_at < before
            ]
            if not stale:
                return 0
            for key in stale:
                del table[key]
            self._run_locked(self._save_locked)
            return len(stale)

    def _table_locked(self, scope: CooldownScope) -> dict[str, int]:
        if scope == "user":
            return self._state.users
        return self._state.guilds

    def _run_locked(self, operation: Callable[[], None]) -> None:
        try:
            operation()
        except OSError as exc:
            self._failed_at = self._clock()
            # force a fresh read once the file is reachable again
            self._loaded = False
            logger.error("cooldowns.io_failed", path=str(self._path), error=str(exc))
            raise CooldownStoreError(f"cooldown store unavailable: {exc}") from exc
        self._failed_at = None


class MemoryCooldownStore:
    """In-process cooldown store; `reachable` can be toggled to simulate outages."""

    def __init__(self, *, reachable: bool = True) -> None:
        self.reachable = reachable
        self.records: dict[tuple[CooldownScope, str, int], int] = {}

    def is_reachable(self) -> bool:
        return self.reachable

    def _check(self) -> None:
        if not self.reachable:
            raise CooldownStoreError("cooldown store unavailable")

    async def get_expiry(
        self, scope: CooldownScope, command: str, subject_id: int
    ) -> int | None:
        self._check()
        return self.records.get((scope, command, subject_id))

    async def set_expiry(
        self, scope: CooldownScope, command: str, subject_id: int, expires_at: int
    ) -> None:
        self._check()
        self.records[(scope, command, subject_id)] = expires_at

    async def delete_expired(
        self, scope: CooldownScope, command: str, before: int
    ) -> int:
        self._check()
        stale = [
            key
            for key, expires_at in self.records.items()
            if key[0] == scope and key[1] == command and expires_at < before
        ]
        for key in stale:
            del self.records[key]
        return len(stale)
