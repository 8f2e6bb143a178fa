"""Per-user and per-guild command cooldowns."""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from datetime import timedelta
from typing import Literal, Protocol

from .logging import get_logger
from .model import CommandSpec

logger = get_logger(__name__)

type CooldownScope = Literal["user", "guild"]

SCOPES: tuple[CooldownScope, ...] = ("user", "guild")


class CooldownStoreError(RuntimeError):
    pass


class CooldownStore(Protocol):
    """Key/timestamp persistence for cooldown expiries (epoch milliseconds)."""

    def is_reachable(self) -> bool: ...

    async def get_expiry(
        self, scope: CooldownScope, command: str, subject_id: int
    ) -> int | None: ...

    async def set_expiry(
        self, scope: CooldownScope, command: str, subject_id: int, expires_at: int
    ) -> None: ...

    async def delete_expired(
        self, scope: CooldownScope, command: str, before: int
    ) -> int: ...


def _to_millis(delta: timedelta) -> int:
    return int(delta.total_seconds() * 1000)


class CooldownGate:
    """Checks and records cooldown expiries against a store.

    Nothing is cached: every check reads the store. A check followed by a
    commit is not atomic, so two concurrent dispatches for the same subject
    can both pass the check before either one commits.
    """

    def __init__(
        self,
        store: CooldownStore,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._clock = clock

    @property
    def store(self) -> CooldownStore:
        return self._store

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    def is_reachable(self) -> bool:
        return self._store.is_reachable()

    async def precheck(
        self, command: str, subject_id: int, scope: CooldownScope
    ) -> timedelta | None:
        expires_at = await self._store.get_expiry(scope, command, subject_id)
        if expires_at is None:
            return None
        now = self.now_ms()
        if now < expires_at:
            return timedelta(milliseconds=expires_at - now)
        return None

    async def commit(
        self,
        command: str,
        subject_id: int,
        scope: CooldownScope,
        duration: timedelta,
    ) -> int:
        expires_at = self.now_ms() + _to_millis(duration)
        await self._store.set_expiry(scope, command, subject_id, expires_at)
        logger.debug(
            "cooldown.committed",
            scope=scope,
            command=command,
            subject_id=subject_id,
            expires_at=expires_at,
        )
        return expires_at

    async def prune_outdated(self, specs: Iterable[CommandSpec]) -> int:
        """Delete records that expired longer ago than each command's threshold.

        The threshold defaults to the cooldown itself. Store failures are
        logged per command and do not stop the sweep.
        """
        removed = 0
        now = self.now_ms()
        for spec in specs:
            if not spec.clean_cooldown_records:
                continue
            for scope in SCOPES:
                if scope == "user":
                    cooldown, threshold = spec.user_cooldown, spec.user_cleanup_threshold
                else:
                    cooldown, threshold = spec.guild_cooldown, spec.guild_cleanup_threshold
                if not cooldown:
                    continue
                window = threshold if threshold is not None else cooldown
                before = now - _to_millis(window)
                try:
                    count = await self._store.delete_expired(scope, spec.name, before)
                except CooldownStoreError as exc:
                    logger.error(
                        "cooldown.prune_failed",
                        scope=scope,
                        command=spec.name,
                        error=str(exc),
                    )
                    continue
                removed += count
        logger.info("cooldown.pruned", removed=removed)
        return removed
