from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path
from typing import Any, Generic, TypeVar

import anyio
import msgspec

T = TypeVar("T", bound=msgspec.Struct)


def atomic_write_bytes(path: Path, payload: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(f"{path.suffix}.tmp")
    with open(tmp_path, "wb") as handle:
        handle.write(payload)
        handle.write(b"\n")
    os.replace(tmp_path, path)


class JsonStateStore(Generic[T]):
    """A msgspec-typed JSON document guarded by an anyio lock.

    The file is re-read whenever its mtime changes, so several processes can
    share one state file. Subclasses call the `_locked` helpers while holding
    `self._lock`.
    """

    def __init__(
        self,
        path: Path,
        *,
        version: int,
        state_type: type[T],
        state_factory: Callable[[], T],
        log_prefix: str,
        logger: Any,
    ) -> None:
        self._path = path
        self._version = version
        self._state_type = state_type
        self._state_factory = state_factory
        self._log_prefix = log_prefix
        self._logger = logger
        self._lock = anyio.Lock()
        self._loaded = False
        self._mtime_ns: int | None = None
        self._state: T = state_factory()

    @property
    def path(self) -> Path:
        return self._path

    def _stat_mtime_ns(self) -> int | None:
        try:
            return self._path.stat().st_mtime_ns
        except FileNotFoundError:
            return None

    def _reload_locked_if_needed(self) -> None:
        current = self._stat_mtime_ns()
        if self._loaded and current == self._mtime_ns:
            return
        self._load_locked()

    def _load_locked(self) -> None:
        self._loaded = True
        self._mtime_ns = self._stat_mtime_ns()
        if self._mtime_ns is None:
            self._state = self._state_factory()
            return
        raw = self._path.read_bytes()
        try:
            state = msgspec.json.decode(raw, type=self._state_type)
        except msgspec.DecodeError as exc:
            self._logger.warning(
                f"{self._log_prefix}.load_failed",
                path=str(self._path),
                error=str(exc),
            )
            self._state = self._state_factory()
            return
        if getattr(state, "version", self._version) != self._version:
            self._logger.warning(
                f"{self._log_prefix}.version_mismatch",
                path=str(self._path),
                version=getattr(state, "version", None),
                expected=self._version,
            )
            self._state = self._state_factory()
            return
        self._state = state

    def _save_locked(self) -> None:
        atomic_write_bytes(self._path, msgspec.json.format(msgspec.json.encode(self._state)))
        self._mtime_ns = self._stat_mtime_ns()
