import os
from pathlib import Path

import msgspec
import pytest
import structlog

from chatcmd.state_store import JsonStateStore, atomic_write_bytes


class _Counter(msgspec.Struct):
    version: int
    count: int = 0


class CounterStore(JsonStateStore[_Counter]):
    def __init__(self, path: Path) -> None:
        super().__init__(
            path,
            version=2,
            state_type=_Counter,
            state_factory=lambda: _Counter(version=2),
            log_prefix="counter",
            logger=structlog.get_logger(),
        )

    async def bump(self) -> int:
        async with self._lock:
            self._reload_locked_if_needed()
            self._state.count += 1
            self._save_locked()
            return self._state.count


def test_atomic_write_creates_parents(tmp_path: Path) -> None:
    path = tmp_path / "a" / "b.json"

    atomic_write_bytes(path, b"{}")

    assert path.read_bytes() == b"{}\n"
    assert not path.with_suffix(".json.tmp").exists()


@pytest.mark.anyio
async def test_reloads_when_another_writer_changes_the_file(tmp_path: Path) -> None:
    path = tmp_path / "counter.json"
    store = CounterStore(path)
    assert await store.bump() == 1

    path.write_text('{"version": 2, "count": 40}', encoding="utf-8")
    mtime_ns = path.stat().st_mtime_ns + 1_000_000_000
    os.utime(path, ns=(mtime_ns, mtime_ns))

    assert await store.bump() == 41


@pytest.mark.anyio
async def test_version_mismatch_starts_fresh(tmp_path: Path) -> None:
    path = tmp_path / "counter.json"
    path.write_text('{"version": 1, "count": 41}', encoding="utf-8")

    assert await CounterStore(path).bump() == 1
