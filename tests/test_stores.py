from pathlib import Path

import pytest

from chatcmd.cooldowns import CooldownStoreError
from chatcmd.stores import (
    STATE_FILENAME,
    JsonCooldownStore,
    MemoryCooldownStore,
    resolve_cooldowns_path,
)
from tests.fakes import FakeClock


def test_cooldowns_path_sits_next_to_config(tmp_path: Path) -> None:
    assert resolve_cooldowns_path(tmp_path / "chatcmd.toml") == tmp_path / STATE_FILENAME


@pytest.mark.anyio
async def test_json_store_persists_across_instances(tmp_path: Path) -> None:
    path = tmp_path / "state" / STATE_FILENAME
    store = JsonCooldownStore(path)

    assert await store.get_expiry("user", "calc", 1) is None
    await store.set_expiry("user", "calc", 1, 5_000)
    await store.set_expiry("guild", "calc", 1, 7_000)

    reopened = JsonCooldownStore(path)
    assert await reopened.open()
    assert await reopened.get_expiry("user", "calc", 1) == 5_000
    assert await reopened.get_expiry("guild", "calc", 1) == 7_000
    assert await reopened.get_expiry("user", "calc", 2) is None


@pytest.mark.anyio
async def test_json_store_deletes_only_matching_command(tmp_path: Path) -> None:
    store = JsonCooldownStore(tmp_path / STATE_FILENAME)
    await store.set_expiry("user", "calc", 1, 100)
    await store.set_expiry("user", "calc", 2, 900)
    await store.set_expiry("user", "calculate", 3, 100)

    assert await store.delete_expired("user", "calc", 500) == 1
    assert await store.get_expiry("user", "calc", 1) is None
    assert await store.get_expiry("user", "calc", 2) == 900
    assert await store.get_expiry("user", "calculate", 3) == 100


@pytest.mark.anyio
async def test_json_store_replaces_undecodable_file(tmp_path: Path) -> None:
    path = tmp_path / STATE_FILENAME
    path.write_text("{not json", encoding="utf-8")
    store = JsonCooldownStore(path)

    assert await store.get_expiry("user", "calc", 1) is None
    assert store.is_reachable()


@pytest.mark.anyio
async def test_json_store_becomes_unreachable_on_io_errors(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    store = JsonCooldownStore(blocker / STATE_FILENAME)

    with pytest.raises(CooldownStoreError):
        await store.set_expiry("user", "calc", 1, 100)
    assert not store.is_reachable()

    blocker.unlink()
    await store.set_expiry("user", "calc", 1, 100)
    assert store.is_reachable()


@pytest.mark.anyio
async def test_memory_store_can_be_unreachable() -> None:
    store = MemoryCooldownStore(reachable=False)

    assert not store.is_reachable()
    with pytest.raises(CooldownStoreError):
        await store.get_expiry("user", "calc", 1)


@pytest.mark.anyio
async def test_json_store_reports_reachable_again_after_retry_interval(
    tmp_path: Path, clock: FakeClock
) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    store = JsonCooldownStore(blocker / STATE_FILENAME, retry_interval=30, clock=clock)

    assert not await store.open()
    assert not store.is_reachable()
    clock.advance(29)
    assert not store.is_reachable()
    clock.advance(1)
    assert store.is_reachable()

    with pytest.raises(CooldownStoreError):
        await store.get_expiry("user", "calc", 1)
    assert not store.is_reachable()
