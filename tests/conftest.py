import pytest

from chatcmd.registry import CommandRegistry
from chatcmd.stores import MemoryCooldownStore
from tests.fakes import FakeClock, FakeTransport


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def memory_store() -> MemoryCooldownStore:
    return MemoryCooldownStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry() -> CommandRegistry:
    return CommandRegistry()
