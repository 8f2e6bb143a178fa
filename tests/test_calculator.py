import math

import pytest

from chatcmd.commands import CALCULATOR
from chatcmd.commands.calculator import CALCULATOR_SPEC, format_number
from chatcmd.cooldowns import CooldownGate
from chatcmd.dispatcher import Dispatcher
from tests.fakes import make_message


@pytest.mark.parametrize(
    ("value", "expected"),
    [(3.0, "3"), (-2.0, "-2"), (2.5, "2.5"), (math.inf, "inf")],
)
def test_format_number(value: float, expected: str) -> None:
    assert format_number(value) == expected


def test_calculator_spec() -> None:
    assert CALCULATOR_SPEC.names == ("calculate", "calculator", "calc")
    assert CALCULATOR_SPEC.signature == (
        "calculate [first number] [operation sign] [second number]"
    )
    assert CALCULATOR_SPEC.user_cooldown.total_seconds() == 5


@pytest.fixture
def dispatcher(registry, memory_store, fake_transport, clock) -> Dispatcher:
    registry.register(*CALCULATOR)
    registry.seal()
    return Dispatcher(
        registry,
        gate=CooldownGate(memory_store, clock=clock),
        transport=fake_transport,
        prefix="~",
    )


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("text", "reply"),
    [
        ("~calc 2 + 3", "2 + 3 = 5"),
        ("~calculator 7 / 2", "7 / 2 = 3.5"),
        ("~CALCULATE 2 ^ 10", "2 ^ 10 = 1024"),
        ("~calc 1 / 0", "Cannot divide by zero."),
        ("~calc -8 ^ 0.5", "The result is not a real number."),
    ],
)
async def test_calculator_replies(dispatcher, fake_transport, text, reply) -> None:
    assert await dispatcher.handle(make_message(text)) == "executed"
    assert fake_transport.texts == [reply]


@pytest.mark.anyio
async def test_calculator_rejects_unknown_sign(dispatcher, fake_transport) -> None:
    assert await dispatcher.handle(make_message("~calc 2 % 3")) == "args_invalid"
    assert "- **operation sign**" in fake_transport.texts[0]


@pytest.mark.anyio
async def test_calculator_cooldown(dispatcher, fake_transport, clock) -> None:
    assert await dispatcher.handle(make_message("~calc 1 + 1")) == "executed"
    clock.advance(2)
    assert await dispatcher.handle(make_message("~calc 1 + 1")) == "cooled_down"
    assert fake_transport.texts[-1] == "The command is on cooldown: 3 seconds"
