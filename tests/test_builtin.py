import pytest

from chatcmd.builtin import (
    COMMAND_LIST,
    INSPECT_COMMAND,
    InspectCommand,
    register_builtins,
)
from chatcmd.context import CommandContext, function_command
from chatcmd.cooldowns import CooldownGate
from chatcmd.dispatcher import Dispatcher
from chatcmd.model import CommandSpec
from chatcmd.registry import CommandRegistry
from tests.fakes import make_message


async def _noop(ctx, args):
    return None


def _dispatcher(registry, store, transport, clock) -> Dispatcher:
    register_builtins(registry, command_list=True, inspect=True)
    registry.seal()
    return Dispatcher(
        registry,
        gate=CooldownGate(store, clock=clock),
        transport=transport,
        prefix="~",
    )


def test_builtins_can_be_disabled(registry: CommandRegistry) -> None:
    register_builtins(registry, command_list=False, inspect=True)

    assert registry.spec_for("help") is None
    assert registry.spec_for("inspect") is INSPECT_COMMAND


def test_command_list_is_unlisted(registry: CommandRegistry) -> None:
    register_builtins(registry, command_list=True, inspect=True)

    assert COMMAND_LIST not in registry.listed()
    assert INSPECT_COMMAND in registry.listed()


@pytest.mark.anyio
async def test_command_list_shows_first_page_by_default(
    registry, memory_store, fake_transport, clock
) -> None:
    for index in range(8):
        registry.register(
            CommandSpec(names=(f"cmd{index}",), description=f"does {index}"),
            function_command(_noop),
        )
    dispatcher = _dispatcher(registry, memory_store, fake_transport, clock)

    assert await dispatcher.handle(make_message("~help")) == "executed"
    text = fake_transport.texts[-1]
    assert "`cmd0` - does 0" in text
    assert "cmd7" not in text
    assert text.endswith("Page 1 out of 2")

    assert await dispatcher.handle(make_message("~commands 2")) == "executed"
    assert "`inspect command {command name}`" in fake_transport.texts[-1]


@pytest.mark.anyio
async def test_command_list_beyond_last_page(
    registry, memory_store, fake_transport, clock
) -> None:
    dispatcher = _dispatcher(registry, memory_store, fake_transport, clock)

    assert await dispatcher.handle(make_message("~cmds 3")) == "executed"
    assert fake_transport.texts == ["There's a total of 1 page"]


@pytest.mark.anyio
async def test_command_list_rejects_fractional_page(
    registry, memory_store, fake_transport, clock
) -> None:
    dispatcher = _dispatcher(registry, memory_store, fake_transport, clock)

    assert await dispatcher.handle(make_message("~help 1.5")) == "args_invalid"


@pytest.mark.anyio
async def test_inspect_defaults_to_itself(
    registry, memory_store, fake_transport, clock
) -> None:
    dispatcher = _dispatcher(registry, memory_store, fake_transport, clock)

    assert await dispatcher.handle(make_message("~inspect")) == "executed"
    assert fake_transport.texts[0].startswith("**inspect command**")


@pytest.mark.anyio
async def test_inspect_resolves_multi_word_names(
    registry, memory_store, fake_transport, clock
) -> None:
    dispatcher = _dispatcher(registry, memory_store, fake_transport, clock)

    assert await dispatcher.handle(make_message("~inspect HELP")) == "executed"
    text = fake_transport.texts[0]
    assert text.startswith("**command list**")
    assert "Aliases: **commands**, **cmds**, **help**" in text

    assert (
        await dispatcher.handle(make_message("~inspect inspect command"))
        == "executed"
    )
    assert fake_transport.texts[1].startswith("**inspect command**")


@pytest.mark.anyio
async def test_inspect_unknown_name_is_invalid(
    registry, memory_store, fake_transport, clock
) -> None:
    dispatcher = _dispatcher(registry, memory_store, fake_transport, clock)

    assert await dispatcher.handle(make_message("~inspect nothing")) == "args_invalid"


def test_inspect_chooser_requires_word_boundary(registry: CommandRegistry) -> None:
    register_builtins(registry, command_list=True, inspect=True)
    ctx = CommandContext(
        message=make_message("~inspect"),
        spec=INSPECT_COMMAND,
        invoked_as="inspect",
        registry=registry,
        transport=None,  # type: ignore[arg-type]
        prefix="~",
    )
    command = InspectCommand()

    assert command.choose_span(ctx, "helpful", 0) == 0
    assert command.choose_span(ctx, "help me", 0) == 4
    assert command.choose_span(ctx, "inspect command", 0) == len("inspect command")
    assert command.choose_span(ctx, "help", 1) == 0
