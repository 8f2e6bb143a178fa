import anyio
import pytest

from chatcmd.context import IncomingMessage, function_command
from chatcmd.handler import CommandHandler, default_workers, should_dispatch
from chatcmd.model import CommandSpec, CommandSpecError
from chatcmd.registry import RegistryError
from chatcmd.settings import HandlerSettings
from tests.fakes import make_message


def test_should_dispatch_needs_prefix_and_more() -> None:
    assert should_dispatch(make_message("~ping"), "~")
    assert not should_dispatch(make_message("~"), "~")
    assert not should_dispatch(make_message("ping"), "~")
    assert not should_dispatch(make_message("~ping", is_bot=True), "~")
    assert should_dispatch(make_message("!!ping"), "!!")


def test_default_workers_is_positive() -> None:
    assert default_workers() >= 1


def _handler(registry, store, transport, clock, **settings) -> CommandHandler:
    return CommandHandler(
        registry,
        store=store,
        transport=transport,
        settings=HandlerSettings(**settings),
        clock=clock,
    )


@pytest.mark.anyio
async def test_start_registers_builtins_and_seals(
    registry, memory_store, fake_transport, clock
) -> None:
    handler = _handler(
        registry, memory_store, fake_transport, clock, enable_inspect_command=False
    )

    await handler.start()

    assert handler.started
    assert registry.sealed
    assert registry.spec_for("help") is not None
    assert registry.spec_for("inspect") is None
    with pytest.raises(RegistryError):
        await handler.start()


@pytest.mark.anyio
async def test_start_prunes_outdated_cooldowns(
    registry, memory_store, fake_transport, clock
) -> None:
    registry.register(
        CommandSpec(names=("calc",), user_cooldown=5),
        function_command(lambda ctx, args: None),
    )
    memory_store.records = {("user", "calc", 1): 0}

    await _handler(registry, memory_store, fake_transport, clock).start()

    assert memory_store.records == {}


@pytest.mark.anyio
async def test_start_can_skip_pruning(
    registry, memory_store, fake_transport, clock
) -> None:
    memory_store.records = {("user", "calc", 1): 0}
    registry.register(
        CommandSpec(names=("calc",), user_cooldown=5),
        function_command(lambda ctx, args: None),
    )

    handler = _handler(
        registry, memory_store, fake_transport, clock, clean_outdated_cooldowns=False
    )
    await handler.start()

    assert memory_store.records == {("user", "calc", 1): 0}


@pytest.mark.anyio
async def test_serve_requires_start(
    registry, memory_store, fake_transport, clock
) -> None:
    handler = _handler(registry, memory_store, fake_transport, clock)
    _, receive = anyio.create_memory_object_stream[IncomingMessage](1)

    with pytest.raises(RegistryError):
        await handler.serve(receive)


@pytest.mark.anyio
async def test_serve_dispatches_qualifying_messages(
    registry, memory_store, fake_transport, clock
) -> None:
    seen: list[str] = []

    async def echo(ctx, args):
        seen.append(args.remainder)
        return args.remainder

    registry.register(CommandSpec(names=("echo",), raw_args=True), function_command(echo))
    handler = _handler(registry, memory_store, fake_transport, clock, prefix="!", workers=2)
    await handler.start()
    send, receive = anyio.create_memory_object_stream[IncomingMessage](10)

    async with send:
        for index, text in enumerate(["!echo one", "echo two", "!echo three", "!"]):
            await send.send(make_message(text, message_id=index))
        await send.send(make_message("!echo bot", is_bot=True))

    with anyio.fail_after(5):
        await handler.serve(receive)

    assert handler.workers == 2
    assert sorted(seen) == ["one", "three"]
    assert sorted(fake_transport.texts) == ["one", "three"]


@pytest.mark.anyio
async def test_serve_survives_transport_failures(
    registry, memory_store, fake_transport, clock
) -> None:
    async def broken_send(**kwargs):
        raise ConnectionError("down")

    fake_transport.send = broken_send
    registry.register(
        CommandSpec(names=("echo",), raw_args=True),
        function_command(lambda ctx, args: "hi"),
    )
    handler = _handler(registry, memory_store, fake_transport, clock)
    await handler.start()
    send, receive = anyio.create_memory_object_stream[IncomingMessage](10)

    async with send:
        await send.send(make_message("~echo"))
        await send.send(make_message("~echo again"))

    with anyio.fail_after(5):
        await handler.serve(receive)


@pytest.mark.anyio
async def test_failed_builtin_registration_leaves_registry_unchanged(
    registry, memory_store, fake_transport, clock
) -> None:
    registry.register(
        CommandSpec(names=("inspect",)), function_command(lambda ctx, args: None)
    )
    handler = _handler(registry, memory_store, fake_transport, clock)

    with pytest.raises(CommandSpecError):
        await handler.start()

    assert not handler.started
    assert not registry.sealed
    assert registry.names() == ("inspect",)
    assert registry.spec_for("help") is None


@pytest.mark.anyio
async def test_dispatch_before_start_is_refused(
    registry, memory_store, fake_transport, clock
) -> None:
    handler = _handler(registry, memory_store, fake_transport, clock)

    with pytest.raises(RegistryError, match="start"):
        await handler._run(make_message("~help"))
