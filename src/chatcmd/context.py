"""Incoming messages, command bodies and their execution context."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import timedelta
from functools import partial
from typing import TYPE_CHECKING, Any, Protocol

import anyio
import anyio.to_thread

from .arguments import ParsedArguments
from .model import CommandSpec
from .transport import MessageRef, RenderedMessage, SendOptions, Transport

if TYPE_CHECKING:
    from .registry import CommandRegistry

type CapabilityCheck = Callable[[str], bool]


def _deny_all(capability: str) -> bool:
    _ = capability
    return False


@dataclass(frozen=True, slots=True)
class IncomingMessage:
    text: str
    sender_id: int
    channel_id: int
    message_id: int
    guild_id: int | None = None
    is_bot: bool = False
    has_capability: CapabilityCheck = field(default=_deny_all, compare=False)
    raw: Any | None = field(default=None, compare=False, hash=False)

    @property
    def ref(self) -> MessageRef:
        return MessageRef(
            channel_id=self.channel_id, message_id=self.message_id, raw=self.raw
        )


@dataclass(frozen=True, slots=True)
class CommandResult:
    text: str
    notify: bool = True
    reply_to: MessageRef | None = None


@dataclass(slots=True)
class CommandContext:
    message: IncomingMessage
    spec: CommandSpec
    invoked_as: str
    registry: CommandRegistry
    transport: Transport
    prefix: str

    async def reply(self, text: str, *, notify: bool = True) -> MessageRef | None:
        return await self.transport.send(
            channel_id=self.message.channel_id,
            message=RenderedMessage(text=text),
            options=SendOptions(reply_to=self.message.ref, notify=notify),
        )


@dataclass(frozen=True, slots=True)
class CommandPolicy:
    """Gating rules the dispatcher applies to one message.

    Built from the command spec. A command that defines
    `policy(message, default)` may return a changed copy for that message,
    e.g. with `dataclasses.replace`.
    """

    guild_only: bool = False
    user_cooldown: timedelta = timedelta(0)
    guild_cooldown: timedelta = timedelta(0)
    execute_if_store_unreachable: bool = False
    required_capabilities: tuple[str, ...] = ()

    @classmethod
    def from_spec(cls, spec: CommandSpec) -> CommandPolicy:
        return cls(
            guild_only=spec.guild_only,
            user_cooldown=spec.user_cooldown,
            guild_cooldown=spec.guild_cooldown,
            execute_if_store_unreachable=spec.execute_if_store_unreachable,
            required_capabilities=spec.required_capabilities,
        )

    @property
    def has_user_cooldown(self) -> bool:
        return self.user_cooldown > timedelta(0)

    @property
    def has_guild_cooldown(self) -> bool:
        return self.guild_cooldown > timedelta(0)

    @property
    def has_any_cooldown(self) -> bool:
        return self.has_user_cooldown or self.has_guild_cooldown


type PolicyHook = Callable[[IncomingMessage, CommandPolicy], CommandPolicy]


class Command(Protocol):
    """A command body.

    Implementations may also define `policy(message, default) ->
    CommandPolicy` to adjust guild-only, cooldowns, the store-failure flag or
    required capabilities per message.
    """

    async def execute(
        self, ctx: CommandContext, args: ParsedArguments
    ) -> CommandResult | None: ...

    def choose_span(
        self, ctx: CommandContext, remaining: str, argument_id: int
    ) -> int: ...


def policy_for(
    command: Command, spec: CommandSpec, message: IncomingMessage
) -> CommandPolicy:
    default = CommandPolicy.from_spec(spec)
    hook: PolicyHook | None = getattr(command, "policy", None)
    if hook is None:
        return default
    return hook(message, default)


type CommandFactory = Callable[[], Command]
type CommandBody = Callable[
    [CommandContext, ParsedArguments],
    Awaitable[CommandResult | str | None] | CommandResult | str | None,
]


def _is_async(body: Callable[..., object]) -> bool:
    return inspect.iscoroutinefunction(body) or inspect.iscoroutinefunction(
        getattr(body, "__call__", None)
    )


@dataclass(frozen=True, slots=True)
class FunctionCommand:
    """Adapts a plain function into a `Command`.

    Synchronous bodies run in a worker thread so they do not block the event
    loop. A string return value is sent back as a reply.
    """

    body: CommandBody
    chooser: Callable[[CommandContext, str, int], int] | None = None
    policy: PolicyHook | None = None

    async def execute(
        self, ctx: CommandContext, args: ParsedArguments
    ) -> CommandResult | None:
        if _is_async(self.body):
            result = await self.body(ctx, args)
        else:
            result = await anyio.to_thread.run_sync(partial(self.body, ctx, args))
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, str):
            return CommandResult(text=result)
        return result

    def choose_span(
        self, ctx: CommandContext, remaining: str, argument_id: int
    ) -> int:
        if self.chooser is None:
            return 0
        return self.chooser(ctx, remaining, argument_id)


def function_command(
    body: CommandBody,
    *,
    chooser: Callable[[CommandContext, str, int], int] | None = None,
    policy: PolicyHook | None = None,
) -> CommandFactory:
    command = FunctionCommand(body=body, chooser=chooser, policy=policy)
    return lambda: command
