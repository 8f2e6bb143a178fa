"""Message to command dispatch pipeline."""

from __future__ import annotations

from datetime import timedelta
from typing import Literal

from .arguments import ParsedArguments, resolve_arguments, resolve_raw
from .context import (
    Command,
    CommandContext,
    CommandPolicy,
    IncomingMessage,
    policy_for,
)
from .cooldowns import CooldownGate, CooldownScope, CooldownStoreError
from .logging import bind_dispatch_context, clear_context, get_logger
from .model import CommandSpec
from .registry import CommandRegistry
from .render import (
    EXECUTION_FAILED_TEXT,
    GUILD_ONLY_TEXT,
    STORE_ERROR_TEXT,
    STORE_UNAVAILABLE_TEXT,
    render_cooldown,
    render_missing_capabilities,
    render_wrong_usage,
)
from .transport import RenderedMessage, SendOptions, Transport

logger = get_logger(__name__)

type DispatchStatus = Literal[
    "no_match",
    "aborted",
    "args_invalid",
    "perms_denied",
    "cooled_down",
    "store_error",
    "executed",
    "exec_failed",
]


class _Abort(Exception):
    def __init__(self, status: DispatchStatus) -> None:
        super().__init__(status)
        self.status = status


class Dispatcher:
    """Runs one message through matching, validation, cooldowns and execution.

    Every step short-circuits the rest. Nothing raised by a command body or
    the cooldown store escapes `handle`.
    """

    def __init__(
        self,
        registry: CommandRegistry,
        *,
        gate: CooldownGate,
        transport: Transport,
        prefix: str,
    ) -> None:
        self._registry = registry
        self._gate = gate
        self._transport = transport
        self._prefix = prefix

    @property
    def prefix(self) -> str:
        return self._prefix

    async def handle(self, message: IncomingMessage) -> DispatchStatus:
        if not message.text.startswith(self._prefix):
            return "no_match"
        body = message.text[len(self._prefix) :].strip()
        if not body:
            logger.debug("dispatch.empty")
            return "no_match"
        match = self._registry.matcher.match(body)
        if match is None:
            logger.debug("dispatch.no_match")
            return "no_match"
        spec = self._registry.spec_for(match.literal)
        command = self._registry.create(match.literal)
        if spec is None or command is None:
            return "no_match"
        bind_dispatch_context(
            command=spec.name,
            sender_id=message.sender_id,
            channel_id=message.channel_id,
            guild_id=message.guild_id,
        )
        try:
            return await self._dispatch(message, spec, command, match.literal, match.rest)
        except _Abort as abort:
            return abort.status
        finally:
            clear_context()

    async def _dispatch(
        self,
        message: IncomingMessage,
        spec: CommandSpec,
        command: Command,
        invoked_as: str,
        raw_args: str,
    ) -> DispatchStatus:
        ctx = CommandContext(
            message=message,
            spec=spec,
            invoked_as=invoked_as,
            registry=self._registry,
            transport=self._transport,
            prefix=self._prefix,
        )

        try:
            policy = policy_for(command, spec, message)
        except Exception as exc:
            logger.exception(
                "dispatch.policy_failed",
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            await self._reply(message, EXECUTION_FAILED_TEXT)
            return "exec_failed"

        if policy.guild_only and message.guild_id is None:
            logger.debug("dispatch.guild_only")
            await self._reply(message, GUILD_ONLY_TEXT)
            return "aborted"

        if (
            policy.has_any_cooldown
            and not policy.execute_if_store_unreachable
            and not self._gate.is_reachable()
        ):
            logger.warning("dispatch.store_unreachable")
            await self._reply(message, STORE_UNAVAILABLE_TEXT)
            return "store_error"

        args = self._resolve(spec, command, ctx, raw_args)
        if not args.is_valid:
            logger.debug("dispatch.args_invalid", invalid_ids=sorted(args.invalid_ids))
            await self._reply(message, render_wrong_usage(spec, args))
            return "args_invalid"

        missing = [
            capability
            for capability in policy.required_capabilities
            if not message.has_capability(capability)
        ]
        if missing:
            logger.debug("dispatch.perms_denied", missing=missing)
            await self._reply(message, render_missing_capabilities(missing))
            return "perms_denied"

        subjects: list[tuple[CooldownScope, int, timedelta]] = []
        if policy.has_user_cooldown:
            subjects.append(("user", message.sender_id, policy.user_cooldown))
        if policy.has_guild_cooldown and message.guild_id is not None:
            subjects.append(("guild", message.guild_id, policy.guild_cooldown))

        # the store-error reply goes out at most once per dispatch
        reported = False
        for scope, subject_id, _ in subjects:
            reported = await self._precheck(
                message, spec, policy, scope, subject_id, reported=reported
            )
        for scope, subject_id, duration in subjects:
            reported = await self._commit(
                message, spec, policy, scope, subject_id, duration, reported=reported
            )

        return await self._execute(ctx, command, args)

    def _resolve(
        self,
        spec: CommandSpec,
        command: Command,
        ctx: CommandContext,
        raw_args: str,
    ) -> ParsedArguments:
        if spec.raw_args:
            return resolve_raw(raw_args)

        def choose(argument_id: int, remaining: str) -> int:
            return command.choose_span(ctx, remaining, argument_id)

        return resolve_arguments(spec, raw_args, choose)

    async def _precheck(
        self,
        message: IncomingMessage,
        spec: CommandSpec,
        policy: CommandPolicy,
        scope: CooldownScope,
        subject_id: int,
        *,
        reported: bool,
    ) -> bool:
        try:
            remaining = await self._gate.precheck(spec.name, subject_id, scope)
        except CooldownStoreError as exc:
            await self._store_failure(message, policy, scope, exc, reply=not reported)
            return True
        if remaining is not None:
            logger.debug("dispatch.cooled_down", scope=scope, remaining=str(remaining))
            await self._reply(message, render_cooldown(remaining))
            raise _Abort("cooled_down")
        return reported

    async def _commit(
        self,
        message: IncomingMessage,
        spec: CommandSpec,
        policy: CommandPolicy,
        scope: CooldownScope,
        subject_id: int,
        duration: timedelta,
        *,
        reported: bool,
    ) -> bool:
        try:
            await self._gate.commit(spec.name, subject_id, scope, duration)
        except CooldownStoreError as exc:
            await self._store_failure(message, policy, scope, exc, reply=not reported)
            return True
        return reported

    async def _store_failure(
        self,
        message: IncomingMessage,
        policy: CommandPolicy,
        scope: CooldownScope,
        exc: CooldownStoreError,
        *,
        reply: bool,
    ) -> None:
        logger.error(
            "dispatch.store_error",
            scope=scope,
            error=str(exc),
            continue_anyway=policy.execute_if_store_unreachable,
        )
        if reply:
            await self._reply(message, STORE_ERROR_TEXT)
        if not policy.execute_if_store_unreachable:
            raise _Abort("store_error")

    async def _execute(
        self,
        ctx: CommandContext,
        command: Command,
        args: ParsedArguments,
    ) -> DispatchStatus:
        logger.debug("dispatch.executing")
        try:
            result = await command.execute(ctx, args)
        except Exception as exc:
            logger.exception(
                "dispatch.exec_failed",
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            await self._reply(ctx.message, EXECUTION_FAILED_TEXT)
            return "exec_failed"
        if result is not None:
            reply_to = result.reply_to or ctx.message.ref
            await self._transport.send(
                channel_id=ctx.message.channel_id,
                message=RenderedMessage(text=result.text),
                options=SendOptions(reply_to=reply_to, notify=result.notify),
            )
        logger.info("dispatch.executed")
        return "executed"

    async def _reply(self, message: IncomingMessage, text: str) -> None:
        await self._transport.send(
            channel_id=message.channel_id,
            message=RenderedMessage(text=text),
            options=SendOptions(reply_to=message.ref),
        )
