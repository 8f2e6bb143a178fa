"""Handler lifecycle and the bounded dispatch worker pool."""

from __future__ import annotations

import os
import time
from collections.abc import Callable

import anyio
from anyio.abc import ObjectReceiveStream, TaskGroup

from .builtin import register_builtins
from .context import IncomingMessage
from .cooldowns import CooldownGate, CooldownStore
from .dispatcher import Dispatcher, DispatchStatus
from .logging import get_logger
from .registry import CommandRegistry, RegistryError
from .settings import HandlerSettings
from .transport import Transport

logger = get_logger(__name__)


def default_workers() -> int:
    return os.cpu_count() or 1


def should_dispatch(message: IncomingMessage, prefix: str) -> bool:
    if message.is_bot:
        return False
    text = message.text
    return len(text) > len(prefix) and text.startswith(prefix)


class CommandHandler:
    """Owns the registry, the cooldown gate and the dispatch pool.

    Commands are registered before `start()`; afterwards the registry is
    sealed and shared read-only by every dispatch.
    """

    def __init__(
        self,
        registry: CommandRegistry,
        *,
        store: CooldownStore,
        transport: Transport,
        settings: HandlerSettings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings or HandlerSettings()
        self._registry = registry
        self._gate = CooldownGate(store, clock=clock)
        self._dispatcher = Dispatcher(
            registry,
            gate=self._gate,
            transport=transport,
            prefix=self._settings.prefix,
        )
        self._workers = self._settings.workers or default_workers()
        self._limiter: anyio.CapacityLimiter | None = None
        self._started = False

    @property
    def registry(self) -> CommandRegistry:
        return self._registry

    @property
    def gate(self) -> CooldownGate:
        return self._gate

    @property
    def prefix(self) -> str:
        return self._settings.prefix

    @property
    def workers(self) -> int:
        return self._workers

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        if self._started:
            raise RegistryError("the handler has already started")
        register_builtins(
            self._registry,
            command_list=self._settings.enable_command_list,
            inspect=self._settings.enable_inspect_command,
        )
        self._registry.seal()
        self._limiter = anyio.CapacityLimiter(self._workers)
        if self._settings.clean_outdated_cooldowns:
            await self._gate.prune_outdated(self._registry.specs())
        self._started = True
        logger.info(
            "handler.started",
            prefix=self.prefix,
            workers=self.workers,
            commands=len(self._registry.specs()),
        )

    def should_dispatch(self, message: IncomingMessage) -> bool:
        return should_dispatch(message, self.prefix)

    async def handle(self, message: IncomingMessage) -> DispatchStatus:
        return await self._dispatcher.handle(message)

    def submit(self, task_group: TaskGroup, message: IncomingMessage) -> bool:
        if not self.should_dispatch(message):
            return False
        logger.debug(
            "handler.received",
            sender_id=message.sender_id,
            channel_id=message.channel_id,
            text_length=len(message.text),
        )
        task_group.start_soon(self._run, message)
        return True

    async def serve(self, messages: ObjectReceiveStream[IncomingMessage]) -> None:
        if not self._started:
            raise RegistryError("call start() before serving messages")
        async with anyio.create_task_group() as tg:
            async with messages:
                async for message in messages:
                    self.submit(tg, message)

    async def _run(self, message: IncomingMessage) -> None:
        if self._limiter is None:
            raise RegistryError("call start() before dispatching messages")
        async with self._limiter:
            try:
                await self._dispatcher.handle(message)
            except Exception as exc:
                logger.exception(
                    "handler.dispatch_failed",
                    channel_id=message.channel_id,
                    error=str(exc),
                    error_type=exc.__class__.__name__,
                )
