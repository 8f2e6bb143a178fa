"""Pycord client wrapper."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any

import discord

from ..logging import get_logger

type MessageHandler = Callable[[discord.Message], Coroutine[Any, Any, None]]

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class SentMessage:
    message_id: int
    channel_id: int


class DiscordBotClient:
    """Owns the Pycord bot and forwards incoming messages to one handler."""

    def __init__(self, token: str) -> None:
        self._token = token
        self._message_handler: MessageHandler | None = None
        # Defer bot creation until inside async context
        self._bot: discord.Bot | None = None
        self._ready_event: asyncio.Event | None = None
        self._start_task: asyncio.Task[None] | None = None

    def _ensure_bot(self) -> discord.Bot:
        if self._bot is not None:
            return self._bot

        intents = discord.Intents.default()
        intents.message_content = True
        intents.guilds = True
        intents.messages = True

        self._bot = discord.Bot(intents=intents)
        self._ready_event = asyncio.Event()

        @self._bot.event
        async def on_ready() -> None:
            assert self._ready_event is not None
            logger.info("discord.ready", user=str(self._bot.user))
            self._ready_event.set()

        @self._bot.event
        async def on_message(message: discord.Message) -> None:
            assert self._bot is not None
            if message.author == self._bot.user:
                return
            if self._message_handler is not None:
                await self._message_handler(message)

        return self._bot

    @property
    def bot(self) -> discord.Bot:
        return self._ensure_bot()

    def set_message_handler(self, handler: MessageHandler) -> None:
        self._message_handler = handler

    async def start(self) -> None:
        """Start the bot and wait until ready."""
        bot = self._ensure_bot()
        assert self._ready_event is not None

        async def _run_bot() -> None:
            try:
                await bot.start(self._token)
            except asyncio.CancelledError:
                pass
            except RuntimeError as e:
                # Suppress "Session is closed" error during shutdown
                if "Session is closed" not in str(e):
                    raise

        self._start_task = asyncio.create_task(_run_bot(), name="discord-bot-start")
        await self._ready_event.wait()

    async def close(self) -> None:
        if self._bot is not None:
            await self._bot.close()
            if self._start_task is not None and not self._start_task.done():
                self._start_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._start_task

    async def _resolve_channel(self, channel_id: int) -> discord.abc.Messageable | None:
        bot = self._ensure_bot()
        channel = bot.get_channel(channel_id)
        if channel is None:
            try:
                channel = await bot.fetch_channel(channel_id)
            except discord.NotFound:
                logger.error("discord.channel_not_found", channel_id=channel_id)
                return None
            except discord.HTTPException as e:
                logger.error(
                    "discord.fetch_channel_error", channel_id=channel_id, error=str(e)
                )
                return None
        if not isinstance(channel, discord.abc.Messageable):
            logger.error(
                "discord.not_messageable",
                channel_id=channel_id,
                channel_type=type(channel).__name__,
            )
            return None
        return channel

    async def send_message(
        self,
        *,
        channel_id: int,
        content: str,
        reply_to_message_id: int | None = None,
        mention_author: bool = True,
    ) -> SentMessage | None:
        channel = await self._resolve_channel(channel_id)
        if channel is None:
            return None

        kwargs: dict[str, Any] = {"content": content}
        if reply_to_message_id is not None:
            kwargs["reference"] = discord.MessageReference(
                message_id=reply_to_message_id,
                channel_id=channel_id,
            )
            kwargs["mention_author"] = mention_author

        try:
            message = await channel.send(**kwargs)
        except discord.HTTPException as e:
            logger.error(
                "discord.send_error",
                channel_id=channel_id,
                error=str(e),
                status=getattr(e, "status", None),
            )
            if "reference" not in kwargs:
                return None
            # The replied-to message may be gone; retry as a plain message.
            kwargs.pop("reference")
            kwargs.pop("mention_author", None)
            try:
                message = await channel.send(**kwargs)
            except discord.HTTPException as e2:
                logger.error(
                    "discord.retry_error", channel_id=channel_id, error=str(e2)
                )
                return None
        return SentMessage(message_id=message.id, channel_id=message.channel.id)
