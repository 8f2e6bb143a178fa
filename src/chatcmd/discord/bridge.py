"""Discord event source and transport for the command handler."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import anyio

from ..context import IncomingMessage
from ..logging import get_logger
from ..transport import MessageRef, RenderedMessage, SendOptions
from .client import DiscordBotClient

if TYPE_CHECKING:
    import discord

    from ..handler import CommandHandler

logger = get_logger(__name__)

MAX_MESSAGE_CHARS = 2000
QUEUE_SIZE = 100


def split_message(text: str, *, limit: int = MAX_MESSAGE_CHARS) -> list[str]:
    """Split text into chunks Discord accepts, preferring line boundaries."""
    if len(text) <= limit:
        return [text]
    chunks: list[str] = []
    current = ""
    for line in text.splitlines(keepends=True):
        while len(line) > limit:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:limit])
            line = line[limit:]
        if len(current) + len(line) > limit:
            chunks.append(current)
            current = ""
        current += line
    if current:
        chunks.append(current)
    stripped = (chunk.rstrip("\n") for chunk in chunks)
    return [chunk for chunk in stripped if chunk]


def incoming_from_discord(message: Any) -> IncomingMessage:
    """Convert a Pycord message into an `IncomingMessage`.

    Capabilities are Pycord permission flag names such as ``manage_messages``,
    resolved against the author's permissions in the message channel.
    """
    guild = getattr(message, "guild", None)
    channel = message.channel
    author = message.author

    def has_capability(capability: str) -> bool:
        permissions_for = getattr(channel, "permissions_for", None)
        if permissions_for is None:
            return False
        permissions = permissions_for(author)
        return bool(getattr(permissions, capability, False))

    return IncomingMessage(
        text=message.content or "",
        sender_id=author.id,
        channel_id=channel.id,
        message_id=message.id,
        guild_id=guild.id if guild is not None else None,
        is_bot=bool(getattr(author, "bot", False)),
        has_capability=has_capability,
        raw=message,
    )


class DiscordTransport:
    def __init__(self, client: DiscordBotClient) -> None:
        self._client = client

    async def close(self) -> None:
        await self._client.close()

    async def send(
        self,
        *,
        channel_id: int,
        message: RenderedMessage,
        options: SendOptions | None = None,
    ) -> MessageRef | None:
        reply_to = options.reply_to if options is not None else None
        notify = options.notify if options is not None else True
        chunks = split_message(message.text)
        first = await self._client.send_message(
            channel_id=channel_id,
            content=chunks[0],
            reply_to_message_id=reply_to.message_id if reply_to is not None else None,
            mention_author=notify,
        )
        if first is None:
            return None
        for chunk in chunks[1:]:
            await self._client.send_message(channel_id=channel_id, content=chunk)
        return MessageRef(
            channel_id=first.channel_id, message_id=first.message_id, raw=first
        )


async def run_bot(client: DiscordBotClient, handler: CommandHandler) -> None:
    """Start the handler, connect the bot and serve messages until cancelled."""
    send_stream, receive_stream = anyio.create_memory_object_stream[
        IncomingMessage
    ](QUEUE_SIZE)

    async def on_message(message: discord.Message) -> None:
        incoming = incoming_from_discord(message)
        if handler.should_dispatch(incoming):
            await send_stream.send(incoming)

    client.set_message_handler(on_message)
    await handler.start()
    try:
        async with send_stream, anyio.create_task_group() as tg:
            tg.start_soon(handler.serve, receive_stream)
            await client.start()
            logger.info("discord.serving", prefix=handler.prefix)
            await anyio.sleep_forever()
    finally:
        with anyio.CancelScope(shield=True):
            await client.close()
