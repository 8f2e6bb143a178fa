from .bridge import DiscordTransport, incoming_from_discord, run_bot, split_message
from .client import DiscordBotClient, SentMessage

__all__ = [
    "DiscordBotClient",
    "DiscordTransport",
    "SentMessage",
    "incoming_from_discord",
    "run_bot",
    "split_message",
]
