"""Discord chat backend."""

from pr_relay.services.discord.client import DiscordClient

__all__ = ["DiscordClient"]
