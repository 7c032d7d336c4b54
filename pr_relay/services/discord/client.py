"""Discord REST API client - data layer."""

import asyncio
from typing import Any, Optional
from urllib.parse import quote

import aiohttp

from pr_relay.core.exceptions import ChatServiceError
from pr_relay.core.logging import get_logger
from pr_relay.services.chat.base import ChatService
from pr_relay.services.chat.schemas import MessageContent

logger = get_logger("discord.data")

DISCORD_API_BASE = "https://discord.com/api/v10"

# Thread auto-archive after 24 hours of inactivity
THREAD_AUTO_ARCHIVE_MINUTES = 1440


class DiscordClient(ChatService):
    """ChatService backed by the Discord bot REST API."""

    def __init__(
        self,
        bot_token: str,
        base_url: str = DISCORD_API_BASE,
        timeout: float = 30.0,
        max_retries: int = 3,
    ) -> None:
        self._bot_token = bot_token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max_retries
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers={
                    "Authorization": f"Bot {self._bot_token}",
                    "User-Agent": "DiscordBot (pr-relay, 0.1.0)",
                },
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _request(
        self,
        method: str,
        path: str,
        payload: dict | None = None,
        allow_not_found: bool = False,
    ) -> Any:
        """Call the Discord API, waiting out rate limits.

        Returns the decoded JSON body, or None for empty responses and
        tolerated 404s.
        """
        url = f"{self._base_url}{path}"
        session = self._get_session()

        for attempt in range(self._max_retries + 1):
            try:
                async with session.request(method, url, json=payload) as response:
                    if response.status == 429 and attempt < self._max_retries:
                        body = await response.json(content_type=None)
                        retry_after = float(body.get("retry_after", 1.0))
                        logger.warning(
                            f"Discord rate limited on {method} {path}, retrying in {retry_after}s"
                        )
                        await asyncio.sleep(retry_after)
                        continue

                    if response.status == 404 and allow_not_found:
                        logger.debug(f"Discord {method} {path} returned 404, treating as done")
                        return None

                    if response.status >= 400:
                        text = await response.text()
                        raise ChatServiceError("Discord", f"{method} {path} -> {response.status}: {text}")

                    if response.status == 204:
                        return None
                    return await response.json(content_type=None)
            except aiohttp.ClientError as e:
                raise ChatServiceError("Discord", f"{method} {path} failed: {e}") from e

        raise ChatServiceError("Discord", f"{method} {path} still rate limited after {self._max_retries} retries")

    @staticmethod
    def _message_payload(content: MessageContent) -> dict:
        return {
            "content": content.content,
            "embeds": [embed.model_dump(exclude_none=True) for embed in content.embeds],
        }

    async def send_message(self, channel_id: str, content: MessageContent) -> str:
        """Post a message to a Discord channel."""
        data = await self._request("POST", f"/channels/{channel_id}/messages", self._message_payload(content))
        logger.debug(f"Sent message to channel {channel_id}: {data['id']}")
        return data["id"]

    async def edit_message(self, channel_id: str, message_id: str, content: MessageContent) -> None:
        """Edit an existing message."""
        await self._request(
            "PATCH", f"/channels/{channel_id}/messages/{message_id}", self._message_payload(content)
        )
        logger.debug(f"Edited message {message_id} in channel {channel_id}")

    async def add_reaction(self, channel_id: str, message_id: str, emoji: str) -> None:
        """Add the bot's reaction to a message."""
        await self._request(
            "PUT", f"/channels/{channel_id}/messages/{message_id}/reactions/{quote(emoji)}/@me"
        )
        logger.debug(f"Added reaction {emoji} to message {message_id}")

    async def remove_reaction(self, channel_id: str, message_id: str, emoji: str) -> None:
        """Remove the bot's own reaction. Discord answers 204 even if it was never there."""
        await self._request(
            "DELETE",
            f"/channels/{channel_id}/messages/{message_id}/reactions/{quote(emoji)}/@me",
            allow_not_found=True,
        )
        logger.debug(f"Removed reaction {emoji} from message {message_id}")

    async def create_thread(self, channel_id: str, message_id: str, name: str) -> str:
        """Start a public thread from a message."""
        data = await self._request(
            "POST",
            f"/channels/{channel_id}/messages/{message_id}/threads",
            {"name": name, "auto_archive_duration": THREAD_AUTO_ARCHIVE_MINUTES},
        )
        logger.debug(f"Created thread {data['id']} from message {message_id}")
        return data["id"]

    async def send_thread_message(self, thread_id: str, text: str) -> str:
        """Post a message into a thread."""
        data = await self._request("POST", f"/channels/{thread_id}/messages", {"content": text})
        logger.debug(f"Sent message to thread {thread_id}: {data['id']}")
        return data["id"]

    async def add_thread_member(self, thread_id: str, user_id: str) -> None:
        await self._request("PUT", f"/channels/{thread_id}/thread-members/{user_id}")
        logger.debug(f"Added user {user_id} to thread {thread_id}")

    async def remove_thread_member(self, thread_id: str, user_id: str) -> None:
        await self._request("DELETE", f"/channels/{thread_id}/thread-members/{user_id}")
        logger.debug(f"Removed user {user_id} from thread {thread_id}")

    async def lock_thread(self, thread_id: str, locked: bool = True) -> None:
        await self._request("PATCH", f"/channels/{thread_id}", {"locked": locked})
        logger.debug(f"{'Locked' if locked else 'Unlocked'} thread {thread_id}")
