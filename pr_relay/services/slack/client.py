"""Slack API client - data layer."""

from typing import Optional

from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from pr_relay.core.exceptions import ChatServiceError
from pr_relay.core.logging import get_logger
from pr_relay.services.chat.base import ChatService
from pr_relay.services.chat.schemas import Embed, MessageContent

logger = get_logger("slack.data")

# Slack reactions are addressed by name, not by the unicode character
SLACK_EMOJI_NAMES = {
    "✅": "white_check_mark",
    "🔴": "red_circle",
    "🎉": "tada",
    "🚪": "door",
}

IGNORED_REACTION_ERRORS = {"already_reacted", "no_reaction"}


def _build_blocks(embed: Embed) -> list[dict]:
    """Build Slack blocks for a PR embed."""
    title = f"*<{embed.url}|{embed.title}>*" if embed.url else f"*{embed.title or ''}*"
    blocks: list[dict] = [
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": title},
        },
    ]

    if embed.url:
        blocks[0]["accessory"] = {
            "type": "button",
            "text": {"type": "plain_text", "text": "View PR", "emoji": True},
            "url": embed.url,
            "action_id": "view_pr",
        }

    if embed.description:
        blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": embed.description}})

    if embed.fields:
        blocks.append({"type": "divider"})
        blocks.append(
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*{field.name}*\n{field.value}"}
                    for field in embed.fields[:10]
                ],
            }
        )

    if embed.footer:
        blocks.append(
            {
                "type": "context",
                "elements": [{"type": "mrkdwn", "text": embed.footer.text}],
            }
        )

    return blocks


class SlackClient(ChatService):
    """ChatService backed by the Slack Web API.

    A Slack thread is the reply chain under its parent message, so the
    thread id is the parent message ts. Slack threads have neither members
    nor a lock, so those calls only log.
    """

    def __init__(self, bot_token: str, channel_id: str, client: Optional[AsyncWebClient] = None) -> None:
        self._channel_id = channel_id
        self._client = client or AsyncWebClient(token=bot_token)

    @staticmethod
    def _render(content: MessageContent) -> dict:
        blocks = [block for embed in content.embeds for block in _build_blocks(embed)]
        if content.content:
            blocks.insert(0, {"type": "section", "text": {"type": "mrkdwn", "text": content.content}})
        return {"text": content.summary, "blocks": blocks or None}

    async def send_message(self, channel_id: str, content: MessageContent) -> str:
        """Post a message to Slack."""
        try:
            response = await self._client.chat_postMessage(channel=channel_id, **self._render(content))
        except SlackApiError as e:
            raise ChatServiceError("Slack", f"chat.postMessage failed: {e.response['error']}") from e
        logger.info(f"Posted message to {channel_id}")
        return response["ts"]

    async def edit_message(self, channel_id: str, message_id: str, content: MessageContent) -> None:
        try:
            await self._client.chat_update(channel=channel_id, ts=message_id, **self._render(content))
        except SlackApiError as e:
            raise ChatServiceError("Slack", f"chat.update failed: {e.response['error']}") from e

    async def add_reaction(self, channel_id: str, message_id: str, emoji: str) -> None:
        """Add emoji reaction to a message."""
        name = SLACK_EMOJI_NAMES.get(emoji, emoji)
        try:
            await self._client.reactions_add(channel=channel_id, timestamp=message_id, name=name)
        except SlackApiError as e:
            if e.response["error"] in IGNORED_REACTION_ERRORS:
                return
            raise ChatServiceError("Slack", f"reactions.add failed: {e.response['error']}") from e

    async def remove_reaction(self, channel_id: str, message_id: str, emoji: str) -> None:
        """Remove emoji reaction from a message."""
        name = SLACK_EMOJI_NAMES.get(emoji, emoji)
        try:
            await self._client.reactions_remove(channel=channel_id, timestamp=message_id, name=name)
        except SlackApiError as e:
            if e.response["error"] in IGNORED_REACTION_ERRORS:
                logger.debug(f"Reaction {name} not present on {message_id}")
                return
            raise ChatServiceError("Slack", f"reactions.remove failed: {e.response['error']}") from e

    async def create_thread(self, channel_id: str, message_id: str, name: str) -> str:
        logger.debug(f"Using message {message_id} as thread root for '{name}'")
        return message_id

    async def send_thread_message(self, thread_id: str, text: str) -> str:
        """Send a reply in a thread."""
        try:
            response = await self._client.chat_postMessage(
                channel=self._channel_id,
                thread_ts=thread_id,
                text=text,
            )
        except SlackApiError as e:
            raise ChatServiceError("Slack", f"thread reply failed: {e.response['error']}") from e
        return response["ts"]

    async def add_thread_member(self, thread_id: str, user_id: str) -> None:
        logger.debug(f"Slack threads have no members, not adding {user_id} to {thread_id}")

    async def remove_thread_member(self, thread_id: str, user_id: str) -> None:
        logger.debug(f"Slack threads have no members, not removing {user_id} from {thread_id}")

    async def lock_thread(self, thread_id: str, locked: bool = True) -> None:
        logger.debug(f"Slack threads cannot be locked, ignoring lock={locked} for {thread_id}")

    async def close(self) -> None:
        session = getattr(self._client, "session", None)
        if session is not None and not session.closed:
            await session.close()
