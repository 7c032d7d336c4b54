"""Chat service interface.

The reconciliation engine depends on ChatService, never on a concrete
platform, so Discord and Slack backends are swappable through settings.
"""

from abc import ABC, abstractmethod

from pr_relay.services.chat.schemas import MessageContent


class ChatService(ABC):
    """Message, reaction and thread primitives of a chat platform.

    Implementations raise ChatServiceError on failure, except that removing
    a reaction that is not present must succeed silently.
    """

    @abstractmethod
    async def send_message(self, channel_id: str, content: MessageContent) -> str:
        """Post a message to a channel and return its id."""

    @abstractmethod
    async def edit_message(self, channel_id: str, message_id: str, content: MessageContent) -> None:
        """Replace the content of an existing message."""

    @abstractmethod
    async def add_reaction(self, channel_id: str, message_id: str, emoji: str) -> None:
        """Add the bot's reaction to a message."""

    @abstractmethod
    async def remove_reaction(self, channel_id: str, message_id: str, emoji: str) -> None:
        """Remove the bot's reaction from a message; absent reactions are a no-op."""

    @abstractmethod
    async def create_thread(self, channel_id: str, message_id: str, name: str) -> str:
        """Start a thread from a message and return the thread id."""

    @abstractmethod
    async def send_thread_message(self, thread_id: str, text: str) -> str:
        """Post a plain-text message into a thread and return its id."""

    @abstractmethod
    async def add_thread_member(self, thread_id: str, user_id: str) -> None:
        """Add a user to a thread."""

    @abstractmethod
    async def remove_thread_member(self, thread_id: str, user_id: str) -> None:
        """Remove a user from a thread."""

    @abstractmethod
    async def lock_thread(self, thread_id: str, locked: bool = True) -> None:
        """Lock or unlock a thread."""

    async def close(self) -> None:
        """Release network resources. Default is a no-op."""
