"""Chat platform abstraction."""

from pr_relay.services.chat.base import ChatService
from pr_relay.services.chat.schemas import Embed, EmbedField, EmbedFooter, MessageContent

__all__ = ["ChatService", "Embed", "EmbedField", "EmbedFooter", "MessageContent"]
