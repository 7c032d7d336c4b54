"""Pydantic schemas for chat messages."""

from pydantic import BaseModel, Field


class EmbedField(BaseModel):
    name: str
    value: str
    inline: bool = False


class EmbedFooter(BaseModel):
    text: str


class Embed(BaseModel):
    """Rich message card, rendered natively on Discord and as blocks on Slack."""

    title: str | None = None
    description: str | None = None
    url: str | None = None
    color: int | None = None
    fields: list[EmbedField] = Field(default_factory=list)
    footer: EmbedFooter | None = None
    timestamp: str | None = None


class MessageContent(BaseModel):
    content: str | None = None
    embeds: list[Embed] = Field(default_factory=list)

    @property
    def summary(self) -> str:
        """Plain-text fallback for notifications and clients without rich rendering."""
        if self.content:
            return self.content
        if self.embeds and self.embeds[0].title:
            return self.embeds[0].title
        return ""
