"""Chat message and chat-network entities."""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

BOT_SENDER = "bot"


class Message(BaseModel):
    """A single inbound or outbound chat message.

    Messages are immutable. Derived content (for example after a trigger word
    has been stripped) is produced with ``with_content()``.

    Attributes:
        id: Network message identifier.
        chat_id: Identifier of the group chat.
        sender: Identifier of the author.
        content: Text content.
        timestamp: Time the message was sent.
        is_from_bot: Whether the bot authored the message.
        is_reply_to_bot: Whether the message replies to a previous bot message.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    chat_id: str = Field(min_length=1)
    sender: str
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    is_from_bot: bool = False
    is_reply_to_bot: bool = False

    def with_content(self, content: str) -> "Message":
        """Return a copy of this message carrying different content."""
        return self.model_copy(update={"content": content})

    def bot_reply(self, content: str) -> "Message":
        """Build the synthetic bot message recorded after replying to this one."""
        return Message(
            id=f"bot-{int(self.timestamp.timestamp())}",
            chat_id=self.chat_id,
            sender=BOT_SENDER,
            content=content,
            timestamp=self.timestamp,
            is_from_bot=True,
        )


class Group(BaseModel):
    """A group chat known to the messaging network."""

    jid: str
    name: str
    is_allowed: bool = False
    participants: int = 0


class AuthStatus(BaseModel):
    """Authentication state of the messaging session."""

    is_authenticated: bool
    qr_code: str = ""
    error: str | None = None
