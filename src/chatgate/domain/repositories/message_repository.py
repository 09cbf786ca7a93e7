"""MessageRepository protocol."""

from typing import Protocol

from chatgate.domain.entities.message import Message


class MessageRepository(Protocol):
    """Repository protocol for the rolling per-chat conversation context."""

    async def save(self, message: Message) -> None:
        """Append a message to its chat's window.

        Args:
            message: The message to save.
        """
        ...

    async def get_by_chat(self, chat_id: str, limit: int) -> list[Message]:
        """Get the most recent messages of a chat.

        Returns messages sorted oldest first.

        Args:
            chat_id: The chat ID.
            limit: Maximum number of messages to return.

        Returns:
            List of messages.
        """
        ...
