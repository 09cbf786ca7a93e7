"""In-memory implementation of MessageRepository."""

from collections import deque

from chatgate.domain.entities.message import Message

DEFAULT_WINDOW = 10


class InMemoryMessageRepository:
    """Keeps the most recent messages of every chat in memory.

    Each chat holds a bounded window; older messages fall off as new ones are
    saved. Nothing is persisted across restarts.
    """

    def __init__(self, window: int = DEFAULT_WINDOW) -> None:
        """Initialize the repository.

        Args:
            window: Number of messages retained per chat.

        Raises:
            ValueError: If window is not positive.
        """
        if window <= 0:
            raise ValueError("Message window must be positive")
        self._window = window
        self._messages: dict[str, deque[Message]] = {}

    async def save(self, message: Message) -> None:
        # No await between lookup and append, so concurrent handlers on the
        # event loop cannot interleave here.
        chat = self._messages.get(message.chat_id)
        if chat is None:
            chat = deque(maxlen=self._window)
            self._messages[message.chat_id] = chat
        chat.append(message)

    async def get_by_chat(self, chat_id: str, limit: int) -> list[Message]:
        chat = self._messages.get(chat_id)
        if not chat:
            return []
        messages = list(chat)
        if 0 < limit < len(messages):
            return messages[-limit:]
        return messages
