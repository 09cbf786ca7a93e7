"""Tests for InMemoryMessageRepository."""

import pytest

from chatgate.domain.entities.message import Message
from chatgate.infrastructure.persistence.message_repository import (
    InMemoryMessageRepository,
)


def message(index: int, chat_id: str = "group-1@g.us") -> Message:
    return Message(
        id=f"msg-{index}",
        chat_id=chat_id,
        sender="alice@s.whatsapp.net",
        content=f"message {index}",
    )


class TestInMemoryMessageRepository:
    """Tests for InMemoryMessageRepository."""

    async def test_returns_oldest_first(self) -> None:
        repository = InMemoryMessageRepository()
        for i in range(3):
            await repository.save(message(i))

        result = await repository.get_by_chat("group-1@g.us", limit=10)

        assert [m.id for m in result] == ["msg-0", "msg-1", "msg-2"]

    async def test_window_drops_oldest(self) -> None:
        repository = InMemoryMessageRepository(window=3)
        for i in range(5):
            await repository.save(message(i))

        result = await repository.get_by_chat("group-1@g.us", limit=10)

        assert [m.id for m in result] == ["msg-2", "msg-3", "msg-4"]

    async def test_limit_keeps_most_recent(self) -> None:
        repository = InMemoryMessageRepository()
        for i in range(5):
            await repository.save(message(i))

        result = await repository.get_by_chat("group-1@g.us", limit=2)

        assert [m.id for m in result] == ["msg-3", "msg-4"]

    async def test_chats_are_isolated(self) -> None:
        repository = InMemoryMessageRepository()
        await repository.save(message(0, chat_id="a@g.us"))
        await repository.save(message(1, chat_id="b@g.us"))

        result = await repository.get_by_chat("a@g.us", limit=10)

        assert [m.id for m in result] == ["msg-0"]

    async def test_unknown_chat_is_empty(self) -> None:
        repository = InMemoryMessageRepository()

        assert await repository.get_by_chat("missing@g.us", limit=10) == []

    @pytest.mark.parametrize("window", [0, -1])
    def test_window_must_be_positive(self, window: int) -> None:
        with pytest.raises(ValueError):
            InMemoryMessageRepository(window=window)
