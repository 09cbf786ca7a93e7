"""Group allow-list management."""

import asyncio

from structlog.stdlib import BoundLogger

from chatgate.config.loader import ConfigStore


class GroupService:
    """Allow-list of chats the bot may act within.

    Membership checks are synchronous reads of the current set. Every change
    is written back to the configuration file when a store is given.
    """

    def __init__(
        self,
        allowed_groups: list[str],
        store: ConfigStore | None,
        logger: BoundLogger,
    ) -> None:
        # dict keeps insertion order for stable listings
        self._allowed: dict[str, None] = dict.fromkeys(allowed_groups)
        self._store = store
        self._logger = logger
        self._lock = asyncio.Lock()

    def is_allowed(self, chat_id: str) -> bool:
        return chat_id in self._allowed

    def get_allowed_groups(self) -> list[str]:
        return list(self._allowed)

    async def add(self, chat_id: str) -> None:
        """Allow a chat."""
        async with self._lock:
            if chat_id in self._allowed:
                return
            await self._replace({**self._allowed, chat_id: None})

    async def remove(self, chat_id: str) -> None:
        """Disallow a chat. Unknown chats are ignored."""
        async with self._lock:
            if chat_id not in self._allowed:
                return
            await self._replace({key: None for key in self._allowed if key != chat_id})

    async def update(self, chat_ids: list[str]) -> None:
        """Replace the whole allow-list."""
        async with self._lock:
            await self._replace(dict.fromkeys(chat_id for chat_id in chat_ids if chat_id))

    async def _replace(self, allowed: dict[str, None]) -> None:
        # Caller holds the lock.
        if self._store is not None:
            await self._store.update_allowed_groups(list(allowed))
        self._allowed = allowed
        self._logger.info("Allowed groups updated", groups=list(allowed))
