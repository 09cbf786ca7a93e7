"""Protocols for the collaborators the routing and scheduling services use."""

from collections.abc import Awaitable, Callable
from typing import Protocol, runtime_checkable

from chatgate.domain.entities.message import AuthStatus, Group, Message
from chatgate.domain.entities.webhook import WebhookResponse

MessageHandler = Callable[[Message], Awaitable[None]]


@runtime_checkable
class ChatTransport(Protocol):
    """Sends messages into chats and delivers inbound messages."""

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    def on_message(self, handler: MessageHandler) -> None:
        """Register the callback invoked for every inbound message."""
        ...

    async def send_text(self, chat_id: str, text: str) -> None: ...

    async def send_reply(
        self, chat_id: str, text: str, reply_to_message_id: str, quoted_sender: str
    ) -> None: ...

    async def send_image(
        self,
        chat_id: str,
        image: bytes,
        mime_type: str,
        caption: str = "",
        reply_to_message_id: str = "",
        quoted_sender: str = "",
    ) -> None: ...

    async def get_groups(self) -> list[Group]: ...

    async def get_auth_status(self) -> AuthStatus: ...


@runtime_checkable
class LLMProvider(Protocol):
    """Generates a reply for a prompt given recent conversation context."""

    async def generate(self, prompt: str, context: list[Message]) -> str: ...


@runtime_checkable
class WebhookClient(Protocol):
    """Performs one webhook call and classifies the response."""

    async def call(
        self, url: str, message: str, timeout: float | None = None
    ) -> WebhookResponse: ...


@runtime_checkable
class GroupAllowList(Protocol):
    """Decides whether the bot may act within a chat."""

    def is_allowed(self, chat_id: str) -> bool: ...
