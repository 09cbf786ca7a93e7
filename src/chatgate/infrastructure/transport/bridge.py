"""ChatTransport backed by an HTTP bridge to the messaging network."""

import asyncio
import base64
from typing import Any

import aiohttp
from structlog.stdlib import BoundLogger

from chatgate.config.models import BridgeConfig
from chatgate.domain.entities.message import AuthStatus, Group, Message
from chatgate.domain.ports import MessageHandler
from chatgate.infrastructure.background import BackgroundTasks


class TransportError(Exception):
    """Raised when the bridge rejects a request or cannot be reached."""


class HttpBridgeTransport:
    """Sends and receives chat messages through an HTTP bridge.

    Outbound messages are POSTed as JSON to the bridge. Inbound messages are
    pushed by the bridge to the admin server, which hands them to
    ``dispatch()``; every message is handled in its own task so that slow
    handlers never hold up the next message.

    Args:
        config: Bridge connection settings.
        tasks: Runner used to handle inbound messages concurrently.
        logger: Structured logger.
    """

    def __init__(
        self,
        config: BridgeConfig,
        tasks: BackgroundTasks,
        logger: BoundLogger,
    ) -> None:
        self.config = config
        self._tasks = tasks
        self._logger = logger
        self._base_url = config.base_url.rstrip("/")
        self._session: aiohttp.ClientSession | None = None
        self._handler: MessageHandler | None = None

    async def start(self) -> None:
        """Open the HTTP session used for bridge requests."""
        if self._session is None or self._session.closed:
            headers = {}
            if self.config.token:
                headers["Authorization"] = f"Bearer {self.config.token}"
            self._session = aiohttp.ClientSession(
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.config.timeout),
            )
            self._logger.info("Bridge transport started", base_url=self._base_url)

    async def stop(self) -> None:
        """Close the HTTP session."""
        if self._session is not None:
            await self._session.close()
            self._session = None
            self._logger.info("Bridge transport stopped")

    def on_message(self, handler: MessageHandler) -> None:
        self._handler = handler

    def dispatch(self, message: Message) -> bool:
        """Hand an inbound message to the registered handler.

        Args:
            message: The inbound message.

        Returns:
            False if no handler has been registered yet.
        """
        if self._handler is None:
            self._logger.warning("Inbound message dropped, no handler", message_id=message.id)
            return False
        self._tasks.spawn(self._deliver(self._handler, message), name=f"message-{message.id}")
        return True

    async def _deliver(self, handler: MessageHandler, message: Message) -> None:
        try:
            await handler(message)
        except Exception as e:
            self._logger.error(
                "Failed to process message",
                message_id=message.id,
                chat_id=message.chat_id,
                error=str(e),
            )

    async def send_text(self, chat_id: str, text: str) -> None:
        await self._post("/send-message", {"chat_id": chat_id, "text": text})

    async def send_reply(
        self, chat_id: str, text: str, reply_to_message_id: str, quoted_sender: str
    ) -> None:
        await self._post(
            "/send-reply",
            {
                "chat_id": chat_id,
                "text": text,
                "reply_to": reply_to_message_id,
                "quoted_sender": quoted_sender,
            },
        )

    async def send_image(
        self,
        chat_id: str,
        image: bytes,
        mime_type: str,
        caption: str = "",
        reply_to_message_id: str = "",
        quoted_sender: str = "",
    ) -> None:
        payload: dict[str, Any] = {
            "chat_id": chat_id,
            "image": base64.b64encode(image).decode("ascii"),
            "mime_type": mime_type,
            "caption": caption,
        }
        if reply_to_message_id:
            payload["reply_to"] = reply_to_message_id
            payload["quoted_sender"] = quoted_sender
        await self._post("/send-image", payload)

    async def get_groups(self) -> list[Group]:
        data = await self._get("/groups")
        if not isinstance(data, list):
            raise TransportError("Unexpected /groups response")
        return [Group.model_validate(item) for item in data]

    async def get_auth_status(self) -> AuthStatus:
        try:
            data = await self._get("/status")
        except TransportError as e:
            return AuthStatus(is_authenticated=False, error=str(e))
        return AuthStatus.model_validate(data)

    def _require_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            raise TransportError("Bridge transport is not started")
        return self._session

    async def _post(self, path: str, payload: dict[str, Any]) -> None:
        session = self._require_session()
        try:
            async with session.post(f"{self._base_url}{path}", json=payload) as response:
                if response.status >= 300:
                    body = await response.text()
                    raise TransportError(
                        f"bridge {path} returned status {response.status}: {body[:200]}"
                    )
        except asyncio.TimeoutError as e:
            raise TransportError(f"bridge {path} timed out") from e
        except aiohttp.ClientError as e:
            raise TransportError(f"bridge {path} failed: {e}") from e

    async def _get(self, path: str) -> Any:
        session = self._require_session()
        try:
            async with session.get(f"{self._base_url}{path}") as response:
                if response.status >= 300:
                    raise TransportError(
                        f"bridge {path} returned status {response.status}"
                    )
                return await response.json()
        except asyncio.TimeoutError as e:
            raise TransportError(f"bridge {path} timed out") from e
        except (aiohttp.ClientError, ValueError) as e:
            raise TransportError(f"bridge {path} failed: {e}") from e
