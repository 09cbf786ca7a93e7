"""aiohttp implementation of WebhookClient."""

import asyncio
import json

import aiohttp

from chatgate.domain.entities.webhook import (
    DEFAULT_WEBHOOK_TIMEOUT,
    TEXT_CONTENT_TYPE,
    WebhookResponse,
)


class WebhookError(Exception):
    """Raised when a webhook call fails or returns a non-200 status."""


class AiohttpWebhookClient:
    """Posts ``{"message": ...}`` to a webhook and classifies the reply.

    Image responses (JPEG or PNG) are returned as raw bytes. Anything else is
    treated as text: a JSON body contributes its ``output`` or ``response``
    field, otherwise the raw body is used.
    """

    def __init__(self, default_timeout: float = DEFAULT_WEBHOOK_TIMEOUT) -> None:
        """Initialize the client.

        Args:
            default_timeout: Seconds to wait when a call passes no timeout.
        """
        self._default_timeout = default_timeout
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def call(
        self, url: str, message: str, timeout: float | None = None
    ) -> WebhookResponse:
        """Call a webhook.

        Args:
            url: Webhook URL.
            message: Text sent as the ``message`` field.
            timeout: Seconds to wait for the full response.

        Returns:
            The classified response.

        Raises:
            WebhookError: On network errors, timeouts or non-200 responses.
        """
        client_timeout = aiohttp.ClientTimeout(
            total=timeout if timeout is not None else self._default_timeout
        )
        try:
            async with self._get_session().post(
                url, json={"message": message}, timeout=client_timeout
            ) as response:
                if response.status != 200:
                    raise WebhookError(f"webhook returned status {response.status}")
                body = await response.read()
                content_type = response.headers.get("Content-Type", "")
        except asyncio.TimeoutError as e:
            raise WebhookError(f"webhook timed out after {client_timeout.total}s") from e
        except aiohttp.ClientError as e:
            raise WebhookError(f"failed to execute request: {e}") from e

        return classify_response(content_type, body)


def classify_response(content_type: str, body: bytes) -> WebhookResponse:
    """Build a WebhookResponse from a Content-Type header and body."""
    mime = content_type.split(";", 1)[0].strip().lower()

    if mime in ("image/jpeg", "image/jpg"):
        return WebhookResponse(content_type="image/jpeg", content=body)
    if mime == "image/png":
        return WebhookResponse(content_type="image/png", content=body)

    text = body.decode("utf-8", errors="replace")
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        data = None

    if isinstance(data, dict):
        for field in ("output", "response"):
            value = data.get(field)
            if isinstance(value, str) and value:
                text = value
                break

    return WebhookResponse(content_type=TEXT_CONTENT_TYPE, content=body, text_content=text)
