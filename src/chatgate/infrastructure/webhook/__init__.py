"""Webhook infrastructure."""

from chatgate.infrastructure.webhook.client import (
    AiohttpWebhookClient,
    WebhookError,
    classify_response,
)

__all__ = ["AiohttpWebhookClient", "WebhookError", "classify_response"]
