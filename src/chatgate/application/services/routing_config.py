"""Runtime-updatable trigger words and webhook rules."""

import asyncio
from dataclasses import dataclass

from structlog.stdlib import BoundLogger

from chatgate.config.loader import ConfigStore
from chatgate.config.models import WebhookConfig
from chatgate.domain.entities.webhook import WebhookRule


class DuplicateWebhookError(ValueError):
    """Raised when a webhook with the same sub-trigger already exists."""


class WebhookNotFoundError(LookupError):
    """Raised when no webhook uses the given sub-trigger."""


@dataclass(frozen=True)
class RoutingSnapshot:
    """Trigger words and webhook rules as seen by one routing decision."""

    trigger_words: tuple[str, ...] = ()
    webhooks: tuple[WebhookRule, ...] = ()

    def match_trigger(self, content: str) -> str | None:
        """Return the first trigger word that prefixes the trimmed content."""
        trimmed = content.strip()
        for trigger in self.trigger_words:
            if trimmed.startswith(trigger):
                return trigger
        return None

    def match_webhook(self, content: str) -> WebhookRule | None:
        """Return the first webhook rule whose sub-trigger prefixes the content."""
        for rule in self.webhooks:
            if rule.matches(content):
                return rule
        return None


class RoutingConfig:
    """Holds the current RoutingSnapshot.

    Readers take ``snapshot`` without locking and keep that object for the
    whole decision. Writers build a new snapshot under a lock, persist it and
    swap the reference.
    """

    def __init__(
        self,
        trigger_words: list[str],
        webhooks: list[WebhookConfig],
        store: ConfigStore | None,
        logger: BoundLogger,
    ) -> None:
        self._snapshot = RoutingSnapshot(
            trigger_words=tuple(trigger_words),
            webhooks=tuple(_to_rule(webhook) for webhook in webhooks),
        )
        self._store = store
        self._logger = logger
        self._lock = asyncio.Lock()

    @property
    def snapshot(self) -> RoutingSnapshot:
        return self._snapshot

    async def update_trigger_words(self, trigger_words: list[str]) -> None:
        """Replace the trigger word list.

        Args:
            trigger_words: New ordered trigger words; blanks are dropped.
        """
        cleaned = tuple(word.strip() for word in trigger_words if word.strip())
        async with self._lock:
            if self._store is not None:
                await self._store.update_trigger_words(list(cleaned))
            self._snapshot = RoutingSnapshot(
                trigger_words=cleaned, webhooks=self._snapshot.webhooks
            )
        self._logger.info("Trigger words updated", trigger_words=list(cleaned))

    async def add_webhook(self, webhook: WebhookConfig) -> None:
        """Append a webhook rule.

        Raises:
            DuplicateWebhookError: If the sub-trigger is already routed.
        """
        async with self._lock:
            current = self._snapshot.webhooks
            if any(rule.sub_trigger == webhook.sub_trigger for rule in current):
                raise DuplicateWebhookError(
                    f"Webhook with sub_trigger '{webhook.sub_trigger}' already exists"
                )
            await self._replace_webhooks(current + (_to_rule(webhook),))

    async def remove_webhook(self, sub_trigger: str) -> None:
        """Remove the webhook rule with the given sub-trigger.

        Raises:
            WebhookNotFoundError: If no rule uses the sub-trigger.
        """
        async with self._lock:
            current = self._snapshot.webhooks
            remaining = tuple(rule for rule in current if rule.sub_trigger != sub_trigger)
            if len(remaining) == len(current):
                raise WebhookNotFoundError(f"Webhook not found: {sub_trigger}")
            await self._replace_webhooks(remaining)

    async def _replace_webhooks(self, rules: tuple[WebhookRule, ...]) -> None:
        # Caller holds the lock.
        if self._store is not None:
            await self._store.update_webhooks(
                [WebhookConfig(**rule.model_dump()) for rule in rules]
            )
        self._snapshot = RoutingSnapshot(
            trigger_words=self._snapshot.trigger_words, webhooks=rules
        )
        self._logger.info(
            "Webhooks updated", sub_triggers=[rule.sub_trigger for rule in rules]
        )


def _to_rule(webhook: WebhookConfig) -> WebhookRule:
    return WebhookRule(
        sub_trigger=webhook.sub_trigger, url=webhook.url, timeout=webhook.timeout
    )
