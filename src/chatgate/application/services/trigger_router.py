"""Routing of inbound chat messages to webhooks or the LLM."""

from structlog.stdlib import BoundLogger

from chatgate.application.formatting import format_for_chat
from chatgate.application.services.routing_config import RoutingConfig
from chatgate.domain.entities.message import Message
from chatgate.domain.entities.schedule import IMAGE_SENT_MARKER
from chatgate.domain.entities.webhook import DEFAULT_WEBHOOK_TIMEOUT, WebhookRule
from chatgate.domain.ports import ChatTransport, GroupAllowList, LLMProvider, WebhookClient
from chatgate.domain.repositories.message_repository import MessageRepository

APOLOGY_TEXT = (
    "Sorry, I cannot process this request right now due to a technical error. "
    "Please try again later."
)

# Messages fetched from the context store for the LLM prompt
CONTEXT_LIMIT = 10


class MessageProcessingError(Exception):
    """Raised when a triggered message could not be answered."""


class TriggerRouter:
    """Decides how an inbound message is handled and carries it out.

    A message is ignored unless its chat is allowed and it either replies to
    the bot or starts with a trigger word. Triggered messages whose remaining
    content starts with a webhook sub-trigger go to that webhook; everything
    else goes to the LLM. Side effects of one message always happen in the
    order save inbound, invoke, send, save reply.
    """

    def __init__(
        self,
        groups: GroupAllowList,
        routing: RoutingConfig,
        messages: MessageRepository,
        transport: ChatTransport,
        webhook_client: WebhookClient,
        llm: LLMProvider,
        logger: BoundLogger,
    ) -> None:
        self._groups = groups
        self._routing = routing
        self._messages = messages
        self._transport = transport
        self._webhook_client = webhook_client
        self._llm = llm
        self._logger = logger

    async def handle_message(self, message: Message) -> None:
        """Handle one inbound message.

        Args:
            message: The inbound message.

        Raises:
            MessageProcessingError: If the webhook, the LLM or the reply
                failed. The user has already been sent an apology where
                possible.
        """
        log = self._logger.bind(message_id=message.id, chat_id=message.chat_id)

        if not self._groups.is_allowed(message.chat_id):
            log.debug("Message from non-allowed chat")
            return

        # One snapshot for the whole decision, even if an update lands meanwhile.
        snapshot = self._routing.snapshot

        if message.is_reply_to_bot:
            log.debug("Message is a reply to bot")
            content = message.content.strip()
        else:
            trigger = snapshot.match_trigger(message.content)
            if trigger is None:
                log.debug("Message does not start with a trigger word")
                return
            content = message.content.strip().removeprefix(trigger).strip()
            log.debug("Message triggered", trigger=trigger)

        message = message.with_content(content)

        rule = snapshot.match_webhook(content)
        if rule is not None:
            await self._handle_webhook(message, rule, log)
        else:
            await self._handle_llm(message, log)

    async def _handle_webhook(
        self, message: Message, rule: WebhookRule, log: BoundLogger
    ) -> None:
        payload = rule.strip(message.content)
        log = log.bind(sub_trigger=rule.sub_trigger, webhook_url=rule.url)
        log.info("Processing webhook message")

        await self._save(message, log)

        try:
            timeout = rule.timeout_seconds()
        except ValueError as e:
            log.warning(
                "Invalid webhook timeout, using default",
                timeout_config=rule.timeout,
                error=str(e),
            )
            timeout = DEFAULT_WEBHOOK_TIMEOUT

        try:
            response = await self._webhook_client.call(rule.url, payload, timeout=timeout)
        except Exception as e:
            log.error("Failed to call webhook", error=str(e))
            await self._apologize(message, log)
            raise MessageProcessingError(f"failed to call webhook: {e}") from e

        log.info("Webhook response received", content_type=response.content_type)

        if response.is_image:
            try:
                await self._transport.send_image(
                    message.chat_id,
                    response.content,
                    response.content_type,
                    caption="",
                    reply_to_message_id=message.id,
                    quoted_sender=message.sender,
                )
            except Exception as e:
                log.error("Failed to send image response", error=str(e))
                raise MessageProcessingError(f"failed to send image: {e}") from e
            sent = IMAGE_SENT_MARKER
        else:
            sent = format_for_chat(response.text_content)
            await self._reply(message, sent, log)

        await self._save(message.bot_reply(sent), log)

    async def _handle_llm(self, message: Message, log: BoundLogger) -> None:
        await self._save(message, log)
        log.info("Processing message", sender=message.sender)

        try:
            recent = await self._messages.get_by_chat(message.chat_id, CONTEXT_LIMIT)
        except Exception as e:
            log.error("Failed to get context", error=str(e))
            recent = []
        context = [item for item in recent if item.id != message.id]

        try:
            text = await self._llm.generate(message.content, context)
        except Exception as e:
            log.error("Failed to generate LLM response", error=str(e))
            await self._apologize(message, log)
            raise MessageProcessingError(f"failed to generate response: {e}") from e

        log.info("Generated response", length=len(text))
        await self._reply(message, text, log)
        await self._save(message.bot_reply(text), log)

    async def _reply(self, message: Message, text: str, log: BoundLogger) -> None:
        try:
            await self._transport.send_reply(message.chat_id, text, message.id, message.sender)
        except Exception as e:
            log.error("Failed to send message", error=str(e))
            raise MessageProcessingError(f"failed to send message: {e}") from e

    async def _apologize(self, message: Message, log: BoundLogger) -> None:
        try:
            await self._transport.send_reply(
                message.chat_id, APOLOGY_TEXT, message.id, message.sender
            )
        except Exception as e:
            log.error("Failed to send error message", error=str(e))

    async def _save(self, message: Message, log: BoundLogger) -> None:
        try:
            await self._messages.save(message)
        except Exception as e:
            log.error("Failed to save message", saved_id=message.id, error=str(e))
