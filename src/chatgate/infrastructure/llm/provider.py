"""LLMProvider implementation on top of strands agents."""

import asyncio
from collections.abc import Callable
from typing import Any

from jinja2 import Template
from strands import Agent
from structlog.stdlib import BoundLogger

from chatgate.config.models import LLMConfig
from chatgate.domain.entities.message import Message
from chatgate.infrastructure.llm.factory import Model, create_model

# Number of context messages rendered into the prompt
PROMPT_CONTEXT_MESSAGES = 5

PROMPT_TEMPLATE = Template(
    "{{ system_prompt }}\n\n"
    "{% if context %}Recent conversation:\n"
    "{% for message in context %}"
    "{{ 'Assistant' if message.is_from_bot else 'User' }}: {{ message.content }}\n"
    "{% endfor %}\n"
    "{% endif %}"
    "User: {{ prompt }}\nAssistant:"
)


class LLMError(Exception):
    """Raised when the model fails, times out or returns nothing."""


def build_prompt(system_prompt: str, prompt: str, context: list[Message]) -> str:
    """Render the single prompt sent to the model.

    Args:
        system_prompt: Fixed instruction placed at the top.
        prompt: The current user message.
        context: Prior messages, oldest first. Only the last five are used.

    Returns:
        The rendered prompt.
    """
    return PROMPT_TEMPLATE.render(
        system_prompt=system_prompt,
        prompt=prompt,
        context=context[-PROMPT_CONTEXT_MESSAGES:],
    )


class StrandsLLMProvider:
    """Generates chat replies with a one-shot strands Agent per request."""

    def __init__(
        self,
        config: LLMConfig,
        logger: BoundLogger,
        model_factory: Callable[[LLMConfig], Model] = create_model,
    ) -> None:
        """Initialize the provider.

        Args:
            config: LLM configuration.
            logger: Logger instance.
            model_factory: Builds the model for each request.
        """
        self._config = config
        self._logger = logger
        self._model_factory = model_factory

    async def generate(self, prompt: str, context: list[Message]) -> str:
        """Generate a reply.

        Args:
            prompt: The current user message.
            context: Prior messages of the chat, oldest first.

        Returns:
            The generated text.

        Raises:
            LLMError: If generation fails, times out or yields no text.
        """
        query = build_prompt(self._config.system_prompt, prompt, context)
        self._logger.debug("Built prompt", prompt_length=len(query))

        # Fresh agent per request; conversation history lives in the prompt.
        agent = Agent(
            model=self._model_factory(self._config),
            tools=[],
            callback_handler=None,
        )
        try:
            result = await asyncio.wait_for(
                agent.invoke_async(query), timeout=self._config.timeout
            )
        except asyncio.TimeoutError as e:
            raise LLMError(f"LLM timed out after {self._config.timeout}s") from e
        except Exception as e:
            raise LLMError(f"failed to generate response: {e}") from e

        text = _extract_response_text(result)
        if not text:
            raise LLMError("LLM returned an empty response")
        return text


def _extract_response_text(result: Any) -> str | None:
    if result is None:
        return None

    message = getattr(result, "message", None)
    if isinstance(message, dict):
        content = message.get("content")
        if isinstance(content, list):
            texts = [
                block["text"]
                for block in content
                if isinstance(block, dict) and isinstance(block.get("text"), str)
            ]
            if texts:
                return "".join(texts).strip()

    return str(result).strip()
