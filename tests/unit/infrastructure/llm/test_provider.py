"""Tests for StrandsLLMProvider."""

import asyncio
from typing import Any, AsyncIterable
from unittest.mock import MagicMock

import pytest

from chatgate.config.models import LLMConfig
from chatgate.domain.entities.message import Message
from chatgate.infrastructure.llm.mock_model import MockModel
from chatgate.infrastructure.llm.provider import (
    LLMError,
    StrandsLLMProvider,
    build_prompt,
)


def message(index: int, from_bot: bool = False) -> Message:
    return Message(
        id=f"msg-{index}",
        chat_id="group-1@g.us",
        sender="bot" if from_bot else "alice",
        content=f"line {index}",
        is_from_bot=from_bot,
    )


class SlowModel(MockModel):
    """Never finishes streaming within the test timeout."""

    async def stream(self, messages: Any, *args: Any, **kwargs: Any) -> AsyncIterable[Any]:
        await asyncio.sleep(10)
        yield {}


class TestBuildPrompt:
    """Tests for build_prompt function."""

    def test_without_context(self) -> None:
        prompt = build_prompt("Be brief.", "what time is it", [])

        assert prompt == "Be brief.\n\nUser: what time is it\nAssistant:"

    def test_context_roles(self) -> None:
        prompt = build_prompt(
            "Be brief.", "and now?", [message(1), message(2, from_bot=True)]
        )

        assert "Recent conversation:\nUser: line 1\nAssistant: line 2\n" in prompt
        assert prompt.endswith("User: and now?\nAssistant:")

    def test_only_last_five_messages(self) -> None:
        context = [message(i) for i in range(8)]

        prompt = build_prompt("Be brief.", "hi", context)

        assert "line 2" not in prompt
        for i in range(3, 8):
            assert f"line {i}" in prompt


class TestStrandsLLMProvider:
    """Tests for StrandsLLMProvider.generate."""

    async def test_returns_model_text(self) -> None:
        model = MockModel(response_text="  It is noon.  ")
        provider = StrandsLLMProvider(
            LLMConfig(model_id="mock"), MagicMock(), model_factory=lambda _: model
        )

        result = await provider.generate("what time is it", [message(1)])

        assert result == "It is noon."
        sent = str(model.requests[0])
        assert "what time is it" in sent
        assert "line 1" in sent

    async def test_model_error_raises_llm_error(self) -> None:
        provider = StrandsLLMProvider(
            LLMConfig(model_id="mock"),
            MagicMock(),
            model_factory=lambda _: MockModel(raise_error=True),
        )

        with pytest.raises(LLMError, match="failed to generate response"):
            await provider.generate("hi", [])

    async def test_timeout_raises_llm_error(self) -> None:
        provider = StrandsLLMProvider(
            LLMConfig(model_id="mock", timeout=0.1),
            MagicMock(),
            model_factory=lambda _: SlowModel(),
        )

        with pytest.raises(LLMError, match="timed out"):
            await provider.generate("hi", [])

    async def test_empty_response_raises_llm_error(self) -> None:
        provider = StrandsLLMProvider(
            LLMConfig(model_id="mock"),
            MagicMock(),
            model_factory=lambda _: MockModel(response_text="   "),
        )

        with pytest.raises(LLMError, match="empty"):
            await provider.generate("hi", [])

    async def test_fresh_model_per_request(self) -> None:
        factory = MagicMock(side_effect=lambda _: MockModel())
        provider = StrandsLLMProvider(
            LLMConfig(model_id="mock"), MagicMock(), model_factory=factory
        )

        await provider.generate("one", [])
        await provider.generate("two", [])

        assert factory.call_count == 2
