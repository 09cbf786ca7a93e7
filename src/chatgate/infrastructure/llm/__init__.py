"""LLM infrastructure."""

from chatgate.infrastructure.llm.factory import create_model
from chatgate.infrastructure.llm.mock_model import MockModel
from chatgate.infrastructure.llm.provider import LLMError, StrandsLLMProvider

__all__ = ["LLMError", "MockModel", "StrandsLLMProvider", "create_model"]
