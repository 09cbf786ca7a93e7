"""LLM model factory."""

import os

from strands.models.litellm import LiteLLMModel
from strands.models.ollama import OllamaModel

from chatgate.config.models import LLMConfig
from chatgate.infrastructure.llm.mock_model import MockModel

# Union type for all supported models
Model = LiteLLMModel | OllamaModel | MockModel

OLLAMA_PREFIX = "ollama/"


def create_model(config: LLMConfig) -> Model:
    """Create a model based on configuration and environment.

    ``MOCK_LLM=true`` selects a canned-response model and ``MOCK_LLM=error``
    one that always fails. Model IDs starting with ``ollama/`` talk to an
    Ollama server directly; everything else goes through LiteLLM.

    Args:
        config: LLM configuration.

    Returns:
        The model instance.
    """
    mock_llm = os.getenv("MOCK_LLM", "").lower()

    if mock_llm == "true":
        return MockModel(response_text=os.getenv("MOCK_LLM_RESPONSE", MockModel.DEFAULT_RESPONSE))

    if mock_llm == "error":
        return MockModel(raise_error=True)

    if config.model_id.startswith(OLLAMA_PREFIX):
        return _create_ollama_model(config)

    return LiteLLMModel(
        model_id=config.model_id,
        params=config.params,
        client_args=config.client_args,
    )


def _create_ollama_model(config: LLMConfig) -> OllamaModel:
    """Create an OllamaModel from LLMConfig.

    The server address comes from ``client_args.api_base``, falling back to
    the ``OLLAMA_URL`` environment variable.
    """
    model_id = config.model_id.removeprefix(OLLAMA_PREFIX)
    host = config.client_args.get("api_base") or os.getenv("OLLAMA_URL")
    return OllamaModel(host=host, model_id=model_id, **config.params)
