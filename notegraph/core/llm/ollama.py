"""
Ollama LLM provider using native ollama-python SDK.
"""

from typing import Any

import ollama

from notegraph.core.llm.base import LLMProvider, Prompt
from notegraph.utils.exceptions import LLMError, ValidationError
from notegraph.utils.logger import get_logger

logger = get_logger(__name__)


class OllamaLLM(LLMProvider):
    """
    Ollama chat provider.

    Returns the SDK's chat response, whose ``message.content`` carries
    the answer.
    """

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "llama3.1:8b",
        timeout: float = 120.0,
    ):
        """
        Initialize Ollama LLM provider.

        Args:
            host: Ollama server URL
            model: Default model name (e.g., "llama3.1", "mistral")
            timeout: Request timeout in seconds
        """
        self.host = host
        self.model = model
        self.timeout = timeout

        self.client = ollama.AsyncClient(host=host, timeout=timeout)

    async def complete(
        self,
        prompt: Prompt,
        model: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.0,
        **kwargs,
    ) -> Any:
        """
        Generate completion using Ollama.

        Args:
            prompt: Prompt string or chat messages
            model: Optional model override
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature
            **kwargs: Additional options (``options`` is merged into the Ollama options)

        Returns:
            Raw chat response

        Raises:
            LLMError: If the Ollama call fails
            ValidationError: If the prompt is empty
        """
        if self.is_empty(prompt):
            raise ValidationError("Prompt cannot be empty")

        options = {
            "temperature": temperature,
            "num_predict": max_tokens,
            **kwargs.get("options", {}),
        }

        try:
            return await self.client.chat(
                model=model or self.model,
                messages=self.to_messages(prompt),
                options=options,
                **{k: v for k, v in kwargs.items() if k != "options"},
            )
        except Exception as e:
            logger.bind(model=model or self.model, host=self.host, error_type=type(e).__name__).error(
                f"Ollama API error: {e}"
            )
            raise LLMError(f"Ollama API error: {e}") from e

    async def close(self):
        """Close client (Ollama SDK handles cleanup internally)."""
        pass
