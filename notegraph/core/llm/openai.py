"""
OpenAI LLM provider using official SDK.
"""

from typing import Any

from openai import AsyncOpenAI

from notegraph.core.llm.base import LLMProvider, Prompt
from notegraph.utils.exceptions import LLMError, ValidationError
from notegraph.utils.logger import get_logger

logger = get_logger(__name__)


class OpenAILLM(LLMProvider):
    """
    OpenAI chat completion provider.

    Returns the ``ChatCompletion`` object untouched.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        organization: str | None = None,
        base_url: str | None = None,
        timeout: float = 120.0,
    ):
        """
        Initialize OpenAI LLM provider.

        Args:
            api_key: OpenAI API key
            model: Default model name (e.g., "gpt-4o", "gpt-4o-mini")
            organization: Optional organization ID
            base_url: Optional custom base URL
            timeout: Request timeout in seconds
        """
        self.model = model

        self.client = AsyncOpenAI(
            api_key=api_key, organization=organization, base_url=base_url, timeout=timeout
        )

    async def complete(
        self,
        prompt: Prompt,
        model: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.0,
        **kwargs,
    ) -> Any:
        """
        Generate completion using OpenAI.

        Args:
            prompt: Prompt string or chat messages
            model: Optional model override
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature
            **kwargs: Additional parameters (e.g., stop, presence_penalty)
        Returns:
            Raw ChatCompletion response
        Raises:
            LLMError: If OpenAI API call fails
            ValidationError: If the prompt is empty
        """
        if self.is_empty(prompt):
            raise ValidationError("Prompt cannot be empty")

        params = {
            "model": model or self.model,
            "messages": self.to_messages(prompt),
            "temperature": temperature,
            "max_tokens": max_tokens,
            **kwargs,
        }

        try:
            return await self.client.chat.completions.create(**params)
        except Exception as e:
            logger.bind(model=params["model"], error_type=type(e).__name__).error(
                f"OpenAI API error: {e}"
            )
            raise LLMError(f"OpenAI API error: {e}") from e

    async def close(self):
        """Close OpenAI client."""
        await self.client.close()
