"""
Abstract base class for LLM providers.

Providers return the SDK's raw response; turning it into text and
triples is the response parser's job.
"""

from abc import ABC, abstractmethod
from typing import Any

Prompt = str | list[dict[str, str]]


class LLMProvider(ABC):
    """
    Abstract base for model completion providers.

    Responsibilities:
    - Send a prompt (single string or chat messages)
    - Return the provider's raw response envelope
    """

    model: str

    @abstractmethod
    async def complete(
        self,
        prompt: Prompt,
        model: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.0,
        **kwargs,
    ) -> Any:
        """
        Generate a completion.

        Args:
            prompt: A prompt string or a list of {"role", "content"} messages
            model: Optional model override for this call
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature (0.0 = deterministic)
            **kwargs: Provider-specific parameters

        Returns:
            The provider's raw response object

        Raises:
            ValidationError: If the prompt is empty
            LLMError: If the provider call fails
        """
        pass

    @abstractmethod
    async def close(self):
        """Close any open connections."""

    @staticmethod
    def to_messages(prompt: Prompt) -> list[dict[str, str]]:
        """Normalise a prompt into chat messages."""
        if isinstance(prompt, str):
            return [{"role": "user", "content": prompt}]
        return list(prompt)

    @staticmethod
    def is_empty(prompt: Prompt) -> bool:
        if isinstance(prompt, str):
            return not prompt.strip()
        return not prompt or not any(str(m.get("content", "")).strip() for m in prompt)
