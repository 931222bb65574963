"""
LLM provider abstraction layer for model completions.

Supported providers:
- Ollama (native SDK)
- OpenAI (official SDK)
"""
from notegraph.core.llm.base import LLMProvider
from notegraph.core.llm.ollama import OllamaLLM
from notegraph.core.llm.openai import OpenAILLM

__all__ = [
    "LLMProvider",
    "OllamaLLM",
    "OpenAILLM",
]
