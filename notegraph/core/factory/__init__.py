"""
Factory modules for creating NoteGraph components.

Provides factories for the LLM provider, graph client and triple extractor.
"""

from notegraph.core.factory.extractor_factory import ExtractorFactory
from notegraph.core.factory.graph_factory import GraphClientFactory
from notegraph.core.factory.llm_factory import LLMFactory

__all__ = [
    "LLMFactory",
    "GraphClientFactory",
    "ExtractorFactory",
]
