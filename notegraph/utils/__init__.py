"""Shared utilities: exceptions, logging, identifiers and SPARQL formatting."""

from notegraph.utils.exceptions import (
    ConfigurationError,
    DuplicateTripleError,
    ExtractionError,
    GraphStoreError,
    LLMError,
    NoteGraphError,
    StoreError,
    ValidationError,
)
from notegraph.utils.logger import get_logger, setup_logging

__all__ = [
    "ConfigurationError",
    "DuplicateTripleError",
    "ExtractionError",
    "GraphStoreError",
    "LLMError",
    "NoteGraphError",
    "StoreError",
    "ValidationError",
    "get_logger",
    "setup_logging",
]
