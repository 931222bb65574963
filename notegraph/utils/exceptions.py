"""
Custom exception hierarchy for NoteGraph.

Provides structured error types for better error handling and debugging.
All exceptions inherit from NoteGraphError for easy catching.
"""


class NoteGraphError(Exception):
    """
    Base exception for all NoteGraph errors.
    All custom exceptions should inherit from this class.
    """

    def __init__(self, message: str, context: dict | None = None):
        """
        Initialize NoteGraph error.
        Args:
            message: Error message
            context: Optional context dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}


class StoreError(NoteGraphError):
    """
    Base exception for store operations.
    Used for errors related to triple store access.
    """

    pass


class GraphStoreError(StoreError):
    """
    Graph store operation errors.
    Raised when a SPARQL query or update fails at the transport or protocol level.
    """

    pass


class ValidationError(NoteGraphError):
    """
    Validation errors.
    Raised when input validation fails or a triple is malformed.
    """

    pass


class DuplicateTripleError(ValidationError):
    """
    Duplicate triple errors.
    Raised when a triple already exists and the duplicate policy is "error".
    """

    pass


class ConfigurationError(NoteGraphError):
    """
    Configuration errors.
    Raised when configuration is invalid or missing required values.
    """

    pass


class ExtractionError(NoteGraphError):
    """
    Triple extraction errors.
    Raised when the NLP analysis of a text fails.
    """

    pass


class LLMError(NoteGraphError):
    """
    LLM operation errors.
    Raised when LLM operations fail (API errors, timeouts, etc.).
    """

    pass
