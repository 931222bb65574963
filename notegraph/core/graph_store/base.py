"""
Base interface for graph store access.

A thin protocol wrapper with no business logic: callers hand it
complete SPARQL text and get rows, a boolean, or nothing back.
"""

from abc import ABC, abstractmethod
from typing import Any


class GraphClient(ABC):
    """Abstract base class for SPARQL 1.1 graph clients."""

    @abstractmethod
    async def select(self, sparql: str) -> list[dict[str, Any]]:
        """
        Run a SELECT query.

        Args:
            sparql: Complete query text

        Returns:
            One dict per solution, variable name -> plain value
        """
        pass

    @abstractmethod
    async def ask(self, sparql: str) -> bool:
        """
        Run an ASK query.

        Args:
            sparql: Complete query text

        Returns:
            The boolean result
        """
        pass

    @abstractmethod
    async def update(self, sparql: str) -> None:
        """
        Run a SPARQL Update request.

        Args:
            sparql: Complete update text
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release connections."""
        pass
