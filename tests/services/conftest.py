"""Fixtures for service tests.

The graph client is a mock; no SPARQL endpoint is needed. Each test
gets fresh instances.
"""

from unittest.mock import AsyncMock

import pytest

from notegraph.core.graph_store.base import GraphClient
from notegraph.models.context import ContextBundle, RelevantNote


@pytest.fixture
def mock_graph():
    """
    Graph client mock with an empty store.

    ASK answers False (nothing exists yet) and SELECT returns no rows.
    """
    graph = AsyncMock(spec=GraphClient)
    graph.ask.return_value = False
    graph.select.return_value = []
    graph.update.return_value = None
    return graph


@pytest.fixture
def ml_bundle() -> ContextBundle:
    """Bundle whose single note mentions deep learning and machine learning."""
    return ContextBundle(
        target_concept="machine learning",
        relevant_notes=[
            RelevantNote(
                content="Deep learning is what I focus on within machine learning.",
                tags=["ml"],
                relevance_score=120.0,
            )
        ],
    )


@pytest.fixture
def bread_bundle() -> ContextBundle:
    """Bundle whose note is unrelated to most test sentences."""
    return ContextBundle(
        target_concept="baking",
        relevant_notes=[RelevantNote(content="Bread needs flour.")],
    )
