"""
Graph store access for NoteGraph.

Available clients:
- SparqlGraphClient: SPARQL 1.1 Query/Update over HTTP
"""

from notegraph.core.graph_store.base import GraphClient
from notegraph.core.graph_store.sparql_client import SparqlGraphClient

__all__ = [
    "GraphClient",
    "SparqlGraphClient",
]
