"""
Factory for creating graph clients.
"""

from notegraph.config import Config
from notegraph.core.graph_store.base import GraphClient
from notegraph.core.graph_store.sparql_client import SparqlGraphClient


class GraphClientFactory:
    """Factory for creating graph clients from configuration."""

    @staticmethod
    def create(config: Config) -> GraphClient:
        """
        Create a SPARQL graph client.

        Args:
            config: Main configuration object

        Returns:
            Graph client instance
        """
        sparql = config.sparql
        return SparqlGraphClient(
            endpoint=sparql.endpoint,
            query_url=sparql.resolved_query_url,
            update_url=sparql.resolved_update_url,
            username=sparql.username,
            password=sparql.password,
            timeout=sparql.timeout,
        )
