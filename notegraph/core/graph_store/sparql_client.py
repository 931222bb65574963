"""
SPARQL 1.1 Protocol client over httpx.

Queries go to ``{endpoint}/query`` and updates to ``{endpoint}/update``
as form posts; both URLs can be overridden explicitly.
"""

from typing import Any

import httpx

from notegraph.core.graph_store.base import GraphClient
from notegraph.utils.exceptions import GraphStoreError
from notegraph.utils.logger import get_logger

logger = get_logger(__name__)

RESULTS_JSON = "application/sparql-results+json"


class SparqlGraphClient(GraphClient):
    """Async HTTP client for a remote SPARQL endpoint (e.g. Apache Jena Fuseki)."""

    def __init__(
        self,
        endpoint: str,
        query_url: str | None = None,
        update_url: str | None = None,
        username: str | None = None,
        password: str | None = None,
        timeout: float = 30.0,
    ):
        """
        Initialize SPARQL client.

        Args:
            endpoint: Dataset base URL
            query_url: Optional query URL (default: {endpoint}/query)
            update_url: Optional update URL (default: {endpoint}/update)
            username: Optional basic auth user
            password: Optional basic auth password
            timeout: HTTP timeout in seconds
        """
        self.endpoint = endpoint.rstrip("/")
        self.query_url = query_url or f"{self.endpoint}/query"
        self.update_url = update_url or f"{self.endpoint}/update"
        self.auth = httpx.BasicAuth(username, password or "") if username else None
        self.timeout = timeout

        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(auth=self.auth, timeout=self.timeout)
        return self._client

    async def _post(self, url: str, data: dict[str, str], accept: str | None = None) -> httpx.Response:
        client = await self._get_client()
        headers = {"Accept": accept} if accept else None
        try:
            response = await client.post(url, data=data, headers=headers)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            logger.bind(url=url, status=e.response.status_code, body=e.response.text[:500]).error(
                f"SPARQL endpoint returned {e.response.status_code}"
            )
            raise GraphStoreError(
                f"SPARQL request failed with status {e.response.status_code}",
                context={"url": url, "status": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            logger.bind(url=url, error_type=type(e).__name__).error(
                f"SPARQL transport error: {e}"
            )
            raise GraphStoreError(f"SPARQL transport error: {e}", context={"url": url}) from e

    async def select(self, sparql: str) -> list[dict[str, Any]]:
        logger.debug(f"SELECT:\n{sparql}")
        response = await self._post(self.query_url, {"query": sparql}, accept=RESULTS_JSON)
        try:
            bindings = response.json()["results"]["bindings"]
        except (ValueError, KeyError, TypeError) as e:
            raise GraphStoreError("Malformed SELECT response", context={"url": self.query_url}) from e

        return [{var: term.get("value") for var, term in row.items()} for row in bindings]

    async def ask(self, sparql: str) -> bool:
        logger.debug(f"ASK:\n{sparql}")
        response = await self._post(self.query_url, {"query": sparql}, accept=RESULTS_JSON)
        try:
            return bool(response.json()["boolean"])
        except (ValueError, KeyError, TypeError) as e:
            raise GraphStoreError("Malformed ASK response", context={"url": self.query_url}) from e

    async def update(self, sparql: str) -> None:
        logger.debug(f"UPDATE:\n{sparql}")
        await self._post(self.update_url, {"update": sparql})

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
