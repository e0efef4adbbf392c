"""Search index contract and Algolia REST adapter."""
import logging
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from schemas.word import SearchHit
from shared.api_errors import parse_service_error

logger = logging.getLogger(__name__)


class SearchIndexError(Exception):
    """Raised when the search index cannot answer a query."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class SearchIndexNotFoundError(SearchIndexError):
    """Raised when the index has not been provisioned."""

    def __init__(self, index_name: str) -> None:
        self.index_name = index_name
        super().__init__(f"Index {index_name} does not exist")


class SearchIndexNotConfiguredError(SearchIndexError):
    """Raised when search credentials are missing."""

    def __init__(self) -> None:
        super().__init__("Search index credentials are not configured")


class SearchIndex(Protocol):
    """Hosted full-text index over slang entries."""

    async def search(self, query: str, *, filters: str | None = None) -> list[SearchHit]:
        """Return ranked hits for a query, optionally narrowed by a filter expression."""
        ...


class AlgoliaSearchIndex:
    """Search index backed by the Algolia REST query endpoint."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        app_id: str,
        api_key: str,
        index_name: str,
        base_url: str | None = None,
    ) -> None:
        self._http_client = http_client
        self._app_id = app_id
        self._api_key = api_key
        self._index_name = index_name
        self._base_url = (base_url or f"https://{app_id}-dsn.algolia.net").rstrip("/")

    @property
    def is_configured(self) -> bool:
        """Whether credentials are present."""
        return bool(self._app_id and self._api_key)

    def _get_headers(self) -> dict[str, str]:
        """Get authentication headers for index requests."""
        return {
            "X-Algolia-Application-Id": self._app_id,
            "X-Algolia-API-Key": self._api_key,
        }

    async def search(self, query: str, *, filters: str | None = None) -> list[SearchHit]:
        """
        Query the index.

        Raises:
            SearchIndexNotConfiguredError: If credentials are missing.
            SearchIndexNotFoundError: If the index does not exist.
            SearchIndexError: For transport, HTTP, or response format failures.
        """
        if not self.is_configured:
            raise SearchIndexNotConfiguredError()

        payload: dict[str, Any] = {"query": query}
        if filters:
            payload["filters"] = filters

        try:
            response = await self._http_client.post(
                f"{self._base_url}/1/indexes/{self._index_name}/query",
                json=payload,
                headers=self._get_headers(),
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            parsed = parse_service_error(e, "Search index")
            logger.warning(
                "search_query_failed index=%s code=%s", self._index_name, parsed.code,
            )
            if parsed.code == "not_found" or "does not exist" in parsed.message:
                raise SearchIndexNotFoundError(self._index_name) from e
            raise SearchIndexError(parsed.message) from e

        try:
            hits = response.json().get("hits", [])
            return [SearchHit.from_raw(hit) for hit in hits]
        except (ValueError, AttributeError, ValidationError) as e:
            raise SearchIndexError(f"Malformed search response: {e}") from e
