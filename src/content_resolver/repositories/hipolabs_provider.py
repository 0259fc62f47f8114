"""Hipolabs universities provider.

Uses the public http://universities.hipolabs.com API to look up
organizations (universities) by name. No API key is needed.

Key features:
- Short per-request timeout (5 seconds), shorter health check (3 seconds)
- Field mapping into RawRecord owned here, nowhere else
- ``search`` never raises; ``fetch`` raises so retries can see failures
- Async client shared across requests

Raw response shape (one element):
    {
        "name": "Example University",
        "domains": ["example.edu"],
        "web_pages": ["https://example.edu/"],
        "alpha_two_code": "EX",
        "state-province": null,
        "country": "Exampleland"
    }
"""

from typing import Any

import httpx
from loguru import logger

from content_resolver.config import settings
from content_resolver.entities import EntityType, RawRecord
from content_resolver.utils.normalization import normalize_query


def _first(values: Any) -> str | None:
    if isinstance(values, list) and values and isinstance(values[0], str):
        return values[0].strip() or None
    return None


def _text(value: Any) -> str | None:
    if isinstance(value, str):
        return value.strip() or None
    return None


class HipolabsProvider:
    """Hipolabs-based implementation of the EntityProvider protocol.

    This class satisfies the EntityProvider protocol through structural
    typing - no explicit inheritance needed. It only knows organizations;
    any other entity type yields no records.

    Example:
        ```python
        provider = HipolabsProvider.create()

        records = await provider.search("stanford")
        print(records[0].name)  # "Stanford University"
        ```
    """

    name = "hipolabs"

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 5.0,
        health_timeout: float = 3.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the Hipolabs provider.

        Args:
            base_url: API base URL. Defaults to settings.hipolabs_base_url.
            timeout: Request timeout in seconds.
            health_timeout: Timeout for is_available() in seconds.
            transport: Optional httpx transport (tests pass a MockTransport).
        """
        self._base_url = (base_url or settings.hipolabs_base_url).rstrip("/")
        self._timeout = timeout
        self._health_timeout = health_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the async HTTP client.

        Returns:
            The httpx.AsyncClient instance
        """
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers={"Accept": "application/json"},
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
                transport=self._transport,
            )
        return self._client

    @classmethod
    def create(cls, base_url: str | None = None) -> "HipolabsProvider":
        """Factory method to create HipolabsProvider with defaults.

        Args:
            base_url: API base URL. If None, uses settings.

        Returns:
            Configured HipolabsProvider
        """
        return cls(base_url=base_url)

    @property
    def endpoint(self) -> str:
        """Base URL of the API."""
        return self._base_url

    async def fetch(self, query: str, entity_type: EntityType = EntityType.ORGANIZATION) -> list[RawRecord]:
        """Query the API and map the response.

        Args:
            query: Raw user query
            entity_type: Only ORGANIZATION is served

        Returns:
            Normalized records

        Raises:
            httpx.HTTPStatusError: On a 4xx/5xx response
            httpx.HTTPError: On timeouts and connection failures
            ValueError: If the body is not JSON
        """
        if entity_type is not EntityType.ORGANIZATION:
            return []

        response = await self.client.get("/search", params={"name": query})
        response.raise_for_status()
        data = response.json()

        if not isinstance(data, list):
            logger.warning(f"[HipolabsProvider] Unexpected payload type {type(data).__name__} for query={query!r}")
            return []

        return [self._normalize(raw) for raw in data if isinstance(raw, dict)]

    async def search(self, query: str, entity_type: EntityType = EntityType.ORGANIZATION) -> list[RawRecord]:
        """Query the API, logging failures and returning [] instead of raising."""
        try:
            return await self.fetch(query, entity_type)
        except (httpx.HTTPError, ValueError) as e:
            self._log_error(e, query)
            return []

    async def is_available(self) -> bool:
        """Check if the API answers a tiny query within the health-check timeout.

        Returns:
            True if the API responded with a success status, False otherwise
        """
        try:
            response = await self.client.get("/search", params={"name": "test"}, timeout=self._health_timeout)
            response.raise_for_status()
            return True
        except httpx.HTTPError:
            return False

    async def close(self) -> None:
        """Close the async HTTP client.

        Should be called when shutting down the application.
        """
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _normalize(self, raw: dict[str, Any]) -> RawRecord:
        name = _text(raw.get("name")) or "Unknown University"
        normalized_name = normalize_query(name)

        return RawRecord(
            external_id=f"{self.name}:{normalized_name}",
            name=name,
            normalized_name=normalized_name,
            provider=self.name,
            country=_text(raw.get("country")) or "Unknown",
            state=_text(raw.get("state-province")),
            domain=_first(raw.get("domains")),
            web_page=_first(raw.get("web_pages")),
            alpha_code=_text(raw.get("alpha_two_code")),
        )

    def _log_error(self, error: Exception, query: str) -> None:
        if isinstance(error, httpx.TimeoutException):
            logger.error(f"[HipolabsProvider] Timeout for query={query!r}")
        elif isinstance(error, httpx.HTTPStatusError):
            logger.error(f"[HipolabsProvider] HTTP {error.response.status_code} for query={query!r}")
        elif isinstance(error, httpx.HTTPError):
            logger.error(f"[HipolabsProvider] No response for query={query!r}: {error}")
        else:
            logger.error(f"[HipolabsProvider] Unreadable response for query={query!r}: {error}")
