"""Met Museum collection API integration.

Thin facade over the public collection API
(https://metmuseum.github.io/).  All requests go through a
``TimeoutAwareClient`` and therefore through the shared rate limiter.
Failed calls raise ``MetApiError`` carrying the classified failure so callers
can show ``str(error)`` directly.

Endpoints used:
- ``/departments``: department list (cached, it changes rarely)
- ``/search``: object IDs matching a query and filters
- ``/objects/{id}``: a single object record
- image URLs returned in object records, fetched as binary
"""

from __future__ import annotations

import base64
import logging
import time
from dataclasses import dataclass
from typing import List, Optional

from met_explorer.core.config import Config, get_config
from met_explorer.core.data_models import ResultCard, SearchPage, SearchRequest
from met_explorer.core.http_client import OutboundCall, TimeoutAwareClient
from met_explorer.core.outcomes import CallFailure, FailureKind, MetApiError
from met_explorer.core.rate_limiter import RateLimiter
from met_explorer.core.schemas import (
    Department,
    DepartmentsResponse,
    ObjectRecord,
    SearchResponse,
)

logger = logging.getLogger(__name__)

MET_API_BASE_URL = "https://collectionapi.metmuseum.org/public/collection/v1"
DEFAULT_DEPARTMENTS_CACHE_TTL_SECONDS = 24 * 60 * 60
DEFAULT_SEARCH_TOOL_PAGE_SIZE = 24
MAX_SEARCH_PAGE_SIZE = 100


@dataclass(frozen=True)
class ImagePayload:
    """A base64-encoded image."""

    data: str
    mime_type: str


class MetMuseumAPI:
    """Client for the Met collection API."""

    def __init__(
        self,
        client: Optional[TimeoutAwareClient] = None,
        base_url: str = MET_API_BASE_URL,
        departments_ttl: float = DEFAULT_DEPARTMENTS_CACHE_TTL_SECONDS,
        max_page_size: int = MAX_SEARCH_PAGE_SIZE,
    ) -> None:
        """Initialize the API client.

        Args:
            client: Outbound client (a default one is created if omitted)
            base_url: Collection API root
            departments_ttl: Seconds to keep the department list cached
            max_page_size: Largest page size accepted by ``search_page``
        """
        self.client = client or TimeoutAwareClient()
        self.base_url = base_url.rstrip("/")
        self.departments_ttl = departments_ttl
        self.max_page_size = max_page_size
        self._departments: Optional[List[Department]] = None
        self._departments_loaded_at = 0.0
        self.logger = logging.getLogger(self.__class__.__name__)

    @classmethod
    def from_config(
        cls,
        config: Optional[Config] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> "MetMuseumAPI":
        """Build a client from configuration values."""
        config = config or get_config()
        client = TimeoutAwareClient(
            timeout=config.api_timeout_seconds,
            rate_limiter=rate_limiter,
            user_agent=config.get("api.user_agent"),
        )
        return cls(
            client=client,
            base_url=config.get("api.base_url", MET_API_BASE_URL),
            departments_ttl=config.get_float(
                "departments.cache_ttl_seconds", DEFAULT_DEPARTMENTS_CACHE_TTL_SECONDS
            ),
            max_page_size=config.get_int("search.max_page_size", MAX_SEARCH_PAGE_SIZE),
        )

    async def __aenter__(self) -> "MetMuseumAPI":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.client.close()

    async def list_departments(self, force_refresh: bool = False) -> List[Department]:
        """Get all departments, served from cache while fresh."""
        now = time.monotonic()
        if (
            not force_refresh
            and self._departments is not None
            and now - self._departments_loaded_at < self.departments_ttl
        ):
            return self._departments

        outcome = await self.client.call(
            OutboundCall(url=f"{self.base_url}/departments"),
            schema=DepartmentsResponse,
        )
        response: DepartmentsResponse = outcome.unwrap()
        self._departments = list(response.departments)
        self._departments_loaded_at = now
        self.logger.debug("Loaded %d departments", len(self._departments))
        return self._departments

    async def search_objects(self, request: SearchRequest) -> SearchResponse:
        """Run a search and return every matching object ID."""
        outcome = await self.client.call(
            OutboundCall(url=f"{self.base_url}/search", params=request.to_params()),
            schema=SearchResponse,
        )
        return outcome.unwrap()

    async def search_page(
        self,
        request: SearchRequest,
        page: int = 1,
        page_size: int = DEFAULT_SEARCH_TOOL_PAGE_SIZE,
    ) -> SearchPage:
        """Run a search and return one page of object IDs.

        Pages past the end are clamped to the last page.

        Raises:
            ValueError: If ``page`` or ``page_size`` is out of range
            MetApiError: If the search call fails
        """
        if page < 1:
            raise ValueError("page must be >= 1")
        if not 1 <= page_size <= self.max_page_size:
            raise ValueError(f"page_size must be between 1 and {self.max_page_size}")

        response = await self.search_objects(request)
        if response.total == 0 or not response.object_ids:
            self.logger.info("No objects found for %r", request.q)
            return SearchPage.empty(page_size)

        return SearchPage.paginate(response.total, response.object_ids, page, page_size)

    async def get_object(self, object_id: int) -> ObjectRecord:
        """Get one object record.

        Raises:
            MetApiError: If the object is missing or the call fails
        """
        outcome = await self.client.call(
            OutboundCall(url=f"{self.base_url}/objects/{object_id}"),
            schema=ObjectRecord,
        )
        failure = outcome.failure
        if failure is not None and failure.status_code == 404:
            raise MetApiError(
                CallFailure(
                    kind=FailureKind.HTTP_STATUS,
                    message=f"Museum object id {object_id} was not found.",
                    user_safe=True,
                    status_code=404,
                )
            )
        return outcome.unwrap()

    async def get_card(self, object_id: int) -> ResultCard:
        """Get the results-grid summary for one object."""
        record = await self.get_object(object_id)
        return ResultCard.from_record(record, fallback_id=object_id)

    async def get_image_as_base64(self, url: str) -> ImagePayload:
        """Download an image and return it base64-encoded.

        Raises:
            MetApiError: If the download fails or is not an image
        """
        outcome = await self.client.call_bytes(OutboundCall(url=url))
        content, mime_type = outcome.unwrap()
        if not mime_type.startswith("image/"):
            raise MetApiError(
                CallFailure(
                    kind=FailureKind.SHAPE_MISMATCH,
                    message=f"Expected an image from {url}, got {mime_type}",
                )
            )
        return ImagePayload(data=base64.b64encode(content).decode("ascii"), mime_type=mime_type)
