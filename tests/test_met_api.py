"""Tests for the Met collection API client."""

import base64

import httpx
import pytest

from met_explorer.core.config import Config
from met_explorer.core.data_models import SearchRequest
from met_explorer.core.http_client import TimeoutAwareClient
from met_explorer.core.outcomes import FailureKind, MetApiError
from met_explorer.core.rate_limiter import RateLimiter
from met_explorer.integrations.met_api import MET_API_BASE_URL, MetMuseumAPI

DEPARTMENTS = {
    "departments": [
        {"departmentId": 1, "displayName": "American Decorative Arts"},
        {"departmentId": 11, "displayName": "European Paintings"},
    ]
}


class FakeMetServer:
    """Routes MockTransport requests to canned Met responses."""

    def __init__(self, object_json):
        self.object_json = object_json
        self.requests = []
        self.search_body = {"total": 30, "objectIDs": list(range(100, 130))}
        self.missing = set()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.endswith("/departments"):
            return httpx.Response(200, json=DEPARTMENTS)
        if path.endswith("/search"):
            return httpx.Response(200, json=self.search_body)
        if "/objects/" in path:
            object_id = int(path.rsplit("/", 1)[1])
            if object_id in self.missing:
                return httpx.Response(404, json={"message": "ObjectID not found"})
            return httpx.Response(200, json=self.object_json(object_id))
        if path.endswith(".jpg"):
            return httpx.Response(200, content=b"jpeg-bytes", headers={"content-type": "image/jpeg"})
        return httpx.Response(200, text="<html></html>", headers={"content-type": "text/html"})


@pytest.fixture
def server(object_json):
    return FakeMetServer(object_json)


@pytest.fixture
def api(server):
    client = TimeoutAwareClient(
        timeout=1.0, rate_limiter=RateLimiter(), transport=httpx.MockTransport(server)
    )
    return MetMuseumAPI(client=client)


class TestMetMuseumAPI:
    """Tests for MetMuseumAPI class."""

    @pytest.mark.asyncio
    async def test_list_departments_is_cached(self, api, server):
        """Test that departments are fetched once while fresh."""
        first = await api.list_departments()
        second = await api.list_departments()

        assert [d.display_name for d in first] == [
            "American Decorative Arts",
            "European Paintings",
        ]
        assert first is second
        assert len(server.requests) == 1

    @pytest.mark.asyncio
    async def test_list_departments_force_refresh(self, api, server):
        """Test that force_refresh bypasses the cache."""
        await api.list_departments()
        await api.list_departments(force_refresh=True)
        assert len(server.requests) == 2

    @pytest.mark.asyncio
    async def test_expired_departments_are_refetched(self, server):
        """Test that a zero TTL never serves from cache."""
        client = TimeoutAwareClient(
            rate_limiter=RateLimiter(), transport=httpx.MockTransport(server)
        )
        api = MetMuseumAPI(client=client, departments_ttl=0)

        await api.list_departments()
        await api.list_departments()

        assert len(server.requests) == 2

    @pytest.mark.asyncio
    async def test_search_sends_filters(self, api, server):
        """Test that request filters become query parameters."""
        request = SearchRequest(
            q="cat", has_images=True, department_id=11, date_begin=1800, date_end=1900
        )
        await api.search_objects(request)

        params = dict(server.requests[0].url.params)
        assert params == {
            "q": "cat",
            "hasImages": "true",
            "departmentId": "11",
            "dateBegin": "1800",
            "dateEnd": "1900",
        }

    @pytest.mark.asyncio
    async def test_search_page_slices_ids(self, api):
        """Test pagination of the returned IDs."""
        page = await api.search_page(SearchRequest(q="cat"), page=2, page_size=12)

        assert page.total == 30
        assert page.page == 2
        assert page.total_pages == 3
        assert page.object_ids == list(range(112, 124))

    @pytest.mark.asyncio
    async def test_search_page_clamps_past_the_end(self, api):
        """Test that a page past the end returns the last page."""
        page = await api.search_page(SearchRequest(q="cat"), page=9, page_size=12)

        assert page.page == 3
        assert page.object_ids == list(range(124, 130))

    @pytest.mark.asyncio
    async def test_search_page_empty_result(self, api, server):
        """Test that a null objectIDs list is an empty page."""
        server.search_body = {"total": 0, "objectIDs": None}
        page = await api.search_page(SearchRequest(q="zzzz"))

        assert page.is_empty
        assert page.total == 0
        assert page.total_pages == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("page, page_size", [(0, 12), (1, 0), (1, 101)])
    async def test_search_page_rejects_bad_arguments(self, api, page, page_size):
        """Test argument validation."""
        with pytest.raises(ValueError):
            await api.search_page(SearchRequest(q="cat"), page=page, page_size=page_size)

    @pytest.mark.asyncio
    async def test_search_shape_mismatch_raises(self, api, server):
        """Test that a malformed search body raises a classified error."""
        server.search_body = {"objectIDs": [1, 2]}

        with pytest.raises(MetApiError) as excinfo:
            await api.search_objects(SearchRequest(q="cat"))

        assert excinfo.value.kind is FailureKind.SHAPE_MISMATCH

    @pytest.mark.asyncio
    async def test_get_object_normalizes_nulls(self, api):
        """Test that null fields fall back to defaults."""
        record = await api.get_object(436524)

        assert record.object_id == 436524
        assert record.credit_line == ""
        assert record.tags is None

    @pytest.mark.asyncio
    async def test_get_object_not_found(self, api, server):
        """Test the curated message for a missing object."""
        server.missing.add(99)

        with pytest.raises(MetApiError) as excinfo:
            await api.get_object(99)

        assert str(excinfo.value) == "Museum object id 99 was not found."
        assert excinfo.value.status_code == 404

    @pytest.mark.asyncio
    async def test_get_card(self, api):
        """Test that cards are built from object records."""
        card = await api.get_card(7)

        assert card.object_id == 7
        assert card.title == "Object 7"
        assert card.primary_image_small.endswith("7-small.jpg")

    @pytest.mark.asyncio
    async def test_get_image_as_base64(self, api):
        """Test image download and encoding."""
        image = await api.get_image_as_base64("https://images.example/1-small.jpg")

        assert image.mime_type == "image/jpeg"
        assert base64.b64decode(image.data) == b"jpeg-bytes"

    @pytest.mark.asyncio
    async def test_get_image_rejects_non_images(self, api):
        """Test that a non-image body is a shape mismatch."""
        with pytest.raises(MetApiError) as excinfo:
            await api.get_image_as_base64("https://images.example/page.html")

        assert excinfo.value.kind is FailureKind.SHAPE_MISMATCH

    @pytest.mark.asyncio
    async def test_get_image_with_malformed_url(self, api):
        """Test that a broken primaryImageSmall URL surfaces as MetApiError."""
        with pytest.raises(MetApiError) as excinfo:
            await api.get_image_as_base64("https://images.example/\x00-small.jpg")

        assert excinfo.value.kind is FailureKind.UNREACHABLE

    def test_from_config(self, monkeypatch):
        """Test building the client from configuration."""
        monkeypatch.setenv("MET_API_TIMEOUT_MS", "2500")
        config = Config("/nonexistent/met_explorer.yaml")
        config.set("departments.cache_ttl_seconds", 60)

        api = MetMuseumAPI.from_config(config)

        assert api.base_url == MET_API_BASE_URL
        assert api.client.timeout == 2.5
        assert api.departments_ttl == 60
        assert api.max_page_size == 100
