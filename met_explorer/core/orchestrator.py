"""Explorer controller for Met Explorer.

``ExplorerController`` owns the explorer state and coordinates a search from
start to finish: page request, bounded hydration of the page's objects,
applying the cards, and publishing what is visible to the host.  Two
independent generation streams guard state writes:

- ``search`` tokens are issued per results page load
- ``details`` tokens are issued per object detail load

A newer token in one stream makes every older operation of that stream
inert; the other stream is unaffected.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from met_explorer.core.config import Config, get_config
from met_explorer.core.data_models import (
    HydrationResult,
    ResultCard,
    SearchRequest,
    StatusMessage,
)
from met_explorer.core.generation import GenerationTracker
from met_explorer.core.hydrator import OBJECT_HYDRATION_CONCURRENCY, BoundedHydrator
from met_explorer.core.logging_setup import PerformanceLogger
from met_explorer.core.outcomes import MetApiError
from met_explorer.core.schemas import Department, ObjectRecord
from met_explorer.integrations.met_api import ImagePayload, MetMuseumAPI
from met_explorer.publishing.context_publisher import ContextPayload, ContextPublisher
from met_explorer.publishing.host import HostShell
from met_explorer.publishing.object_context import ObjectContextSender

DEFAULT_SEARCH_PAGE_SIZE = 12


@dataclass
class LaunchParams:
    """Search parameters handed to the explorer when the host opens it."""

    q: Optional[str] = None
    has_images: bool = True
    title: bool = False
    department_id: Optional[int] = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "LaunchParams":
        """Normalize loosely typed launch arguments from the host."""
        has_images = raw.get("hasImages")
        title = raw.get("title")
        q = raw.get("q")
        department_id = raw.get("departmentId")
        return cls(
            q=q if isinstance(q, str) else None,
            has_images=has_images if isinstance(has_images, bool) else True,
            title=title if isinstance(title, bool) else False,
            department_id=(
                department_id
                if isinstance(department_id, int) and not isinstance(department_id, bool)
                else None
            ),
        )

    @property
    def signature(self) -> Optional[str]:
        """Identity of the launch search, ``None`` when there is no query."""
        q = (self.q or "").strip()
        if not q:
            return None
        department = "" if self.department_id is None else str(self.department_id)
        return "|".join([q, "1" if self.has_images else "0", "1" if self.title else "0", department])

    def to_request(self) -> SearchRequest:
        return SearchRequest(
            q=self.q or "",
            has_images=self.has_images,
            title=self.title,
            department_id=self.department_id,
        )


@dataclass
class ExplorerState:
    """Everything the explorer view is built from."""

    launch: LaunchParams = field(default_factory=LaunchParams)
    departments: List[Department] = field(default_factory=list)
    search_request: Optional[SearchRequest] = None
    results: List[ResultCard] = field(default_factory=list)
    selected_object: Optional[ObjectRecord] = None
    selected_image: Optional[ImagePayload] = None
    view_mode: str = "results"
    current_page: int = 1
    total_results: int = 0
    total_pages: int = 0
    page_size: int = DEFAULT_SEARCH_PAGE_SIZE
    is_busy: bool = False
    is_results_loading: bool = False
    is_details_loading: bool = False
    is_initialized: bool = False
    pending_launch_signature: Optional[str] = None
    last_launch_signature: Optional[str] = None
    last_results_context_signature: Optional[str] = None
    status: StatusMessage = field(default_factory=lambda: StatusMessage(""))

    @property
    def has_results(self) -> bool:
        return self.total_results > 0 and self.total_pages > 0

    @property
    def can_go_previous(self) -> bool:
        return self.has_results and not self.is_busy and self.current_page > 1

    @property
    def can_go_next(self) -> bool:
        return self.has_results and not self.is_busy and self.current_page < self.total_pages


class ExplorerController:
    """Coordinates searches, hydration, detail views and host publication."""

    def __init__(
        self,
        api: MetMuseumAPI,
        host: HostShell,
        page_size: int = DEFAULT_SEARCH_PAGE_SIZE,
        hydration_concurrency: int = OBJECT_HYDRATION_CONCURRENCY,
        source: str = "met-explorer-app",
        performance: Optional[PerformanceLogger] = None,
    ) -> None:
        self.logger = logging.getLogger(self.__class__.__name__)
        self.api = api
        self.host = host
        self.default_page_size = page_size
        self.hydration_concurrency = hydration_concurrency
        self.state = ExplorerState(page_size=page_size)
        self.search_generation = GenerationTracker("search")
        self.details_generation = GenerationTracker("details")
        self.hydrator = BoundedHydrator(
            api.get_card, self.search_generation, concurrency=hydration_concurrency
        )
        self.publisher = ContextPublisher(host, source=source)
        self.object_context = ObjectContextSender(host, source=source)
        self.performance = performance or PerformanceLogger()

    @classmethod
    def from_config(
        cls,
        host: HostShell,
        config: Optional[Config] = None,
        api: Optional[MetMuseumAPI] = None,
        performance: Optional[PerformanceLogger] = None,
    ) -> "ExplorerController":
        config = config or get_config()
        return cls(
            api=api or MetMuseumAPI.from_config(config),
            host=host,
            page_size=config.get_int("search.page_size", DEFAULT_SEARCH_PAGE_SIZE),
            hydration_concurrency=config.get_int(
                "search.hydration_concurrency", OBJECT_HYDRATION_CONCURRENCY
            ),
            source=config.get("publisher.source", "met-explorer-app"),
            performance=performance,
        )

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def set_status(self, message: str, is_error: bool = False) -> None:
        self.state.status = StatusMessage(message, is_error)
        log = self.logger.warning if is_error else self.logger.info
        log("Status: %s", message)

    # ------------------------------------------------------------------
    # Initialization and launch state
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Load departments, then run any pending launch search."""
        try:
            self.state.departments = await self.api.list_departments()
        except MetApiError as exc:
            self.set_status(str(exc), True)
            return

        self.state.is_initialized = True
        await self.maybe_run_pending_launch_search()
        if self.state.search_request is None:
            self.set_status("Ready. Enter a query and search the collection.")

    async def apply_launch_state(self, raw: Any) -> None:
        """Accept launch arguments from the host and queue their search."""
        if not isinstance(raw, Mapping):
            return
        self.state.launch = LaunchParams.from_raw(raw)
        self.state.pending_launch_signature = self.state.launch.signature
        await self.maybe_run_pending_launch_search()

    async def maybe_run_pending_launch_search(self) -> None:
        """Run the queued launch search once, when the explorer is idle."""
        state = self.state
        if not state.is_initialized or not state.pending_launch_signature:
            return
        if state.pending_launch_signature == state.last_launch_signature:
            state.pending_launch_signature = None
            return
        if state.is_busy or state.is_results_loading:
            return

        state.last_launch_signature = state.pending_launch_signature
        state.pending_launch_signature = None
        await self.run_search(state.launch.to_request())

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def run_search(self, request: SearchRequest, page: int = 1) -> None:
        """Start a new search, from page 1 unless told otherwise."""
        state = self.state
        state.search_request = request
        state.page_size = self.default_page_size
        state.current_page = 1
        state.total_results = 0
        state.total_pages = 0
        state.selected_object = None
        state.selected_image = None
        state.view_mode = "results"
        await self.load_search_page(max(page, 1))

    async def go_to_page(self, page: int) -> None:
        state = self.state
        if state.search_request is None:
            return
        if page < 1 or (state.total_pages > 0 and page > state.total_pages):
            return
        await self.load_search_page(page)

    async def load_search_page(self, page: int) -> None:
        """Load one results page: IDs, then hydrated cards, then publish."""
        state = self.state
        request = state.search_request
        if request is None:
            return

        token = self.search_generation.next()
        state.results = []
        state.is_results_loading = True
        state.is_busy = True
        self.set_status(f"Searching The Met collection (page {page})...")

        try:
            with self.performance.measure("search_page", query=request.q, page=page) as perf:
                search_page = await self.api.search_page(request, page, state.page_size)
                if not self.search_generation.is_current(token):
                    perf["superseded"] = True
                    return

                state.total_results = search_page.total
                state.current_page = search_page.page
                state.page_size = search_page.page_size
                state.total_pages = search_page.total_pages

                if search_page.is_empty:
                    state.is_results_loading = False
                    self.set_status("No objects found for this query.")
                    return

                self.set_status(f"Loading object previews for page {state.current_page}...")
                hydration = await self.hydrator.hydrate(
                    search_page.object_ids, self.hydration_concurrency, token
                )
                if not self.search_generation.is_current(token):
                    self.logger.debug("Dropping results for superseded search token %d", token)
                    perf["superseded"] = True
                    return

                perf.update(cards=len(hydration.cards), failed=hydration.failed_count)
                self._apply_hydration(hydration)
                if hydration.cards:
                    await self._publish_results(token)
        except MetApiError as exc:
            if not self.search_generation.is_current(token):
                return
            self.logger.debug("Search page failed: %s", exc.failure.to_dict())
            state.is_results_loading = False
            self.set_status(str(exc), True)
        finally:
            if self.search_generation.is_current(token):
                state.is_busy = False
                await self.maybe_run_pending_launch_search()

    def _apply_hydration(self, hydration: HydrationResult) -> None:
        state = self.state
        state.results = hydration.cards
        state.is_results_loading = False

        if not hydration.cards:
            self.set_status("Could not load object previews for this page. Please try again.", True)
            return

        message = (
            f"Loaded {len(hydration.cards)} previews "
            f"(page {state.current_page} of {state.total_pages})."
        )
        if hydration.failed_count > 0:
            message = f"{message} {hydration.failed_count} preview(s) failed to load."
        self.set_status(message)

    async def _publish_results(self, token: int) -> None:
        state = self.state
        payload = ContextPayload.for_results(
            state.search_request,
            state.results,
            page=state.current_page,
            page_size=state.page_size,
            total_pages=state.total_pages,
            total_results=state.total_results,
            source=self.publisher.source,
            capabilities=self.host.get_host_capabilities(),
        )
        signature = await self.publisher.publish(payload)
        if self.search_generation.is_current(token):
            state.last_results_context_signature = signature

    # ------------------------------------------------------------------
    # Details
    # ------------------------------------------------------------------

    async def load_object_details(self, object_id: int, with_image: bool = True) -> None:
        """Load one object (and its image) into the detail view."""
        state = self.state
        token = self.details_generation.next()
        state.is_details_loading = True
        self.set_status(f"Loading object {object_id}...")

        try:
            with self.performance.measure("object_details", object_id=object_id) as perf:
                record = await self.api.get_object(object_id)
                image = await self._load_image(record) if with_image else None
                perf["image"] = image is not None
                if not self.details_generation.is_current(token):
                    self.logger.debug("Dropping details for superseded token %d", token)
                    perf["superseded"] = True
                    return

            state.selected_object = record
            state.selected_image = image
            state.view_mode = "detail"
            self.set_status(f"Loaded object {object_id}.")
        except MetApiError as exc:
            if self.details_generation.is_current(token):
                self.set_status(str(exc), True)
        finally:
            if self.details_generation.is_current(token):
                state.is_details_loading = False

    async def _load_image(self, record: ObjectRecord) -> Optional[ImagePayload]:
        if not record.primary_image_small:
            return None
        try:
            return await self.api.get_image_as_base64(record.primary_image_small)
        except MetApiError as exc:
            self.logger.info(
                "Image for object %s could not be loaded: %s", record.object_id, exc.failure.message
            )
            return None

    def back_to_results(self) -> None:
        self.state.view_mode = "results"

    async def add_selected_object_to_context(self) -> None:
        """Push the selected object into the host's model context."""
        status = await self.object_context.add(self.state.selected_object, self.state.selected_image)
        if status is not None:
            self.set_status(status.message, status.is_error)
