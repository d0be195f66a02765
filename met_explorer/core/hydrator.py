"""Bounded, order-preserving hydration of search results.

A search page yields a list of object identifiers; hydration fetches the
detail record for each one so the results grid can show titles, artists and
thumbnails.  ``BoundedHydrator`` runs a fixed number of worker coroutines
that claim identifiers by index and write each finished card into the slot
matching that index.  Completion order therefore never affects presentation
order, and one failed fetch never aborts the rest of the batch.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Iterator, List, Optional, Sequence, Tuple

from met_explorer.core.data_models import HydrationResult, ResultCard
from met_explorer.core.generation import GenerationTracker
from met_explorer.core.outcomes import MetApiError

logger = logging.getLogger(__name__)

OBJECT_HYDRATION_CONCURRENCY = 4

CardFetcher = Callable[[int], Awaitable[Optional[ResultCard]]]


class BoundedHydrator:
    """Fetches result cards for identifiers with a fixed worker pool."""

    def __init__(
        self,
        fetch: CardFetcher,
        tracker: GenerationTracker,
        concurrency: int = OBJECT_HYDRATION_CONCURRENCY,
    ) -> None:
        """Initialize the hydrator.

        Args:
            fetch: Coroutine function returning the card for one identifier.
                Raising, or returning ``None``, counts as a failed item.
            tracker: Generation tracker of the stream whose tokens guard
                slot writes
            concurrency: Default number of workers
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._fetch = fetch
        self.tracker = tracker
        self.concurrency = concurrency
        self.logger = logging.getLogger(self.__class__.__name__)

    async def hydrate(
        self,
        identifiers: Sequence[int],
        concurrency: Optional[int] = None,
        token: Optional[int] = None,
    ) -> HydrationResult:
        """Hydrate ``identifiers`` into cards.

        Args:
            identifiers: Object IDs in presentation order
            concurrency: Number of workers (defaults to the hydrator's)
            token: Generation token the batch belongs to (defaults to the
                tracker's latest).  Once it is superseded, workers stop
                claiming identifiers and drop any result they finish.

        Returns:
            HydrationResult whose cards follow input order
        """
        limit = concurrency if concurrency is not None else self.concurrency
        if limit < 1:
            raise ValueError("concurrency must be at least 1")
        if token is None:
            token = self.tracker.latest

        slots: List[Optional[ResultCard]] = [None] * len(identifiers)
        failures = 0
        # Shared by all workers; each next() claims one index.
        pending: Iterator[Tuple[int, int]] = iter(enumerate(identifiers))
        start_time = time.monotonic()

        async def worker() -> None:
            nonlocal failures
            for index, object_id in pending:
                if not self.tracker.is_current(token):
                    return

                try:
                    card = await self._fetch(object_id)
                except MetApiError as exc:
                    self.logger.debug(
                        "Object %s failed to hydrate (%s): %s",
                        object_id,
                        exc.kind.value,
                        exc.failure.message,
                    )
                    card = None
                except Exception as exc:
                    self.logger.warning("Object %s failed to hydrate: %s", object_id, exc)
                    card = None

                if not self.tracker.is_current(token):
                    return

                if card is None:
                    failures += 1
                    continue
                slots[index] = card

        workers = [asyncio.create_task(worker()) for _ in range(min(limit, len(identifiers)))]
        if workers:
            await asyncio.gather(*workers)

        result = HydrationResult(
            cards=[card for card in slots if card is not None],
            failed_count=failures,
        )
        self.logger.debug(
            "Hydrated %d/%d objects with %d workers in %.2fms (token=%d, current=%s)",
            len(result.cards),
            len(identifiers),
            len(workers),
            (time.monotonic() - start_time) * 1000,
            token,
            self.tracker.is_current(token),
        )
        return result
