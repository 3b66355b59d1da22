from __future__ import annotations

import logging
from typing import AsyncIterator, Optional, Protocol

from support_pulse.config import DEFAULT_MAX_PAGES, INCREMENTAL_PAGE_SIZE
from support_pulse.connectors.zendesk import IncrementalPage

logger = logging.getLogger(__name__)


class IncrementalSource(Protocol):
    async def fetch_incremental_page(self, start_time: int) -> IncrementalPage: ...


class IncrementalPaginator:
    """Walks the incremental export one page at a time.

    Each page's ``end_time`` becomes the next request's ``start_time``. The
    walk stops when a page signals exhaustion or after ``max_pages`` fetches;
    ``has_more`` tells the caller whether to invoke again. Remote errors
    propagate to the consumer after any pages already yielded.
    """

    def __init__(
        self,
        client: IncrementalSource,
        max_pages: int = DEFAULT_MAX_PAGES,
        page_size: int = INCREMENTAL_PAGE_SIZE,
    ) -> None:
        self.client = client
        self.max_pages = max(1, max_pages)
        self.page_size = page_size
        self.pages_fetched = 0
        self.exhausted = False
        self.next_start_time: Optional[int] = None

    @property
    def has_more(self) -> bool:
        return not self.exhausted

    async def pages(self, start_time: int) -> AsyncIterator[IncrementalPage]:
        since = int(start_time)
        self.next_start_time = since
        while self.pages_fetched < self.max_pages:
            page = await self.client.fetch_incremental_page(since)
            self.pages_fetched += 1
            more = page.has_more(self.page_size)
            logger.debug(
                "Page %d: %d tickets, count=%d, end_time=%s, more=%s",
                self.pages_fetched,
                len(page.tickets),
                page.count,
                page.end_time,
                more,
            )
            if page.end_time is not None:
                self.next_start_time = page.end_time
            yield page
            if not more:
                self.exhausted = True
                return
            since = int(page.end_time)  # type: ignore[arg-type]

        logger.info(
            "Page cap of %d reached, export continues from %s",
            self.max_pages,
            self.next_start_time,
        )
