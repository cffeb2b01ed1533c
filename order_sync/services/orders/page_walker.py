"""
Cursor-driven pagination over Orders Search.

``PageWalker`` walks every page of one location batch; the default
``EnrichingPageFetcher`` fetches a raw page and enriches each order in it.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from order_sync.domain.models import EnrichmentReport, Location, NormalizedOrder, PageResult, SearchRequest, TimeWindow
from order_sync.services.orders.batching import LocationBatcher
from order_sync.services.orders.enricher import OrderEnricher
from order_sync.services.orders.interfaces import PageFetcher, RemoteOrderSearch
from order_sync.services.orders.request_builder import DEFAULT_ORDER_STATES, SEARCH_ORDERS_ENDPOINT, build_search_request
from order_sync.utils.cancellation import CancellationToken
from order_sync.utils.mark import Mark

logger = logging.getLogger(__name__)


class WalkState(str, Enum):
    START = "START"
    FETCHING = "FETCHING"
    DONE = "DONE"


@dataclass
class BatchWalkResult:
    """Orders collected by a walk, in fetch order; ``batches`` counts walked location batches."""

    orders: list[NormalizedOrder] = field(default_factory=list)
    pages_fetched: int = 0
    batches: int = 0


class EnrichingPageFetcher:
    """
    Fetches one page of raw orders and enriches every order in it.

    A page without orders ends the walk even if Square returned a cursor.
    """

    def __init__(
        self,
        order_search: RemoteOrderSearch,
        enricher: OrderEnricher,
        cancellation: CancellationToken,
        mark: Mark,
        report: EnrichmentReport | None = None,
    ):
        self.order_search = order_search
        self.enricher = enricher
        self.cancellation = cancellation
        self.mark = mark
        self.report = report

    async def fetch_page(self, request: SearchRequest) -> PageResult | None:
        self.cancellation.raise_if_cancelled("Orders Search", mark=self.mark, endpoint=SEARCH_ORDERS_ENDPOINT)
        page = await self.order_search.search(request, self.cancellation, self.mark)
        if page is None or not page.orders:
            return PageResult((), None)

        orders = []
        for raw_order in page.orders:
            orders.append(await self.enricher.enrich(raw_order, self.cancellation, self.mark, self.report))

        return PageResult(tuple(orders), page.cursor)


class PageWalker:
    """
    Walks all pages of one location batch.

    States: START -> FETCHING -> (FETCHING | DONE). Errors propagate; no
    retry happens at this level. Cancellation is checked before every page.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        cancellation: CancellationToken | None = None,
        mark: Mark | None = None,
    ):
        self.fetcher = fetcher
        self.cancellation = cancellation or CancellationToken.none()
        self.mark = mark
        self.state = WalkState.START

    async def walk(
        self,
        window: TimeWindow,
        batch: Sequence[Location],
        page_size: int,
        states: Sequence[str] = DEFAULT_ORDER_STATES,
    ) -> BatchWalkResult:
        result = BatchWalkResult()
        cursor: str | None = None
        self.state = WalkState.FETCHING

        while self.state is WalkState.FETCHING:
            self.cancellation.raise_if_cancelled("Orders Search page", mark=self.mark)
            request = build_search_request(window, batch, cursor, page_size, states)
            page = await self.fetcher.fetch_page(request)

            if page is None:
                self.state = WalkState.DONE
                break

            result.pages_fetched += 1
            result.orders.extend(page.orders)

            if page.has_more:
                cursor = page.cursor
            else:
                self.state = WalkState.DONE

        logger.debug(
            f"Batch of {len(batch)} locations done: {len(result.orders)} orders "
            f"in {result.pages_fetched} pages"
        )
        return result


async def collect_orders_from_all_pages(
    window: TimeWindow,
    locations: Sequence[Location],
    fetcher: PageFetcher,
    page_size: int,
    batcher: LocationBatcher | None = None,
    states: Sequence[str] = DEFAULT_ORDER_STATES,
    cancellation: CancellationToken | None = None,
    mark: Mark | None = None,
) -> BatchWalkResult:
    """
    Walk every location batch sequentially and concatenate the results.

    Result order is batches in input order, then pages in fetch order.
    """
    batcher = batcher or LocationBatcher()
    total = BatchWalkResult()

    for batch in batcher.batches(locations):
        batch_result = await PageWalker(fetcher, cancellation, mark).walk(window, batch, page_size, states)
        total.orders.extend(batch_result.orders)
        total.pages_fetched += batch_result.pages_fetched
        total.batches += 1

    return total
