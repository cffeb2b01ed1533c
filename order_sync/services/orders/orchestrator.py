"""
OrderCollectionPipeline - Main coordinator of an order collection run.

One run validates the window, lists active locations, batches them, walks
every Orders Search page of every batch and enriches each order. Runs are
sequential: no batches or pages are fetched concurrently.
"""

import logging
from collections.abc import Sequence

from order_sync.core.config import MAX_ORDERS_PAGE_SIZE, get_settings
from order_sync.core.logging_config import create_method_call_info, log_call_ended, log_call_started, mark_context
from order_sync.domain.models import EnrichmentReport, NormalizedOrder, OrderCollectionResult, TimeWindow
from order_sync.services.orders.batching import LocationBatcher
from order_sync.services.orders.enricher import OrderEnricher
from order_sync.services.orders.interfaces import CatalogLookup, LocationSource, RemoteOrderSearch
from order_sync.services.orders.page_walker import EnrichingPageFetcher, collect_orders_from_all_pages
from order_sync.utils.cancellation import CancellationToken
from order_sync.utils.error_handler import (
    AppException,
    CancelledOperationException,
    InvalidArgumentException,
    NoActiveLocationsException,
    SyncException,
    log_error,
)
from order_sync.utils.mark import Mark

logger = logging.getLogger(__name__)


class OrderCollectionPipeline:
    """
    Collects normalized orders updated within a time window.

    Collaborators are injected via constructor; defaults for page size,
    unmatched line item handling and order states come from settings.
    """

    def __init__(
        self,
        location_source: LocationSource,
        order_search: RemoteOrderSearch,
        catalog_lookup: CatalogLookup,
        page_size: int | None = None,
        drop_unmatched_line_items: bool | None = None,
        order_states: Sequence[str] | None = None,
        batcher: LocationBatcher | None = None,
    ):
        """
        Initialize the pipeline with its collaborators.

        Args:
            location_source: Lists the account's active locations
            order_search: Runs one Orders Search call
            catalog_lookup: Resolves catalog object ids
            page_size: Orders per page (ORDERS_PAGE_SIZE by default)
            drop_unmatched_line_items: Exclude line items without catalog match
            order_states: Order states to collect
            batcher: Location batcher (cap 10 by default)
        """
        settings = get_settings()

        self.location_source = location_source
        self.order_search = order_search
        self.catalog_lookup = catalog_lookup
        self.page_size = page_size if page_size is not None else settings.ORDERS_PAGE_SIZE
        self.drop_unmatched_line_items = (
            drop_unmatched_line_items
            if drop_unmatched_line_items is not None
            else settings.DROP_UNMATCHED_LINE_ITEMS
        )
        self.order_states = tuple(order_states) if order_states else tuple(settings.order_states)
        self.batcher = batcher or LocationBatcher()

    async def collect(
        self,
        window: TimeWindow,
        cancellation: CancellationToken | None = None,
        mark: Mark | None = None,
    ) -> list[NormalizedOrder]:
        """
        Collect all orders updated within ``window`` across active locations.

        Raises:
            InvalidArgumentException: Invalid window or page size
            CancelledOperationException: Cancellation requested
            NoActiveLocationsException: The account has no active locations
            RemoteAPIException: Square returned errors
            SyncException: Any unexpected failure
        """
        result = await self.collect_with_report(window, cancellation, mark)
        return result.orders

    async def collect_with_report(
        self,
        window: TimeWindow,
        cancellation: CancellationToken | None = None,
        mark: Mark | None = None,
    ) -> OrderCollectionResult:
        """
        Same as ``collect`` but also returns the enrichment report and run counters.
        """
        cancellation = cancellation or CancellationToken.none()
        mark = mark or Mark.create_new()
        call_info = create_method_call_info(
            mark,
            "collect",
            start=window.start_utc.isoformat(),
            end=window.end_utc.isoformat(),
            page_size=self.page_size,
        )

        with mark_context(mark):
            log_call_started(call_info)
            try:
                result = await self._run(window, cancellation, mark)
            except CancelledOperationException as e:
                log_error(e, context={"operation": "collect", "mark": str(mark)}, level=logging.INFO)
                raise
            except AppException as e:
                log_error(e, context={"operation": "collect", "mark": str(mark)})
                raise
            except Exception as e:
                log_error(e, context={"operation": "collect", "mark": str(mark)})
                raise SyncException(
                    message=f"Failed to collect orders: {str(e)}",
                    service="order_collection_pipeline",
                    operation="collect",
                    mark=mark,
                ) from e
            finally:
                log_call_ended(call_info)

        return result

    async def _run(self, window: TimeWindow, cancellation: CancellationToken, mark: Mark) -> OrderCollectionResult:
        # Step 1: Validate arguments before any remote call
        window.validate()
        if not 1 <= self.page_size <= MAX_ORDERS_PAGE_SIZE:
            raise InvalidArgumentException(
                f"Page size must be between 1 and {MAX_ORDERS_PAGE_SIZE}",
                field="page_size",
                invalid_value=self.page_size,
                mark=mark,
            )

        # Step 2: Cancellation precedes everything else
        cancellation.raise_if_cancelled("Order collection", mark=mark)

        logger.info(
            f"Collecting orders updated between {window.start_utc.isoformat()} "
            f"and {window.end_utc.isoformat()} [mark:{mark}]"
        )

        # Step 3: Active locations
        locations = await self.location_source.get_active_locations(cancellation, mark)
        if not locations:
            raise NoActiveLocationsException(mark=mark)

        # Step 4-6: Batch, walk and enrich
        report = EnrichmentReport()
        fetcher = EnrichingPageFetcher(
            order_search=self.order_search,
            enricher=OrderEnricher(self.catalog_lookup, self.drop_unmatched_line_items),
            cancellation=cancellation,
            mark=mark,
            report=report,
        )
        walk = await collect_orders_from_all_pages(
            window,
            locations,
            fetcher,
            self.page_size,
            batcher=self.batcher,
            states=self.order_states,
            cancellation=cancellation,
            mark=mark,
        )

        if report.has_unmatched:
            logger.warning(
                f"{len(report.unmatched)} line items without catalog match in "
                f"{len(report.affected_order_ids)} orders [mark:{mark}]"
            )

        logger.info(
            f"Collected {len(walk.orders)} orders from {len(locations)} locations "
            f"({walk.batches} batches, {walk.pages_fetched} pages) [mark:{mark}]"
        )

        return OrderCollectionResult(
            orders=walk.orders,
            report=report,
            batches=walk.batches,
            pages_fetched=walk.pages_fetched,
            mark=str(mark),
        )
