"""
Unified Square client that combines all specialized clients.

This module provides a single object that satisfies every collaborator the
order collection pipeline needs, delegating to specialized clients that
share one HTTP session and one request throttler.
"""

import logging
from collections.abc import Sequence
from typing import Optional

from order_sync.core.config import Settings
from order_sync.domain.models import CatalogItem, Location, RawOrdersPage, SearchRequest
from order_sync.utils.cancellation import CancellationToken
from order_sync.utils.mark import Mark
from order_sync.utils.retry_handler import RequestThrottler

from .base_client import BaseSquareClient
from .catalog_client import SquareCatalogClient
from .location_client import SquareLocationClient
from .order_search_client import SquareOrderSearchClient

logger = logging.getLogger(__name__)


class SquareClient(BaseSquareClient):
    """
    Unified Square client.

    Exposes ``.locations``, ``.catalog`` and ``.orders`` and implements
    ``LocationSource``, ``CatalogLookup`` and ``RemoteOrderSearch`` by
    delegation.
    """

    def __init__(self, settings: Optional[Settings] = None, throttler: Optional[RequestThrottler] = None):
        """Initialize the unified client with all specialized clients."""
        super().__init__(settings=settings, throttler=throttler)

        self.locations = SquareLocationClient(settings=self.settings, throttler=self.throttler)
        self.catalog = SquareCatalogClient(settings=self.settings, throttler=self.throttler)
        self.orders = SquareOrderSearchClient(settings=self.settings, throttler=self.throttler)

    @property
    def _clients(self) -> list[BaseSquareClient]:
        return [self.locations, self.catalog, self.orders]

    async def initialize(self):
        """Initialize the shared session and hand it to every specialized client."""
        await super().initialize()

        for client in self._clients:
            self._share_with(client)

        logger.info("✅ Unified Square client initialized with all specialized clients")

    async def close(self):
        """Close the shared session."""
        # The specialized clients share the same session, so we only need to close once
        await super().close()

        for client in self._clients:
            client.session = None

    # =============================================================================
    # LOCATION OPERATIONS - Delegate to SquareLocationClient
    # =============================================================================

    async def get_active_locations(self, cancellation: CancellationToken, mark: Mark) -> list[Location]:
        """Delegate to location client."""
        return await self.locations.get_active_locations(cancellation, mark)

    # =============================================================================
    # CATALOG OPERATIONS - Delegate to SquareCatalogClient
    # =============================================================================

    async def resolve(self, ids: Sequence[str], cancellation: CancellationToken, mark: Mark) -> list[CatalogItem]:
        """Delegate to catalog client."""
        return await self.catalog.resolve(ids, cancellation, mark)

    # =============================================================================
    # ORDER OPERATIONS - Delegate to SquareOrderSearchClient
    # =============================================================================

    async def search(self, request: SearchRequest, cancellation: CancellationToken, mark: Mark) -> RawOrdersPage:
        """Delegate to order search client."""
        return await self.orders.search(request, cancellation, mark)
