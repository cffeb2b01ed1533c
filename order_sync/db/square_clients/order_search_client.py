"""
Order search client for the Square Orders API.
"""

import json
import logging

from order_sync.domain.models import RawOrdersPage, SearchRequest
from order_sync.services.orders.request_builder import (
    SEARCH_ORDERS_ENDPOINT,
    create_search_orders_body,
    parse_search_orders_response,
)
from order_sync.utils.cancellation import CancellationToken
from order_sync.utils.mark import Mark
from order_sync.utils.retry_handler import RemoteResponse, with_throttle

from .base_client import BaseSquareClient

logger = logging.getLogger(__name__)


class SquareOrderSearchClient(BaseSquareClient):
    """Specialized client for Square Orders Search."""

    @with_throttle(SEARCH_ORDERS_ENDPOINT)
    async def _search_orders(self, body: dict) -> RemoteResponse:
        return await self._request("POST", SEARCH_ORDERS_ENDPOINT, json=body)

    async def search(self, request: SearchRequest, cancellation: CancellationToken, mark: Mark) -> RawOrdersPage:
        """
        Fetch one page of orders for one location batch.

        Returns:
            RawOrdersPage: Raw orders and the continuation cursor, if any
        """
        body = create_search_orders_body(request)
        response = await self._search_orders(body, mark=mark, cancellation=cancellation, payload=json.dumps(body))
        page = parse_search_orders_response(response.body)

        logger.debug(
            f"Orders Search returned {len(page.orders)} orders for {len(request.location_ids)} locations, "
            f"more pages: {page.cursor is not None} [mark:{mark}]"
        )
        return page
