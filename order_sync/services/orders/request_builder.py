"""
Request shaping for Square Orders Search.

Builds one ``SearchRequest`` per page, converts it to the JSON body that
``POST /v2/orders/search`` expects and parses the response back into a
``RawOrdersPage``.
"""

from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from order_sync.core.config import MAX_ORDERS_PAGE_SIZE
from order_sync.db.square_schemas import SquareSearchOrdersResponse
from order_sync.domain.models import Location, RawOrdersPage, SearchRequest, TimeWindow
from order_sync.services.orders.batching import MAX_LOCATION_BATCH_SIZE
from order_sync.utils.datetime_utils import to_rfc3339
from order_sync.utils.error_handler import InvalidArgumentException, RemoteAPIException

SEARCH_ORDERS_ENDPOINT = "/v2/orders/search"
DEFAULT_ORDER_STATES = ("COMPLETED", "OPEN", "CANCELED")
SORT_FIELD = "UPDATED_AT"
SORT_ORDER = "DESC"


def build_search_request(
    window: TimeWindow,
    locations: Sequence[Location],
    cursor: str | None,
    page_size: int,
    states: Sequence[str] = DEFAULT_ORDER_STATES,
) -> SearchRequest:
    """
    Build the search request for one page of one location batch.

    Raises:
        InvalidArgumentException: Invalid window, page size or batch
    """
    window.validate()

    if not 1 <= page_size <= MAX_ORDERS_PAGE_SIZE:
        raise InvalidArgumentException(
            f"Page size must be between 1 and {MAX_ORDERS_PAGE_SIZE}",
            field="page_size",
            invalid_value=page_size,
        )

    if not locations:
        raise InvalidArgumentException("At least one location is required", field="locations", invalid_value=0)

    if len(locations) > MAX_LOCATION_BATCH_SIZE:
        raise InvalidArgumentException(
            f"A search may target at most {MAX_LOCATION_BATCH_SIZE} locations",
            field="locations",
            invalid_value=len(locations),
        )

    return SearchRequest(
        location_ids=tuple(location.id for location in locations),
        window=window,
        page_size=page_size,
        cursor=cursor,
        states=tuple(states) or DEFAULT_ORDER_STATES,
    )


def create_search_orders_body(request: SearchRequest) -> dict[str, Any]:
    """
    Convert a search request into the Orders Search JSON body.

    Orders are filtered by ``updated_at`` and sorted newest first.
    """
    body: dict[str, Any] = {
        "location_ids": list(request.location_ids),
        "limit": request.page_size,
        "return_entries": False,
        "query": {
            "filter": {
                "date_time_filter": {
                    "updated_at": {
                        "start_at": to_rfc3339(request.window.start_utc),
                        "end_at": to_rfc3339(request.window.end_utc),
                    }
                },
                "state_filter": {"states": list(request.states or DEFAULT_ORDER_STATES)},
            },
            "sort": {"sort_field": SORT_FIELD, "sort_order": SORT_ORDER},
        },
    }

    if request.cursor:
        body["cursor"] = request.cursor

    return body


def parse_search_orders_response(payload: dict[str, Any]) -> RawOrdersPage:
    """
    Parse an Orders Search response body.

    Raises:
        RemoteAPIException: If the body does not match the expected shape
    """
    try:
        response = SquareSearchOrdersResponse.model_validate(payload or {})
    except ValidationError as e:
        raise RemoteAPIException(
            f"Unexpected Orders Search response: {e.error_count()} validation errors",
            endpoint=SEARCH_ORDERS_ENDPOINT,
            errors_payload=str(e),
        ) from e

    return RawOrdersPage(orders=response.orders, cursor=response.cursor)
