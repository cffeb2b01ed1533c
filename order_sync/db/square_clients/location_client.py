"""
Location client for the Square Locations API.
"""

import logging

from pydantic import ValidationError

from order_sync.db.square_schemas import SquareListLocationsResponse
from order_sync.domain.models import Location
from order_sync.utils.cancellation import CancellationToken
from order_sync.utils.error_handler import RemoteAPIException
from order_sync.utils.mark import Mark
from order_sync.utils.retry_handler import RemoteResponse, with_throttle

from .base_client import BaseSquareClient

logger = logging.getLogger(__name__)

LIST_LOCATIONS_ENDPOINT = "/v2/locations"


class SquareLocationClient(BaseSquareClient):
    """Specialized client for Square location operations."""

    @with_throttle(LIST_LOCATIONS_ENDPOINT)
    async def _list_locations(self) -> RemoteResponse:
        return await self._request("GET", LIST_LOCATIONS_ENDPOINT)

    async def list_locations(
        self, cancellation: CancellationToken | None = None, mark: Mark | None = None
    ) -> list[Location]:
        """
        Get all locations of the account, active or not.

        Returns:
            List of locations in the order Square returns them
        """
        response = await self._list_locations(mark=mark, cancellation=cancellation)

        try:
            parsed = SquareListLocationsResponse.model_validate(response.body)
        except ValidationError as e:
            raise RemoteAPIException(
                f"Unexpected List Locations response: {e.error_count()} validation errors",
                endpoint=LIST_LOCATIONS_ENDPOINT,
                errors_payload=str(e),
                mark=mark,
            ) from e

        return [
            Location(id=location.id, name=location.name or "", active=(location.status or "").upper() == "ACTIVE")
            for location in parsed.locations
        ]

    async def get_active_locations(self, cancellation: CancellationToken, mark: Mark) -> list[Location]:
        """Get the locations whose status is ACTIVE."""
        locations = await self.list_locations(cancellation=cancellation, mark=mark)
        active = [location for location in locations if location.active]

        logger.info(f"Found {len(active)} active locations out of {len(locations)} [mark:{mark}]")
        return active
