"""
Interfaces/Protocols for order collection services (Dependency Inversion Principle).

These protocols define the contracts of the remote collaborators, allowing
the pipeline to run against Square clients or in-memory fakes.
"""

from collections.abc import Sequence
from typing import Protocol

from order_sync.domain.models import CatalogItem, Location, PageResult, RawOrdersPage, SearchRequest
from order_sync.utils.cancellation import CancellationToken
from order_sync.utils.mark import Mark


class LocationSource(Protocol):
    """Protocol for listing the account's active locations."""

    async def get_active_locations(self, cancellation: CancellationToken, mark: Mark) -> list[Location] | None:
        """Return active locations; empty or None means there are none."""
        ...


class CatalogLookup(Protocol):
    """Protocol for resolving catalog object ids to catalog items."""

    async def resolve(self, ids: Sequence[str], cancellation: CancellationToken, mark: Mark) -> list[CatalogItem]:
        """Resolve ids; ids without a catalog object are simply absent."""
        ...


class RemoteOrderSearch(Protocol):
    """Protocol for one Orders Search call."""

    async def search(self, request: SearchRequest, cancellation: CancellationToken, mark: Mark) -> RawOrdersPage:
        """Fetch one page of raw orders."""
        ...


class PageFetcher(Protocol):
    """Protocol for fetching one normalized page during a walk."""

    async def fetch_page(self, request: SearchRequest) -> PageResult | None:
        """Fetch a page; None ends the walk."""
        ...
