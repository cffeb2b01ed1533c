"""
Domain models for business entities.

These models represent core business concepts and contain
business logic and invariants.
"""

from .catalog_item import CatalogItem
from .collection import EnrichmentReport, OrderCollectionResult, UnmatchedLineItem
from .location import Location
from .order import NormalizedLineItem, NormalizedOrder, OrderRecipient
from .search import PageResult, RawOrdersPage, SearchRequest, TimeWindow

__all__ = [
    "CatalogItem",
    "EnrichmentReport",
    "Location",
    "NormalizedLineItem",
    "NormalizedOrder",
    "OrderCollectionResult",
    "OrderRecipient",
    "PageResult",
    "RawOrdersPage",
    "SearchRequest",
    "TimeWindow",
    "UnmatchedLineItem",
]
