"""
Square REST clients organized by responsibility.

Each client covers one Square API; ``SquareClient`` bundles them over a
shared HTTP session and a shared request throttler.
"""

from .base_client import BaseSquareClient
from .catalog_client import SquareCatalogClient
from .location_client import SquareLocationClient
from .order_search_client import SquareOrderSearchClient
from .unified_client import SquareClient

__all__ = [
    "BaseSquareClient",
    "SquareCatalogClient",
    "SquareLocationClient",
    "SquareOrderSearchClient",
    "SquareClient",
]
