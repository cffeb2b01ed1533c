"""
Factory functions for wiring the order collection pipeline (OCP).

The factory encapsulates collaborator wiring so callers only hold a client.
"""

from typing import Any

from order_sync.db.square_clients import SquareClient
from order_sync.services.orders.orchestrator import OrderCollectionPipeline


def create_order_collection_pipeline(client: SquareClient, **overrides: Any) -> OrderCollectionPipeline:
    """
    Create a pipeline backed by a unified Square client.

    Args:
        client: Initialized unified client (locations, catalog, orders)
        **overrides: page_size, drop_unmatched_line_items, order_states, batcher

    Returns:
        OrderCollectionPipeline: Ready-to-run pipeline
    """
    return OrderCollectionPipeline(
        location_source=client.locations,
        order_search=client.orders,
        catalog_lookup=client.catalog,
        **overrides,
    )
