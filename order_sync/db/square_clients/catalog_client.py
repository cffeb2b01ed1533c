"""
Catalog client for the Square Catalog API.

Resolves the catalog object ids referenced by order line items into
``CatalogItem`` values through ``POST /v2/catalog/batch-retrieve``.
"""

import json
import logging
from collections.abc import Sequence

from pydantic import ValidationError

from order_sync.db.square_schemas import (
    SquareBatchRetrieveCatalogResponse,
    SquareCatalogObject,
    SquareCatalogObjectType,
)
from order_sync.domain.models import CatalogItem
from order_sync.domain.value_objects import Money
from order_sync.services.orders.batching import split_to_chunks
from order_sync.utils.cancellation import CancellationToken
from order_sync.utils.error_handler import RemoteAPIException
from order_sync.utils.mark import Mark
from order_sync.utils.retry_handler import RemoteResponse, with_throttle

from .base_client import BaseSquareClient

logger = logging.getLogger(__name__)

BATCH_RETRIEVE_ENDPOINT = "/v2/catalog/batch-retrieve"
# Square limit for object_ids per BatchRetrieveCatalogObjects call
MAX_CATALOG_BATCH_SIZE = 1000


def _to_catalog_item(variation: SquareCatalogObject, item_names: dict[str, str]) -> CatalogItem:
    data = variation.item_variation_data
    if data is None:
        return CatalogItem(variation_id=variation.id)

    price = None
    if data.price_money is not None:
        price = Money.from_minor_units(data.price_money.amount, data.price_money.currency)

    return CatalogItem(
        variation_id=variation.id,
        sku=data.sku or "",
        name=data.name or "",
        item_id=data.item_id,
        item_name=item_names.get(data.item_id or "", ""),
        price=price,
    )


def map_catalog_items(response: SquareBatchRetrieveCatalogResponse) -> list[CatalogItem]:
    """
    Map a batch-retrieve response to catalog items.

    ITEM_VARIATION objects map directly; ITEM objects contribute their
    embedded variations. Deleted objects are skipped and each variation id
    appears once.
    """
    item_names = {
        obj.id: (obj.item_data or {}).get("name") or ""
        for obj in [*response.objects, *response.related_objects]
        if obj.type == SquareCatalogObjectType.ITEM.value
    }

    variations: list[SquareCatalogObject] = []
    for obj in response.objects:
        if obj.is_deleted:
            continue
        if obj.type == SquareCatalogObjectType.ITEM_VARIATION.value:
            variations.append(obj)
        elif obj.type == SquareCatalogObjectType.ITEM.value:
            for raw_variation in (obj.item_data or {}).get("variations") or []:
                variation = SquareCatalogObject.model_validate(raw_variation)
                if not variation.is_deleted:
                    variations.append(variation)

    items: dict[str, CatalogItem] = {}
    for variation in variations:
        items.setdefault(variation.id, _to_catalog_item(variation, item_names))

    return list(items.values())


class SquareCatalogClient(BaseSquareClient):
    """Specialized client for Square catalog lookups."""

    @with_throttle(BATCH_RETRIEVE_ENDPOINT)
    async def _batch_retrieve(self, body: dict) -> RemoteResponse:
        return await self._request("POST", BATCH_RETRIEVE_ENDPOINT, json=body)

    async def resolve(self, ids: Sequence[str], cancellation: CancellationToken, mark: Mark) -> list[CatalogItem]:
        """
        Resolve catalog object ids into catalog items.

        Ids with no catalog object are absent from the result. An empty id
        set makes no call.
        """
        unique_ids = list(dict.fromkeys(object_id for object_id in ids if object_id and object_id.strip()))
        if not unique_ids:
            return []

        items: list[CatalogItem] = []
        for chunk in split_to_chunks(unique_ids, MAX_CATALOG_BATCH_SIZE):
            body = {"object_ids": chunk, "include_related_objects": True}
            response = await self._batch_retrieve(
                body, mark=mark, cancellation=cancellation, payload=json.dumps(body)
            )

            try:
                parsed = SquareBatchRetrieveCatalogResponse.model_validate(response.body)
            except ValidationError as e:
                raise RemoteAPIException(
                    f"Unexpected Batch Retrieve response: {e.error_count()} validation errors",
                    endpoint=BATCH_RETRIEVE_ENDPOINT,
                    errors_payload=str(e),
                    mark=mark,
                ) from e

            items.extend(map_catalog_items(parsed))

        logger.debug(f"Resolved {len(items)} catalog items for {len(unique_ids)} ids [mark:{mark}]")
        return items
