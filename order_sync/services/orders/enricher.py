"""
Order enrichment.

Converts one raw Square order into a ``NormalizedOrder``, resolving the
catalog object referenced by each line item to obtain its SKU.
"""

import logging
from decimal import Decimal, InvalidOperation

from order_sync.db.square_schemas import (
    RawOrder,
    SquareFulfillmentRecipient,
    SquareMoney,
    SquareOrderLineItem,
)
from order_sync.domain.models import (
    CatalogItem,
    EnrichmentReport,
    NormalizedLineItem,
    NormalizedOrder,
    OrderRecipient,
    UnmatchedLineItem,
)
from order_sync.domain.value_objects import Money
from order_sync.services.orders.interfaces import CatalogLookup
from order_sync.utils.cancellation import CancellationToken
from order_sync.utils.datetime_utils import ensure_utc_datetime
from order_sync.utils.error_handler import InvalidArgumentException
from order_sync.utils.mark import Mark

logger = logging.getLogger(__name__)


def collect_catalog_object_ids(order: RawOrder) -> list[str]:
    """Distinct, non-blank catalog object ids of an order, in first-seen order."""
    ids = (item.catalog_object_id for item in order.line_items)
    return list(dict.fromkeys(object_id for object_id in ids if object_id and object_id.strip()))


def _to_money(money: SquareMoney | None) -> Money | None:
    if money is None:
        return None
    return Money.from_minor_units(money.amount, money.currency)


def _parse_quantity(line_item: SquareOrderLineItem, order_id: str) -> Decimal:
    try:
        return Decimal(line_item.quantity)
    except InvalidOperation as e:
        raise InvalidArgumentException(
            f"Order {order_id} has a line item with a non-numeric quantity",
            field="quantity",
            invalid_value=line_item.quantity,
        ) from e


def _to_recipient(recipient: SquareFulfillmentRecipient) -> OrderRecipient:
    address = recipient.address
    return OrderRecipient(
        name=recipient.display_name or "",
        email=recipient.email_address or "",
        phone=recipient.phone_number or "",
        address_line_1=(address.address_line_1 or "") if address else "",
        address_line_2=(address.address_line_2 or "") if address else "",
        city=(address.locality or "") if address else "",
        region=(address.administrative_district_level_1 or "") if address else "",
        postal_code=(address.postal_code or "") if address else "",
        country=(address.country or "") if address else "",
    )


def extract_recipient(order: RawOrder) -> OrderRecipient:
    """Recipient of the first fulfillment that has shipment details, else the empty recipient."""
    for fulfillment in order.fulfillments:
        details = fulfillment.shipment_details
        if details is not None and details.recipient is not None:
            return _to_recipient(details.recipient)
    return OrderRecipient()


class OrderEnricher:
    """
    Turns raw orders into normalized orders using catalog data.

    Line items whose catalog object cannot be resolved are reported and, by
    default, excluded from the normalized order.
    """

    def __init__(self, catalog_lookup: CatalogLookup, drop_unmatched_line_items: bool = True):
        self.catalog_lookup = catalog_lookup
        self.drop_unmatched_line_items = drop_unmatched_line_items

    async def enrich(
        self,
        order: RawOrder,
        cancellation: CancellationToken,
        mark: Mark,
        report: EnrichmentReport | None = None,
    ) -> NormalizedOrder:
        """
        Enrich one order.

        Args:
            order: Raw Square order
            cancellation: Cancellation token of the run
            mark: Correlation mark of the run
            report: Report that collects unmatched line items

        Returns:
            NormalizedOrder: Order with catalog-resolved line items
        """
        cancellation.raise_if_cancelled("Catalog lookup", mark=mark)
        catalog_items = await self.catalog_lookup.resolve(collect_catalog_object_ids(order), cancellation, mark)

        line_items = []
        for line_item in order.line_items:
            normalized = self._normalize_line_item(order, line_item, catalog_items, mark, report)
            if normalized is not None:
                line_items.append(normalized)

        if report is not None:
            report.orders_enriched += 1

        return NormalizedOrder(
            order_id=order.id,
            status=order.state or "",
            created_at_utc=ensure_utc_datetime(order.created_at),
            updated_at_utc=ensure_utc_datetime(order.updated_at),
            total=_to_money(order.total_money),
            line_items=tuple(line_items),
            recipient=extract_recipient(order),
            location_id=order.location_id,
        )

    def _normalize_line_item(
        self,
        order: RawOrder,
        line_item: SquareOrderLineItem,
        catalog_items: list[CatalogItem],
        mark: Mark,
        report: EnrichmentReport | None,
    ) -> NormalizedLineItem | None:
        quantity = _parse_quantity(line_item, order.id)
        match = next(
            (item for item in catalog_items if item.variation_id == line_item.catalog_object_id),
            None,
        )

        if match is None:
            logger.warning(
                f"Order {order.id}: no catalog item for line item '{line_item.name or ''}' "
                f"(catalog_object_id={line_item.catalog_object_id}, quantity={quantity}) [mark:{mark}]"
            )
            if report is not None:
                report.record_unmatched(
                    UnmatchedLineItem(
                        order_id=order.id,
                        catalog_object_id=line_item.catalog_object_id,
                        quantity=quantity,
                        name=line_item.name or "",
                    )
                )
            if self.drop_unmatched_line_items:
                return None

        return NormalizedLineItem(
            sku=match.sku if match else "",
            quantity=quantity,
            name=line_item.name or (match.name if match else ""),
            variation_id=line_item.catalog_object_id,
            unit_price=_to_money(line_item.base_price_money),
            total=_to_money(line_item.total_money),
            matched=match is not None,
        )
