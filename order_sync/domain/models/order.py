"""
Normalized order domain model.

The terminal output unit of the collection pipeline: one NormalizedOrder per
raw Square order, immutable after construction.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from order_sync.domain.value_objects.money import Money


@dataclass(frozen=True)
class OrderRecipient:
    """
    Shipment recipient of an order.

    All fields default to empty strings; an order without a shipment
    fulfillment gets the empty recipient.
    """

    name: str = ""
    email: str = ""
    phone: str = ""
    address_line_1: str = ""
    address_line_2: str = ""
    city: str = ""
    region: str = ""
    postal_code: str = ""
    country: str = ""

    @property
    def is_empty(self) -> bool:
        return self == OrderRecipient()


@dataclass(frozen=True)
class NormalizedLineItem:
    """
    Order line item enriched with catalog data.

    Attributes:
        sku: SKU resolved from the catalog ("" when unmatched)
        quantity: Quantity as reported by Square
        name: Line item name
        variation_id: Catalog object ID the line item referenced
        unit_price: Base price per unit
        total: Line total after discounts and taxes
        matched: Whether a catalog item was found
    """

    sku: str
    quantity: Decimal
    name: str = ""
    variation_id: str | None = None
    unit_price: Money | None = None
    total: Money | None = None
    matched: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "sku": self.sku,
            "quantity": str(self.quantity),
            "name": self.name,
            "variation_id": self.variation_id,
            "unit_price": str(self.unit_price.amount) if self.unit_price else None,
            "total": str(self.total.amount) if self.total else None,
            "matched": self.matched,
        }


@dataclass(frozen=True)
class NormalizedOrder:
    """
    Domain model representing an order collected from Square.

    Attributes:
        order_id: Square order ID
        status: Square order state (OPEN, COMPLETED, CANCELED)
        created_at_utc: Creation time in UTC
        updated_at_utc: Last update time in UTC
        total: Order total, if reported
        line_items: Enriched line items, in source order
        recipient: Shipment recipient (empty when none)
        location_id: Location the order belongs to
    """

    order_id: str
    status: str
    created_at_utc: datetime
    updated_at_utc: datetime
    total: Money | None = None
    line_items: tuple[NormalizedLineItem, ...] = ()
    recipient: OrderRecipient = field(default_factory=OrderRecipient)
    location_id: str | None = None

    @property
    def total_quantity(self) -> Decimal:
        return sum((item.quantity for item in self.line_items), Decimal("0"))

    @property
    def skus(self) -> list[str]:
        return [item.sku for item in self.line_items if item.sku]

    def to_dict(self) -> dict[str, Any]:
        """Convert order to a JSON-friendly dictionary."""
        return {
            "order_id": self.order_id,
            "status": self.status,
            "created_at_utc": self.created_at_utc.isoformat(),
            "updated_at_utc": self.updated_at_utc.isoformat(),
            "total": str(self.total.amount) if self.total else None,
            "currency": self.total.currency if self.total else None,
            "location_id": self.location_id,
            "line_items": [item.to_dict() for item in self.line_items],
            "recipient": {
                "name": self.recipient.name,
                "email": self.recipient.email,
                "phone": self.recipient.phone,
                "address_line_1": self.recipient.address_line_1,
                "address_line_2": self.recipient.address_line_2,
                "city": self.recipient.city,
                "region": self.recipient.region,
                "postal_code": self.recipient.postal_code,
                "country": self.recipient.country,
            },
        }
