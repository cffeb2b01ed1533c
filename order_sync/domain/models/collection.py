"""
Run-level results of an order collection.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from .order import NormalizedOrder


@dataclass(frozen=True)
class UnmatchedLineItem:
    """A line item whose catalog object could not be resolved."""

    order_id: str
    catalog_object_id: str | None
    quantity: Decimal
    name: str = ""


@dataclass
class EnrichmentReport:
    """
    Collects line items that had no catalog match during one run.

    Unmatched items are excluded from normalized orders by default, so this
    report is the only trace of them.
    """

    unmatched: list[UnmatchedLineItem] = field(default_factory=list)
    orders_enriched: int = 0

    def record_unmatched(self, item: UnmatchedLineItem) -> None:
        self.unmatched.append(item)

    @property
    def has_unmatched(self) -> bool:
        return bool(self.unmatched)

    @property
    def affected_order_ids(self) -> list[str]:
        return list(dict.fromkeys(item.order_id for item in self.unmatched))

    def get_summary(self) -> dict[str, Any]:
        return {
            "orders_enriched": self.orders_enriched,
            "unmatched_line_items": len(self.unmatched),
            "affected_orders": self.affected_order_ids,
        }


@dataclass(frozen=True)
class OrderCollectionResult:
    """Everything a ``collect`` run produced."""

    orders: list[NormalizedOrder]
    report: EnrichmentReport
    batches: int
    pages_fetched: int
    mark: str

    @property
    def total_orders(self) -> int:
        return len(self.orders)
