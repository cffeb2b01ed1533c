"""
Catalog item (item variation) domain model.
"""

from dataclasses import dataclass

from order_sync.domain.value_objects.money import Money


@dataclass(frozen=True)
class CatalogItem:
    """
    A sellable catalog variation, keyed by ``variation_id``.

    Attributes:
        variation_id: Square ITEM_VARIATION object ID (what line items reference)
        sku: Variation SKU (may be empty)
        name: Variation name
        item_id: Parent ITEM object ID
        item_name: Parent item name, when the related object was returned
        price: Variation price, when fixed-priced
    """

    variation_id: str
    sku: str = ""
    name: str = ""
    item_id: str | None = None
    item_name: str = ""
    price: Money | None = None
