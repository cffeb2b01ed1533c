"""
Modelos Pydantic para datos de la API REST de Square.

Solo se modelan los campos que consume el pipeline de pedidos; el resto
de la respuesta se ignora.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SquareOrderState(str, Enum):
    """Estados de pedidos en Square."""

    OPEN = "OPEN"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"
    DRAFT = "DRAFT"


class SquareCatalogObjectType(str, Enum):
    """Tipos de objetos de catálogo relevantes."""

    ITEM = "ITEM"
    ITEM_VARIATION = "ITEM_VARIATION"


class SquareModel(BaseModel):
    """Base de todos los modelos de Square: ignora campos desconocidos."""

    model_config = ConfigDict(extra="ignore")


class SquareError(SquareModel):
    """Error individual devuelto en la lista `errors`."""

    category: Optional[str] = None
    code: Optional[str] = None
    detail: Optional[str] = None
    field: Optional[str] = None


class SquareMoney(SquareModel):
    """Monto en la denominación más pequeña de la moneda."""

    amount: int = 0
    currency: str = "USD"


class SquareAddress(SquareModel):
    address_line_1: Optional[str] = None
    address_line_2: Optional[str] = None
    locality: Optional[str] = None
    administrative_district_level_1: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class SquareFulfillmentRecipient(SquareModel):
    customer_id: Optional[str] = None
    display_name: Optional[str] = None
    email_address: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[SquareAddress] = None


class SquareShipmentDetails(SquareModel):
    recipient: Optional[SquareFulfillmentRecipient] = None
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None


class SquareFulfillment(SquareModel):
    uid: Optional[str] = None
    type: Optional[str] = None
    state: Optional[str] = None
    shipment_details: Optional[SquareShipmentDetails] = None


class SquareOrderLineItem(SquareModel):
    """Line item de un pedido; `quantity` llega como string decimal."""

    uid: Optional[str] = None
    name: Optional[str] = None
    quantity: str = "0"
    catalog_object_id: Optional[str] = None
    variation_name: Optional[str] = None
    base_price_money: Optional[SquareMoney] = None
    total_money: Optional[SquareMoney] = None

    @field_validator("quantity", mode="before")
    @classmethod
    def validate_quantity(cls, v):
        """Acepta cantidades numéricas y las convierte a string."""
        if v is None:
            return "0"
        return str(v)


class SquareOrder(SquareModel):
    """Pedido tal como lo devuelve SearchOrders."""

    id: str
    location_id: Optional[str] = None
    state: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    total_money: Optional[SquareMoney] = None
    line_items: List[SquareOrderLineItem] = Field(default_factory=list)
    fulfillments: List[SquareFulfillment] = Field(default_factory=list)

    @field_validator("line_items", "fulfillments", mode="before")
    @classmethod
    def parse_nullable_lists(cls, v):
        """Square omite o envía null en listas vacías."""
        return v or []


class SquareSearchOrdersResponse(SquareModel):
    orders: List[SquareOrder] = Field(default_factory=list)
    cursor: Optional[str] = None
    errors: List[SquareError] = Field(default_factory=list)

    @field_validator("orders", "errors", mode="before")
    @classmethod
    def parse_nullable_lists(cls, v):
        return v or []


class SquareLocation(SquareModel):
    id: str
    name: Optional[str] = None
    status: Optional[str] = None


class SquareListLocationsResponse(SquareModel):
    locations: List[SquareLocation] = Field(default_factory=list)
    errors: List[SquareError] = Field(default_factory=list)

    @field_validator("locations", "errors", mode="before")
    @classmethod
    def parse_nullable_lists(cls, v):
        return v or []


class SquareItemVariationData(SquareModel):
    item_id: Optional[str] = None
    name: Optional[str] = None
    sku: Optional[str] = None
    price_money: Optional[SquareMoney] = None


class SquareCatalogObject(SquareModel):
    type: str
    id: str
    is_deleted: bool = False
    item_variation_data: Optional[SquareItemVariationData] = None
    item_data: Optional[Dict[str, Any]] = None


class SquareBatchRetrieveCatalogResponse(SquareModel):
    objects: List[SquareCatalogObject] = Field(default_factory=list)
    related_objects: List[SquareCatalogObject] = Field(default_factory=list)
    errors: List[SquareError] = Field(default_factory=list)

    @field_validator("objects", "related_objects", "errors", mode="before")
    @classmethod
    def parse_nullable_lists(cls, v):
        return v or []


# Alias de dominio: el pedido crudo que consume el pipeline
RawOrder = SquareOrder
