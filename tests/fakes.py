"""Colaboradores en memoria y builders de datos para los tests."""

from datetime import UTC, datetime
from typing import Any

from order_sync.db.square_schemas import SquareOrder
from order_sync.domain.models import CatalogItem, Location, PageResult, RawOrdersPage, SearchRequest, TimeWindow

WINDOW = TimeWindow(
    start_utc=datetime(2024, 5, 1, tzinfo=UTC),
    end_utc=datetime(2024, 5, 2, tzinfo=UTC),
)


def make_locations(count: int) -> list[Location]:
    return [Location(id=f"L{i:02d}", name=f"Store {i}") for i in range(count)]


def make_raw_order(
    order_id: str,
    line_items: list[tuple[str | None, str]] | None = None,
    location_id: str = "L00",
    **extra: Any,
) -> SquareOrder:
    """Construye un pedido crudo; cada line item es (catalog_object_id, quantity)."""
    payload = {
        "id": order_id,
        "location_id": location_id,
        "state": "COMPLETED",
        "created_at": "2024-05-01T10:00:00Z",
        "updated_at": "2024-05-01T12:00:00.123Z",
        "total_money": {"amount": 2500, "currency": "USD"},
        "line_items": [
            {
                "uid": f"{order_id}-{index}",
                "name": f"Item {catalog_id}",
                "quantity": quantity,
                "catalog_object_id": catalog_id,
                "base_price_money": {"amount": 1250, "currency": "USD"},
                "total_money": {"amount": 2500, "currency": "USD"},
            }
            for index, (catalog_id, quantity) in enumerate(line_items or [])
        ],
        **extra,
    }
    return SquareOrder.model_validate(payload)


class FakeLocationSource:
    def __init__(self, locations: list[Location] | None):
        self.locations = locations
        self.calls = 0

    async def get_active_locations(self, cancellation, mark):
        self.calls += 1
        return self.locations


class FakeCatalogLookup:
    def __init__(self, items: list[CatalogItem] | None = None):
        self.items = items or []
        self.calls: list[list[str]] = []

    async def resolve(self, ids, cancellation, mark):
        self.calls.append(list(ids))
        return [item for item in self.items if item.variation_id in ids]


class FakeOrderSearch:
    """
    Devuelve páginas por lote de ubicaciones.

    ``pages`` mapea la tupla de location ids a la lista de páginas (cada una
    una lista de pedidos); los cursores se generan como ``cursor-<n>``.
    """

    def __init__(self, pages: dict[tuple[str, ...], list[list[SquareOrder]]] | None = None):
        self.pages = pages or {}
        self.requests: list[SearchRequest] = []

    async def search(self, request, cancellation, mark):
        self.requests.append(request)
        batch_pages = self.pages.get(request.location_ids, [[]])
        index = 0 if request.cursor is None else int(request.cursor.split("-")[1])
        cursor = f"cursor-{index + 1}" if index + 1 < len(batch_pages) else None
        return RawOrdersPage(orders=batch_pages[index], cursor=cursor)

    @property
    def calls(self) -> int:
        return len(self.requests)


class FakePageFetcher:
    """Devuelve las páginas dadas en orden y registra cada request."""

    def __init__(self, pages: list[PageResult | None]):
        self.pages = list(pages)
        self.requests: list[SearchRequest] = []

    async def fetch_page(self, request):
        self.requests.append(request)
        return self.pages.pop(0)
