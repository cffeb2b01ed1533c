"""Tests unitarios para el enriquecimiento de pedidos con datos de catálogo."""

import logging
from datetime import UTC, datetime
from decimal import Decimal

import pytest

from order_sync.domain.models import CatalogItem, EnrichmentReport, OrderRecipient
from order_sync.domain.value_objects import Money
from order_sync.services.orders.enricher import OrderEnricher, collect_catalog_object_ids, extract_recipient
from order_sync.utils.cancellation import CancellationToken
from order_sync.utils.error_handler import CancelledOperationException, InvalidArgumentException
from order_sync.utils.mark import Mark
from tests.fakes import FakeCatalogLookup, make_raw_order

CATALOG = [
    CatalogItem("V1", sku="SKU-1", name="Small"),
    CatalogItem("V2", sku="SKU-2", name="Large"),
]

SHIPMENT = {
    "type": "SHIPMENT",
    "shipment_details": {
        "recipient": {
            "display_name": "Ana Mora",
            "email_address": "ana@example.com",
            "phone_number": "+50688887777",
            "address": {
                "address_line_1": "Calle 1",
                "locality": "San José",
                "administrative_district_level_1": "SJ",
                "postal_code": "10101",
                "country": "CR",
            },
        }
    },
}


async def _enrich(order, catalog=None, drop=True, report=None):
    enricher = OrderEnricher(catalog or FakeCatalogLookup(CATALOG), drop_unmatched_line_items=drop)
    return await enricher.enrich(order, CancellationToken.none(), Mark("m-1"), report)


class TestCollectCatalogObjectIds:
    """Tests para collect_catalog_object_ids."""

    def test_distinct_in_first_seen_order(self):
        order = make_raw_order("O1", [("V2", "1"), ("V1", "1"), ("V2", "4")])

        assert collect_catalog_object_ids(order) == ["V2", "V1"]

    def test_skips_blank_and_missing_ids(self):
        """Line items custom (sin catalog_object_id) no generan ids."""
        order = make_raw_order("O1", [(None, "1"), ("", "1"), ("  ", "1"), ("V1", "1")])

        assert collect_catalog_object_ids(order) == ["V1"]

    def test_no_line_items(self):
        assert collect_catalog_object_ids(make_raw_order("O1")) == []


class TestOrderEnricher:
    """Tests para OrderEnricher.enrich."""

    @pytest.mark.asyncio
    async def test_matched_line_items_carry_sku(self):
        """Cada line item con match debe llevar el SKU del catálogo."""
        order = make_raw_order("O1", [("V1", "2"), ("V2", "1.5")])

        normalized = await _enrich(order)

        assert [(item.sku, item.quantity) for item in normalized.line_items] == [
            ("SKU-1", Decimal("2")),
            ("SKU-2", Decimal("1.5")),
        ]
        assert all(item.matched for item in normalized.line_items)

    @pytest.mark.asyncio
    async def test_order_fields(self):
        order = make_raw_order("O1", [("V1", "1")], location_id="L07")

        normalized = await _enrich(order)

        assert normalized.order_id == "O1"
        assert normalized.status == "COMPLETED"
        assert normalized.location_id == "L07"
        assert normalized.created_at_utc == datetime(2024, 5, 1, 10, 0, tzinfo=UTC)
        assert normalized.updated_at_utc == datetime(2024, 5, 1, 12, 0, 0, 123000, tzinfo=UTC)
        assert normalized.total == Money(Decimal("25.00"), "USD")
        assert normalized.line_items[0].unit_price == Money(Decimal("12.50"), "USD")

    @pytest.mark.asyncio
    async def test_single_resolve_call_per_order(self):
        """El catálogo se consulta una sola vez por pedido con ids únicos."""
        catalog = FakeCatalogLookup(CATALOG)
        order = make_raw_order("O1", [("V1", "1"), ("V2", "1"), ("V1", "3")])

        await _enrich(order, catalog=catalog)

        assert catalog.calls == [["V1", "V2"]]

    @pytest.mark.asyncio
    async def test_first_catalog_match_wins(self):
        catalog = FakeCatalogLookup([CatalogItem("V1", sku="FIRST"), CatalogItem("V1", sku="SECOND")])

        normalized = await _enrich(make_raw_order("O1", [("V1", "1")]), catalog=catalog)

        assert normalized.line_items[0].sku == "FIRST"

    @pytest.mark.asyncio
    async def test_unmatched_line_item_dropped_and_reported(self, caplog):
        """Por defecto, un line item sin match se excluye, se loggea y queda en el reporte."""
        report = EnrichmentReport()
        order = make_raw_order("O1", [("V1", "1"), ("GONE", "2")])

        with caplog.at_level(logging.WARNING, logger="order_sync.services.orders.enricher"):
            normalized = await _enrich(order, report=report)

        assert [item.sku for item in normalized.line_items] == ["SKU-1"]
        assert len(report.unmatched) == 1
        assert report.unmatched[0].order_id == "O1"
        assert report.unmatched[0].catalog_object_id == "GONE"
        assert report.unmatched[0].quantity == Decimal("2")
        assert report.orders_enriched == 1
        assert "GONE" in caplog.text

    @pytest.mark.asyncio
    async def test_unmatched_line_item_kept_when_flag_off(self):
        """Con el flag apagado, el line item se conserva con SKU vacío y matched=False."""
        report = EnrichmentReport()
        order = make_raw_order("O1", [("GONE", "2")])

        normalized = await _enrich(order, drop=False, report=report)

        assert len(normalized.line_items) == 1
        assert normalized.line_items[0].sku == ""
        assert normalized.line_items[0].matched is False
        assert normalized.line_items[0].variation_id == "GONE"
        assert report.has_unmatched

    @pytest.mark.asyncio
    async def test_custom_line_item_is_unmatched(self):
        """Un line item sin catalog_object_id no puede tener match."""
        normalized = await _enrich(make_raw_order("O1", [(None, "1")]))

        assert normalized.line_items == ()

    @pytest.mark.asyncio
    async def test_order_without_line_items(self):
        normalized = await _enrich(make_raw_order("O1"))

        assert normalized.line_items == ()
        assert normalized.total_quantity == Decimal("0")

    @pytest.mark.asyncio
    async def test_cancelled_skips_catalog_lookup(self):
        cancellation = CancellationToken()
        cancellation.cancel()
        catalog = FakeCatalogLookup(CATALOG)

        with pytest.raises(CancelledOperationException):
            await OrderEnricher(catalog).enrich(make_raw_order("O1", [("V1", "1")]), cancellation, Mark("m-1"))

        assert catalog.calls == []

    @pytest.mark.asyncio
    async def test_invalid_quantity_raises(self):
        with pytest.raises(InvalidArgumentException):
            await _enrich(make_raw_order("O1", [("V1", "abc")]))

    @pytest.mark.asyncio
    async def test_recipient_from_shipment(self):
        order = make_raw_order("O1", [("V1", "1")], fulfillments=[SHIPMENT])

        normalized = await _enrich(order)

        assert normalized.recipient == OrderRecipient(
            name="Ana Mora",
            email="ana@example.com",
            phone="+50688887777",
            address_line_1="Calle 1",
            city="San José",
            region="SJ",
            postal_code="10101",
            country="CR",
        )


class TestExtractRecipient:
    """Tests para extract_recipient."""

    def test_no_fulfillments_gives_empty_recipient(self):
        assert extract_recipient(make_raw_order("O1")).is_empty

    def test_first_fulfillment_with_recipient_wins(self):
        """Se ignoran fulfillments sin detalles de envío (p. ej. PICKUP)."""
        pickup = {"type": "PICKUP"}
        other = {"type": "SHIPMENT", "shipment_details": {"recipient": {"display_name": "Otro"}}}
        order = make_raw_order("O1", fulfillments=[pickup, SHIPMENT, other])

        assert extract_recipient(order).name == "Ana Mora"
