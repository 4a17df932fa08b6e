"""
Integration Tests - Tracking Writes
"""
import pytest
from sqlalchemy import select

from src.analytics import tracking
from src.analytics.exceptions import EntityNotFoundError
from src.database.models import ConversionEvent, ProductVisit, StoreVisit

TENANT = "company-acme"


async def _fetch(session_factory, model, row_id):
    async with session_factory() as session:
        return (await session.execute(select(model).where(model.id == row_id))).scalar_one()


class TestStoreVisitTracking:
    """Tests for track_store_visit"""

    async def test_records_visit(self, store, session_factory, seeded):
        visit_id = await tracking.track_store_visit(
            store, TENANT, "s-new", ip_address="10.0.0.1", landing_page="/shoes",
        )

        row = await _fetch(session_factory, StoreVisit, visit_id)
        assert row.company_id == TENANT
        assert row.landing_page == "/shoes"
        assert (await store.event_counts(TENANT, None)).total_visits == 6

    async def test_unknown_company_is_dropped(self, store, seeded):
        assert await tracking.track_store_visit(store, "ghost-company", "s1") is None
        assert (await store.event_counts("ghost-company", None)).total_visits == 0


class TestProductVisitTracking:
    """Tests for track_product_visit"""

    async def test_records_view(self, store, session_factory, seeded):
        visit_id = await tracking.track_product_visit(store, TENANT, "prod-boot", "s1", source="search")

        row = await _fetch(session_factory, ProductVisit, visit_id)
        assert (row.product_id, row.source) == ("prod-boot", "search")

    async def test_foreign_product_raises(self, store, seeded):
        with pytest.raises(EntityNotFoundError):
            await tracking.track_product_visit(store, TENANT, "prod-foreign", "s1")

        assert (await store.event_counts(TENANT, None)).product_views == 4


class TestConversionTracking:
    """Tests for track_conversion_event"""

    async def test_own_order_reference_is_kept(self, store, session_factory, seeded):
        event_id = await tracking.track_conversion_event(
            store, TENANT, "s1", "purchase", order_id="order-delivered", value=200.0, metadata={"items": 2},
        )

        row = await _fetch(session_factory, ConversionEvent, event_id)
        assert row.order_id == "order-delivered"
        assert row.event_metadata == {"items": 2}

    async def test_foreign_order_reference_is_nulled(self, store, session_factory, seeded):
        event_id = await tracking.track_conversion_event(
            store, TENANT, "s1", "purchase", order_id="order-foreign", value=10.0,
        )

        row = await _fetch(session_factory, ConversionEvent, event_id)
        assert row.order_id is None
        assert row.value == 10.0

    async def test_foreign_product_add_to_cart_is_still_recorded(self, store, seeded):
        event_id = await tracking.track_conversion_event(
            store, TENANT, "s1", "add_to_cart", product_id="prod-foreign",
        )

        assert event_id is not None
        assert (await store.event_counts(TENANT, None)).add_to_carts == 3

    async def test_unknown_company_is_dropped(self, store, seeded):
        assert await tracking.track_conversion_event(store, "ghost-company", "s1", "checkout") is None
