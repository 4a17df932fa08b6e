"""
Unit Tests - Operational Analyzers
"""
from datetime import datetime, timedelta
import json

import pytest

from src.analytics.operational import (
    NO_VELOCITY_DAYS,
    Urgency,
    abandoned_cart_report,
    cod_report,
    coupons_report,
    delivery_report,
    forecast_product,
    payment_methods_report,
    regions_report,
    returns_report,
    status_time_report,
    stock_forecast_report,
    team_report,
    urgency_for,
    variations_report,
)
from src.analytics.records import (
    CouponRecord,
    CustomerRecord,
    GuestCartRecord,
    OrderItemRecord,
    OrderRecord,
    ProductRecord,
    StatusChange,
    UserRecord,
)

NOW = datetime(2025, 6, 1, 12, 0, 0)


def _order(order_id, status, total=100.0, **kwargs):
    kwargs.setdefault("created_at", NOW - timedelta(days=2))
    return OrderRecord(id=order_id, status=status, total=total, **kwargs)


def _cart(cart_id, expires_in_hours, items_raw="[]", total=100.0):
    return GuestCartRecord(
        cart_id=cart_id,
        items_raw=items_raw,
        total=total,
        created_at=NOW - timedelta(days=3),
        updated_at=NOW - timedelta(days=2),
        expires_at=NOW + timedelta(hours=expires_in_hours),
    )


class TestCodReport:
    """Tests for cash-on-delivery outcomes"""

    def test_rates_and_lost_revenue(self):
        cairo = CustomerRecord(id="c1", name="Mona", governorate="Cairo", city="Nasr City")
        alex = CustomerRecord(id="c2", name="Omar", city="Alexandria")
        orders = [
            _order("o1", "DELIVERED", 200.0, customer=cairo),
            _order("o2", "CANCELLED", 50.0, customer=cairo),
            _order("o3", "RETURNED", 30.0, customer=alex),
            _order("o4", "PENDING", 10.0),
        ]

        report = cod_report(orders)

        assert report["success_rate"] == 25.0
        assert report["lost_revenue"] == 80
        assert report["total_revenue"] == 200
        assert report["pending_orders"] == 1
        regions = {r["region"]: r for r in report["regional_performance"]}
        assert regions["Cairo"]["success_rate"] == 50.0
        assert "Alexandria" in regions
        assert "unspecified" in regions

    def test_no_orders(self):
        report = cod_report([])

        assert report["success_rate"] == 0
        assert report["regional_performance"] == []


class TestAbandonedCarts:
    """Tests for abandoned_cart_report"""

    def test_expired_cart_without_order_is_abandoned(self):
        carts = [_cart("cart-1", expires_in_hours=-1)]

        report = abandoned_cart_report(carts, set(), now=NOW)

        assert report["abandoned_carts"] == 1
        assert report["converted_carts"] == 0

    def test_expired_cart_with_order_is_converted(self):
        carts = [_cart("cart-1", expires_in_hours=-1)]

        report = abandoned_cart_report(carts, {"cart-1"}, now=NOW)

        assert report["abandoned_carts"] == 0
        assert report["converted_carts"] == 1
        assert report["active_carts"] == 0

    def test_live_cart_is_active(self):
        report = abandoned_cart_report([_cart("cart-1", expires_in_hours=5)], set(), now=NOW)

        assert report["active_carts"] == 1
        assert report["abandonment_rate"] == 0

    def test_products_and_unreadable_payloads(self):
        items = json.dumps([
            {"productName": "Runner", "category": "Shoes", "price": 100, "quantity": 2},
            {"productName": "Sock", "price": 5, "quantity": 1},
        ])
        carts = [
            _cart("cart-1", -1, items_raw=items, total=205.0),
            _cart("cart-2", -2, items_raw="{broken", total=40.0),
        ]

        report = abandoned_cart_report(carts, set(), now=NOW)

        assert report["abandoned_carts"] == 2
        assert report["unparseable_carts"] == 1
        assert report["total_cart_value"] == 245
        assert report["avg_cart_value"] == 122.5
        top = report["top_abandoned_products"]
        assert top[0] == {"product_name": "Runner", "category": "Shoes", "abandoned_count": 2, "lost_revenue": 200.0}
        assert top[1]["category"] == "uncategorized"
        assert [c["items_count"] for c in report["recent_abandoned_carts"]] == [2, 0]


class TestReturnsReport:
    """Tests for returns_report"""

    def test_summary_and_region_cascade(self):
        runner = OrderItemRecord(id="i1", order_id="o1", product_name="Runner", price=100.0, quantity=1)
        returned = [
            _order("o1", "RETURNED", 100.0, governorate="Giza", items=(runner,)),
            _order("o2", "REFUNDED", 60.0, customer=CustomerRecord(id="c", name="C", city="Tanta")),
        ]

        report = returns_report(returned, total_orders=8)

        assert report["summary"]["return_rate"] == 25.0
        assert report["summary"]["total_lost_revenue"] == 160
        assert report["summary"]["avg_return_value"] == 80
        assert {r["name"] for r in report["returns_by_region"]} == {"Giza", "Tanta"}
        assert report["top_returned_products"][0]["name"] == "Runner"

    def test_no_orders_at_all(self):
        assert returns_report([], 0)["summary"]["return_rate"] == 0


class TestDeliveryReport:
    """Tests for delivery_report"""

    def test_delivery_and_failure_rates(self):
        orders = [
            _order("o1", "DELIVERED", city="Cairo"),
            _order("o2", "DELIVERED", city="Cairo"),
            _order("o3", "CANCELLED"),
            _order("o4", "SHIPPED"),
        ]

        report = delivery_report(orders)

        assert report["summary"]["delivery_rate"] == 50.0
        assert report["summary"]["failure_rate"] == 25.0
        assert report["summary"]["pending_orders"] == 1
        assert report["region_performance"][0] == {
            "name": "Cairo", "total": 2, "delivered": 2, "cancelled": 0, "returned": 0, "delivery_rate": 100.0,
        }


class TestStatusTime:
    """Tests for status_time_report"""

    def test_average_transition_hours(self):
        created = NOW - timedelta(days=5)
        order = _order(
            "o1", "DELIVERED", created_at=created,
            history=(
                StatusChange("PENDING", created),
                StatusChange("CONFIRMED", created + timedelta(hours=2)),
                StatusChange("SHIPPED", created + timedelta(hours=26)),
                StatusChange("DELIVERED", created + timedelta(hours=74)),
            ),
        )

        avg = status_time_report([order])["avg_times"]

        assert avg == {
            "pending_to_confirmed": 2.0,
            "confirmed_to_shipped": 24.0,
            "shipped_to_delivered": 48.0,
            "total_processing": 74.0,
        }

    def test_outliers_and_missing_transitions_are_ignored(self):
        created = NOW - timedelta(days=60)
        order = _order(
            "o1", "DELIVERED", created_at=created,
            history=(StatusChange("DELIVERED", created + timedelta(hours=800)),),
        )

        report = status_time_report([order])

        assert report["sample_sizes"]["total_processing"] == 0
        assert report["avg_times"]["total_processing"] == 0

    def test_status_distribution(self):
        orders = [_order("o1", "DELIVERED"), _order("o2", "DELIVERED"), _order("o3", "CANCELLED")]

        dist = status_time_report(orders)["status_distribution"]

        assert dist[0] == {"status": "DELIVERED", "count": 2, "percentage": 66.67}


class TestPaymentMethodsAndRegions:
    """Tests for payment method and region breakdowns"""

    def test_missing_method_is_unspecified(self):
        orders = [
            _order("o1", "DELIVERED", 100.0, payment_method="COD"),
            _order("o2", "CANCELLED", 50.0, payment_method="COD"),
            _order("o3", "DELIVERED", 30.0),
        ]

        methods = {m["name"]: m for m in payment_methods_report(orders)["methods"]}

        assert methods["COD"]["count"] == 2
        assert methods["COD"]["success_rate"] == 50.0
        assert methods["unspecified"]["revenue"] == 30

    def test_regions_by_revenue(self):
        orders = [
            _order("o1", "DELIVERED", 100.0, governorate="Giza", customer_id="c1"),
            _order("o2", "DELIVERED", 300.0, city="Cairo", customer_id="c1"),
            _order("o3", "DELIVERED", 100.0, city="Cairo", customer_id="c2"),
        ]

        report = regions_report(orders)

        assert [r["region"] for r in report["regions"]] == ["Cairo", "Giza"]
        assert report["regions"][0]["customers_count"] == 2
        assert report["regions"][0]["percentage"] == 80.0


class TestTeamAndCoupons:
    """Tests for team and coupon reports"""

    def test_team_counts_created_and_confirmed(self):
        users = [UserRecord(id="u1", name="Sara"), UserRecord(id="u2", name="Idle")]
        orders = [
            _order("o1", "DELIVERED", 200.0, created_by="u1", confirmed_by="u1"),
            _order("o2", "CANCELLED", 50.0, created_by="u1"),
            _order("o3", "DELIVERED", 90.0, created_by="ghost"),
        ]

        report = team_report(users, orders)

        assert report["total_team_members"] == 1
        sara = report["team_members"][0]
        assert (sara["orders_created"], sara["orders_confirmed"]) == (2, 1)
        assert sara["total_revenue"] == 200
        assert sara["success_rate"] == 50.0
        assert report["total_orders_processed"] == 3

    def test_coupon_discount_is_value_times_uses(self):
        coupons = [
            CouponRecord(id="c1", code="SAVE10", type="PERCENTAGE", value=10.0, uses=3),
            CouponRecord(id="c2", code="IDLE", type="FIXED", value=25.0, is_active=False),
        ]

        report = coupons_report(coupons)

        assert report["coupons"][0]["code"] == "SAVE10"
        assert report["coupons"][0]["total_discount"] == 30
        assert report["active_coupons"] == 1
        assert report["avg_discount_per_order"] == 10


class TestVariations:
    """Tests for variations_report"""

    def test_lines_without_variant_are_skipped(self):
        items = (
            OrderItemRecord(id="i1", order_id="o1", product_name="Runner", price=100.0, quantity=2,
                            color="red", size="42"),
            OrderItemRecord(id="i2", order_id="o1", product_name="Runner", price=100.0, quantity=1, color="red"),
            OrderItemRecord(id="i3", order_id="o1", product_name="Plain", price=10.0, quantity=1),
        )

        report = variations_report([_order("o1", "DELIVERED", items=items)])

        assert [v["variation"] for v in report["variations"]] == ["red - 42", "red"]
        assert report["total_quantity"] == 3


class TestStockForecast:
    """Tests for stock forecasting"""

    def test_product_without_sales_is_safe(self):
        forecast = forecast_product(ProductRecord(id="p1", name="Runner", price=10.0, stock=5), 0)

        assert forecast["daily_avg_sales"] == 0
        assert forecast["days_until_stockout"] == NO_VELOCITY_DAYS
        assert forecast["urgency"] == "safe"
        assert forecast["suggested_reorder"] == 0

    def test_days_until_stockout(self):
        forecast = forecast_product(ProductRecord(id="p1", name="Runner", price=10.0, stock=10), 60)

        assert forecast["daily_avg_sales"] == 2
        assert forecast["days_until_stockout"] == 5
        assert forecast["urgency"] == "critical"
        assert forecast["suggested_reorder"] == 60

    @pytest.mark.parametrize(
        "days,urgency",
        [(0, Urgency.CRITICAL), (7, Urgency.CRITICAL), (14, Urgency.WARNING), (30, Urgency.MODERATE), (31, Urgency.SAFE)],
    )
    def test_urgency_bands(self, days, urgency):
        assert urgency_for(days) == urgency

    def test_report_lists(self):
        products = [
            ProductRecord(id="p1", name="Runner", price=10.0, stock=5),
            ProductRecord(id="p2", name="Boot", price=10.0, stock=100),
            ProductRecord(id="p3", name="Sandal", price=10.0, stock=0),
            ProductRecord(id="p4", name="Gone", price=10.0, stock=0),
        ]
        items = [
            OrderItemRecord(id="i1", order_id="o1", product_name="Runner", price=10.0, quantity=30, product_id="p1"),
            OrderItemRecord(id="i2", order_id="o2", product_name="Boot", price=10.0, quantity=3, product_id="p2"),
            OrderItemRecord(id="i3", order_id="o3", product_name="Sandal", price=10.0, quantity=6, product_id="p3"),
        ]

        report = stock_forecast_report(products, items)

        assert [f["id"] for f in report["forecasts"]] == ["p3", "p1", "p2"]
        assert [f["id"] for f in report["low_stock_products"]] == ["p1"]
        assert [f["id"] for f in report["overstocked_products"]] == ["p2"]
        assert report["total_out_of_stock"] == 1
        assert report["summary"]["critical_count"] == 2
