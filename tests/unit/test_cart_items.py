"""
Unit Tests - Guest Cart Item Payloads
"""
import json

from src.analytics.cart_items import parse_cart_items


class TestParseCartItems:
    """Tests for parse_cart_items"""

    def test_legacy_bare_list(self):
        raw = json.dumps([
            {"productName": "Runner", "category": "Shoes", "price": 100, "quantity": 2},
            {"productName": "Sock", "price": 5.5, "quantity": 4},
        ])

        result = parse_cart_items(raw)

        assert result.ok
        assert [i.display_name for i in result.items] == ["Runner", "Sock"]
        assert result.items[0].line_total == 200
        assert result.items[1].category is None

    def test_versioned_layout(self):
        raw = json.dumps({"version": 1, "items": [{"product_name": "Boot", "price": 200, "quantity": 1}]})

        result = parse_cart_items(raw)

        assert result.ok
        assert result.items[0].product_name == "Boot"

    def test_missing_name_reads_as_unknown(self):
        result = parse_cart_items(json.dumps([{"price": 10, "quantity": 1}]))

        assert result.items[0].display_name == "unknown"

    def test_empty_payload(self):
        for raw in (None, "", "   "):
            result = parse_cart_items(raw)
            assert result.ok
            assert result.items == []

    def test_invalid_json_is_reported_not_raised(self):
        result = parse_cart_items("not json")

        assert not result.ok
        assert result.items == []
        assert "JSONDecodeError" in result.error

    def test_wrong_shape_is_reported(self):
        result = parse_cart_items(json.dumps([{"price": "free", "quantity": 1}]))

        assert not result.ok

    def test_unknown_version_is_reported(self):
        result = parse_cart_items(json.dumps({"version": 2, "items": []}))

        assert not result.ok
        assert "version" in result.error

