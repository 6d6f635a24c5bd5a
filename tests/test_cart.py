# tests/test_cart.py
from decimal import Decimal

import pytest
from pydantic import ValidationError

from autoadd.cart import CartSnapshot, from_storefront_cart, from_transform_input, numeric_id, to_gid
from autoadd.config import EngineSettings
from conftest import build_cart, build_line


@pytest.fixture
def settings():
    return EngineSettings()


def test_totals_are_derived_from_lines():
    cart = build_cart(
        build_line("l1", "v1", "p1", quantity=2, amount="19.99"),
        build_line("l2", "v2", "p2", quantity=3, amount="0.01"),
    )
    assert cart.total_quantity == 5
    assert cart.total_amount == Decimal("20.00")


def test_empty_cart_totals_are_zero():
    cart = CartSnapshot()
    assert cart.total_quantity == 0
    assert cart.total_amount == Decimal("0")


def test_product_quantity_skips_engine_managed_lines_by_default():
    cart = build_cart(
        build_line("l1", "v1", "p1", quantity=2),
        build_line("l2", "v1-gift", "p1", quantity=1, managed=True),
        build_line("l3", "v9", "p9", quantity=4),
    )
    assert cart.product_quantity("p1") == 2
    assert cart.product_quantity("p1", include_engine_managed=True) == 3
    assert [l.line_id for l in cart.engine_managed_lines()] == ["l2"]
    assert [l.line_id for l in cart.manual_lines()] == ["l1", "l3"]


def test_snapshot_is_read_only():
    cart = build_cart(build_line("l1", "v1", "p1"))
    with pytest.raises(ValidationError):
        cart.currency = "EUR"
    with pytest.raises(ValidationError):
        build_line("l0", "v", "p", quantity=0)


def test_fingerprint_tracks_content_not_identity():
    a = build_cart(build_line("l1", "v1", "p1", quantity=1))
    b = build_cart(build_line("l1", "v1", "p1", quantity=1))
    c = build_cart(build_line("l1", "v1", "p1", quantity=2))
    assert a.fingerprint() == b.fingerprint()
    assert a.fingerprint() != c.fingerprint()


def test_gid_helpers():
    assert numeric_id("gid://shopify/ProductVariant/42") == "42"
    assert numeric_id(42) == "42"
    assert to_gid("gid://shopify/Product/", 7) == "gid://shopify/Product/7"
    assert to_gid("gid://shopify/Product/", "gid://shopify/Product/7") == "gid://shopify/Product/7"


def test_from_storefront_cart_maps_items_and_marker(settings):
    payload = {
        "token": "tok-1",
        "currency": "CAD",
        "items": [
            {"key": "11:abc", "variant_id": 11, "product_id": 5, "quantity": 2, "final_line_price": 2599, "properties": {}},
            {"key": "12:def", "variant_id": 12, "product_id": 6, "quantity": 1, "line_price": 0,
             "properties": {"_auto_added": "true"}},
            {"key": "13:ghi", "variant_id": 13, "product_id": 7, "quantity": 1, "final_line_price": 500, "properties": None},
        ],
    }
    cart = from_storefront_cart(payload, settings)
    assert cart.token == "tok-1"
    assert cart.currency == "CAD"
    first, gift, third = cart.lines
    assert first.line_id == "11:abc"
    assert first.variant_id == "gid://shopify/ProductVariant/11"
    assert first.product_id == "gid://shopify/Product/5"
    assert first.amount == Decimal("25.99")
    assert gift.is_engine_managed is True
    assert third.is_engine_managed is False
    assert cart.total_amount == Decimal("30.99")


def test_from_storefront_cart_honours_configured_marker(monkeypatch):
    monkeypatch.setenv("AUTOADD_AUTO_ADD_PROPERTY", "_gift")
    settings = EngineSettings()
    payload = {"items": [
        {"key": "1:a", "variant_id": 1, "product_id": 1, "quantity": 1, "properties": {"_gift": "true"}},
        {"key": "2:b", "variant_id": 2, "product_id": 2, "quantity": 1, "properties": {"_auto_added": "true"}},
    ]}
    cart = from_storefront_cart(payload, settings)
    assert [l.is_engine_managed for l in cart.lines] == [True, False]


def test_from_transform_input_reads_variant_lines_only(settings):
    payload = {
        "cart": {
            "lines": [
                {
                    "id": "gid://shopify/CartLine/1",
                    "quantity": 3,
                    "merchandise": {"__typename": "ProductVariant", "id": "gid://shopify/ProductVariant/1",
                                    "product": {"id": "gid://shopify/Product/1"}},
                    "cost": {"totalAmount": {"amount": "45.00", "currencyCode": "USD"}},
                },
                {
                    "id": "gid://shopify/CartLine/2",
                    "quantity": 1,
                    "merchandise": {"__typename": "CustomProduct"},
                    "cost": {"totalAmount": {"amount": "5.00", "currencyCode": "USD"}},
                },
                {
                    "id": "gid://shopify/CartLine/3",
                    "quantity": 1,
                    "merchandise": {"__typename": "ProductVariant", "id": "gid://shopify/ProductVariant/9",
                                    "product": {"id": "gid://shopify/Product/9"}},
                    "cost": {"totalAmount": {"amount": "not-a-number", "currencyCode": "USD"}},
                    "attribute": {"key": "_auto_added", "value": "true"},
                },
            ]
        }
    }
    cart = from_transform_input(payload, settings)
    assert cart.currency == "USD"
    assert [l.line_id for l in cart.lines] == ["gid://shopify/CartLine/1", "gid://shopify/CartLine/3"]
    assert cart.total_amount == Decimal("45.00")
    assert cart.lines[1].is_engine_managed is True


def test_both_adapters_skip_lines_without_quantity(settings):
    storefront = {"currency": "USD", "items": [
        {"key": "1:a", "variant_id": 1, "product_id": 1, "quantity": 2, "final_line_price": 1000},
        {"key": "2:b", "variant_id": 2, "product_id": 2, "quantity": 0, "final_line_price": 0},
        {"key": "3:c", "variant_id": 3, "product_id": 3, "final_line_price": 0},
    ]}
    variant = {"__typename": "ProductVariant", "product": {"id": "gid://shopify/Product/1"}}
    transform = {"cart": {"lines": [
        {"id": "1:a", "quantity": 2, "merchandise": dict(variant, id="gid://shopify/ProductVariant/1"),
         "cost": {"totalAmount": {"amount": "10.00", "currencyCode": "USD"}}},
        {"id": "2:b", "quantity": 0, "merchandise": dict(variant, id="gid://shopify/ProductVariant/2"),
         "cost": {"totalAmount": {"amount": "0", "currencyCode": "USD"}}},
        {"id": "3:c", "merchandise": dict(variant, id="gid://shopify/ProductVariant/3"),
         "cost": {"totalAmount": {"amount": "0", "currencyCode": "USD"}}},
    ]}}

    from_storefront = from_storefront_cart(storefront, settings)
    from_transform = from_transform_input(transform, settings)
    assert [l.line_id for l in from_storefront.lines] == ["1:a"]
    assert [l.line_id for l in from_transform.lines] == ["1:a"]
    assert from_storefront.total_quantity == from_transform.total_quantity == 2
