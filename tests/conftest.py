# tests/conftest.py
from decimal import Decimal

import pytest

from autoadd.cart import CartLine, CartSnapshot
from autoadd.rules import parse_rule


def build_rule(rule_id, conditions, variant, quantity=1, group=None, active=True):
    raw = {
        "id": rule_id,
        "active": active,
        "conditions": conditions,
        "action": {"addVariantId": variant, "quantity": quantity},
    }
    if group is not None:
        raw["group"] = group
    return parse_rule(raw)


def build_line(line_id, variant, product, quantity=1, amount="0", managed=False):
    return CartLine(
        line_id=line_id,
        variant_id=variant,
        product_id=product,
        quantity=quantity,
        is_engine_managed=managed,
        amount=Decimal(amount),
    )


def build_cart(*lines, currency="USD"):
    return CartSnapshot(lines=tuple(lines), currency=currency)


@pytest.fixture
def make_rule():
    return build_rule


@pytest.fixture
def make_line():
    return build_line


@pytest.fixture
def make_cart():
    return build_cart


@pytest.fixture
def total_rule():
    """r1: cart total >= 50 adds one gidA."""
    return build_rule("r1", [{"type": "cart_total_at_least", "amount": 50}], "gidA")
