# autoadd/conditions.py
"""
Condition evaluator.

- evaluate(condition, cart, collection_index) -> bool
- explain(condition, cart, collection_index) -> ConditionResult(matched, reason)

Pure functions: nothing here mutates the cart or the index, and nothing
raises for a well-formed snapshot. An unknown condition kind never matches.
"""

from typing import Callable, Dict, Iterable, Mapping, NamedTuple, Optional, Type

from autoadd.cart import CartSnapshot
from autoadd.logging import get_logger
from autoadd.rules import (
    CartQuantityAtLeast,
    CartQuantityInRange,
    CartTotalAtLeast,
    Condition,
    IncludesAnyCollections,
    IncludesAnyProducts,
    IncludesAnyVariants,
    ProductQuantityInRange,
    UnknownCondition,
)

logger = get_logger(__name__)

IndexLike = Mapping[str, Iterable[str]]


class ConditionResult(NamedTuple):
    matched: bool
    reason: str = ""


_PASS = ConditionResult(True)


def _range_text(cond) -> str:
    return f"[{cond.min}, {'inf' if cond.max is None else cond.max}]"


def _cart_quantity_at_least(cond: CartQuantityAtLeast, cart: CartSnapshot, index: IndexLike) -> ConditionResult:
    quantity = cart.total_quantity
    if quantity < cond.threshold:
        return ConditionResult(False, f"cart quantity {quantity} < {cond.threshold}")
    return _PASS


def _cart_quantity_in_range(cond: CartQuantityInRange, cart: CartSnapshot, index: IndexLike) -> ConditionResult:
    quantity = cart.total_quantity
    if not cond.contains(quantity):
        return ConditionResult(False, f"cart quantity {quantity} outside {_range_text(cond)}")
    return _PASS


def _cart_total_at_least(cond: CartTotalAtLeast, cart: CartSnapshot, index: IndexLike) -> ConditionResult:
    if cond.currency_code is not None and cond.currency_code != cart.currency:
        return ConditionResult(False, f"currency mismatch {cart.currency} vs {cond.currency_code}")
    total = cart.total_amount
    if total < cond.amount:
        return ConditionResult(False, f"cart total {total} < {cond.amount}")
    return _PASS


def _includes_any_variants(cond: IncludesAnyVariants, cart: CartSnapshot, index: IndexLike) -> ConditionResult:
    if any(line.variant_id in cond.variant_ids for line in cart.lines):
        return _PASS
    return ConditionResult(False, "none of the variants are in the cart")


def _includes_any_products(cond: IncludesAnyProducts, cart: CartSnapshot, index: IndexLike) -> ConditionResult:
    if any(line.product_id in cond.product_ids for line in cart.lines):
        return _PASS
    return ConditionResult(False, "none of the products are in the cart")


def _includes_any_collections(cond: IncludesAnyCollections, cart: CartSnapshot, index: IndexLike) -> ConditionResult:
    for line in cart.lines:
        collections = index.get(line.product_id) or ()
        if not cond.collection_ids.isdisjoint(collections):
            return _PASS
    return ConditionResult(False, "no cart product belongs to the collections")


def _product_quantity_in_range(cond: ProductQuantityInRange, cart: CartSnapshot, index: IndexLike) -> ConditionResult:
    # gift lines never count toward their own trigger
    quantity = cart.product_quantity(cond.product_id, include_engine_managed=False)
    if not cond.contains(quantity):
        return ConditionResult(False, f"product {cond.product_id} quantity {quantity} outside {_range_text(cond)}")
    return _PASS


_EVALUATORS: Dict[Type, Callable[..., ConditionResult]] = {
    CartQuantityAtLeast: _cart_quantity_at_least,
    CartQuantityInRange: _cart_quantity_in_range,
    CartTotalAtLeast: _cart_total_at_least,
    IncludesAnyVariants: _includes_any_variants,
    IncludesAnyProducts: _includes_any_products,
    IncludesAnyCollections: _includes_any_collections,
    ProductQuantityInRange: _product_quantity_in_range,
}


def explain(condition: Condition, cart: CartSnapshot, collection_index: Optional[IndexLike] = None) -> ConditionResult:
    """Evaluate one condition and say why it failed."""
    evaluator = _EVALUATORS.get(type(condition))
    if evaluator is None:
        kind = condition.type if isinstance(condition, UnknownCondition) else type(condition).__name__
        logger.warning("unknown_condition_type", condition_type=kind)
        return ConditionResult(False, f"unknown condition type {kind}")
    return evaluator(condition, cart, collection_index if collection_index is not None else {})


def evaluate(condition: Condition, cart: CartSnapshot, collection_index: Optional[IndexLike] = None) -> bool:
    return explain(condition, cart, collection_index).matched
