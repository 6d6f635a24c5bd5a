# autoadd/reconciler.py
"""
Reconciler: diff the should-have gifts against the cart and emit the
mutations that converge it.

Order of the output is part of the contract: removals and quantity fixes
of existing engine-managed lines come first, additions last. Lines the
customer added themselves are never touched, even when they carry a gift
variant with the "wrong" quantity.
"""

from typing import Any, Dict, List, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field

from autoadd.cart import CartSnapshot
from autoadd.logging import get_logger
from autoadd.rules import Rule

logger = get_logger(__name__)


class _Intent(BaseModel):
    model_config = ConfigDict(frozen=True)


class Remove(_Intent):
    kind: Literal["remove"] = "remove"
    line_id: str


class SetQuantity(_Intent):
    kind: Literal["set_quantity"] = "set_quantity"
    line_id: str
    quantity: int = Field(ge=1)


class Add(_Intent):
    kind: Literal["add"] = "add"
    variant_id: str
    quantity: int = Field(default=1, ge=1)


MutationIntent = Union[Remove, SetQuantity, Add]


def intent_to_dict(intent: MutationIntent) -> Dict[str, Any]:
    return intent.model_dump()


def reconcile(should_have: Mapping[str, Rule], cart: CartSnapshot) -> List[MutationIntent]:
    """
    Minimal ordered intents turning `cart` into one holding exactly the
    should-have gifts as engine-managed lines.
    """
    pending: Dict[str, Rule] = dict(should_have)
    handled = set()
    intents: List[MutationIntent] = []

    for line in cart.engine_managed_lines():
        variant_id = line.variant_id
        if variant_id not in pending:
            # either no rule wants it, or a second managed line of a handled gift
            intents.append(Remove(line_id=line.line_id))
            if variant_id in handled:
                logger.info("duplicate_gift_line", variant_id=variant_id, line_id=line.line_id)
            continue
        wanted = pending.pop(variant_id).action.quantity
        handled.add(variant_id)
        if line.quantity != wanted:
            intents.append(SetQuantity(line_id=line.line_id, quantity=wanted))

    manual_variants = {line.variant_id for line in cart.manual_lines()}
    for variant_id, rule in pending.items():
        if variant_id in manual_variants:
            logger.debug("gift_added_manually", variant_id=variant_id, rule_id=rule.id)
            continue
        intents.append(Add(variant_id=variant_id, quantity=rule.action.quantity))

    return intents
