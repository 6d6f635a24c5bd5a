# autoadd/cart.py
"""
Cart snapshot model: a read-only, point-in-time view of a cart.

The engine only ever sees CartSnapshot. Where the cart came from (the
storefront /cart.js payload, the checkout cart-transform input, a test
fixture) is handled by the adapters at the bottom of this module.
"""

import hashlib
import json
from decimal import Decimal, InvalidOperation
from typing import Any, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from autoadd.config import EngineSettings, get_settings


class CartLine(BaseModel):
    """One cart line. `amount` is the line total in the cart currency."""

    model_config = ConfigDict(frozen=True)

    line_id: str
    variant_id: str
    product_id: str
    quantity: int = Field(ge=1)
    is_engine_managed: bool = False
    amount: Decimal = Decimal("0")


class CartSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    lines: Tuple[CartLine, ...] = ()
    currency: Optional[str] = None
    token: Optional[str] = None

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def total_amount(self) -> Decimal:
        return sum((line.amount for line in self.lines), Decimal("0"))

    def engine_managed_lines(self) -> List[CartLine]:
        return [line for line in self.lines if line.is_engine_managed]

    def manual_lines(self) -> List[CartLine]:
        return [line for line in self.lines if not line.is_engine_managed]

    def lines_for_variant(self, variant_id: str) -> List[CartLine]:
        return [line for line in self.lines if line.variant_id == variant_id]

    def product_quantity(self, product_id: str, include_engine_managed: bool = False) -> int:
        """Units of `product_id` in the cart; gift lines are left out unless asked for."""
        target = product_id.strip()
        return sum(
            line.quantity
            for line in self.lines
            if line.product_id.strip() == target and (include_engine_managed or not line.is_engine_managed)
        )

    def fingerprint(self) -> str:
        """
        Content hash of everything the engine reads.

        Used by callers to skip a cycle when the cart has not changed. The
        storefront token is deliberately left out: it stays the same while
        the cart contents change.
        """
        doc = {
            "currency": self.currency,
            "lines": [
                [l.line_id, l.variant_id, l.product_id, l.quantity, l.is_engine_managed, str(l.amount)]
                for l in self.lines
            ],
        }
        encoded = json.dumps(doc, sort_keys=True, separators=(",", ":")).encode("utf8")
        return hashlib.sha256(encoded).hexdigest()


# ---------------------------
# GID helpers
# ---------------------------

def numeric_id(gid: Any) -> str:
    """'gid://shopify/ProductVariant/123' -> '123'; plain ids pass through."""
    text = str(gid)
    return text.rsplit("/", 1)[-1] if text.startswith("gid://") else text


def to_gid(prefix: str, value: Any) -> str:
    text = str(value)
    if text.startswith("gid://"):
        return text
    return f"{prefix}{text}"


def _to_decimal(value: Any) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return Decimal("0")
    return amount if amount.is_finite() else Decimal("0")


# ---------------------------
# Adapters
# ---------------------------

def from_storefront_cart(payload: Mapping[str, Any], settings: Optional[EngineSettings] = None) -> CartSnapshot:
    """
    Build a snapshot from the storefront cart JSON (/cart.js).

    Prices there are integers in minor units; a line is engine-managed when
    its properties carry the auto-add marker set to "true".
    """
    settings = settings or get_settings()
    lines: List[CartLine] = []
    for item in payload.get("items") or []:
        quantity = int(item.get("quantity") or 0)
        if quantity < 1:
            continue
        properties = item.get("properties") or {}
        minor = item.get("final_line_price", item.get("line_price", 0))
        lines.append(
            CartLine(
                line_id=str(item.get("key") or item.get("id")),
                variant_id=to_gid(settings.variant_gid_prefix, item.get("variant_id")),
                product_id=to_gid(settings.product_gid_prefix, item.get("product_id")),
                quantity=quantity,
                is_engine_managed=str(properties.get(settings.auto_add_property, "")).lower() == "true",
                amount=_to_decimal(minor) / 100,
            )
        )
    return CartSnapshot(lines=tuple(lines), currency=payload.get("currency"), token=payload.get("token"))


def from_transform_input(payload: Mapping[str, Any], settings: Optional[EngineSettings] = None) -> CartSnapshot:
    """
    Build a snapshot from the checkout cart-transform input.

    Only ProductVariant merchandise with a positive quantity is considered,
    as in from_storefront_cart. The auto-add marker is read from the line's `attribute` (key/value) when the input query selects it.
    """
    settings = settings or get_settings()
    cart = payload.get("cart") or {}
    lines: List[CartLine] = []
    currency: Optional[str] = None
    for raw in cart.get("lines") or []:
        merch = raw.get("merchandise") or {}
        if merch.get("__typename") != "ProductVariant" or not merch.get("id"):
            continue
        quantity = int(raw.get("quantity") or 0)
        if quantity < 1:
            continue
        total = ((raw.get("cost") or {}).get("totalAmount")) or {}
        currency = currency or total.get("currencyCode")
        attribute = raw.get("attribute") or {}
        managed = attribute.get("key") == settings.auto_add_property and str(attribute.get("value", "")).lower() == "true"
        lines.append(
            CartLine(
                line_id=str(raw.get("id")),
                variant_id=merch["id"],
                product_id=((merch.get("product") or {}).get("id")) or "",
                quantity=quantity,
                is_engine_managed=managed,
                amount=_to_decimal(total.get("amount", 0)),
            )
        )
    return CartSnapshot(lines=tuple(lines), currency=currency)

