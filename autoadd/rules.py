# autoadd/rules.py
"""
Rule model: typed auto-add rules, their conditions and actions.

Rules arrive as the JSON document merchants build in the admin, e.g.

    {
      "id": "free-tote",
      "active": true,
      "group": "tier",
      "conditions": [{"type": "cart_total_at_least", "amount": 50}],
      "action": {"addVariantId": "gid://shopify/ProductVariant/1", "quantity": 1}
    }

- parse_condition(raw) / parse_rule(raw) -> model, raise RuleParseError on bad input
- parse_rules(raw) -> list of valid rules; malformed entries are dropped and logged
"""

import json
from decimal import Decimal
from typing import Annotated, Any, Dict, FrozenSet, Iterable, List, Literal, Mapping, Optional, Set, Tuple, Type, Union

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, ValidationError, field_serializer, field_validator, model_validator
from pydantic.alias_generators import to_camel

from autoadd.errors import RuleParseError
from autoadd.logging import get_logger

logger = get_logger(__name__)

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class _RuleDocument(BaseModel):
    """Frozen model reading and writing the camelCase JSON shape."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class _Range(_RuleDocument):
    min: int = Field(ge=0)
    max: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def check_bounds(self):
        if self.max is not None and self.max < self.min:
            raise ValueError(f"max ({self.max}) must be >= min ({self.min})")
        return self

    def contains(self, value: int) -> bool:
        """Inclusive on both ends; no max means unbounded above."""
        if value < self.min:
            return False
        return self.max is None or value <= self.max


def _sorted_ids(ids: FrozenSet[str]) -> List[str]:
    return sorted(ids)


# ---------------------------
# Conditions
# ---------------------------

class CartQuantityAtLeast(_RuleDocument):
    type: Literal["cart_quantity_at_least"] = "cart_quantity_at_least"
    threshold: int = Field(ge=0)


class CartQuantityInRange(_Range):
    type: Literal["cart_quantity_in_range"] = "cart_quantity_in_range"


class CartTotalAtLeast(_RuleDocument):
    type: Literal["cart_total_at_least"] = "cart_total_at_least"
    amount: Decimal = Field(ge=0, allow_inf_nan=False)
    currency_code: Optional[str] = None

    @field_validator("currency_code", mode="before")
    @classmethod
    def blank_currency(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_serializer("amount")
    def amount_as_number(self, amount: Decimal):
        return int(amount) if amount == amount.to_integral_value() else float(amount)


class IncludesAnyVariants(_RuleDocument):
    type: Literal["includes_any_variants"] = "includes_any_variants"
    variant_ids: FrozenSet[NonEmptyStr] = Field(min_length=1)

    @field_serializer("variant_ids")
    def dump_ids(self, ids: FrozenSet[str]) -> List[str]:
        return _sorted_ids(ids)


class IncludesAnyProducts(_RuleDocument):
    type: Literal["includes_any_products"] = "includes_any_products"
    product_ids: FrozenSet[NonEmptyStr] = Field(min_length=1)

    @field_serializer("product_ids")
    def dump_ids(self, ids: FrozenSet[str]) -> List[str]:
        return _sorted_ids(ids)


class IncludesAnyCollections(_RuleDocument):
    type: Literal["includes_any_collections"] = "includes_any_collections"
    collection_ids: FrozenSet[NonEmptyStr] = Field(min_length=1)

    @field_serializer("collection_ids")
    def dump_ids(self, ids: FrozenSet[str]) -> List[str]:
        return _sorted_ids(ids)


class ProductQuantityInRange(_Range):
    type: Literal["product_quantity_in_range"] = "product_quantity_in_range"
    product_id: NonEmptyStr


class UnknownCondition(_RuleDocument):
    """A condition kind this engine does not know. It never matches."""

    type: str
    raw: Dict[str, Any] = Field(default_factory=dict)


Condition = Union[
    CartQuantityAtLeast,
    CartQuantityInRange,
    CartTotalAtLeast,
    IncludesAnyVariants,
    IncludesAnyProducts,
    IncludesAnyCollections,
    ProductQuantityInRange,
    UnknownCondition,
]

CONDITION_TYPES: Dict[str, Type[_RuleDocument]] = {
    "cart_quantity_at_least": CartQuantityAtLeast,
    "cart_quantity_in_range": CartQuantityInRange,
    "cart_total_at_least": CartTotalAtLeast,
    "includes_any_variants": IncludesAnyVariants,
    "includes_any_products": IncludesAnyProducts,
    "includes_any_collections": IncludesAnyCollections,
    "product_quantity_in_range": ProductQuantityInRange,
}

# Older storefront documents used {"type": "cart_total_gte", "value": N}
LEGACY_CART_TOTAL = "cart_total_gte"


def _validation_details(exc: ValidationError) -> Dict[str, Any]:
    return {
        "errors": [
            {"loc": ".".join(str(p) for p in err.get("loc", ())), "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
    }


def parse_condition(raw: Any) -> Condition:
    """
    Parse one condition dict.

    Unknown `type` values become UnknownCondition (kept, never matching);
    a known type with invalid fields raises RuleParseError.
    """
    if isinstance(raw, BaseModel):
        return raw
    if not isinstance(raw, Mapping):
        raise RuleParseError("Condition must be an object", {"value": repr(raw)})

    kind = raw.get("type")
    if not isinstance(kind, str) or not kind:
        raise RuleParseError("Condition is missing its type", {"condition": dict(raw)})

    if kind == LEGACY_CART_TOTAL:
        raw = {"type": "cart_total_at_least", "amount": raw.get("value"), "currencyCode": raw.get("currencyCode")}
        kind = "cart_total_at_least"

    model = CONDITION_TYPES.get(kind)
    if model is None:
        return UnknownCondition(type=kind, raw=dict(raw))
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        details = _validation_details(exc)
        details["type"] = kind
        raise RuleParseError(f"Invalid {kind} condition", details) from exc


# ---------------------------
# Rule + action
# ---------------------------

class RuleAction(_RuleDocument):
    add_variant_id: NonEmptyStr
    quantity: int = Field(default=1, ge=1)
    title_override: Optional[str] = None

    @field_validator("quantity", mode="before")
    @classmethod
    def default_quantity(cls, value):
        return 1 if value is None else value


class Rule(_RuleDocument):
    id: NonEmptyStr
    active: bool = False
    group: Optional[str] = None
    conditions: Tuple[Condition, ...] = ()
    action: RuleAction

    @field_validator("group", mode="before")
    @classmethod
    def blank_group(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("conditions", mode="before")
    @classmethod
    def parse_conditions(cls, value):
        if value is None:
            return ()
        if not isinstance(value, (list, tuple)):
            raise ValueError("conditions must be a list")
        parsed = []
        for raw in value:
            try:
                parsed.append(parse_condition(raw))
            except RuleParseError as exc:
                raise ValueError(f"{exc.message}: {exc.details}") from exc
        return tuple(parsed)


def parse_rule(raw: Any) -> Rule:
    """Parse a single rule dict, raising RuleParseError when it is malformed."""
    if isinstance(raw, Rule):
        return raw
    if not isinstance(raw, Mapping):
        raise RuleParseError("Rule must be an object", {"value": repr(raw)})
    try:
        return Rule.model_validate(raw)
    except ValidationError as exc:
        details = _validation_details(exc)
        details["rule_id"] = raw.get("id")
        raise RuleParseError("Invalid rule", details) from exc


def parse_rules(raw: Any) -> List[Rule]:
    """
    Parse a rule-set document (JSON text, bytes or decoded list).

    Never raises: an unparseable document gives an empty list, a malformed
    entry is dropped and the remaining rules keep their order. The
    {"rules": [...]} envelope served to the storefront is accepted too.
    """
    if raw is None:
        return []
    if isinstance(raw, (str, bytes, bytearray)):
        if not raw.strip():
            return []
        try:
            raw = json.loads(raw)
        except ValueError as exc:
            logger.warning("rules_document_unparseable", error=str(exc))
            return []

    if isinstance(raw, Mapping) and "rules" in raw:
        raw = raw["rules"]
    if not isinstance(raw, (list, tuple)):
        logger.warning("rules_document_not_a_list", document_type=type(raw).__name__)
        return []

    rules: List[Rule] = []
    for position, entry in enumerate(raw):
        if not entry:
            logger.warning("rule_dropped", position=position, reason="empty entry")
            continue
        try:
            rules.append(parse_rule(entry))
        except RuleParseError as exc:
            logger.warning(
                "rule_dropped",
                position=position,
                rule_id=entry.get("id") if isinstance(entry, Mapping) else None,
                reason=exc.message,
                details=exc.details,
            )
    return rules


def active_rules(rules: Iterable[Rule]) -> List[Rule]:
    """Rules that can fire, in their original order."""
    return [rule for rule in rules if rule.active]


def referenced_collection_ids(rules: Iterable[Rule]) -> Set[str]:
    """Every collection id a collection condition refers to; what the index must cover."""
    ids: Set[str] = set()
    for rule in rules:
        for cond in rule.conditions:
            if isinstance(cond, IncludesAnyCollections):
                ids.update(cond.collection_ids)
    return ids


def condition_to_json(condition: Condition) -> Dict[str, Any]:
    if isinstance(condition, UnknownCondition):
        return dict(condition.raw) or {"type": condition.type}
    return condition.model_dump(mode="json", by_alias=True, exclude_none=True)


def rule_to_json(rule: Rule) -> Dict[str, Any]:
    """Dump a rule back to the stored document shape."""
    doc: Dict[str, Any] = {
        "id": rule.id,
        "active": rule.active,
        "conditions": [condition_to_json(c) for c in rule.conditions],
        "action": rule.action.model_dump(mode="json", by_alias=True, exclude_none=True),
    }
    if rule.group:
        doc["group"] = rule.group
    return doc


def rules_to_json(rules: Iterable[Rule]) -> List[Dict[str, Any]]:
    return [rule_to_json(rule) for rule in rules]
