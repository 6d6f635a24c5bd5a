# autoadd/providers.py
"""
Collaborators the engine talks to, and small implementations of them.

The engine consumes rules, a collection index and a cart snapshot, and
produces mutation intents. Anything that fetches those or applies the
intents (HTTP cart API, checkout function, a test double) implements the
protocols below.
"""

from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Protocol, Sequence, Tuple, Union

from autoadd.cart import CartLine, CartSnapshot
from autoadd.collection_index import CollectionIndex
from autoadd.errors import MutationApplyError
from autoadd.logging import get_logger
from autoadd.reconciler import Add, MutationIntent, Remove, SetQuantity
from autoadd.rules import Rule, parse_rules

logger = get_logger(__name__)


class RuleSetProvider(Protocol):
    def get_rules(self) -> List[Rule]:
        ...


class CollectionIndexProvider(Protocol):
    def get_index(self) -> CollectionIndex:
        ...


class CartProvider(Protocol):
    def get_cart(self) -> Optional[CartSnapshot]:
        ...


class MutationApplier(Protocol):
    def apply(self, intents: Sequence[MutationIntent]) -> None:
        """Apply in order; raise MutationApplyError if any intent fails."""
        ...


# ---------------------------
# File-backed providers
# ---------------------------

class JsonFileRuleSetProvider:
    """Reads the rule document from disk on every call (see CycleGuard for when calls happen)."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def get_rules(self) -> List[Rule]:
        if not self.path.exists():
            logger.warning("rules_file_missing", path=str(self.path))
            return []
        return parse_rules(self.path.read_text(encoding="utf8"))


class JsonFileCollectionIndexProvider:
    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def get_index(self) -> CollectionIndex:
        if not self.path.exists():
            logger.warning("collection_index_file_missing", path=str(self.path))
            return CollectionIndex()
        return CollectionIndex.from_json(self.path.read_text(encoding="utf8"))


class StaticRuleSetProvider:
    def __init__(self, rules: Sequence[Rule]):
        self._rules = list(rules)

    def get_rules(self) -> List[Rule]:
        return list(self._rules)


class StaticCollectionIndexProvider:
    def __init__(self, index: Optional[CollectionIndex] = None):
        self._index = index or CollectionIndex()

    def get_index(self) -> CollectionIndex:
        return self._index


class StaticCartProvider:
    def __init__(self, snapshot: Optional[CartSnapshot]):
        self._snapshot = snapshot

    def get_cart(self) -> Optional[CartSnapshot]:
        return self._snapshot


# ---------------------------
# In-memory cart
# ---------------------------

class InMemoryCart:
    """
    A cart held in memory that can be snapshotted and mutated by intents.

    `catalog` maps variant id -> (product id, unit price); it is needed to
    turn an Add intent into a line. Added lines are flagged engine-managed,
    like the storefront's line property does.
    """

    def __init__(
        self,
        snapshot: Optional[CartSnapshot] = None,
        catalog: Optional[Mapping[str, Tuple[str, Union[Decimal, int, str]]]] = None,
    ):
        snapshot = snapshot or CartSnapshot()
        self._lines: List[CartLine] = list(snapshot.lines)
        self.currency = snapshot.currency
        self.catalog: Dict[str, Tuple[str, Decimal]] = {
            variant_id: (product_id, Decimal(str(price))) for variant_id, (product_id, price) in (catalog or {}).items()
        }
        self._next_line = 1

    def get_cart(self) -> CartSnapshot:
        return CartSnapshot(lines=tuple(self._lines), currency=self.currency)

    def add_manual(self, variant_id: str, quantity: int = 1) -> CartLine:
        """Customer-side add, never flagged as engine-managed."""
        return self._append(variant_id, quantity, managed=False)

    def apply(self, intents: Sequence[MutationIntent]) -> None:
        intents = list(intents)
        for position, intent in enumerate(intents):
            try:
                self._apply_one(intent)
            except KeyError as exc:
                raise MutationApplyError(
                    f"Could not apply {intent.kind}: unknown {exc.args[0]}",
                    applied=intents[:position],
                    remaining=intents[position:],
                ) from exc

    def _apply_one(self, intent: MutationIntent) -> None:
        if isinstance(intent, Add):
            self._append(intent.variant_id, intent.quantity, managed=True)
        elif isinstance(intent, Remove):
            self._lines.pop(self._position(intent.line_id))
        elif isinstance(intent, SetQuantity):
            position = self._position(intent.line_id)
            line = self._lines[position]
            unit = line.amount / line.quantity
            self._lines[position] = line.model_copy(update={"quantity": intent.quantity, "amount": unit * intent.quantity})

    def _position(self, line_id: str) -> int:
        for position, line in enumerate(self._lines):
            if line.line_id == line_id:
                return position
        raise KeyError(f"line {line_id}")

    def _new_line_id(self) -> str:
        taken = {line.line_id for line in self._lines}
        while f"line-{self._next_line}" in taken:
            self._next_line += 1
        line_id = f"line-{self._next_line}"
        self._next_line += 1
        return line_id

    def _append(self, variant_id: str, quantity: int, managed: bool) -> CartLine:
        if variant_id not in self.catalog:
            raise KeyError(f"variant {variant_id}")
        product_id, price = self.catalog[variant_id]
        line = CartLine(
            line_id=self._new_line_id(),
            variant_id=variant_id,
            product_id=product_id,
            quantity=quantity,
            is_engine_managed=managed,
            amount=price * quantity,
        )
        self._lines.append(line)
        return line
