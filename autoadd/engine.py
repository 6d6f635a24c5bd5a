# autoadd/engine.py
"""
Evaluation cycle.

- evaluate_cycle(rules, cart, collection_index) -> intents
  The single, pure entry point used both at checkout-transform time and by
  the storefront poller.
- CycleGuard: per-cart state a storefront caller holds between polls
  (busy flag + fingerprint of the last evaluated snapshot).
- run_cycle(guard, ...) -> CycleOutcome
  One poll: fetch, skip if busy or unchanged, evaluate, apply.
"""

import threading
from typing import List, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from autoadd.cart import CartSnapshot
from autoadd.conditions import IndexLike
from autoadd.errors import MutationApplyError
from autoadd.logging import get_logger
from autoadd.matcher import resolve
from autoadd.providers import CartProvider, CollectionIndexProvider, MutationApplier, RuleSetProvider
from autoadd.reconciler import MutationIntent, reconcile
from autoadd.rules import Rule

logger = get_logger(__name__)

# CycleOutcome.status values
BUSY = "busy"
NO_CART = "no_cart"
UNCHANGED = "unchanged"
CONVERGED = "converged"
APPLIED = "applied"


def evaluate_cycle(
    rules: Sequence[Rule], cart: CartSnapshot, collection_index: Optional[IndexLike] = None
) -> List[MutationIntent]:
    """Intents that bring `cart` in line with `rules`. No I/O, no state."""
    return reconcile(resolve(rules, cart, collection_index), cart)


class CycleGuard:
    """
    Serialises cycles for one cart session.

    Only one evaluate-and-apply sequence may be in flight per cart:
    concurrent application would race and double-add or double-remove
    lines. The guard also remembers the last evaluated snapshot so an
    unchanged cart is not re-evaluated on every poll.

    The unchanged check runs before rules and the collection index are
    loaded, so an edited rule set or index only takes effect once the cart
    changes. Call invalidate() after publishing new rules to re-evaluate
    on the next poll.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.last_fingerprint: Optional[str] = None

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        self._lock.release()

    def __enter__(self) -> "CycleGuard":
        self._lock.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def is_unchanged(self, cart: CartSnapshot) -> bool:
        return self.last_fingerprint is not None and cart.fingerprint() == self.last_fingerprint

    def remember(self, cart: CartSnapshot) -> None:
        self.last_fingerprint = cart.fingerprint()

    def invalidate(self) -> None:
        """Force the next cycle to evaluate, e.g. after a cart-mutating event."""
        self.last_fingerprint = None


class CycleOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str
    intents: List[MutationIntent] = []


def run_cycle(
    guard: CycleGuard,
    rule_provider: RuleSetProvider,
    index_provider: CollectionIndexProvider,
    cart_provider: CartProvider,
    applier: MutationApplier,
) -> CycleOutcome:
    """
    Run one storefront-style cycle under `guard`.

    A failed application is re-raised as MutationApplyError once the guard
    is released; nothing is retried here, the next cycle sees whatever was
    partially applied and converges from there.
    """
    if not guard.try_acquire():
        logger.info("cycle_skipped", reason=BUSY)
        return CycleOutcome(status=BUSY)
    try:
        cart = cart_provider.get_cart()
        if cart is None:
            logger.info("cycle_skipped", reason=NO_CART)
            return CycleOutcome(status=NO_CART)
        if guard.is_unchanged(cart):
            logger.debug("cycle_skipped", reason=UNCHANGED)
            return CycleOutcome(status=UNCHANGED)

        intents = evaluate_cycle(rule_provider.get_rules(), cart, index_provider.get_index())
        # only an evaluated cart counts as seen; a provider failure retries next poll
        guard.remember(cart)

        if not intents:
            logger.debug("cycle_converged", lines=len(cart.lines))
            return CycleOutcome(status=CONVERGED)

        try:
            applier.apply(intents)
        except MutationApplyError as exc:
            logger.error("cycle_apply_failed", code=exc.code, message=exc.message, **exc.details)
            raise
        finally:
            # the cart changed (fully or partly): re-evaluate on the next poll
            guard.invalidate()

        logger.info("cycle_applied", intents=[intent.kind for intent in intents])
        return CycleOutcome(status=APPLIED, intents=intents)
    finally:
        guard.release()
