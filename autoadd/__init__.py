# autoadd/__init__.py
"""Auto-add cart rule engine."""

from autoadd.cart import CartLine, CartSnapshot
from autoadd.collection_index import CollectionIndex
from autoadd.conditions import evaluate
from autoadd.engine import CycleGuard, CycleOutcome, evaluate_cycle, run_cycle
from autoadd.matcher import resolve
from autoadd.reconciler import Add, MutationIntent, Remove, SetQuantity, reconcile
from autoadd.rules import Rule, RuleAction, parse_rule, parse_rules

__all__ = [
    "Add",
    "CartLine",
    "CartSnapshot",
    "CollectionIndex",
    "CycleGuard",
    "CycleOutcome",
    "MutationIntent",
    "Remove",
    "Rule",
    "RuleAction",
    "SetQuantity",
    "evaluate",
    "evaluate_cycle",
    "parse_rule",
    "parse_rules",
    "reconcile",
    "resolve",
    "run_cycle",
]
