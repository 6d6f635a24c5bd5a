# autoadd/matcher.py
"""
Rule matcher: turns a rule set into the "should-have" gift mapping.

- evaluate_rule(rule, cart, index) -> RuleEvaluation (conditions ANDed, first failure stops)
- resolve(rules, cart, index) -> {variant_id: Rule}
- explain_resolution(rules, cart, index) -> one RuleEvaluation per rule, in order

Group exclusivity is first-match-wins in rule-set order: once a rule in a
group matches, later rules of that group are not evaluated this pass.
"""

from typing import Any, Dict, List, Optional, Sequence, Set

from pydantic import BaseModel, ConfigDict

from autoadd.cart import CartSnapshot
from autoadd.conditions import IndexLike, explain
from autoadd.logging import get_logger
from autoadd.rules import Rule

logger = get_logger(__name__)

# RuleEvaluation.reason values
INACTIVE = "inactive"
NO_CONDITIONS = "no_conditions"
CONDITIONS_NOT_MET = "conditions_not_met"
GROUP_TAKEN = "group_taken"
MATCHED = "matched"


class RuleEvaluation(BaseModel):
    model_config = ConfigDict(frozen=True)

    rule_id: str
    matched: bool
    reason: str
    failed_condition: Optional[Dict[str, Any]] = None
    explanation: str = ""


def evaluate_rule(rule: Rule, cart: CartSnapshot, collection_index: Optional[IndexLike] = None) -> RuleEvaluation:
    """Evaluate a single rule ignoring group exclusivity."""
    if not rule.active:
        return RuleEvaluation(rule_id=rule.id, matched=False, reason=INACTIVE, explanation="Rule is not active.")
    if not rule.conditions:
        return RuleEvaluation(rule_id=rule.id, matched=False, reason=NO_CONDITIONS, explanation="Rule has no conditions.")

    for cond in rule.conditions:
        result = explain(cond, cart, collection_index)
        if not result.matched:
            logger.debug("rule_condition_failed", rule_id=rule.id, condition_type=cond.type, reason=result.reason)
            return RuleEvaluation(
                rule_id=rule.id,
                matched=False,
                reason=CONDITIONS_NOT_MET,
                failed_condition={"type": cond.type},
                explanation=result.reason,
            )
    return RuleEvaluation(rule_id=rule.id, matched=True, reason=MATCHED, explanation="All conditions matched.")


def explain_resolution(
    rules: Sequence[Rule], cart: CartSnapshot, collection_index: Optional[IndexLike] = None
) -> List[RuleEvaluation]:
    """Trace of a resolve() pass: why each rule did or did not contribute."""
    seen_groups: Set[str] = set()
    trace: List[RuleEvaluation] = []
    for rule in rules:
        if rule.active and rule.group and rule.group in seen_groups:
            trace.append(
                RuleEvaluation(
                    rule_id=rule.id,
                    matched=False,
                    reason=GROUP_TAKEN,
                    explanation=f"An earlier rule in group {rule.group!r} already matched.",
                )
            )
            continue
        evaluation = evaluate_rule(rule, cart, collection_index)
        if evaluation.matched and rule.group:
            seen_groups.add(rule.group)
        trace.append(evaluation)
    return trace


def resolve(rules: Sequence[Rule], cart: CartSnapshot, collection_index: Optional[IndexLike] = None) -> Dict[str, Rule]:
    """
    Map each gift variant that should be in the cart to the rule asking for it.

    Rules targeting the same variant outside a group overwrite each other;
    the last matching one wins.
    """
    rules = list(rules)
    should_have: Dict[str, Rule] = {}
    for rule, evaluation in zip(rules, explain_resolution(rules, cart, collection_index)):
        if evaluation.matched:
            should_have[rule.action.add_variant_id] = rule
    logger.debug("rules_resolved", rules=len(rules), gifts=len(should_have))
    return should_have
