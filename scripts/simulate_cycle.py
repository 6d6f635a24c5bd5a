# scripts/simulate_cycle.py
"""
Run the auto-add engine against JSON documents on disk.

    python scripts/simulate_cycle.py --rules data/sample_rules.json --cart data/sample_cart.json \
        --index data/sample_collection_index.json [--apply --catalog data/sample_catalog.json]

Prints the per-rule trace and the intents of one cycle. With --apply the
intents are applied to an in-memory copy of the cart and cycles are repeated
until nothing is left to do.
"""
import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from autoadd.cart import from_storefront_cart
from autoadd.config import get_settings
from autoadd.engine import APPLIED, CycleGuard, run_cycle
from autoadd.logging import configure_logging
from autoadd.matcher import explain_resolution
from autoadd.providers import (
    InMemoryCart,
    JsonFileCollectionIndexProvider,
    JsonFileRuleSetProvider,
)
from autoadd.reconciler import intent_to_dict

MAX_CYCLES = 10


def parse_args(argv=None):
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Simulate an auto-add evaluation cycle.")
    parser.add_argument("--rules", default=settings.rules_path or str(ROOT / "data" / "sample_rules.json"))
    parser.add_argument("--cart", default=str(ROOT / "data" / "sample_cart.json"), help="storefront /cart.js JSON")
    parser.add_argument("--index", default=settings.collection_index_path or str(ROOT / "data" / "sample_collection_index.json"))
    parser.add_argument("--catalog", default=str(ROOT / "data" / "sample_catalog.json"), help="variant -> [product, price]")
    parser.add_argument("--apply", action="store_true", help="apply intents in memory until the cart converges")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)
    args = parse_args(argv)

    rule_provider = JsonFileRuleSetProvider(args.rules)
    index_provider = JsonFileCollectionIndexProvider(args.index)
    with open(args.cart, "r", encoding="utf8") as fh:
        snapshot = from_storefront_cart(json.load(fh), settings)

    rules = rule_provider.get_rules()
    index = index_provider.get_index()
    print("Rules loaded:", len(rules))
    for evaluation in explain_resolution(rules, snapshot, index):
        flag = "MATCH" if evaluation.matched else "skip "
        print(f"  [{flag}] {evaluation.rule_id}: {evaluation.reason} - {evaluation.explanation}")

    catalog = {}
    if Path(args.catalog).exists():
        with open(args.catalog, "r", encoding="utf8") as fh:
            catalog = {variant: tuple(entry) for variant, entry in json.load(fh).items()}
    cart = InMemoryCart(snapshot, catalog)
    guard = CycleGuard()

    for cycle in range(1, MAX_CYCLES + 1):
        outcome = run_cycle(guard, rule_provider, index_provider, cart, cart if args.apply else _DryRun())
        print(f"Cycle {cycle}: {outcome.status}")
        print(json.dumps([intent_to_dict(i) for i in outcome.intents], indent=2))
        if outcome.status != APPLIED or not args.apply:
            return 0
    print("Cart did not converge after", MAX_CYCLES, "cycles")
    return 1


class _DryRun:
    def apply(self, intents):
        pass


if __name__ == "__main__":
    sys.exit(main())
