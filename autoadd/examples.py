# autoadd/examples.py
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from autoadd.cart import CartSnapshot, from_storefront_cart
from autoadd.collection_index import CollectionIndex
from autoadd.engine import evaluate_cycle
from autoadd.matcher import explain_resolution
from autoadd.reconciler import intent_to_dict
from autoadd.rules import Rule, parse_rules

DATA_DIR = Path(__file__).resolve().parents[1] / "data"
RULES_PATH = DATA_DIR / "sample_rules.json"
CART_PATH = DATA_DIR / "sample_cart.json"
INDEX_PATH = DATA_DIR / "sample_collection_index.json"
CATALOG_PATH = DATA_DIR / "sample_catalog.json"


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    with open(path, "r", encoding="utf8") as fh:
        return json.load(fh)


def load_sample_rules() -> List[Rule]:
    """Rules from data/sample_rules.json (empty if the file is missing)."""
    return parse_rules(_read_json(RULES_PATH, []))


def load_sample_cart() -> CartSnapshot:
    """The sample storefront cart, or an empty USD cart when the file is missing."""
    return from_storefront_cart(_read_json(CART_PATH, {"currency": "USD", "items": []}))


def load_sample_index() -> CollectionIndex:
    return CollectionIndex.from_json(_read_json(INDEX_PATH, {}))


def load_sample_catalog() -> Dict[str, Any]:
    """variant id -> [product id, unit price], used to simulate applied Adds."""
    return {variant: tuple(entry) for variant, entry in _read_json(CATALOG_PATH, {}).items()}


def run_sample(cart: Optional[CartSnapshot] = None) -> Dict[str, Any]:
    """
    Evaluate the sample rules against `cart` (default: the sample cart).
    Returns the per-rule trace and the emitted intents.
    """
    rules = load_sample_rules()
    cart = cart or load_sample_cart()
    index = load_sample_index()
    return {
        "trace": [e.model_dump() for e in explain_resolution(rules, cart, index)],
        "intents": [intent_to_dict(i) for i in evaluate_cycle(rules, cart, index)],
    }
