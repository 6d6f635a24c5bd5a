# autoadd/collection_index.py
"""
Collection index: product id -> collection ids.

Collection membership cannot be queried from the evaluation context, so it
is precomputed and stored as a JSON document. Two stored shapes are read:

    {"gid://shopify/Product/1": ["gid://shopify/Collection/9", ...]}
    {"gid://shopify/Product/1": {"collections": ["gid://shopify/Collection/9"]}}

A stale or missing entry simply means "no collections" for that product.
"""

import collections.abc
import json
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional

from autoadd.errors import CollectionIndexError
from autoadd.logging import get_logger

logger = get_logger(__name__)

_EMPTY: FrozenSet[str] = frozenset()


class CollectionIndex(collections.abc.Mapping):
    """Immutable product -> frozenset(collection ids) mapping."""

    def __init__(self, entries: Optional[Mapping[str, Iterable[str]]] = None):
        self._entries: Dict[str, FrozenSet[str]] = {}
        for product_id, collection_ids in (entries or {}).items():
            ids = frozenset(c for c in collection_ids if isinstance(c, str) and c)
            if ids:
                self._entries[product_id] = ids

    def __getitem__(self, product_id: str) -> FrozenSet[str]:
        return self._entries[product_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"CollectionIndex({len(self._entries)} products)"

    def collections_for(self, product_id: str) -> FrozenSet[str]:
        return self._entries.get(product_id, _EMPTY)

    def belongs_to_any(self, product_id: str, collection_ids: Iterable[str]) -> bool:
        return not self.collections_for(product_id).isdisjoint(collection_ids)

    # ---------------------------
    # Loading / building
    # ---------------------------

    @classmethod
    def from_json(cls, raw: Any, strict: bool = False) -> "CollectionIndex":
        """
        Parse a stored index document (JSON text, bytes or decoded dict).

        Malformed documents give an empty index; with strict=True they raise
        CollectionIndexError instead.
        """
        if raw is None:
            return cls()
        if isinstance(raw, (str, bytes, bytearray)):
            if not raw.strip():
                return cls()
            try:
                raw = json.loads(raw)
            except ValueError as exc:
                if strict:
                    raise CollectionIndexError("Collection index is not valid JSON", {"error": str(exc)}) from exc
                logger.warning("collection_index_unparseable", error=str(exc))
                return cls()

        if isinstance(raw, Mapping) and isinstance(raw.get("index"), Mapping):
            raw = raw["index"]
        if not isinstance(raw, Mapping):
            if strict:
                raise CollectionIndexError("Collection index must be an object", {"type": type(raw).__name__})
            logger.warning("collection_index_not_an_object", document_type=type(raw).__name__)
            return cls()

        entries: Dict[str, List[str]] = {}
        for product_id, value in raw.items():
            if isinstance(value, list):
                members = value
            elif isinstance(value, Mapping) and isinstance(value.get("collections"), list):
                members = value["collections"]
            else:
                continue
            entries[str(product_id)] = [c for c in members if isinstance(c, str)]
        return cls(entries)

    @classmethod
    def build(cls, collection_products: Mapping[str, Iterable[str]]) -> "CollectionIndex":
        """Invert collection -> product listings into a product -> collections index."""
        entries: Dict[str, set] = {}
        for collection_id, product_ids in collection_products.items():
            for product_id in product_ids:
                entries.setdefault(product_id, set()).add(collection_id)
        return cls(entries)

    def merge(self, other: Mapping[str, Iterable[str]]) -> "CollectionIndex":
        """Union of both indexes; neither input is modified."""
        entries: Dict[str, set] = {pid: set(cids) for pid, cids in self._entries.items()}
        for product_id, collection_ids in other.items():
            entries.setdefault(product_id, set()).update(collection_ids)
        return CollectionIndex(entries)

    def to_json(self) -> Dict[str, List[str]]:
        return {pid: sorted(cids) for pid, cids in sorted(self._entries.items())}
