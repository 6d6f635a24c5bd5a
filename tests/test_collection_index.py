# tests/test_collection_index.py
import json

import pytest

from autoadd.collection_index import CollectionIndex
from autoadd.errors import CollectionIndexError


def test_reads_both_stored_shapes():
    index = CollectionIndex.from_json(
        {
            "p1": ["c1", "c2"],
            "p2": {"collections": ["c2"]},
            "p3": [],
            "p4": "c9",
            "p5": ["c5", 7, None],
        }
    )
    assert index.collections_for("p1") == frozenset({"c1", "c2"})
    assert index.collections_for("p2") == frozenset({"c2"})
    assert "p3" not in index
    assert "p4" not in index
    assert index.collections_for("p5") == frozenset({"c5"})


def test_unknown_product_has_no_collections():
    index = CollectionIndex({"p1": ["c1"]})
    assert index.collections_for("missing") == frozenset()
    assert index.belongs_to_any("p1", ["c0", "c1"]) is True
    assert index.belongs_to_any("missing", ["c1"]) is False


@pytest.mark.parametrize("raw", [None, "", "[1, 2]", "{broken", b"null"])
def test_malformed_documents_give_an_empty_index(raw):
    assert len(CollectionIndex.from_json(raw)) == 0


def test_strict_loading_raises():
    with pytest.raises(CollectionIndexError):
        CollectionIndex.from_json("{broken", strict=True)
    with pytest.raises(CollectionIndexError):
        CollectionIndex.from_json("[]", strict=True)


def test_accepts_json_text_and_index_envelope():
    text = json.dumps({"index": {"p1": ["c1"]}})
    assert CollectionIndex.from_json(text).collections_for("p1") == frozenset({"c1"})


def test_build_inverts_collection_listings():
    index = CollectionIndex.build({"c1": ["p1", "p2"], "c2": ["p2"]})
    assert index.to_json() == {"p1": ["c1"], "p2": ["c1", "c2"]}


def test_merge_unions_without_touching_inputs():
    existing = CollectionIndex({"p1": ["c1"], "p2": ["c2"]})
    fresh = CollectionIndex.build({"c3": ["p1", "p9"]})
    merged = existing.merge(fresh)
    assert merged.to_json() == {"p1": ["c1", "c3"], "p2": ["c2"], "p9": ["c3"]}
    assert existing.to_json() == {"p1": ["c1"], "p2": ["c2"]}
    assert fresh.to_json() == {"p1": ["c3"], "p9": ["c3"]}
