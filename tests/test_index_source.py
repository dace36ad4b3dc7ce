"""Tests for the Chroma handle and the index backend, using an in-memory collection."""

import pytest

from conftest import FakeClient, FakeCollection, make_index, make_raw
from video_persona.embeddings import distance_to_score
from video_persona.errors import RetrievalUnavailable
from video_persona.normalize import flatten_record, normalize
from video_persona.retrieval import IndexSource


def _row(record_id: str, distance: float, **raw_fields) -> dict:
    record = normalize(make_raw(**raw_fields), fallback_id=record_id)
    _, metadata = flatten_record(record)
    return {"id": record_id, "metadata": metadata, "distance": distance}


def _collection():
    return FakeCollection(
        [
            _row("near", 0.1, transcript="rust all day", topics=["rust"]),
            _row("mid", 0.4, transcript="some rust"),
            _row("far", 0.9, transcript="cooking"),
        ]
    )


# === Scores ===


def test_distance_to_score():
    assert distance_to_score(0.25) == pytest.approx(0.75)
    assert distance_to_score(1.6) == 0.0
    assert distance_to_score(None) == 0.0
    assert distance_to_score(float("nan")) == 0.0


# === Retrieval ===


def test_index_retrieve_maps_hits_to_records():
    source = IndexSource(make_index(FakeClient(_collection())))
    ranked = source.retrieve("rust", limit=2)
    assert [item.record.id for item in ranked] == ["near", "mid"]
    assert ranked[0].score == pytest.approx(0.9)
    assert ranked[0].record.topics == ["rust"]


def test_index_limit_capped_at_collection_size():
    collection = _collection()
    source = IndexSource(make_index(FakeClient(collection)))
    assert len(source.retrieve("rust", limit=10)) == 3
    assert collection.queries[-1]["n_results"] == 3


def test_index_empty_collection_returns_empty():
    collection = FakeCollection()
    source = IndexSource(make_index(FakeClient(collection)))
    assert source.retrieve("rust", limit=5) == []
    assert collection.queries == []


def test_index_unreachable_returns_empty():
    source = IndexSource(make_index(FakeClient(error=ConnectionError("connection refused"))))
    assert source.retrieve("rust", limit=5) == []


def test_index_missing_collection_returns_empty():
    source = IndexSource(make_index(FakeClient(collection=None)))
    assert source.retrieve("rust", limit=5) == []
    assert source.list_records() == []
    assert source.get("near") is None


def test_index_skips_malformed_metadata():
    collection = _collection()
    collection.rows.insert(0, {"id": "bad", "metadata": {"insights_json": "[oops"}, "distance": 0.0})
    ranked = IndexSource(make_index(FakeClient(collection))).retrieve("rust", limit=5)
    assert "bad" not in [item.record.id for item in ranked]


def test_index_get_and_list():
    source = IndexSource(make_index(FakeClient(_collection())))
    assert source.get("mid").transcript == "some rust"
    assert source.get("nope") is None
    assert [r.id for r in source.list_records()] == ["near", "mid", "far"]


# === Handle lifecycle ===


def test_connection_is_created_once():
    calls = []
    index = make_index(FakeClient(_collection()), calls)
    source = IndexSource(index)
    source.retrieve("rust", limit=1)
    source.retrieve("cooking", limit=1)
    source.get("far")
    assert len(calls) == 1


def test_failed_connection_is_retried_later():
    client = FakeClient(error=ConnectionError("down"))
    calls = []
    index = make_index(client, calls)
    with pytest.raises(RetrievalUnavailable):
        index.collection()
    client.error = None
    client.collection = _collection()
    assert index.collection() is client.collection
    assert len(calls) == 2


def test_close_releases_client():
    client = FakeClient(_collection())
    source = IndexSource(make_index(client))
    source.retrieve("rust", limit=1)
    source.close()
    assert client.closed


def test_upsert_records_skips_duplicates_and_empty():
    client = FakeClient()
    index = make_index(client)
    records = [
        normalize(make_raw(transcript="first"), fallback_id="a"),
        normalize(make_raw(transcript="again"), fallback_id="a"),
        normalize({}, fallback_id="empty"),
        normalize(make_raw(summary="second"), fallback_id="b"),
    ]
    assert index.upsert_records(records) == 2
    assert [row["id"] for row in client.collection.rows] == ["a", "b"]
    assert index.count() == 2
