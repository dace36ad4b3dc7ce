"""Shared fixtures and fakes for video_persona tests."""

import json
import time
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from video_persona.config import IndexConfig
from video_persona.embeddings import ChromaIndex
from video_persona.errors import ModelCallError


def make_raw(
    transcript: str = "",
    summary: str = "",
    topics: Optional[List[str]] = None,
    tags: Optional[List[str]] = None,
    insights: Optional[List[Dict]] = None,
    **extra,
) -> Dict:
    """Build a nested record the way the analysis step writes it."""
    raw = {
        "analysis": {
            "transcript": transcript,
            "summary": summary,
            "topics": topics or [],
            "tags": tags or [],
        },
        "inferred_insights": insights or [],
    }
    raw.update(extra)
    return raw


def write_record(dataset_dir: Path, stem: str, raw) -> Path:
    dataset_dir.mkdir(parents=True, exist_ok=True)
    path = dataset_dir / f"{stem}.json"
    path.write_text(json.dumps(raw), encoding="utf-8")
    return path


class FakeModel:
    """Records every call and answers with a canned reply."""

    def __init__(self, reply: str = "Hey, good question!", error: Optional[Exception] = None, delay: float = 0.0):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls: List[Dict] = []

    def generate(self, turns, system_instruction, params):
        self.calls.append({"turns": list(turns), "system_instruction": system_instruction, "params": params})
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply


class FakeCollection:
    """In-memory stand-in for a Chroma collection.

    ``query`` returns rows in insertion order with their preset distances,
    mimicking a nearest-first response.
    """

    def __init__(self, rows: Optional[List[Dict]] = None):
        self.rows: List[Dict] = rows or []
        self.queries: List[Dict] = []

    def count(self) -> int:
        return len(self.rows)

    def query(self, query_texts, n_results, include):
        self.queries.append({"query_texts": query_texts, "n_results": n_results})
        hits = self.rows[:n_results]
        return {
            "ids": [[row["id"] for row in hits]],
            "metadatas": [[row.get("metadata") for row in hits]],
            "distances": [[row.get("distance", 0.0) for row in hits]],
        }

    def get(self, ids=None, include=None):
        rows = self.rows if ids is None else [row for row in self.rows if row["id"] in ids]
        return {"ids": [row["id"] for row in rows], "metadatas": [row.get("metadata") for row in rows]}

    def upsert(self, ids, documents, metadatas):
        for record_id, document, metadata in zip(ids, documents, metadatas):
            self.rows = [row for row in self.rows if row["id"] != record_id]
            self.rows.append({"id": record_id, "document": document, "metadata": metadata, "distance": 0.0})


class FakeClient:
    def __init__(self, collection: Optional[FakeCollection] = None, error: Optional[Exception] = None):
        self.collection = collection
        self.error = error
        self.closed = False

    def get_collection(self, name, embedding_function=None):
        if self.error is not None:
            raise self.error
        if self.collection is None:
            raise ValueError(f"Collection {name} does not exist.")
        return self.collection

    def get_or_create_collection(self, name, embedding_function=None, metadata=None):
        if self.collection is None:
            self.collection = FakeCollection()
        return self.collection

    def close(self):
        self.closed = True


def make_index(client: FakeClient, calls: Optional[List] = None) -> ChromaIndex:
    """ChromaIndex wired to a fake client; ``calls`` collects factory invocations."""

    def factory(config, chroma_dir):
        if calls is not None:
            calls.append(chroma_dir)
        return client

    return ChromaIndex(IndexConfig(), "unused", client_factory=factory, embedding_function=object())


@pytest.fixture
def dataset_dir(tmp_path) -> Path:
    path = tmp_path / "video-dataset"
    path.mkdir()
    return path


@pytest.fixture
def fake_model() -> FakeModel:
    return FakeModel()


@pytest.fixture
def failing_model() -> FakeModel:
    return FakeModel(error=ModelCallError("quota exceeded"))
