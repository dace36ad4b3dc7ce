"""Chroma index handle: lazily connected once, shared across requests."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional
from urllib.parse import urlparse

import chromadb
import numpy as np
from chromadb.utils import embedding_functions

from .config import IndexConfig
from .errors import RetrievalUnavailable
from .normalize import flatten_record
from .schemas import VideoRecord


logger = logging.getLogger(__name__)


def _safe_float(value: float) -> float:
    if np.isnan(value) or np.isinf(value):
        return 0.0
    return float(value)


def distance_to_score(distance: Optional[float]) -> float:
    """Cosine distance to a non-negative similarity score."""
    if distance is None:
        return 0.0
    return max(0.0, _safe_float(1.0 - float(distance)))


def _first(result: Dict[str, Any], key: str) -> List[Any]:
    value = result.get(key)
    if value is None or len(value) == 0:
        return []
    return list(value[0]) if value[0] is not None else []


def _column(result: Dict[str, Any], key: str) -> List[Any]:
    value = result.get(key)
    if value is None:
        return []
    return list(value)


def default_client_factory(config: IndexConfig, chroma_dir: str) -> Any:
    """HTTP client when a server URL is configured, else a local persistent store."""
    if config.url:
        parsed = urlparse(config.url)
        return chromadb.HttpClient(
            host=parsed.hostname or "localhost",
            port=parsed.port or 8000,
            ssl=parsed.scheme == "https",
        )
    Path(chroma_dir).mkdir(parents=True, exist_ok=True)
    return chromadb.PersistentClient(path=chroma_dir)


class ChromaIndex:
    """Process-wide handle on the video collection.

    The client and collection are created on first use under a lock and then
    only read. Failed connection attempts are not cached, so a later request
    retries. Call ``close`` at shutdown.
    """

    def __init__(
        self,
        config: IndexConfig,
        chroma_dir: str,
        client_factory: Optional[Callable[[IndexConfig, str], Any]] = None,
        embedding_function: Any = None,
    ):
        self.config = config
        self.chroma_dir = chroma_dir
        self._client_factory = client_factory or default_client_factory
        self._embedding_function = embedding_function
        self._client: Any = None
        self._collection: Any = None
        self._lock = threading.Lock()

    def _get_embedding_function(self) -> Any:
        if self._embedding_function is None:
            self._embedding_function = embedding_functions.SentenceTransformerEmbeddingFunction(
                model_name=self.config.model_name
            )
        return self._embedding_function

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = self._client_factory(self.config, self.chroma_dir)
        return self._client

    def collection(self) -> Any:
        """Return the existing collection, connecting on first use."""
        if self._collection is not None:
            return self._collection
        with self._lock:
            if self._collection is None:
                try:
                    self._collection = self._get_client().get_collection(
                        name=self.config.collection_name,
                        embedding_function=self._get_embedding_function(),
                    )
                except Exception as exc:
                    self._client = None
                    raise RetrievalUnavailable(
                        f"Chroma collection {self.config.collection_name!r} unavailable: {exc}"
                    ) from exc
                logger.info("Connected to Chroma collection %s", self.config.collection_name)
        return self._collection

    def count(self) -> int:
        try:
            return int(self.collection().count())
        except RetrievalUnavailable:
            raise
        except Exception as exc:
            raise RetrievalUnavailable(f"Chroma count failed: {exc}") from exc

    def query(self, query_text: str, top_k: int) -> List[Dict[str, Any]]:
        """Similarity search over the whole collection, nearest first."""
        total = self.count()
        if total == 0 or top_k <= 0:
            return []
        try:
            result = self.collection().query(
                query_texts=[query_text],
                n_results=min(top_k, total),
                include=["metadatas", "distances"],
            )
        except Exception as exc:
            raise RetrievalUnavailable(f"Chroma query failed: {exc}") from exc

        ids = _first(result, "ids")
        metas = _first(result, "metadatas")
        distances = _first(result, "distances")
        return [
            {
                "id": record_id,
                "metadata": metas[i] if i < len(metas) else {},
                "distance": distances[i] if i < len(distances) else None,
            }
            for i, record_id in enumerate(ids)
        ]

    def get(self, ids: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        """Fetch metadata by id, or the whole collection when ``ids`` is None."""
        if ids is not None and not ids:
            return []
        try:
            if ids is None:
                result = self.collection().get(include=["metadatas"])
            else:
                result = self.collection().get(ids=ids, include=["metadatas"])
        except Exception as exc:
            raise RetrievalUnavailable(f"Chroma get failed: {exc}") from exc

        found = _column(result, "ids")
        metas = _column(result, "metadatas")
        return [
            {"id": record_id, "metadata": metas[i] if i < len(metas) else {}}
            for i, record_id in enumerate(found)
        ]

    def upsert_records(self, records: Iterable[VideoRecord]) -> int:
        """Index records, creating the collection if needed. Returns the count written."""
        ids: List[str] = []
        docs: List[str] = []
        metadatas: List[Dict[str, Any]] = []
        seen = set()
        for record in records:
            if record.id in seen:
                logger.warning("Skipping duplicate record id %s", record.id)
                continue
            document, metadata = flatten_record(record)
            if not document:
                logger.warning("Skipping record %s: document is empty", record.id)
                continue
            seen.add(record.id)
            ids.append(record.id)
            docs.append(document)
            metadatas.append(metadata)

        if not ids:
            return 0
        with self._lock:
            collection = self._get_client().get_or_create_collection(
                name=self.config.collection_name,
                embedding_function=self._get_embedding_function(),
                metadata={"hnsw:space": "cosine"},
            )
            self._collection = collection
        collection.upsert(ids=ids, documents=docs, metadatas=metadatas)
        logger.info("Indexed %d records into %s", len(ids), self.config.collection_name)
        return len(ids)

    def close(self) -> None:
        with self._lock:
            client = self._client
            self._collection = None
            self._client = None
        close = getattr(client, "close", None)
        if callable(close):
            close()
