"""Corpus sources: one retrieval contract, a scan backend and an index backend."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from .embeddings import ChromaIndex, distance_to_score
from .errors import RecordMalformed, RetrievalUnavailable
from .normalize import normalize, normalize_index_metadata
from .ranking import DEFAULT_LIMIT, rank_records
from .schemas import ScoredRecord, VideoRecord


logger = logging.getLogger(__name__)


class CorpusSource(ABC):
    """Retrieval capability shared by every backend.

    ``retrieve`` returns records ordered by descending score and never raises
    for an empty corpus, no matches, or an unreachable backend: those all
    yield an empty list.
    """

    @abstractmethod
    def retrieve(self, query: str, limit: int = DEFAULT_LIMIT) -> List[ScoredRecord]:
        raise NotImplementedError

    @abstractmethod
    def get(self, record_id: str) -> Optional[VideoRecord]:
        raise NotImplementedError

    @abstractmethod
    def list_records(self) -> List[VideoRecord]:
        raise NotImplementedError

    def close(self) -> None:
        """Release any held connection."""


class ScanSource(CorpusSource):
    """Reads every ``*.json`` record in a directory and scores it in-process.

    Each call parses the whole corpus and costs O(records x query terms).
    That is fine for a few hundred videos; larger corpora belong in the
    index backend.
    """

    def __init__(self, dataset_dir: str):
        self.dataset_dir = Path(dataset_dir)

    def _record_paths(self) -> List[Path]:
        if not self.dataset_dir.is_dir():
            raise RetrievalUnavailable(f"Dataset directory not found: {self.dataset_dir}")
        try:
            return sorted(p for p in self.dataset_dir.iterdir() if p.is_file() and p.suffix == ".json")
        except OSError as exc:
            raise RetrievalUnavailable(f"Cannot list dataset directory {self.dataset_dir}: {exc}") from exc

    def _load(self, path: Path) -> VideoRecord:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise RecordMalformed(path.name, str(exc)) from exc
        return normalize(data, fallback_id=path.stem)

    def _load_all(self) -> List[VideoRecord]:
        records: List[VideoRecord] = []
        for path in self._record_paths():
            try:
                records.append(self._load(path))
            except RecordMalformed as exc:
                logger.warning("Skipping record: %s", exc)
        return records

    def list_records(self) -> List[VideoRecord]:
        return self._load_all()

    def retrieve(self, query: str, limit: int = DEFAULT_LIMIT) -> List[ScoredRecord]:
        try:
            records = self._load_all()
        except RetrievalUnavailable as exc:
            logger.warning("Scan retrieval unavailable: %s", exc)
            return []
        ranked = rank_records(records, query, limit)
        logger.debug("Scan ranked %d of %d records for %r", len(ranked), len(records), query)
        return ranked

    def get(self, record_id: str) -> Optional[VideoRecord]:
        if Path(record_id).name == record_id:
            direct = self.dataset_dir / f"{record_id}.json"
            if direct.is_file():
                try:
                    return self._load(direct)
                except RecordMalformed as exc:
                    logger.warning("Skipping record: %s", exc)
        try:
            records = self._load_all()
        except RetrievalUnavailable as exc:
            logger.warning("Scan lookup unavailable: %s", exc)
            return None
        for record in records:
            if record.id == record_id:
                return record
        return None


class IndexSource(CorpusSource):
    """Delegates similarity search to a Chroma collection.

    Scores are ``1 - cosine distance`` clamped at zero; they are not
    comparable with scan scores.
    """

    def __init__(self, index: ChromaIndex):
        self.index = index

    def _to_record(self, hit: dict) -> Optional[VideoRecord]:
        try:
            return normalize_index_metadata(hit.get("metadata"), str(hit["id"]))
        except RecordMalformed as exc:
            logger.warning("Skipping record: %s", exc)
            return None

    def retrieve(self, query: str, limit: int = DEFAULT_LIMIT) -> List[ScoredRecord]:
        if limit <= 0:
            return []
        try:
            hits = self.index.query(query, limit)
        except RetrievalUnavailable as exc:
            logger.warning("Index retrieval unavailable: %s", exc)
            return []

        scored: List[ScoredRecord] = []
        for hit in hits:
            record = self._to_record(hit)
            if record is None:
                continue
            scored.append(ScoredRecord(record=record, score=distance_to_score(hit.get("distance"))))
        scored.sort(key=lambda item: item.score, reverse=True)
        return scored[:limit]

    def get(self, record_id: str) -> Optional[VideoRecord]:
        try:
            hits = self.index.get([record_id])
        except RetrievalUnavailable as exc:
            logger.warning("Index lookup unavailable: %s", exc)
            return None
        for hit in hits:
            record = self._to_record(hit)
            if record is not None:
                return record
        return None

    def list_records(self) -> List[VideoRecord]:
        try:
            hits = self.index.get()
        except RetrievalUnavailable as exc:
            logger.warning("Index listing unavailable: %s", exc)
            return []
        records = [self._to_record(hit) for hit in hits]
        return [record for record in records if record is not None]

    def close(self) -> None:
        self.index.close()
