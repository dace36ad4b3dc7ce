"""Keyword-frequency relevance ranking used by the scan backend."""

from __future__ import annotations

from typing import Iterable, List

from .schemas import ScoredRecord, VideoRecord


DEFAULT_LIMIT = 5


def query_terms(query: str) -> List[str]:
    """Lower-case and split on whitespace. Repeated terms are kept."""
    return query.lower().split()


def searchable_text(record: VideoRecord) -> str:
    return f"{record.transcript} {record.summary} {' '.join(record.topics)}".lower()


def score_record(record: VideoRecord, terms: List[str]) -> int:
    """Sum of substring occurrence counts for every query term.

    Matching is by substring, not word boundary, so "go" also counts inside
    "google". Each occurrence of a term in the query contributes separately.
    """
    text = searchable_text(record)
    return sum(text.count(term) for term in terms)


def rank_records(records: Iterable[VideoRecord], query: str, limit: int = DEFAULT_LIMIT) -> List[ScoredRecord]:
    """Score, stably sort by descending score and truncate to ``limit``.

    Ties keep the order in which ``records`` were enumerated.
    """
    if limit <= 0:
        return []
    terms = query_terms(query)
    scored = [ScoredRecord(record=record, score=score_record(record, terms)) for record in records]
    scored.sort(key=lambda item: item.score, reverse=True)
    return scored[:limit]
