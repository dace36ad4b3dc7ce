"""Read-only views over the whole corpus: video list, topic catalog, transcripts."""

from __future__ import annotations

from collections import Counter
from typing import Any, Dict, List

from .errors import RecordNotFound
from .retrieval import CorpusSource


NO_SUMMARY = "No summary available"


def list_videos(source: CorpusSource) -> List[Dict[str, Any]]:
    videos = []
    for record in source.list_records():
        videos.append(
            {
                "id": record.id,
                "filename": record.video_file_name or f"{record.filename}.mp4",
                "recorded_at": record.recorded_at,
                "summary": record.summary or NO_SUMMARY,
                "topics": list(record.topics),
                "tags": list(record.tags),
            }
        )
    return videos


def topic_catalog(source: CorpusSource) -> Dict[str, Any]:
    """Topics and tags across the corpus, lower-cased, most frequent first.

    Equal counts keep the order in which the topic was first seen.
    """
    counts: Counter = Counter()
    for record in source.list_records():
        for topic in [*record.topics, *record.tags]:
            counts[topic.lower()] += 1
    topics = [topic for topic, _ in sorted(counts.items(), key=lambda kv: kv[1], reverse=True)]
    return {"topics": topics, "total": len(topics)}


def get_transcript(source: CorpusSource, record_id: str) -> Dict[str, Any]:
    record = source.get(record_id)
    if record is None:
        raise RecordNotFound(record_id)
    return record.to_dict()
