"""Normalization of stored video records into the canonical schema.

Two physical shapes reach this module:

* nested JSON files as written by the video analysis step::

      {"id": ..., "videoFileName": ..., "timestamp": ...,
       "analysis": {"transcript": ..., "summary": ..., "screenContent": ...,
                    "topics": [...], "tags": [...]},
       "inferred_insights": [{"type": ..., "insight": ..., "certainty": ..., "basis": ...}]}

* flattened Chroma metadata, where lists are joined into strings because the
  index only stores primitive values.

Flattened metadata is unflattened back into the nested shape and sent through
the same ``normalize`` call, so both backends yield identical ``VideoRecord``s.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from dateutil import parser as dt_parser

from .errors import RecordMalformed
from .schemas import Insight, VideoRecord


TOPIC_DELIMITER = ", "
MAX_DOCUMENT_CHARS = 5000
NO_INSIGHTS_PLACEHOLDER = "No insights available"
TIMESTAMP_KEYS = ("timestamp", "createdAt", "created_at", "recordedAt")


def _normalize_text(value: object) -> str:
    if not isinstance(value, str):
        return ""
    text = value.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def _as_mapping(value: object) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _string_list(value: object) -> List[str]:
    if not isinstance(value, list):
        return []
    out: List[str] = []
    for item in value:
        if not isinstance(item, str):
            continue
        cleaned = item.strip()
        if cleaned:
            out.append(cleaned)
    return out


def _split_joined(value: object) -> List[str]:
    if not isinstance(value, str) or not value.strip():
        return []
    return [part.strip() for part in value.split(TOPIC_DELIMITER) if part.strip()]


def _parse_optional_timestamp(value: object) -> Optional[datetime]:
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(float(value), tz=timezone.utc)
        if isinstance(value, str) and value.strip():
            return dt_parser.parse(value)
    except (ValueError, OverflowError, OSError):
        return None
    return None


def _extract_timestamp_from_name(name: str) -> Optional[datetime]:
    match = re.search(r"(\d{4}[-_]\d{2}[-_]\d{2})", name)
    if not match:
        return None
    raw = match.group(1).replace("_", "-")
    return _parse_optional_timestamp(raw)


def _recorded_at(raw: Mapping[str, Any], filename: str) -> str:
    for key in TIMESTAMP_KEYS:
        parsed = _parse_optional_timestamp(raw.get(key))
        if parsed is not None:
            return parsed.isoformat()
    parsed = _extract_timestamp_from_name(filename)
    return parsed.isoformat() if parsed is not None else ""


def _normalize_insight(item: object) -> Optional[Insight]:
    if not isinstance(item, Mapping):
        return None
    return Insight(
        type=_normalize_text(item.get("type")),
        insight=_normalize_text(item.get("insight")),
        certainty=_normalize_text(item.get("certainty")),
        basis=_normalize_text(item.get("basis")),
    )


def _insight_list(value: object) -> List[Insight]:
    if not isinstance(value, list):
        return []
    insights = []
    for item in value:
        insight = _normalize_insight(item)
        if insight is not None:
            insights.append(insight)
    return insights


def normalize(raw: object, fallback_id: str, filename: Optional[str] = None) -> VideoRecord:
    """Build a ``VideoRecord`` from a nested raw record.

    Missing fields at any depth fall back to empty values. ``fallback_id`` is
    used when the record carries no usable ``id`` and is typically the storage
    key (file stem). Raises ``RecordMalformed`` only when ``raw`` is not a
    mapping at all.
    """
    if not isinstance(raw, Mapping):
        raise RecordMalformed(fallback_id, f"expected an object, got {type(raw).__name__}")

    name = filename if filename is not None else fallback_id
    analysis = _as_mapping(raw.get("analysis"))

    raw_id = raw.get("id")
    if isinstance(raw_id, int) and not isinstance(raw_id, bool):
        raw_id = str(raw_id)
    record_id = raw_id.strip() if isinstance(raw_id, str) and raw_id.strip() else fallback_id

    return VideoRecord(
        id=record_id,
        filename=name,
        transcript=_normalize_text(analysis.get("transcript")),
        summary=_normalize_text(analysis.get("summary")),
        topics=_string_list(analysis.get("topics")),
        tags=_string_list(analysis.get("tags")),
        insights=_insight_list(raw.get("inferred_insights")),
        video_file_name=_normalize_text(raw.get("videoFileName")),
        screen_content=_normalize_text(analysis.get("screenContent")),
        recorded_at=_recorded_at(raw, name),
    )


def _legacy_insights(text: object) -> List[Dict[str, str]]:
    cleaned = _normalize_text(text)
    if not cleaned or cleaned == NO_INSIGHTS_PLACEHOLDER:
        return []
    return [{"insight": line.strip()} for line in cleaned.split("\n") if line.strip()]


def unflatten_metadata(metadata: Optional[Mapping[str, Any]], record_id: str) -> Dict[str, Any]:
    """Rebuild the nested record shape from flattened index metadata."""
    meta = _as_mapping(metadata)

    insights: object = None
    raw_json = meta.get("insights_json")
    if isinstance(raw_json, str) and raw_json.strip():
        try:
            insights = json.loads(raw_json)
        except json.JSONDecodeError as exc:
            raise RecordMalformed(record_id, f"insights_json is not valid JSON: {exc}") from exc
    else:
        insights = _legacy_insights(meta.get("insights"))

    nested: Dict[str, Any] = {
        "id": record_id,
        "videoFileName": meta.get("videoFileName"),
        "analysis": {
            "transcript": meta.get("transcript"),
            "summary": meta.get("summary"),
            "screenContent": meta.get("screenContent"),
            "topics": _split_joined(meta.get("topics")),
            "tags": _split_joined(meta.get("tags")),
        },
        "inferred_insights": insights,
    }
    if meta.get("recorded_at"):
        nested["timestamp"] = meta.get("recorded_at")
    return nested


def normalize_index_metadata(metadata: Optional[Mapping[str, Any]], record_id: str) -> VideoRecord:
    """Build a ``VideoRecord`` from a Chroma id + metadata pair."""
    meta = _as_mapping(metadata)
    filename = meta.get("filename")
    if not isinstance(filename, str) or not filename:
        filename = record_id
    return normalize(unflatten_metadata(meta, record_id), fallback_id=record_id, filename=filename)


def flatten_record(record: VideoRecord) -> Tuple[str, Dict[str, Any]]:
    """Return ``(document, metadata)`` for indexing ``record`` into Chroma.

    Metadata carries primitive values only; empty fields are omitted.
    """
    insight_text = "\n".join(i.insight for i in record.insights if i.insight)
    raw_metadata: Dict[str, Any] = {
        "filename": record.filename,
        "videoFileName": record.video_file_name,
        "recorded_at": record.recorded_at,
        "transcript": record.transcript,
        "summary": record.summary,
        "screenContent": record.screen_content,
        "topics": TOPIC_DELIMITER.join(record.topics),
        "tags": TOPIC_DELIMITER.join(record.tags),
        "insights": insight_text,
        "insights_json": (
            json.dumps([i.to_dict() for i in record.insights], ensure_ascii=False)
            if record.insights
            else ""
        ),
    }
    metadata = {key: value for key, value in raw_metadata.items() if value}

    parts = [
        record.transcript,
        record.summary,
        record.screen_content,
        TOPIC_DELIMITER.join(record.topics),
        TOPIC_DELIMITER.join(record.tags),
        insight_text,
    ]
    document = "\n".join(part for part in parts if part)[:MAX_DOCUMENT_CHARS]
    return document, metadata
