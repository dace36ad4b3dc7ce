"""Core data structures shared across modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Union


@dataclass(frozen=True)
class Insight:
    """A single inferred fact about the recorded person."""

    type: str = ""
    insight: str = ""
    certainty: str = ""
    basis: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "type": self.type,
            "insight": self.insight,
            "certainty": self.certainty,
            "basis": self.basis,
        }


@dataclass
class VideoRecord:
    """Canonical analyzed-video record, identical across backends."""

    id: str
    filename: str = ""
    transcript: str = ""
    summary: str = ""
    topics: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    insights: List[Insight] = field(default_factory=list)
    video_file_name: str = ""
    screen_content: str = ""
    recorded_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "filename": self.filename,
            "video_file_name": self.video_file_name,
            "recorded_at": self.recorded_at,
            "transcript": self.transcript,
            "summary": self.summary,
            "screen_content": self.screen_content,
            "topics": list(self.topics),
            "tags": list(self.tags),
            "insights": [insight.to_dict() for insight in self.insights],
        }


@dataclass
class ScoredRecord:
    """A record plus its backend-specific relevance score (larger is better)."""

    record: VideoRecord
    score: Union[int, float] = 0


@dataclass(frozen=True)
class ConversationTurn:
    role: str
    content: str


@dataclass
class SourceRef:
    """Source entry handed back to the UI, in context-assembly order."""

    id: str
    summary: str
    score: Union[int, float]

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "summary": self.summary, "score": self.score}


@dataclass
class ChatResponse:
    """Result of one chat cycle."""

    response: str
    sources: List[SourceRef] = field(default_factory=list)
    states: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "response": self.response,
            "sources": [source.to_dict() for source in self.sources],
        }
