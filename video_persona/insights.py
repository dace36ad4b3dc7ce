"""Partitioning of inferred insights into personality and knowledge facts."""

from __future__ import annotations

from typing import Iterable, List, NamedTuple

from .schemas import Insight, ScoredRecord


PERSONALITY_TYPES = ["mental_state", "personality", "interest", "opinion"]
KNOWLEDGE_TYPES = ["knowledge", "experience", "goal", "skill"]


class ClassifiedInsights(NamedTuple):
    personality: List[str]
    knowledge: List[str]


def classify(insights: Iterable[Insight]) -> ClassifiedInsights:
    """Split insight text by tag; unrecognized tags land in neither bucket."""
    personality: List[str] = []
    knowledge: List[str] = []
    for item in insights:
        if item.type in PERSONALITY_TYPES:
            personality.append(item.insight)
        elif item.type in KNOWLEDGE_TYPES:
            knowledge.append(item.insight)
    return ClassifiedInsights(personality=personality, knowledge=knowledge)


def classify_records(records: Iterable[ScoredRecord]) -> ClassifiedInsights:
    """Classify each record's insights and flatten them in ranked order."""
    personality: List[str] = []
    knowledge: List[str] = []
    for scored in records:
        classified = classify(scored.record.insights)
        personality.extend(classified.personality)
        knowledge.extend(classified.knowledge)
    return ClassifiedInsights(personality=personality, knowledge=knowledge)
