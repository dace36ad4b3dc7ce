"""Assembly of the model-facing context block and conversation window."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .insights import classify_records
from .ranking import DEFAULT_LIMIT
from .schemas import ConversationTurn, ScoredRecord, VideoRecord


HISTORY_WINDOW = 10

DEFAULT_PERSONALITY = (
    "You have a casual, conversational style. You're comfortable with technology "
    "and enjoy sharing your experiences."
)
DEFAULT_KNOWLEDGE = (
    "You have knowledge about programming, video deployment, and creating digital interfaces."
)

PERSONA_PREAMBLE = (
    "You are a digital version of the person who recorded these videos. You should respond "
    "as if you were this person - adopt their personality, knowledge, communication style, "
    "and perspective."
)

CONVERSATION_GUIDELINES = """- Respond naturally as if you're having a conversation in person.
- Reference specific videos or insights from your recordings when relevant.
- If you don't know something, acknowledge it honestly rather than making up information.
- If the conversation refers to videos you've recorded, share your thoughts and experiences from them.
- Your personality should be consistent with what is revealed in your videos.
- Use your natural speaking style, including occasional filler words if that matches your style."""


@dataclass
class ContextBlock:
    """Per-request prompt payload built from ranked records."""

    record_blocks: List[str] = field(default_factory=list)
    personality: str = DEFAULT_PERSONALITY
    knowledge: str = DEFAULT_KNOWLEDGE

    @property
    def video_context(self) -> str:
        return "\n\n".join(self.record_blocks)

    def system_instruction(self) -> str:
        return (
            f"{PERSONA_PREAMBLE}\n\n"
            f"PERSONALITY TRAITS:\n{self.personality}\n\n"
            f"KNOWLEDGE & EXPERIENCES:\n{self.knowledge}\n\n"
            f"RELEVANT VIDEO CONTEXT:\n{self.video_context}\n\n"
            f"CONVERSATION GUIDELINES:\n{CONVERSATION_GUIDELINES}"
        )


def render_record(record: VideoRecord, transcript: Optional[str] = None) -> str:
    text = record.transcript if transcript is None else transcript
    return (
        f"VIDEO_CONTEXT: {record.filename}\n"
        f"TRANSCRIPT: {text}\n"
        f"SUMMARY: {record.summary}\n"
        f"TOPICS: {', '.join(record.topics)}"
    )


def _render_within(record: VideoRecord, budget: int) -> str:
    """Render ``record`` in at most ``budget`` characters, cutting the transcript first."""
    full = render_record(record)
    if len(full) <= budget:
        return full
    overhead = len(render_record(record, transcript=""))
    room = budget - overhead
    if room > 0:
        return render_record(record, transcript=record.transcript[:room])
    return full[: max(0, budget)]


def assemble_context(
    records: Sequence[ScoredRecord],
    limit: int = DEFAULT_LIMIT,
    max_chars: Optional[int] = None,
) -> ContextBlock:
    """Build the context block from the first ``limit`` ranked records.

    With ``max_chars`` set, the budget is split evenly across the rendered
    record blocks. Without it the block is bounded only by ``limit``.
    """
    selected = list(records)[: max(0, limit)]
    if max_chars is not None and selected:
        share = max_chars // len(selected)
        blocks = [_render_within(item.record, share) for item in selected]
    else:
        blocks = [render_record(item.record) for item in selected]

    classified = classify_records(selected)
    return ContextBlock(
        record_blocks=blocks,
        personality="\n".join(classified.personality) if classified.personality else DEFAULT_PERSONALITY,
        knowledge="\n".join(classified.knowledge) if classified.knowledge else DEFAULT_KNOWLEDGE,
    )


def window_history(history: Sequence[ConversationTurn], size: int = HISTORY_WINDOW) -> List[ConversationTurn]:
    """Keep the most recent ``size`` turns in their original order."""
    if size <= 0:
        return []
    return list(history)[-size:]


def build_turns(
    history: Sequence[ConversationTurn],
    message: str,
    size: int = HISTORY_WINDOW,
) -> List[ConversationTurn]:
    """Windowed history followed by the new user turn."""
    turns = window_history(history, size)
    turns.append(ConversationTurn(role="user", content=message))
    return turns
