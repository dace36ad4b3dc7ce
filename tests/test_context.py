"""Tests for context assembly and conversation windowing."""

from video_persona.context import (
    DEFAULT_KNOWLEDGE,
    DEFAULT_PERSONALITY,
    assemble_context,
    build_turns,
    render_record,
    window_history,
)
from video_persona.schemas import ConversationTurn, Insight, ScoredRecord, VideoRecord


def _scored(record_id: str, transcript: str = "hello there", **kwargs) -> ScoredRecord:
    return ScoredRecord(
        record=VideoRecord(id=record_id, filename=f"{record_id}_file", transcript=transcript, **kwargs),
        score=1,
    )


def _history(n: int):
    return [
        ConversationTurn(role="user" if i % 2 == 0 else "assistant", content=f"turn {i}")
        for i in range(n)
    ]


# === Record blocks ===


def test_render_record_fixed_fields():
    record = VideoRecord(
        id="v1",
        filename="2024-05-01_clip",
        transcript="We shipped it.",
        summary="Launch day",
        topics=["launch", "startup"],
    )
    assert render_record(record) == (
        "VIDEO_CONTEXT: 2024-05-01_clip\n"
        "TRANSCRIPT: We shipped it.\n"
        "SUMMARY: Launch day\n"
        "TOPICS: launch, startup"
    )


def test_blocks_joined_by_blank_line_in_ranked_order():
    block = assemble_context([_scored("b"), _scored("a")], limit=5)
    assert block.video_context.split("\n\n")[0].startswith("VIDEO_CONTEXT: b_file")
    assert block.video_context.split("\n\n")[1].startswith("VIDEO_CONTEXT: a_file")


def test_limit_bounds_record_blocks():
    block = assemble_context([_scored(str(i)) for i in range(7)], limit=3)
    assert len(block.record_blocks) == 3


# === Insight sections ===


def test_fallback_text_when_no_insights():
    block = assemble_context([], limit=5)
    assert block.personality == DEFAULT_PERSONALITY
    assert block.knowledge == DEFAULT_KNOWLEDGE
    instruction = block.system_instruction()
    assert DEFAULT_PERSONALITY in instruction
    assert DEFAULT_KNOWLEDGE in instruction
    assert "RELEVANT VIDEO CONTEXT:" in instruction


def test_insight_sections_from_records():
    scored = _scored(
        "v",
        insights=[
            Insight(type="personality", insight="Dry sense of humor"),
            Insight(type="experience", insight="Ran a marathon"),
            Insight(type="skill", insight="Speaks Spanish"),
        ],
    )
    block = assemble_context([scored], limit=5)
    assert block.personality == "Dry sense of humor"
    assert block.knowledge == "Ran a marathon\nSpeaks Spanish"


def test_only_one_bucket_falls_back():
    scored = _scored("v", insights=[Insight(type="goal", insight="Learn Rust")])
    block = assemble_context([scored], limit=5)
    assert block.personality == DEFAULT_PERSONALITY
    assert block.knowledge == "Learn Rust"


# === Character budget ===


def test_no_budget_keeps_full_transcripts():
    long_text = "word " * 2000
    block = assemble_context([_scored("v", transcript=long_text.strip())], limit=5)
    assert long_text.strip() in block.video_context


def test_budget_split_across_records():
    records = [_scored(str(i), transcript="x" * 1000) for i in range(4)]
    block = assemble_context(records, limit=5, max_chars=800)
    assert len(block.record_blocks) == 4
    assert all(len(text) <= 200 for text in block.record_blocks)
    assert all(text.startswith("VIDEO_CONTEXT:") for text in block.record_blocks)
    assert len(block.video_context) <= 800 + 2 * 3


# === History window ===


def test_window_keeps_last_ten_of_fifteen():
    history = _history(15)
    windowed = window_history(history)
    assert windowed == history[5:]


def test_window_shorter_history_unchanged():
    history = _history(4)
    assert window_history(history) == history


def test_build_turns_appends_new_message_last():
    turns = build_turns(_history(15), "What's your favorite editor?")
    assert len(turns) == 11
    assert [t.content for t in turns[:10]] == [f"turn {i}" for i in range(5, 15)]
    assert turns[-1] == ConversationTurn(role="user", content="What's your favorite editor?")
