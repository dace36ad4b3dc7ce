"""Chat orchestration: one request/response cycle as an explicit state machine.

    IDLE -> RETRIEVING -> ASSEMBLING -> AWAITING_MODEL -> DONE
                                                     \\-> FAILED

A retrieval outage never fails the cycle: the source hands back no records
and assembly proceeds with the generic persona text. Only the model call can
fail a request.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .config import ChatConfig
from .context import assemble_context, build_turns
from .errors import ModelCallError, RecordNotFound, RetrievalUnavailable, ValidationError
from .llm import FACTUAL_PARAMS, ChatModel, GenerationParams
from .ranking import DEFAULT_LIMIT
from .retrieval import CorpusSource
from .schemas import ChatResponse, ConversationTurn, SourceRef, VideoRecord


logger = logging.getLogger(__name__)

IDLE = "IDLE"
RETRIEVING = "RETRIEVING"
ASSEMBLING = "ASSEMBLING"
AWAITING_MODEL = "AWAITING_MODEL"
DONE = "DONE"
FAILED = "FAILED"

LEGAL_TRANSITIONS: Dict[Tuple[str, str], str] = {
    (IDLE, RETRIEVING): "New query received",
    (IDLE, FAILED): "Query rejected",
    (RETRIEVING, ASSEMBLING): "Source returned, possibly empty",
    (RETRIEVING, FAILED): "Unexpected retrieval error",
    (ASSEMBLING, AWAITING_MODEL): "Context block built",
    (ASSEMBLING, FAILED): "Unexpected assembly error",
    (AWAITING_MODEL, DONE): "Model responded",
    (AWAITING_MODEL, FAILED): "Model call failed or timed out",
}

TERMINAL_STATES = {DONE, FAILED}

VIDEO_INSIGHT_INSTRUCTION = (
    "You are an AI assistant that specializes in analyzing video content. Your task is to "
    "answer questions about a specific video based on its transcript, summary, and other "
    "metadata. Only use the information provided in the context. Be specific, concise, and "
    "focused on the video content. Do not make up information not present in the data provided."
)
DEFAULT_VIDEO_QUESTION = "Provide insights about what's happening in this video."


class IllegalTransitionError(Exception):
    """Raised when a chat cycle attempts a transition outside the table."""

    def __init__(self, from_state: str, to_state: str) -> None:
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Illegal transition: {from_state} -> {to_state}")


class ChatCycle:
    """Tracks the state of a single request."""

    def __init__(self) -> None:
        self.state = IDLE
        self.history: List[str] = [IDLE]

    def transition(self, to_state: str) -> None:
        if self.state in TERMINAL_STATES or (self.state, to_state) not in LEGAL_TRANSITIONS:
            raise IllegalTransitionError(self.state, to_state)
        self.state = to_state
        self.history.append(to_state)

    def fail(self) -> None:
        if self.state not in TERMINAL_STATES:
            self.transition(FAILED)


def coerce_history(
    history: Optional[Iterable[Union[ConversationTurn, Mapping[str, Any]]]],
) -> List[ConversationTurn]:
    """Accept turns or ``{"role", "content"}`` mappings; anything not ``user`` is the assistant."""
    if history is not None and (isinstance(history, (str, Mapping)) or not isinstance(history, Iterable)):
        raise ValidationError("History must be a list of turns")
    turns: List[ConversationTurn] = []
    for item in history or []:
        if isinstance(item, ConversationTurn):
            turns.append(item)
            continue
        if not isinstance(item, Mapping):
            raise ValidationError("History entries must be objects with role and content")
        role = "user" if item.get("role") == "user" else "assistant"
        turns.append(ConversationTurn(role=role, content=str(item.get("content") or "")))
    return turns


def render_video_insight_context(record: VideoRecord) -> str:
    insight_lines = "\n".join(
        f"- {item.insight} ({item.type}, certainty: {item.certainty})" for item in record.insights
    )
    return (
        f"VIDEO TRANSCRIPT:\n{record.transcript}\n\n"
        f"VIDEO SUMMARY:\n{record.summary}\n\n"
        f"SCREEN CONTENT:\n{record.screen_content}\n\n"
        f"TOPICS: {', '.join(record.topics)}\n"
        f"TAGS: {', '.join(record.tags)}\n\n"
        f"INSIGHTS:\n{insight_lines}"
    )


def error_response(exc: Exception) -> Tuple[Dict[str, str], int]:
    """Map an error onto the structured ``({"error": ...}, status)`` reply."""
    if isinstance(exc, ValidationError):
        return {"error": str(exc) or "Message is required"}, 400
    if isinstance(exc, RecordNotFound):
        return {"error": str(exc)}, 404
    if isinstance(exc, ModelCallError):
        return {"error": f"Model call failed: {exc}"}, 500
    return {"error": "Failed to process chat message"}, 500


class ChatOrchestrator:
    """Glues a corpus source, the context assembler and a chat model together.

    The source is passed in explicitly and only read. Model calls run on a
    small worker pool so a slow call is abandoned after ``timeout_seconds``.
    """

    def __init__(
        self,
        source: CorpusSource,
        model: ChatModel,
        config: Optional[ChatConfig] = None,
        default_limit: int = DEFAULT_LIMIT,
        max_context_chars: Optional[int] = None,
        max_workers: int = 4,
    ):
        self.source = source
        self.model = model
        self.config = config or ChatConfig()
        self.default_limit = default_limit
        self.max_context_chars = max_context_chars
        self.params = GenerationParams.from_config(self.config)
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="model-call")

    def _call_model(
        self,
        turns: Sequence[ConversationTurn],
        system_instruction: str,
        params: GenerationParams,
    ) -> str:
        future = self._executor.submit(self.model.generate, turns, system_instruction, params)
        try:
            return future.result(timeout=self.config.timeout_seconds)
        except FutureTimeoutError as exc:
            future.cancel()
            raise ModelCallError(
                f"Model call timed out after {self.config.timeout_seconds}s"
            ) from exc
        except ModelCallError:
            raise
        except Exception as exc:
            raise ModelCallError(str(exc) or exc.__class__.__name__) from exc

    def chat(
        self,
        message: Optional[str],
        history: Optional[Iterable[Union[ConversationTurn, Mapping[str, Any]]]] = None,
        limit: Optional[int] = None,
    ) -> ChatResponse:
        """Answer ``message`` in the recorded person's voice."""
        cycle = ChatCycle()
        if not isinstance(message, str) or not message.strip():
            cycle.fail()
            raise ValidationError("Message is required")

        cycle.transition(RETRIEVING)
        try:
            ranked = self.source.retrieve(message, limit or self.default_limit)
        except RetrievalUnavailable as exc:
            logger.warning("Retrieval unavailable, answering without sources: %s", exc)
            ranked = []
        except Exception:
            cycle.fail()
            raise

        cycle.transition(ASSEMBLING)
        try:
            block = assemble_context(ranked, limit or self.default_limit, self.max_context_chars)
            turns = build_turns(coerce_history(history), message, self.config.history_window)
        except Exception:
            cycle.fail()
            raise

        cycle.transition(AWAITING_MODEL)
        try:
            text = self._call_model(turns, block.system_instruction(), self.params)
        except ModelCallError as exc:
            cycle.fail()
            logger.error("Model call failed: %s", exc)
            raise
        cycle.transition(DONE)

        sources = [
            SourceRef(id=item.record.id, summary=item.record.summary, score=item.score)
            for item in ranked[: len(block.record_blocks)]
        ]
        return ChatResponse(response=text.strip(), sources=sources, states=list(cycle.history))

    def ask_about_video(self, video_id: Optional[str], question: Optional[str] = None) -> Dict[str, Any]:
        """Answer a factual question about a single record."""
        if not video_id:
            raise ValidationError("Video ID is required")
        record = self.source.get(video_id)
        if record is None:
            raise RecordNotFound(video_id)

        prompt = (
            f"VIDEO CONTEXT:\n{render_video_insight_context(record)}\n\n"
            f"QUESTION: {question or DEFAULT_VIDEO_QUESTION}"
        )
        try:
            text = self._call_model(
                [ConversationTurn(role="user", content=prompt)],
                VIDEO_INSIGHT_INSTRUCTION,
                FACTUAL_PARAMS,
            )
        except ModelCallError as exc:
            logger.error("Video insight call failed for %s: %s", video_id, exc)
            raise
        return {"insights": text.strip(), "videoId": video_id, "topics": record.topics, "tags": record.tags}

    def handle(self, payload: Mapping[str, Any]) -> Tuple[Dict[str, Any], int]:
        """Process a ``{"message", "history"}`` request into ``(body, status)``."""
        try:
            if not isinstance(payload, Mapping):
                raise ValidationError("Message is required")
            result = self.chat(payload.get("message"), payload.get("history"))
        except (ValidationError, ModelCallError) as exc:
            return error_response(exc)
        except Exception as exc:
            logger.exception("Failed to process chat message")
            return error_response(exc)
        return result.to_dict(), 200

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
