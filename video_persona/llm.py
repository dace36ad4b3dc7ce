"""Generative model adapter: role-tagged turns + system instruction in, text out."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

from google import genai
from google.genai import types as genai_types

from .config import ChatConfig
from .errors import ModelCallError
from .schemas import ConversationTurn


logger = logging.getLogger(__name__)

ROLE_MAP = {"user": "user", "assistant": "model"}


@dataclass(frozen=True)
class GenerationParams:
    temperature: float = 0.7
    top_k: int = 40
    top_p: float = 0.95
    max_output_tokens: int = 1000

    @classmethod
    def from_config(cls, config: ChatConfig) -> "GenerationParams":
        return cls(
            temperature=config.temperature,
            top_k=config.top_k,
            top_p=config.top_p,
            max_output_tokens=config.max_output_tokens,
        )


FACTUAL_PARAMS = GenerationParams(temperature=0.2, max_output_tokens=800)


class ChatModel(Protocol):
    def generate(
        self,
        turns: Sequence[ConversationTurn],
        system_instruction: str,
        params: GenerationParams,
    ) -> str:
        ...


def to_contents(turns: Sequence[ConversationTurn]) -> List[genai_types.Content]:
    """Map conversation turns onto Gemini contents; unknown roles become ``user``."""
    return [
        genai_types.Content(
            role=ROLE_MAP.get(turn.role, "user"),
            parts=[genai_types.Part(text=turn.content)],
        )
        for turn in turns
    ]


class GeminiChatModel:
    """Gemini-backed ``ChatModel``."""

    def __init__(
        self,
        model: str = "gemini-2.0-flash",
        google_api_key: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.model = model
        self.api_key = google_api_key or os.getenv("GEMINI_API_KEY")
        if self.api_key:
            http_options = None
            if timeout_seconds:
                http_options = genai_types.HttpOptions(timeout=int(timeout_seconds * 1000))
            self.client = genai.Client(api_key=self.api_key, http_options=http_options)
        else:
            self.client = None

    def generate(
        self,
        turns: Sequence[ConversationTurn],
        system_instruction: str,
        params: GenerationParams,
    ) -> str:
        if not self.client:
            raise ModelCallError("GEMINI_API_KEY is not configured")
        try:
            resp = self.client.models.generate_content(
                model=self.model,
                contents=to_contents(turns),
                config=genai_types.GenerateContentConfig(
                    system_instruction=system_instruction,
                    temperature=params.temperature,
                    top_k=params.top_k,
                    top_p=params.top_p,
                    max_output_tokens=params.max_output_tokens,
                ),
            )
        except Exception as exc:
            raise ModelCallError(str(exc) or exc.__class__.__name__) from exc

        text = resp.text
        if not text:
            raise ModelCallError("Model returned an empty response")
        return text
