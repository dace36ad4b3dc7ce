"""Wiring of config, corpus source, model and orchestrator."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from . import catalog
from .chat import ChatOrchestrator
from .config import AppConfig
from .embeddings import ChromaIndex
from .llm import ChatModel, GeminiChatModel
from .retrieval import CorpusSource, IndexSource, ScanSource
from .schemas import ChatResponse, ConversationTurn


logger = logging.getLogger(__name__)


def build_source(config: AppConfig) -> CorpusSource:
    """Pick the retrieval backend. Nothing downstream branches on it."""
    if config.corpus.backend == "index":
        logger.info("Using Chroma index backend (%s)", config.index.collection_name)
        return IndexSource(ChromaIndex(config.index, config.paths.chroma_dir))
    logger.info("Using directory scan backend (%s)", config.paths.dataset_dir)
    return ScanSource(config.paths.dataset_dir)


class PersonaChatPipeline:
    """High-level entry point owning the process-wide corpus handle."""

    def __init__(
        self,
        config: AppConfig,
        source: Optional[CorpusSource] = None,
        model: Optional[ChatModel] = None,
    ):
        self.config = config
        self.source = source or build_source(config)
        self.model = model or GeminiChatModel(
            model=config.chat.model,
            google_api_key=config.google_api_key,
            timeout_seconds=config.chat.timeout_seconds,
        )
        self.orchestrator = ChatOrchestrator(
            source=self.source,
            model=self.model,
            config=config.chat,
            default_limit=config.corpus.default_limit,
            max_context_chars=config.context.max_chars,
        )

    def chat(
        self,
        message: Optional[str],
        history: Optional[Iterable[Union[ConversationTurn, Mapping[str, Any]]]] = None,
    ) -> ChatResponse:
        return self.orchestrator.chat(message, history)

    def ask_about_video(self, video_id: str, question: Optional[str] = None) -> Dict[str, Any]:
        return self.orchestrator.ask_about_video(video_id, question)

    def videos(self) -> List[Dict[str, Any]]:
        return catalog.list_videos(self.source)

    def topics(self) -> Dict[str, Any]:
        return catalog.topic_catalog(self.source)

    def transcript(self, video_id: str) -> Dict[str, Any]:
        return catalog.get_transcript(self.source, video_id)

    def close(self) -> None:
        self.orchestrator.close()
        self.source.close()

    def __enter__(self) -> "PersonaChatPipeline":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
