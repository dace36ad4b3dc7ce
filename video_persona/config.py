"""Configuration loading for the video persona chat core."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


BACKENDS = ("scan", "index")


def _resolve_path(raw_path: str, base_dir: Path) -> str:
    path = Path(raw_path).expanduser()
    if not path.is_absolute():
        path = (base_dir / path).resolve()
    return str(path)


@dataclass
class PathsConfig:
    """Filesystem locations for the corpus."""

    dataset_dir: str = "video-dataset"
    chroma_dir: str = "data/chroma"


@dataclass
class CorpusConfig:
    """Which backend answers retrieval, and how many records it returns."""

    backend: str = "scan"
    default_limit: int = 5


@dataclass
class IndexConfig:
    """Chroma connection and embedding settings."""

    url: Optional[str] = None
    collection_name: str = "videos"
    model_name: str = "all-MiniLM-L6-v2"


@dataclass
class ChatConfig:
    """Model call settings for persona chat."""

    model: str = "gemini-2.0-flash"
    temperature: float = 0.7
    top_k: int = 40
    top_p: float = 0.95
    max_output_tokens: int = 1000
    history_window: int = 10
    timeout_seconds: float = 60.0


@dataclass
class ContextConfig:
    """Optional size budget for the assembled video context."""

    max_chars: Optional[int] = None


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class AppConfig:
    """Top-level app configuration."""

    paths: PathsConfig = field(default_factory=PathsConfig)
    corpus: CorpusConfig = field(default_factory=CorpusConfig)
    index: IndexConfig = field(default_factory=IndexConfig)
    chat: ChatConfig = field(default_factory=ChatConfig)
    context: ContextConfig = field(default_factory=ContextConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    google_api_key: Optional[str] = None

    def __post_init__(self) -> None:
        if self.corpus.backend not in BACKENDS:
            raise ValueError(
                f"Unknown corpus backend {self.corpus.backend!r}; expected one of {BACKENDS}"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Optional[Path] = None) -> "AppConfig":
        """Build config from a dictionary, applying environment overrides."""
        base = Path.cwd() if base_dir is None else base_dir

        paths_data = data.get("paths", {})
        dataset_dir = os.getenv("VIDEO_DATASET_PATH") or paths_data.get("dataset_dir", "video-dataset")
        paths = PathsConfig(
            dataset_dir=_resolve_path(dataset_dir, base),
            chroma_dir=_resolve_path(paths_data.get("chroma_dir", "data/chroma"), base),
        )

        corpus = CorpusConfig(**data.get("corpus", {}))
        index = IndexConfig(**data.get("index", {}))
        if os.getenv("CHROMADB_URL"):
            index.url = os.getenv("CHROMADB_URL")
        chat = ChatConfig(**data.get("chat", {}))
        context = ContextConfig(**data.get("context", {}))
        logging_cfg = LoggingConfig(**data.get("logging", {}))

        return cls(
            paths=paths,
            corpus=corpus,
            index=index,
            chat=chat,
            context=context,
            logging=logging_cfg,
            google_api_key=data.get("google_api_key") or os.getenv("GEMINI_API_KEY"),
        )

    @classmethod
    def from_yaml(cls, path: str) -> "AppConfig":
        """Load config from YAML."""
        config_path = Path(path).resolve()
        with config_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        return cls.from_dict(data, base_dir=config_path.parent)
