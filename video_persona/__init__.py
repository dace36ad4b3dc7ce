"""Persona chat over a corpus of analyzed video transcripts."""

from .config import AppConfig
from .pipeline import PersonaChatPipeline

__all__ = ["AppConfig", "PersonaChatPipeline"]
