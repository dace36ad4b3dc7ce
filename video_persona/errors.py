"""Error kinds raised by the chat core, each with an HTTP-equivalent status."""

from __future__ import annotations


class VideoPersonaError(Exception):
    """Base class for all chat core errors."""

    status_code = 500


class ValidationError(VideoPersonaError):
    """Request is missing required input; raised before any retrieval."""

    status_code = 400


class RetrievalUnavailable(VideoPersonaError):
    """Corpus unreachable or malformed as a whole."""

    status_code = 503


class RecordMalformed(VideoPersonaError):
    """A single stored record cannot be parsed or normalized."""

    status_code = 422

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"Malformed record {source}: {reason}")


class RecordNotFound(VideoPersonaError):
    status_code = 404

    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        super().__init__(f"Video data not found: {record_id}")


class ModelCallError(VideoPersonaError):
    """The generative model call failed or timed out."""

    status_code = 502
