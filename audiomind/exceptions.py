"""
Error taxonomy for the transcription pipeline.

Every error raised inside the speech layer derives from TranscriptionError so the
orchestrator can convert it into a failure outcome with a readable message.
"""

from typing import Optional


class TranscriptionError(Exception):
    """Base class for all transcription pipeline errors."""


class ConfigurationError(TranscriptionError):
    """Missing or invalid credential/collaborator; raised before any network call."""


class ProviderError(TranscriptionError):
    """Non-2xx response or failed operation reported by the speech provider."""

    def __init__(self, message: str, status_code: int = 0, provider_message: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.provider_message = provider_message


class OperationTimeoutError(TranscriptionError):
    """A long-running operation did not finish within the polling ceiling."""


class ChunkingError(TranscriptionError):
    """Chunked transcription produced no usable chunk results."""


class SummarizationError(Exception):
    """Raised by the summarizer collaborator when a summary cannot be produced."""
