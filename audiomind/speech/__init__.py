"""
Speech layer: configuration, transcription strategies and collaborators.

Main components:
- resolve_speech_config / build_request_config: options to provider request config
- SpeechTranscriptionEngine: sync, chunked and submit-and-poll transcription
- ChunkProcessor: overlapping chunk split and merge
- AudioMetadataProbe: duration, sample rate and channel probing
- TranscriptSummarizer / TaskExtractor: summary and task collaborators

Example usage:
    from audiomind.speech import (
        ApiKeyCredential, AudioPayload, SpeechTranscriptionEngine, detect_audio_encoding, resolve_speech_config
    )

    engine = SpeechTranscriptionEngine(ApiKeyCredential("..."))
    config = resolve_speech_config(language="en-US", encoding=detect_audio_encoding("audio/webm"))
    result = engine.transcribe(AudioPayload(data, "audio/webm"), config)
"""

from .chunking import AudioChunk, ChunkProcessor, combine_chunk_results, split_into_chunks
from .config_resolver import build_request_config, detect_audio_encoding, resolve_speech_config
from .credentials import ApiKeyCredential, ServiceAccountCredential, credential_from_config
from .google_speech import (
    ChunkedStrategy,
    SpeechTranscriptionEngine,
    SubmitPollStrategy,
    SyncStrategy,
    normalize_response,
    select_strategy,
)
from .metadata import AudioMetadataProbe
from .models import (
    AudioEncoding,
    AudioMetadata,
    AudioPayload,
    SpeakerInfo,
    SpeechConfig,
    SummaryResult,
    Task,
    TranscriptionResult,
    TranscriptionSegment,
)
from .storage import GCSObjectStorage
from .summarizer import TranscriptSummarizer
from .task_extractor import TaskExtractor

__all__ = [
    "AudioChunk",
    "AudioEncoding",
    "AudioMetadata",
    "AudioMetadataProbe",
    "AudioPayload",
    "ApiKeyCredential",
    "ChunkProcessor",
    "ChunkedStrategy",
    "GCSObjectStorage",
    "ServiceAccountCredential",
    "SpeakerInfo",
    "SpeechConfig",
    "SpeechTranscriptionEngine",
    "SubmitPollStrategy",
    "SummaryResult",
    "SyncStrategy",
    "Task",
    "TaskExtractor",
    "TranscriptSummarizer",
    "TranscriptionResult",
    "TranscriptionSegment",
    "build_request_config",
    "combine_chunk_results",
    "credential_from_config",
    "detect_audio_encoding",
    "normalize_response",
    "resolve_speech_config",
    "select_strategy",
    "split_into_chunks",
]
