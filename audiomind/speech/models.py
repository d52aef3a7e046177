"""
Data models for the speech layer.

Plain dataclasses shared by the config resolver, the transcription engine,
the chunk processor and the orchestrator. Each result type can serialize
itself to a JSON-friendly dictionary for the session store.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class AudioEncoding(str, Enum):
    """Encodings accepted by the recognition endpoint."""

    LINEAR16 = "LINEAR16"
    FLAC = "FLAC"
    MULAW = "MULAW"
    AMR = "AMR"
    AMR_WB = "AMR_WB"
    OGG_OPUS = "OGG_OPUS"
    SPEEX_WITH_HEADER_BYTE = "SPEEX_WITH_HEADER_BYTE"
    WEBM_OPUS = "WEBM_OPUS"


@dataclass
class AudioPayload:
    """Raw audio bytes plus the container type declared by the uploader."""

    data: bytes
    mime_type: str = "audio/webm"
    name: str = "audio"

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class AudioMetadata:
    """Light metadata obtained by probing an audio payload."""

    duration: float
    sample_rate: int = 0
    channels: int = 1
    format: str = ""
    probed: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SpeechConfig:
    """Normalized recognition settings for one transcription attempt."""

    encoding: AudioEncoding = AudioEncoding.WEBM_OPUS
    language_code: str = "en-US"
    sample_rate_hertz: Optional[int] = None
    alternative_language_codes: Tuple[str, ...] = ()
    enable_speaker_diarization: bool = True
    min_speaker_count: int = 1
    max_speaker_count: int = 6
    enable_automatic_punctuation: bool = True
    enable_word_time_offsets: bool = True
    model: str = "latest_long"
    use_enhanced: bool = False


@dataclass
class WordInfo:
    word: str
    start_time: float
    end_time: float
    confidence: float = 1.0


@dataclass
class TranscriptionSegment:
    """A single recognized result with timing and optional speaker."""

    id: str
    start_time: float
    end_time: float
    text: str
    confidence: float = 0.0
    words: List[WordInfo] = field(default_factory=list)
    speaker_id: Optional[int] = None


@dataclass
class SpeakerInfo:
    id: int
    name: str
    total_duration: float = 0.0
    color: str = ""


@dataclass
class TranscriptionResult:
    """Canonical transcription result, independent of the strategy that produced it."""

    provider: str
    model: str
    language: str
    confidence: float
    processing_time: float
    transcript: str
    segments: List[TranscriptionSegment] = field(default_factory=list)
    speakers: List[SpeakerInfo] = field(default_factory=list)
    audio_duration: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a dictionary for JSON export."""
        return asdict(self)

    @property
    def word_count(self) -> int:
        return len(self.transcript.split())


@dataclass
class LongRunningOperation:
    """Handle returned by the long-running recognition endpoint."""

    name: str
    done: bool = False
    response: Optional[Dict[str, Any]] = None
    error: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LongRunningOperation":
        return cls(
            name=data.get("name", ""),
            done=bool(data.get("done", False)),
            response=data.get("response"),
            error=data.get("error"),
        )


@dataclass
class SummaryResult:
    """Summary produced by the summarizer collaborator or the local fallback."""

    summary: str
    key_points: List[str] = field(default_factory=list)
    topics: List[str] = field(default_factory=list)
    provider: str = "openai"
    model: str = ""
    generated_at: datetime = field(default_factory=datetime.now)
    confidence: float = 0.0
    word_count: int = 0
    compression_ratio: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["generated_at"] = self.generated_at.isoformat()
        return data


class TaskStatus(Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskPriority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


@dataclass
class Task:
    """An action item extracted from a transcript."""

    id: str
    session_id: str
    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[datetime] = None
    tags: List[str] = field(default_factory=list)
    confidence: float = 0.7
    source_text: str = ""
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority.value,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "tags": list(self.tags),
            "confidence": self.confidence,
            "source_text": self.source_text,
            "created_at": self.created_at.isoformat(),
        }
