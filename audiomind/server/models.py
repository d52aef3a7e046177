"""
Data models for the processing server.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from ..speech.models import AudioMetadata, AudioPayload, SummaryResult, Task, TranscriptionResult


class JobStatus(Enum):
    """Queue status of a processing job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class SessionStatus(Enum):
    """Status published to the session store."""

    PENDING = "pending"
    TRANSCRIBING = "transcribing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ProcessingOptions:
    """Options for one pipeline run."""

    language: str = "en-US"
    alternative_languages: List[str] = field(default_factory=list)
    enable_speaker_diarization: bool = True
    min_speakers: int = 1
    max_speakers: int = 6
    enable_punctuation: bool = True
    enable_word_timestamps: bool = True
    generate_summary: bool = True
    extract_tasks: bool = False
    summary_length: str = "medium"
    model: str = "latest_long"
    use_enhanced: bool = False
    session_id: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ProcessingOptions":
        """Build options from a JSON dictionary, ignoring unknown keys."""
        known = cls.__dataclass_fields__
        return cls(**{k: v for k, v in (data or {}).items() if k in known})


@dataclass
class ProcessingOutcome:
    """Result of one orchestrator run: either a success or a failure."""

    success: bool
    processing_time: float
    transcription: Optional[TranscriptionResult] = None
    summary: Optional[SummaryResult] = None
    tasks: List[Task] = field(default_factory=list)
    metadata: Optional[AudioMetadata] = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str, processing_time: float) -> "ProcessingOutcome":
        return cls(success=False, processing_time=processing_time, error=error)


@dataclass(eq=False)
class ProcessingJob:
    """A queued pipeline run for one audio payload."""

    payload: AudioPayload
    session_id: str
    options: ProcessingOptions = field(default_factory=ProcessingOptions)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: JobStatus = JobStatus.PENDING
    progress: float = 0.0
    stage: str = "Queued for processing"
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "file_name": self.payload.name,
            "file_size": self.payload.size,
            "status": self.status.value,
            "progress": self.progress,
            "stage": self.stage,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error": self.error,
        }


@dataclass
class NotificationAction:
    label: str
    target: str


@dataclass
class Notification:
    """A user-facing event; duration_ms None means it stays until dismissed."""

    type: str
    title: str
    message: str = ""
    duration_ms: Optional[int] = 5000
    action: Optional[NotificationAction] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "duration_ms": self.duration_ms,
            "action": {"label": self.action.label, "target": self.action.target} if self.action else None,
            "created_at": self.created_at.isoformat(),
        }
