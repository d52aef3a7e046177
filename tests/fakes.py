"""
Test doubles for the HTTP session, probe, storage and pipeline collaborators.
"""

import threading
import time
from typing import Any, Callable, Dict, List, Optional

from audiomind.exceptions import SummarizationError
from audiomind.server.models import ProcessingOutcome
from audiomind.speech.models import AudioMetadata, SummaryResult, TranscriptionResult


def recognize_response(*results: Dict[str, Any]) -> Dict[str, Any]:
    return {"results": list(results)}


def speech_result(
    text: str, start: float = 0.0, end: float = 1.0, confidence: Optional[float] = 0.9, speaker_tag=None
) -> Dict[str, Any]:
    """One provider result whose words are spread evenly between start and end."""
    words = text.split()
    step = (end - start) / max(len(words), 1)
    word_entries = []
    for i, word in enumerate(words):
        entry = {
            "word": word,
            "startTime": f"{start + i * step:.3f}s",
            "endTime": f"{start + (i + 1) * step:.3f}s",
        }
        if speaker_tag is not None:
            entry["speakerTag"] = speaker_tag
        word_entries.append(entry)

    alternative: Dict[str, Any] = {"transcript": text, "words": word_entries}
    if confidence is not None:
        alternative["confidence"] = confidence
    return {"alternatives": [alternative]}


class FakeResponse:
    def __init__(self, status_code: int = 200, json_data: Any = None, reason: str = "OK"):
        self.status_code = status_code
        self.reason = reason
        self._json = json_data

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        if self._json is None:
            raise ValueError("No JSON body")
        return self._json


class FakeSession:
    """
    Records requests and answers them with a handler.

    The handler receives (method, url, body) and returns a FakeResponse, or
    raises to simulate a transport error.
    """

    def __init__(self, handler: Callable[[str, str, Any], FakeResponse]):
        self.handler = handler
        self.calls: List[Dict[str, Any]] = []

    def request(self, method, url, params=None, headers=None, json=None, timeout=None):
        self.calls.append(
            {"method": method, "url": url, "params": params, "headers": headers, "json": json, "timeout": timeout}
        )
        return self.handler(method, url, json)


class FakeLongRunningCredential:
    supports_long_running = True

    def apply(self, params, headers):
        headers["Authorization"] = "Bearer test-token"


class FakeProbe:
    def __init__(self, duration: float = 30.0, sample_rate: int = 48000, channels: int = 1, error: Exception = None):
        self.duration = duration
        self.sample_rate = sample_rate
        self.channels = channels
        self.error = error
        self.calls = 0

    def probe(self, payload):
        self.calls += 1
        if self.error:
            raise self.error
        return AudioMetadata(
            duration=self.duration, sample_rate=self.sample_rate, channels=self.channels, format=payload.mime_type
        )


class FakeStorage:
    def __init__(self, bucket: str = "test-bucket", delete_error: Exception = None):
        self.bucket = bucket
        self.delete_error = delete_error
        self.uploads: List[Dict[str, Any]] = []
        self.deleted: List[str] = []

    def upload(self, data, destination_name, content_type=None):
        self.uploads.append({"name": destination_name, "size": len(data), "content_type": content_type})
        return f"gs://{self.bucket}/{destination_name}"

    def delete(self, location):
        if self.delete_error:
            raise self.delete_error
        self.deleted.append(location)


class FakeSummarizer:
    def __init__(self, result: SummaryResult = None, error: Exception = None):
        self.result = result or SummaryResult(summary="A useful summary.", provider="openai", confidence=0.85)
        self.error = error
        self.calls: List[str] = []
        self.lengths: List[Optional[str]] = []

    def summarize(self, text, length=None):
        self.calls.append(text)
        self.lengths.append(length)
        if self.error:
            raise self.error
        return self.result


class FailingSummarizer(FakeSummarizer):
    def __init__(self):
        super().__init__(error=SummarizationError("Summary generation failed: quota exceeded"))


def make_result(transcript: str, duration: float = 30.0) -> TranscriptionResult:
    return TranscriptionResult(
        provider="google",
        model="latest_long",
        language="en-US",
        confidence=0.9,
        processing_time=0.1,
        transcript=transcript,
        audio_duration=duration,
    )


class FakeEngine:
    def __init__(self, transcript: str = "hello world", error: Exception = None, progress_steps=(0, 50, 100)):
        self.transcript = transcript
        self.error = error
        self.progress_steps = progress_steps
        self.calls: List[Dict[str, Any]] = []

    def transcribe(self, payload, config, progress=None, duration=None):
        self.calls.append({"payload": payload, "config": config, "duration": duration})
        for step in self.progress_steps:
            if progress:
                progress(step, f"engine {step}")
        if self.error:
            raise self.error
        return make_result(self.transcript, duration or 0.0)


class FakeOrchestrator:
    """
    Stands in for the pipeline in queue tests.

    Payloads whose name starts with "fail" produce a failure outcome. While a
    gate is set, runs block until it is opened. The peak number of
    simultaneous runs is recorded.
    """

    def __init__(self, delay: float = 0.0, gate: threading.Event = None):
        self.delay = delay
        self.gate = gate
        self.active = 0
        self.peak = 0
        self.runs: List[str] = []
        self._lock = threading.Lock()

    def run(self, payload, options=None, progress=None):
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
            self.runs.append(payload.name)

        try:
            if progress:
                progress(10, "Extracting audio metadata...")
            if self.gate is not None:
                self.gate.wait(5)
            if self.delay:
                time.sleep(self.delay)
            if progress:
                progress(60, "Transcription completed")

            if payload.name.startswith("fail"):
                return ProcessingOutcome.failure("Google Speech API error: 500 Internal Server Error.", 0.01)
            return ProcessingOutcome(
                success=True,
                processing_time=0.01,
                transcription=make_result(f"transcript of {payload.name}"),
                metadata=AudioMetadata(duration=30.0, sample_rate=48000, format=payload.mime_type),
            )
        finally:
            with self._lock:
                self.active -= 1


class RecordingStore:
    """In-memory session sink."""

    def __init__(self):
        self.sessions: Dict[str, Dict[str, Any]] = {}
        self.updates: List[tuple] = []
        self._lock = threading.Lock()
        self._counter = 0

    def create_session(self, fields):
        with self._lock:
            self._counter += 1
            session_id = f"session-{self._counter}"
            self.sessions[session_id] = dict(fields)
        return session_id

    def update_session(self, session_id, fields):
        with self._lock:
            self.sessions[session_id].update(fields)
            self.updates.append((session_id, dict(fields)))
