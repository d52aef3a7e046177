"""
Speech-to-text transcription against the Google Speech REST API.

The engine chooses one of three strategies per payload:
- SyncStrategy: a single speech:recognize call for audio up to 60 seconds
- ChunkedStrategy: overlapping chunks through speech:recognize, for longer
  audio when only an API key is available
- SubmitPollStrategy: object-storage upload plus speech:longrunningrecognize,
  polled until done, for longer audio with a service-account credential

Every provider response goes through the same normalization so callers get
an identical TranscriptionResult shape whichever strategy ran.
"""

import base64
import logging
import time
import uuid
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import requests
from requests.exceptions import RequestException

from ..exceptions import ConfigurationError, OperationTimeoutError, ProviderError, TranscriptionError
from .chunking import ChunkProcessor
from .config_resolver import build_request_config
from .metadata import AudioMetadataProbe, suffix_for_mime
from .models import (
    AudioPayload,
    LongRunningOperation,
    SpeakerInfo,
    SpeechConfig,
    TranscriptionResult,
    TranscriptionSegment,
    WordInfo,
)
from .utils import format_timestamp, get_speaker_color, parse_time

logger = logging.getLogger(__name__)

SYNC_LIMIT_SECONDS = 60.0
SYNC_NOTE_THRESHOLD_SECONDS = 58.0
POLL_INTERVAL_SECONDS = 5.0
MAX_POLL_ATTEMPTS = 120
REQUEST_TIMEOUT_SECONDS = 120.0

ProgressCallback = Callable[[float, str], None]


def _no_progress(percent: float, stage: str) -> None:
    pass


def normalize_response(
    data: Dict[str, Any], config: SpeechConfig, processing_time: float
) -> TranscriptionResult:
    """
    Convert a recognize/longrunningrecognize response into a TranscriptionResult.

    Results without a usable top transcript are dropped, identical transcripts
    coming from separate channels are kept once, and confidence is the mean of
    the numeric top-alternative confidences (0 when none are present).
    """
    results = data.get("results") or []
    usable = [r for r in results if ((r.get("alternatives") or [{}])[0].get("transcript") or "").strip()]

    transcripts: List[str] = []
    for result in usable:
        text = result["alternatives"][0]["transcript"].strip()
        if text not in transcripts:
            transcripts.append(text)

    confidences = [
        r["alternatives"][0]["confidence"]
        for r in usable
        if isinstance(r["alternatives"][0].get("confidence"), (int, float))
    ]
    confidence = sum(confidences) / len(confidences) if confidences else 0.0

    return TranscriptionResult(
        provider="google",
        model=config.model or "latest_long",
        language=config.language_code,
        confidence=confidence,
        processing_time=processing_time,
        transcript=" ".join(transcripts),
        segments=extract_segments(results),
        speakers=extract_speakers(results) if config.enable_speaker_diarization else [],
    )


def extract_segments(results: List[Dict[str, Any]]) -> List[TranscriptionSegment]:
    segments = []
    for index, result in enumerate(results):
        alternative = (result.get("alternatives") or [{}])[0]
        text = (alternative.get("transcript") or "").strip()
        if not text:
            continue

        words = alternative.get("words") or []
        segments.append(
            TranscriptionSegment(
                id=f"segment-{index}",
                start_time=parse_time(words[0].get("startTime")) if words else 0.0,
                end_time=parse_time(words[-1].get("endTime")) if words else 0.0,
                text=text,
                confidence=alternative.get("confidence") or 0.0,
                words=[
                    WordInfo(
                        word=w.get("word", ""),
                        start_time=parse_time(w.get("startTime")),
                        end_time=parse_time(w.get("endTime")),
                    )
                    for w in words
                ],
                speaker_id=words[0].get("speakerTag") if words else None,
            )
        )
    return segments


def extract_speakers(results: List[Dict[str, Any]]) -> List[SpeakerInfo]:
    speakers: Dict[int, SpeakerInfo] = {}
    for result in results:
        alternative = (result.get("alternatives") or [{}])[0]
        for word in alternative.get("words") or []:
            tag = word.get("speakerTag")
            if not tag:
                continue
            if tag not in speakers:
                speakers[tag] = SpeakerInfo(id=tag, name=f"Speaker {tag}", color=get_speaker_color(tag))
            speakers[tag].total_duration += parse_time(word.get("endTime")) - parse_time(word.get("startTime"))
    return list(speakers.values())


class OperationState(Enum):
    """States of the submit-and-poll path."""

    UPLOADING = "uploading"
    SUBMITTED = "submitted"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class SyncStrategy:
    """Single synchronous recognition call."""

    name = "sync"

    def execute(self, engine, payload, config, duration, progress) -> TranscriptionResult:
        result = engine.recognize(payload, config)
        result.audio_duration = duration

        if duration > SYNC_NOTE_THRESHOLD_SECONDS:
            result.transcript = (
                f"[Note: Audio was {duration:.1f}s long. Google Speech API limit is 60s for sync requests. "
                f"Only processed portion shown.]\n\n{result.transcript}"
            )
        return result


class ChunkedStrategy:
    """Overlapping chunks recognized one at a time."""

    name = "chunked"

    def execute(self, engine, payload, config, duration, progress) -> TranscriptionResult:
        return engine.chunk_processor.transcribe_in_chunks(payload, config, duration, progress)


class SubmitPollStrategy:
    """Upload to object storage, submit a long-running operation and poll it."""

    name = "submit_poll"

    def execute(self, engine, payload, config, duration, progress) -> TranscriptionResult:
        start_time = time.time()
        if engine.storage is None:
            raise ConfigurationError("Long audio transcription requires object storage to be configured")

        state = OperationState.UPLOADING
        progress(10, "Uploading audio to cloud storage...")
        destination = f"audio-{uuid.uuid4().hex}{suffix_for_mime(payload.mime_type)}"
        location = engine.storage.upload(payload.data, destination, payload.mime_type)

        try:
            progress(30, "Starting transcription process...")
            operation_name = engine.submit_long_running(location, config)
            state = OperationState.SUBMITTED
            logger.info(f"Operation {operation_name} submitted for {location}")

            progress(50, "Processing audio (this may take a few minutes)...")
            state = OperationState.POLLING
            response = engine.poll_operation(operation_name, progress)
            state = OperationState.COMPLETED
        except OperationTimeoutError:
            state = OperationState.TIMED_OUT
            raise
        except TranscriptionError:
            state = OperationState.FAILED
            raise
        finally:
            logger.info(f"Long-running recognition for {location} ended in state {state.value}")
            progress(95, "Cleaning up...")
            engine.cleanup(location)

        result = normalize_response(response, config, time.time() - start_time)
        result.audio_duration = duration
        progress(100, "Transcription complete!")
        return result


def select_strategy(duration: float, credential) -> Any:
    """Pick the strategy for a payload of the given duration."""
    if duration <= SYNC_LIMIT_SECONDS:
        return SyncStrategy()
    if getattr(credential, "supports_long_running", False):
        return SubmitPollStrategy()
    return ChunkedStrategy()


class SpeechTranscriptionEngine:
    """
    Transcribe audio with the Google Speech REST API.

    Collaborators are injected so each one can be replaced in tests: the HTTP
    session, the metadata probe, the object storage and the sleep function
    used between polls and chunk requests.
    """

    def __init__(
        self,
        credential,
        probe: Optional[AudioMetadataProbe] = None,
        storage=None,
        session: Optional[requests.Session] = None,
        base_url: str = "https://speech.googleapis.com/v1",
        poll_interval: float = POLL_INTERVAL_SECONDS,
        max_poll_attempts: int = MAX_POLL_ATTEMPTS,
        request_timeout: float = REQUEST_TIMEOUT_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        chunk_processor: Optional[ChunkProcessor] = None,
    ):
        """
        Args:
            credential: ApiKeyCredential or ServiceAccountCredential
            probe: Metadata probe used when no duration is supplied
            storage: Object storage for long-running recognition
            session: HTTP session
            base_url: Speech API base URL
            poll_interval: Seconds between operation polls
            max_poll_attempts: Polls before giving up
            request_timeout: Per-request HTTP timeout in seconds
            sleep: Sleep function
            chunk_processor: Chunk processor (built from this engine by default)
        """
        if credential is None:
            raise ConfigurationError("Google API key not configured")
        self.credential = credential
        self.probe = probe or AudioMetadataProbe()
        self.storage = storage
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts
        self.request_timeout = request_timeout
        self.sleep = sleep
        self.chunk_processor = chunk_processor or ChunkProcessor(self.recognize, sleep=sleep)

    def transcribe(
        self,
        payload: AudioPayload,
        config: SpeechConfig,
        progress: Optional[ProgressCallback] = None,
        duration: Optional[float] = None,
    ) -> TranscriptionResult:
        """
        Transcribe a payload with the strategy suited to its duration.

        Args:
            payload: Audio to transcribe
            config: Resolved speech configuration
            progress: Listener receiving (percent, stage)
            duration: Known duration in seconds; probed when omitted

        Returns:
            Normalized TranscriptionResult

        Raises:
            TranscriptionError: On configuration, provider, timeout or chunking failure
        """
        if duration is None:
            duration = self.probe.probe(payload).duration

        strategy = select_strategy(duration, self.credential)
        logger.info(f"Transcribing {payload.name} ({duration:.1f}s) with {strategy.name} strategy")
        return strategy.execute(self, payload, config, duration, progress or _no_progress)

    def recognize(self, payload: AudioPayload, config: SpeechConfig) -> TranscriptionResult:
        """Run one synchronous recognition request."""
        start_time = time.time()
        request_body = {
            "config": build_request_config(config),
            "audio": {"content": base64.b64encode(payload.data).decode("ascii")},
        }
        data = self._post("speech:recognize", request_body, "Google Speech API error")
        return normalize_response(data, config, time.time() - start_time)

    def submit_long_running(self, location: str, config: SpeechConfig) -> str:
        """Submit a long-running recognition and return the operation name."""
        request_body = {
            "config": build_request_config(config, long_running=True),
            "audio": {"uri": location},
        }
        data = self._post("speech:longrunningrecognize", request_body, "Long-running recognition failed")
        operation = LongRunningOperation.from_dict(data)
        if not operation.name:
            raise ProviderError("Long-running recognition returned no operation name")
        return operation.name

    def poll_operation(self, operation_name: str, progress: ProgressCallback) -> Dict[str, Any]:
        """
        Poll an operation until it is done.

        Raises:
            ProviderError: If polling fails or the operation reports an error
            OperationTimeoutError: If the operation is still running after max_poll_attempts
        """
        for attempts in range(self.max_poll_attempts):
            data = self._request("GET", f"operations/{operation_name}", None, "Failed to poll operation")
            operation = LongRunningOperation.from_dict(data)

            if operation.done:
                if operation.error:
                    message = operation.error.get("message", "Unknown error")
                    raise ProviderError(
                        f"Operation failed: {message}",
                        status_code=operation.error.get("code", 0),
                        provider_message=message,
                    )
                return operation.response or {}

            elapsed = attempts * self.poll_interval
            percent = min(95, 50 + (attempts / self.max_poll_attempts) * 45)
            progress(percent, f"Processing audio... ({format_timestamp(elapsed)} elapsed)")
            self.sleep(self.poll_interval)

        ceiling_minutes = int(self.max_poll_attempts * self.poll_interval // 60)
        raise OperationTimeoutError(f"Transcription timed out after {ceiling_minutes} minutes")

    def cleanup(self, location: str) -> None:
        """Delete a transient object; never fails the transcription."""
        try:
            self.storage.delete(location)
        except Exception as e:
            logger.warning(f"Failed to clean up {location}: {e}")

    def _post(self, path: str, body: Dict[str, Any], error_prefix: str) -> Dict[str, Any]:
        return self._request("POST", path, body, error_prefix)

    def _request(self, method: str, path: str, body: Optional[Dict[str, Any]], error_prefix: str) -> Dict[str, Any]:
        params: Dict[str, str] = {}
        headers = {"Content-Type": "application/json"}
        self.credential.apply(params, headers)

        try:
            response = self.session.request(
                method,
                f"{self.base_url}/{path}",
                params=params,
                headers=headers,
                json=body,
                timeout=self.request_timeout,
            )
        except RequestException as e:
            raise ProviderError(f"{error_prefix}: {e}")

        if not response.ok:
            try:
                provider_message = response.json().get("error", {}).get("message", "")
            except ValueError:
                provider_message = ""
            raise ProviderError(
                f"{error_prefix}: {response.status_code} {response.reason}. {provider_message}".strip(),
                status_code=response.status_code,
                provider_message=provider_message,
            )

        try:
            return response.json()
        except ValueError:
            raise ProviderError(f"{error_prefix}: invalid JSON response", status_code=response.status_code)
