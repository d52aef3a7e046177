"""
Chunked transcription for audio longer than the synchronous limit.

Used when the credential cannot reach object storage. The payload is split
into overlapping byte windows sized from the payload's byte-per-second ratio,
each window is recognized synchronously, and the partial results are merged
into one TranscriptionResult.

Failed chunks are skipped; only a run in which every chunk fails is an error.
"""

import logging
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional

from ..exceptions import ChunkingError, TranscriptionError
from .models import AudioPayload, SpeakerInfo, SpeechConfig, TranscriptionResult, TranscriptionSegment

logger = logging.getLogger(__name__)

CHUNK_DURATION_SECONDS = 50.0
CHUNK_OVERLAP_SECONDS = 5.0
CHUNK_REQUEST_DELAY_SECONDS = 0.5

ProgressCallback = Callable[[float, str], None]
Recognizer = Callable[[AudioPayload, SpeechConfig], TranscriptionResult]


@dataclass
class AudioChunk:
    """A byte-range slice of the source payload."""

    index: int
    start_byte: int
    end_byte: int
    data: bytes
    total_bytes: int
    total_duration: float

    @property
    def size(self) -> int:
        return self.end_byte - self.start_byte

    @property
    def nominal_offset(self) -> float:
        """Start time implied by the byte position, assuming a constant bitrate."""
        if self.total_bytes <= 0:
            return 0.0
        return self.start_byte / self.total_bytes * self.total_duration


def split_into_chunks(
    payload: AudioPayload,
    total_duration: float,
    chunk_duration: float = CHUNK_DURATION_SECONDS,
    overlap_duration: float = CHUNK_OVERLAP_SECONDS,
) -> List[AudioChunk]:
    """
    Split a payload into overlapping chunks.

    Args:
        payload: Source audio
        total_duration: Duration of the whole payload in seconds
        chunk_duration: Target duration of each chunk
        overlap_duration: Duration shared by adjacent chunks

    Returns:
        Chunks in order; a single chunk when the payload is too small to split
    """
    size = payload.size
    if size == 0:
        return []

    if total_duration <= 0:
        return [AudioChunk(0, 0, size, payload.data, size, total_duration)]

    chunk_size = int(size * chunk_duration // total_duration)
    overlap_size = int(size * overlap_duration // total_duration)

    if chunk_size <= overlap_size:
        return [AudioChunk(0, 0, size, payload.data, size, total_duration)]

    chunks: List[AudioChunk] = []
    offset = 0
    while offset < size:
        end = min(offset + chunk_size, size)
        if end > offset:
            chunks.append(AudioChunk(len(chunks), offset, end, payload.data[offset:end], size, total_duration))

        offset += chunk_size - overlap_size

        # The remaining tail is already covered by the previous chunk's overlap
        if offset >= size - overlap_size:
            break

    return chunks


def combine_chunk_results(
    chunk_results: List[TranscriptionResult], config: SpeechConfig, processing_time: float
) -> TranscriptionResult:
    """
    Merge per-chunk results into a single result.

    Segment times are re-based by a running offset that grows by the end time
    of each chunk's last segment. This approximates chunk boundaries from
    speech content and drifts when a chunk ends in silence or the overlap
    holds speech twice.

    Raises:
        ChunkingError: If there are no chunk results
    """
    if not chunk_results:
        raise ChunkingError("No successful chunk transcriptions")

    transcripts = [result.transcript.strip() for result in chunk_results if result.transcript.strip()]
    combined_transcript = " ".join(transcripts)

    confidences = [result.confidence for result in chunk_results if result.confidence > 0]
    confidence = sum(confidences) / len(confidences) if confidences else 0.0

    combined_segments: List[TranscriptionSegment] = []
    time_offset = 0.0
    for chunk_index, result in enumerate(chunk_results):
        for segment in result.segments:
            combined_segments.append(
                replace(
                    segment,
                    id=f"chunk-{chunk_index}-{segment.id}",
                    start_time=segment.start_time + time_offset,
                    end_time=segment.end_time + time_offset,
                )
            )
        if result.segments:
            time_offset += result.segments[-1].end_time

    # Multi-channel results may restart at zero within a chunk
    combined_segments.sort(key=lambda seg: seg.start_time)

    speakers: Dict[int, SpeakerInfo] = {}
    for result in chunk_results:
        for speaker in result.speakers:
            if speaker.id not in speakers:
                speakers[speaker.id] = replace(speaker, total_duration=0.0)
            speakers[speaker.id].total_duration += speaker.total_duration

    return TranscriptionResult(
        provider="google",
        model=config.model or "latest_long",
        language=config.language_code,
        confidence=confidence,
        processing_time=processing_time,
        transcript=f"[Chunked Transcription - {len(chunk_results)} segments]\n\n{combined_transcript}",
        segments=combined_segments,
        speakers=list(speakers.values()),
    )


class ChunkProcessor:
    """Transcribes long audio chunk by chunk through a synchronous recognizer."""

    def __init__(
        self,
        recognize: Recognizer,
        chunk_duration: float = CHUNK_DURATION_SECONDS,
        overlap_duration: float = CHUNK_OVERLAP_SECONDS,
        request_delay: float = CHUNK_REQUEST_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            recognize: Synchronous recognizer for a single chunk
            chunk_duration: Target chunk duration in seconds
            overlap_duration: Overlap between adjacent chunks in seconds
            request_delay: Pause between chunk requests to avoid rate limiting
            sleep: Sleep function (injected by tests)
        """
        self.recognize = recognize
        self.chunk_duration = chunk_duration
        self.overlap_duration = overlap_duration
        self.request_delay = request_delay
        self.sleep = sleep

    def transcribe_in_chunks(
        self,
        payload: AudioPayload,
        config: SpeechConfig,
        duration: float,
        progress: Optional[ProgressCallback] = None,
    ) -> TranscriptionResult:
        start_time = time.time()
        report = progress or (lambda percent, stage: None)

        report(10, "Preparing audio chunks...")
        chunks = split_into_chunks(payload, duration, self.chunk_duration, self.overlap_duration)
        logger.info(f"Split {payload.size} bytes ({duration:.1f}s) into {len(chunks)} chunks")

        report(20, f"Processing {len(chunks)} audio chunks...")
        chunk_results: List[TranscriptionResult] = []

        for i, chunk in enumerate(chunks):
            report(20 + (i / len(chunks)) * 70, f"Processing chunk {i + 1} of {len(chunks)}...")

            try:
                chunk_payload = AudioPayload(data=chunk.data, mime_type=payload.mime_type, name=f"{payload.name}#{i}")
                chunk_results.append(self.recognize(chunk_payload, config))
            except TranscriptionError as e:
                logger.warning(f"Failed to transcribe chunk {i + 1} of {len(chunks)}: {e}")

            if i < len(chunks) - 1:
                self.sleep(self.request_delay)

        report(95, "Combining results...")
        result = combine_chunk_results(chunk_results, config, time.time() - start_time)
        result.audio_duration = duration
        logger.info(f"Chunked transcription finished: {len(chunk_results)}/{len(chunks)} chunks succeeded")

        report(100, "Chunked transcription complete!")
        return result
