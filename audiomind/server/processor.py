"""
Audio processing pipeline for transcription, summarization and task extraction.

This module contains the logic for processing one audio payload through the
various stages:
- metadata extraction (probe, with defaults on failure)
- speech config resolution
- transcription with the strategy suited to the audio
- summarization (AI summary, or a local fallback)
- task extraction

A run never raises: every failure ends up in the returned ProcessingOutcome.
"""

import logging
import time
from typing import Callable, Optional

from ..exceptions import ConfigurationError
from ..speech.config_resolver import detect_audio_encoding, resolve_speech_config
from ..speech.metadata import AudioMetadataProbe, default_metadata
from ..speech.models import AudioMetadata, AudioPayload, SummaryResult
from ..speech.utils import count_words
from .models import ProcessingOptions, ProcessingOutcome

# Configure logging
logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, str], None]

# Below this many words the recording is summarized locally
MIN_SUMMARY_WORDS = 10


def short_recording_summary(text: str) -> SummaryResult:
    """Summary for a recording too short to send to the summarizer."""
    words = count_words(text)
    return SummaryResult(
        summary=f'Short recording ({words} words): "{text}"',
        key_points=[text] if text else [],
        topics=["Short Recording"],
        provider="fallback",
        model="local",
        confidence=0.7,
        word_count=words,
        compression_ratio=1.0,
    )


def fallback_summary(text: str) -> SummaryResult:
    """Local summary used when the summarizer is unavailable or fails."""
    words = text.split()

    if len(words) <= 5:
        summary = f'Very short recording: "{text}"'
    elif len(words) <= 20:
        summary = f"Short recording containing: {text}"
    else:
        summary = (
            f'Audio recording ({len(words)} words) starting with: "{" ".join(words[:10])}" '
            f'and ending with: "{" ".join(words[-5:])}"'
        )

    key_point = text[:100] + ("..." if len(text) > 100 else "")
    return SummaryResult(
        summary=summary,
        key_points=[key_point],
        topics=["Audio Recording"],
        provider="fallback",
        model="local",
        confidence=0.5,
        word_count=len(words),
        compression_ratio=len(text) / len(summary) if summary else 1.0,
    )


class MonotonicProgress:
    """Wraps a progress listener so reported percentages never go down."""

    def __init__(self, listener: Optional[ProgressCallback]):
        self.listener = listener
        self.current = 0.0

    def __call__(self, percent: float, stage: str) -> None:
        self.current = max(self.current, min(100.0, float(percent)))
        if self.listener:
            self.listener(self.current, stage)


class TranscriptionOrchestrator:
    """Handles the actual audio processing stages."""

    def __init__(self, engine, probe: Optional[AudioMetadataProbe] = None, summarizer=None, task_extractor=None):
        """
        Initialize the orchestrator.

        Args:
            engine: SpeechTranscriptionEngine, or None when no credential is configured
            probe: Metadata probe (default: AudioMetadataProbe)
            summarizer: Summarizer collaborator; None means local fallback summaries
            task_extractor: Task extractor collaborator; None disables task extraction
        """
        self.engine = engine
        self.probe = probe or AudioMetadataProbe()
        self.summarizer = summarizer
        self.task_extractor = task_extractor

    def run(
        self,
        payload: AudioPayload,
        options: Optional[ProcessingOptions] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> ProcessingOutcome:
        """
        Process an audio payload through all stages.

        Args:
            payload: Audio to process
            options: Processing options (defaults apply when omitted)
            progress: Listener receiving (percent, stage)

        Returns:
            ProcessingOutcome; success is False when any mandatory stage failed
        """
        start_time = time.time()
        options = options or ProcessingOptions()
        report = MonotonicProgress(progress)

        try:
            if self.engine is None:
                raise ConfigurationError("Google API key not configured")

            logger.info(f"Starting processing for {payload.name} ({payload.size} bytes)")

            # Stage 1: Metadata
            report(10, "Extracting audio metadata...")
            metadata = self._extract_metadata(payload)

            # Stage 2: Speech config
            report(20, "Configuring speech recognition...")
            config = resolve_speech_config(
                language=options.language,
                enable_speaker_diarization=options.enable_speaker_diarization,
                enable_punctuation=options.enable_punctuation,
                enable_word_timestamps=options.enable_word_timestamps,
                encoding=detect_audio_encoding(payload.mime_type),
                sample_rate=metadata.sample_rate,
                alternative_languages=options.alternative_languages,
                min_speakers=options.min_speakers,
                max_speakers=options.max_speakers,
                model=options.model,
                use_enhanced=options.use_enhanced,
            )

            # Stage 3: Transcription
            report(30, "Transcribing audio...")
            transcription = self.engine.transcribe(
                payload,
                config,
                progress=lambda percent, stage: report(30 + percent * 0.3, stage),
                duration=metadata.duration,
            )
            report(60, "Transcription completed")

            transcript = transcription.transcript.strip()

            # Stage 4: Summary
            summary = None
            if options.generate_summary and transcript:
                report(70, "Generating summary...")
                summary = self._summarize(transcript, options.summary_length)
                report(85, "Summary completed")

            # Stage 5: Tasks
            tasks = []
            if options.extract_tasks and transcript and self.task_extractor is not None:
                report(90, "Extracting tasks...")
                try:
                    tasks = self.task_extractor.extract_tasks(transcript, options.session_id)
                except Exception as e:
                    logger.warning(f"Task extraction failed, continuing without tasks: {e}")
                report(95, f"Extracted {len(tasks)} tasks")

            report(100, "Processing complete")
            processing_time = time.time() - start_time
            logger.info(f"Processed {payload.name} in {processing_time:.2f} seconds")

            return ProcessingOutcome(
                success=True,
                processing_time=processing_time,
                transcription=transcription,
                summary=summary,
                tasks=tasks,
                metadata=metadata,
            )

        except Exception as e:
            logger.error(f"Processing failed for {payload.name}: {e}")
            return ProcessingOutcome.failure(str(e) or type(e).__name__, time.time() - start_time)

    def _extract_metadata(self, payload: AudioPayload) -> AudioMetadata:
        try:
            metadata = self.probe.probe(payload)
        except Exception as e:
            logger.warning(f"Metadata probe failed for {payload.name}, using defaults: {e}")
            return default_metadata(payload.mime_type)

        if not metadata.format:
            metadata.format = payload.mime_type
        return metadata

    def _summarize(self, transcript: str, length: Optional[str] = None) -> SummaryResult:
        if count_words(transcript) < MIN_SUMMARY_WORDS:
            return short_recording_summary(transcript)

        if self.summarizer is None:
            logger.warning("No summarizer configured, using fallback summary")
            return fallback_summary(transcript)

        try:
            return self.summarizer.summarize(transcript, length=length)
        except Exception as e:
            logger.warning(f"Summarization failed, using fallback summary: {e}")
            return fallback_summary(transcript)
