import math

import pytest

from audiomind.exceptions import ChunkingError, ProviderError
from audiomind.speech.chunking import ChunkProcessor, combine_chunk_results, split_into_chunks
from audiomind.speech.config_resolver import resolve_speech_config
from audiomind.speech.models import AudioPayload, SpeakerInfo, TranscriptionResult, TranscriptionSegment


def chunk_result(text, segments, confidence=0.9, speakers=None):
    return TranscriptionResult(
        provider="google",
        model="latest_long",
        language="en-US",
        confidence=confidence,
        processing_time=0.1,
        transcript=text,
        segments=[
            TranscriptionSegment(id=f"segment-{i}", start_time=start, end_time=end, text=text)
            for i, (start, end) in enumerate(segments)
        ],
        speakers=speakers or [],
    )


class TestSplitIntoChunks:
    def test_two_minute_clip_gives_three_overlapping_chunks(self, payload):
        chunks = split_into_chunks(payload, total_duration=120.0)

        assert len(chunks) == 3
        assert [(c.start_byte, c.end_byte) for c in chunks] == [(0, 500), (450, 950), (900, 1200)]
        assert [c.index for c in chunks] == [0, 1, 2]
        assert chunks[1].data == payload.data[450:950]
        assert chunks[1].nominal_offset == pytest.approx(45.0)

    @pytest.mark.parametrize("size, duration", [(1200, 61.0), (10_000, 300.0), (7_777, 1234.5), (999, 95.0)])
    def test_chunks_cover_payload_and_terminate(self, size, duration):
        payload = AudioPayload(data=b"\x00" * size)
        chunks = split_into_chunks(payload, duration)

        assert chunks[0].start_byte == 0
        assert chunks[-1].end_byte == size
        for previous, current in zip(chunks, chunks[1:]):
            assert current.start_byte < previous.end_byte
        assert len(chunks) <= math.ceil(duration / 45.0) + 1

    def test_empty_payload_has_no_chunks(self):
        assert split_into_chunks(AudioPayload(data=b""), 120.0) == []

    def test_unknown_duration_gives_single_chunk(self, payload):
        chunks = split_into_chunks(payload, 0.0)
        assert len(chunks) == 1
        assert chunks[0].data == payload.data

    def test_overlap_not_smaller_than_chunk_gives_single_chunk(self, payload):
        chunks = split_into_chunks(payload, 120.0, chunk_duration=5.0, overlap_duration=5.0)
        assert len(chunks) == 1


class TestCombineChunkResults:
    def test_segments_are_rebased_by_previous_segment_ends(self):
        results = [
            chunk_result("first part", [(0.0, 10.0), (10.0, 40.0)]),
            chunk_result("second part", [(0.0, 5.0), (5.0, 45.0)]),
        ]
        combined = combine_chunk_results(results, resolve_speech_config(), processing_time=1.0)

        assert [(s.start_time, s.end_time) for s in combined.segments] == [
            (0.0, 10.0),
            (10.0, 40.0),
            (40.0, 45.0),
            (45.0, 85.0),
        ]
        assert combined.segments[2].id == "chunk-1-segment-0"
        assert combined.transcript == "[Chunked Transcription - 2 segments]\n\nfirst part second part"

    def test_start_times_are_monotonic(self):
        results = [
            chunk_result("a", [(3.0, 4.0), (0.0, 2.0)]),
            chunk_result("b", [(1.0, 2.0)]),
        ]
        combined = combine_chunk_results(results, resolve_speech_config(), processing_time=1.0)
        starts = [s.start_time for s in combined.segments]
        assert starts == sorted(starts)

    def test_confidence_ignores_empty_chunks(self):
        results = [
            chunk_result("a", [(0.0, 1.0)], confidence=0.8),
            chunk_result("", [], confidence=0.0),
            chunk_result("b", [(0.0, 1.0)], confidence=0.6),
        ]
        combined = combine_chunk_results(results, resolve_speech_config(), processing_time=1.0)
        assert combined.confidence == pytest.approx(0.7)

    def test_speakers_are_merged_by_id(self):
        results = [
            chunk_result("a", [(0.0, 1.0)], speakers=[SpeakerInfo(1, "Speaker 1", 4.0), SpeakerInfo(2, "Speaker 2", 1.0)]),
            chunk_result("b", [(0.0, 1.0)], speakers=[SpeakerInfo(1, "Speaker 1", 6.0)]),
        ]
        combined = combine_chunk_results(results, resolve_speech_config(), processing_time=1.0)
        speakers = {s.id: s.total_duration for s in combined.speakers}
        assert speakers == {1: 10.0, 2: 1.0}

    def test_no_results_is_an_error(self):
        with pytest.raises(ChunkingError, match="No successful chunk transcriptions"):
            combine_chunk_results([], resolve_speech_config(), processing_time=1.0)


class TestChunkProcessor:
    def test_failed_chunk_is_skipped(self, payload, sleeps):
        calls = []

        def recognize(chunk_payload, config):
            calls.append(chunk_payload)
            if len(calls) == 2:
                raise ProviderError("Google Speech API error: 429 Too Many Requests.", status_code=429)
            return chunk_result(f"chunk {len(calls)}", [(0.0, 40.0)])

        processor = ChunkProcessor(recognize, sleep=sleeps)
        result = processor.transcribe_in_chunks(payload, resolve_speech_config(), duration=120.0)

        assert len(calls) == 3
        assert result.transcript == "[Chunked Transcription - 2 segments]\n\nchunk 1 chunk 3"
        assert result.audio_duration == 120.0
        assert sleeps.calls == [0.5, 0.5]

    def test_all_chunks_failing_is_an_error(self, payload, sleeps):
        def recognize(chunk_payload, config):
            raise ProviderError("Google Speech API error: 500 Internal Server Error.", status_code=500)

        processor = ChunkProcessor(recognize, sleep=sleeps)
        with pytest.raises(ChunkingError):
            processor.transcribe_in_chunks(payload, resolve_speech_config(), duration=120.0)

    def test_progress_is_reported_in_order(self, payload, sleeps):
        progress = []
        processor = ChunkProcessor(lambda p, c: chunk_result("x", [(0.0, 1.0)]), sleep=sleeps)
        processor.transcribe_in_chunks(
            payload, resolve_speech_config(), duration=120.0, progress=lambda pct, stage: progress.append(pct)
        )

        assert progress[0] == 10
        assert progress[1] == 20
        assert progress[-2:] == [95, 100]
        assert progress == sorted(progress)
