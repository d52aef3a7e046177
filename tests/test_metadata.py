import io
import wave
from unittest.mock import Mock

import pytest
from google.api_core.exceptions import NotFound

from audiomind.speech.metadata import DEFAULT_DURATION, AudioMetadataProbe, suffix_for_mime
from audiomind.speech.models import AudioPayload
from audiomind.speech.storage import GCSObjectStorage, parse_gcs_uri


def wav_bytes(seconds=2.0, rate=16000, channels=1):
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)
        wf.setframerate(rate)
        wf.writeframes(b"\x00\x00" * channels * int(seconds * rate))
    return buffer.getvalue()


class TestAudioMetadataProbe:
    def test_wav_header_is_read_directly(self):
        payload = AudioPayload(data=wav_bytes(2.0, 16000, 2), mime_type="audio/wav", name="call.wav")

        metadata = AudioMetadataProbe(ffprobe_path="/nonexistent/ffprobe").probe(payload)

        assert metadata.duration == pytest.approx(2.0)
        assert metadata.sample_rate == 16000
        assert metadata.channels == 2
        assert metadata.probed

    def test_zero_sample_rate_gives_defaults(self):
        data = bytearray(wav_bytes())
        data[24:28] = b"\x00\x00\x00\x00"
        payload = AudioPayload(data=bytes(data), mime_type="audio/wav", name="broken.wav")

        metadata = AudioMetadataProbe(ffprobe_path="/nonexistent/ffprobe").probe(payload)

        assert metadata.duration == DEFAULT_DURATION
        assert metadata.sample_rate == 0
        assert not metadata.probed

    def test_missing_ffprobe_gives_defaults(self, payload):
        metadata = AudioMetadataProbe(ffprobe_path="/nonexistent/ffprobe").probe(payload)

        assert metadata.duration == DEFAULT_DURATION
        assert metadata.sample_rate == 0
        assert metadata.format == "audio/webm"
        assert not metadata.probed

    def test_suffix_for_mime(self):
        assert suffix_for_mime("audio/webm;codecs=opus") == ".webm"
        assert suffix_for_mime("audio/x-m4a") == ".m4a"
        assert suffix_for_mime("application/unknown") == ".bin"


class TestObjectStorage:
    def test_parse_gcs_uri(self):
        assert parse_gcs_uri("gs://bucket/audio/a.webm") == ("bucket", "audio/a.webm")
        with pytest.raises(ValueError):
            parse_gcs_uri("https://bucket/a.webm")
        with pytest.raises(ValueError):
            parse_gcs_uri("gs://bucket")

    def test_upload_and_delete(self):
        storage = GCSObjectStorage("temp-bucket", credential=Mock())
        storage._client = Mock()

        location = storage.upload(b"abc", "audio-1.webm", content_type="audio/webm")

        assert location == "gs://temp-bucket/audio-1.webm"
        blob = storage._client.bucket.return_value.blob.return_value
        blob.upload_from_string.assert_called_once_with(b"abc", content_type="audio/webm")

        storage.delete(location)
        blob.delete.assert_called_once_with()

    def test_delete_failure_is_swallowed(self):
        storage = GCSObjectStorage("temp-bucket", credential=Mock())
        storage._client = Mock()
        storage._client.bucket.return_value.blob.return_value.delete.side_effect = NotFound("gone")

        storage.delete("gs://temp-bucket/audio-1.webm")
        storage.delete("not-a-location")
