"""
Lightweight audio metadata probing.

WAV payloads are read directly from their header. Other containers are handed
to ``ffprobe`` with a bounded timeout. Probing never raises: on any failure a
conservative default is returned so the pipeline can continue.
"""

import json
import logging
import math
import os
import subprocess
import tempfile
import wave

from .models import AudioMetadata, AudioPayload
from .utils import is_wav, read_wav_header

logger = logging.getLogger(__name__)

# Short enough to take the synchronous path when nothing is known
DEFAULT_DURATION = 30.0

_MIME_SUFFIXES = {
    "audio/webm": ".webm",
    "audio/ogg": ".ogg",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/flac": ".flac",
    "audio/mpeg": ".mp3",
    "audio/mp3": ".mp3",
    "audio/mp4": ".m4a",
    "audio/m4a": ".m4a",
    "audio/x-m4a": ".m4a",
    "audio/aac": ".aac",
}


def suffix_for_mime(mime_type: str) -> str:
    return _MIME_SUFFIXES.get((mime_type or "").split(";", 1)[0].strip().lower(), ".bin")


def default_metadata(mime_type: str = "") -> AudioMetadata:
    return AudioMetadata(duration=DEFAULT_DURATION, sample_rate=0, channels=1, format=mime_type, probed=False)


class AudioMetadataProbe:
    """Extracts duration, sample rate and channel count from an audio payload."""

    def __init__(self, ffprobe_path: str = "ffprobe", timeout: float = 10.0):
        """
        Args:
            ffprobe_path: ffprobe executable
            timeout: Maximum seconds to wait for ffprobe
        """
        self.ffprobe_path = ffprobe_path
        self.timeout = timeout

    def probe(self, payload: AudioPayload) -> AudioMetadata:
        try:
            if is_wav(payload.data):
                duration, rate, channels = read_wav_header(payload.data)
                metadata = AudioMetadata(duration=duration, sample_rate=rate, channels=channels, format=payload.mime_type)
            else:
                metadata = self._run_ffprobe(payload)
        except (OSError, EOFError, ValueError, KeyError, wave.Error, subprocess.SubprocessError) as e:
            logger.warning(f"Metadata probe failed for {payload.name}, using defaults: {e}")
            return default_metadata(payload.mime_type)

        if not metadata.duration or math.isnan(metadata.duration) or metadata.duration <= 0:
            logger.warning(f"Probe returned no usable duration for {payload.name}, using default")
            metadata.duration = DEFAULT_DURATION
            metadata.probed = False
        return metadata

    def _run_ffprobe(self, payload: AudioPayload) -> AudioMetadata:
        fd, tmp_path = tempfile.mkstemp(suffix=suffix_for_mime(payload.mime_type))
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(payload.data)
            cmd = [
                self.ffprobe_path,
                "-v",
                "error",
                "-show_entries",
                "format=duration:stream=sample_rate,channels",
                "-of",
                "json",
                tmp_path,
            ]
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout, check=True)
        finally:
            os.unlink(tmp_path)

        info = json.loads(result.stdout or "{}")
        streams = info.get("streams") or [{}]
        stream = streams[0]
        return AudioMetadata(
            duration=float(info.get("format", {}).get("duration") or 0),
            sample_rate=int(stream.get("sample_rate") or 0),
            channels=int(stream.get("channels") or 1),
            format=payload.mime_type,
        )
