"""
Utility functions for the speech layer.

Helpers for provider time strings, speaker colours, timestamp formatting and
reading WAV headers from in-memory payloads.
"""

import io
import wave
from typing import Any, Tuple

SPEAKER_COLORS = [
    "#3b82f6",
    "#ef4444",
    "#10b981",
    "#f59e0b",
    "#8b5cf6",
    "#06b6d4",
    "#f97316",
    "#84cc16",
]


def format_timestamp(seconds: float) -> str:
    """
    Format seconds as MM:SS or HH:MM:SS.

    Args:
        seconds: Time in seconds

    Returns:
        Formatted time string
    """
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def parse_time(value: Any) -> float:
    """
    Parse a provider duration such as "1.234s" into seconds.

    Numeric values are returned as floats; empty or malformed values yield 0.
    """
    if value is None or value == "":
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip().rstrip("s"))
    except ValueError:
        return 0.0


def get_speaker_color(speaker_id: int) -> str:
    """Deterministic display colour for a diarization speaker tag."""
    return SPEAKER_COLORS[(speaker_id - 1) % len(SPEAKER_COLORS)]


def count_words(text: str) -> int:
    return len(text.split())


def is_wav(data: bytes) -> bool:
    return len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WAVE"


def read_wav_header(data: bytes) -> Tuple[float, int, int]:
    """
    Get duration, sample rate and channel count of an in-memory WAV file.

    Args:
        data: WAV file bytes

    Returns:
        Tuple of (duration seconds, sample rate, channels)

    Raises:
        wave.Error: If the data is not a readable PCM WAV file
    """
    with wave.open(io.BytesIO(data), "rb") as wf:
        frames = wf.getnframes()
        rate = wf.getframerate()
        channels = wf.getnchannels()
        if rate <= 0:
            raise wave.Error("bad sample rate")
        return frames / float(rate), rate, channels
