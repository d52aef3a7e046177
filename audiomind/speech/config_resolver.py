"""
Speech configuration resolution.

Maps the options requested for a job, the encoding detected from the audio
container and the probed sample rate onto a SpeechConfig, and turns a
SpeechConfig into the request config expected by the recognition endpoint.
Nothing in this module raises: unknown inputs degrade to safe defaults.
"""

from typing import Any, Dict, Iterable, Optional

from .models import AudioEncoding, SpeechConfig

DEFAULT_LANGUAGE = "en-US"
DEFAULT_MIN_SPEAKERS = 1
DEFAULT_MAX_SPEAKERS = 6
MAX_ALTERNATIVE_LANGUAGES = 5

# The provider reads the rate from the container header for these encodings
AUTO_SAMPLE_RATE_ENCODINGS = {AudioEncoding.LINEAR16, AudioEncoding.WEBM_OPUS}

_MIME_ENCODINGS = {
    "audio/webm": AudioEncoding.WEBM_OPUS,
    "audio/ogg": AudioEncoding.OGG_OPUS,
    "audio/wav": AudioEncoding.LINEAR16,
    "audio/wave": AudioEncoding.LINEAR16,
    "audio/x-wav": AudioEncoding.LINEAR16,
    "audio/flac": AudioEncoding.FLAC,
    "audio/x-flac": AudioEncoding.FLAC,
    # Compressed containers the provider cannot decode are sent as LINEAR16
    "audio/mpeg": AudioEncoding.LINEAR16,
    "audio/mp3": AudioEncoding.LINEAR16,
    "audio/mp4": AudioEncoding.LINEAR16,
    "audio/aac": AudioEncoding.LINEAR16,
    "audio/m4a": AudioEncoding.LINEAR16,
    "audio/x-m4a": AudioEncoding.LINEAR16,
}


def detect_audio_encoding(mime_type: Optional[str]) -> AudioEncoding:
    """
    Detect the recognition encoding from a container MIME type.

    Parameters such as ``;codecs=opus`` are ignored. Unknown types fall back to
    WEBM_OPUS, the format produced by browser recorders.
    """
    base_type = (mime_type or "").split(";", 1)[0].strip().lower()
    return _MIME_ENCODINGS.get(base_type, AudioEncoding.WEBM_OPUS)


def resolve_sample_rate(encoding: AudioEncoding, detected_rate: Optional[int]) -> Optional[int]:
    """Return the sample rate to send, or None to let the provider detect it."""
    if encoding in AUTO_SAMPLE_RATE_ENCODINGS:
        return None
    if detected_rate and detected_rate > 0:
        return int(detected_rate)
    return None


def resolve_alternative_languages(primary: str, alternatives: Optional[Iterable[str]]) -> tuple:
    codes = []
    for code in alternatives or ():
        if code and code != primary and code not in codes:
            codes.append(code)
    return tuple(codes[:MAX_ALTERNATIVE_LANGUAGES])


def resolve_speech_config(
    language: Optional[str] = None,
    enable_speaker_diarization: bool = True,
    enable_punctuation: bool = True,
    enable_word_timestamps: bool = True,
    encoding: AudioEncoding = AudioEncoding.WEBM_OPUS,
    sample_rate: Optional[int] = None,
    alternative_languages: Optional[Iterable[str]] = None,
    min_speakers: Optional[int] = None,
    max_speakers: Optional[int] = None,
    model: Optional[str] = None,
    use_enhanced: bool = False,
) -> SpeechConfig:
    """
    Build the SpeechConfig for one transcription attempt.

    Args:
        language: BCP-47 language code (default: en-US)
        enable_speaker_diarization: Attribute words to speakers
        enable_punctuation: Insert punctuation marks
        enable_word_timestamps: Request per-word start/end times
        encoding: Encoding detected from the container type
        sample_rate: Probed sample rate, 0 or None when unknown
        alternative_languages: Extra languages for mixed-language audio
        min_speakers: Lower diarization bound (default 1)
        max_speakers: Upper diarization bound (default 6)
        model: Recognition model name (default latest_long)
        use_enhanced: Request the enhanced model variant

    Returns:
        Immutable SpeechConfig
    """
    language_code = language or DEFAULT_LANGUAGE
    min_count = min_speakers if min_speakers and min_speakers > 0 else DEFAULT_MIN_SPEAKERS
    max_count = max_speakers if max_speakers and max_speakers > 0 else DEFAULT_MAX_SPEAKERS

    return SpeechConfig(
        encoding=encoding,
        language_code=language_code,
        sample_rate_hertz=resolve_sample_rate(encoding, sample_rate),
        alternative_language_codes=resolve_alternative_languages(language_code, alternative_languages),
        enable_speaker_diarization=bool(enable_speaker_diarization),
        min_speaker_count=min_count,
        max_speaker_count=max(min_count, max_count),
        enable_automatic_punctuation=bool(enable_punctuation),
        enable_word_time_offsets=bool(enable_word_timestamps),
        model=model or "latest_long",
        use_enhanced=use_enhanced,
    )


def build_request_config(config: SpeechConfig, long_running: bool = False) -> Dict[str, Any]:
    """
    Build the ``config`` object of a recognition request.

    Args:
        config: Resolved speech configuration
        long_running: Building for the long-running endpoint, which reads
            channel layout from the stored object

    Returns:
        JSON-ready request config
    """
    request_config: Dict[str, Any] = {
        "encoding": config.encoding.value,
        "languageCode": config.language_code,
        "maxAlternatives": 1,
        "profanityFilter": False,
        "enableAutomaticPunctuation": config.enable_automatic_punctuation,
        "enableWordTimeOffsets": config.enable_word_time_offsets,
    }

    if config.sample_rate_hertz:
        request_config["sampleRateHertz"] = config.sample_rate_hertz

    if config.alternative_language_codes:
        request_config["alternativeLanguageCodes"] = list(config.alternative_language_codes)

    if config.encoding == AudioEncoding.LINEAR16 and not long_running:
        request_config["audioChannelCount"] = 2
        request_config["enableSeparateRecognitionPerChannel"] = True

    if config.enable_speaker_diarization:
        request_config["diarizationConfig"] = {
            "enableSpeakerDiarization": True,
            "minSpeakerCount": config.min_speaker_count,
            "maxSpeakerCount": config.max_speaker_count,
        }

    if config.model and config.model != "default":
        request_config["model"] = config.model

    request_config["useEnhanced"] = config.use_enhanced

    return request_config
