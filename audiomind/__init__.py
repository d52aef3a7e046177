"""
AudioMind: background transcription, summarization and task extraction for recorded audio.
"""

__version__ = "0.1.0"
