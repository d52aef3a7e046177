"""
Processing server: background job queue, transcription pipeline, session
store and the Flask API exposing them.
"""

from .models import JobStatus, Notification, NotificationAction, ProcessingJob, ProcessingOptions, ProcessingOutcome
from .notifications import CollectingNotifier, LoggingNotifier
from .processing_queue import BackgroundJobQueue
from .processor import TranscriptionOrchestrator
from .session_store import SessionStore

__all__ = [
    "BackgroundJobQueue",
    "CollectingNotifier",
    "JobStatus",
    "LoggingNotifier",
    "Notification",
    "NotificationAction",
    "ProcessingJob",
    "ProcessingOptions",
    "ProcessingOutcome",
    "SessionStore",
    "TranscriptionOrchestrator",
]
