"""
Flask API server for audio transcription.

This server provides endpoints for:
- Uploading audio files for processing
- Inspecting, retrying, cancelling and clearing queued jobs
- Retrieving processed sessions (transcript, summary, tasks)
- Reading queue notifications

The server runs the transcription pipeline in a BackgroundJobQueue, so
requests return as soon as the upload is queued.
"""

import atexit
import json
import logging
from datetime import datetime
from typing import Optional, Tuple

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.utils import secure_filename

from ..config import ConfigManager
from ..exceptions import ConfigurationError
from ..speech.credentials import credential_from_config
from ..speech.google_speech import SpeechTranscriptionEngine
from ..speech.metadata import AudioMetadataProbe
from ..speech.models import AudioPayload
from ..speech.storage import GCSObjectStorage
from ..speech.summarizer import TranscriptSummarizer
from ..speech.task_extractor import TaskExtractor
from .models import ProcessingOptions
from .notifications import CollectingNotifier
from .processing_queue import BackgroundJobQueue
from .processor import TranscriptionOrchestrator
from .session_store import SessionStore

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 500 * 1024 * 1024  # 500MB max upload size

ALLOWED_EXTENSIONS = {"wav", "mp3", "mp4", "m4a", "flac", "aac", "ogg", "webm"}

EXTENSION_MIME_TYPES = {
    "wav": "audio/wav",
    "mp3": "audio/mpeg",
    "mp4": "audio/mp4",
    "m4a": "audio/m4a",
    "flac": "audio/flac",
    "aac": "audio/aac",
    "ogg": "audio/ogg",
    "webm": "audio/webm",
}


def allowed_file(filename: str) -> bool:
    """Check if the uploaded file has an allowed extension."""
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


def mime_type_for(filename: str, declared: Optional[str] = None) -> str:
    """Use the declared audio MIME type, or derive one from the extension."""
    if declared and declared.startswith("audio/"):
        return declared
    return EXTENSION_MIME_TYPES.get(filename.rsplit(".", 1)[-1].lower(), "audio/webm")


def build_services() -> Tuple[BackgroundJobQueue, SessionStore, CollectingNotifier]:
    """
    Build the processing services from configuration.

    A missing Google credential does not prevent the server from starting:
    jobs then fail with the configuration error instead.
    """
    store = SessionStore(ConfigManager.get("SESSIONS_DIR"))
    if ConfigManager.is_using_default("SESSIONS_DIR"):
        logger.info(f"SESSIONS_DIR not set, storing sessions in {store.sessions_dir.resolve()}")
    probe = AudioMetadataProbe()

    engine = None
    try:
        credential = credential_from_config()
        storage = None
        if credential.supports_long_running:
            if ConfigManager.is_using_default("STORAGE_BUCKET"):
                logger.warning(f"STORAGE_BUCKET not set, using {ConfigManager.get('STORAGE_BUCKET')}")
            storage = GCSObjectStorage(ConfigManager.get("STORAGE_BUCKET"), credential)
        engine = SpeechTranscriptionEngine(
            credential, probe=probe, storage=storage, base_url=ConfigManager.get("SPEECH_API_BASE_URL")
        )
    except ConfigurationError as e:
        logger.warning(f"Speech recognition is not configured: {e}")

    summarizer = None
    openai_key = ConfigManager.get("OPENAI_API_KEY")
    if openai_key:
        summarizer = TranscriptSummarizer(
            api_key=openai_key,
            model=ConfigManager.get("LLM_MODEL"),
            base_url=ConfigManager.get("LLM_API_BASE_URL") or None,
        )
    else:
        logger.warning("No OpenAI API key found, summaries will use the local fallback")

    orchestrator = TranscriptionOrchestrator(engine, probe=probe, summarizer=summarizer, task_extractor=TaskExtractor())
    notifier = CollectingNotifier()
    queue = BackgroundJobQueue(
        orchestrator, store, notifier, max_concurrent=ConfigManager.get_int("MAX_CONCURRENT_JOBS")
    )
    return queue, store, notifier


def create_app(
    queue: Optional[BackgroundJobQueue] = None,
    store: Optional[SessionStore] = None,
    notifier: Optional[CollectingNotifier] = None,
) -> Flask:
    """
    Create the Flask application.

    Args:
        queue: Processing queue (built from configuration when omitted)
        store: Session store backing the queue
        notifier: Notification sink backing the queue

    Returns:
        Configured Flask app
    """
    if queue is None or store is None or notifier is None:
        queue, store, notifier = build_services()

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = MAX_CONTENT_LENGTH
    CORS(app)

    # Configure logging to reduce verbosity
    log_level = ConfigManager.get("LOG_LEVEL").upper()
    werkzeug_logger = logging.getLogger("werkzeug")
    werkzeug_logger.setLevel(getattr(logging, log_level, logging.WARNING))

    app.extensions["audiomind"] = {"queue": queue, "store": store, "notifier": notifier}

    @app.route("/health", methods=["GET"])
    def health_check():
        """Health check endpoint."""
        queue_status = queue.get_queue_status()
        return jsonify(
            {
                "status": "healthy",
                "timestamp": datetime.now().isoformat(),
                "queue_processing": queue_status["is_processing"],
                "pending_jobs": queue_status["pending"],
                "running_jobs": queue_status["processing"],
            }
        )

    @app.route("/upload", methods=["POST"])
    def upload_audio():
        """
        Upload audio files for processing.

        Expected form data:
        - files: One or more audio files
        - options: Optional JSON string with processing options

        Returns:
        - session_ids: One session per uploaded file
        - jobs: Queue entries created for the upload
        """
        uploads = request.files.getlist("files") or request.files.getlist("file")
        if not uploads:
            return jsonify({"error": "No file provided"}), 400

        options = ProcessingOptions()
        if "options" in request.form:
            try:
                options = ProcessingOptions.from_dict(json.loads(request.form["options"]))
            except (json.JSONDecodeError, TypeError) as e:
                return jsonify({"error": f"Invalid options: {e}"}), 400

        payloads = []
        for upload in uploads:
            if not upload.filename:
                return jsonify({"error": "No file selected"}), 400

            if not allowed_file(upload.filename):
                allowed_types = ", ".join(sorted(ALLOWED_EXTENSIONS))
                return jsonify({"error": f"File type not allowed. Allowed types: {allowed_types}"}), 400

            # Validate filename is not empty after sanitization
            filename = secure_filename(upload.filename)
            if not filename:
                return jsonify({"error": "Invalid filename"}), 400

            data = upload.read()
            if not data:
                return jsonify({"error": f"Empty file not allowed: {filename}"}), 400

            payloads.append(AudioPayload(data=data, mime_type=mime_type_for(filename, upload.mimetype), name=filename))

        session_ids = queue.enqueue(payloads, options)
        if not session_ids:
            return jsonify({"error": "Processing queue is not accepting jobs"}), 503

        jobs = [job for job in queue.get_queue() if job["session_id"] in session_ids]
        return jsonify(
            {
                "session_ids": session_ids,
                "jobs": jobs,
                "message": f"{len(session_ids)} file(s) uploaded successfully and queued for processing",
            }
        ), 201

    @app.route("/queue", methods=["GET"])
    def get_queue():
        """List queued, running, completed and failed jobs."""
        return jsonify({"jobs": queue.get_queue()})

    @app.route("/queue/status", methods=["GET"])
    def get_queue_status():
        """Get detailed queue status information."""
        return jsonify(queue.get_queue_status())

    @app.route("/queue/<job_id>/retry", methods=["POST"])
    def retry_job(job_id: str):
        if queue.get_job(job_id) is None:
            return jsonify({"error": "Job not found"}), 404

        if not queue.retry(job_id):
            return jsonify({"error": "Only failed jobs can be retried"}), 409

        return jsonify({"message": "Job queued for retry", "job": queue.get_job(job_id)})

    @app.route("/queue/<job_id>", methods=["DELETE"])
    def cancel_job(job_id: str):
        if not queue.cancel(job_id):
            return jsonify({"error": "Job not found"}), 404
        return jsonify({"message": "Job removed from queue"})

    @app.route("/queue/clear-completed", methods=["POST"])
    def clear_completed():
        removed = queue.clear_completed()
        return jsonify({"removed": removed})

    @app.route("/sessions/<session_id>", methods=["GET"])
    def get_session(session_id: str):
        """
        Get a processing session.

        Returns session status fields plus transcription, summary and tasks
        once the session has been processed.
        """
        session = store.get_session(session_id)
        if not session:
            return jsonify({"error": "Session not found"}), 404
        return jsonify(session)

    @app.route("/sessions/<session_id>", methods=["DELETE"])
    def delete_session(session_id: str):
        """Delete a session and its results. Sessions with queued or running jobs are kept."""
        if not store.session_exists(session_id):
            return jsonify({"error": "Session not found"}), 404

        active = ("pending", "processing")
        if any(job["session_id"] == session_id and job["status"] in active for job in queue.get_queue()):
            return jsonify({"error": "Session is still being processed"}), 409

        store.delete_session(session_id)
        return jsonify({"message": "Session deleted"})

    @app.route("/sessions", methods=["GET"])
    def list_sessions():
        """
        List sessions, newest first.

        Query parameters:
        - status: Filter by status (pending, transcribing, completed, failed)
        - limit: Limit number of results (default: 100)
        """
        status_filter = request.args.get("status")
        try:
            limit = int(request.args.get("limit", 100))
        except ValueError:
            return jsonify({"error": "limit must be an integer"}), 400

        sessions = store.list_sessions(status_filter=status_filter, limit=limit)
        return jsonify({"sessions": sessions, "total": len(sessions)})

    @app.route("/notifications", methods=["GET"])
    def list_notifications():
        return jsonify({"notifications": [n.to_dict() for n in notifier.notifications]})

    return app


def main():
    services = build_services()
    atexit.register(services[0].shutdown)
    create_app(*services).run(debug=False, host="0.0.0.0", port=5001)


if __name__ == "__main__":
    main()
