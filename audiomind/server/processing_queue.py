"""
Queue-based audio processing system using ThreadPoolExecutor.

This module manages a list of transcription jobs and processes them in the
background with bounded concurrency:
- a supervisor thread admits Pending jobs in order while fewer than
  max_concurrent workers are busy, otherwise waits for the poll interval
- each worker runs the transcription pipeline for one job and publishes
  progress and results to the session store
- individual and aggregate completion events go to the notifier

Failed jobs stay in the list until they are retried, cancelled or cleared.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..speech.models import AudioPayload
from .models import (
    JobStatus,
    Notification,
    NotificationAction,
    ProcessingJob,
    ProcessingOptions,
    ProcessingOutcome,
    SessionStatus,
)
from .processor import TranscriptionOrchestrator

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class BackgroundJobQueue:
    """Runs transcription jobs in the background with bounded concurrency."""

    def __init__(
        self,
        orchestrator: TranscriptionOrchestrator,
        store,
        notifier,
        max_concurrent: int = 2,
        poll_interval: float = 1.0,
        default_options: Optional[ProcessingOptions] = None,
    ):
        """
        Initialize the processing queue.

        Args:
            orchestrator: Pipeline run for each job
            store: Session sink (create_session / update_session)
            notifier: Notification sink (notify)
            max_concurrent: Maximum number of concurrent processing threads
            poll_interval: How long the supervisor waits when it cannot admit a job (seconds)
            default_options: Options used when enqueue() receives none
        """
        self.orchestrator = orchestrator
        self.store = store
        self.notifier = notifier
        self.max_concurrent = max(1, max_concurrent)
        self.poll_interval = poll_interval
        self.default_options = default_options or ProcessingOptions()

        # Threading components
        self.jobs: List[ProcessingJob] = []
        self.executor = ThreadPoolExecutor(max_workers=self.max_concurrent, thread_name_prefix="transcription")
        self.supervisor_thread: Optional[threading.Thread] = None
        self._active_workers = 0
        self._shutting_down = False

        # Lock for thread safety
        self._lock = threading.Lock()
        self._wakeup = threading.Event()
        self._idle = threading.Event()
        self._idle.set()

    @property
    def is_processing(self) -> bool:
        with self._lock:
            return self.supervisor_thread is not None

    def enqueue(self, payloads: List[AudioPayload], options: Optional[ProcessingOptions] = None) -> List[str]:
        """
        Add audio payloads to the queue.

        A session is created for each payload before its job is queued.

        Args:
            payloads: Audio to process
            options: Processing options shared by all payloads

        Returns:
            Session IDs, in payload order
        """
        if self._shutting_down:
            logger.error("Cannot enqueue jobs: processing queue has been shut down")
            return []

        options = options or self.default_options
        session_ids = []
        new_jobs = []

        for payload in payloads:
            session_id = self.store.create_session(
                {
                    "file_name": payload.name,
                    "file_size": payload.size,
                    "mime_type": payload.mime_type,
                    "status": SessionStatus.PENDING.value,
                    "progress": 0,
                }
            )
            job = ProcessingJob(payload=payload, session_id=session_id, options=replace(options, session_id=session_id))
            new_jobs.append(job)
            session_ids.append(session_id)
            logger.info(f"Job {job.id} enqueued for {payload.name} (session {session_id})")

        with self._lock:
            self.jobs.extend(new_jobs)

        self._start_supervisor()
        return session_ids

    def get_queue(self) -> List[Dict[str, Any]]:
        """Get snapshots of all jobs, in admission order."""
        with self._lock:
            return [job.to_dict() for job in self.jobs]

    def get_job(self, job_id: str) -> Optional[Dict[str, Any]]:
        """Get a snapshot of one job, or None if it is not in the queue."""
        with self._lock:
            job = self._find(job_id)
            return job.to_dict() if job else None

    def get_queue_status(self) -> Dict[str, Any]:
        """Get status information about the processing queue."""
        with self._lock:
            counts = {status.value: 0 for status in JobStatus}
            for job in self.jobs:
                counts[job.status.value] += 1

            return {
                "total": len(self.jobs),
                **counts,
                "is_processing": self.supervisor_thread is not None,
                "max_concurrent": self.max_concurrent,
            }

    def retry(self, job_id: str) -> bool:
        """
        Put a failed job back in the queue.

        Args:
            job_id: Job identifier

        Returns:
            True if the job was re-queued, False if it is unknown or not failed
        """
        with self._lock:
            job = self._find(job_id)
            if job is None or job.status != JobStatus.FAILED:
                return False

            job.status = JobStatus.PENDING
            job.error = None
            job.progress = 0.0
            job.stage = "Queued for retry"
            job.started_at = None
            job.completed_at = None

        self._update_session(job.session_id, {"status": SessionStatus.PENDING.value, "progress": 0, "error": None})
        logger.info(f"Job {job_id} queued for retry")
        self._start_supervisor()
        return True

    def cancel(self, job_id: str) -> bool:
        """
        Remove a job from the queue, whatever its state.

        A running job is not interrupted; its outcome is discarded when it finishes.

        Returns:
            True if the job was removed, False if it wasn't in the queue
        """
        with self._lock:
            job = self._find(job_id)
            if job is None:
                return False
            self.jobs.remove(job)
            was_active = job.status in (JobStatus.PENDING, JobStatus.PROCESSING)

        if was_active:
            self._update_session(
                job.session_id, {"status": SessionStatus.FAILED.value, "error": "Job cancelled by user"}
            )
        logger.info(f"Job {job_id} cancelled")
        self._wakeup.set()
        return True

    def clear_completed(self) -> int:
        """
        Remove completed jobs from the queue.

        Returns:
            Number of jobs removed
        """
        with self._lock:
            remaining = [job for job in self.jobs if job.status != JobStatus.COMPLETED]
            removed = len(self.jobs) - len(remaining)
            self.jobs = remaining

        logger.info(f"Cleared {removed} completed jobs")
        return removed

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until no job is pending or running.

        Returns:
            True if the queue went idle, False on timeout
        """
        return self._idle.wait(timeout)

    def shutdown(self, wait: bool = True) -> None:
        """Stop admitting jobs and shut down the worker pool."""
        logger.info("Stopping processing queue...")
        with self._lock:
            self._shutting_down = True
            supervisor = self.supervisor_thread
        self._wakeup.set()

        if supervisor and wait:
            supervisor.join()

        self.executor.shutdown(wait=wait)
        logger.info("Processing queue stopped")

    def _find(self, job_id: str) -> Optional[ProcessingJob]:
        for job in self.jobs:
            if job.id == job_id:
                return job
        return None

    def _is_live(self, job: ProcessingJob) -> bool:
        return any(j is job for j in self.jobs)

    def _start_supervisor(self) -> None:
        with self._lock:
            if self.supervisor_thread is None and not self._shutting_down:
                self._idle.clear()
                self.supervisor_thread = threading.Thread(target=self._supervise, name="queue-supervisor", daemon=True)
                self.supervisor_thread.start()
                logger.info(f"Processing queue started with {self.max_concurrent} workers")
        self._wakeup.set()

    def _supervise(self) -> None:
        """Main supervisor loop that admits jobs until nothing is left to do."""
        admitted_total = 0

        while True:
            self._wakeup.clear()
            to_start = []

            with self._lock:
                has_pending = any(job.status == JobStatus.PENDING for job in self.jobs)
                if self._shutting_down or (not has_pending and self._active_workers == 0):
                    self.supervisor_thread = None
                    completed = sum(1 for job in self.jobs if job.status == JobStatus.COMPLETED)
                    failed = sum(1 for job in self.jobs if job.status == JobStatus.FAILED)
                    shutting_down = self._shutting_down
                    break

                for job in self.jobs:
                    if self._active_workers >= self.max_concurrent:
                        break
                    if job.status != JobStatus.PENDING:
                        continue

                    job.status = JobStatus.PROCESSING
                    job.started_at = datetime.now()
                    job.progress = 0.0
                    job.stage = "Starting transcription..."
                    self._active_workers += 1
                    to_start.append(job)

            for job in to_start:
                logger.info(f"Starting processing for job {job.id}")
                self.executor.submit(self._process_job, job)
            admitted_total += len(to_start)

            if not to_start:
                self._wakeup.wait(self.poll_interval)

        logger.info("Queue supervisor stopped")
        if admitted_total and not shutting_down:
            self._notify_all_done(completed, failed)

        with self._lock:
            # A new supervisor may already be running for jobs enqueued meanwhile
            if self.supervisor_thread is None:
                self._idle.set()

    def _process_job(self, job: ProcessingJob) -> None:
        """
        Process a single job.

        Args:
            job: Job admitted by the supervisor
        """
        with self._lock:
            cancelled = not self._is_live(job)
        if cancelled:
            logger.info(f"Job {job.id} was cancelled before it started")
            with self._lock:
                self._active_workers -= 1
            self._wakeup.set()
            return

        try:
            self._update_session(job.session_id, {"status": SessionStatus.TRANSCRIBING.value, "progress": 0})
            outcome = self.orchestrator.run(
                job.payload, job.options, progress=lambda percent, stage: self._on_progress(job, percent, stage)
            )
        except Exception as e:
            logger.error(f"Error processing job {job.id}: {e}")
            outcome = ProcessingOutcome.failure(str(e), 0.0)

        try:
            if outcome.success:
                self._complete_job(job, outcome)
            else:
                self._fail_job(job, outcome.error or "Unknown error")
        finally:
            with self._lock:
                self._active_workers -= 1
            self._wakeup.set()

    def _on_progress(self, job: ProcessingJob, percent: float, stage: str) -> None:
        with self._lock:
            if not self._is_live(job):
                return
            job.progress = max(job.progress, percent)
            job.stage = stage
            progress = job.progress

        self._update_session(job.session_id, {"progress": round(progress, 1), "stage": stage})

    def _complete_job(self, job: ProcessingJob, outcome: ProcessingOutcome) -> None:
        with self._lock:
            if not self._is_live(job):
                logger.info(f"Job {job.id} was cancelled, discarding its result")
                return
            job.status = JobStatus.COMPLETED
            job.progress = 100.0
            job.stage = "Completed"
            job.completed_at = datetime.now()

        self._update_session(
            job.session_id,
            {
                "status": SessionStatus.COMPLETED.value,
                "progress": 100,
                "transcription": outcome.transcription.to_dict() if outcome.transcription else None,
                "summary": outcome.summary.to_dict() if outcome.summary else None,
                "tasks": [task.to_dict() for task in outcome.tasks],
                "duration": outcome.metadata.duration if outcome.metadata else 0,
                "metadata": outcome.metadata.to_dict() if outcome.metadata else None,
                "processing_time": outcome.processing_time,
                "processed_at": job.completed_at.isoformat(),
            },
        )
        logger.info(f"Job {job.id} completed successfully")

        self.notifier.notify(
            Notification(
                type="success",
                title="File Processed",
                message=f"{job.payload.name} has been processed successfully!",
                duration_ms=3000,
                action=NotificationAction(label="View", target=f"/session/{job.session_id}"),
            )
        )

    def _fail_job(self, job: ProcessingJob, error: str) -> None:
        with self._lock:
            if not self._is_live(job):
                logger.info(f"Job {job.id} was cancelled, discarding its failure")
                return
            job.status = JobStatus.FAILED
            job.error = error
            job.stage = "Failed"
            job.completed_at = datetime.now()

        logger.error(f"Job {job.id} failed with error: {error}")
        self._update_session(job.session_id, {"status": SessionStatus.FAILED.value, "progress": 0, "error": error})

        self.notifier.notify(
            Notification(
                type="error",
                title="Processing Failed",
                message=f"Failed to process {job.payload.name}: {error}",
                duration_ms=None,
            )
        )

    def _notify_all_done(self, completed: int, failed: int) -> None:
        if failed:
            notification = Notification(
                type="warning",
                title="Processing Complete",
                message=f"{completed} file(s) processed, {failed} failed",
            )
        else:
            notification = Notification(
                type="success",
                title="Processing Complete",
                message="All audio files have been processed successfully!",
            )
        self.notifier.notify(notification)

    def _update_session(self, session_id: str, fields: Dict[str, Any]) -> None:
        try:
            self.store.update_session(session_id, fields)
        except (KeyError, OSError) as e:
            logger.warning(f"Failed to update session {session_id}: {e}")
