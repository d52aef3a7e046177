import threading
import time

import pytest
from fakes import FakeOrchestrator, RecordingStore

from audiomind.server.models import JobStatus, ProcessingOptions
from audiomind.server.processing_queue import BackgroundJobQueue
from audiomind.speech.models import AudioPayload


def payloads(*names):
    return [AudioPayload(data=b"\x00" * 64, mime_type="audio/webm", name=name) for name in names]


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def make_queue(store, notifier):
    queues = []

    def factory(orchestrator, max_concurrent=2):
        queue = BackgroundJobQueue(orchestrator, store, notifier, max_concurrent=max_concurrent, poll_interval=0.01)
        queues.append(queue)
        return queue

    yield factory

    for queue in queues:
        queue.shutdown(wait=True)


def job_for_session(queue, session_id):
    return next(job for job in queue.get_queue() if job["session_id"] == session_id)


class TestBackgroundJobQueue:
    def test_five_files_with_two_workers(self, make_queue, store, notifier):
        orchestrator = FakeOrchestrator(delay=0.05)
        queue = make_queue(orchestrator, max_concurrent=2)
        samples = []
        stop = threading.Event()

        def sample():
            while not stop.is_set():
                samples.append(queue.get_queue_status()["processing"])
                time.sleep(0.005)

        sampler = threading.Thread(target=sample)
        sampler.start()
        session_ids = queue.enqueue(payloads("a.webm", "b.webm", "fail-c.webm", "d.webm", "e.webm"))
        assert queue.wait_until_idle(timeout=10)
        stop.set()
        sampler.join()

        assert len(session_ids) == 5
        assert orchestrator.peak <= 2
        assert max(samples) <= 2

        status = queue.get_queue_status()
        assert status["completed"] == 4
        assert status["failed"] == 1
        assert status["pending"] == 0
        assert status["processing"] == 0
        assert status["max_concurrent"] == 2
        assert status["is_processing"] is False

        assert sorted(orchestrator.runs) == ["a.webm", "b.webm", "d.webm", "e.webm", "fail-c.webm"]

    def test_jobs_are_admitted_in_order(self, make_queue):
        orchestrator = FakeOrchestrator()
        queue = make_queue(orchestrator, max_concurrent=1)
        queue.enqueue(payloads("1.webm", "2.webm", "3.webm"))
        assert queue.wait_until_idle(timeout=10)

        assert orchestrator.runs == ["1.webm", "2.webm", "3.webm"]

    def test_session_updates_and_notifications(self, make_queue, store, notifier):
        queue = make_queue(FakeOrchestrator())
        ok_session, failed_session = queue.enqueue(payloads("ok.webm", "fail.webm"))
        assert queue.wait_until_idle(timeout=10)

        ok = store.sessions[ok_session]
        assert ok["status"] == "completed"
        assert ok["progress"] == 100
        assert ok["transcription"]["transcript"] == "transcript of ok.webm"
        assert ok["duration"] == 30.0
        assert "processed_at" in ok
        assert ok["file_name"] == "ok.webm"

        failed = store.sessions[failed_session]
        assert failed["status"] == "failed"
        assert failed["progress"] == 0
        assert failed["error"].startswith("Google Speech API error")

        statuses = [fields["status"] for sid, fields in store.updates if sid == ok_session and "status" in fields]
        assert statuses == ["transcribing", "completed"]

        by_title = {}
        for n in notifier.notifications:
            by_title.setdefault(n.title, []).append(n)

        success = by_title["File Processed"][0]
        assert success.message == "ok.webm has been processed successfully!"
        assert success.duration_ms == 3000
        assert success.action.label == "View"
        assert success.action.target == f"/session/{ok_session}"

        failure = by_title["Processing Failed"][0]
        assert failure.duration_ms is None
        assert failure.message.startswith("Failed to process fail.webm: ")

        assert len(by_title["Processing Complete"]) == 1
        assert notifier.notifications[-1].title == "Processing Complete"

    def test_job_progress_is_monotonic(self, make_queue):
        queue = make_queue(FakeOrchestrator())
        session_id = queue.enqueue(payloads("a.webm"))[0]
        assert queue.wait_until_idle(timeout=10)

        job = job_for_session(queue, session_id)
        assert job["status"] == "completed"
        assert job["progress"] == 100
        assert job["started_at"] is not None
        assert job["completed_at"] is not None

    def test_retry_failed_job(self, make_queue, store):
        gate = threading.Event()
        gate.set()
        orchestrator = FakeOrchestrator(gate=gate)
        queue = make_queue(orchestrator)
        session_id = queue.enqueue(payloads("fail.webm"))[0]
        assert queue.wait_until_idle(timeout=10)
        job = job_for_session(queue, session_id)
        assert job["status"] == "failed"
        assert job["error"]

        gate.clear()
        assert queue.retry(job["id"])
        retried = queue.get_job(job["id"])
        assert retried["status"] in ("pending", "processing")
        assert retried["error"] is None
        assert retried["progress"] <= 10

        gate.set()
        assert queue.wait_until_idle(timeout=10)
        assert queue.get_job(job["id"])["status"] == "failed"
        assert orchestrator.runs == ["fail.webm", "fail.webm"]
        assert [f.get("status") for sid, f in store.updates if sid == session_id].count("pending") == 1

    def test_retry_only_applies_to_failed_jobs(self, make_queue):
        queue = make_queue(FakeOrchestrator())
        session_id = queue.enqueue(payloads("ok.webm"))[0]
        assert queue.wait_until_idle(timeout=10)

        job = job_for_session(queue, session_id)
        assert not queue.retry(job["id"])
        assert not queue.retry("unknown")
        assert queue.get_job(job["id"])["status"] == "completed"

    def test_cancel_pending_job(self, make_queue, store):
        gate = threading.Event()
        orchestrator = FakeOrchestrator(gate=gate)
        queue = make_queue(orchestrator, max_concurrent=1)
        first, second = queue.enqueue(payloads("first.webm", "second.webm"))

        pending = job_for_session(queue, second)
        assert queue.cancel(pending["id"])
        assert queue.get_job(pending["id"]) is None
        assert not queue.cancel(pending["id"])

        gate.set()
        assert queue.wait_until_idle(timeout=10)
        assert orchestrator.runs == ["first.webm"]
        assert store.sessions[second]["status"] == "failed"

    def test_cancelled_running_job_result_is_discarded(self, make_queue, store, notifier):
        gate = threading.Event()
        orchestrator = FakeOrchestrator(gate=gate)
        queue = make_queue(orchestrator)
        session_id = queue.enqueue(payloads("slow.webm"))[0]

        deadline = time.time() + 5
        while not orchestrator.runs and time.time() < deadline:
            time.sleep(0.005)
        job = job_for_session(queue, session_id)
        assert queue.cancel(job["id"])

        gate.set()
        assert queue.wait_until_idle(timeout=10)

        assert queue.get_queue() == []
        assert store.sessions[session_id]["status"] == "failed"
        assert not [n for n in notifier.notifications if n.title == "File Processed"]

    def test_clear_completed_keeps_failed_jobs(self, make_queue):
        queue = make_queue(FakeOrchestrator())
        queue.enqueue(payloads("a.webm", "b.webm", "fail.webm"))
        assert queue.wait_until_idle(timeout=10)

        assert queue.clear_completed() == 2
        remaining = queue.get_queue()
        assert [job["status"] for job in remaining] == ["failed"]
        assert queue.clear_completed() == 0

    def test_session_id_is_passed_to_pipeline_options(self, make_queue):
        seen = []

        class RecordingOrchestrator(FakeOrchestrator):
            def run(self, payload, options=None, progress=None):
                seen.append(options)
                return super().run(payload, options, progress)

        queue = make_queue(RecordingOrchestrator())
        options = ProcessingOptions(language="de-DE", extract_tasks=True)
        session_id = queue.enqueue(payloads("a.webm"), options)[0]
        assert queue.wait_until_idle(timeout=10)

        assert seen[0].session_id == session_id
        assert seen[0].language == "de-DE"
        assert options.session_id == ""

    def test_enqueue_after_shutdown_is_refused(self, make_queue):
        queue = make_queue(FakeOrchestrator())
        queue.shutdown()
        assert queue.enqueue(payloads("late.webm")) == []

    def test_status_counts_start_empty(self, make_queue):
        status = make_queue(FakeOrchestrator()).get_queue_status()
        assert status["total"] == 0
        assert {status[s.value] for s in JobStatus} == {0}
