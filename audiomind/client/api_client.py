"""
Client module for communicating with the transcription API server.

This module provides a simple interface to:
- Upload audio files for processing
- Inspect, retry, cancel and clear queued jobs
- Retrieve processed sessions
"""

import json
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests
from requests.exceptions import ConnectionError, RequestException

from ..config import ConfigManager


class APIClient:
    """Client for communicating with the transcription API server."""

    def __init__(self, base_url: Optional[str] = None, session: Optional[requests.Session] = None, timeout: int = 30):
        """
        Initialize the API client.

        Args:
            base_url: Base URL of the API server (default: API_BASE_URL setting)
            session: HTTP session to use
            timeout: Default request timeout in seconds
        """
        self.base_url = ConfigManager.get("API_BASE_URL", base_url).rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def health_check(self) -> Dict[str, Any]:
        """
        Check if the API server is healthy.

        Returns:
            Dictionary containing health status information

        Raises:
            ConnectionError: If unable to connect to the server
        """
        try:
            response = self.session.get(f"{self.base_url}/health", timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except RequestException as e:
            raise ConnectionError(f"Unable to connect to API server: {e}")

    def upload_audio_files(
        self, file_paths: List[str], options: Optional[Dict[str, Any]] = None, timeout: int = 300
    ) -> Dict[str, Any]:
        """
        Upload audio files for processing.

        Args:
            file_paths: Paths to the audio files to upload
            options: Processing options (language, diarization, summary, tasks, ...)
            timeout: Request timeout in seconds

        Returns:
            Dictionary containing session_ids and the created jobs

        Raises:
            FileNotFoundError: If a file doesn't exist
            RequestException: If the upload fails
        """
        paths = [Path(p) for p in file_paths]
        for path in paths:
            if not path.exists():
                raise FileNotFoundError(f"Audio file not found: {path}")

        data = {}
        if options:
            data["options"] = json.dumps(options)

        handles = []
        try:
            for path in paths:
                handles.append(open(path, "rb"))
            files = [("files", (path.name, handle)) for path, handle in zip(paths, handles)]
            response = self.session.post(f"{self.base_url}/upload", files=files, data=data, timeout=timeout)
            response.raise_for_status()
            return response.json()
        except RequestException as e:
            raise RequestException(f"Upload failed: {e}")
        finally:
            for handle in handles:
                handle.close()

    def get_queue(self) -> List[Dict[str, Any]]:
        """Get all jobs in the processing queue."""
        return self._request("GET", "/queue", "Failed to get queue")["jobs"]

    def get_queue_status(self) -> Dict[str, Any]:
        """Get job counts per status and whether the queue is processing."""
        return self._request("GET", "/queue/status", "Failed to get queue status")

    def retry_job(self, job_id: str) -> Dict[str, Any]:
        """
        Retry a failed job.

        Raises:
            RequestException: If the job is unknown, not failed, or the request fails
        """
        return self._request("POST", f"/queue/{job_id}/retry", "Failed to retry job")

    def cancel_job(self, job_id: str) -> Dict[str, Any]:
        """Remove a job from the queue."""
        return self._request("DELETE", f"/queue/{job_id}", "Failed to cancel job")

    def clear_completed(self) -> int:
        """
        Remove completed jobs from the queue.

        Returns:
            Number of jobs removed
        """
        return self._request("POST", "/queue/clear-completed", "Failed to clear completed jobs")["removed"]

    def get_session(self, session_id: str) -> Dict[str, Any]:
        """
        Get a processing session.

        Args:
            session_id: Session identifier returned by the upload

        Returns:
            Session fields, plus transcription, summary and tasks once processed

        Raises:
            RequestException: If the request fails
        """
        return self._request("GET", f"/sessions/{session_id}", "Failed to get session")

    def delete_session(self, session_id: str) -> Dict[str, Any]:
        """
        Delete a processed session and its results.

        Raises:
            RequestException: If the session is unknown, still processing, or the request fails
        """
        return self._request("DELETE", f"/sessions/{session_id}", "Failed to delete session")

    def list_sessions(self, status_filter: Optional[str] = None, limit: int = 100) -> Dict[str, Any]:
        """
        List sessions, newest first.

        Args:
            status_filter: Filter by status (pending, transcribing, completed, failed)
            limit: Maximum number of sessions to return

        Returns:
            Dictionary containing the sessions and their count
        """
        params: Dict[str, Any] = {"limit": limit}
        if status_filter:
            params["status"] = status_filter
        return self._request("GET", "/sessions", "Failed to list sessions", params=params)

    def wait_for_session(
        self, session_id: str, poll_interval: float = 5, timeout: float = 3600, sleep=time.sleep
    ) -> Dict[str, Any]:
        """
        Wait for a session to finish processing.

        Args:
            session_id: Session identifier
            poll_interval: Time to wait between status checks (seconds)
            timeout: Maximum time to wait (seconds)
            sleep: Sleep function

        Returns:
            The completed session

        Raises:
            TimeoutError: If the session doesn't complete within the timeout
            RequestException: If the session failed or any API call fails
        """
        start_time = time.time()

        while time.time() - start_time < timeout:
            session = self.get_session(session_id)
            status = session.get("status")

            if status == "completed":
                return session
            elif status == "failed":
                error = session.get("error", "Unknown error")
                raise RequestException(f"Processing failed: {error}")

            sleep(poll_interval)

        raise TimeoutError(f"Session {session_id} did not complete within {timeout} seconds")

    def _request(self, method: str, path: str, error_message: str, **kwargs) -> Dict[str, Any]:
        try:
            response = self.session.request(method, f"{self.base_url}{path}", timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response.json()
        except RequestException as e:
            raise RequestException(f"{error_message}: {e}")


# Convenience function for quick uploads
def upload_and_process(
    file_path: str,
    options: Optional[Dict[str, Any]] = None,
    api_url: Optional[str] = None,
    wait_for_result: bool = True,
    poll_interval: float = 5,
    timeout: float = 3600,
) -> Dict[str, Any]:
    """
    Upload a file and optionally wait for processing to complete.

    Args:
        file_path: Path to the audio file
        options: Processing options
        api_url: API server URL
        wait_for_result: Whether to wait for completion
        poll_interval: Polling interval in seconds
        timeout: Maximum wait time in seconds

    Returns:
        Dictionary containing either upload info or the completed session
    """
    client = APIClient(api_url)

    upload_result = client.upload_audio_files([file_path], options)
    session_id = upload_result["session_ids"][0]

    if wait_for_result:
        return client.wait_for_session(session_id, poll_interval, timeout)
    return upload_result
