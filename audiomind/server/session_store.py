"""
Filesystem-based session store.

Each session gets its own directory holding a small session.json with the
status fields, plus one JSON file per large result:
- transcription.json
- summary.json
- tasks.json

The store is the session sink of the processing queue: the queue creates a
session per uploaded file and merges partial updates into it as the job runs.
"""

import json
import shutil
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional


def is_valid_session_id(session_id: str) -> bool:
    """Session ids are UUID strings; anything else never maps to a directory."""
    try:
        return str(uuid.UUID(session_id)) == session_id
    except (TypeError, ValueError, AttributeError):
        return False


class SessionStore:
    """Stores processing sessions as JSON files under one directory."""

    def __init__(self, sessions_dir: str = "sessions"):
        """
        Initialize the session store.

        Args:
            sessions_dir: Directory to store all session directories
        """
        self.sessions_dir = Path(sessions_dir)
        self.sessions_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

        # File names for different assets
        self.FILES = {
            "session": "session.json",
            "transcription": "transcription.json",
            "summary": "summary.json",
            "tasks": "tasks.json",
        }

    def create_session(self, fields: Dict[str, Any]) -> str:
        """
        Create a new session.

        Args:
            fields: Initial session fields (file name, size, MIME type, status)

        Returns:
            Session ID (UUID string)
        """
        session_id = str(uuid.uuid4())
        with self._lock:
            self.get_session_dir(session_id).mkdir(exist_ok=True)
            now = datetime.now().isoformat()
            session = {"id": session_id, "created_at": now, "updated_at": now}
            self._write_fields(session_id, session, fields)
        return session_id

    def get_session_dir(self, session_id: str) -> Path:
        """
        Get the directory path for a session.

        Raises:
            KeyError: If the session id is not a UUID
        """
        if not is_valid_session_id(session_id):
            raise KeyError(f"Invalid session id: {session_id!r}")
        return self.sessions_dir / session_id

    def session_exists(self, session_id: str) -> bool:
        """Check if a session exists."""
        if not is_valid_session_id(session_id):
            return False
        return (self.get_session_dir(session_id) / self.FILES["session"]).exists()

    def update_session(self, session_id: str, fields: Dict[str, Any]) -> None:
        """
        Merge fields into a session.

        Args:
            session_id: Session identifier
            fields: Partial fields; transcription, summary and tasks go to their own files

        Raises:
            KeyError: If the session does not exist
        """
        with self._lock:
            session = self._load_json_file(session_id, self.FILES["session"])
            if session is None:
                raise KeyError(f"Session {session_id} does not exist")
            self._write_fields(session_id, session, fields)

    def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        """
        Get the complete session.

        Returns:
            Session fields merged with any stored results, or None if unknown
        """
        if not is_valid_session_id(session_id):
            return None

        session = self._load_json_file(session_id, self.FILES["session"])
        if session is None:
            return None

        for key in ("transcription", "summary", "tasks"):
            value = self._load_json_file(session_id, self.FILES[key])
            if value is not None:
                session[key] = value
        return session

    def list_sessions(self, status_filter: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        """
        List sessions, newest first.

        Args:
            status_filter: Only return sessions with this status
            limit: Maximum number of sessions to return

        Returns:
            List of session dictionaries without the large result files
        """
        sessions = []
        for session_dir in self.sessions_dir.iterdir():
            if not session_dir.is_dir() or not is_valid_session_id(session_dir.name):
                continue

            session = self._load_json_file(session_dir.name, self.FILES["session"])
            if not session:
                continue
            if status_filter and session.get("status") != status_filter:
                continue
            sessions.append(session)

        sessions.sort(key=lambda x: x.get("created_at", ""), reverse=True)
        return sessions[:limit]

    def delete_session(self, session_id: str) -> bool:
        """
        Delete a session and all its files.

        Returns:
            True if the session was deleted, False if it didn't exist
        """
        if not is_valid_session_id(session_id):
            return False

        session_dir = self.get_session_dir(session_id)
        if not session_dir.exists():
            return False

        shutil.rmtree(session_dir)
        return True

    def _write_fields(self, session_id: str, session: Dict[str, Any], fields: Dict[str, Any]) -> None:
        for key, value in fields.items():
            if key in ("transcription", "summary", "tasks"):
                self._save_json_file(session_id, self.FILES[key], value)
            else:
                session[key] = value

        session["updated_at"] = datetime.now().isoformat()
        self._save_json_file(session_id, self.FILES["session"], session)

    def _save_json_file(self, session_id: str, filename: str, data: Any) -> None:
        """Save data as JSON to a session file."""
        file_path = self.get_session_dir(session_id) / filename
        with open(file_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2, default=str)

    def _load_json_file(self, session_id: str, filename: str) -> Optional[Any]:
        """Load JSON data from a session file."""
        file_path = self.get_session_dir(session_id) / filename
        if not file_path.exists():
            return None

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError):
            return None
