"""
Heuristic task extraction from transcripts.

Finds action-oriented sentences, derives a short title, a priority from
urgency words, tags from the vocabulary used and a due date from relative
date phrases. Extraction never raises to the caller: any internal error
yields an empty list.
"""

import logging
import re
import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from .models import Task, TaskPriority

logger = logging.getLogger(__name__)

MAX_TASKS = 10

ACTION_PATTERNS = [
    re.compile(r"\b(?:need to|should|must|will|going to|plan to|schedule|meeting|deadline|due|remind|todo|task)\b", re.I),
    re.compile(r"\b(?:call|email|send|contact|follow up|check|review|update|complete|finish)\b", re.I),
    re.compile(r"\b(?:buy|purchase|order|get|obtain|acquire)\b", re.I),
    re.compile(r"\b(?:book|reserve|appointment|meeting|call)\b", re.I),
]

PRIORITY_PATTERNS = [
    (TaskPriority.URGENT, re.compile(r"\b(?:urgent|asap|immediately|critical|emergency)\b", re.I)),
    (TaskPriority.HIGH, re.compile(r"\b(?:important|priority|soon|deadline)\b", re.I)),
    (TaskPriority.LOW, re.compile(r"\b(?:sometime|eventually|when possible|low priority)\b", re.I)),
]

TAG_PATTERNS = [
    ("meeting", re.compile(r"\b(?:meeting|call|conference)\b", re.I)),
    ("communication", re.compile(r"\b(?:email|send|contact)\b", re.I)),
    ("shopping", re.compile(r"\b(?:buy|purchase|order)\b", re.I)),
    ("review", re.compile(r"\b(?:review|check|analyze)\b", re.I)),
    ("deadline", re.compile(r"\b(?:deadline|due|urgent)\b", re.I)),
]


def determine_priority(text: str) -> TaskPriority:
    for priority, pattern in PRIORITY_PATTERNS:
        if pattern.search(text):
            return priority
    return TaskPriority.MEDIUM


def extract_due_date(text: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """Resolve relative date phrases ("tomorrow", "next week", ...) against now."""
    now = now or datetime.now()

    if re.search(r"\btomorrow\b", text, re.I):
        return now + timedelta(days=1)
    if re.search(r"\b(?:this week|by friday|by the end of the week)\b", text, re.I):
        # Friday of the current week
        return now + timedelta(days=4 - now.weekday())
    if re.search(r"\bnext week\b", text, re.I):
        return now + timedelta(days=7)
    if re.search(r"\bnext month\b", text, re.I):
        month = now.month % 12 + 1
        year = now.year + (1 if month == 1 else 0)
        day = min(now.day, 28)
        return now.replace(year=year, month=month, day=day)
    return None


def extract_task_title(text: str) -> str:
    title = ""
    for word in text.split()[:8]:
        title += word + " "
        if re.search(r"[,.;:]", word) or len(title) > 50:
            break
    return re.sub(r"[,.;:]$", "", title.strip())


def extract_tags(text: str) -> List[str]:
    return [tag for tag, pattern in TAG_PATTERNS if pattern.search(text)]


class TaskExtractor:
    """Extracts up to ten tasks from a transcript."""

    def __init__(self, max_tasks: int = MAX_TASKS):
        self.max_tasks = max_tasks

    def extract_tasks(self, transcript: str, session_id: str) -> List[Task]:
        try:
            return self._extract(transcript, session_id)
        except Exception as e:
            logger.error(f"Task extraction failed for session {session_id}: {e}")
            return []

    def _extract(self, transcript: str, session_id: str) -> List[Task]:
        tasks: List[Task] = []
        sentences = [s.strip() for s in re.split(r"[.!?]+", transcript) if len(s.strip()) > 10]

        for sentence in sentences:
            if len(sentence) <= 20 or not any(p.search(sentence) for p in ACTION_PATTERNS):
                continue

            title = extract_task_title(sentence)
            if len(title) <= 5:
                continue

            tasks.append(
                Task(
                    id=uuid.uuid4().hex,
                    session_id=session_id,
                    title=title,
                    description=sentence,
                    priority=determine_priority(sentence),
                    due_date=extract_due_date(sentence),
                    tags=extract_tags(sentence),
                    source_text=sentence,
                )
            )
            if len(tasks) >= self.max_tasks:
                break

        logger.info(f"Extracted {len(tasks)} tasks for session {session_id}")
        return tasks
