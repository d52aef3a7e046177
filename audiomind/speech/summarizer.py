"""
Transcript summarization using the OpenAI API.

Uses lazy loading to avoid creating the OpenAI client during module import.
The summarizer is an external collaborator of the orchestrator: it either
returns a SummaryResult or raises SummarizationError, and the orchestrator
decides what to do about a failure.
"""

import json
import logging
from typing import Any, Dict, Optional

from ..exceptions import SummarizationError
from .models import SummaryResult

logger = logging.getLogger(__name__)

SUMMARY_LENGTH_HINTS = {
    "short": "two or three sentences",
    "medium": "one paragraph",
    "long": "several paragraphs",
}

PROMPT_TEMPLATE = """You are an assistant creating concise notes from a recorded audio transcript.
Summarize this transcript in {length}, organised by topic, including decisions and next actions.
Answer with a JSON object with the keys "summary" (string), "key_points" (list of strings, at most 8)
and "topics" (list of strings, at most 10).

Transcript:
{transcript}"""


class TranscriptSummarizer:
    """
    Generate summaries, key points and topics from a transcript.

    The OpenAI client is created on first use, so constructing a summarizer
    never touches the network.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: Optional[str] = None,
        summary_length: str = "medium",
    ):
        """
        Initialize summarizer with OpenAI API key.

        Args:
            api_key: OpenAI API authentication key
            model: Chat model to use (default: "gpt-4o-mini")
            base_url: Optional OpenAI-compatible endpoint
            summary_length: short, medium or long
        """
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.summary_length = summary_length
        self.client = None

    def _load_client(self):
        if self.client is not None:
            return

        # Import OpenAI only when the client is first needed
        from openai import OpenAI

        if self.base_url:
            self.client = OpenAI(api_key=self.api_key, base_url=self.base_url)
        else:
            self.client = OpenAI(api_key=self.api_key)
        logger.info(f"OpenAI client loaded (model: {self.model})")

    def summarize(self, transcript_text: str, length: Optional[str] = None) -> SummaryResult:
        """
        Summarize a transcript.

        Args:
            transcript_text: Full transcript text
            length: short, medium or long (default: the summarizer's summary_length)

        Returns:
            SummaryResult with summary, key points and topics

        Raises:
            SummarizationError: If the transcript is empty or the API call fails
        """
        if not transcript_text or not transcript_text.strip():
            raise SummarizationError("Empty transcript provided")

        prompt = PROMPT_TEMPLATE.format(
            length=SUMMARY_LENGTH_HINTS.get(length or self.summary_length, SUMMARY_LENGTH_HINTS["medium"]),
            transcript=transcript_text,
        )

        try:
            self._load_client()
            logger.info(f"Generating summary using {self.model}...")
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": "You are a meeting summarizer."},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
            )
            content = response.choices[0].message.content
        except Exception as e:
            raise SummarizationError(f"Summary generation failed: {e}") from e

        return self._parse_summary(content, transcript_text)

    def _parse_summary(self, content: Optional[str], transcript_text: str) -> SummaryResult:
        try:
            data: Dict[str, Any] = json.loads(content or "")
        except json.JSONDecodeError as e:
            raise SummarizationError(f"Summary response was not valid JSON: {e}") from e

        summary = str(data.get("summary") or "").strip()
        if not summary:
            raise SummarizationError("Summary response contained no summary")

        return SummaryResult(
            summary=summary,
            key_points=[str(p) for p in data.get("key_points") or []][:8],
            topics=[str(t) for t in data.get("topics") or []][:10],
            provider="openai",
            model=self.model,
            confidence=0.85,
            word_count=len(summary.split()),
            compression_ratio=len(transcript_text) / len(summary),
        )
