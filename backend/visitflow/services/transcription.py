"""
AssemblyAI transcription client.

Only the calls the visit pipeline needs: fetching a finished transcript
and rendering its utterances as readable, timestamped lines.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..core.config import settings


logger = logging.getLogger(__name__)


class TranscriptionServiceError(Exception):
    """Raised when the transcription vendor cannot serve a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    return isinstance(exc, TranscriptionServiceError) and (exc.status_code or 0) >= 500


@dataclass
class Utterance:
    speaker: str
    text: str
    start: int = 0
    end: int = 0


@dataclass
class Transcript:
    id: str
    status: str
    text: str = ""
    error: Optional[str] = None
    utterances: List[Utterance] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Transcript":
        utterances = [
            Utterance(
                speaker=str(u.get("speaker", "")),
                text=u.get("text") or "",
                start=int(u.get("start") or 0),
                end=int(u.get("end") or 0),
            )
            for u in (data.get("utterances") or [])
        ]
        return cls(
            id=data.get("id", ""),
            status=data.get("status", ""),
            text=data.get("text") or "",
            error=data.get("error"),
            utterances=utterances,
        )


def format_transcript(utterances: Optional[List[Utterance]], fallback_text: str = "") -> str:
    """
    Render utterances as ``[MM:SS] Speaker X: text`` lines.

    Falls back to the plain transcript text when there are no utterances.
    """
    if not utterances:
        return fallback_text or ""

    lines = []
    for utterance in utterances:
        start_seconds = utterance.start // 1000
        minutes, seconds = divmod(start_seconds, 60)
        lines.append(f"[{minutes:02d}:{seconds:02d}] Speaker {utterance.speaker}: {utterance.text.strip()}")
    return "\n".join(lines)


class AssemblyAIClient:
    """
    Thin HTTP client for the AssemblyAI REST API.

    Example usage:
        client = AssemblyAIClient()
        transcript = client.get_transcript(transcript_id)
        text = client.format_transcript(transcript.utterances, transcript.text)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.assemblyai_api_key
        self.base_url = (base_url or settings.assemblyai_base_url).rstrip("/")
        self.timeout = timeout or settings.assemblyai_timeout_seconds
        self.transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            headers={"Authorization": self.api_key, "Content-Type": "application/json"},
            timeout=self.timeout,
            transport=self.transport,
        )

    @retry(
        retry=retry_if_exception(_is_transient),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, max=5),
        reraise=True,
    )
    def get_transcript(self, transcript_id: str) -> Transcript:
        """
        Fetch a transcript by id.

        Raises:
            TranscriptionServiceError: Vendor rejected the request or is down
        """
        if not self.is_configured:
            raise TranscriptionServiceError("AssemblyAI API key is not configured")

        with self._client() as client:
            response = client.get(f"/transcript/{transcript_id}")

        if response.status_code == 401:
            raise TranscriptionServiceError(
                "AssemblyAI authentication failed - API key may be invalid", 401)
        if response.status_code == 404:
            raise TranscriptionServiceError(f"Transcript not found: {transcript_id}", 404)
        if response.status_code >= 500:
            logger.warning(f"AssemblyAI returned {response.status_code} for {transcript_id}")
            raise TranscriptionServiceError(
                "AssemblyAI service temporarily unavailable", response.status_code)
        if response.status_code >= 400:
            raise TranscriptionServiceError(
                f"Failed to get transcript: HTTP {response.status_code}", response.status_code)

        return Transcript.from_api(response.json())

    def format_transcript(self, utterances: Optional[List[Utterance]], fallback_text: str = "") -> str:
        return format_transcript(utterances, fallback_text)
