"""
Pure decision helpers for the visit processing pipeline.

Kept free of I/O so webhook handlers, the backup poller and the manual
retry route make the same decisions.
"""

import math
from datetime import datetime
from typing import Any, Dict, Optional

from ..models.visit import ProcessingStatus


DEFAULT_MAX_RETRIES = 3
RETRY_MIN_INTERVAL_MS = 30_000

TRANSCRIPTION_COMPLETED = "completed"
TRANSCRIPTION_ERROR = "error"


def _has_text(value: Optional[str]) -> bool:
    return bool(value and value.strip())


def resolve_retry_path(transcript: Optional[str] = None, transcript_text: Optional[str] = None) -> str:
    """
    Pick how a failed visit is retried.

    Returns:
        "summarize" when a transcript already exists, else "retranscribe"
    """
    if _has_text(transcript) or _has_text(transcript_text):
        return "summarize"
    return "retranscribe"


def calculate_retry_wait_seconds(
    now_ms: int,
    last_retry_at_ms: Optional[int],
    min_interval_ms: int = RETRY_MIN_INTERVAL_MS,
) -> int:
    """Seconds the caller must still wait before another retry (0 when allowed)."""
    if last_retry_at_ms is None:
        return 0
    remaining = min_interval_ms - (now_ms - last_retry_at_ms)
    if remaining <= 0:
        return 0
    return math.ceil(remaining / 1000)


def resolve_transcribing_recovery_mode(
    retry_count: int,
    has_transcription_id: bool,
    transcript_status: Optional[str] = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> str:
    """
    Decide what to do with a visit stuck in ``transcribing``.

    Returns one of fail_max_retries, retry_pending, resume_summarizing,
    mark_failed, skip.
    """
    if retry_count >= max_retries:
        return "fail_max_retries"
    if not has_transcription_id:
        return "retry_pending"
    if transcript_status == TRANSCRIPTION_COMPLETED:
        return "resume_summarizing"
    if transcript_status == TRANSCRIPTION_ERROR:
        return "mark_failed"
    return "skip"


def resolve_summarizing_recovery_mode(retry_count: int, max_retries: int = DEFAULT_MAX_RETRIES) -> str:
    if retry_count >= max_retries:
        return "fail_max_retries"
    return "retry"


def build_webhook_visit_update(
    status: str,
    now: datetime,
    formatted_transcript: Optional[str] = None,
    transcript_text: Optional[str] = None,
    error: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Column values for a transcription-complete transition.

    Args:
        status: Vendor status, "completed" or "error"
        now: Transition timestamp
        formatted_transcript: Speaker-labelled transcript (completed only)
        transcript_text: Plain transcript text (completed only)
        error: Vendor error message (error only)
    """
    if status == TRANSCRIPTION_COMPLETED:
        return {
            "transcript": formatted_transcript or "",
            "transcript_text": transcript_text or "",
            "transcription_status": TRANSCRIPTION_COMPLETED,
            "transcription_completed_at": now,
            "transcription_error": None,
            "processing_error": None,
            "processing_status": ProcessingStatus.SUMMARIZING,
            "webhook_triggered": True,
            "updated_at": now,
        }

    message = error or "Transcription failed"
    return {
        "transcription_status": TRANSCRIPTION_ERROR,
        "transcription_error": message,
        "processing_status": ProcessingStatus.FAILED,
        "status": "failed",
        "processing_error": message,
        "webhook_triggered": True,
        "updated_at": now,
    }
