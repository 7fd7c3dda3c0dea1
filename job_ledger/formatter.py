"""Normalize classifier output into ledger records."""

from datetime import datetime
from typing import Optional

from .models import (
    DEFAULT_COMPANY,
    DEFAULT_JOB_TITLE,
    TIMESTAMP_FORMAT,
    ClassificationResult,
    LedgerRecord,
)


def format_timestamp(now: Optional[datetime] = None) -> str:
    """Render a timestamp in the ledger's format, defaulting to now."""
    return (now or datetime.now()).strftime(TIMESTAMP_FORMAT)


def format_record(
    result: ClassificationResult, now: Optional[datetime] = None
) -> LedgerRecord:
    """Build a fresh ledger record from one classification result.

    Empty company and job title fall back to the ledger defaults, missing
    free-text fields become empty strings and a missing confidence becomes
    0.0. The received/applied dates, subject and sender are left blank.
    """
    timestamp = format_timestamp(now)
    confidence = result.confidence_score
    return LedgerRecord(
        message_id=result.message_id,
        company_name=result.company_name or DEFAULT_COMPANY,
        job_title=result.job_title or DEFAULT_JOB_TITLE,
        application_status=result.application_status or "",
        next_action=result.next_action or "",
        key_details=result.key_details or "",
        confidence_score=confidence if confidence is not None else 0.0,
        last_contact=timestamp,
        created_at=timestamp,
        updated_at=timestamp,
    )
