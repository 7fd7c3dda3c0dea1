"""Merge newly classified candidates into the existing ledger."""

import logging
from datetime import datetime
from typing import Optional, Sequence

from .dedupe import build_key_index, existing_message_ids, record_key
from .formatter import format_record
from .models import ClassificationResult, LedgerRecord

logger = logging.getLogger(__name__)


def apply_update(existing: LedgerRecord, update: LedgerRecord) -> LedgerRecord:
    """Fold a freshly formatted record into an existing one.

    Extracted fields take the latest value, confidence never decreases, and
    the first message id, creation time and passthrough fields are kept.
    The update's creation time is the merge time.
    """
    return existing.model_copy(
        update={
            "company_name": update.company_name,
            "job_title": update.job_title,
            "application_status": update.application_status,
            "next_action": update.next_action,
            "key_details": update.key_details,
            "confidence_score": max(
                update.confidence_score, existing.confidence_score
            ),
            "last_contact": update.created_at,
            "updated_at": update.created_at,
        }
    )


def merge(
    existing: Sequence[LedgerRecord],
    candidates: Sequence[ClassificationResult],
    now: Optional[datetime] = None,
) -> list[LedgerRecord]:
    """Produce the next ledger state from the current one and a batch.

    Candidates whose business key is already tracked update every matching
    record in place (last candidate wins); the rest become new records,
    appended in arrival order. Neither input is modified.
    """
    now = now or datetime.now()
    merged = list(existing)
    index = build_key_index(merged)
    seen_ids = existing_message_ids(merged)

    new_records: list[LedgerRecord] = []
    new_index: dict[str, int] = {}

    for candidate in candidates:
        if candidate.message_id and candidate.message_id in seen_ids:
            logger.debug(f"Skipping already recorded message: {candidate.message_id}")
            continue

        formatted = format_record(candidate, now)
        key = record_key(formatted)

        if key in index:
            for position in index[key]:
                merged[position] = apply_update(merged[position], formatted)
            logger.debug(f"Updated existing application: {key}")
        elif key in new_index:
            position = new_index[key]
            new_records[position] = apply_update(new_records[position], formatted)
            logger.debug(f"Collapsed repeated new application: {key}")
        else:
            new_index[key] = len(new_records)
            new_records.append(formatted)
            logger.debug(f"New application: {key}")

    return merged + new_records


def count_changes(
    before: Sequence[LedgerRecord], after: Sequence[LedgerRecord]
) -> tuple[int, int]:
    """Count (new, updated) records between two ledger states from merge."""
    updated = sum(1 for old, new in zip(before, after) if old != new)
    return len(after) - len(before), updated
