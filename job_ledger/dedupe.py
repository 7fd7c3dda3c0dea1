"""Deduplication keys and indexes over ledger records."""

from collections import Counter
from typing import Iterable, Sequence

from .models import DEFAULT_COMPANY, DEFAULT_JOB_TITLE, LedgerRecord


def business_key(company_name: str, job_title: str) -> str:
    """Composite key identifying one tracked application.

    Exact, case-sensitive concatenation; only empty values are replaced
    with the ledger defaults.
    """
    return f"{company_name or DEFAULT_COMPANY}_{job_title or DEFAULT_JOB_TITLE}"


def record_key(record: LedgerRecord) -> str:
    """Get the business key of a ledger record."""
    return business_key(record.company_name, record.job_title)


def build_key_index(records: Sequence[LedgerRecord]) -> dict[str, list[int]]:
    """Map each business key to the positions of the records holding it."""
    index: dict[str, list[int]] = {}
    for position, record in enumerate(records):
        index.setdefault(record_key(record), []).append(position)
    return index


def existing_message_ids(records: Iterable[LedgerRecord]) -> set[str]:
    """Get the message ids already recorded in the ledger."""
    return {record.message_id for record in records if record.message_id}


def find_duplicate_keys(records: Iterable[LedgerRecord]) -> list[str]:
    """Get business keys held by more than one record, in first-seen order."""
    counts = Counter(record_key(record) for record in records)
    return [key for key, count in counts.items() if count > 1]
