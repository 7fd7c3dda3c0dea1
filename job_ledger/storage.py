"""
Ledger CSV and raw email JSON persistence.

The ledger is read once and written once per run. Writes go to a temporary
sibling file which then replaces the ledger, so a failed run leaves the
previous ledger intact.
"""

import csv
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Sequence

from pydantic import ValidationError

from .models import LEDGER_COLUMNS, LedgerRecord, RawEmail

logger = logging.getLogger(__name__)


class EmailSourceError(Exception):
    """Raised when the raw email file cannot be read as structured data."""


def load_ledger(path: Path) -> list[LedgerRecord]:
    """Load the ledger, treating a missing or empty file as an empty ledger."""
    if not path.exists():
        logger.info(f"Ledger not found at {path}, starting a new one")
        return []

    records = []
    with open(path, "r", newline="", encoding="utf-8-sig") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None:
            logger.info(f"Ledger at {path} is empty")
            return records

        for row in reader:
            values = {column: row[column] for column in LEDGER_COLUMNS if column in row}
            records.append(LedgerRecord.model_validate(values))

    logger.info(f"Loaded {len(records)} ledger records from {path}")
    return records


def sort_ledger(records: Sequence[LedgerRecord]) -> list[LedgerRecord]:
    """Order records by date received, newest first.

    The sort is stable, so records with equal (including blank) dates keep
    their relative order.
    """
    return sorted(records, key=lambda record: record.date_received, reverse=True)


def save_ledger(path: Path, records: Sequence[LedgerRecord]) -> int:
    """Write the full ledger, replacing the existing file atomically."""
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(fd, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=LEDGER_COLUMNS)
            writer.writeheader()
            for record in records:
                writer.writerow(record.to_row())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    logger.info(f"Saved {len(records)} ledger records to {path}")
    return len(records)


def _decode_email_file(path: Path) -> Any:
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(f"Strict decoding of {path} failed ({e}), retrying from raw bytes")

    text = path.read_bytes().decode("utf-8", errors="replace").lstrip("\ufeff")
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise EmailSourceError(f"Email file {path} is not valid JSON: {e}") from e


def load_raw_emails(path: Path) -> list[RawEmail]:
    """Load exported emails from a JSON file."""
    data = _decode_email_file(path)

    if isinstance(data, dict) and "emails" in data:
        data = data["emails"]
    if not isinstance(data, list):
        raise EmailSourceError(
            f"Email file {path} must contain a list of emails, got {type(data).__name__}"
        )

    emails = []
    for position, item in enumerate(data):
        try:
            emails.append(RawEmail.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping malformed email at position {position}: {e}")

    logger.info(f"Loaded {len(emails)} emails from {path}")
    return emails


def save_raw_emails(path: Path, emails: Sequence[RawEmail]) -> None:
    """Overwrite the intermediate email file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = [email.model_dump() for email in emails]
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
    logger.info(f"Saved {len(emails)} emails to {path}")
