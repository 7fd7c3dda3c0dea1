"""Google Sheets mirror of the ledger."""

import logging
from typing import Sequence

from googleapiclient.discovery import build

from .auth import get_credentials
from .models import LEDGER_COLUMNS, LedgerRecord

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
TOKEN_NAME = "sheets_token.json"


def column_letter(number: int) -> str:
    """Convert a 1-based column number to its A1 letter (1 -> A, 27 -> AA)."""
    letters = ""
    while number > 0:
        number, remainder = divmod(number - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def ledger_values(records: Sequence[LedgerRecord]) -> list[list]:
    """Header row followed by one row per record."""
    return [list(LEDGER_COLUMNS)] + [record.to_values() for record in records]


def write_ledger(
    service, spreadsheet_id: str, sheet_name: str, records: Sequence[LedgerRecord]
) -> int:
    """Replace the sheet contents with the full ledger."""
    last_column = column_letter(len(LEDGER_COLUMNS))

    service.spreadsheets().values().clear(
        spreadsheetId=spreadsheet_id,
        range=f"{sheet_name}!A:{last_column}",
        body={},
    ).execute()

    service.spreadsheets().values().update(
        spreadsheetId=spreadsheet_id,
        range=f"{sheet_name}!A1",
        valueInputOption="RAW",
        body={"values": ledger_values(records)},
    ).execute()

    logger.info(f"Mirrored {len(records)} ledger rows to sheet {sheet_name}")
    return len(records)


def sync_ledger(
    spreadsheet_id: str, sheet_name: str, records: Sequence[LedgerRecord]
) -> int:
    """Authenticate and mirror the ledger to a spreadsheet."""
    creds = get_credentials(SCOPES, TOKEN_NAME)
    service = build("sheets", "v4", credentials=creds)
    return write_ledger(service, spreadsheet_id, sheet_name, records)
