"""Gmail API client for exporting recent inbox messages."""

import base64
import html
import logging
import re
from datetime import datetime, timedelta
from typing import Any, Optional

from googleapiclient.discovery import build

from .auth import get_credentials
from .models import RawEmail

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/gmail.readonly"]
TOKEN_NAME = "token.json"


def html_to_text(text: str) -> str:
    """Convert HTML to plain text."""
    text = re.sub(r"<(script|style)[^>]*>.*?</\1>", " ", text, flags=re.IGNORECASE | re.DOTALL)
    text = re.sub(r"<br\s*/?>", "\n", text, flags=re.IGNORECASE)
    text = re.sub(r"</?p[^>]*>", "\n", text, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", " ", text)
    text = html.unescape(text)
    text = re.sub(r"[ \t\r\f\v]+", " ", text)
    text = re.sub(r"\n\s*\n+", "\n\n", text)
    return text.strip()


def build_gmail_query(days_back: int = 7, extra_query: str = "") -> str:
    """Build the Gmail search query for the lookback window."""
    after_date = (datetime.now() - timedelta(days=days_back)).strftime("%Y/%m/%d")
    query = f"after:{after_date} in:inbox"
    if extra_query:
        query = f"{query} ({extra_query})"
    return query


def _decode_part(data: str) -> str:
    return base64.urlsafe_b64decode(data).decode("utf-8", errors="replace")


def get_email_body(message: dict[str, Any]) -> str:
    """Extract the email body as plain text, preferring text/plain parts."""
    payload = message.get("payload", {})

    def find_part(part: dict, mime_type: str) -> Optional[str]:
        if part.get("mimeType") == mime_type:
            data = part.get("body", {}).get("data", "")
            if data:
                return _decode_part(data)
        for subpart in part.get("parts", []):
            text = find_part(subpart, mime_type)
            if text:
                return text
        return None

    plain = find_part(payload, "text/plain")
    if plain:
        return plain.strip()

    markup = find_part(payload, "text/html")
    if markup:
        return html_to_text(markup)

    body_data = payload.get("body", {}).get("data", "")
    if body_data:
        return _decode_part(body_data).strip()

    return ""


def get_email_headers(message: dict[str, Any]) -> dict[str, str]:
    """Extract common headers from email message."""
    headers = {}
    payload = message.get("payload", {})

    for header in payload.get("headers", []):
        name = header.get("name", "").lower()
        if name in ("from", "to", "subject", "date"):
            headers[name] = header.get("value", "")

    return headers


def to_raw_email(message: dict[str, Any]) -> RawEmail:
    """Convert a full Gmail API message into a RawEmail."""
    headers = get_email_headers(message)
    return RawEmail(
        message_id=message.get("id", ""),
        subject=headers.get("subject", ""),
        sender=headers.get("from", ""),
        date_received=headers.get("date", ""),
        content=get_email_body(message),
    )


def fetch_raw_emails(days_back: int = 7, extra_query: str = "") -> list[RawEmail]:
    """Fetch inbox messages received within the last days_back days."""
    creds = get_credentials(SCOPES, TOKEN_NAME)
    service = build("gmail", "v1", credentials=creds)

    query = build_gmail_query(days_back, extra_query)
    logger.info(f"Fetching emails with query: {query}")

    messages = []
    page_token = None

    while True:
        results = (
            service.users()
            .messages()
            .list(userId="me", q=query, pageToken=page_token)
            .execute()
        )

        if "messages" in results:
            messages.extend(results["messages"])

        page_token = results.get("nextPageToken")
        if not page_token:
            break

    logger.info(f"Found {len(messages)} emails in the last {days_back} days")

    emails = []
    for msg_ref in messages:
        msg = (
            service.users()
            .messages()
            .get(userId="me", id=msg_ref["id"], format="full")
            .execute()
        )
        emails.append(to_raw_email(msg))

    return emails
