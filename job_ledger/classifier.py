"""LLM classification of email batches via OpenRouter."""

import json
import logging
import os
import re
from typing import Any, Optional, Sequence

import requests

from .models import ClassificationResult, RawEmail

logger = logging.getLogger(__name__)

OPENROUTER_API_URL = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_MODEL = "google/gemini-2.0-flash-001"
MAX_CONTENT_CHARS = 1000
PREVIEW_CHARS = 200

INSTRUCTIONS = """You review emails from a job seeker's inbox. For EACH email below decide whether it is about one of the user's job applications (confirmation, recruiter outreach, assessment, interview, rejection, offer) and extract the details.

Rules:
- company_name: the hiring company, not the job board or ATS vendor (LinkedIn, Greenhouse, Workday...)
- job_title: the role applied for, or null if not stated
- application_status: one of "Applied", "Under Review", "Interview Scheduled", "Rejected", "Offer Received", or another short status
- confidence_score: 0.0 to 1.0, how sure you are about this extraction
- key_details: one sentence summarising the email
- next_action: what the user should do next, or "" if nothing
- For emails that are not job related set is_job_related to false and leave the other fields null

Return ONLY a JSON array with one object per email, no prose:
[{"message_id": "...", "is_job_related": true, "company_name": "...", "job_title": "...", "application_status": "...", "confidence_score": 0.9, "key_details": "...", "next_action": "..."}]"""


class ClassifierError(Exception):
    """Raised when a batch could not be classified."""


class MissingCredentialsError(ClassifierError):
    """No API key is configured."""


class ClassifierRequestError(ClassifierError):
    """The classification request failed."""


class ClassifierResponseError(ClassifierError):
    """The classifier replied with something that is not structured data."""

    def __init__(self, message: str, preview: str = ""):
        super().__init__(message)
        self.preview = preview


def build_prompt(emails: Sequence[RawEmail], max_chars: int = MAX_CONTENT_CHARS) -> str:
    """Build the batch prompt, trimming each body to max_chars."""
    sections = []
    for number, email in enumerate(emails, start=1):
        sections.append(
            f"--- Email {number} ---\n"
            f"message_id: {email.message_id}\n"
            f"Subject: {email.subject}\n"
            f"From: {email.sender}\n"
            f"Date: {email.date_received}\n"
            f"Content:\n{email.content[:max_chars]}"
        )
    return INSTRUCTIONS + "\n\n" + "\n\n".join(sections)


def parse_response(content: str) -> list[dict[str, Any]]:
    """Parse the model's reply into a list of result objects.

    A single object is wrapped in a list and non-object items are dropped.
    """
    # Handle potential markdown code blocks
    cleaned = re.sub(r"^```(?:json)?\s*", "", content.strip())
    cleaned = re.sub(r"\s*```$", "", cleaned).strip()

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ClassifierResponseError(
            f"Failed to parse classifier response as JSON: {e}",
            preview=content[:PREVIEW_CHARS],
        ) from e

    if isinstance(data, dict):
        return [data]
    if isinstance(data, list):
        items = [item for item in data if isinstance(item, dict)]
        if len(items) != len(data):
            logger.warning(f"Dropped {len(data) - len(items)} non-object items from response")
        return items

    raise ClassifierResponseError(
        f"Unexpected classifier response type: {type(data).__name__}",
        preview=content[:PREVIEW_CHARS],
    )


class OpenRouterClassifier:
    """Classifies batches of emails with a chat-completions model."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        api_url: str = OPENROUTER_API_URL,
        timeout: int = 60,
        max_content_chars: int = MAX_CONTENT_CHARS,
    ):
        self.api_key = api_key
        self.model = model
        self.api_url = api_url
        self.timeout = timeout
        self.max_content_chars = max_content_chars

    def _resolve_api_key(self) -> str:
        api_key = self.api_key or os.environ.get("OPENROUTER_API_KEY")
        if not api_key:
            raise MissingCredentialsError("OPENROUTER_API_KEY not set, skipping classification")
        return api_key

    def classify(self, emails: Sequence[RawEmail]) -> list[ClassificationResult]:
        """Classify one batch of emails."""
        if not emails:
            return []

        api_key = self._resolve_api_key()
        prompt = build_prompt(emails, self.max_content_chars)

        try:
            response = requests.post(
                self.api_url,
                headers={
                    "Authorization": f"Bearer {api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": self.model,
                    "messages": [{"role": "user", "content": prompt}],
                    "max_tokens": 400 * len(emails),
                    "temperature": 0,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise ClassifierRequestError(f"Classifier API request failed: {e}") from e

        try:
            result = response.json()
        except ValueError as e:
            raise ClassifierResponseError(
                f"Classifier API returned invalid JSON: {e}",
                preview=response.text[:PREVIEW_CHARS],
            ) from e

        if not isinstance(result, dict):
            raise ClassifierResponseError(
                "Classifier API returned an unexpected payload",
                preview=str(result)[:PREVIEW_CHARS],
            )

        choices = result.get("choices") or [{}]
        content = (choices[0].get("message") or {}).get("content") or ""
        payloads = parse_response(content)

        results = [ClassificationResult.model_validate(item) for item in payloads]
        logger.info(f"Classified {len(results)} of {len(emails)} emails in batch")
        return results
