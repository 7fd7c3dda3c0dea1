"""
Shared fixtures for job ledger tests.
"""

from datetime import datetime

import pytest

from job_ledger import config as config_module
from job_ledger.models import ClassificationResult, LedgerRecord, RawEmail

MERGE_TIME = datetime(2024, 3, 1, 12, 0, 0)
MERGE_STAMP = "2024-03-01 12:00:00"


class FakeClassifier:
    """Classifier stand-in returning canned responses per batch.

    Each response is either a list of results, a single result, or an
    exception instance to raise for that batch.
    """

    def __init__(self, responses):
        self.responses = list(responses)
        self.batches = []

    def classify(self, emails):
        self.batches.append([email.message_id for email in emails])
        response = self.responses[len(self.batches) - 1]
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def make_result():
    def _make(message_id="M1", company="Acme", title="Engineer", **fields):
        fields.setdefault("is_job_related", True)
        return ClassificationResult(
            message_id=message_id, company_name=company, job_title=title, **fields
        )

    return _make


@pytest.fixture
def make_record():
    def _make(message_id="A", company="Acme", title="Engineer", **fields):
        fields.setdefault("created_at", "2024-01-01 09:00:00")
        fields.setdefault("updated_at", fields["created_at"])
        fields.setdefault("last_contact", fields["created_at"])
        return LedgerRecord(
            message_id=message_id, company_name=company, job_title=title, **fields
        )

    return _make


@pytest.fixture
def make_email():
    def _make(message_id="M1", subject="Thanks for applying", **fields):
        fields.setdefault("sender", "jobs@acme.com")
        fields.setdefault("content", "We received your application.")
        return RawEmail(message_id=message_id, subject=subject, **fields)

    return _make


@pytest.fixture(autouse=True)
def reset_config(monkeypatch):
    """Each test starts without a cached configuration."""
    monkeypatch.setattr(config_module, "_config", None)
