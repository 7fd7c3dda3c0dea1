"""Data models for job application ledger tracking."""

import math
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

DEFAULT_COMPANY = "Unknown"
DEFAULT_JOB_TITLE = "Not Specified"

TRUTHY_STRINGS = {"true", "yes", "1", "y"}


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


class RawEmail(BaseModel):
    """One message as exported from the mailbox."""

    model_config = ConfigDict(frozen=True)

    message_id: str = Field(validation_alias=AliasChoices("message_id", "id"))
    subject: str = ""
    sender: str = ""
    date_received: str = Field(
        "", validation_alias=AliasChoices("date_received", "date")
    )
    content: str = Field("", validation_alias=AliasChoices("content", "body"))

    @field_validator("subject", "sender", "date_received", "content", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator("message_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        # Keep None so a missing id fails validation instead of becoming "".
        if value is None:
            return value
        return str(value)


class ClassificationResult(BaseModel):
    """The classifier's structured guess for one email.

    Validation never fails on a dict payload: every field is optional and
    values are coerced leniently, so a sloppy reply still yields a result.
    """

    model_config = ConfigDict(frozen=True)

    message_id: str = ""
    is_job_related: bool = False
    company_name: Optional[str] = None
    job_title: Optional[str] = None
    application_status: Optional[str] = None
    confidence_score: Optional[float] = None
    key_details: Optional[str] = None
    next_action: Optional[str] = None

    @field_validator("message_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator(
        "company_name",
        "job_title",
        "application_status",
        "key_details",
        "next_action",
        mode="before",
    )
    @classmethod
    def _coerce_optional_text(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return str(value)

    @field_validator("is_job_related", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value != 0
        return str(value).strip().lower() in TRUTHY_STRINGS

    @field_validator("confidence_score", mode="before")
    @classmethod
    def _coerce_confidence(cls, value: Any) -> Optional[float]:
        if value is None or isinstance(value, bool):
            return None
        try:
            score = float(value)
        except (TypeError, ValueError):
            return None
        if math.isnan(score):
            return None
        return min(max(score, 0.0), 1.0)


class LedgerRecord(BaseModel):
    """One row of the persisted ledger, the unit of dedup and update."""

    model_config = ConfigDict(frozen=True)

    message_id: str = ""
    company_name: str = DEFAULT_COMPANY
    job_title: str = DEFAULT_JOB_TITLE
    application_status: str = ""
    date_received: str = ""
    date_applied: str = ""
    last_contact: str = ""
    next_action: str = ""
    key_details: str = ""
    confidence_score: float = 0.0
    email_subject: str = ""
    sender: str = ""
    created_at: str = ""
    updated_at: str = ""

    @field_validator(
        "message_id",
        "company_name",
        "job_title",
        "application_status",
        "date_received",
        "date_applied",
        "last_contact",
        "next_action",
        "key_details",
        "email_subject",
        "sender",
        "created_at",
        "updated_at",
        mode="before",
    )
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator("confidence_score", mode="before")
    @classmethod
    def _coerce_confidence(cls, value: Any) -> float:
        if value is None or isinstance(value, bool) or value == "":
            return 0.0
        try:
            score = float(value)
        except (TypeError, ValueError):
            return 0.0
        if math.isnan(score):
            return 0.0
        return min(max(score, 0.0), 1.0)

    def to_row(self) -> dict[str, Any]:
        """Convert to a ledger row keyed by column name."""
        return self.model_dump()

    def to_values(self) -> list[Any]:
        """Convert to a spreadsheet row in column order."""
        row = self.to_row()
        return [row[column] for column in LEDGER_COLUMNS]


LEDGER_COLUMNS = list(LedgerRecord.model_fields)
