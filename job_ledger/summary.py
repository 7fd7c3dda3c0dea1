"""
Summary reporting over a ledger snapshot: totals, status breakdown, top
companies, high-confidence applications and pending actions.
"""

from collections import Counter
from datetime import datetime
from typing import Sequence

from pydantic import BaseModel, Field

from .models import LedgerRecord

TOP_COMPANIES = 10
PREVIEW_SIZE = 5
HIGH_CONFIDENCE_THRESHOLD = 0.8


class LedgerSummary(BaseModel):
    """Aggregate, read-only view of a ledger."""

    total: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    top_companies: list[tuple[str, int]] = Field(default_factory=list)
    high_confidence: list[LedgerRecord] = Field(default_factory=list)
    pending_actions: list[LedgerRecord] = Field(default_factory=list)


def summarize(
    ledger: Sequence[LedgerRecord],
    confidence_threshold: float = HIGH_CONFIDENCE_THRESHOLD,
) -> LedgerSummary:
    """Derive the summary view of a ledger without modifying it.

    Companies with equal counts keep the order in which they first appear
    in the ledger.
    """
    status_counter: Counter[str] = Counter(
        record.application_status for record in ledger
    )
    company_counter: Counter[str] = Counter(record.company_name for record in ledger)

    high_confidence = [
        record for record in ledger if record.confidence_score > confidence_threshold
    ]
    pending = [record for record in ledger if record.next_action.strip()]

    return LedgerSummary(
        total=len(ledger),
        by_status=dict(status_counter.most_common()),
        top_companies=company_counter.most_common(TOP_COMPANIES),
        high_confidence=high_confidence[:PREVIEW_SIZE],
        pending_actions=pending[:PREVIEW_SIZE],
    )


def render_summary(summary: LedgerSummary) -> str:
    """Render a summary as plain text for the console."""
    lines: list[str] = []
    lines.append("=" * 60)
    lines.append("  Job Application Ledger Summary")
    lines.append(f"  Generated: {datetime.now().strftime('%Y-%m-%d %H:%M')}")
    lines.append("=" * 60)
    lines.append(f"  Total applications tracked: {summary.total}")

    if not summary.total:
        lines.append("  No applications tracked yet.")
        return "\n".join(lines)

    lines.append("")
    lines.append("  By status:")
    for status, count in summary.by_status.items():
        lines.append(f"    {status or '(none)'}: {count}")

    lines.append("")
    lines.append("  Top companies:")
    for company, count in summary.top_companies:
        lines.append(f"    {company}: {count}")

    if summary.high_confidence:
        lines.append("")
        lines.append("  High-confidence applications:")
        for record in summary.high_confidence:
            lines.append(
                f"    {record.company_name} - {record.job_title} "
                f"[{record.application_status or 'unknown'}] "
                f"({record.confidence_score:.2f})"
            )

    if summary.pending_actions:
        lines.append("")
        lines.append("  Pending actions:")
        for record in summary.pending_actions:
            lines.append(f"    {record.company_name}: {record.next_action}")

    return "\n".join(lines)
