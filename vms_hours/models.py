"""
Data models for timecard automation.

This module defines the data structures used throughout the application,
including time spans, day summaries, the before/after change record of a
day mutation, and the small typed views over backend API responses.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


SPAN_KIND_LABOR = 'labor'
SPAN_KIND_LUNCH = 'lunch'
SPAN_KINDS = (SPAN_KIND_LABOR, SPAN_KIND_LUNCH)


@dataclass
class Span:
    """
    A single labor or lunch interval within one calendar day.

    Attributes:
        kind: Span kind, one of SPAN_KINDS (lowercase)
        start: Start time exactly as given by the user ("HH:MM")
        end: End time exactly as given by the user ("HH:MM")
        start_minutes: Minutes since midnight for start (ordering only)
        end_minutes: Minutes since midnight for end (ordering only)
    """
    kind: str
    start: str
    end: str
    start_minutes: int = field(default=0, repr=False)
    end_minutes: int = field(default=0, repr=False)

    @property
    def is_lunch(self) -> bool:
        return self.kind == SPAN_KIND_LUNCH

    def describe(self) -> str:
        """Format as "<kind> <start>-<end>"."""
        return f"{self.kind} {self.start}-{self.end}"


@dataclass
class SpanSummary:
    """
    A span as read back from a day record.

    Attributes:
        kind: Lowercase span kind ("labor" when the record carries none)
        start: Start time ("HH:MM")
        end: End time ("HH:MM")
    """
    kind: str
    start: str
    end: str

    def to_dict(self) -> Dict[str, str]:
        return {'type': self.kind, 'start': self.start, 'end': self.end}


@dataclass
class DaySummary:
    """
    Normalized, display-ready view of one day.

    Attributes:
        worked_date: Date of the day record (MM/DD/YYYY)
        did_not_work: Whether the day is marked as not worked
        spans: Spans sorted by start time
    """
    worked_date: str
    did_not_work: bool = False
    spans: List[SpanSummary] = field(default_factory=list)

    @property
    def has_entries(self) -> bool:
        """True if the day is marked not-worked or carries at least one span."""
        return self.did_not_work or len(self.spans) > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'worked_date': self.worked_date,
            'did_not_work': self.did_not_work,
            'spans': [s.to_dict() for s in self.spans],
        }


@dataclass
class DayChange:
    """
    Before/after view of the single day touched by a mutation.

    Attributes:
        date: Target date (MM/DD/YYYY)
        had_existing: Whether the day had data before the mutation
        existing: Summary captured before the mutation
        proposed: Summary captured after the mutation
    """
    date: str
    had_existing: bool
    existing: DaySummary
    proposed: DaySummary

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date,
            'had_existing': self.had_existing,
            'existing': self.existing.to_dict(),
            'proposed': self.proposed.to_dict(),
        }


@dataclass
class Engagement:
    """
    An engagement (assignment) the worker can log time against.
    """
    id: int
    status: str = ""
    start_date: str = ""
    end_date: str = ""
    job_title: str = ""
    buyer_name: str = ""
    engagement_code: str = ""
    timecard_template_id: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Engagement':
        """Build from an engagement-items API entry."""
        return cls(
            id=int(data.get('id') or 0),
            status=data.get('status') or "",
            start_date=data.get('startDate') or "",
            end_date=data.get('endDate') or "",
            job_title=data.get('jobTitle') or "",
            buyer_name=data.get('buyerName') or "",
            engagement_code=data.get('engagementCode') or "",
            timecard_template_id=int(data.get('timecardTemplateId') or 0),
        )

    @property
    def display_buyer(self) -> str:
        buyer = self.buyer_name.strip()
        return buyer if buyer else "(unknown buyer)"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'status': self.status,
            'startDate': self.start_date,
            'endDate': self.end_date,
            'jobTitle': self.job_title,
            'buyerName': self.buyer_name,
            'engagementCode': self.engagement_code,
            'timecardTemplateId': self.timecard_template_id,
        }


@dataclass
class SaveResult:
    """
    Response of the billing-items save endpoint.

    Attributes:
        billing_item_id: Id of the saved billing item
        billing_item_ids: Raw list of ids, as returned
        errors: Document-level validation errors, if any
        billing_item_detail_errors: Per-day validation errors, if any
    """
    billing_item_id: int = 0
    billing_item_ids: Optional[Any] = None
    errors: Optional[Any] = None
    billing_item_detail_errors: Optional[Any] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SaveResult':
        return cls(
            billing_item_id=int(data.get('billingItemId') or 0),
            billing_item_ids=data.get('billingItemIds'),
            errors=data.get('errors'),
            billing_item_detail_errors=data.get('billingItemDetailErrors'),
        )

    @property
    def has_errors(self) -> bool:
        return self.errors is not None or self.billing_item_detail_errors is not None
