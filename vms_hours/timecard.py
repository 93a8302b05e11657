"""
Timecard mutation engine.

The backend describes a work week as a large JSON "metadata" document whose
schema is only partially known and changes over time. This module treats it
as a generic tree of dicts, lists and scalars, reads the few fields it needs
through tolerant accessors, and rewrites a single day record so it can be
posted back.

Nothing here performs I/O: documents go in, patched copies come out.
"""

import copy
import math
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import VMSHoursError
from .models import (
    DayChange,
    DaySummary,
    Span,
    SpanSummary,
    SPAN_KIND_LABOR,
)
from .week_utils import format_mdy, week_bounds


# Week document keys
DETAILS_KEY = 'billingItemDetails'
WORKED_DATE_KEY = 'workedDate'
DID_NOT_WORK_KEY = 'didNotWork'
SPANS_KEY = 'timeEntrySpanDtos'
TIME_ENTRY_KEY = 'timeEntry'

# Span entry keys
SPAN_START_KEY = 'startTimeStr'
SPAN_END_KEY = 'endTimeStr'
SPAN_TYPE_KEY = 'timeEntrySpanType'

DAY_OFF_TYPE_UNDEFINED = 'Undefined'
DOCUMENT_TYPE_TIME = 'TIME'


class MetadataError(VMSHoursError):
    """Raised when a week document lacks its list of day records."""
    pass


class DateNotFoundError(VMSHoursError):
    """Raised when the target date is not one of the document's days."""

    def __init__(self, date_mdy: str, message: Optional[str] = None):
        self.date_mdy = date_mdy
        super().__init__(message or f"date {date_mdy} not found in week metadata")


# ---------- tolerant accessors ----------

def get_map(value: Any) -> Optional[Dict[str, Any]]:
    return value if isinstance(value, dict) else None


def get_list(value: Any) -> Optional[List[Any]]:
    return value if isinstance(value, list) else None


def get_str(value: Any) -> str:
    """Read a value as text; None becomes ""."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def get_bool(value: Any) -> bool:
    """Read a value as a flag; anything that is not a real bool is False."""
    return value if isinstance(value, bool) else False


def get_int(value: Any) -> Optional[int]:
    """Read a JSON number as an int, or None if it is not a number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        # NaN and infinities have no integer value
        return int(value) if math.isfinite(value) else None
    return None


def _is_blank(value: Any) -> bool:
    return get_str(value).strip() == ""


def _tail_time(value: Any) -> str:
    """Keep the last whitespace-separated token of a "date time" string."""
    parts = get_str(value).split()
    return parts[-1] if parts else ""


# ---------- day lookup ----------

def _day_records(metadata: Dict[str, Any]) -> List[Any]:
    details = get_list(metadata.get(DETAILS_KEY))
    if not details:
        raise MetadataError(f"metadata missing {DETAILS_KEY}")
    return details


def _find_day_index(details: List[Any], date_mdy: str) -> int:
    for index, item in enumerate(details):
        detail = get_map(item)
        if detail is None:
            continue
        if get_str(detail.get(WORKED_DATE_KEY)).strip() == date_mdy:
            return index
    return -1


def extract_day_summary(detail: Dict[str, Any], fallback_date: str) -> DaySummary:
    """
    Build a DaySummary from one day record.

    Args:
        detail: Day record from the week document
        fallback_date: Date to report when the record has none

    Returns:
        Summary with spans sorted by start time
    """
    summary = DaySummary(
        worked_date=get_str(detail.get(WORKED_DATE_KEY)) or fallback_date,
        did_not_work=get_bool(detail.get(DID_NOT_WORK_KEY)),
    )

    for item in get_list(detail.get(SPANS_KEY)) or []:
        entry = get_map(item)
        if entry is None:
            continue
        kind = get_str(entry.get(SPAN_TYPE_KEY)).lower() or SPAN_KIND_LABOR
        summary.spans.append(SpanSummary(
            kind=kind,
            start=_tail_time(entry.get(SPAN_START_KEY)),
            end=_tail_time(entry.get(SPAN_END_KEY)),
        ))

    # "HH:MM" is fixed width, so string order is time order
    summary.spans.sort(key=lambda s: s.start)
    return summary


def find_day_summary(metadata: Dict[str, Any], target_date: date) -> DaySummary:
    """
    Look up the summary of one day without modifying the document.

    Raises:
        MetadataError: If the document has no day records
        DateNotFoundError: If the date is not in the document
    """
    target_mdy = format_mdy(target_date)
    details = get_list(metadata.get(DETAILS_KEY))
    if details is None:
        raise MetadataError(f"metadata missing {DETAILS_KEY}")

    index = _find_day_index(details, target_mdy)
    if index < 0:
        raise DateNotFoundError(target_mdy, f"date {target_mdy} not found")
    return extract_day_summary(details[index], target_mdy)


# ---------- mutation ----------

def build_span_entries(date_mdy: str, spans: Sequence[Span]) -> List[Dict[str, Any]]:
    """
    Build the backend span entries for a day.

    Lunch spans are unpaid breaks; labor spans leave paidBreak unset.
    """
    entries = []
    for span in spans:
        entries.append({
            SPAN_START_KEY: f"{date_mdy} {span.start}",
            SPAN_END_KEY: f"{date_mdy} {span.end}",
            SPAN_TYPE_KEY: span.kind.capitalize(),
            'id': 0,
            'timeEntryId': 0,
            'paidBreak': False if span.is_lunch else None,
            'source': None,
            'leaveType': None,
            'leaveTypeId': None,
            'leaveRequestId': None,
            'fullDayOff': None,
        })
    return entries


def _update_time_entry(detail: Dict[str, Any], date_mdy: str,
                       spans: Sequence[Span], mark_not_worked: bool):
    time_entry = get_map(detail.get(TIME_ENTRY_KEY))
    if time_entry is None:
        time_entry = {}

    if 'id' not in time_entry:
        time_entry['id'] = 0
    if time_entry.get('notes') is None:
        time_entry['notes'] = ""

    time_entry['daily'] = False
    time_entry['didNotWork'] = mark_not_worked
    time_entry['dayOffType'] = DAY_OFF_TYPE_UNDEFINED
    if mark_not_worked:
        time_entry['dateWorked'] = None
        time_entry['noBreakTaken'] = False
    else:
        time_entry['dateWorked'] = date_mdy
        time_entry['noBreakTaken'] = not any(s.is_lunch for s in spans)

    detail[TIME_ENTRY_KEY] = time_entry


def ensure_document_fields(metadata: Dict[str, Any], target_date: date):
    """
    Fill in document-level fields the save endpoint requires.

    Only missing (or, for dates and attachments, empty) fields are set;
    populated fields are never overwritten.
    """
    week_start, week_end = week_bounds(target_date)

    metadata.setdefault('id', 0)
    metadata.setdefault('type', DOCUMENT_TYPE_TIME)
    metadata.setdefault('bypassLeaveValidation', False)
    if metadata.get('attachments') is None:
        metadata['attachments'] = []

    if _is_blank(metadata.get('selectedDate')):
        metadata['selectedDate'] = format_mdy(week_start)
    if _is_blank(metadata.get('selectedEndDate')):
        metadata['selectedEndDate'] = format_mdy(week_end)
    if _is_blank(metadata.get('periodEndDate')):
        metadata['periodEndDate'] = format_mdy(week_end)

    if 'requisitionId' not in metadata:
        engagement_id = get_int(metadata.get('engagementId'))
        if engagement_id is not None:
            metadata['requisitionId'] = engagement_id


def patch_day(metadata: Dict[str, Any], target_date: date,
              spans: Optional[Sequence[Span]] = None,
              mark_not_worked: bool = False) -> Tuple[Dict[str, Any], DayChange]:
    """
    Replace one day's entries in a week document.

    The input document is deep-copied and never modified. The target day is
    rewritten either with the given spans or as not worked, every other day
    is left as fetched, and document-level bookkeeping fields the backend
    requires are filled in when missing.

    Args:
        metadata: Week document as fetched from the metadata endpoint
        target_date: Day to rewrite
        spans: Validated spans (see spans.validate_spans); ignored when
            mark_not_worked is set
        mark_not_worked: Mark the day as not worked and drop its spans

    Returns:
        Tuple of (patched document copy, DayChange)

    Raises:
        MetadataError: If the document has no day records
        DateNotFoundError: If the target date is not in the document
    """
    patched = copy.deepcopy(metadata)
    spans = list(spans or [])
    target_mdy = format_mdy(target_date)

    details = _day_records(patched)
    index = _find_day_index(details, target_mdy)
    if index < 0:
        raise DateNotFoundError(target_mdy)

    detail = details[index]
    existing = extract_day_summary(detail, target_mdy)

    detail[WORKED_DATE_KEY] = target_mdy
    detail[DID_NOT_WORK_KEY] = mark_not_worked
    if mark_not_worked:
        detail[SPANS_KEY] = None
    else:
        detail[SPANS_KEY] = build_span_entries(target_mdy, spans)
    _update_time_entry(detail, target_mdy, spans, mark_not_worked)

    ensure_document_fields(patched, target_date)

    change = DayChange(
        date=target_mdy,
        had_existing=existing.has_entries,
        existing=existing,
        proposed=extract_day_summary(detail, target_mdy),
    )
    return patched, change


# ---------- formatting ----------

def format_day_summary_human(summary: DaySummary) -> str:
    """
    Format a day summary as one line of text.

    Examples:
        "02/18/2026: did not work"
        "02/18/2026: no spans"
        "02/18/2026: labor 09:00-12:00, lunch 12:00-12:30"
    """
    if summary.did_not_work:
        return f"{summary.worked_date}: did not work"
    if not summary.spans:
        return f"{summary.worked_date}: no spans"

    parts = [f"{s.kind} {s.start}-{s.end}" for s in summary.spans]
    return f"{summary.worked_date}: {', '.join(parts)}"
