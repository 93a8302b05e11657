"""
Span parsing and validation.

A span argument has the form ``kind:HH:MM-HH:MM`` where kind is ``labor``
or ``lunch`` (case-insensitive), e.g. ``labor:09:00-17:00``. A day is
described by one or more non-overlapping spans.
"""

from typing import Iterable, List, Sequence
import re

from .errors import VMSHoursError
from .models import Span, SPAN_KINDS, SPAN_KIND_LABOR


class SpanParseError(VMSHoursError, ValueError):
    """Raised when a single span argument is malformed."""
    pass


class SpanValidationError(VMSHoursError, ValueError):
    """Raised when a set of spans cannot describe a day."""
    pass


_HHMM_RE = re.compile(r'^([0-9]{2}):([0-9]{2})$')


def parse_hhmm(value: str) -> int:
    """
    Convert a 24-hour "HH:MM" time into minutes since midnight.

    Raises:
        ValueError: If the value is not HH:MM or is out of range
    """
    match = _HHMM_RE.match(value)
    if not match:
        raise ValueError("must be HH:MM")

    hour, minute = int(match.group(1)), int(match.group(2))
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError("out of range")
    return hour * 60 + minute


def parse_span(arg: str) -> Span:
    """
    Parse a single span argument.

    Args:
        arg: Span argument, e.g. "labor:09:00-12:00"

    Returns:
        Parsed Span keeping the original start/end text

    Raises:
        SpanParseError: If the kind, either time, or the ordering is invalid

    Examples:
        >>> parse_span("Lunch:12:00-12:30").kind
        'lunch'
    """
    kind_part, sep, times_part = arg.strip().partition(':')
    if not sep:
        raise SpanParseError(f"invalid span '{arg}', expected type:HH:MM-HH:MM")

    kind = kind_part.strip().lower()
    if kind not in SPAN_KINDS:
        raise SpanParseError(
            f"invalid span type '{kind}' (allowed: {', '.join(SPAN_KINDS)})"
        )

    start, sep, end = times_part.partition('-')
    if not sep:
        raise SpanParseError(f"invalid span '{arg}', expected type:HH:MM-HH:MM")
    start = start.strip()
    end = end.strip()

    try:
        start_minutes = parse_hhmm(start)
    except ValueError as e:
        raise SpanParseError(f"invalid start time '{start}' in '{arg}': {e}")

    try:
        end_minutes = parse_hhmm(end)
    except ValueError as e:
        raise SpanParseError(f"invalid end time '{end}' in '{arg}': {e}")

    if end_minutes <= start_minutes:
        raise SpanParseError(f"invalid span '{arg}': end must be after start")

    return Span(
        kind=kind,
        start=start,
        end=end,
        start_minutes=start_minutes,
        end_minutes=end_minutes,
    )


def validate_spans(spans: Sequence[Span]) -> List[Span]:
    """
    Validate the spans of one day.

    Spans may touch (one ends exactly when the next starts) but must not
    overlap. Multiple spans of the same kind and any kind ordering are fine.

    Args:
        spans: Parsed spans, in any order

    Returns:
        New list sorted by (start, end)

    Raises:
        SpanValidationError: If no spans are given or two spans overlap
    """
    if not spans:
        raise SpanValidationError("at least one span is required")

    ordered = sorted(spans, key=lambda s: (s.start_minutes, s.end_minutes))

    for previous, current in zip(ordered, ordered[1:]):
        if current.start_minutes < previous.end_minutes:
            raise SpanValidationError(
                f"spans overlap: {previous.describe()} and {current.describe()}"
            )

    return ordered


def parse_and_validate_spans(args: Iterable[str]) -> List[Span]:
    """Parse every span argument, then validate them as one day."""
    return validate_spans([parse_span(arg) for arg in args])


def labor_hours(spans: Iterable) -> float:
    """
    Sum the labor hours of a list of spans.

    Only spans whose kind is labor count. Spans with unparseable times are
    skipped, since this total is for display only.

    Args:
        spans: Objects with kind, start and end attributes

    Returns:
        Total labor hours
    """
    total = 0.0
    for span in spans:
        if span.kind.lower() != SPAN_KIND_LABOR:
            continue
        try:
            start = parse_hhmm(span.start)
            end = parse_hhmm(span.end)
        except ValueError:
            continue
        total += (end - start) / 60.0
    return total
