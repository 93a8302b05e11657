"""
VMS Hours - timesheet entry for the Pro Unlimited / Magnit worker portal.

This package logs in to the portal, fetches the week's timecard document,
rewrites a single day (spans or did-not-work), and posts it back.
"""

__version__ = '1.0.0'
__author__ = 'VMS Hours'

from .models import Span, SpanSummary, DaySummary, DayChange
from .spans import parse_span, validate_spans, SpanParseError, SpanValidationError
from .timecard import patch_day, find_day_summary, DateNotFoundError, MetadataError
from .session_tokens import extract_access_token, extract_xsrf_token

__all__ = [
    'Span',
    'SpanSummary',
    'DaySummary',
    'DayChange',
    'parse_span',
    'validate_spans',
    'SpanParseError',
    'SpanValidationError',
    'patch_day',
    'find_day_summary',
    'DateNotFoundError',
    'MetadataError',
    'extract_access_token',
    'extract_xsrf_token',
]
