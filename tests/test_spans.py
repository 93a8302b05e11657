"""
Tests for span parsing and validation.
"""

import pytest

from vms_hours.models import Span, SpanSummary
from vms_hours.spans import (
    parse_span,
    parse_hhmm,
    validate_spans,
    parse_and_validate_spans,
    labor_hours,
    SpanParseError,
    SpanValidationError,
)


class TestParseHHMM:
    """Tests for parse_hhmm function."""

    def test_midnight(self):
        """Test that 00:00 is minute zero."""
        assert parse_hhmm("00:00") == 0

    def test_end_of_day(self):
        """Test the last minute of the day."""
        assert parse_hhmm("23:59") == 23 * 60 + 59

    @pytest.mark.parametrize("value", ["24:00", "12:60", "9:00", "0900", "ab:cd", "", "٠٩:٠٠", "０９:００"])
    def test_invalid_values(self, value):
        """Test that malformed or out-of-range times are rejected."""
        with pytest.raises(ValueError):
            parse_hhmm(value)


class TestParseSpan:
    """Tests for parse_span function."""

    def test_labor_span(self):
        """Test parsing a simple labor span."""
        span = parse_span("labor:09:00-17:00")
        assert span.kind == "labor"
        assert span.start == "09:00"
        assert span.end == "17:00"
        assert span.start_minutes == 540
        assert span.end_minutes == 1020

    def test_kind_is_case_insensitive(self):
        """Test that the kind is accepted in any case and normalized."""
        assert parse_span("LUNCH:12:00-12:30").kind == "lunch"
        assert parse_span("Labor:08:00-09:00").kind == "labor"

    def test_original_text_preserved(self):
        """Test that start/end text round-trips exactly."""
        span = parse_span("lunch:12:05-12:35")
        assert f"{span.kind}:{span.start}-{span.end}" == "lunch:12:05-12:35"

    def test_surrounding_whitespace(self):
        """Test that whitespace around the argument is ignored."""
        span = parse_span("  labor:09:00-10:00  ")
        assert (span.start, span.end) == ("09:00", "10:00")

    def test_invalid_kind(self):
        """Test that unknown kinds name the allowed set."""
        with pytest.raises(SpanParseError, match="invalid span type 'break'.*labor, lunch"):
            parse_span("break:09:00-10:00")

    def test_missing_separator(self):
        """Test that an argument without a kind separator fails."""
        with pytest.raises(SpanParseError, match="expected type:HH:MM-HH:MM"):
            parse_span("labor")

    def test_missing_dash(self):
        """Test that an argument without a time range fails."""
        with pytest.raises(SpanParseError, match="expected type:HH:MM-HH:MM"):
            parse_span("labor:09:00")

    def test_invalid_start(self):
        """Test that a bad start time names the start side."""
        with pytest.raises(SpanParseError, match="invalid start time '25:00'"):
            parse_span("labor:25:00-26:00")

    def test_invalid_end(self):
        """Test that a bad end time names the end side."""
        with pytest.raises(SpanParseError, match="invalid end time '17:75'"):
            parse_span("labor:09:00-17:75")

    def test_end_equal_to_start(self):
        """Test that zero-length spans are rejected."""
        with pytest.raises(SpanParseError, match="end must be after start"):
            parse_span("labor:09:00-09:00")

    def test_end_before_start(self):
        """Test that inverted spans are rejected."""
        with pytest.raises(SpanParseError, match="end must be after start"):
            parse_span("labor:17:00-09:00")

    def test_non_ascii_digits_rejected(self):
        """Test that only ASCII digits are accepted in times."""
        with pytest.raises(SpanParseError, match="invalid start time"):
            parse_span("labor:٠٩:٠٠-١٧:٠٠")

    def test_parse_error_is_value_error(self):
        """Test that parse errors can be handled as ValueError."""
        with pytest.raises(ValueError):
            parse_span("labor:xx")


class TestValidateSpans:
    """Tests for validate_spans function."""

    def test_empty_fails(self):
        """Test that an empty span list is an error."""
        with pytest.raises(SpanValidationError, match="at least one span"):
            validate_spans([])

    def test_sorts_by_start(self):
        """Test that output is sorted regardless of input order."""
        spans = [
            parse_span("labor:12:30-17:00"),
            parse_span("labor:09:00-12:00"),
            parse_span("lunch:12:00-12:30"),
        ]
        result = validate_spans(spans)
        assert [s.start for s in result] == ["09:00", "12:00", "12:30"]

    def test_does_not_reorder_input(self):
        """Test that the caller's list is left in its original order."""
        spans = [parse_span("labor:13:00-14:00"), parse_span("labor:09:00-10:00")]
        validate_spans(spans)
        assert spans[0].start == "13:00"

    def test_touching_spans_allowed(self):
        """Test that a span may start exactly when the previous ends."""
        result = validate_spans([
            parse_span("labor:09:00-12:00"),
            parse_span("lunch:12:00-12:30"),
        ])
        assert len(result) == 2

    def test_overlap_fails(self):
        """Test that overlapping spans are rejected and both are named."""
        with pytest.raises(SpanValidationError) as exc_info:
            validate_spans([
                parse_span("labor:09:00-12:00"),
                parse_span("lunch:11:30-12:30"),
            ])
        message = str(exc_info.value)
        assert "labor 09:00-12:00" in message
        assert "lunch 11:30-12:30" in message

    def test_same_start_sorted_by_end(self):
        """Test that ties on start are broken by end, then flagged as overlap."""
        with pytest.raises(SpanValidationError, match="labor 09:00-10:00 and labor 09:00-11:00"):
            validate_spans([
                parse_span("labor:09:00-11:00"),
                parse_span("labor:09:00-10:00"),
            ])

    def test_multiple_lunches_allowed(self):
        """Test that more than one lunch span is fine."""
        result = validate_spans([
            parse_span("lunch:10:00-10:15"),
            parse_span("lunch:15:00-15:15"),
        ])
        assert [s.kind for s in result] == ["lunch", "lunch"]

    def test_lunch_first_allowed(self):
        """Test that a lunch before any labor is not rejected."""
        result = validate_spans([
            parse_span("labor:09:00-17:00"),
            parse_span("lunch:08:00-08:30"),
        ])
        assert result[0].kind == "lunch"


class TestParseAndValidateSpans:
    """Tests for parse_and_validate_spans function."""

    def test_full_day(self):
        """Test parsing and validating a typical day."""
        result = parse_and_validate_spans([
            "labor:09:00-12:00",
            "lunch:12:00-12:30",
            "labor:12:30-17:00",
        ])
        assert [s.describe() for s in result] == [
            "labor 09:00-12:00",
            "lunch 12:00-12:30",
            "labor 12:30-17:00",
        ]

    def test_parse_error_propagates(self):
        """Test that the first parse error is raised as-is."""
        with pytest.raises(SpanParseError):
            parse_and_validate_spans(["labor:09:00-17:00", "nap:13:00-14:00"])


class TestLaborHours:
    """Tests for labor_hours function."""

    def test_only_labor_counts(self):
        """Test that lunch spans are excluded from the total."""
        spans = [
            SpanSummary("labor", "09:00", "12:00"),
            SpanSummary("lunch", "12:00", "12:30"),
            SpanSummary("labor", "12:30", "17:00"),
        ]
        assert labor_hours(spans) == pytest.approx(7.5)

    def test_kind_case_insensitive(self):
        """Test that kind comparison ignores case."""
        assert labor_hours([SpanSummary("Labor", "09:00", "10:30")]) == pytest.approx(1.5)

    def test_unparseable_spans_skipped(self):
        """Test that spans with bad times are skipped, not fatal."""
        spans = [
            SpanSummary("labor", "", "12:00"),
            SpanSummary("labor", "13:00", "14:00"),
        ]
        assert labor_hours(spans) == pytest.approx(1.0)

    def test_accepts_parsed_spans(self):
        """Test that parsed Span objects work too."""
        assert labor_hours([parse_span("labor:08:00-08:45")]) == pytest.approx(0.75)

    def test_empty(self):
        """Test that no spans means zero hours."""
        assert labor_hours([]) == 0.0
