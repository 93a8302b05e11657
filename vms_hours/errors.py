"""
Base exception for the hours logging tool.

Each module defines its own specific exceptions; they all derive from
VMSHoursError so the CLI can report them uniformly.
"""


class VMSHoursError(Exception):
    """Base class for all errors raised by vms_hours."""
    pass
