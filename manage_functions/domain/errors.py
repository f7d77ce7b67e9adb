# /manage_functions/domain/errors.py
from __future__ import annotations


class ManageFunctionsError(ValueError):
    """Base class for input errors raised by the management functions."""


class MalformedSpec(ManageFunctionsError):
    """A host specification token matches no known form."""


class InvalidCidrOrRange(MalformedSpec):
    """A range or CIDR token is well-formed but its bounds are inconsistent."""


class MalformedRecurrence(ManageFunctionsError):
    """Recurrence text cannot be parsed."""


class UnsupportedTimeZone(ManageFunctionsError):
    """Time zone name is unknown to the zone database."""
