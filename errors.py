"""Exception types shared by the aggregation core and its callers."""

from __future__ import annotations


class InvalidFormat(ValueError):
    """A period key or date string did not match its expected format."""


class StoreUnavailable(RuntimeError):
    """The document store could not read or persist data."""


class Unauthorized(PermissionError):
    """A bearer credential was missing or did not map to an owner."""
