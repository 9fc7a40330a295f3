"""
buddyfit.errors — Domain Exceptions
====================================

Raised by the service layer and translated to HTTP status codes by the
API routers.  Auxiliary-read failures are *not* represented here: they are
logged and replaced with safe defaults where they happen.
"""

from __future__ import annotations


class BuddyFitError(Exception):
    """Base class for all BuddyFit domain errors."""


class NotFoundError(BuddyFitError, LookupError):
    """A referenced workout, badge, pairing or competition does not exist
    (or does not belong to the caller)."""


class ConflictError(BuddyFitError):
    """A duplicate join or similar one-shot action was attempted."""


class InvariantViolation(BuddyFitError):
    """Internal consistency check failed — should never happen."""
