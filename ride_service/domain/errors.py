"""Error taxonomy shared by the engine, the collaborators and the API."""

from __future__ import annotations

from typing import Any, Optional


class RideServiceError(Exception):
    """Base class for every error the service raises on purpose."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RideServiceError):
    """Required input is missing or malformed."""


class NotFoundError(RideServiceError):
    """Unknown ride, driver or device."""


class ConflictError(RideServiceError):
    """The requested transition clashes with the current state.

    ``conflict`` is the record the client should reconcile against: the
    ride itself when it was already taken, or the driver's other active
    ride when the driver is busy.
    """

    def __init__(self, message: str, conflict: Optional[Any] = None):
        super().__init__(message)
        self.conflict = conflict


class DownstreamError(RideServiceError):
    """The routing / pricing provider failed or timed out."""


class NotificationError(RideServiceError):
    """A single push delivery failed. Collected, never surfaced."""
