"""
Domain entities with business logic.

Patterns used
-------------
- ``check_transition`` enforces valid lifecycle transitions
  (created -> started -> ended, with cancel from any non-terminal state).
- ``RequestPool`` encapsulates the ``requested_to`` / ``rejected_by``
  bookkeeping so that a driver who declined a ride never re-enters its
  pool, and the two sets stay disjoint.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .enums import RIDE_TRANSITIONS, RideStatus


class InvalidStateTransition(Exception):
    """Raised when a ride status change violates the state machine."""


# ── Value Object ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class RequestPool:
    """Drivers a ride is offered to, and drivers who declined it."""

    requested_to: frozenset[str] = frozenset()
    rejected_by: frozenset[str] = frozenset()

    @classmethod
    def of(
        cls, requested_to: Iterable[str] = (), rejected_by: Iterable[str] = ()
    ) -> "RequestPool":
        rejected = frozenset(rejected_by)
        return cls(frozenset(requested_to) - rejected, rejected)

    def reject(self, driver_id: str) -> "RequestPool":
        """Move *driver_id* to the rejected set. Idempotent."""
        return RequestPool(
            self.requested_to - {driver_id}, self.rejected_by | {driver_id}
        )

    def can_offer(self, driver_id: str) -> bool:
        return (
            driver_id not in self.requested_to
            and driver_id not in self.rejected_by
        )

    def offer(self, driver_id: str) -> "RequestPool":
        """Add *driver_id* to the pool unless it is already in or declined."""
        if not self.can_offer(driver_id):
            return self
        return RequestPool(self.requested_to | {driver_id}, self.rejected_by)


def eligible_drivers(
    all_driver_ids: Iterable[str], busy_driver_ids: Iterable[str]
) -> frozenset[str]:
    """Every known driver minus those currently on a started ride.

    No proximity filtering: a new ride is broadcast to the whole free pool.
    """
    return frozenset(all_driver_ids) - frozenset(busy_driver_ids)


# ── State machine ─────────────────────────────────────────────────────


def check_transition(current: RideStatus, target: RideStatus) -> None:
    """Raise ``InvalidStateTransition`` unless *current* -> *target* is legal."""
    allowed = RIDE_TRANSITIONS.get(RideStatus(current), set())
    if target not in allowed:
        raise InvalidStateTransition(
            f"Cannot transition from {RideStatus(current).value} to {target.value}"
        )


def allowed_sources(target: RideStatus) -> set[RideStatus]:
    """Statuses from which *target* can be reached in one transition."""
    return {
        source
        for source, targets in RIDE_TRANSITIONS.items()
        if target in targets
    }
