"""
Ride Lifecycle Engine
=====================

State machine
-------------
::

    created --accept--> started --end--> ended
       |                   |
       +------cancel-------+----------> cancel

``reject`` never changes ``status``; it only moves a driver from
``requested_to`` to ``rejected_by``.

Transactions
------------
Each operation runs in its own session and transaction.  Preconditions are
checked before any write; every status change is a conditional ``UPDATE``
guarded by the expected prior state, so the losing side of a race gets a
``ConflictError`` instead of overwriting the winner.  ``end_ride`` closes
the ride and re-offers the freed driver to pending rides in the same
transaction.

Notifications go out only after commit, through the fan-out, and their
outcome is returned alongside the ride.  A delivery failure never undoes
a transition.

Eligibility snapshot
--------------------
``create_ride`` reads the busy-driver set without locking.  A driver may
accept another ride right after being put in ``requested_to``; that is
accepted as eventual consistency, since ``accept_ride`` re-checks the
driver at accept time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .notifications import FanOutResult, NotificationFanOut
from .push import PushMessage
from .routing import FareEstimator, coordinates_from_place
from ride_service.domain.entities import (
    InvalidStateTransition,
    RequestPool,
    allowed_sources,
    check_transition,
    eligible_drivers,
)
from ride_service.domain.enums import RideStatus
from ride_service.domain.errors import ConflictError, NotFoundError, ValidationError
from ride_service.infrastructure.models import RideModel
from ride_service.infrastructure.repositories import DriverRepository, RideRepository

logger = logging.getLogger(__name__)

# Statuses an operator / rider may force through ``cancel_ride``
OVERRIDE_TARGETS = frozenset({RideStatus.CANCEL, RideStatus.ENDED})

CONFLICT_MESSAGES = {
    RideStatus.STARTED: "Ride already started by another driver",
    RideStatus.CANCEL: "Ride has been cancelled",
    RideStatus.ENDED: "Ride has already ended",
    RideStatus.CREATED: "Ride has not been accepted yet",
}


def new_ride_request(ride_id: Optional[str] = None) -> PushMessage:
    data = {"rideId": ride_id} if ride_id else {}
    return PushMessage("New Ride Request", "New Ride Request", data)


def ride_accepted(ride_id: str) -> PushMessage:
    return PushMessage(
        "Ride Accepted",
        "Your ride has been accepted by a driver",
        {"rideId": ride_id},
    )


def ride_ended(ride_id: str) -> PushMessage:
    return PushMessage("Ride Ended", "Your ride has ended", {"rideId": ride_id})


def ride_cancelled(ride_id: str) -> PushMessage:
    return PushMessage(
        "Ride Cancelled", "The ride request has been cancelled", {"rideId": ride_id}
    )


# ── Results ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class RideOutcome:
    ride: RideModel
    notifications: FanOutResult


@dataclass(frozen=True)
class EndRideResult:
    ride: RideModel
    updated_rides_count: int
    customer_notification: FanOutResult
    driver_notification: FanOutResult

    @property
    def notifications_sent(self) -> int:
        return (
            self.customer_notification.success_count
            + self.driver_notification.success_count
        )

    @property
    def message(self) -> str:
        return (
            "Ride ended successfully. Driver added to "
            f"{self.updated_rides_count} new ride requests."
        )


# ── Engine ────────────────────────────────────────────────────────────


class RideLifecycle:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        fan_out: NotificationFanOut,
        estimator: Optional[FareEstimator] = None,
    ):
        self._session_factory = session_factory
        self._fan_out = fan_out
        self._estimator = estimator

    async def create_ride(
        self,
        customer_id: str,
        place_to: Any,
        place_from: Any = None,
        price: Optional[float] = None,
    ) -> RideOutcome:
        if _is_blank(customer_id) or _is_blank(place_to):
            raise ValidationError("customerId and placeTo are required")

        if price is None:
            price = await self._quote(place_from, place_to)

        async with self._session_factory() as session, session.begin():
            rides = RideRepository(session)
            all_drivers = await DriverRepository(session).all_ids()
            busy = await rides.busy_driver_ids()
            ride = await rides.create_ride(
                customer_id=customer_id,
                place_to=place_to,
                place_from=place_from,
                price=price,
                requested_to=eligible_drivers(all_drivers, busy),
            )

        logger.info(
            "Ride %s created for %s, offered to %d drivers",
            ride.ride_id,
            customer_id,
            len(ride.requested_to),
        )
        notifications = await self._fan_out.send_to_ids(
            ride.requested_to, new_ride_request(ride.ride_id)
        )
        return RideOutcome(ride, notifications)

    async def accept_ride(self, ride_id: str, driver_id: str) -> RideOutcome:
        if _is_blank(driver_id):
            raise ValidationError("rideId and driverId are required")

        async with self._session_factory() as session, session.begin():
            rides = RideRepository(session)
            ride = await rides.get_by_id(ride_id)
            if ride is None:
                raise NotFoundError("Ride not found")
            if await DriverRepository(session).get_for_update(driver_id) is None:
                raise NotFoundError("Driver not found")

            try:
                check_transition(ride.status, RideStatus.STARTED)
            except InvalidStateTransition:
                raise _conflict(session, ride, driver_id) from None

            active = await rides.get_active_for_driver(driver_id)
            if active is not None:
                session.expunge(active)
                raise ConflictError("Driver already has an active ride", conflict=active)

            if not await rides.accept(ride_id, driver_id):
                current = await rides.reload(ride_id)
                if current.status == RideStatus.CREATED:
                    # Lost to the busy-driver guard, not to another driver
                    session.expunge(current)
                    raise ConflictError(
                        "Driver already has an active ride", conflict=current
                    )
                raise _conflict(session, current, driver_id)
            ride = await rides.reload(ride_id)

        logger.info("Ride %s accepted by driver %s", ride_id, driver_id)
        notifications = await self._fan_out.send_to_ids(
            [ride.customer_id], ride_accepted(ride_id)
        )
        return RideOutcome(ride, notifications)

    async def reject_ride(self, ride_id: str, driver_id: str) -> RideModel:
        if _is_blank(driver_id):
            raise ValidationError("rideId and driverId are required")

        async with self._session_factory() as session, session.begin():
            ride = await RideRepository(session).get_by_id_for_update(ride_id)
            if ride is None:
                raise NotFoundError("Ride not found")

            pool = RequestPool.of(ride.requested_to, ride.rejected_by).reject(driver_id)
            ride.requested_to = sorted(pool.requested_to)
            ride.rejected_by = sorted(pool.rejected_by)
            await session.flush()

        logger.info("Ride %s rejected by driver %s", ride_id, driver_id)
        return ride

    async def end_ride(self, ride_id: str, driver_id: str) -> EndRideResult:
        if _is_blank(driver_id):
            raise ValidationError("rideId and driverId are required")

        async with self._session_factory() as session, session.begin():
            rides = RideRepository(session)
            ride = await rides.get_by_id_for_update(ride_id)
            if ride is None:
                raise NotFoundError("Ride not found")

            try:
                check_transition(ride.status, RideStatus.ENDED)
            except InvalidStateTransition:
                raise _conflict(session, ride) from None
            if ride.driver_id != driver_id:
                session.expunge(ride)
                raise ConflictError("Ride is assigned to another driver", conflict=ride)

            if not await rides.transition(
                ride_id, RideStatus.ENDED, from_statuses={RideStatus.STARTED}
            ):
                raise _conflict(session, await rides.reload(ride_id))

            # The driver is free again: rejoin every pending pool it has
            # neither joined nor declined.
            updated = 0
            for pending in await rides.get_created_for_update(exclude_ride_id=ride_id):
                pool = RequestPool.of(pending.requested_to, pending.rejected_by)
                if pool.can_offer(driver_id):
                    pending.requested_to = sorted(pool.offer(driver_id).requested_to)
                    updated += 1
            await session.flush()
            ride = await rides.reload(ride_id)

        logger.info(
            "Ride %s ended by driver %s; re-offered to %d pending rides",
            ride_id,
            driver_id,
            updated,
        )
        customer_result = await self._fan_out.send_to_ids(
            [ride.customer_id], ride_ended(ride_id)
        )
        driver_result = await self._fan_out.send_to_ids(
            [driver_id], new_ride_request()
        )
        return EndRideResult(ride, updated, customer_result, driver_result)

    async def cancel_ride(
        self, ride_id: str, status: str | RideStatus = RideStatus.CANCEL
    ) -> RideOutcome:
        """Force a ride into a terminal status (rider cancel / operator override)."""
        try:
            target = RideStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown ride status: {status!r}") from None
        if target not in OVERRIDE_TARGETS:
            raise ValidationError(f"Cannot set ride status to {target.value!r}")

        async with self._session_factory() as session, session.begin():
            rides = RideRepository(session)
            ride = await rides.get_by_id(ride_id)
            if ride is None:
                raise NotFoundError("Ride not found")

            try:
                check_transition(ride.status, target)
            except InvalidStateTransition:
                raise _conflict(session, ride) from None

            if not await rides.transition(
                ride_id, target, from_statuses=allowed_sources(target)
            ):
                raise _conflict(session, await rides.reload(ride_id))
            ride = await rides.reload(ride_id)

        logger.info("Ride %s moved to %s", ride_id, target.value)
        if target is not RideStatus.CANCEL:
            return RideOutcome(ride, FanOutResult.empty("No notification required"))

        # Every driver the request was offered to, plus the assigned driver
        recipients = set(ride.requested_to)
        if ride.driver_id:
            recipients.add(ride.driver_id)
        notifications = await self._fan_out.send_to_ids(
            recipients, ride_cancelled(ride_id)
        )
        return RideOutcome(ride, notifications)

    # ── Internals ─────────────────────────────────────────────────────

    async def _quote(self, place_from: Any, place_to: Any) -> Optional[float]:
        """Price the trip when both places carry coordinates."""
        if self._estimator is None:
            return None
        if coordinates_from_place(place_from) is None:
            return None
        if coordinates_from_place(place_to) is None:
            return None
        estimate = await self._estimator.estimate(place_from, place_to)
        return estimate.price


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (dict, list)):
        return not value
    return False


def _conflict(
    session: AsyncSession, ride: RideModel, driver_id: Optional[str] = None
) -> ConflictError:
    """Detach *ride* so it survives the rollback, and wrap it in a conflict.

    *driver_id* is the driver attempting the change, if any; a driver
    re-accepting their own ride gets a message saying so.
    """
    session.expunge(ride)
    status = RideStatus(ride.status)
    if driver_id and status is RideStatus.STARTED and ride.driver_id == driver_id:
        message = "Ride already accepted by this driver"
    else:
        message = CONFLICT_MESSAGES.get(status, "Ride cannot change state")
    return ConflictError(message, conflict=ride)
