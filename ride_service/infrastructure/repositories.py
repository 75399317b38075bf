"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Status transitions are written as single
conditional ``UPDATE`` statements guarded by the expected prior state, so
two writers racing on the same row cannot both succeed.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from sqlalchemy import any_, exists, func, literal, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import CustomerModel, DeviceModel, DriverModel, RideModel, new_ride_id
from ride_service.domain.enums import OPEN_STATUSES, RideStatus


class RideRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    @property
    def _dialect(self) -> str:
        return self.session.bind.dialect.name

    # ── Writes ────────────────────────────────────────────────────────

    async def create_ride(
        self,
        *,
        customer_id: str,
        place_to: Any,
        place_from: Any = None,
        price: Optional[float] = None,
        requested_to: Iterable[str] = (),
    ) -> RideModel:
        ride = RideModel(
            ride_id=new_ride_id(),
            customer_id=customer_id,
            place_to=place_to,
            place_from=place_from,
            price=price,
            requested_to=sorted(requested_to),
            rejected_by=[],
            status=RideStatus.CREATED,
        )
        self.session.add(ride)
        await self.session.flush()
        return ride

    async def accept(self, ride_id: str, driver_id: str) -> bool:
        """Atomically assign *driver_id* to a ``created`` ride.

        Succeeds only if the ride is still ``created`` and the driver has no
        other ``started`` ride at the moment the statement runs.
        """
        busy = RideModel.__table__.alias("busy")
        result = await self.session.execute(
            update(RideModel)
            .where(
                RideModel.ride_id == ride_id,
                RideModel.status == RideStatus.CREATED,
                ~exists().where(
                    busy.c.driver_id == driver_id,
                    busy.c.status == RideStatus.STARTED,
                ),
            )
            .values(
                driver_id=driver_id,
                accepted_by=driver_id,
                status=RideStatus.STARTED,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def transition(
        self,
        ride_id: str,
        target: RideStatus,
        *,
        from_statuses: Iterable[RideStatus],
    ) -> bool:
        """Set ``status`` to *target* if the ride is in one of *from_statuses*."""
        result = await self.session.execute(
            update(RideModel)
            .where(
                RideModel.ride_id == ride_id,
                RideModel.status.in_(list(from_statuses)),
            )
            .values(status=target, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # ── Reads ─────────────────────────────────────────────────────────

    async def get_by_id(self, ride_id: str) -> Optional[RideModel]:
        return await self.session.get(RideModel, ride_id)

    async def reload(self, ride_id: str) -> Optional[RideModel]:
        """Re-read a ride, overwriting any stale copy in the identity map."""
        return await self.session.get(RideModel, ride_id, populate_existing=True)

    async def get_by_id_for_update(self, ride_id: str) -> Optional[RideModel]:
        """SELECT ... FOR UPDATE to serialise writers on one ride."""
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.ride_id == ride_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_created_for_update(
        self, exclude_ride_id: Optional[str] = None
    ) -> list[RideModel]:
        """Lock every pending ride (optionally skipping one)."""
        query = (
            select(RideModel)
            .where(RideModel.status == RideStatus.CREATED)
            .order_by(RideModel.created_at)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if exclude_ride_id:
            query = query.where(RideModel.ride_id != exclude_ride_id)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_by_status(self, status: RideStatus) -> list[RideModel]:
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.status == status)
            .order_by(RideModel.created_at)
        )
        return list(result.scalars().all())

    async def get_by_customer(
        self, customer_id: str, status: Optional[RideStatus] = None
    ) -> list[RideModel]:
        """Customer's rides; without a filter only rides still in progress."""
        query = select(RideModel).where(RideModel.customer_id == customer_id)
        if status is not None:
            query = query.where(RideModel.status == status)
        else:
            query = query.where(RideModel.status.in_(list(OPEN_STATUSES)))
        result = await self.session.execute(query.order_by(RideModel.created_at))
        return list(result.scalars().all())

    async def get_by_driver(
        self, driver_id: str, status: Optional[RideStatus] = None
    ) -> list[RideModel]:
        query = select(RideModel).where(RideModel.driver_id == driver_id)
        if status is not None:
            query = query.where(RideModel.status == status)
        result = await self.session.execute(query.order_by(RideModel.created_at))
        return list(result.scalars().all())

    async def get_requests_for_driver(self, driver_id: str) -> list[RideModel]:
        """Pending rides whose ``requested_to`` contains *driver_id*."""
        query = (
            select(RideModel)
            .where(RideModel.status == RideStatus.CREATED)
            .order_by(RideModel.created_at)
        )
        if self._dialect == "postgresql":
            query = query.where(literal(driver_id) == any_(RideModel.requested_to))
            result = await self.session.execute(query)
            return list(result.scalars().all())

        # JSON-backed sets (SQLite) have no array operators
        result = await self.session.execute(query)
        return [r for r in result.scalars().all() if driver_id in r.requested_to]

    async def get_active_for_driver(self, driver_id: str) -> Optional[RideModel]:
        """The driver's ``started`` ride, if any."""
        result = await self.session.execute(
            select(RideModel)
            .where(
                RideModel.driver_id == driver_id,
                RideModel.status == RideStatus.STARTED,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def count_by_status(self) -> dict[RideStatus, int]:
        result = await self.session.execute(
            select(RideModel.status, func.count()).group_by(RideModel.status)
        )
        return {RideStatus(status): count for status, count in result.all()}

    async def busy_driver_ids(self) -> set[str]:
        result = await self.session.execute(
            select(RideModel.driver_id)
            .where(
                RideModel.status == RideStatus.STARTED,
                RideModel.driver_id.is_not(None),
            )
            .distinct()
        )
        return set(result.scalars().all())


class DriverRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def all_ids(self) -> set[str]:
        result = await self.session.execute(select(DriverModel.id))
        return set(result.scalars().all())

    async def get_by_id(self, driver_id: str) -> Optional[DriverModel]:
        return await self.session.get(DriverModel, driver_id)

    async def get_for_update(self, driver_id: str) -> Optional[DriverModel]:
        """Row-lock the driver so one driver's accepts run one at a time."""
        result = await self.session.execute(
            select(DriverModel).where(DriverModel.id == driver_id).with_for_update()
        )
        return result.scalar_one_or_none()


class CustomerRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, customer_id: str) -> Optional[CustomerModel]:
        return await self.session.get(CustomerModel, customer_id)

    async def update_profile(
        self,
        customer: CustomerModel,
        *,
        name: Optional[str] = None,
        phone_number: Optional[str] = None,
    ) -> CustomerModel:
        """Overwrite the fields that were supplied; keep the others."""
        if name is not None:
            customer.name = name
        if phone_number is not None:
            customer.phone_number = phone_number
        await self.session.flush()
        return customer


class DeviceRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def upsert(
        self, device_id: str, token: str, device_type: str = "unknown"
    ) -> DeviceModel:
        """Register *token* for *device_id*, replacing any earlier token."""
        now = datetime.now(timezone.utc)
        device = await self.session.get(DeviceModel, device_id)
        if device is None:
            device = DeviceModel(
                id=device_id,
                fcm_token=token,
                device_type=device_type,
                active=True,
                created_at=now,
                last_updated=now,
            )
            self.session.add(device)
        else:
            device.fcm_token = token
            device.device_type = device_type
            device.active = True
            device.last_updated = now
        await self.session.flush()
        return device

    async def get_by_id(self, device_id: str) -> Optional[DeviceModel]:
        return await self.session.get(DeviceModel, device_id)

    async def get_active_by_ids(self, ids: Iterable[str]) -> list[DeviceModel]:
        ids = list(ids)
        if not ids:
            return []
        result = await self.session.execute(
            select(DeviceModel)
            .where(DeviceModel.id.in_(ids), DeviceModel.active.is_(True))
            .order_by(DeviceModel.id)
        )
        return list(result.scalars().all())

    async def get_all_active(self) -> list[DeviceModel]:
        result = await self.session.execute(
            select(DeviceModel)
            .where(DeviceModel.active.is_(True))
            .order_by(DeviceModel.id)
        )
        return list(result.scalars().all())

    async def delete(self, device_id: str) -> bool:
        device = await self.session.get(DeviceModel, device_id)
        if device is None:
            return False
        await self.session.delete(device)
        await self.session.flush()
        return True

    async def mark_notified(self, ids: Iterable[str]) -> None:
        ids = list(ids)
        if not ids:
            return
        await self.session.execute(
            update(DeviceModel)
            .where(DeviceModel.id.in_(ids))
            .values(last_notified=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
