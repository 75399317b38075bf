"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 6 sample drivers
  - 4 sample customer profiles
  - device registrations for every driver and customer
  - 4 sample rides (one per status)
"""

import asyncio
from datetime import datetime, timezone

from sqlalchemy import text

from ride_service.domain.enums import RideStatus
from ride_service.infrastructure.database import async_session_factory, engine
from ride_service.infrastructure.models import (
    CustomerModel,
    DeviceModel,
    DriverModel,
    RideModel,
    new_ride_id,
)


DRIVERS = [
    {"id": "drv-aarav", "name": "Aarav Sharma", "phone_number": "+919800000001"},
    {"id": "drv-priya", "name": "Priya Patel", "phone_number": "+919800000002"},
    {"id": "drv-rohan", "name": "Rohan Mehta", "phone_number": "+919800000003"},
    {"id": "drv-sneha", "name": "Sneha Gupta", "phone_number": "+919800000004"},
    {"id": "drv-vikram", "name": "Vikram Singh", "phone_number": "+919800000005"},
    {"id": "drv-ananya", "name": "Ananya Reddy", "phone_number": "+919800000006"},
]

CUSTOMER_PROFILES = [
    {"id": "cust-karan", "name": "Karan Joshi", "email": "karan@example.com"},
    {"id": "cust-meera", "name": "Meera Nair", "email": "meera@example.com"},
    {"id": "cust-arjun", "name": "Arjun Kapoor", "email": "arjun@example.com"},
    {"id": "cust-diya", "name": "Diya Iyer", "email": "diya@example.com"},
]

CUSTOMERS = [c["id"] for c in CUSTOMER_PROFILES]


def _place(name: str, lat: float, lng: float) -> dict:
    """Places-API shaped descriptor, as the mobile client sends it."""
    return {"name": name, "geometry": {"location": {"lat": lat, "lng": lng}}}


AIRPORT = _place("Mumbai Airport T2", 19.0896, 72.8656)
ANDHERI = _place("Andheri", 19.0760, 72.8777)
POWAI = _place("Powai", 19.1176, 72.9060)
BANDRA = _place("Bandra", 19.0540, 72.8400)


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM drivers"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Drivers ───────────────────────────────────────────────────
        session.add_all(DriverModel(**d) for d in DRIVERS)
        await session.flush()
        print(f"  Created {len(DRIVERS)} drivers")

        # ── Customers ─────────────────────────────────────────────────
        session.add_all(CustomerModel(**c) for c in CUSTOMER_PROFILES)
        await session.flush()
        print(f"  Created {len(CUSTOMER_PROFILES)} customers")

        # ── Devices ───────────────────────────────────────────────────
        now = datetime.now(timezone.utc)
        owners = [d["id"] for d in DRIVERS] + CUSTOMERS
        session.add_all(
            DeviceModel(
                id=owner,
                fcm_token=f"sample-token-{owner}",
                device_type="android" if i % 2 else "ios",
                active=True,
                last_updated=now,
            )
            for i, owner in enumerate(owners)
        )
        await session.flush()
        print(f"  Registered {len(owners)} devices")

        # ── Rides ─────────────────────────────────────────────────────
        # drv-aarav is on a trip, so the pending ride is not offered there
        idle = [d["id"] for d in DRIVERS if d["id"] != "drv-aarav"]
        rides = [
            RideModel(
                ride_id=new_ride_id(),
                customer_id="cust-karan",
                place_from=AIRPORT,
                place_to=ANDHERI,
                price=129.0,
                requested_to=idle,
                rejected_by=[],
                status=RideStatus.CREATED,
            ),
            RideModel(
                ride_id=new_ride_id(),
                customer_id="cust-meera",
                place_from=AIRPORT,
                place_to=POWAI,
                price=137.0,
                requested_to=[d["id"] for d in DRIVERS],
                rejected_by=[],
                driver_id="drv-aarav",
                accepted_by="drv-aarav",
                status=RideStatus.STARTED,
            ),
            RideModel(
                ride_id=new_ride_id(),
                customer_id="cust-arjun",
                place_from=AIRPORT,
                place_to=BANDRA,
                price=150.0,
                requested_to=[d["id"] for d in DRIVERS],
                rejected_by=[],
                driver_id="drv-priya",
                accepted_by="drv-priya",
                status=RideStatus.ENDED,
            ),
            RideModel(
                ride_id=new_ride_id(),
                customer_id="cust-diya",
                place_from=AIRPORT,
                place_to="Dadar station",
                price=None,
                requested_to=[],
                rejected_by=["drv-rohan"],
                status=RideStatus.CANCEL,
            ),
        ]
        session.add_all(rides)
        await session.flush()
        print(f"  Created {len(rides)} rides")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
