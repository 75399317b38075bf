"""
SQLAlchemy ORM models  (maps to PostgreSQL).

Tables
------
* ``rides``    -- ride requests and their lifecycle state
* ``drivers``  -- driver roster (written by the auth service, read here)
* ``devices``  -- push-notification registrations, one token per owner id
* ``customers`` -- rider profiles (name, email, phone number)

Indexes
-------
* **B-Tree** on ``status``, ``customer_id`` and ``(driver_id, status)`` for
  the query layer and the busy-driver checks.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    Index,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.types import TypeDecorator

from .database import Base
from ride_service.domain.enums import RideStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_ride_id() -> str:
    return str(uuid.uuid4())


class StringSet(TypeDecorator):
    """Set of identifiers: ``text[]`` on PostgreSQL, JSON list elsewhere.

    Values are written sorted and de-duplicated, and always read back as a
    list (never ``None``).
    """

    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(ARRAY(Text))
        return dialect.type_descriptor(JSON())

    def process_bind_param(self, value, dialect):
        return sorted(set(value or ()))

    def process_result_value(self, value, dialect):
        return list(value or ())


ride_status_enum = Enum(
    RideStatus,
    name="ridestatus",
    values_callable=lambda statuses: [s.value for s in statuses],
)


class RideModel(Base):
    __tablename__ = "rides"

    ride_id = Column(String(36), primary_key=True, default=new_ride_id)
    customer_id = Column(String(64), nullable=False)
    driver_id = Column(String(64), nullable=True)
    # Mirrors driver_id once accepted; kept for older clients
    accepted_by = Column(String(64), nullable=True)

    # Opaque place descriptors as sent by the client
    place_to = Column(JSON, nullable=False)
    place_from = Column(JSON, nullable=True)
    price = Column(Float, nullable=True)

    requested_to = Column(StringSet, nullable=False, default=list)
    rejected_by = Column(StringSet, nullable=False, default=list)

    status = Column(ride_status_enum, default=RideStatus.CREATED, nullable=False)

    created_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("idx_rides_status", "status"),
        Index("idx_rides_customer", "customer_id"),
        Index("idx_rides_driver_status", "driver_id", "status"),
    )


class DriverModel(Base):
    __tablename__ = "drivers"

    id = Column(String(64), primary_key=True)
    name = Column(String(120), nullable=True)
    phone_number = Column(String(20), nullable=True, unique=True)
    created_at = Column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )


class DeviceModel(Base):
    __tablename__ = "devices"

    # Owner identifier (driver or customer id); one active token per owner
    id = Column(String(64), primary_key=True)
    fcm_token = Column(Text, nullable=False)
    device_type = Column(String(20), default="unknown", nullable=False)
    active = Column(Boolean, default=True, nullable=False)

    created_at = Column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    last_updated = Column(DateTime(timezone=True), default=_utcnow)
    last_notified = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("idx_devices_active", "active"),)


class CustomerModel(Base):
    __tablename__ = "customers"

    # Created by the sign-in flow; this service reads and edits the profile
    id = Column(String(64), primary_key=True)
    email = Column(String(255), nullable=True, unique=True)
    name = Column(String(120), nullable=True)
    phone_number = Column(String(20), nullable=True)
    created_at = Column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
