"""
Notification endpoints
======================

POST   /notification/register         -- register / refresh a device token
DELETE /notification/unregister/{id}  -- forget a device
POST   /notification/notify           -- push to one or more owner ids
POST   /notification/notify-all       -- push to every active device
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ride_service.api.dependencies import get_db, get_fan_out
from ride_service.api.middleware import RATE_LIMIT, limiter
from ride_service.api.schemas import (
    BroadcastRequest,
    DeviceRegisterRequest,
    DeviceRegisterResponse,
    DeviceResponse,
    ErrorResponse,
    NotifyRequest,
    NotifyResponse,
)
from ride_service.domain.errors import NotFoundError
from ride_service.infrastructure.repositories import DeviceRepository
from ride_service.services.notifications import NotificationFanOut
from ride_service.services.push import PushMessage

router = APIRouter(prefix="/notification", tags=["notifications"])


@router.post(
    "/register",
    response_model=DeviceRegisterResponse,
    summary="Register a device token for an owner id",
    description="A later registration replaces the earlier token for the same id.",
)
@limiter.limit(RATE_LIMIT)
async def register_device(
    request: Request,
    body: DeviceRegisterRequest,
    db: AsyncSession = Depends(get_db),
):
    device = await DeviceRepository(db).upsert(body.id, body.token, body.device_type)
    return DeviceRegisterResponse(device=DeviceResponse.model_validate(device))


@router.delete(
    "/unregister/{device_id}",
    summary="Unregister a device",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(RATE_LIMIT)
async def unregister_device(
    request: Request,
    device_id: str,
    db: AsyncSession = Depends(get_db),
):
    if not await DeviceRepository(db).delete(device_id):
        raise NotFoundError("Device not found")
    return {"success": True, "message": "Device unregistered successfully"}


@router.post(
    "/notify",
    response_model=NotifyResponse,
    summary="Send a notification to device owner id(s)",
)
@limiter.limit(RATE_LIMIT)
async def notify(
    request: Request,
    body: NotifyRequest,
    fan_out: NotificationFanOut = Depends(get_fan_out),
):
    result = await fan_out.send_to_ids(
        body.recipient_ids(), PushMessage(body.title, body.body, body.data)
    )
    return NotifyResponse.from_result(result)


@router.post(
    "/notify-all",
    response_model=NotifyResponse,
    summary="Send a notification to every active device",
)
@limiter.limit(RATE_LIMIT)
async def notify_all(
    request: Request,
    body: BroadcastRequest,
    fan_out: NotificationFanOut = Depends(get_fan_out),
):
    result = await fan_out.broadcast(PushMessage(body.title, body.body, body.data))
    return NotifyResponse.from_result(result)
