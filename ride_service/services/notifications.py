"""
Notification Fan-out
====================

Resolves recipient ids to their registered device token, then sends to
each token independently.  Best-effort by contract:

* one failing token never aborts the others;
* no error escapes ``send_to_ids`` / ``broadcast`` -- failures are counted
  in the returned ``FanOutResult``;
* every send is bounded by ``timeout_seconds``.

Callers dispatch only after their own transaction has committed, so a
delivery problem can never roll back a ride transition.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .push import PushClient, PushMessage
from ride_service.infrastructure.models import DeviceModel
from ride_service.infrastructure.repositories import DeviceRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecipientResult:
    recipient_id: str
    token: str
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class FanOutResult:
    success: bool
    message: str
    total_devices: int = 0
    success_count: int = 0
    failure_count: int = 0
    responses: tuple[RecipientResult, ...] = ()
    recipient_ids: tuple[str, ...] = ()

    @classmethod
    def empty(cls, message: str, recipient_ids: Iterable[str] = ()) -> "FanOutResult":
        return cls(success=False, message=message, recipient_ids=tuple(recipient_ids))

    @classmethod
    def from_responses(
        cls, responses: list[RecipientResult], recipient_ids: Iterable[str]
    ) -> "FanOutResult":
        sent = sum(1 for r in responses if r.success)
        return cls(
            success=sent > 0,
            message=(
                f"Successfully sent {sent} notifications"
                if sent
                else "Failed to send any notifications"
            ),
            total_devices=len(responses),
            success_count=sent,
            failure_count=len(responses) - sent,
            responses=tuple(responses),
            recipient_ids=tuple(recipient_ids),
        )


NO_RECIPIENTS = "Recipient ids are required and must not be empty"
NO_DEVICES = "No registered devices found with the provided ID(s)"


class NotificationFanOut:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        push_client: PushClient,
        timeout_seconds: float = 5.0,
    ):
        self._session_factory = session_factory
        self._push = push_client
        self._timeout = timeout_seconds

    async def send_to_ids(
        self, ids: Iterable[str], message: PushMessage
    ) -> FanOutResult:
        recipient_ids = sorted({i for i in ids if i})
        if not recipient_ids:
            return FanOutResult.empty(NO_RECIPIENTS)

        try:
            async with self._session_factory() as session:
                devices = await DeviceRepository(session).get_active_by_ids(
                    recipient_ids
                )
        except SQLAlchemyError:
            logger.exception("Could not resolve device tokens for %s", recipient_ids)
            return FanOutResult.empty("Device lookup failed", recipient_ids)

        return await self._deliver(devices, message, recipient_ids)

    async def broadcast(self, message: PushMessage) -> FanOutResult:
        """Send to every active device."""
        try:
            async with self._session_factory() as session:
                devices = await DeviceRepository(session).get_all_active()
        except SQLAlchemyError:
            logger.exception("Could not load active devices")
            return FanOutResult.empty("Device lookup failed")

        return await self._deliver(devices, message, [d.id for d in devices])

    # ── Internals ─────────────────────────────────────────────────────

    async def _deliver(
        self,
        devices: list[DeviceModel],
        message: PushMessage,
        recipient_ids: list[str],
    ) -> FanOutResult:
        targets = [d for d in devices if d.fcm_token]
        if not targets:
            return FanOutResult.empty(NO_DEVICES, recipient_ids)

        responses = await asyncio.gather(
            *(self._send_one(d.id, d.fcm_token, message) for d in targets)
        )
        await self._mark_notified([r.recipient_id for r in responses if r.success])

        result = FanOutResult.from_responses(list(responses), recipient_ids)
        logger.info(
            "Notification %r: %d sent, %d failed",
            message.title,
            result.success_count,
            result.failure_count,
        )
        return result

    async def _send_one(
        self, recipient_id: str, token: str, message: PushMessage
    ) -> RecipientResult:
        try:
            message_id = await asyncio.wait_for(
                self._push.send(token, message), timeout=self._timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Push to %s timed out after %.1fs", recipient_id, self._timeout)
            return RecipientResult(recipient_id, token, False, error="timeout")
        except Exception as exc:
            # Provider SDKs raise a variety of transport errors; all count as failures
            logger.warning("Push to %s failed: %s", recipient_id, exc)
            return RecipientResult(recipient_id, token, False, error=str(exc))
        return RecipientResult(recipient_id, token, True, message_id=message_id)

    async def _mark_notified(self, ids: list[str]) -> None:
        if not ids:
            return
        try:
            async with self._session_factory() as session:
                await DeviceRepository(session).mark_notified(ids)
                await session.commit()
        except SQLAlchemyError:
            logger.exception("Could not stamp last_notified for %s", ids)
