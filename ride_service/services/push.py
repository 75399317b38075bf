"""
Push-provider clients.

The provider is constructed once at startup and handed to the fan-out by
reference; nothing here initialises itself on import.

* ``FirebasePushClient`` -- Firebase Cloud Messaging via ``firebase-admin``.
  The SDK call is blocking, so it runs in a worker thread.
* ``DisabledPushClient`` -- used when no service-account credentials are
  configured; every delivery fails with ``NotificationError`` so callers
  still get an honest per-recipient result.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import firebase_admin
from firebase_admin import credentials, exceptions, messaging

from ride_service.domain.errors import NotificationError

logger = logging.getLogger(__name__)

ANDROID_CHANNEL_ID = "default-channel"


@dataclass(frozen=True)
class PushMessage:
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)

    def string_data(self) -> dict[str, str]:
        """FCM data payloads only carry strings; JSON-encode everything else."""
        return {
            key: value if isinstance(value, str) else json.dumps(value)
            for key, value in self.data.items()
        }


class PushClient(Protocol):
    async def send(self, token: str, message: PushMessage) -> str:
        """Deliver to one device token; return the provider message id."""
        ...

    async def close(self) -> None: ...


def build_fcm_message(token: str, message: PushMessage) -> messaging.Message:
    return messaging.Message(
        fid=token,
        notification=messaging.Notification(title=message.title, body=message.body),
        data=message.string_data(),
        android=messaging.AndroidConfig(
            priority="high",
            notification=messaging.AndroidNotification(
                sound="default",
                priority="high",
                channel_id=ANDROID_CHANNEL_ID,
            ),
        ),
        apns=messaging.APNSConfig(
            headers={"apns-priority": "10"},
            payload=messaging.APNSPayload(
                aps=messaging.Aps(sound="default", badge=1, content_available=True)
            ),
        ),
    )


class FirebasePushClient:
    def __init__(self, app: firebase_admin.App):
        self._app = app

    @classmethod
    def from_service_account(
        cls, credentials_path: str, app_name: str = "ride-service"
    ) -> "FirebasePushClient":
        app = firebase_admin.initialize_app(
            credentials.Certificate(credentials_path), name=app_name
        )
        logger.info("Firebase app %r initialised", app_name)
        return cls(app)

    async def send(self, token: str, message: PushMessage) -> str:
        fcm_message = build_fcm_message(token, message)
        try:
            return await asyncio.to_thread(messaging.send, fcm_message, app=self._app)
        except (exceptions.FirebaseError, ValueError) as exc:
            raise NotificationError(str(exc)) from exc

    async def close(self) -> None:
        firebase_admin.delete_app(self._app)


class DisabledPushClient:
    async def send(self, token: str, message: PushMessage) -> str:
        raise NotificationError("push provider is not configured")

    async def close(self) -> None:
        return None
