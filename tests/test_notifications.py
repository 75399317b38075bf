"""Notification fan-out, device registry and FCM payload tests."""

import asyncio
import warnings

import pytest

from ride_service.domain.errors import NotificationError
from ride_service.infrastructure.repositories import DeviceRepository
from ride_service.services.notifications import (
    NO_DEVICES,
    NO_RECIPIENTS,
    NotificationFanOut,
)
from ride_service.services.push import DisabledPushClient, PushMessage, build_fcm_message

from conftest import token_for

MESSAGE = PushMessage("Hello", "World", {"rideId": "r1"})


class _SlowPushClient:
    async def send(self, token, message):
        await asyncio.sleep(1)
        return "late"

    async def close(self):
        return None


class TestSendToIds:
    @pytest.mark.asyncio
    async def test_empty_recipients(self, fan_out, push_client):
        result = await fan_out.send_to_ids([], MESSAGE)

        assert result.success is False
        assert result.message == NO_RECIPIENTS
        assert push_client.sent == []

    @pytest.mark.asyncio
    async def test_unregistered_recipients(self, fan_out, push_client):
        result = await fan_out.send_to_ids(["nobody"], MESSAGE)

        assert result.success is False
        assert result.message == NO_DEVICES
        assert result.recipient_ids == ("nobody",)
        assert push_client.sent == []

    @pytest.mark.asyncio
    async def test_partial_failure(self, fan_out, push_client, register_devices, session_factory):
        await register_devices("a", "b", "c")
        push_client.failing.add(token_for("b"))

        result = await fan_out.send_to_ids(["a", "b", "c", "a"], MESSAGE)

        assert result.success is True
        assert result.total_devices == 3
        assert result.success_count == 2
        assert result.failure_count == 1
        assert result.message == "Successfully sent 2 notifications"
        failed = [r for r in result.responses if not r.success]
        assert [r.recipient_id for r in failed] == ["b"]
        assert "unregistered" in failed[0].error

        async with session_factory() as session:
            repo = DeviceRepository(session)
            assert (await repo.get_by_id("a")).last_notified is not None
            assert (await repo.get_by_id("b")).last_notified is None

    @pytest.mark.asyncio
    async def test_every_send_fails(self, fan_out, push_client, register_devices):
        await register_devices("a")
        push_client.failing.add(token_for("a"))

        result = await fan_out.send_to_ids(["a"], MESSAGE)

        assert result.success is False
        assert result.message == "Failed to send any notifications"

    @pytest.mark.asyncio
    async def test_inactive_devices_skipped(self, fan_out, push_client, register_devices):
        await register_devices("a")
        await register_devices("b", active=False)

        result = await fan_out.send_to_ids(["a", "b"], MESSAGE)

        assert result.total_devices == 1
        assert push_client.tokens() == [token_for("a")]

    @pytest.mark.asyncio
    async def test_slow_provider_times_out(self, session_factory, register_devices):
        await register_devices("a")
        fan_out = NotificationFanOut(session_factory, _SlowPushClient(), timeout_seconds=0.05)

        result = await fan_out.send_to_ids(["a"], MESSAGE)

        assert result.success is False
        assert result.responses[0].error == "timeout"

    @pytest.mark.asyncio
    async def test_disabled_provider_reports_failures(self, session_factory, register_devices):
        await register_devices("a")
        fan_out = NotificationFanOut(session_factory, DisabledPushClient())

        result = await fan_out.send_to_ids(["a"], MESSAGE)

        assert result.failure_count == 1
        assert result.responses[0].error == "push provider is not configured"


class TestBroadcast:
    @pytest.mark.asyncio
    async def test_reaches_every_active_device(self, fan_out, push_client, register_devices):
        await register_devices("a", "b")
        await register_devices("c", active=False)

        result = await fan_out.broadcast(MESSAGE)

        assert result.success_count == 2
        assert sorted(push_client.tokens()) == [token_for("a"), token_for("b")]
        assert result.recipient_ids == ("a", "b")

    @pytest.mark.asyncio
    async def test_no_devices(self, fan_out, push_client):
        result = await fan_out.broadcast(MESSAGE)

        assert result.success is False
        assert result.message == NO_DEVICES


class TestDeviceRegistry:
    @pytest.mark.asyncio
    async def test_upsert_replaces_token(self, db_session):
        repo = DeviceRepository(db_session)
        await repo.upsert("d1", "old-token", "ios")
        device = await repo.upsert("d1", "new-token", "android")

        assert device.fcm_token == "new-token"
        assert device.device_type == "android"
        assert [d.id for d in await repo.get_all_active()] == ["d1"]

    @pytest.mark.asyncio
    async def test_delete(self, db_session):
        repo = DeviceRepository(db_session)
        await repo.upsert("d1", "token")

        assert await repo.delete("d1") is True
        assert await repo.delete("d1") is False
        assert await repo.get_by_id("d1") is None


class TestPushPayload:
    def test_data_values_are_strings(self):
        message = PushMessage("t", "b", {"rideId": "r1", "price": 129.0, "meta": {"a": 1}})
        assert message.string_data() == {
            "rideId": "r1",
            "price": "129.0",
            "meta": '{"a": 1}',
        }

    def test_fcm_message_is_high_priority(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            fcm = build_fcm_message("tok", MESSAGE)

        assert fcm.fid == "tok"
        assert fcm.token is None
        assert fcm.notification.title == "Hello"
        assert fcm.data == {"rideId": "r1"}
        assert fcm.android.priority == "high"
        assert fcm.android.notification.channel_id == "default-channel"
        assert fcm.apns.headers == {"apns-priority": "10"}
        assert fcm.apns.payload.aps.badge == 1

    @pytest.mark.asyncio
    async def test_disabled_client_raises(self):
        with pytest.raises(NotificationError):
            await DisabledPushClient().send("tok", MESSAGE)
