"""
Tests for WebhookNotifier - fire-and-forget delivery, failure isolation
"""
import asyncio
import json
import logging

import httpx
import pytest

from mock_agency.db.store import ParcelStore
from mock_agency.domain.services.webhook_notifier import EVENT_STATUS_UPDATED, WebhookNotifier
from mock_agency.state_machine.states import ParcelStatus

WEBHOOK_URL = "http://merchant.test/api/v1/orders/delivery/webhook"


@pytest.fixture
def parcel(store: ParcelStore, parcel_fields: dict):
    return store.get(store.create({**parcel_fields, "webhook_url": WEBHOOK_URL}))


class TestPayload:
    """Payload shape"""

    @pytest.mark.unit
    def test_payload_structure(self, parcel, clock_factory):
        notifier = WebhookNotifier(clock=clock_factory())

        payload = notifier.build_payload(parcel)

        assert payload["event"] == EVENT_STATUS_UPDATED
        assert payload["timestamp"] == "2026-01-01T12:00:00Z"
        assert set(payload["data"]) == {
            "tracking_number",
            "order_id",
            "status",
            "cod_amount",
            "delivered_at",
            "status_history",
        }
        assert payload["data"]["tracking_number"] == parcel.tracking_number
        assert payload["data"]["status"] == "pending_pickup"
        assert payload["data"]["cod_amount"] == 2500
        assert payload["data"]["delivered_at"] is None
        assert payload["data"]["status_history"][0]["status"] == "pending_pickup"
        # ה-payload חייב להיות ניתן לסריאליזציה ל-JSON
        json.dumps(payload)

    @pytest.mark.unit
    def test_payload_includes_delivered_at(self, parcel, engine):
        engine.apply(parcel, ParcelStatus.DELIVERED)

        payload = WebhookNotifier().build_payload(parcel)

        assert payload["data"]["delivered_at"] is not None
        assert [entry["status"] for entry in payload["data"]["status_history"]] == [
            "pending_pickup",
            "delivered",
        ]


class TestDeliver:
    """Outcome handling of a single delivery"""

    @pytest.mark.unit
    async def test_success_is_counted(self, parcel, webhook_recorder):
        notifier = WebhookNotifier(transport=webhook_recorder.transport)

        ok = await notifier.deliver(WEBHOOK_URL, notifier.build_payload(parcel), parcel.tracking_number)

        assert ok is True
        assert notifier.stats.sent == 1
        assert notifier.stats.failed == 0
        assert webhook_recorder.statuses == ["pending_pickup"]

    @pytest.mark.unit
    async def test_non_2xx_is_logged_not_raised(self, parcel, webhook_recorder, caplog):
        webhook_recorder.status_code = 500
        notifier = WebhookNotifier(transport=webhook_recorder.transport)

        with caplog.at_level(logging.WARNING):
            ok = await notifier.deliver(WEBHOOK_URL, notifier.build_payload(parcel), parcel.tracking_number)

        assert ok is False
        assert notifier.stats.failed == 1
        assert notifier.stats.sent == 0
        assert f"Webhook failed for {parcel.tracking_number}" in caplog.text

    @pytest.mark.unit
    @pytest.mark.parametrize("error", [
        httpx.ReadTimeout("timed out"),
        httpx.ConnectError("connection refused"),
    ])
    async def test_transport_errors_are_swallowed(self, parcel, webhook_recorder, error):
        webhook_recorder.error = error
        notifier = WebhookNotifier(transport=webhook_recorder.transport)

        ok = await notifier.deliver(WEBHOOK_URL, notifier.build_payload(parcel), parcel.tracking_number)

        assert ok is False
        assert notifier.stats.failed == 1

    @pytest.mark.unit
    async def test_timeout_error_code(self, parcel, webhook_recorder, caplog):
        webhook_recorder.error = httpx.ConnectTimeout("slow")
        notifier = WebhookNotifier(timeout_seconds=0.5, transport=webhook_recorder.transport)

        with caplog.at_level(logging.WARNING):
            await notifier.deliver(WEBHOOK_URL, notifier.build_payload(parcel), parcel.tracking_number)

        assert "timed out after 0.5s" in caplog.text

    @pytest.mark.unit
    async def test_unexpected_error_is_swallowed(self, parcel, webhook_recorder):
        webhook_recorder.error = RuntimeError("boom")
        notifier = WebhookNotifier(transport=webhook_recorder.transport)

        ok = await notifier.deliver(WEBHOOK_URL, notifier.build_payload(parcel), parcel.tracking_number)

        assert ok is False
        assert notifier.stats.failed == 1


class TestNotify:
    """Fire-and-forget scheduling"""

    @pytest.mark.unit
    async def test_notify_returns_before_delivery(self, parcel, webhook_recorder):
        notifier = WebhookNotifier(transport=webhook_recorder.transport)

        task = notifier.notify(WEBHOOK_URL, parcel)

        assert not task.done()
        assert notifier.pending_count == 1
        assert webhook_recorder.payloads == []

        await notifier.drain()

        assert notifier.pending_count == 0
        assert webhook_recorder.statuses == ["pending_pickup"]

    @pytest.mark.unit
    async def test_payload_is_snapshotted_at_notify_time(self, parcel, engine, webhook_recorder):
        notifier = WebhookNotifier(transport=webhook_recorder.transport)

        notifier.notify(WEBHOOK_URL, parcel)
        engine.apply(parcel, ParcelStatus.COLLECTED)
        notifier.notify(WEBHOOK_URL, parcel)
        await notifier.drain()

        assert sorted(webhook_recorder.statuses) == ["collected", "pending_pickup"]
        first = next(p for p in webhook_recorder.payloads if p["data"]["status"] == "pending_pickup")
        assert len(first["data"]["status_history"]) == 1

    @pytest.mark.unit
    async def test_failed_task_does_not_raise(self, parcel, webhook_recorder):
        webhook_recorder.status_code = 404
        notifier = WebhookNotifier(transport=webhook_recorder.transport)

        task = notifier.notify(WEBHOOK_URL, parcel)
        await notifier.drain()

        assert task.result() is False

    @pytest.mark.unit
    async def test_concurrency_is_bounded(self, parcel):
        in_flight = 0
        peak = 0

        async def slow_endpoint(request: httpx.Request) -> httpx.Response:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return httpx.Response(204)

        notifier = WebhookNotifier(max_concurrency=2, transport=httpx.MockTransport(slow_endpoint))

        for _ in range(6):
            notifier.notify(WEBHOOK_URL, parcel)
        await notifier.drain()

        assert peak == 2
        assert notifier.stats.sent == 6
