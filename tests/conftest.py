"""
Pytest Configuration and Fixtures

Provides fixtures for:
- An isolated AgencyRuntime per test (fresh store and tracking counter)
- A recording webhook endpoint (httpx.MockTransport)
- An HTTP client bound to the ASGI app
- Parcel factories
"""
import asyncio
import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from mock_agency.core.config import Settings
from mock_agency.db.store import ParcelStore
from mock_agency.main import create_app
from mock_agency.runtime import AgencyRuntime, build_runtime
from mock_agency.state_machine.engine import StatusTransitionEngine

# הסימולציה בבדיקות רצה באלפיות שנייה במקום שניות
TEST_DELAYS = {"fast": 0.01, "normal": 0.02, "slow": 0.04}


class WebhookRecorder:
    """Fake merchant endpoint that records every webhook it receives"""

    def __init__(self) -> None:
        self.payloads: list[dict] = []
        self.status_code = 200
        self.error: Exception | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.error is not None:
            raise self.error
        self.payloads.append(json.loads(request.content))
        return httpx.Response(self.status_code, json={"received": True})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def statuses(self) -> list[str]:
        return [payload["data"]["status"] for payload in self.payloads]


class SteppingClock:
    """Deterministic clock; each call advances by ``step`` (may be negative)"""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)):
        self.current = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        SIMULATION_FAST_SECONDS=TEST_DELAYS["fast"],
        SIMULATION_NORMAL_SECONDS=TEST_DELAYS["normal"],
        SIMULATION_SLOW_SECONDS=TEST_DELAYS["slow"],
        WEBHOOK_TIMEOUT_SECONDS=1.0,
    )


@pytest.fixture
def webhook_url() -> str:
    return "http://merchant.test/api/v1/orders/delivery/webhook"


@pytest.fixture
def webhook_recorder() -> WebhookRecorder:
    return WebhookRecorder()


@pytest.fixture
async def runtime(test_settings: Settings, webhook_recorder: WebhookRecorder):
    """Fresh runtime per test, closed (runs cancelled, webhooks drained) afterwards"""
    rt = build_runtime(test_settings, webhook_transport=webhook_recorder.transport)
    yield rt
    await rt.aclose()


@pytest.fixture
def store() -> ParcelStore:
    return ParcelStore()


@pytest.fixture
def engine() -> StatusTransitionEngine:
    return StatusTransitionEngine()


@pytest.fixture
def parcel_fields() -> dict:
    return {
        "order_id": "ORD123",
        "customer_name": "Ahmed Benali",
        "customer_phone": "0555123456",
        "customer_address": "Rue de la Liberte, Tlemcen",
        "wilaya": "Tlemcen",
        "price": 2500,
    }


@pytest.fixture
def parcel_factory(runtime: AgencyRuntime, parcel_fields: dict):
    """Create parcels directly through the service"""
    def _create(**overrides):
        return runtime.service.create_parcel({**parcel_fields, **overrides})
    return _create


@pytest.fixture
async def test_client(runtime: AgencyRuntime):
    """HTTP client against an app wired to the test runtime"""
    app = create_app(runtime)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def wait_for_simulations(runtime: AgencyRuntime):
    """Await every live simulation run (and the webhooks it queued)"""
    async def _wait(timeout: float = 2.0) -> None:
        tasks = [run.task for run in runtime.scheduler.active_runs()]
        if tasks:
            await asyncio.wait_for(asyncio.gather(*tasks), timeout)
        await runtime.notifier.drain()
    return _wait


@pytest.fixture
def clock_factory():
    """Build SteppingClock instances: ``clock_factory(start=..., step=...)``"""
    return SteppingClock
