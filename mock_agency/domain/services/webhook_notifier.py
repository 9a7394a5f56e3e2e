"""
Webhook Notifier - fire-and-forget parcel status notifications

Each notification is one POST with a bounded timeout. There is no retry and
no dead-letter queue: a failure is logged and counted, and nothing else
happens. Callers never wait for a delivery and never see its errors.
"""
import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

import httpx

from mock_agency.core.exceptions import WebhookDeliveryError, WebhookTimeoutError
from mock_agency.core.logging import get_logger
from mock_agency.db.models.parcel import Parcel

logger = get_logger(__name__)

EVENT_STATUS_UPDATED = "parcel.status.updated"

PAYLOAD_FIELDS = {
    "tracking_number",
    "order_id",
    "status",
    "cod_amount",
    "delivered_at",
    "status_history",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class WebhookStats:
    """Delivery counters, exposed on /health"""
    sent: int = 0
    failed: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"sent": self.sent, "failed": self.failed}


class WebhookNotifier:
    """Delivers ``parcel.status.updated`` events to a parcel's webhook URL"""

    def __init__(
        self,
        timeout_seconds: float = 5.0,
        max_concurrency: int = 20,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._clock = clock
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._pending: set[asyncio.Task] = set()
        self.stats = WebhookStats()

    def build_payload(self, parcel: Parcel) -> dict[str, Any]:
        """Event body describing the parcel's current state"""
        return {
            "event": EVENT_STATUS_UPDATED,
            "timestamp": self._clock().isoformat().replace("+00:00", "Z"),
            "data": parcel.model_dump(mode="json", include=PAYLOAD_FIELDS),
        }

    def notify(self, url: str, parcel: Parcel) -> asyncio.Task:
        """
        Schedule delivery on the running event loop and return immediately.

        The payload is built now, so it describes the parcel as it was at the
        transition even if the parcel moves on before the request goes out.
        """
        payload = self.build_payload(parcel)
        task = asyncio.get_running_loop().create_task(
            self.deliver(url, payload, parcel.tracking_number)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def deliver(self, url: str, payload: dict[str, Any], tracking_number: str) -> bool:
        """Send one webhook; returns False on any failure instead of raising"""
        async with self._semaphore:
            try:
                await self._post(url, payload)
            except WebhookDeliveryError as e:
                self.stats.failed += 1
                logger.warning(
                    f"Webhook failed for {tracking_number}: {e.message}",
                    extra_data={
                        "tracking_number": tracking_number,
                        "status": payload["data"]["status"],
                        "error_code": e.error_code.value,
                        "details": e.details,
                    },
                )
                return False
            except Exception as e:
                # anything unexpected still must not escape a fire-and-forget task
                self.stats.failed += 1
                logger.error(
                    f"Webhook failed for {tracking_number}: unexpected error",
                    extra_data={"tracking_number": tracking_number, "url": url, "error": str(e)},
                    exc_info=True,
                )
                return False

        self.stats.sent += 1
        logger.info(
            f"Webhook sent to {url} for {tracking_number}",
            extra_data={
                "tracking_number": tracking_number,
                "status": payload["data"]["status"],
                "url": url,
            },
        )
        return True

    async def _post(self, url: str, payload: dict[str, Any]) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self._transport
            ) as client:
                response = await client.post(url, json=payload)
        except httpx.TimeoutException:
            raise WebhookTimeoutError(url, self.timeout_seconds) from None
        except httpx.HTTPError as exc:
            raise WebhookDeliveryError(
                url=url,
                message=f"Webhook request failed: {exc.__class__.__name__}",
                details={"error": str(exc)},
            ) from exc

        if not response.is_success:
            raise WebhookDeliveryError.from_response(url, response)
        return response

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every in-flight delivery (each is bounded by its own timeout)"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
