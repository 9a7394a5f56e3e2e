"""
Agency Runtime - the process-wide components, built once at start-up
"""
from dataclasses import dataclass
from typing import Optional

import httpx

from mock_agency.core.config import Settings, settings as default_settings
from mock_agency.core.logging import get_logger
from mock_agency.db.store import ParcelStore
from mock_agency.domain.services.parcel_service import ParcelService
from mock_agency.domain.services.simulation_service import SimulationScheduler
from mock_agency.domain.services.webhook_notifier import WebhookNotifier
from mock_agency.state_machine.engine import StatusTransitionEngine

logger = get_logger(__name__)


@dataclass
class AgencyRuntime:
    """Handle passed to the API layer instead of module-level globals"""
    store: ParcelStore
    engine: StatusTransitionEngine
    notifier: WebhookNotifier
    service: ParcelService
    scheduler: SimulationScheduler

    async def aclose(self) -> None:
        """Stop simulations first so no new webhooks are queued, then drain"""
        await self.scheduler.shutdown()
        await self.notifier.drain()
        logger.info(
            "Agency runtime closed",
            extra_data={"parcels": len(self.store), "webhooks": self.notifier.stats.to_dict()},
        )


def build_runtime(
    config: Optional[Settings] = None,
    webhook_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AgencyRuntime:
    """Wire store, engine, notifier and scheduler from settings"""
    config = config or default_settings

    store = ParcelStore(
        prefix=config.TRACKING_PREFIX,
        counter_start=config.TRACKING_COUNTER_START,
        default_wilaya=config.DEFAULT_WILAYA,
        default_commune=config.DEFAULT_COMMUNE,
    )
    engine = StatusTransitionEngine(strict=config.STRICT_TRANSITIONS)
    notifier = WebhookNotifier(
        timeout_seconds=config.WEBHOOK_TIMEOUT_SECONDS,
        max_concurrency=config.WEBHOOK_MAX_CONCURRENCY,
        transport=webhook_transport,
    )
    service = ParcelService(
        store,
        engine,
        notifier,
        notify_on_create=config.WEBHOOK_NOTIFY_ON_CREATE,
        estimated_delivery=config.ESTIMATED_DELIVERY,
    )
    scheduler = SimulationScheduler(
        service,
        delays=config.simulation_delays,
        overlap_policy=config.SIMULATION_OVERLAP_POLICY,
    )
    return AgencyRuntime(
        store=store,
        engine=engine,
        notifier=notifier,
        service=service,
        scheduler=scheduler,
    )
