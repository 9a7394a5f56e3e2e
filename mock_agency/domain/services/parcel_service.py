"""
Parcel Service - Handles parcel creation, tracking and status updates
"""
from typing import Any, List, Mapping, Optional

from mock_agency.db.models.parcel import Parcel
from mock_agency.db.store import ParcelStore
from mock_agency.domain.services.webhook_notifier import WebhookNotifier
from mock_agency.state_machine.engine import StatusTransitionEngine
from mock_agency.core.logging import get_logger

logger = get_logger(__name__)


class ParcelService:
    """
    Ties the store, the transition engine and the notifier together.

    Every method is synchronous and must run on the event loop thread: a
    read-modify-write of one parcel is then never interleaved with another
    request or simulation tick. Webhooks are scheduled, never awaited.
    """

    def __init__(
        self,
        store: ParcelStore,
        engine: StatusTransitionEngine,
        notifier: WebhookNotifier,
        notify_on_create: bool = True,
        estimated_delivery: str = "2-3 business days",
    ):
        self.store = store
        self.engine = engine
        self.notifier = notifier
        self.notify_on_create = notify_on_create
        self.estimated_delivery = estimated_delivery

    def create_parcel(self, fields: Mapping[str, Any]) -> Parcel:
        """Create a parcel and send the initial pending_pickup webhook"""
        tracking_number = self.store.create(fields)
        parcel = self.store.require(tracking_number)

        if self.notify_on_create and self.engine.notification_due(parcel):
            self.notifier.notify(parcel.webhook_url, parcel)

        return parcel

    def get_parcel(self, tracking_number: str) -> Parcel:
        return self.store.require(tracking_number)

    def list_parcels(self) -> List[Parcel]:
        return self.store.list()

    def update_status(
        self,
        tracking_number: str,
        status: Any,
        note: Optional[str] = None
    ) -> Parcel:
        """
        Apply a status transition, persist it and notify the parcel's webhook.

        The transition is committed before the webhook is scheduled, so a
        failing webhook can never undo or fail the update.
        """
        parcel = self.store.require(tracking_number)
        self.engine.apply(parcel, status, note)
        self.store.put(parcel)

        if self.engine.notification_due(parcel):
            self.notifier.notify(parcel.webhook_url, parcel)

        return parcel
