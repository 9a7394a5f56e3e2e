"""
In-memory Parcel Store

The agency keeps no database: parcels live for as long as the process does.
One store is built at start-up and handed to every component that needs it.
"""
import itertools
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from mock_agency.core.exceptions import ParcelNotFoundError, ValidationException
from mock_agency.core.logging import get_logger
from mock_agency.db.models.parcel import Parcel, StatusHistoryEntry
from mock_agency.state_machine.states import INITIAL_STATUS

logger = get_logger(__name__)

REQUIRED_FIELDS = (
    "order_id",
    "customer_name",
    "customer_phone",
    "customer_address",
    "price",
)

CREATION_NOTE = "Parcel created and awaiting pickup"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def missing_required_fields(fields: Mapping[str, Any]) -> list[str]:
    """Required creation fields that are absent or empty (``0`` price counts as empty)"""
    missing = []
    for name in REQUIRED_FIELDS:
        value = fields.get(name)
        if isinstance(value, str):
            value = value.strip()
        if not value:
            missing.append(name)
    return missing


class ParcelStore:
    """
    Keyed repository of parcel records.

    ``get`` and ``list`` hand out copies; a caller that changes a parcel
    must ``put`` it back. Tracking numbers come from a counter that is never
    reset, so an identifier is never handed out twice.
    """

    def __init__(
        self,
        prefix: str = "YDN",
        counter_start: int = 1000,
        default_wilaya: str = "Tlemcen",
        default_commune: str = "Tlemcen",
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.prefix = prefix
        self.default_wilaya = default_wilaya
        self.default_commune = default_commune
        self._clock = clock
        self._counter = itertools.count(counter_start)
        self._parcels: dict[str, Parcel] = {}
        self._lock = threading.Lock()

    def _next_tracking_number(self) -> str:
        return f"{self.prefix}{next(self._counter)}"

    def create(self, fields: Mapping[str, Any]) -> str:
        """
        Build and store a new parcel in PENDING_PICKUP.

        Raises:
            ValidationException: a required field is missing; nothing is stored
        """
        missing = missing_required_fields(fields)
        if missing:
            raise ValidationException(
                "Missing required fields",
                details={"missing_fields": missing},
            )

        now = self._clock()
        with self._lock:
            tracking_number = self._next_tracking_number()
            parcel = Parcel(
                tracking_number=tracking_number,
                order_id=str(fields["order_id"]),
                customer_name=fields["customer_name"],
                customer_phone=str(fields["customer_phone"]),
                customer_address=fields["customer_address"],
                wilaya=fields.get("wilaya") or self.default_wilaya,
                commune=fields.get("commune") or self.default_commune,
                product_list=list(fields.get("product_list") or []),
                price=fields["price"],
                cod_amount=fields["price"],
                status=INITIAL_STATUS,
                status_history=[
                    StatusHistoryEntry(status=INITIAL_STATUS, timestamp=now, note=CREATION_NOTE)
                ],
                webhook_url=fields.get("webhook_url") or None,
                created_at=now,
            )
            self._parcels[tracking_number] = parcel

        logger.info(
            "Parcel created",
            extra_data={"tracking_number": tracking_number, "order_id": parcel.order_id},
        )
        return tracking_number

    def get(self, tracking_number: str) -> Parcel | None:
        with self._lock:
            parcel = self._parcels.get(tracking_number)
            return parcel.model_copy(deep=True) if parcel else None

    def require(self, tracking_number: str) -> Parcel:
        """Like ``get`` but raises ParcelNotFoundError for unknown tracking numbers"""
        parcel = self.get(tracking_number)
        if parcel is None:
            raise ParcelNotFoundError(tracking_number)
        return parcel

    def list(self) -> list[Parcel]:
        """Snapshot of all parcels in creation order"""
        with self._lock:
            return [parcel.model_copy(deep=True) for parcel in self._parcels.values()]

    def put(self, parcel: Parcel) -> None:
        """Replace the stored record for ``parcel.tracking_number``"""
        if parcel.status != parcel.last_entry.status:
            raise ValueError(
                f"Parcel {parcel.tracking_number} status '{parcel.status.value}' "
                f"does not match its last history entry '{parcel.last_entry.status.value}'"
            )
        with self._lock:
            if parcel.tracking_number not in self._parcels:
                raise ParcelNotFoundError(parcel.tracking_number)
            self._parcels[parcel.tracking_number] = parcel.model_copy(deep=True)

    def __len__(self) -> int:
        with self._lock:
            return len(self._parcels)

    def __contains__(self, tracking_number: object) -> bool:
        with self._lock:
            return tracking_number in self._parcels
