"""
Status Transition Engine - validates and applies parcel status changes
"""
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from mock_agency.core.exceptions import InvalidStatusError, InvalidStateTransitionError
from mock_agency.core.logging import get_logger
from mock_agency.db.models.parcel import Parcel, StatusHistoryEntry
from mock_agency.state_machine.states import ParcelStatus, PARCEL_TRANSITIONS

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StatusTransitionEngine:
    """
    Applies a status change to a parcel and appends it to the history ledger.

    Pure in-memory work: persisting the parcel and sending the webhook are
    left to the caller. By default any known status is accepted from any
    current status; ``strict=True`` enforces PARCEL_TRANSITIONS instead.
    """

    def __init__(self, strict: bool = False, clock: Callable[[], datetime] = _utcnow):
        self.strict = strict
        self._clock = clock

    @staticmethod
    def parse_status(value: Any, tracking_number: Optional[str] = None) -> ParcelStatus:
        """Coerce a raw value into a ParcelStatus or raise InvalidStatusError"""
        if isinstance(value, ParcelStatus):
            return value
        try:
            return ParcelStatus(value)
        except ValueError:
            raise InvalidStatusError(value, tracking_number=tracking_number) from None

    def is_valid_transition(self, current: ParcelStatus, target: ParcelStatus) -> bool:
        if not self.strict:
            return True
        return target in PARCEL_TRANSITIONS.get(current, [])

    def apply(self, parcel: Parcel, new_status: Any, note: Optional[str] = None) -> Parcel:
        """
        Move ``parcel`` to ``new_status``.

        The parcel is left untouched when validation fails.

        Raises:
            InvalidStatusError: ``new_status`` is not a ParcelStatus value
            InvalidStateTransitionError: strict mode and the move is not allowed
        """
        target = self.parse_status(new_status, parcel.tracking_number)
        current = parcel.status

        if not self.is_valid_transition(current, target):
            logger.warning(
                "Invalid status transition attempted",
                extra_data={
                    "tracking_number": parcel.tracking_number,
                    "current_status": current.value,
                    "target_status": target.value,
                }
            )
            raise InvalidStateTransitionError(
                current.value, target.value, tracking_number=parcel.tracking_number
            )

        # history must stay chronological even if the clock steps backwards
        now = max(self._clock(), parcel.last_entry.timestamp)

        parcel.status_history.append(
            StatusHistoryEntry(
                status=target,
                timestamp=now,
                note=note or f"Status updated to {target.value}",
            )
        )
        parcel.status = target

        if target == ParcelStatus.DELIVERED and parcel.delivered_at is None:
            parcel.delivered_at = now

        logger.info(
            "Parcel status updated",
            extra_data={
                "tracking_number": parcel.tracking_number,
                "old_status": current.value,
                "new_status": target.value,
            }
        )
        return parcel

    @staticmethod
    def notification_due(parcel: Parcel) -> bool:
        """A webhook is sent after a transition only when the parcel carries a URL"""
        return bool(parcel.webhook_url)
