"""
Parcel Status Definitions
"""
from enum import Enum


class ParcelStatus(str, Enum):
    """Delivery agency parcel statuses (values are the public taxonomy)"""

    PENDING_PICKUP = "pending_pickup"  # Waiting for the agency to collect
    COLLECTED = "collected"  # Agency picked up the package
    IN_TRANSIT = "in_transit"  # Moving between hubs
    OUT_FOR_DELIVERY = "out_for_delivery"  # Courier is on the way
    DELIVERED = "delivered"  # Customer received the parcel and paid
    FAILED_DELIVERY = "failed_delivery"  # Customer refused or was unavailable
    RETURNED = "returned"  # Parcel sent back to the seller
    COMPLETED = "completed"  # COD amount settled with the seller
    CANCELLED = "cancelled"

    @classmethod
    def values(cls) -> list[str]:
        return [status.value for status in cls]


INITIAL_STATUS = ParcelStatus.PENDING_PICKUP

# Transition table, only enforced when STRICT_TRANSITIONS is on
PARCEL_TRANSITIONS = {
    ParcelStatus.PENDING_PICKUP: [ParcelStatus.COLLECTED, ParcelStatus.CANCELLED],
    ParcelStatus.COLLECTED: [ParcelStatus.IN_TRANSIT, ParcelStatus.CANCELLED],
    ParcelStatus.IN_TRANSIT: [ParcelStatus.OUT_FOR_DELIVERY, ParcelStatus.RETURNED],
    ParcelStatus.OUT_FOR_DELIVERY: [ParcelStatus.DELIVERED, ParcelStatus.FAILED_DELIVERY],
    ParcelStatus.DELIVERED: [ParcelStatus.COMPLETED],
    # ניסיון מסירה חוזר או החזרה לשולח
    ParcelStatus.FAILED_DELIVERY: [ParcelStatus.OUT_FOR_DELIVERY, ParcelStatus.RETURNED],
    ParcelStatus.RETURNED: [],
    ParcelStatus.COMPLETED: [],
    ParcelStatus.CANCELLED: [],
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in PARCEL_TRANSITIONS.items() if not targets
)
