"""
Parcel record model
"""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from mock_agency.state_machine.states import ParcelStatus


class StatusHistoryEntry(BaseModel):
    """One append-only entry of a parcel's status ledger"""

    status: ParcelStatus
    timestamp: datetime
    note: str


class Parcel(BaseModel):
    """
    A parcel handed to the agency.

    ``status`` always equals ``status_history[-1].status``; only the
    transition engine mutates either of them.
    """

    tracking_number: str
    order_id: str
    customer_name: str
    customer_phone: str
    customer_address: str
    wilaya: str
    commune: str
    product_list: list[Any] = Field(default_factory=list)
    price: int | float
    cod_amount: int | float
    status: ParcelStatus
    status_history: list[StatusHistoryEntry]
    webhook_url: str | None = None
    created_at: datetime
    delivered_at: datetime | None = None

    @property
    def last_entry(self) -> StatusHistoryEntry:
        return self.status_history[-1]

    def public_view(self) -> dict[str, Any]:
        """Tracking view returned by GET /parcels/{tracking_number}"""
        return self.model_dump(
            mode="json",
            include={
                "tracking_number",
                "order_id",
                "status",
                "customer_name",
                "customer_address",
                "wilaya",
                "commune",
                "cod_amount",
                "delivered_at",
                "status_history",
            },
        )
