"""
Parcel lifecycle state machine

The engine lives in ``mock_agency.state_machine.engine``; it is not imported
here because the parcel model itself depends on ``states``.
"""
from mock_agency.state_machine.states import ParcelStatus, PARCEL_TRANSITIONS, TERMINAL_STATUSES

__all__ = ["ParcelStatus", "PARCEL_TRANSITIONS", "TERMINAL_STATUSES"]
