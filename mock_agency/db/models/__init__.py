"""
Parcel Models
"""
from mock_agency.db.models.parcel import Parcel, StatusHistoryEntry

__all__ = ["Parcel", "StatusHistoryEntry"]
