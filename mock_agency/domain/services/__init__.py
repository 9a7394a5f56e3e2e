"""
Domain Services
"""
from mock_agency.domain.services.parcel_service import ParcelService
from mock_agency.domain.services.simulation_service import SimulationScheduler, SimulationRun
from mock_agency.domain.services.webhook_notifier import WebhookNotifier

__all__ = [
    "ParcelService",
    "SimulationScheduler",
    "SimulationRun",
    "WebhookNotifier",
]
