"""
API dependencies - resolve runtime components from the application state
"""
from fastapi import Depends, Request

from mock_agency.domain.services.parcel_service import ParcelService
from mock_agency.domain.services.simulation_service import SimulationScheduler
from mock_agency.runtime import AgencyRuntime


def get_runtime(request: Request) -> AgencyRuntime:
    return request.app.state.runtime


def get_parcel_service(runtime: AgencyRuntime = Depends(get_runtime)) -> ParcelService:
    return runtime.service


def get_scheduler(runtime: AgencyRuntime = Depends(get_runtime)) -> SimulationScheduler:
    return runtime.scheduler
