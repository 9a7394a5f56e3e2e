"""
Parcel API Routes

The surface a merchant back-end talks to: create a parcel, track it, push a
manual status update, or let the agency auto-progress it.
"""
from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator

from mock_agency.api.dependencies import get_parcel_service, get_scheduler
from mock_agency.core.logging import get_logger
from mock_agency.domain.services.parcel_service import ParcelService
from mock_agency.domain.services.simulation_service import SimulationScheduler

logger = get_logger(__name__)

router = APIRouter()


def _coerce_to_str(v: Any) -> Any:
    # order_id / phone מגיעים לפעמים כמספר מה-frontend
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(v)
    return v


class ParcelCreate(BaseModel):
    """
    Schema for creating a parcel.

    Required fields are typed optional on purpose: presence is checked by the
    store, which treats empty strings and a zero price as missing.
    """
    order_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_address: Optional[str] = None
    wilaya: Optional[str] = None
    commune: Optional[str] = None
    product_list: Optional[list[Any]] = None
    price: Optional[int | float] = None
    webhook_url: Optional[str] = None

    @field_validator(
        "order_id",
        "customer_name",
        "customer_phone",
        "customer_address",
        "wilaya",
        "commune",
        mode="before",
    )
    @classmethod
    def coerce_text_fields(cls, v: Any) -> Any:
        return _coerce_to_str(v)

    @field_validator("product_list", mode="before")
    @classmethod
    def coerce_product_list(cls, v: Any) -> Any:
        # פריט בודד שנשלח בלי מערך נשמר כרשימה של פריט אחד
        if not v:
            return None
        if not isinstance(v, list):
            return [v]
        return v

    @field_validator("price")
    @classmethod
    def validate_price(cls, v: Optional[int | float]) -> Optional[int | float]:
        if v is not None and v < 0:
            raise ValueError("price must not be negative")
        return v

    @field_validator("webhook_url")
    @classmethod
    def validate_webhook_url(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("webhook_url must be an http(s) URL")
        return v


class StatusUpdate(BaseModel):
    """Manual status update; an unknown or missing status is rejected as invalid"""
    status: Optional[str] = None
    note: Optional[str] = None


class SimulateRequest(BaseModel):
    """Unrecognised speeds and scenarios fall back to the defaults, never a 400"""
    speed: Optional[str] = None
    scenario: Optional[str] = None

    @field_validator("speed", "scenario", mode="before")
    @classmethod
    def drop_non_string(cls, v: Any) -> Optional[str]:
        return v if isinstance(v, str) else None


class ApiResponse(BaseModel):
    """Envelope shared by every parcel endpoint"""
    success: bool
    message: Optional[str] = None
    count: Optional[int] = None
    data: Optional[Any] = None


@router.post(
    "",
    status_code=201,
    response_model=ApiResponse,
    response_model_exclude_none=True,
    summary="Create a parcel",
    description="Registers a COD parcel in pending_pickup and returns its tracking number.",
    responses={
        201: {"description": "Parcel created"},
        400: {"description": "Missing required fields"},
    },
    tags=["Parcels"],
)
async def create_parcel(
    payload: ParcelCreate,
    service: ParcelService = Depends(get_parcel_service),
) -> ApiResponse:
    logger.info("Creating parcel", extra_data={"order_id": payload.order_id})
    parcel = service.create_parcel(payload.model_dump())
    return ApiResponse(
        success=True,
        message="Parcel created successfully",
        data={
            "tracking_number": parcel.tracking_number,
            "status": parcel.status.value,
            "estimated_delivery": service.estimated_delivery,
        },
    )


@router.get(
    "",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    summary="List all parcels",
    description="Admin/debug view of every parcel held by the agency.",
    tags=["Parcels"],
)
async def list_parcels(
    service: ParcelService = Depends(get_parcel_service),
) -> ApiResponse:
    parcels = service.list_parcels()
    return ApiResponse(
        success=True,
        count=len(parcels),
        data=[parcel.model_dump(mode="json") for parcel in parcels],
    )


@router.get(
    "/{tracking_number}",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    summary="Track a parcel",
    responses={404: {"description": "Parcel not found"}},
    tags=["Parcels"],
)
async def get_parcel(
    tracking_number: str,
    service: ParcelService = Depends(get_parcel_service),
) -> ApiResponse:
    parcel = service.get_parcel(tracking_number)
    return ApiResponse(success=True, data=parcel.public_view())


@router.put(
    "/{tracking_number}/status",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    summary="Update parcel status",
    description=(
        "Applies a manual status change. The webhook (if any) is sent in the "
        "background; its outcome never affects this response."
    ),
    responses={
        400: {"description": "Invalid status"},
        404: {"description": "Parcel not found"},
    },
    tags=["Parcels"],
)
async def update_parcel_status(
    tracking_number: str,
    payload: StatusUpdate,
    service: ParcelService = Depends(get_parcel_service),
) -> ApiResponse:
    logger.info(
        "Manual status update",
        extra_data={"tracking_number": tracking_number, "status": payload.status},
    )
    parcel = service.update_status(tracking_number, payload.status, payload.note)
    return ApiResponse(
        success=True,
        message="Status updated successfully",
        data={"tracking_number": tracking_number, "status": parcel.status.value},
    )


@router.post(
    "/{tracking_number}/simulate",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    summary="Auto-simulate the delivery flow",
    description=(
        "Starts a timed run through the default (delivered) or failed scenario. "
        "speed: fast=2s, normal=5s, slow=10s between steps."
    ),
    responses={
        404: {"description": "Parcel not found"},
        409: {"description": "A run is already active and overlap is rejected"},
    },
    tags=["Parcels"],
)
async def simulate_parcel(
    tracking_number: str,
    payload: Optional[SimulateRequest] = None,
    scheduler: SimulationScheduler = Depends(get_scheduler),
) -> ApiResponse:
    payload = payload or SimulateRequest()
    run = scheduler.start(tracking_number, speed=payload.speed, scenario=payload.scenario)
    return ApiResponse(
        success=True,
        message=f"Simulation started for {tracking_number}",
        data={
            "tracking_number": tracking_number,
            "run_id": run.run_id,
            "simulation_speed": run.speed,
            "scenario": run.scenario,
            "estimated_completion": f"{run.estimated_seconds:g} seconds",
        },
    )


@router.delete(
    "/{tracking_number}/simulate",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    summary="Stop running simulations",
    responses={404: {"description": "Parcel not found"}},
    tags=["Parcels"],
)
async def stop_simulation(
    tracking_number: str,
    service: ParcelService = Depends(get_parcel_service),
    scheduler: SimulationScheduler = Depends(get_scheduler),
) -> ApiResponse:
    service.get_parcel(tracking_number)
    stopped = scheduler.stop_parcel(tracking_number)
    return ApiResponse(
        success=True,
        message=f"Stopped {stopped} simulation(s) for {tracking_number}",
        data={"tracking_number": tracking_number, "stopped": stopped},
    )
