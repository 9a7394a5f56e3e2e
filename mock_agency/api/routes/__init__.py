"""
API Routes
"""
from fastapi import APIRouter

from mock_agency.api.routes.parcels import router as parcels_router

router = APIRouter()

router.include_router(parcels_router, prefix="/v1/parcels")
