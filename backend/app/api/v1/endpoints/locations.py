"""
Location Tracking API Endpoints.

Agents append GPS pings; anyone with a parcel id can read the trail.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Path, status
from backend.app.domain.parcels.lifecycle_service import ParcelLifecycleService
from backend.app.models.enums import UserRole
from backend.app.schemas.location import LocationCreate, LocationResponse
from backend.app.core.guards import require_role
from backend.app.services.location_service import LocationService
from backend.app.api.v1.endpoints.parcels import get_lifecycle_service

router = APIRouter(prefix="/location", tags=["Location Tracking"])


def get_location_service(
    lifecycle: ParcelLifecycleService = Depends(get_lifecycle_service)
) -> LocationService:
    return LocationService(lifecycle.db, lifecycle)


@router.post("/{parcel_id}", response_model=LocationResponse, status_code=status.HTTP_201_CREATED)
async def add_location(
    data: LocationCreate,
    parcel_id: int = Path(..., description="Parcel ID"),
    current_user: dict = Depends(require_role([UserRole.DELIVERY_AGENT, UserRole.ADMIN])),
    service: LocationService = Depends(get_location_service)
):
    """
    Record a location ping for a parcel.

    The parcel's current position is moved as well, which is restricted to
    the assigned agent.
    """
    location = await service.add_location(parcel_id, data, acting_user_id=current_user["user_id"])
    return LocationResponse.model_validate(location)


@router.get("/{parcel_id}/history", response_model=List[LocationResponse])
async def location_history(
    parcel_id: int = Path(..., description="Parcel ID"),
    service: LocationService = Depends(get_location_service)
):
    locations = await service.get_history(parcel_id)
    return [LocationResponse.model_validate(loc) for loc in locations]


@router.get("/{parcel_id}/latest", response_model=Optional[LocationResponse])
async def latest_location(
    parcel_id: int = Path(..., description="Parcel ID"),
    service: LocationService = Depends(get_location_service)
):
    location = await service.get_latest(parcel_id)
    return LocationResponse.model_validate(location) if location else None
