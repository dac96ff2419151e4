"""
Parcel API Endpoints.

Booking, listing, tracking and the delivery workflow. Authorization for
single-parcel operations is delegated to the parcel access guard; the
lifecycle service owns every state change.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Path, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.db.session import get_db
from backend.app.domain.parcels.lifecycle_service import ParcelLifecycleService
from backend.app.models.enums import UserRole
from backend.app.models.parcel_enums import ParcelStatus
from backend.app.schemas.parcel import (
    ParcelCreate,
    ParcelUpdate,
    ParcelResponse,
    ParcelStats,
    AssignAgentRequest,
    StatusUpdateRequest,
    CurrentLocationUpdate,
)
from backend.app.core.guards import require_role, require_admin
from backend.app.core.dependencies import get_current_user
from backend.app.services.audit import log_actor_event, AuditAction
from backend.app.services.realtime import ParcelEventPublisher, get_parcel_events

router = APIRouter(prefix="/parcels", tags=["Parcels"])


def get_lifecycle_service(
    db: AsyncSession = Depends(get_db),
    events: ParcelEventPublisher = Depends(get_parcel_events)
) -> ParcelLifecycleService:
    return ParcelLifecycleService(db, events=events)


@router.post("", response_model=ParcelResponse, status_code=status.HTTP_201_CREATED)
async def book_parcel(
    booking: ParcelCreate,
    current_user: dict = Depends(require_role([UserRole.CUSTOMER])),
    service: ParcelLifecycleService = Depends(get_lifecycle_service)
):
    """
    Book a new parcel (Customer only).

    Validates:
    - COD bookings carry a cod_amount (0 allowed)
    """
    parcel = await service.create(current_user["user_id"], booking)

    await log_actor_event(
        service.db,
        current_user,
        AuditAction.PARCEL_CREATED,
        metadata={"parcel_id": parcel.id, "tracking_number": parcel.tracking_number}
    )

    return ParcelResponse.model_validate(parcel)


@router.get("", response_model=List[ParcelResponse])
async def list_parcels(
    status_filter: Optional[ParcelStatus] = Query(None, alias="status", description="Filter by status"),
    current_user: dict = Depends(get_current_user),
    service: ParcelLifecycleService = Depends(get_lifecycle_service)
):
    """
    List parcels visible to the caller, newest first.

    Admins see everything, agents their assignments, customers their bookings.
    """
    filters = service.guard.filter_by_ownership(current_user)
    parcels = await service.list_parcels(status=status_filter, **filters)
    return [ParcelResponse.model_validate(p) for p in parcels]


@router.get("/stats", response_model=ParcelStats)
async def parcel_stats(
    current_user: dict = Depends(require_admin),
    service: ParcelLifecycleService = Depends(get_lifecycle_service)
):
    """Parcel counters for the admin dashboard."""
    return ParcelStats(**await service.get_stats())


@router.get("/my-bookings", response_model=List[ParcelResponse])
async def my_bookings(
    current_user: dict = Depends(require_role([UserRole.CUSTOMER])),
    service: ParcelLifecycleService = Depends(get_lifecycle_service)
):
    parcels = await service.list_parcels(customer_id=current_user["user_id"])
    return [ParcelResponse.model_validate(p) for p in parcels]


@router.get("/assigned", response_model=List[ParcelResponse])
async def assigned_parcels(
    current_user: dict = Depends(require_role([UserRole.DELIVERY_AGENT])),
    service: ParcelLifecycleService = Depends(get_lifecycle_service)
):
    parcels = await service.list_parcels(agent_id=current_user["user_id"])
    return [ParcelResponse.model_validate(p) for p in parcels]


@router.get("/track/{tracking_number}", response_model=ParcelResponse)
async def track_parcel(
    tracking_number: str = Path(..., description="Tracking number (case-insensitive)"),
    service: ParcelLifecycleService = Depends(get_lifecycle_service)
):
    """Public tracking lookup. No authentication required."""
    parcel = await service.get_by_tracking_number(tracking_number)
    return ParcelResponse.model_validate(parcel)


@router.get("/{parcel_id}", response_model=ParcelResponse)
async def get_parcel(
    parcel_id: int = Path(..., description="Parcel ID"),
    current_user: dict = Depends(get_current_user),
    service: ParcelLifecycleService = Depends(get_lifecycle_service)
):
    """
    Get a single parcel.

    404 if it does not exist, 403 if it exists but is not the caller's.
    """
    parcel = await service.get_parcel(parcel_id)
    service.guard.enforce_read(parcel, current_user)
    return ParcelResponse.model_validate(parcel)


@router.patch("/{parcel_id}", response_model=ParcelResponse)
async def update_parcel(
    changes: ParcelUpdate,
    parcel_id: int = Path(..., description="Parcel ID"),
    current_user: dict = Depends(require_admin),
    service: ParcelLifecycleService = Depends(get_lifecycle_service)
):
    """Admin free-form edit of booking details (no status change)."""
    parcel = await service.update_details(parcel_id, changes)

    await log_actor_event(
        service.db,
        current_user,
        AuditAction.PARCEL_UPDATED,
        metadata={"parcel_id": parcel.id, "fields": sorted(changes.model_dump(exclude_unset=True))}
    )

    return ParcelResponse.model_validate(parcel)


@router.patch("/{parcel_id}/assign", response_model=ParcelResponse)
async def assign_agent(
    request: AssignAgentRequest,
    parcel_id: int = Path(..., description="Parcel ID"),
    current_user: dict = Depends(require_admin),
    service: ParcelLifecycleService = Depends(get_lifecycle_service)
):
    """
    Assign a delivery agent (Admin only).

    Validates:
    - Parcel exists and is not delivered or failed
    - Agent user exists
    """
    parcel = await service.assign_agent(parcel_id, request.agent_id)

    await log_actor_event(
        service.db,
        current_user,
        AuditAction.AGENT_ASSIGNED,
        target_user_id=request.agent_id,
        metadata={"parcel_id": parcel.id}
    )

    return ParcelResponse.model_validate(parcel)


@router.patch("/{parcel_id}/status", response_model=ParcelResponse)
async def update_status(
    request: StatusUpdateRequest,
    parcel_id: int = Path(..., description="Parcel ID"),
    current_user: dict = Depends(require_role([UserRole.DELIVERY_AGENT, UserRole.ADMIN])),
    service: ParcelLifecycleService = Depends(get_lifecycle_service)
):
    """
    Move a parcel through the delivery workflow.

    Validates:
    - Agents only act on parcels assigned to them (403)
    - The transition is allowed (400 with from_status/to_status)
    """
    previous = (await service.get_parcel(parcel_id)).status

    parcel = await service.update_status(
        parcel_id,
        request.status,
        acting_user_id=current_user["user_id"],
        acting_role=current_user["role"],
        failure_reason=request.failure_reason
    )

    await log_actor_event(
        service.db,
        current_user,
        AuditAction.STATUS_CHANGED,
        metadata={
            "parcel_id": parcel.id,
            "from_status": previous.value,
            "to_status": parcel.status.value
        }
    )

    return ParcelResponse.model_validate(parcel)


@router.patch("/{parcel_id}/location", response_model=ParcelResponse)
async def update_current_location(
    request: CurrentLocationUpdate,
    parcel_id: int = Path(..., description="Parcel ID"),
    current_user: dict = Depends(require_role([UserRole.DELIVERY_AGENT])),
    service: ParcelLifecycleService = Depends(get_lifecycle_service)
):
    """Overwrite the parcel's current position (assigned agent only)."""
    parcel = await service.update_current_location(
        parcel_id,
        request.latitude,
        request.longitude,
        acting_user_id=current_user["user_id"]
    )
    return ParcelResponse.model_validate(parcel)


@router.delete("/{parcel_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_parcel(
    parcel_id: int = Path(..., description="Parcel ID"),
    current_user: dict = Depends(require_admin),
    service: ParcelLifecycleService = Depends(get_lifecycle_service)
):
    """Delete a parcel and its location history (Admin only)."""
    await service.remove(parcel_id)

    await log_actor_event(
        service.db,
        current_user,
        AuditAction.PARCEL_DELETED,
        metadata={"parcel_id": parcel_id}
    )

    return Response(status_code=status.HTTP_204_NO_CONTENT)
