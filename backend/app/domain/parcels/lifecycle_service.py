"""
Parcel Lifecycle Service (Domain Logic).

Orchestrates booking, agent assignment, status transitions and
current-location updates. Every mutating path follows the same order:

    read -> authorize -> validate -> mutate -> commit -> emit

The commit always happens before the realtime emission, and emission is
fire-and-forget: a lost notification never rolls back persisted state.
No locking is used, so concurrent updates to one parcel are last-write-wins.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import BadRequestError, ParcelStateError, ResourceNotFoundError
from backend.app.core.guards import ParcelAccessGuard, parcel_access_guard
from backend.app.domain.parcels.status_machine import UNASSIGNABLE_STATUSES, validate_transition
from backend.app.domain.parcels.tracking_number import generate_tracking_number
from backend.app.models.enums import UserRole
from backend.app.models.parcel import Parcel
from backend.app.models.parcel_enums import ParcelStatus, PaymentMethod
from backend.app.models.user import User
from backend.app.schemas.parcel import ParcelCreate, ParcelUpdate, ParcelResponse
from backend.app.services.realtime import ParcelEventPublisher, parcel_events

logger = logging.getLogger("courier.parcels")


def serialize_parcel(parcel: Parcel) -> Dict[str, Any]:
    """Parcel as a JSON-ready dict (realtime payloads)."""
    return ParcelResponse.model_validate(parcel).model_dump(mode="json")


class ParcelLifecycleService:

    def __init__(
        self,
        db: AsyncSession,
        events: ParcelEventPublisher = parcel_events,
        guard: ParcelAccessGuard = parcel_access_guard,
    ):
        self.db = db
        self.events = events
        self.guard = guard

    # --- Reads ---

    async def get_parcel(self, parcel_id: int) -> Parcel:
        result = await self.db.execute(select(Parcel).where(Parcel.id == parcel_id))
        parcel = result.scalar_one_or_none()

        if not parcel:
            raise ResourceNotFoundError("Parcel", parcel_id)

        return parcel

    async def get_by_tracking_number(self, tracking_number: str) -> Parcel:
        result = await self.db.execute(
            select(Parcel).where(Parcel.tracking_number == tracking_number.upper())
        )
        parcel = result.scalar_one_or_none()

        if not parcel:
            raise ResourceNotFoundError("Parcel", tracking_number, field="tracking number")

        return parcel

    async def list_parcels(
        self,
        status: Optional[ParcelStatus] = None,
        customer_id: Optional[int] = None,
        agent_id: Optional[int] = None,
    ) -> List[Parcel]:
        """List parcels newest first, optionally filtered."""
        query = select(Parcel)

        if status:
            query = query.where(Parcel.status == status)
        if customer_id:
            query = query.where(Parcel.customer_id == customer_id)
        if agent_id:
            query = query.where(Parcel.agent_id == agent_id)

        query = query.order_by(Parcel.created_at.desc(), Parcel.id.desc())
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_stats(self) -> Dict[str, Any]:
        """Totals by status and the sum of COD amounts."""
        by_status = {s.value: 0 for s in ParcelStatus}

        rows = await self.db.execute(
            select(Parcel.status, func.count(Parcel.id)).group_by(Parcel.status)
        )
        for status, count in rows.all():
            by_status[status.value] = count

        total_cod = (await self.db.execute(
            select(func.sum(Parcel.cod_amount)).where(Parcel.payment_method == PaymentMethod.COD)
        )).scalar() or 0.0

        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "total_cod": float(total_cod),
        }

    # --- Mutations ---

    async def _commit(self, parcel: Parcel) -> Parcel:
        await self.db.commit()
        await self.db.refresh(parcel)
        return parcel

    async def create(self, customer_id: int, booking: ParcelCreate) -> Parcel:
        """
        Book a parcel for a customer.

        Raises:
            BadRequestError: payment method is COD and no amount was given
                (an amount of 0 is accepted)
        """
        if booking.payment_method == PaymentMethod.COD and booking.cod_amount is None:
            raise BadRequestError("COD amount is required for Cash on Delivery")

        parcel = Parcel(
            **booking.model_dump(),
            tracking_number=generate_tracking_number(),
            customer_id=customer_id,
            status=ParcelStatus.PENDING,
        )

        self.db.add(parcel)
        await self._commit(parcel)
        logger.info("Parcel %s booked by customer %s", parcel.tracking_number, customer_id)

        self.events.emit_new_parcel(serialize_parcel(parcel))
        return parcel

    async def update_details(self, parcel_id: int, changes: ParcelUpdate) -> Parcel:
        """
        Admin free-form edit. No transition check; status, tracking number
        and lifecycle timestamps are not part of ParcelUpdate.
        """
        parcel = await self.get_parcel(parcel_id)

        update_data = changes.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            setattr(parcel, field, value)

        if parcel.payment_method == PaymentMethod.COD and parcel.cod_amount is None:
            await self.db.rollback()
            raise BadRequestError("COD amount is required for Cash on Delivery")

        return await self._commit(parcel)

    async def assign_agent(self, parcel_id: int, agent_id: int) -> Parcel:
        """
        Assign (or re-assign) a delivery agent.

        Any prior agent is overwritten.

        Raises:
            ParcelStateError: parcel is delivered or failed
            ResourceNotFoundError: no user with agent_id
        """
        parcel = await self.get_parcel(parcel_id)

        if parcel.status in UNASSIGNABLE_STATUSES:
            raise ParcelStateError(
                f"Cannot assign agent to {parcel.status.value} parcel",
                details={"parcel_id": parcel.id, "status": parcel.status.value}
            )

        # Existence only (the column is a foreign key); role and active flag are not checked
        agent = await self.db.get(User, agent_id)
        if not agent:
            raise ResourceNotFoundError("User", agent_id)

        parcel.agent_id = agent_id
        await self._commit(parcel)
        logger.info("Parcel %s assigned to agent %s", parcel.id, agent_id)

        agent_data = {"id": agent.id, "name": agent.name, "phone": agent.phone}
        parcel_data = serialize_parcel(parcel)
        self.events.emit_agent_assigned(parcel.id, agent_data, parcel_data)
        self.events.emit_status_update(parcel.id, parcel.status.value, parcel_data)
        return parcel

    async def update_status(
        self,
        parcel_id: int,
        new_status: ParcelStatus,
        acting_user_id: int,
        acting_role: UserRole,
        failure_reason: Optional[str] = None,
    ) -> Parcel:
        """
        Move a parcel along the delivery workflow.

        Authorization is checked before the transition, so an agent acting on
        someone else's parcel gets Forbidden even for an invalid transition.

        Raises:
            ResourceNotFoundError: parcel does not exist
            InsufficientPermissionsError: agent not assigned, or customer caller
            InvalidTransitionError: (current, new_status) not in the table
        """
        parcel = await self.get_parcel(parcel_id)

        self.guard.enforce_status_change(parcel, acting_user_id, acting_role)
        previous = parcel.status
        validate_transition(previous, new_status)

        now = datetime.now(timezone.utc)
        parcel.status = new_status
        if new_status == ParcelStatus.PICKED_UP:
            parcel.picked_up_at = now
        elif new_status == ParcelStatus.DELIVERED:
            parcel.delivered_at = now
        elif new_status == ParcelStatus.FAILED:
            parcel.failure_reason = failure_reason or settings.default_failure_reason

        await self._commit(parcel)
        logger.info(
            "Parcel %s status %s -> %s by user %s",
            parcel.id, previous.value, new_status.value, acting_user_id
        )

        self.events.emit_status_update(parcel.id, parcel.status.value, serialize_parcel(parcel))
        return parcel

    async def update_current_location(
        self,
        parcel_id: int,
        latitude: float,
        longitude: float,
        acting_user_id: int,
    ) -> Parcel:
        """
        Overwrite the parcel's current position. Only the assigned agent may
        call this; history rows are written separately by the location service.
        """
        parcel = await self.get_parcel(parcel_id)

        self.guard.enforce_assigned_agent(parcel, acting_user_id, "update location of")

        parcel.current_latitude = latitude
        parcel.current_longitude = longitude
        await self._commit(parcel)

        self.events.emit_location_update(parcel.id, parcel.current_latitude, parcel.current_longitude)
        return parcel

    async def remove(self, parcel_id: int) -> None:
        """Admin delete. Unconditional; location history goes with it."""
        parcel = await self.get_parcel(parcel_id)
        await self.db.delete(parcel)
        await self.db.commit()
        logger.info("Parcel %s deleted", parcel_id)
