"""
Location Service.

Appends GPS pings to a parcel's history and serves the trail back.
"""

from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.domain.parcels.lifecycle_service import ParcelLifecycleService
from backend.app.models.location import Location
from backend.app.schemas.location import LocationCreate


class LocationService:

    def __init__(self, db: AsyncSession, lifecycle: ParcelLifecycleService):
        self.db = db
        self.lifecycle = lifecycle

    async def add_location(
        self,
        parcel_id: int,
        data: LocationCreate,
        acting_user_id: int,
    ) -> Location:
        """
        Record a ping and move the parcel's current position.

        Only the assigned agent can record a ping; an admin who is not the
        assignee is rejected as well. The history row is staged before the
        current-position update so both land in the same commit, ahead of
        the locationUpdate event.
        """
        parcel = await self.lifecycle.get_parcel(parcel_id)
        self.lifecycle.guard.enforce_assigned_agent(parcel, acting_user_id, "update location for")

        location = Location(parcel_id=parcel_id, **data.model_dump())
        self.db.add(location)

        await self.lifecycle.update_current_location(
            parcel_id, data.latitude, data.longitude, acting_user_id
        )

        await self.db.refresh(location)
        return location

    async def get_history(self, parcel_id: int) -> List[Location]:
        """Full trail, newest first. 404 if the parcel does not exist."""
        await self.lifecycle.get_parcel(parcel_id)

        result = await self.db.execute(
            select(Location)
            .where(Location.parcel_id == parcel_id)
            .order_by(Location.timestamp.desc(), Location.id.desc())
        )
        return list(result.scalars().all())

    async def get_latest(self, parcel_id: int) -> Optional[Location]:
        await self.lifecycle.get_parcel(parcel_id)

        result = await self.db.execute(
            select(Location)
            .where(Location.parcel_id == parcel_id)
            .order_by(Location.timestamp.desc(), Location.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()
