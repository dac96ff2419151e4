"""
Analytics Service.

Handles data aggregation for the admin dashboard and report exports.
Focused on READ-ONLY operations.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from backend.app.models.parcel import Parcel
from backend.app.models.parcel_enums import ParcelStatus, PaymentMethod
from backend.app.models.user import User
from backend.app.schemas.analytics import DashboardStats, DateRange


class AnalyticsService:

    @staticmethod
    def _apply_window(query, start_date: Optional[datetime], end_date: Optional[datetime]):
        # The window only applies when both ends are given
        if start_date and end_date:
            query = query.where(Parcel.created_at.between(start_date, end_date))
        return query

    @staticmethod
    async def get_dashboard_stats(
        db: AsyncSession,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> DashboardStats:
        """Counts, revenue and delivery rate for parcels created in the window."""
        query = AnalyticsService._apply_window(select(Parcel), start_date, end_date)
        query = query.order_by(Parcel.created_at.asc())
        parcels = (await db.execute(query)).scalars().all()

        total = len(parcels)
        by_status: Dict[str, int] = {}
        by_payment_method: Dict[str, int] = {}
        total_revenue = 0.0
        total_cod = 0.0

        for parcel in parcels:
            by_status[parcel.status.value] = by_status.get(parcel.status.value, 0) + 1
            method = parcel.payment_method.value
            by_payment_method[method] = by_payment_method.get(method, 0) + 1
            total_revenue += parcel.delivery_charge or 0
            if parcel.payment_method == PaymentMethod.COD:
                total_cod += parcel.cod_amount or 0

        delivered = by_status.get(ParcelStatus.DELIVERED.value, 0)
        delivery_rate = (delivered / total) * 100 if total > 0 else 0

        return DashboardStats(
            total=total,
            by_status=by_status,
            by_payment_method=by_payment_method,
            total_revenue=total_revenue,
            total_cod=total_cod,
            delivery_rate=f"{delivery_rate:.2f}",
            date_range=DateRange(
                start=start_date or (parcels[0].created_at if parcels else None),
                end=end_date or datetime.now(timezone.utc),
            ),
        )

    @staticmethod
    async def get_report_rows(
        db: AsyncSession,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Tuple[Parcel, Optional[User], Optional[User]]]:
        """Parcels newest first, each with its customer and agent (if any)."""
        customer = aliased(User)
        agent = aliased(User)

        query = (
            select(Parcel, customer, agent)
            .outerjoin(customer, Parcel.customer_id == customer.id)
            .outerjoin(agent, Parcel.agent_id == agent.id)
        )
        query = AnalyticsService._apply_window(query, start_date, end_date)
        query = query.order_by(Parcel.created_at.desc(), Parcel.id.desc())
        if limit:
            query = query.limit(limit)

        result = await db.execute(query)
        return [tuple(row) for row in result.all()]
