"""
Analytics API Endpoints.

Read-only dashboard figures and parcel report exports (Admin only).
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.config import settings
from backend.app.core.exceptions import BadRequestError
from backend.app.core.guards import require_admin
from backend.app.services.analytics import AnalyticsService
from backend.app.services.reports import render_csv, render_pdf, report_filename
from backend.app.schemas.analytics import DashboardStats

router = APIRouter(prefix="/analytics", tags=["Admin - Analytics"])
logger = logging.getLogger("courier.analytics")


def _attachment(filename: str) -> dict:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


@router.get("/dashboard", response_model=DashboardStats)
async def get_dashboard(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Dashboard figures, windowed on creation date when both ends are given."""
    return await AnalyticsService.get_dashboard_stats(db, start_date, end_date)


@router.get("/export/csv")
async def export_csv(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Every parcel in the window as CSV, newest first."""
    rows = await AnalyticsService.get_report_rows(db, start_date, end_date)

    try:
        content = render_csv(rows)
    except (ValueError, TypeError) as e:
        logger.exception("CSV export failed")
        raise BadRequestError("Failed to generate CSV report", details={"error": str(e)})

    return Response(
        content=content,
        media_type="text/csv",
        headers=_attachment(report_filename("csv"))
    )


@router.get("/export/pdf")
async def export_pdf(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Summary statistics plus the most recent parcels as a PDF."""
    stats = await AnalyticsService.get_dashboard_stats(db, start_date, end_date)
    rows = await AnalyticsService.get_report_rows(
        db, start_date, end_date, limit=settings.report_row_limit
    )

    try:
        content = render_pdf(stats, rows)
    except (ValueError, TypeError, RuntimeError) as e:
        logger.exception("PDF export failed")
        raise BadRequestError("Failed to generate PDF report", details={"error": str(e)})

    return Response(
        content=content,
        media_type="application/pdf",
        headers=_attachment(report_filename("pdf"))
    )
