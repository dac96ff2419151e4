"""
Analytics Schemas.
"""

from pydantic import BaseModel
from typing import Dict, Optional
from datetime import datetime


class DateRange(BaseModel):
    start: Optional[datetime]
    end: Optional[datetime]


class DashboardStats(BaseModel):
    """Admin dashboard figures over an optional creation-date window."""
    total: int
    by_status: Dict[str, int]
    by_payment_method: Dict[str, int]
    total_revenue: float
    total_cod: float
    delivery_rate: str  # percentage, two decimals
    date_range: DateRange
