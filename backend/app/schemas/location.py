"""
Location tracking schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class LocationCreate(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: Optional[str] = Field(None, description="Address or location name")
    notes: Optional[str] = Field(None, description="Additional notes")


class LocationResponse(BaseModel):
    id: int
    parcel_id: int
    latitude: float
    longitude: float
    address: Optional[str]
    notes: Optional[str]
    timestamp: datetime

    class Config:
        from_attributes = True
