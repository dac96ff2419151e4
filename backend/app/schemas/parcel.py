"""
Parcel Pydantic schemas.

Defines request and response models for parcel booking and lifecycle.
"""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, List, Dict
from backend.app.models.parcel_enums import ParcelStatus, ParcelSize, ParcelType, PaymentMethod


class ParcelCreate(BaseModel):
    """Schema for booking a new parcel (customer)."""
    pickup_address: str = Field(..., min_length=1, description="Pickup address")
    pickup_latitude: Optional[float] = Field(None, ge=-90, le=90)
    pickup_longitude: Optional[float] = Field(None, ge=-180, le=180)
    delivery_address: str = Field(..., min_length=1, description="Delivery address")
    delivery_latitude: Optional[float] = Field(None, ge=-90, le=90)
    delivery_longitude: Optional[float] = Field(None, ge=-180, le=180)
    parcel_size: ParcelSize = Field(default=ParcelSize.MEDIUM)
    parcel_type: ParcelType = Field(default=ParcelType.PACKAGE)
    description: Optional[str] = None
    weight: Optional[float] = Field(None, ge=0, description="Weight in kilograms")
    payment_method: PaymentMethod = Field(default=PaymentMethod.PREPAID)
    cod_amount: Optional[float] = Field(None, ge=0, description="Required when payment_method is cod")
    delivery_charge: float = Field(default=0, ge=0)


class ParcelUpdate(BaseModel):
    """Schema for admin free-form edits. Status and tracking number are not editable here."""
    pickup_address: Optional[str] = Field(None, min_length=1)
    pickup_latitude: Optional[float] = Field(None, ge=-90, le=90)
    pickup_longitude: Optional[float] = Field(None, ge=-180, le=180)
    delivery_address: Optional[str] = Field(None, min_length=1)
    delivery_latitude: Optional[float] = Field(None, ge=-90, le=90)
    delivery_longitude: Optional[float] = Field(None, ge=-180, le=180)
    parcel_size: Optional[ParcelSize] = None
    parcel_type: Optional[ParcelType] = None
    description: Optional[str] = None
    weight: Optional[float] = Field(None, ge=0)
    payment_method: Optional[PaymentMethod] = None
    cod_amount: Optional[float] = Field(None, ge=0)
    delivery_charge: Optional[float] = Field(None, ge=0)

    @field_validator(
        "pickup_address", "delivery_address", "parcel_size", "parcel_type",
        "payment_method", "delivery_charge"
    )
    @classmethod
    def reject_null(cls, v):
        # Omit the field to leave it unchanged; these columns cannot be cleared
        if v is None:
            raise ValueError("Field cannot be null")
        return v


class AssignAgentRequest(BaseModel):
    agent_id: int = Field(..., description="ID of the delivery agent to assign")


class StatusUpdateRequest(BaseModel):
    status: ParcelStatus
    failure_reason: Optional[str] = Field(None, description="Reason for failure (used when status is failed)")


class CurrentLocationUpdate(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class ParcelResponse(BaseModel):
    """Schema for parcel response."""
    id: int
    tracking_number: str
    customer_id: int
    agent_id: Optional[int]
    pickup_address: str
    pickup_latitude: Optional[float]
    pickup_longitude: Optional[float]
    delivery_address: str
    delivery_latitude: Optional[float]
    delivery_longitude: Optional[float]
    current_latitude: Optional[float]
    current_longitude: Optional[float]
    parcel_size: ParcelSize
    parcel_type: ParcelType
    description: Optional[str]
    weight: Optional[float]
    payment_method: PaymentMethod
    cod_amount: Optional[float]
    delivery_charge: float
    status: ParcelStatus
    picked_up_at: Optional[datetime]
    delivered_at: Optional[datetime]
    failure_reason: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ParcelStats(BaseModel):
    """Schema for the admin parcel counters."""
    total: int
    by_status: Dict[str, int]
    total_cod: float
