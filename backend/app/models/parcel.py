"""
Parcel database model.

A parcel is a shipment booked by a customer and delivered by an agent.
"""

from sqlalchemy import Column, Integer, String, Text, Float, DateTime, ForeignKey, Enum
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.parcel_enums import ParcelStatus, ParcelSize, ParcelType, PaymentMethod


class Parcel(Base):
    """
    Parcel model for the courier platform.

    Status changes go through the lifecycle service; picked_up_at,
    delivered_at and failure_reason are only written by it.
    """
    __tablename__ = "parcels"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Identification (immutable after creation)
    tracking_number = Column(String(40), unique=True, nullable=False, index=True)

    # Parties
    customer_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    agent_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)

    # Geography
    pickup_address = Column(Text, nullable=False)
    pickup_latitude = Column(Float, nullable=True)
    pickup_longitude = Column(Float, nullable=True)
    delivery_address = Column(Text, nullable=False)
    delivery_latitude = Column(Float, nullable=True)
    delivery_longitude = Column(Float, nullable=True)
    current_latitude = Column(Float, nullable=True)
    current_longitude = Column(Float, nullable=True)

    # Attributes
    parcel_size = Column(Enum(ParcelSize), default=ParcelSize.MEDIUM, nullable=False)
    parcel_type = Column(Enum(ParcelType), default=ParcelType.PACKAGE, nullable=False)
    description = Column(Text, nullable=True)
    weight = Column(Float, nullable=True)

    # Payment
    payment_method = Column(Enum(PaymentMethod), default=PaymentMethod.PREPAID, nullable=False)
    cod_amount = Column(Float, nullable=True)
    delivery_charge = Column(Float, default=0, nullable=False)

    # Status
    status = Column(Enum(ParcelStatus), default=ParcelStatus.PENDING, nullable=False, index=True)
    picked_up_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    failure_reason = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Parcel(id={self.id}, tracking='{self.tracking_number}', status='{self.status.value}')>"
