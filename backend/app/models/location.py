"""
Location database model.

Stores the GPS breadcrumb trail of a parcel in transit.
"""

from sqlalchemy import Column, Integer, Float, Text, ForeignKey, DateTime
from sqlalchemy.sql import func
from backend.app.db.session import Base


class Location(Base):
    """
    Location history entry.

    Append-only: one row per GPS ping, never updated or deleted on its own.
    Rows go away with their parcel.
    """
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    parcel_id = Column(Integer, ForeignKey('parcels.id', ondelete="CASCADE"), nullable=False, index=True)

    # GPS coordinates
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)

    address = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<Location(parcel_id={self.parcel_id}, lat={self.latitude}, lng={self.longitude})>"
