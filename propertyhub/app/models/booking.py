"""Short-let booking model."""

from sqlalchemy import Column, Date, ForeignKey, Integer, String

from propertyhub.app.db.base_class import Base


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    guest_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    check_in = Column(Date, nullable=False)
    check_out = Column(Date, nullable=False)
    status = Column(String(30), nullable=False, default="confirmed")
