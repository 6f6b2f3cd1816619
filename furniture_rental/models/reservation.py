import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, Date, Integer, Text, ForeignKey, DateTime, Index, CheckConstraint
)
from sqlalchemy.orm import relationship
from ..database import Base
import enum


class ReservationStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


# Allowed status changes; cancelled is terminal
STATUS_TRANSITIONS = {
    ReservationStatus.PENDING: {ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED},
    ReservationStatus.CONFIRMED: {ReservationStatus.CANCELLED},
    ReservationStatus.CANCELLED: set(),
}


class Reservation(Base):
    __tablename__ = "reservations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # Weak reference: looked up at creation time, not enforced afterwards
    client_id = Column(String(36), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default=ReservationStatus.CONFIRMED.value)
    total_amount = Column(Integer, nullable=False, default=0)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = relationship(
        "ReservationItem",
        back_populates="reservation",
        cascade="all, delete-orphan",
        order_by="ReservationItem.position",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint('start_date <= end_date', name='ck_reservation_date_order'),
        Index("ix_reservation_status_range", "status", "start_date", "end_date"),
    )

    def __repr__(self):
        return f"<Reservation {self.id} {self.start_date}..{self.end_date} {self.status}>"


class ReservationItem(Base):
    __tablename__ = "reservation_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    reservation_id = Column(String(36), ForeignKey("reservations.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    # Weak reference: deleting a product does not touch existing reservations
    product_id = Column(String(36), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)

    reservation = relationship("Reservation", back_populates="items")

    __table_args__ = (
        CheckConstraint('quantity >= 1', name='ck_reservation_item_quantity_positive'),
    )
