import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mainevents.core.utils import make_code, utcnow
from mainevents.database.db import Base
from mainevents.models.events import Event
from mainevents.models.payments import Payment


class TicketStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    USED = "used"
    CANCELLED = "cancelled"
    TRANSFERRED = "transferred"
    REFUNDED = "refunded"


class TicketType(str, enum.Enum):
    GENERAL = "general"
    VIP = "vip"
    PREMIUM = "premium"
    STUDENT = "student"
    EARLY_BIRD = "early_bird"


# Tickets stay valid for this long after the event starts
TICKET_VALIDITY_DAYS = 30


class Ticket(Base):
    __tablename__ = "tickets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[str] = mapped_column(
        String(32), nullable=False, unique=True, index=True, default=lambda: make_code("TK")
    )
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    original_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    payment_id: Mapped[int] = mapped_column(ForeignKey("payments.id"), nullable=False)
    ticket_type: Mapped[str] = mapped_column(String(16), nullable=False, default=TicketType.GENERAL.value)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    total_amount: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=TicketStatus.PENDING.value, index=True)
    qr_code: Mapped[str] = mapped_column(String(80), nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    checked_in: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    checked_in_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    checked_in_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    check_in_location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    event: Mapped[Event] = relationship()
    payment: Mapped[Payment] = relationship()
    transfers: Mapped[list["TicketTransfer"]] = relationship(
        back_populates="ticket", cascade="all, delete-orphan", lazy="selectin", order_by="TicketTransfer.id"
    )


class TicketTransfer(Base):
    __tablename__ = "ticket_transfers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    from_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    to_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(200), nullable=True)
    transferred_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    ticket: Mapped["Ticket"] = relationship(back_populates="transfers")
