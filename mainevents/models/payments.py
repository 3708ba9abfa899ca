import enum
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mainevents.core.utils import make_code, utcnow
from mainevents.database.db import Base
from mainevents.models.events import Event
from mainevents.models.users import User


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class PaymentMethod(str, enum.Enum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    PAYPAL = "paypal"
    MERCADOPAGO = "mercadopago"
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"


class Currency(str, enum.Enum):
    USD = "USD"
    EUR = "EUR"
    ARS = "ARS"
    MXN = "MXN"


class RefundStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


# Refunds in these states still hold part of the payment amount
OPEN_REFUND_STATUSES = (RefundStatus.PENDING.value, RefundStatus.PROCESSING.value, RefundStatus.COMPLETED.value)

# Payments whose money was received, whatever has been refunded since
RECEIVED_PAYMENT_STATUSES = (
    PaymentStatus.COMPLETED.value,
    PaymentStatus.PARTIALLY_REFUNDED.value,
    PaymentStatus.REFUNDED.value,
)


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    payment_id: Mapped[str] = mapped_column(
        String(32), nullable=False, unique=True, index=True, default=lambda: make_code("PAY")
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default=Currency.USD.value)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PaymentStatus.PENDING.value, index=True)
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_provider: Mapped[str] = mapped_column(String(20), nullable=False, default="manual")
    provider_transaction_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user: Mapped[User] = relationship()
    event: Mapped[Event] = relationship()
    refunds: Mapped[list["Refund"]] = relationship(
        back_populates="payment", cascade="all, delete-orphan", lazy="selectin", order_by="Refund.id"
    )

    @property
    def total_refunded(self) -> float:
        return sum(r.amount for r in self.refunds if r.status == RefundStatus.COMPLETED.value)

    @property
    def refundable_amount(self) -> float:
        held = sum(r.amount for r in self.refunds if r.status in OPEN_REFUND_STATUSES)
        return max(self.amount - held, 0)


class Refund(Base):
    __tablename__ = "refunds"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    refund_id: Mapped[str] = mapped_column(
        String(32), nullable=False, unique=True, index=True, default=lambda: make_code("REF")
    )
    payment_id: Mapped[int] = mapped_column(ForeignKey("payments.id", ondelete="CASCADE"), nullable=False, index=True)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    reason: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=RefundStatus.PENDING.value)
    requested_by: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    processed_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    requested_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    notes: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    payment: Mapped["Payment"] = relationship(back_populates="refunds")
