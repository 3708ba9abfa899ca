from datetime import datetime

from pydantic import BaseModel, Field

from mainevents.models.payments import Currency, PaymentMethod
from mainevents.schemas.reviews import Pagination


class PaymentRequest(BaseModel):
    event_id: int = Field(ge=1, alias="eventId")
    quantity: int = Field(default=1, ge=1, le=50)
    payment_method: PaymentMethod = Field(default=PaymentMethod.CREDIT_CARD, alias="paymentMethod")
    currency: Currency = Currency.USD

    class Config:
        populate_by_name = True


class RefundRequest(BaseModel):
    amount: float | None = Field(default=None, gt=0)
    reason: str | None = Field(default=None, max_length=500)

    class Config:
        str_strip_whitespace = True


class RefundOut(BaseModel):
    refund_id: str
    amount: float
    reason: str
    status: str
    requested_at: datetime
    processed_at: datetime | None

    class Config:
        from_attributes = True


class PaymentOut(BaseModel):
    payment_id: str
    user_id: int
    event_id: int
    quantity: int
    amount: float
    currency: str
    status: str
    payment_method: str
    payment_provider: str
    provider_transaction_id: str | None
    total_refunded: float
    refunds: list[RefundOut]
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentProcessedOut(BaseModel):
    success: bool = True
    message: str
    payment_id: str
    status: str
    amount: float
    ticket_id: str


class PaymentPageOut(BaseModel):
    success: bool = True
    payments: list[PaymentOut]
    pagination: Pagination


class PaymentEnvelope(BaseModel):
    success: bool = True
    payment: PaymentOut


class RefundEnvelope(BaseModel):
    success: bool = True
    message: str
    refund: RefundOut


class RefundListOut(BaseModel):
    success: bool = True
    refunds: list[RefundOut]


class PaymentStatsOut(BaseModel):
    total_payments: int
    total_amount: float
    completed_payments: int
    completed_amount: float
    failed_payments: int
    refunded_payments: int
    total_refunded: float


class RevenueSummary(BaseModel):
    total_payments: int
    total_revenue: float
    total_refunded: float
    net_revenue: float


class EventPaymentsOut(BaseModel):
    success: bool = True
    payments: list[PaymentOut]
    summary: RevenueSummary
