"""
Ticket checkout and refund tracking.

There is no payment provider behind this module: a checkout is recorded as an
already completed payment. Seats are reserved with the same locked, guarded
path as plain attendance, and the payment and ticket rows are written in that
same transaction, so a failed checkout never keeps seats.
"""

import math
from datetime import timedelta

import structlog
from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from mainevents.core.errors import (
    EventNotFoundError,
    NotEventOwnerError,
    PaymentNotFoundError,
    RefundNotAllowedError,
    RefundNotFoundError,
)
from mainevents.core.utils import make_code, round_half_up, utcnow
from mainevents.models.events import Event
from mainevents.models.payments import (
    RECEIVED_PAYMENT_STATUSES,
    Currency,
    Payment,
    PaymentMethod,
    PaymentStatus,
    Refund,
    RefundStatus,
)
from mainevents.models.tickets import TICKET_VALIDITY_DAYS, Ticket, TicketStatus
from mainevents.models.users import User
from mainevents.services.attendance import event_lock, reserve_seats

logger = structlog.get_logger(__name__)

# Refunds close this long before the event starts
REFUND_CUTOFF = timedelta(hours=24)


def process_payment(
    db: Session,
    user: User,
    *,
    event_id: int,
    quantity: int = 1,
    payment_method: PaymentMethod | str = PaymentMethod.CREDIT_CARD,
    currency: Currency | str = Currency.USD,
) -> tuple[Payment, Ticket]:
    with event_lock(event_id):
        try:
            event = reserve_seats(db, event_id, user.id, quantity)
            amount = round_half_up(event.price * quantity, 2)

            payment = Payment(
                user_id=user.id,
                event_id=event_id,
                quantity=quantity,
                amount=amount,
                currency=getattr(currency, "value", currency),
                payment_method=getattr(payment_method, "value", payment_method),
                status=PaymentStatus.COMPLETED.value,
                provider_transaction_id=make_code("TXN"),
            )
            db.add(payment)
            db.flush()

            code = make_code("TK")
            ticket = Ticket(
                ticket_id=code,
                event_id=event_id,
                user_id=user.id,
                original_user_id=user.id,
                payment_id=payment.id,
                quantity=quantity,
                price=event.price,
                total_amount=amount,
                status=TicketStatus.CONFIRMED.value,
                qr_code=f"QR-{code}-{event_id}",
                expires_at=event.date + timedelta(days=TICKET_VALIDITY_DAYS),
            )
            db.add(ticket)
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(payment)
    db.refresh(ticket)
    logger.info(
        "Payment processed",
        payment_id=payment.payment_id,
        ticket_id=ticket.ticket_id,
        event_id=event_id,
        user_id=user.id,
        amount=amount,
    )
    return payment, ticket


def get_payment(db: Session, payment_code: str, user_id: int) -> Payment:
    payment = db.scalar(select(Payment).where(Payment.payment_id == payment_code, Payment.user_id == user_id))
    if payment is None:
        raise PaymentNotFoundError()
    return payment


def get_user_payments(
    db: Session, user_id: int, *, status: str | None = None, page: int = 1, limit: int = 10
) -> dict:
    filters = [Payment.user_id == user_id]
    if status:
        filters.append(Payment.status == status)

    payments = db.scalars(
        select(Payment).where(*filters).order_by(Payment.created_at.desc(), Payment.id.desc()).offset((page - 1) * limit).limit(limit)
    ).all()
    total = db.scalar(select(func.count(Payment.id)).where(*filters)) or 0
    return {
        "payments": list(payments),
        "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
    }


def request_refund(
    db: Session, payment_code: str, user: User, *, amount: float | None = None, reason: str | None = None
) -> Refund:
    payment = get_payment(db, payment_code, user.id)
    if payment.status != PaymentStatus.COMPLETED.value:
        raise RefundNotAllowedError("Only completed payments can be refunded")
    if payment.event.date - utcnow() < REFUND_CUTOFF:
        raise RefundNotAllowedError("Refunds cannot be requested less than 24 hours before the event")

    amount = payment.refundable_amount if amount is None else round_half_up(amount, 2)
    if amount <= 0 or amount > payment.refundable_amount:
        raise RefundNotAllowedError(
            "Refund amount exceeds the refundable amount", refundable=payment.refundable_amount
        )

    refund = Refund(
        payment_id=payment.id,
        amount=amount,
        reason=reason or "Refund requested",
        requested_by=user.id,
        notes="Requested by the customer",
    )
    db.add(refund)
    db.commit()
    db.refresh(refund)
    logger.info("Refund requested", refund_id=refund.refund_id, payment_id=payment.payment_id, amount=amount)
    return refund


def complete_refund(db: Session, refund_code: str, admin: User) -> Refund:
    """Mark a refund as paid out and move the payment (and its tickets, once fully refunded) along."""
    refund = db.scalar(select(Refund).where(Refund.refund_id == refund_code))
    if refund is None:
        raise RefundNotFoundError()
    if refund.status not in (RefundStatus.PENDING.value, RefundStatus.PROCESSING.value):
        raise RefundNotAllowedError("Refund was already processed")

    refund.status = RefundStatus.COMPLETED.value
    refund.processed_by = admin.id
    refund.processed_at = utcnow()
    db.flush()

    payment = refund.payment
    if payment.total_refunded >= payment.amount:
        payment.status = PaymentStatus.REFUNDED.value
        for ticket in db.scalars(select(Ticket).where(Ticket.payment_id == payment.id)):
            ticket.status = TicketStatus.REFUNDED.value
    else:
        payment.status = PaymentStatus.PARTIALLY_REFUNDED.value
    db.commit()
    db.refresh(refund)
    logger.info("Refund completed", refund_id=refund.refund_id, payment_status=payment.status)
    return refund


def get_user_refunds(db: Session, user_id: int, *, status: str | None = None) -> list[Refund]:
    query = select(Refund).join(Payment, Payment.id == Refund.payment_id).where(Payment.user_id == user_id)
    if status:
        query = query.where(Refund.status == status)
    return list(db.scalars(query.order_by(Refund.requested_at.desc(), Refund.id.desc())).all())


def get_payment_stats(db: Session, user_id: int) -> dict:
    completed = Payment.status == PaymentStatus.COMPLETED.value
    refunded = Payment.status.in_([PaymentStatus.REFUNDED.value, PaymentStatus.PARTIALLY_REFUNDED.value])
    row = db.execute(
        select(
            func.count(Payment.id),
            func.coalesce(func.sum(Payment.amount), 0),
            func.coalesce(func.sum(case((completed, Payment.amount), else_=0)), 0),
            func.coalesce(func.sum(case((completed, 1), else_=0)), 0),
            func.coalesce(func.sum(case((Payment.status == PaymentStatus.FAILED.value, 1), else_=0)), 0),
            func.coalesce(func.sum(case((refunded, 1), else_=0)), 0),
        ).where(Payment.user_id == user_id)
    ).one()
    total_refunded = db.scalar(
        select(func.coalesce(func.sum(Refund.amount), 0))
        .select_from(Refund)
        .join(Payment, Payment.id == Refund.payment_id)
        .where(Payment.user_id == user_id, Refund.status == RefundStatus.COMPLETED.value)
    )
    return {
        "total_payments": row[0],
        "total_amount": float(row[1]),
        "completed_amount": float(row[2]),
        "completed_payments": int(row[3]),
        "failed_payments": int(row[4]),
        "refunded_payments": int(row[5]),
        "total_refunded": float(total_refunded or 0),
    }


def get_event_payments(db: Session, event_id: int, user: User) -> dict:
    """Payments of an event with a revenue summary, for its organizer."""
    event = db.get(Event, event_id)
    if event is None:
        raise EventNotFoundError(event_id)
    if event.user_id != user.id:
        raise NotEventOwnerError("You do not have permission to view this event's payments")

    payments = list(
        db.scalars(select(Payment).where(Payment.event_id == event_id).order_by(Payment.created_at.desc(), Payment.id.desc())).all()
    )
    total_revenue = round_half_up(sum(p.amount for p in payments if p.status in RECEIVED_PAYMENT_STATUSES), 2)
    total_refunded = round_half_up(sum(p.total_refunded for p in payments), 2)
    return {
        "payments": payments,
        "summary": {
            "total_payments": len(payments),
            "total_revenue": total_revenue,
            "total_refunded": total_refunded,
            "net_revenue": round_half_up(total_revenue - total_refunded, 2),
        },
    }
