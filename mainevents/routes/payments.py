from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from mainevents.database.db import get_db
from mainevents.models.payments import PaymentStatus, RefundStatus
from mainevents.models.users import User
from mainevents.routes.deps import get_current_user, require_admin
from mainevents.schemas.payments import (
    EventPaymentsOut,
    PaymentEnvelope,
    PaymentPageOut,
    PaymentProcessedOut,
    PaymentRequest,
    PaymentStatsOut,
    RefundEnvelope,
    RefundListOut,
    RefundRequest,
)
from mainevents.services import payments as payment_service
from mainevents.tasks import enqueue, notify_payment_completed_task, notify_refund_requested_task

router = APIRouter(prefix="/api/payments", tags=["payments"])


# Static paths are declared before /{payment_id} so they are not captured by it.
@router.post("/process", response_model=PaymentProcessedOut, status_code=201)
def process_payment(payload: PaymentRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    payment, ticket = payment_service.process_payment(
        db,
        user,
        event_id=payload.event_id,
        quantity=payload.quantity,
        payment_method=payload.payment_method,
        currency=payload.currency,
    )
    enqueue(notify_payment_completed_task, payment.id)
    return {
        "message": "Payment processed successfully",
        "payment_id": payment.payment_id,
        "status": payment.status,
        "amount": payment.amount,
        "ticket_id": ticket.ticket_id,
    }


@router.get("/user", response_model=PaymentPageOut)
def user_payments(
    status: PaymentStatus | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return payment_service.get_user_payments(
        db, user.id, status=status.value if status else None, page=page, limit=limit
    )


@router.get("/stats", response_model=PaymentStatsOut)
def payment_stats(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return payment_service.get_payment_stats(db, user.id)


@router.get("/refunds", response_model=RefundListOut)
def user_refunds(
    status: RefundStatus | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    refunds = payment_service.get_user_refunds(db, user.id, status=status.value if status else None)
    return {"refunds": refunds}


@router.put("/refunds/{refund_id}/complete", response_model=RefundEnvelope)
def complete_refund(refund_id: str, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    refund = payment_service.complete_refund(db, refund_id, admin)
    return {"message": "Refund completed", "refund": refund}


@router.get("/event/{event_id}", response_model=EventPaymentsOut)
def event_payments(event_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return payment_service.get_event_payments(db, event_id, user)


@router.get("/{payment_id}", response_model=PaymentEnvelope)
def get_payment(payment_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"payment": payment_service.get_payment(db, payment_id, user.id)}


@router.post("/{payment_id}/refund", response_model=RefundEnvelope, status_code=201)
def request_refund(
    payment_id: str,
    payload: RefundRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    refund = payment_service.request_refund(db, payment_id, user, amount=payload.amount, reason=payload.reason)
    enqueue(notify_refund_requested_task, refund.id)
    return {"message": "Refund request submitted", "refund": refund}
