from datetime import timedelta

import structlog

from mainevents.core.celery_config import celery_app
from mainevents.core.utils import utcnow
from mainevents.database.db import SessionLocal
from mainevents.models.events import Event
from mainevents.models.payments import Payment, Refund
from mainevents.models.reviews import Review
from mainevents.models.tickets import TicketTransfer
from mainevents.models.users import User
from mainevents.services.events import events_happening_between
from mainevents.services.notifications import notification_service

logger = structlog.get_logger(__name__)


def enqueue(task, *args) -> None:
    """Queue background work; broker problems are logged and never fail the caller."""
    try:
        task.delay(*args)
    except Exception:
        logger.exception("Could not enqueue task", task=task.name)


@celery_app.task(bind=True)
def notify_event_created_task(self, event_id: int):
    db = SessionLocal()
    try:
        event = db.get(Event, event_id)
        if event is None:
            return None
        return notification_service.notify_event_created(db, event).id
    finally:
        db.close()


@celery_app.task(bind=True)
def notify_attendance_confirmed_task(self, event_id: int, user_id: int, quantity: int):
    db = SessionLocal()
    try:
        event = db.get(Event, event_id)
        if event is None:
            return None
        return notification_service.notify_attendance_confirmed(db, event, user_id, quantity).id
    finally:
        db.close()


@celery_app.task(bind=True)
def notify_new_review_task(self, review_id: int):
    db = SessionLocal()
    try:
        review = db.get(Review, review_id)
        if review is None:
            return None
        return notification_service.notify_new_review(
            db, review.event, review_id=review.id, rating=review.rating
        ).id
    finally:
        db.close()


@celery_app.task(bind=True)
def notify_new_comment_task(self, event_id: int, user_id: int):
    db = SessionLocal()
    try:
        event = db.get(Event, event_id)
        commenter = db.get(User, user_id)
        if event is None or commenter is None or event.user_id == user_id:
            return None
        return notification_service.notify_new_comment(db, event, commenter=commenter).id
    finally:
        db.close()


@celery_app.task(bind=True)
def notify_payment_completed_task(self, payment_id: int):
    db = SessionLocal()
    try:
        payment = db.get(Payment, payment_id)
        if payment is None:
            return None
        return notification_service.notify_payment_completed(
            db, payment.user_id, payment_id=payment.payment_id, amount=payment.amount, event=payment.event
        ).id
    finally:
        db.close()


@celery_app.task(bind=True)
def notify_refund_requested_task(self, refund_id: int):
    db = SessionLocal()
    try:
        refund = db.get(Refund, refund_id)
        if refund is None:
            return None
        return notification_service.notify_refund_requested(
            db,
            refund.payment.user_id,
            refund_id=refund.refund_id,
            amount=refund.amount,
            reason=refund.reason,
            payment_id=refund.payment.payment_id,
        ).id
    finally:
        db.close()


@celery_app.task(bind=True)
def notify_ticket_transferred_task(self, transfer_id: int):
    db = SessionLocal()
    try:
        transfer = db.get(TicketTransfer, transfer_id)
        if transfer is None:
            return None
        notifications = notification_service.notify_ticket_transferred(
            db,
            ticket_id=transfer.ticket.ticket_id,
            event=transfer.ticket.event,
            from_user=db.get(User, transfer.from_user_id),
            to_user=db.get(User, transfer.to_user_id),
        )
        return [n.id for n in notifications]
    finally:
        db.close()


@celery_app.task(bind=True)
def send_event_reminders_task(self):
    """Remind attendees of every active event starting tomorrow (UTC calendar day)."""
    start = (utcnow() + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=1)

    db = SessionLocal()
    try:
        sent = 0
        for event in events_happening_between(db, start, end):
            sent += len(notification_service.notify_event_reminder(db, event))
        logger.info("Event reminders sent", count=sent)
        return sent
    finally:
        db.close()


@celery_app.task(bind=True)
def cleanup_notifications_task(self, days_old: int = 30):
    db = SessionLocal()
    try:
        return notification_service.cleanup_old_notifications(db, days_old)
    finally:
        db.close()
