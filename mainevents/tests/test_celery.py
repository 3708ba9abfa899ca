"""
Test Celery tasks.
"""
from datetime import datetime, timedelta
from unittest.mock import Mock, patch

from sqlalchemy.orm import Session

from mainevents.core.celery_config import celery_app
from mainevents.core.utils import utcnow
from mainevents.models.notifications import Notification, NotificationStatus
from mainevents.models.reviews import Review
from mainevents.services.attendance import attend_event
from mainevents.services.payments import process_payment, request_refund
from mainevents.services.tickets import transfer_ticket
from mainevents.tasks import (
    cleanup_notifications_task,
    enqueue,
    notify_attendance_confirmed_task,
    notify_event_created_task,
    notify_new_comment_task,
    notify_new_review_task,
    notify_payment_completed_task,
    notify_refund_requested_task,
    notify_ticket_transferred_task,
    send_event_reminders_task,
)


def notifications_for(db: Session, user_id: int) -> list[Notification]:
    db.expire_all()
    return db.query(Notification).filter(Notification.user_id == user_id).order_by(Notification.id).all()


class TestCeleryConfig:
    def test_beat_schedule(self):
        schedule = celery_app.conf.beat_schedule

        assert schedule["send-event-reminders"]["task"] == "mainevents.tasks.send_event_reminders_task"
        assert schedule["cleanup-archived-notifications"]["task"] == "mainevents.tasks.cleanup_notifications_task"
        assert celery_app.conf.task_serializer == "json"


class TestNotificationTasks:
    """Test the tasks queued by the HTTP layer."""

    def test_event_created(self, db_session: Session, make_user, make_event):
        owner = make_user("Owner")
        event = make_event(owner)

        notify_event_created_task.run(event.id)

        [notification] = notifications_for(db_session, owner.id)
        assert notification.type == "event_created"
        assert notification.sent_at is not None

    def test_attendance_confirmed(self, db_session: Session, make_user, make_event):
        event = make_event(make_user("Owner"))
        buyer = make_user("Buyer")

        notify_attendance_confirmed_task.run(event.id, buyer.id, 2)

        [notification] = notifications_for(db_session, buyer.id)
        assert notification.data["quantity"] == 2

    def test_new_review_goes_to_organizer(self, db_session: Session, make_user, make_event):
        owner, author = make_user("Owner"), make_user("Author")
        event = make_event(owner)
        review = Review(user_id=author.id, event_id=event.id, rating=4, comment="Todo muy bien organizado")
        db_session.add(review)
        db_session.commit()

        notify_new_review_task.run(review.id)

        [notification] = notifications_for(db_session, owner.id)
        assert notification.type == "new_review"
        assert notification.data["reviewId"] == review.id

    def test_owner_commenting_does_not_notify_self(self, db_session: Session, make_user, make_event):
        owner, fan = make_user("Owner"), make_user("Fan")
        event = make_event(owner)

        notify_new_comment_task.run(event.id, owner.id)
        assert notifications_for(db_session, owner.id) == []

        notify_new_comment_task.run(event.id, fan.id)
        [notification] = notifications_for(db_session, owner.id)
        assert notification.type == "new_comment"

    def test_missing_entities_are_ignored(self):
        assert notify_event_created_task.run(999) is None
        assert notify_attendance_confirmed_task.run(999, 1, 1) is None
        assert notify_new_review_task.run(999) is None
        assert notify_new_comment_task.run(999, 1) is None
        assert notify_payment_completed_task.run(999) is None
        assert notify_refund_requested_task.run(999) is None
        assert notify_ticket_transferred_task.run(999) is None

    def test_payment_and_refund(self, db_session: Session, make_user, make_event):
        buyer = make_user("Buyer")
        event = make_event(make_user("Owner"), price=15.0)
        payment, _ = process_payment(db_session, buyer, event_id=event.id, quantity=2)
        refund = request_refund(db_session, payment.payment_id, buyer, amount=10)

        notify_payment_completed_task.run(payment.id)
        notify_refund_requested_task.run(refund.id)

        paid, refunded = notifications_for(db_session, buyer.id)
        assert paid.type == "payment_completed"
        assert paid.data["paymentId"] == payment.payment_id
        assert paid.data["amount"] == 30.0
        assert refunded.type == "refund_requested"
        assert refunded.data["refundId"] == refund.refund_id

    def test_ticket_transfer_notifies_both_sides(self, db_session: Session, make_user, make_event):
        owner, seller, friend = make_user("Owner"), make_user("Seller"), make_user("Friend")
        _, ticket = process_payment(db_session, seller, event_id=make_event(owner).id)
        transfer = transfer_ticket(db_session, ticket.ticket_id, seller, email=friend.email)

        notify_ticket_transferred_task.run(transfer.id)

        [received] = notifications_for(db_session, friend.id)
        assert received.type == "ticket_transferred"
        assert received.data["ticketId"] == ticket.ticket_id
        assert received.data["fromUserName"] == "Seller"
        [sent] = notifications_for(db_session, seller.id)
        assert sent.data["toUserName"] == "Friend"


class TestScheduledTasks:
    def test_reminders_cover_tomorrow_calendar_day(self, db_session: Session, make_user, make_event, monkeypatch):
        """At the 09:00 run, an 08:00 event tomorrow is reminded and one the day after is not."""
        monkeypatch.setattr("mainevents.tasks.utcnow", lambda: datetime(2026, 10, 19, 9, 0))
        owner = make_user("Owner")
        early, late, after = make_user("Early"), make_user("Late"), make_user("After")
        for guest, date in (
            (early, datetime(2026, 10, 20, 8, 0)),
            (late, datetime(2026, 10, 20, 23, 30)),
            (after, datetime(2026, 10, 21, 8, 0)),
        ):
            event = make_event(owner, date=date)
            attend_event(db_session, event_id=event.id, user_id=guest.id, quantity=1)

        assert send_event_reminders_task.run() == 2

        [reminder] = notifications_for(db_session, early.id)
        assert reminder.type == "event_reminder"
        assert len(notifications_for(db_session, late.id)) == 1
        assert notifications_for(db_session, after.id) == []

    def test_cleanup(self, db_session: Session, make_user):
        user = make_user()
        old = Notification(
            user_id=user.id,
            type="system_announcement",
            title="Viejo",
            message="Archivado hace tiempo",
            status=NotificationStatus.ARCHIVED.value,
        )
        db_session.add(old)
        db_session.commit()
        old.archived_at = utcnow() - timedelta(days=90)
        db_session.commit()

        assert cleanup_notifications_task.run(30) == 1
        assert notifications_for(db_session, user.id) == []


class TestEnqueue:
    def test_broker_failure_is_swallowed(self):
        task = Mock()
        task.name = "mainevents.tasks.fake"
        task.delay.side_effect = ConnectionError("broker down")

        enqueue(task, 1, 2)

        task.delay.assert_called_once_with(1, 2)

    def test_eager_delay_runs_inline(self, db_session: Session, make_user, make_event):
        owner = make_user("Owner")
        event = make_event(owner)

        with patch("mainevents.tasks.notification_service.notify_event_created") as notify:
            notify.return_value = Mock(id=1)
            enqueue(notify_event_created_task, event.id)

        notify.assert_called_once()
