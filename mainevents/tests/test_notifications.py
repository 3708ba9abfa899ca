"""
Test notification fan-out and inbox state.
"""
from datetime import timedelta
from unittest.mock import Mock

import pytest
from sqlalchemy.orm import Session

from mainevents.core.errors import NotificationNotFoundError, UserNotFoundError
from mainevents.core.utils import utcnow
from mainevents.models.notifications import (
    Notification,
    NotificationChannel,
    NotificationPriority,
    NotificationStatus,
    NotificationType,
)
from mainevents.services.email import EmailSender
from mainevents.services.notifications import NotificationService


@pytest.fixture
def email_sender():
    return Mock(spec=EmailSender)


@pytest.fixture
def service(email_sender):
    return NotificationService(email_sender=email_sender)


def notify(service: NotificationService, db: Session, user_id: int, **overrides) -> Notification:
    fields = {
        "user_id": user_id,
        "type": NotificationType.SYSTEM_ANNOUNCEMENT,
        "title": "Aviso",
        "message": "Mensaje de prueba",
    }
    fields.update(overrides)
    return service.create_notification(db, **fields)


class TestDelivery:
    """Test channel fan-out."""

    def test_failing_channel_does_not_lose_notification(self, db_session: Session, service, email_sender, make_user):
        """Email blows up: the notification is still stored, unread and stamped as sent."""
        email_sender.send.side_effect = RuntimeError("SMTP down")
        user = make_user()

        notification = notify(
            service, db_session, user.id, channels=[NotificationChannel.IN_APP, NotificationChannel.EMAIL]
        )

        db_session.refresh(notification)
        assert notification.id is not None
        assert notification.status == NotificationStatus.UNREAD.value
        assert notification.sent_at is not None
        assert notification.channels == ["in_app", "email"]
        email_sender.send.assert_called_once()

    def test_email_uses_type_template(self, db_session: Session, service, email_sender, make_user):
        user = make_user()

        notify(
            service,
            db_session,
            user.id,
            type=NotificationType.EVENT_CREATED,
            channels=[NotificationChannel.EMAIL],
            data={"eventName": "Feria"},
        )

        to, subject, template, context = email_sender.send.call_args.args
        assert to == user.email
        assert subject == "Aviso"
        assert template == "event-created"
        assert context["eventName"] == "Feria"
        assert context["userName"] == user.name

    def test_push_and_sms_are_simulated(self, db_session: Session, service, email_sender, make_user):
        notification = notify(
            service, db_session, make_user().id, channels=[NotificationChannel.PUSH, NotificationChannel.SMS]
        )

        assert notification.sent_at is not None
        email_sender.send.assert_not_called()

    def test_unknown_user(self, db_session: Session, service):
        with pytest.raises(UserNotFoundError):
            notify(service, db_session, 999)
        assert db_session.query(Notification).count() == 0

    def test_email_template_names(self):
        assert NotificationService.get_email_template("attendance_confirmed") == "attendance-confirmed"
        assert NotificationService.get_email_template("something_else") == "default"


class TestDomainNotifications:
    """Test the domain helpers build the right notifications."""

    def test_event_created_goes_to_owner(self, db_session: Session, service, make_user, make_event):
        owner = make_user("Owner")
        event = make_event(owner)

        notification = service.notify_event_created(db_session, event)

        assert notification.user_id == owner.id
        assert notification.type == "event_created"
        assert notification.related_entity_id == event.id
        assert notification.data["eventId"] == event.id

    def test_attendance_confirmed_carries_quantity(self, db_session: Session, service, make_user, make_event):
        event = make_event(make_user("Owner"))
        buyer = make_user("Buyer")

        notification = service.notify_attendance_confirmed(db_session, event, buyer.id, 3)

        assert notification.user_id == buyer.id
        assert notification.data["quantity"] == 3
        assert notification.related_entity_type == "Attendance"

    def test_ticket_transfer_notifies_both_sides(self, db_session: Session, service, make_user, make_event):
        event = make_event(make_user("Owner"))
        sender, receiver = make_user("Sender"), make_user("Receiver")

        received, sent = service.notify_ticket_transferred(
            db_session, ticket_id="T-1", event=event, from_user=sender, to_user=receiver
        )

        assert received.user_id == receiver.id
        assert received.channels == ["in_app", "email"]
        assert received.priority == NotificationPriority.MEDIUM.value
        assert sent.user_id == sender.id
        assert sent.channels == ["in_app"]
        assert sent.priority == NotificationPriority.LOW.value

    def test_payment_and_refund(self, db_session: Session, service, make_user, make_event):
        event = make_event(make_user("Owner"))
        buyer = make_user("Buyer")

        paid = service.notify_payment_completed(db_session, buyer.id, payment_id="P-9", amount=30.0, event=event)
        refund = service.notify_refund_requested(
            db_session, buyer.id, refund_id="R-1", amount=30.0, reason="No puedo ir", payment_id="P-9"
        )

        assert paid.priority == "high"
        assert paid.category == "payment"
        assert refund.data["reason"] == "No puedo ir"

    def test_reminder_for_every_attendee(self, db_session: Session, service, make_user, make_event):
        from mainevents.services.attendance import attend_event

        event = make_event(make_user("Owner"))
        a, b = make_user("A"), make_user("B")
        attend_event(db_session, event_id=event.id, user_id=a.id, quantity=1)
        attend_event(db_session, event_id=event.id, user_id=b.id, quantity=2)

        reminders = service.notify_event_reminder(db_session, event)

        assert sorted(n.user_id for n in reminders) == sorted([a.id, b.id])
        assert all(n.source == "automated" for n in reminders)

    def test_announcement_targets(self, db_session: Session, service, make_user):
        users = [make_user(f"U{i}") for i in range(3)]

        everyone = service.notify_system_announcement(db_session, "Mantenimiento", "Esta noche")
        some = service.notify_system_announcement(db_session, "Hola", "Solo dos", [users[0].id, users[2].id])

        assert len(everyone) == 3
        assert sorted(n.user_id for n in some) == [users[0].id, users[2].id]
        assert all(n.source == "admin" for n in some)


class TestInbox:
    """Test reading, archiving and stats."""

    def test_listing_filters_and_order(self, db_session: Session, service, make_user):
        user, other = make_user("User"), make_user("Other")
        first = notify(service, db_session, user.id, title="Primera")
        second = notify(service, db_session, user.id, title="Segunda", priority=NotificationPriority.HIGH)
        notify(service, db_session, other.id, title="Ajena")
        service.mark_as_read(db_session, first.id, user.id)

        unread = service.get_user_notifications(db_session, user.id)
        everything = service.get_user_notifications(db_session, user.id, status="all")
        high = service.get_user_notifications(db_session, user.id, status="all", priority="high")

        assert [n.id for n in unread] == [second.id]
        assert [n.id for n in everything] == [second.id, first.id]
        assert [n.id for n in high] == [second.id]

    def test_mark_as_read_is_idempotent(self, db_session: Session, service, make_user):
        user = make_user()
        notification = notify(service, db_session, user.id)

        notification = service.mark_as_read(db_session, notification.id, user.id)
        read_at = notification.read_at
        notification = service.mark_as_read(db_session, notification.id, user.id)

        assert notification.status == "read"
        assert notification.read_at == read_at

    def test_other_users_notification_is_not_found(self, db_session: Session, service, make_user):
        owner, intruder = make_user("Owner"), make_user("Intruder")
        notification = notify(service, db_session, owner.id)

        with pytest.raises(NotificationNotFoundError):
            service.mark_as_read(db_session, notification.id, intruder.id)
        with pytest.raises(NotificationNotFoundError):
            service.archive_notification(db_session, notification.id, intruder.id)

    def test_archived_cannot_go_back_to_read(self, db_session: Session, service, make_user):
        user = make_user()
        notification = notify(service, db_session, user.id)

        service.archive_notification(db_session, notification.id, user.id)
        notification = service.mark_as_read(db_session, notification.id, user.id)

        assert notification.status == "archived"
        assert notification.read_at is None
        assert notification.archived_at is not None

    def test_mark_all_as_read_counts(self, db_session: Session, service, make_user):
        user = make_user()
        for _ in range(3):
            notify(service, db_session, user.id)
        archived = notify(service, db_session, user.id)
        service.archive_notification(db_session, archived.id, user.id)

        assert service.mark_all_as_read(db_session, user.id) == 3
        assert service.mark_all_as_read(db_session, user.id) == 0
        db_session.expire_all()
        assert all(n.read_at is not None for n in service.get_user_notifications(db_session, user.id, status="read"))

    def test_stats(self, db_session: Session, service, make_user):
        user = make_user()
        a = notify(service, db_session, user.id, priority=NotificationPriority.URGENT)
        b = notify(service, db_session, user.id, priority=NotificationPriority.HIGH)
        notify(service, db_session, user.id)
        service.mark_as_read(db_session, a.id, user.id)
        service.archive_notification(db_session, b.id, user.id)

        assert service.get_notification_stats(db_session, user.id) == {
            "total": 3,
            "unread": 1,
            "read": 1,
            "archived": 1,
            "high_priority": 1,
            "urgent_priority": 1,
        }

    def test_cleanup_deletes_only_old_archived(self, db_session: Session, service, make_user):
        user = make_user()
        old, recent, unread = (notify(service, db_session, user.id) for _ in range(3))
        for n in (old, recent):
            service.archive_notification(db_session, n.id, user.id)
        old.archived_at = utcnow() - timedelta(days=40)
        db_session.commit()

        assert service.cleanup_old_notifications(db_session, 30) == 1
        remaining = {n.id for n in service.get_user_notifications(db_session, user.id, status="all")}
        assert remaining == {recent.id, unread.id}
