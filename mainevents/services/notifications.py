"""
Notification fan-out.

A notification is persisted first, which makes in-app delivery the source of
truth, and is then pushed through each requested channel independently. A
failing channel is logged and skipped; it never rolls back the notification nor
reaches the caller.
"""

from datetime import timedelta
from typing import Callable, Iterable

import structlog
from sqlalchemy import case, delete, func, select, update
from sqlalchemy.orm import Session

from mainevents.core.config import FRONTEND_URL
from mainevents.core.errors import NotificationNotFoundError, UserNotFoundError
from mainevents.core.utils import utcnow
from mainevents.models.events import Event
from mainevents.models.notifications import (
    Notification,
    NotificationCategory,
    NotificationChannel,
    NotificationPriority,
    NotificationSource,
    NotificationStatus,
    NotificationType,
    RelatedEntityType,
)
from mainevents.models.users import User
from mainevents.services.email import EmailSender

logger = structlog.get_logger(__name__)

EMAIL_TEMPLATES = {t.value: t.value.replace("_", "-") for t in NotificationType}


def _value(item):
    return getattr(item, "value", item)


class NotificationService:
    """Creates notifications and delivers them over in-app, email, push and SMS."""

    def __init__(self, email_sender: EmailSender | None = None) -> None:
        self.logger = logger.bind(component="notification_service")
        self.email_sender = email_sender or EmailSender.from_config()
        self.channels: dict[str, Callable[[Notification, User], None]] = {
            NotificationChannel.IN_APP.value: self.send_in_app_notification,
            NotificationChannel.EMAIL.value: self.send_email_notification,
            NotificationChannel.PUSH.value: self.send_push_notification,
            NotificationChannel.SMS.value: self.send_sms_notification,
        }

    # ---------- Creation and delivery ----------
    def create_notification(
        self,
        db: Session,
        *,
        user_id: int,
        type: NotificationType | str,
        title: str,
        message: str,
        data: dict | None = None,
        priority: NotificationPriority | str = NotificationPriority.MEDIUM,
        channels: Iterable[NotificationChannel | str] | None = None,
        scheduled_for=None,
        source: NotificationSource | str = NotificationSource.SYSTEM,
        category: NotificationCategory | str = NotificationCategory.SYSTEM,
        tags: list[str] | None = None,
        related_entity_id: int | None = None,
        related_entity_type: RelatedEntityType | str | None = None,
    ) -> Notification:
        user = db.get(User, user_id)
        if user is None:
            raise UserNotFoundError()

        notification = Notification(
            user_id=user_id,
            type=_value(type),
            title=title,
            message=message,
            data=data or {},
            priority=_value(priority),
            channels=[_value(c) for c in (channels or [NotificationChannel.IN_APP])],
            scheduled_for=scheduled_for or utcnow(),
            source=_value(source),
            category=_value(category),
            tags=tags or [],
            related_entity_id=related_entity_id,
            related_entity_type=_value(related_entity_type),
        )
        db.add(notification)
        db.commit()
        db.refresh(notification)

        self.send_notification(db, notification, user)
        return notification

    def send_notification(self, db: Session, notification: Notification, user: User) -> None:
        for channel in notification.channels:
            handler = self.channels.get(channel)
            if handler is None:
                self.logger.warning("Unknown notification channel", channel=channel, notification_id=notification.id)
                continue
            try:
                handler(notification, user)
            except Exception:
                # Keep going with the remaining channels
                self.logger.exception(
                    "Error sending notification", channel=channel, notification_id=notification.id
                )

        notification.sent_at = utcnow()
        db.commit()

    def send_in_app_notification(self, notification: Notification, user: User) -> None:
        # Already stored; clients poll /api/notifications
        self.logger.info(
            "In-app notification sent", user_id=user.id, notification_id=notification.id, type=notification.type
        )

    def send_email_notification(self, notification: Notification, user: User) -> None:
        if not user.email:
            raise ValueError("User has no email configured")

        context = {"userName": user.name, "title": notification.title, "message": notification.message}
        context.update(notification.data or {})
        self.email_sender.send(user.email, notification.title, self.get_email_template(notification.type), context)
        self.logger.info(
            "Email notification sent", user_id=user.id, email=user.email, notification_id=notification.id
        )

    def send_push_notification(self, notification: Notification, user: User) -> None:
        self.logger.info(
            "Push notification sent", user_id=user.id, notification_id=notification.id, type=notification.type
        )

    def send_sms_notification(self, notification: Notification, user: User) -> None:
        self.logger.info(
            "SMS notification sent", user_id=user.id, notification_id=notification.id, type=notification.type
        )

    @staticmethod
    def get_email_template(type: str) -> str:
        return EMAIL_TEMPLATES.get(type, "default")

    # ---------- Domain notifications ----------
    def notify_event_created(self, db: Session, event: Event) -> Notification:
        return self.create_notification(
            db,
            user_id=event.user_id,
            type=NotificationType.EVENT_CREATED,
            title="Evento creado exitosamente",
            message=f'Tu evento "{event.name}" ha sido creado y está disponible para registro.',
            data=_event_data(event),
            channels=[NotificationChannel.IN_APP, NotificationChannel.EMAIL],
            category=NotificationCategory.EVENT,
            related_entity_id=event.id,
            related_entity_type=RelatedEntityType.EVENT,
        )

    def notify_attendance_confirmed(self, db: Session, event: Event, user_id: int, quantity: int) -> Notification:
        data = _event_data(event)
        data["quantity"] = quantity
        return self.create_notification(
            db,
            user_id=user_id,
            type=NotificationType.ATTENDANCE_CONFIRMED,
            title="Asistencia confirmada",
            message=f'Tu asistencia al evento "{event.name}" ha sido confirmada ({quantity} entradas).',
            data=data,
            channels=[NotificationChannel.IN_APP, NotificationChannel.EMAIL],
            category=NotificationCategory.EVENT,
            related_entity_id=event.id,
            related_entity_type=RelatedEntityType.ATTENDANCE,
        )

    def notify_payment_completed(
        self, db: Session, user_id: int, *, payment_id: str, amount: float, event: Event
    ) -> Notification:
        return self.create_notification(
            db,
            user_id=user_id,
            type=NotificationType.PAYMENT_COMPLETED,
            title="Pago completado",
            message=f'Tu pago de ${amount} para el evento "{event.name}" ha sido procesado exitosamente.',
            data={"paymentId": payment_id, "amount": amount, "eventName": event.name, "eventDate": event.date.isoformat()},
            channels=[NotificationChannel.IN_APP, NotificationChannel.EMAIL],
            priority=NotificationPriority.HIGH,
            category=NotificationCategory.PAYMENT,
            related_entity_type=RelatedEntityType.PAYMENT,
        )

    def notify_refund_requested(
        self, db: Session, user_id: int, *, refund_id: str, amount: float, reason: str, payment_id: str
    ) -> Notification:
        return self.create_notification(
            db,
            user_id=user_id,
            type=NotificationType.REFUND_REQUESTED,
            title="Solicitud de reembolso enviada",
            message=f"Tu solicitud de reembolso por ${amount} ha sido enviada y está siendo procesada.",
            data={"refundId": refund_id, "amount": amount, "reason": reason, "paymentId": payment_id},
            channels=[NotificationChannel.IN_APP, NotificationChannel.EMAIL],
            category=NotificationCategory.PAYMENT,
            related_entity_type=RelatedEntityType.PAYMENT,
        )

    def notify_ticket_transferred(
        self, db: Session, *, ticket_id: str, event: Event, from_user: User, to_user: User
    ) -> list[Notification]:
        received = self.create_notification(
            db,
            user_id=to_user.id,
            type=NotificationType.TICKET_TRANSFERRED,
            title="Ticket transferido",
            message=f'{from_user.name} te ha transferido un ticket para el evento "{event.name}".',
            data={
                "ticketId": ticket_id,
                "eventName": event.name,
                "eventDate": event.date.isoformat(),
                "fromUserName": from_user.name,
            },
            channels=[NotificationChannel.IN_APP, NotificationChannel.EMAIL],
            source=NotificationSource.USER,
            category=NotificationCategory.EVENT,
            related_entity_type=RelatedEntityType.TICKET,
        )
        sent = self.create_notification(
            db,
            user_id=from_user.id,
            type=NotificationType.TICKET_TRANSFERRED,
            title="Ticket transferido exitosamente",
            message=f'Has transferido exitosamente tu ticket para "{event.name}" a {to_user.name}.',
            data={"ticketId": ticket_id, "eventName": event.name, "toUserName": to_user.name},
            channels=[NotificationChannel.IN_APP],
            priority=NotificationPriority.LOW,
            source=NotificationSource.USER,
            category=NotificationCategory.EVENT,
            related_entity_type=RelatedEntityType.TICKET,
        )
        return [received, sent]

    def notify_event_reminder(self, db: Session, event: Event) -> list[Notification]:
        notifications = []
        for attendee in event.attendees:
            notifications.append(
                self.create_notification(
                    db,
                    user_id=attendee.user_id,
                    type=NotificationType.EVENT_REMINDER,
                    title="Recordatorio de evento",
                    message=f'¡No olvides! El evento "{event.name}" es mañana.',
                    data={**_event_data(event), "eventLocation": event.location},
                    channels=[NotificationChannel.IN_APP, NotificationChannel.EMAIL],
                    priority=NotificationPriority.HIGH,
                    source=NotificationSource.AUTOMATED,
                    category=NotificationCategory.EVENT,
                    related_entity_id=event.id,
                    related_entity_type=RelatedEntityType.EVENT,
                )
            )
        return notifications

    def notify_new_review(self, db: Session, event: Event, *, review_id: int, rating: int) -> Notification:
        return self.create_notification(
            db,
            user_id=event.user_id,
            type=NotificationType.NEW_REVIEW,
            title="Nuevo review recibido",
            message=f'Has recibido un nuevo review de {rating} estrellas para tu evento "{event.name}".',
            data={"eventId": event.id, "reviewId": review_id},
            category=NotificationCategory.SOCIAL,
            related_entity_id=event.id,
            related_entity_type=RelatedEntityType.EVENT,
        )

    def notify_new_comment(self, db: Session, event: Event, *, commenter: User) -> Notification:
        return self.create_notification(
            db,
            user_id=event.user_id,
            type=NotificationType.NEW_COMMENT,
            title="Nuevo comentario",
            message=f'{commenter.name} comentó en tu evento "{event.name}".',
            data={"eventId": event.id, "userId": commenter.id},
            priority=NotificationPriority.LOW,
            source=NotificationSource.USER,
            category=NotificationCategory.SOCIAL,
            related_entity_id=event.id,
            related_entity_type=RelatedEntityType.EVENT,
        )

    def notify_system_announcement(
        self, db: Session, title: str, message: str, target_users: list[int] | None = None
    ) -> list[Notification]:
        query = select(User.id)
        if target_users:
            query = query.where(User.id.in_(target_users))
        user_ids = db.scalars(query.order_by(User.id)).all()

        return [
            self.create_notification(
                db,
                user_id=user_id,
                type=NotificationType.SYSTEM_ANNOUNCEMENT,
                title=title,
                message=message,
                channels=[NotificationChannel.IN_APP, NotificationChannel.EMAIL],
                priority=NotificationPriority.HIGH,
                source=NotificationSource.ADMIN,
                category=NotificationCategory.SYSTEM,
            )
            for user_id in user_ids
        ]

    # ---------- Reading and state changes ----------
    def get_user_notifications(
        self,
        db: Session,
        user_id: int,
        *,
        status: str = NotificationStatus.UNREAD.value,
        type: str | None = None,
        priority: str | None = None,
        limit: int = 20,
        skip: int = 0,
    ) -> list[Notification]:
        query = select(Notification).where(Notification.user_id == user_id)
        if status != "all":
            query = query.where(Notification.status == status)
        if type:
            query = query.where(Notification.type == type)
        if priority:
            query = query.where(Notification.priority == priority)

        query = query.order_by(Notification.created_at.desc(), Notification.id.desc()).offset(skip).limit(limit)
        return list(db.scalars(query).all())

    def get_notifications_by_type(self, db: Session, user_id: int, type: str, limit: int = 20) -> list[Notification]:
        return self.get_user_notifications(db, user_id, status="all", type=type, limit=limit)

    def _get_owned(self, db: Session, notification_id: int, user_id: int) -> Notification:
        notification = db.scalar(
            select(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
        )
        if notification is None:
            raise NotificationNotFoundError()
        return notification

    def mark_as_read(self, db: Session, notification_id: int, user_id: int) -> Notification:
        notification = self._get_owned(db, notification_id, user_id)
        if notification.mark_as_read():
            db.commit()
            db.refresh(notification)
        return notification

    def mark_all_as_read(self, db: Session, user_id: int) -> int:
        result = db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.status == NotificationStatus.UNREAD.value)
            .values(status=NotificationStatus.READ.value, read_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return result.rowcount  # type: ignore

    def archive_notification(self, db: Session, notification_id: int, user_id: int) -> Notification:
        notification = self._get_owned(db, notification_id, user_id)
        if notification.archive():
            db.commit()
            db.refresh(notification)
        return notification

    def get_notification_stats(self, db: Session, user_id: int) -> dict:
        def count_where(condition):
            return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

        row = db.execute(
            select(
                func.count(Notification.id),
                count_where(Notification.status == NotificationStatus.UNREAD.value),
                count_where(Notification.status == NotificationStatus.READ.value),
                count_where(Notification.status == NotificationStatus.ARCHIVED.value),
                count_where(Notification.priority == NotificationPriority.HIGH.value),
                count_where(Notification.priority == NotificationPriority.URGENT.value),
            ).where(Notification.user_id == user_id)
        ).one()

        keys = ("total", "unread", "read", "archived", "high_priority", "urgent_priority")
        return {key: int(value or 0) for key, value in zip(keys, row)}

    def cleanup_old_notifications(self, db: Session, days_old: int = 30) -> int:
        cutoff = utcnow() - timedelta(days=days_old)
        result = db.execute(
            delete(Notification).where(
                Notification.status == NotificationStatus.ARCHIVED.value,
                Notification.archived_at < cutoff,
            )
        )
        db.commit()
        deleted = result.rowcount  # type: ignore
        self.logger.info("Old notifications cleaned up", days_old=days_old, deleted=deleted)
        return deleted


def _event_data(event: Event) -> dict:
    return {
        "eventId": event.id,
        "eventName": event.name,
        "eventDate": event.date.isoformat(),
        "eventUrl": f"{FRONTEND_URL}/events/{event.id}",
    }


notification_service = NotificationService()
