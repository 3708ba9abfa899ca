import enum
from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from mainevents.core.utils import utcnow
from mainevents.database.db import Base
from mainevents.models.users import User  # noqa: F401  (users table must be registered for the FK)


class NotificationType(str, enum.Enum):
    EVENT_CREATED = "event_created"
    EVENT_UPDATED = "event_updated"
    EVENT_CANCELLED = "event_cancelled"
    EVENT_REMINDER = "event_reminder"
    ATTENDANCE_CONFIRMED = "attendance_confirmed"
    ATTENDANCE_CANCELLED = "attendance_cancelled"
    PAYMENT_COMPLETED = "payment_completed"
    PAYMENT_FAILED = "payment_failed"
    REFUND_REQUESTED = "refund_requested"
    REFUND_PROCESSED = "refund_processed"
    TICKET_TRANSFERRED = "ticket_transferred"
    TICKET_DOWNLOADED = "ticket_downloaded"
    NEW_COMMENT = "new_comment"
    NEW_REVIEW = "new_review"
    SYSTEM_ANNOUNCEMENT = "system_announcement"
    SECURITY_ALERT = "security_alert"


class NotificationStatus(str, enum.Enum):
    UNREAD = "unread"
    READ = "read"
    ARCHIVED = "archived"


class NotificationPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class NotificationChannel(str, enum.Enum):
    IN_APP = "in_app"
    EMAIL = "email"
    PUSH = "push"
    SMS = "sms"


class NotificationSource(str, enum.Enum):
    SYSTEM = "system"
    USER = "user"
    ADMIN = "admin"
    AUTOMATED = "automated"


class NotificationCategory(str, enum.Enum):
    EVENT = "event"
    PAYMENT = "payment"
    SECURITY = "security"
    SYSTEM = "system"
    SOCIAL = "social"


class RelatedEntityType(str, enum.Enum):
    EVENT = "Event"
    PAYMENT = "Payment"
    TICKET = "Ticket"
    ATTENDANCE = "Attendance"
    USER = "User"


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(String(1000), nullable=False)
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default=NotificationPriority.MEDIUM.value)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=NotificationStatus.UNREAD.value, index=True)
    channels: Mapped[list] = mapped_column(JSON, nullable=False, default=lambda: [NotificationChannel.IN_APP.value])
    scheduled_for: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    read_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    source: Mapped[str] = mapped_column(String(16), nullable=False, default=NotificationSource.SYSTEM.value)
    category: Mapped[str] = mapped_column(String(16), nullable=False, default=NotificationCategory.SYSTEM.value)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    related_entity_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    related_entity_type: Mapped[str | None] = mapped_column(String(16), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @validates("status")
    def _stamp_status_transition(self, key, value):
        # read_at / archived_at record the first time each state was entered
        if value == NotificationStatus.READ.value and self.read_at is None:
            self.read_at = utcnow()
        elif value == NotificationStatus.ARCHIVED.value and self.archived_at is None:
            self.archived_at = utcnow()
        return value

    def mark_as_read(self) -> bool:
        if self.status != NotificationStatus.UNREAD.value:
            return False
        self.status = NotificationStatus.READ.value
        return True

    def archive(self) -> bool:
        if self.status == NotificationStatus.ARCHIVED.value:
            return False
        self.status = NotificationStatus.ARCHIVED.value
        return True
