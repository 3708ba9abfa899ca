from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from mainevents.core.utils import to_naive_utc
from mainevents.models.notifications import (
    NotificationChannel,
    NotificationPriority,
    NotificationType,
)


class NotificationCreate(BaseModel):
    user_id: int = Field(ge=1, alias="userId")
    type: NotificationType
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=1000)
    data: dict = Field(default_factory=dict)
    priority: NotificationPriority = NotificationPriority.MEDIUM
    channels: list[NotificationChannel] = Field(default_factory=lambda: [NotificationChannel.IN_APP])
    scheduled_for: datetime | None = Field(default=None, alias="scheduledFor")

    class Config:
        populate_by_name = True

    @field_validator("scheduled_for")
    @classmethod
    def _naive_utc(cls, value):
        return to_naive_utc(value)


class SystemAnnouncement(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=1000)
    target_users: list[int] | None = Field(default=None, alias="targetUsers")

    class Config:
        populate_by_name = True


class NotificationOut(BaseModel):
    id: int
    user_id: int
    type: str
    title: str
    message: str
    data: dict
    priority: str
    status: str
    channels: list[str]
    scheduled_for: datetime
    sent_at: datetime | None
    read_at: datetime | None
    archived_at: datetime | None
    source: str
    category: str
    tags: list[str]
    related_entity_id: int | None
    related_entity_type: str | None
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationStats(BaseModel):
    total: int = 0
    unread: int = 0
    read: int = 0
    archived: int = 0
    high_priority: int = 0
    urgent_priority: int = 0


class NotificationPagination(BaseModel):
    current: int
    limit: int
    total: int


class NotificationPage(BaseModel):
    notifications: list[NotificationOut]
    stats: NotificationStats
    pagination: NotificationPagination


class NotificationPageOut(BaseModel):
    success: bool = True
    data: NotificationPage


class NotificationEnvelope(BaseModel):
    success: bool = True
    message: str
    data: NotificationOut


class NotificationListOut(BaseModel):
    success: bool = True
    data: list[NotificationOut]


class StatsOut(BaseModel):
    success: bool = True
    data: NotificationStats


class CountOut(BaseModel):
    success: bool = True
    message: str
    count: int
