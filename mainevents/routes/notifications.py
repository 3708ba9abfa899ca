from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from mainevents.database.db import get_db
from mainevents.models.notifications import NotificationPriority, NotificationSource, NotificationType
from mainevents.models.users import User
from mainevents.routes.deps import get_current_user, require_admin
from mainevents.schemas.notifications import (
    CountOut,
    NotificationCreate,
    NotificationEnvelope,
    NotificationListOut,
    NotificationPageOut,
    StatsOut,
    SystemAnnouncement,
)
from mainevents.services.notifications import notification_service

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=NotificationPageOut)
def list_notifications(
    status: str = Query("unread", pattern="^(unread|read|archived|all)$"),
    type: NotificationType | None = None,
    priority: NotificationPriority | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    notifications = notification_service.get_user_notifications(
        db,
        user.id,
        status=status,
        type=type.value if type else None,
        priority=priority.value if priority else None,
        limit=limit,
        skip=(page - 1) * limit,
    )
    stats = notification_service.get_notification_stats(db, user.id)
    return {
        "data": {
            "notifications": notifications,
            "stats": stats,
            "pagination": {"current": page, "limit": limit, "total": stats["total"]},
        }
    }


@router.get("/stats", response_model=StatsOut)
def notification_stats(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"data": notification_service.get_notification_stats(db, user.id)}


@router.get("/type/{type}", response_model=NotificationListOut)
def notifications_by_type(
    type: NotificationType,
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return {"data": notification_service.get_notifications_by_type(db, user.id, type.value, limit=limit)}


@router.put("/read-all", response_model=CountOut)
def mark_all_read(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    count = notification_service.mark_all_as_read(db, user.id)
    return {"message": f"{count} notifications marked as read", "count": count}


@router.put("/{notification_id}/read", response_model=NotificationEnvelope)
def mark_read(notification_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    notification = notification_service.mark_as_read(db, notification_id, user.id)
    return {"message": "Notification marked as read", "data": notification}


@router.put("/{notification_id}/archive", response_model=NotificationEnvelope)
def archive(notification_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    notification = notification_service.archive_notification(db, notification_id, user.id)
    return {"message": "Notification archived", "data": notification}


@router.post("", response_model=NotificationEnvelope, status_code=201)
def create_notification(
    payload: NotificationCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    notification = notification_service.create_notification(
        db,
        user_id=payload.user_id,
        type=payload.type,
        title=payload.title,
        message=payload.message,
        data=payload.data,
        priority=payload.priority,
        channels=payload.channels,
        scheduled_for=payload.scheduled_for,
        source=NotificationSource.ADMIN,
    )
    return {"message": "Notification created", "data": notification}


@router.post("/announcement", response_model=CountOut)
def announcement(
    payload: SystemAnnouncement,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    sent = notification_service.notify_system_announcement(db, payload.title, payload.message, payload.target_users)
    return {"message": f"Announcement sent to {len(sent)} users", "count": len(sent)}


@router.delete("/cleanup", response_model=CountOut)
def cleanup(
    days_old: int = Query(30, ge=1, le=365, alias="daysOld"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    deleted = notification_service.cleanup_old_notifications(db, days_old)
    return {"message": f"{deleted} old notifications deleted", "count": deleted}
