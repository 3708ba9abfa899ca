from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from mainevents.core.errors import EventNotFoundError
from mainevents.database.db import get_db
from mainevents.models.events import EventStatus, EventType
from mainevents.models.users import User
from mainevents.routes.deps import get_current_user
from mainevents.schemas.events import (
    AttendanceOut,
    AttendRequest,
    CommentRequest,
    EventCreate,
    EventEnvelope,
    EventListOut,
    EventOut,
    EventPageOut,
    EventStatsOut,
    EventUpdate,
    FavoriteOut,
    FavoriteRequest,
    MessageOut,
)
from mainevents.services import events as event_service
from mainevents.services.attendance import add_comment, attend_event, get_attendance_stats, toggle_favorite
from mainevents.tasks import (
    enqueue,
    notify_attendance_confirmed_task,
    notify_event_created_task,
    notify_new_comment_task,
)

router = APIRouter(prefix="/api/events", tags=["events"])


# Static paths are declared before /{event_id} so they are not captured by it.
@router.get("/featured", response_model=EventListOut)
def featured(limit: int = Query(6, ge=1, le=50), db: Session = Depends(get_db)):
    events = event_service.featured_events(db, limit=limit)
    return {"count": len(events), "events": events}


@router.get("/all", response_model=EventPageOut)
def all_events(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    type: EventType | None = None,
    estado: EventStatus | None = None,
    category: str | None = None,
    db: Session = Depends(get_db),
):
    return event_service.list_events(
        db,
        page=page,
        limit=limit,
        type=type.value if type else None,
        estado=estado.value if estado else None,
        category=category,
    )


@router.get("", response_model=EventListOut)
def my_events(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    events = event_service.events_owned_by(db, user.id)
    return {"count": len(events), "events": events}


@router.get("/attended", response_model=EventListOut)
def attended_events(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    events = event_service.events_attended_by(db, user.id)
    return {"count": len(events), "events": events}


@router.post("", response_model=EventEnvelope, status_code=201)
def create_event(payload: EventCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    event = event_service.create_event(db, user, payload)
    enqueue(notify_event_created_task, event.id)
    return {"message": "Event created successfully", "event": event}


@router.post("/attend/{event_id}", response_model=AttendanceOut)
def attend(
    event_id: int,
    payload: AttendRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    event = attend_event(db, event_id=event_id, user_id=user.id, quantity=payload.quantity)
    enqueue(notify_attendance_confirmed_task, event.id, user.id, payload.quantity)
    return {
        "message": f"{payload.quantity} ticket(s) purchased successfully",
        "concurrentes": event.concurrentes,
        "available": event.available,
    }


@router.post("/favorite", response_model=FavoriteOut)
def favorite(payload: FavoriteRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    favorited = toggle_favorite(db, event_id=payload.event_id, user_id=user.id)
    message = "Event added to favorites" if favorited else "Event removed from favorites"
    return {"message": message, "favorited": favorited}


@router.post("/comment", response_model=MessageOut, status_code=201)
def comment(payload: CommentRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    add_comment(db, event_id=payload.event_id, user_id=user.id, text=payload.text)
    enqueue(notify_new_comment_task, payload.event_id, user.id)
    return {"message": "Comment added"}


@router.get("/{event_id}", response_model=EventOut)
def get_event(event_id: int, db: Session = Depends(get_db)):
    return event_service.get_event(db, event_id, count_visit=True)


@router.get("/{event_id}/stats", response_model=EventStatsOut)
def event_stats(event_id: int, db: Session = Depends(get_db)):
    stats = get_attendance_stats(db, event_id)
    if not stats:
        raise EventNotFoundError(event_id)
    return stats


@router.put("/{event_id}", response_model=EventEnvelope)
def update_event(
    event_id: int,
    payload: EventUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    event = event_service.update_event(db, event_id, user, payload)
    return {"message": "Event updated successfully", "event": event}


@router.delete("/{event_id}", response_model=MessageOut)
def delete_event(event_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    event_service.delete_event(db, event_id, user)
    return {"message": "Event deleted successfully"}
