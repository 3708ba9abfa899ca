import math
from datetime import datetime

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from mainevents.core.errors import EventHasPaymentsError, EventNotFoundError, NotEventOwnerError, ValidationError
from mainevents.core.utils import utcnow
from mainevents.models.events import Event, EventAttendee, EventStatus
from mainevents.models.payments import Payment
from mainevents.models.reviews import Review, ReviewVote
from mainevents.models.users import User
from mainevents.schemas.events import EventCreate, EventUpdate
from mainevents.services.attendance import event_lock

logger = structlog.get_logger(__name__)

_ENUM_FIELDS = ("type", "estado", "visibility")


def _plain(data: dict) -> dict:
    return {key: getattr(value, "value", value) if key in _ENUM_FIELDS else value for key, value in data.items()}


def create_event(db: Session, owner: User, payload: EventCreate) -> Event:
    data = _plain(payload.model_dump())
    if not data.get("organizer"):
        data["organizer"] = owner.name

    event = Event(**data, user_id=owner.id, concurrentes=0)
    db.add(event)
    db.commit()
    db.refresh(event)
    logger.info("Event created", event_id=event.id, user_id=owner.id)
    return event


def get_event(db: Session, event_id: int, *, count_visit: bool = False) -> Event:
    event = db.get(Event, event_id)
    if event is None:
        raise EventNotFoundError(event_id)

    if count_visit:
        db.execute(
            update(Event)
            .where(Event.id == event_id)
            .values(visitas=Event.visitas + 1)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        db.refresh(event)
    return event


def _get_owned_event(db: Session, event_id: int, user: User) -> Event:
    event = db.get(Event, event_id)
    if event is None:
        raise EventNotFoundError(event_id)
    if event.user_id != user.id:
        raise NotEventOwnerError()
    return event


def update_event(db: Session, event_id: int, user: User, payload: EventUpdate) -> Event:
    """
    Apply a partial update. A capacity change runs under the event's lock and is
    written as a conditional UPDATE, so it can never drop below the tickets sold
    by a reservation committed in another session.
    """
    event = _get_owned_event(db, event_id, user)
    changes = _plain(payload.model_dump(exclude_unset=True))

    start = changes.get("date", event.date)
    end = changes.get("end_date", event.end_date)
    if end is not None and start is not None and end <= start:
        raise ValidationError("endDate must be after the start date")

    fields = sorted(changes)
    capacidad = changes.pop("capacidad", None)
    with event_lock(event_id):
        try:
            if capacidad is not None:
                result = db.execute(
                    update(Event)
                    .where(Event.id == event_id, Event.concurrentes <= capacidad)
                    .values(capacidad=capacidad)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    sold = db.scalar(select(Event.concurrentes).where(Event.id == event_id))
                    raise ValidationError(
                        "Capacity cannot be lower than the tickets already sold",
                        concurrentes=sold,
                    )
            for key, value in changes.items():
                setattr(event, key, value)
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(event)
    logger.info("Event updated", event_id=event.id, fields=fields)
    return event


def delete_event(db: Session, event_id: int, user: User) -> None:
    event = _get_owned_event(db, event_id, user)
    if db.scalar(select(func.count(Payment.id)).where(Payment.event_id == event_id)):
        raise EventHasPaymentsError()

    review_ids = select(Review.id).where(Review.event_id == event_id)
    db.execute(delete(ReviewVote).where(ReviewVote.review_id.in_(review_ids)))
    db.execute(delete(Review).where(Review.event_id == event_id))
    db.delete(event)
    db.commit()
    logger.info("Event deleted", event_id=event_id, user_id=user.id)


def list_events(
    db: Session,
    *,
    page: int = 1,
    limit: int = 10,
    type: str | None = None,
    estado: str | None = None,
    category: str | None = None,
) -> dict:
    filters = []
    if type:
        filters.append(Event.type == type)
    if estado:
        filters.append(Event.estado == estado)
    if category:
        filters.append(Event.category == category)

    events = db.scalars(
        select(Event).where(*filters).order_by(Event.date.asc(), Event.id.asc()).offset((page - 1) * limit).limit(limit)
    ).all()
    total = db.scalar(select(func.count(Event.id)).where(*filters)) or 0

    return {
        "events": list(events),
        "total_pages": math.ceil(total / limit),
        "current_page": page,
        "total": total,
    }


def featured_events(db: Session, *, limit: int = 6) -> list[Event]:
    """Active upcoming events, most visited first."""
    return list(
        db.scalars(
            select(Event)
            .where(Event.estado == EventStatus.ACTIVO.value, Event.date >= utcnow())
            .order_by(Event.visitas.desc(), Event.date.asc())
            .limit(limit)
        ).all()
    )


def events_owned_by(db: Session, user_id: int) -> list[Event]:
    return list(db.scalars(select(Event).where(Event.user_id == user_id).order_by(Event.created_at.desc(), Event.id.desc())).all())


def events_attended_by(db: Session, user_id: int) -> list[Event]:
    return list(
        db.scalars(
            select(Event)
            .join(EventAttendee, EventAttendee.event_id == Event.id)
            .where(EventAttendee.user_id == user_id)
            .order_by(Event.date.asc())
        ).all()
    )


def events_happening_between(db: Session, start: datetime, end: datetime) -> list[Event]:
    return list(
        db.scalars(
            select(Event).where(
                Event.estado == EventStatus.ACTIVO.value,
                Event.date >= start,
                Event.date < end,
            )
        ).all()
    )
