from contextlib import contextmanager

import redis
import structlog
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from mainevents.core.config import EVENT_LOCK_BLOCKING_TIMEOUT, EVENT_LOCK_TIMEOUT, get_redis_url
from mainevents.core.errors import (
    AttendanceBusyError,
    CapacityExceededError,
    EventNotActiveError,
    EventNotFoundError,
    SelfAttendanceError,
)
from mainevents.models.events import Event, EventAttendee, EventComment, EventFavorite, EventStatus

logger = structlog.get_logger(__name__)


def get_redis_client():
    """Get Redis client for locking."""
    return redis.from_url(get_redis_url(), decode_responses=True)


def event_lock_key(event_id: int) -> str:
    return f"event_lock:{event_id}"


def release_lock(lock, event_id: int) -> None:
    """Release a per-event lock; an expired lock is only logged, the work is already committed."""
    try:
        lock.release()
    except redis.exceptions.LockError:  # type: ignore
        logger.warning("Event lock expired before release", event_id=event_id)


@contextmanager
def event_lock(event_id: int):
    """Hold the per-event Redis lock; raises AttendanceBusyError when it cannot be taken in time."""
    lock = get_redis_client().lock(
        event_lock_key(event_id),
        timeout=EVENT_LOCK_TIMEOUT,
        blocking_timeout=EVENT_LOCK_BLOCKING_TIMEOUT,
    )
    try:
        acquired = lock.acquire(blocking=True, blocking_timeout=EVENT_LOCK_BLOCKING_TIMEOUT)
    except redis.exceptions.LockError:  # type: ignore
        raise AttendanceBusyError()
    if not acquired:
        raise AttendanceBusyError()

    try:
        yield lock
    finally:
        release_lock(lock, event_id)


def attend_event(db: Session, *, event_id: int, user_id: int, quantity: int) -> Event:
    """
    Reserve ``quantity`` tickets of an event for a user.

    The read-check-write runs under a per-event Redis lock, and the reservation
    itself is a conditional UPDATE that only succeeds while
    ``concurrentes + quantity <= capacidad``, so concurrent requests can never
    oversell the event.
    """
    with event_lock(event_id):
        try:
            event = reserve_seats(db, event_id, user_id, quantity)
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(event)
    logger.info(
        "Tickets reserved",
        event_id=event_id,
        user_id=user_id,
        quantity=quantity,
        concurrentes=event.concurrentes,
        available=event.available,
    )
    return event


def reserve_seats(db: Session, event_id: int, user_id: int, quantity: int) -> Event:
    """Reserve seats inside the caller's transaction; the caller holds the event lock and commits."""
    event = db.get(Event, event_id)
    if event is None:
        raise EventNotFoundError(event_id)
    if event.estado != EventStatus.ACTIVO.value:
        raise EventNotActiveError()
    if event.user_id == user_id:
        raise SelfAttendanceError()

    reserved = reserved_quantity(db, event_id)
    if reserved + quantity > event.capacidad:
        raise CapacityExceededError(available=event.capacidad - reserved)

    # Check capacity and reserve atomically
    stmt = (
        update(Event)
        .where(Event.id == event_id)
        .where(Event.concurrentes + quantity <= Event.capacidad)
        .values(concurrentes=Event.concurrentes + quantity)
        .execution_options(synchronize_session=False)
    )
    res = db.execute(stmt)
    if res.rowcount != 1:  # type: ignore
        raise CapacityExceededError(available=event.capacidad - reserved)

    attendee = db.scalar(
        select(EventAttendee).where(EventAttendee.event_id == event_id, EventAttendee.user_id == user_id)
    )
    if attendee is not None:
        attendee.quantity += quantity
    else:
        db.add(EventAttendee(event_id=event_id, user_id=user_id, quantity=quantity))
    db.flush()

    # concurrentes is always rebuilt from the attendee records, never just incremented
    db.execute(
        update(Event)
        .where(Event.id == event_id)
        .values(concurrentes=reserved_quantity(db, event_id))
        .execution_options(synchronize_session=False)
    )
    return event


def reserved_quantity(db: Session, event_id: int) -> int:
    total = db.scalar(
        select(func.coalesce(func.sum(EventAttendee.quantity), 0)).where(EventAttendee.event_id == event_id)
    )
    return int(total or 0)


def move_seats(db: Session, event_id: int, from_user_id: int, to_user_id: int, quantity: int) -> None:
    """
    Hand ``quantity`` reserved seats from one attendee to another inside the
    caller's transaction. ``concurrentes`` does not change.
    """
    giver = db.scalar(
        select(EventAttendee).where(EventAttendee.event_id == event_id, EventAttendee.user_id == from_user_id)
    )
    if giver is None or giver.quantity < quantity:
        raise ValueError("Attendee does not hold enough seats to move")

    if giver.quantity == quantity:
        db.delete(giver)
    else:
        giver.quantity -= quantity

    receiver = db.scalar(
        select(EventAttendee).where(EventAttendee.event_id == event_id, EventAttendee.user_id == to_user_id)
    )
    if receiver is not None:
        receiver.quantity += quantity
    else:
        db.add(EventAttendee(event_id=event_id, user_id=to_user_id, quantity=quantity))
    db.flush()


def toggle_favorite(db: Session, *, event_id: int, user_id: int) -> bool:
    """Add or remove the user from the event's favorites. Returns True when now favorited."""
    if db.get(Event, event_id) is None:
        raise EventNotFoundError(event_id)

    favorite = db.get(EventFavorite, (event_id, user_id))
    if favorite is None:
        db.add(EventFavorite(event_id=event_id, user_id=user_id))
        favorited = True
    else:
        db.delete(favorite)
        favorited = False
    db.commit()
    return favorited


def add_comment(db: Session, *, event_id: int, user_id: int, text: str) -> EventComment:
    if db.get(Event, event_id) is None:
        raise EventNotFoundError(event_id)

    comment = EventComment(event_id=event_id, user_id=user_id, text=text)
    db.add(comment)
    db.commit()
    db.refresh(comment)
    return comment


def get_attendance_stats(db: Session, event_id: int) -> dict:
    event = db.get(Event, event_id)
    if not event:
        return {}

    attendee_count = db.scalar(select(func.count(EventAttendee.id)).where(EventAttendee.event_id == event_id))
    favorite_count = db.scalar(select(func.count()).select_from(EventFavorite).where(EventFavorite.event_id == event_id))

    return {
        "event_id": event.id,
        "capacidad": event.capacidad,
        "concurrentes": event.concurrentes,
        "available": event.available,
        "attendee_count": int(attendee_count or 0),
        "favorite_count": int(favorite_count or 0),
    }
