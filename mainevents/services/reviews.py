import math

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from mainevents.core.errors import (
    AuthorizationError,
    ConflictError,
    DuplicateReviewError,
    EventNotFoundError,
    NotAttendedError,
    ReviewNotFoundError,
)
from mainevents.core.utils import round_half_up
from mainevents.models.events import Event, EventAttendee
from mainevents.models.reviews import Review, ReviewStatus, ReviewVote
from mainevents.schemas.reviews import ReviewCategories, ReviewCreate, ReviewUpdate

logger = structlog.get_logger(__name__)


def _category_columns(categories: ReviewCategories | None) -> dict:
    if categories is None:
        return {}
    return {
        "organization_rating": categories.organization,
        "value_rating": categories.value,
        "experience_rating": categories.experience,
        "service_rating": categories.service,
    }


def recompute_event_rating(db: Session, event_id: int) -> tuple[float, int]:
    """Overwrite the event's cached rating with the aggregate of its approved reviews."""
    avg_rating, count = db.execute(
        select(func.avg(Review.rating), func.count(Review.id)).where(
            Review.event_id == event_id, Review.status == ReviewStatus.APPROVED.value
        )
    ).one()
    average = round_half_up(float(avg_rating)) if count else 0.0

    db.execute(
        update(Event)
        .where(Event.id == event_id)
        .values(rating_average=average, rating_count=int(count))
        .execution_options(synchronize_session=False)
    )
    return average, int(count)


def _save(db: Session, review: Review) -> Review:
    db.flush()
    recompute_event_rating(db, review.event_id)
    db.commit()
    db.refresh(review)
    return review


def create_review(db: Session, user_id: int, payload: ReviewCreate) -> Review:
    existing = db.scalar(select(Review.id).where(Review.user_id == user_id, Review.event_id == payload.event))
    if existing is not None:
        raise DuplicateReviewError()

    event = db.get(Event, payload.event)
    if event is None:
        raise EventNotFoundError(payload.event)

    attended = db.scalar(
        select(EventAttendee.id).where(EventAttendee.event_id == event.id, EventAttendee.user_id == user_id)
    )
    if attended is None:
        raise NotAttendedError()

    review = Review(
        user_id=user_id,
        event_id=event.id,
        rating=payload.rating,
        title=payload.title,
        comment=payload.comment,
        verified=True,
        **_category_columns(payload.categories),
    )
    db.add(review)
    review = _save(db, review)
    logger.info("Review created", review_id=review.id, event_id=event.id, user_id=user_id)
    return review


def _get_review(db: Session, review_id: int) -> Review:
    review = db.get(Review, review_id)
    if review is None:
        raise ReviewNotFoundError()
    return review


def _get_authored(db: Session, review_id: int, user_id: int, action: str) -> Review:
    review = _get_review(db, review_id)
    if review.user_id != user_id:
        raise AuthorizationError(f"You do not have permission to {action} this review")
    return review


def update_review(db: Session, review_id: int, user_id: int, payload: ReviewUpdate) -> Review:
    review = _get_authored(db, review_id, user_id, "update")
    changes = payload.model_dump(exclude_unset=True, exclude={"categories"})
    changes.update(_category_columns(payload.categories))
    for key, value in changes.items():
        setattr(review, key, value)
    return _save(db, review)


def delete_review(db: Session, review_id: int, user_id: int) -> None:
    review = _get_authored(db, review_id, user_id, "delete")
    event_id = review.event_id
    db.delete(review)
    db.flush()
    recompute_event_rating(db, event_id)
    db.commit()


def set_review_status(db: Session, review_id: int, status: ReviewStatus) -> Review:
    review = _get_review(db, review_id)
    review.status = getattr(status, "value", status)
    return _save(db, review)


def mark_review_helpful(db: Session, review_id: int, user_id: int, helpful: bool) -> Review:
    review = _get_review(db, review_id)
    if review.user_id == user_id:
        raise ConflictError("You cannot mark your own review as helpful")

    vote = db.get(ReviewVote, (review_id, user_id))
    if vote is not None:
        vote.helpful = helpful
    else:
        db.add(ReviewVote(review_id=review_id, user_id=user_id, helpful=helpful))
    db.commit()
    db.refresh(review)
    return review


def get_event_reviews(
    db: Session,
    event_id: int,
    *,
    page: int = 1,
    limit: int = 10,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> dict:
    filters = (Review.event_id == event_id, Review.status == ReviewStatus.APPROVED.value)
    column = getattr(Review, sort_by)
    order = column.desc() if sort_order == "desc" else column.asc()

    reviews = db.scalars(
        select(Review).where(*filters).order_by(order, Review.id.desc()).offset((page - 1) * limit).limit(limit)
    ).all()
    total = db.scalar(select(func.count(Review.id)).where(*filters)) or 0

    distribution = {5: 0, 4: 0, 3: 0, 2: 0, 1: 0}
    for rating, count in db.execute(select(Review.rating, func.count(Review.id)).where(*filters).group_by(Review.rating)):
        distribution[rating] = count
    avg_rating = db.scalar(select(func.avg(Review.rating)).where(*filters))

    return {
        "reviews": list(reviews),
        "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
        "stats": {
            "average_rating": round_half_up(float(avg_rating)) if avg_rating is not None else 0,
            "total_reviews": total,
            "rating_distribution": distribution,
        },
    }


def get_user_reviews(db: Session, user_id: int, *, page: int = 1, limit: int = 10) -> dict:
    reviews = db.scalars(
        select(Review)
        .where(Review.user_id == user_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()
    total = db.scalar(select(func.count(Review.id)).where(Review.user_id == user_id)) or 0
    return {
        "reviews": list(reviews),
        "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
    }
