from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from mainevents.database.db import get_db
from mainevents.models.users import User
from mainevents.routes.deps import get_current_user, require_admin
from mainevents.schemas.events import MessageOut
from mainevents.schemas.reviews import (
    EventReviewsOut,
    HelpfulRequest,
    ReviewCreate,
    ReviewEnvelope,
    ReviewStatusUpdate,
    ReviewUpdate,
    SortField,
    SortOrder,
    UserReviewsOut,
)
from mainevents.services import reviews as review_service
from mainevents.tasks import enqueue, notify_new_review_task

router = APIRouter(prefix="/api/reviews", tags=["reviews"])


@router.post("", response_model=ReviewEnvelope, status_code=201)
def create_review(payload: ReviewCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    review = review_service.create_review(db, user.id, payload)
    enqueue(notify_new_review_task, review.id)
    return {"message": "Review created successfully", "review": review}


@router.get("/event/{event_id}", response_model=EventReviewsOut)
def event_reviews(
    event_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: SortField = Query("created_at", alias="sortBy"),
    sort_order: SortOrder = Query("desc", alias="sortOrder"),
    db: Session = Depends(get_db),
):
    return review_service.get_event_reviews(
        db, event_id, page=page, limit=limit, sort_by=sort_by, sort_order=sort_order
    )


@router.get("/user", response_model=UserReviewsOut)
def my_reviews(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return review_service.get_user_reviews(db, user.id, page=page, limit=limit)


@router.put("/{review_id}", response_model=ReviewEnvelope)
def update_review(
    review_id: int,
    payload: ReviewUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    review = review_service.update_review(db, review_id, user.id, payload)
    return {"message": "Review updated successfully", "review": review}


@router.delete("/{review_id}", response_model=MessageOut)
def delete_review(review_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    review_service.delete_review(db, review_id, user.id)
    return {"message": "Review deleted successfully"}


@router.post("/{review_id}/helpful", response_model=ReviewEnvelope)
def mark_helpful(
    review_id: int,
    payload: HelpfulRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    review = review_service.mark_review_helpful(db, review_id, user.id, payload.helpful)
    return {"message": "Vote recorded", "review": review}


@router.put("/{review_id}/status", response_model=ReviewEnvelope)
def set_status(
    review_id: int,
    payload: ReviewStatusUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    review = review_service.set_review_status(db, review_id, payload.status)
    return {"message": f"Review {review.status}", "review": review}
