"""
Test reviews and event rating aggregation.
"""
import pytest
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
from mainevents.models.reviews import ReviewStatus
from mainevents.schemas.reviews import ReviewCreate, ReviewUpdate
from mainevents.services import reviews as review_service
from mainevents.services.attendance import attend_event


@pytest.fixture
def attended_event(db_session: Session, make_user, make_event):
    """An event plus a factory for users that already hold a ticket to it."""
    owner = make_user("Owner")
    event = make_event(owner, capacidad=100)

    def _attendee(name: str = "Guest"):
        user = make_user(name)
        attend_event(db_session, event_id=event.id, user_id=user.id, quantity=1)
        return user

    return event, _attendee


def review_payload(event_id: int, rating: int = 5, **overrides) -> ReviewCreate:
    data = {"event": event_id, "rating": rating, "comment": "Una experiencia inolvidable"}
    data.update(overrides)
    return ReviewCreate(**data)


class TestCreateReview:
    """Test review creation rules."""

    def test_attendee_can_review(self, db_session: Session, attended_event):
        event, attendee = attended_event
        user = attendee()

        review = review_service.create_review(
            db_session, user.id, review_payload(event.id, categories={"organization": 4, "service": 5})
        )

        assert review.verified is True
        assert review.status == ReviewStatus.PENDING.value
        assert review.categories["organization"] == 4
        assert review.categories["value"] is None

    def test_review_requires_attendance(self, db_session: Session, attended_event, make_user):
        event, _ = attended_event

        with pytest.raises(NotAttendedError):
            review_service.create_review(db_session, make_user("Stranger").id, review_payload(event.id))

    def test_duplicate_review_rejected(self, db_session: Session, attended_event):
        event, attendee = attended_event
        user = attendee()
        review_service.create_review(db_session, user.id, review_payload(event.id))

        with pytest.raises(DuplicateReviewError):
            review_service.create_review(db_session, user.id, review_payload(event.id, rating=1))

    def test_missing_event(self, db_session: Session, make_user):
        with pytest.raises(EventNotFoundError):
            review_service.create_review(db_session, make_user().id, review_payload(404))


class TestRatingAggregation:
    """Event rating reflects approved reviews only."""

    def test_pending_reviews_do_not_count(self, db_session: Session, attended_event):
        event, attendee = attended_event
        review_service.create_review(db_session, attendee("A").id, review_payload(event.id, rating=2))

        db_session.refresh(event)
        assert event.rating == {"average": 0, "count": 0}

    def test_approval_and_deletion_recompute(self, db_session: Session, attended_event):
        event, attendee = attended_event
        a, b, c = attendee("A"), attendee("B"), attendee("C")
        ids = [
            review_service.create_review(db_session, user.id, review_payload(event.id, rating=rating)).id
            for user, rating in ((a, 5), (b, 4), (c, 4))
        ]
        for review_id in ids:
            review_service.set_review_status(db_session, review_id, ReviewStatus.APPROVED)

        db_session.refresh(event)
        assert event.rating_count == 3
        assert event.rating_average == round_half_up(13 / 3)  # 4.3

        review_service.set_review_status(db_session, ids[0], ReviewStatus.REJECTED)
        db_session.refresh(event)
        assert (event.rating_average, event.rating_count) == (4.0, 2)

        review_service.delete_review(db_session, ids[1], b.id)
        review_service.delete_review(db_session, ids[2], c.id)
        db_session.refresh(event)
        assert (event.rating_average, event.rating_count) == (0, 0)

    def test_update_recomputes(self, db_session: Session, attended_event):
        event, attendee = attended_event
        user = attendee()
        review = review_service.create_review(db_session, user.id, review_payload(event.id, rating=3))
        review_service.set_review_status(db_session, review.id, ReviewStatus.APPROVED)

        review_service.update_review(db_session, review.id, user.id, ReviewUpdate(rating=5))

        db_session.refresh(event)
        assert (event.rating_average, event.rating_count) == (5.0, 1)

    def test_half_up_rounding(self):
        assert round_half_up(4.25) == 4.3
        assert round_half_up(4.35) == 4.4
        assert round_half_up(4.24) == 4.2


class TestReviewOwnership:
    def test_only_author_can_update_or_delete(self, db_session: Session, attended_event):
        event, attendee = attended_event
        author, other = attendee("Author"), attendee("Other")
        review = review_service.create_review(db_session, author.id, review_payload(event.id))

        with pytest.raises(AuthorizationError):
            review_service.update_review(db_session, review.id, other.id, ReviewUpdate(rating=1))
        with pytest.raises(AuthorizationError):
            review_service.delete_review(db_session, review.id, other.id)

    def test_missing_review(self, db_session: Session, make_user):
        with pytest.raises(ReviewNotFoundError):
            review_service.update_review(db_session, 77, make_user().id, ReviewUpdate(rating=1))


class TestHelpfulVotes:
    def test_one_vote_per_user(self, db_session: Session, attended_event, make_user):
        event, attendee = attended_event
        author = attendee("Author")
        voter = make_user("Voter")
        review = review_service.create_review(db_session, author.id, review_payload(event.id))

        review = review_service.mark_review_helpful(db_session, review.id, voter.id, True)
        assert review.helpful_count == 1
        review = review_service.mark_review_helpful(db_session, review.id, voter.id, True)
        assert review.helpful_count == 1
        review = review_service.mark_review_helpful(db_session, review.id, voter.id, False)
        assert review.helpful_count == 0

    def test_cannot_vote_own_review(self, db_session: Session, attended_event):
        event, attendee = attended_event
        author = attendee("Author")
        review = review_service.create_review(db_session, author.id, review_payload(event.id))

        with pytest.raises(ConflictError):
            review_service.mark_review_helpful(db_session, review.id, author.id, True)


class TestReviewListings:
    def test_event_reviews_only_approved_with_stats(self, db_session: Session, attended_event):
        event, attendee = attended_event
        ratings = {"A": 5, "B": 3, "C": 1}
        reviews = {
            name: review_service.create_review(db_session, attendee(name).id, review_payload(event.id, rating=r))
            for name, r in ratings.items()
        }
        review_service.set_review_status(db_session, reviews["A"].id, ReviewStatus.APPROVED)
        review_service.set_review_status(db_session, reviews["B"].id, ReviewStatus.APPROVED)

        result = review_service.get_event_reviews(db_session, event.id, sort_by="rating", sort_order="asc")

        assert [r.rating for r in result["reviews"]] == [3, 5]
        assert result["pagination"] == {"page": 1, "limit": 10, "total": 2, "pages": 1}
        assert result["stats"]["average_rating"] == 4.0
        assert result["stats"]["total_reviews"] == 2
        assert result["stats"]["rating_distribution"] == {5: 1, 4: 0, 3: 1, 2: 0, 1: 0}

    def test_user_reviews_include_pending(self, db_session: Session, attended_event):
        event, attendee = attended_event
        user = attendee()
        review_service.create_review(db_session, user.id, review_payload(event.id))

        result = review_service.get_user_reviews(db_session, user.id)

        assert len(result["reviews"]) == 1
        assert result["pagination"]["total"] == 1
