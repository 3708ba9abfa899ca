from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, Field

from mainevents.models.reviews import ReviewStatus

Score = Annotated[int | None, Field(ge=1, le=5)]


class ReviewCategories(BaseModel):
    organization: Score = None
    value: Score = None
    experience: Score = None
    service: Score = None


class ReviewCreate(BaseModel):
    event: int = Field(ge=1)
    rating: int = Field(ge=1, le=5)
    title: str | None = Field(default=None, max_length=100)
    comment: str = Field(min_length=10, max_length=1000)
    categories: ReviewCategories | None = None

    class Config:
        str_strip_whitespace = True


class ReviewUpdate(BaseModel):
    rating: int | None = Field(default=None, ge=1, le=5)
    title: str | None = Field(default=None, max_length=100)
    comment: str | None = Field(default=None, min_length=10, max_length=1000)
    categories: ReviewCategories | None = None

    class Config:
        str_strip_whitespace = True


class HelpfulRequest(BaseModel):
    helpful: bool


class ReviewStatusUpdate(BaseModel):
    status: ReviewStatus


class ReviewOut(BaseModel):
    id: int
    user_id: int
    event_id: int
    rating: int
    title: str | None
    comment: str
    categories: ReviewCategories
    verified: bool
    status: str
    helpful_count: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ReviewEnvelope(BaseModel):
    success: bool = True
    message: str
    review: ReviewOut


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class ReviewStats(BaseModel):
    average_rating: float
    total_reviews: int
    rating_distribution: dict[int, int]


class EventReviewsOut(BaseModel):
    success: bool = True
    reviews: list[ReviewOut]
    pagination: Pagination
    stats: ReviewStats


class UserReviewsOut(BaseModel):
    success: bool = True
    reviews: list[ReviewOut]
    pagination: Pagination


SortField = Literal["created_at", "rating"]
SortOrder = Literal["asc", "desc"]
