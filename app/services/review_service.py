"""
Review Service

Ratings and watch/like flags for movies and series. A user has at most one
review per media item; writing a rating again updates it in place.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import ErrorCode, ValidationError
from app.models.media import MediaType, Movie, Tv
from app.models.review import MovieReview, TvReview
from app.utils.transactions import run_in_transaction
from app.utils.upsert import insert_for
from app.utils.validators import coerce_media_type, require_positive_id

logger = logging.getLogger(__name__)

REVIEW_FLAGS = ("liked", "watched")


@dataclass(frozen=True)
class ReviewTarget:
    model: Any
    media_model: Any
    id_column_name: str

    @property
    def id_column(self):
        return getattr(self.model, self.id_column_name)


REVIEW_TARGETS: dict[MediaType, ReviewTarget] = {
    MediaType.MOVIE: ReviewTarget(model=MovieReview, media_model=Movie, id_column_name="movie_id"),
    MediaType.TV: ReviewTarget(model=TvReview, media_model=Tv, id_column_name="series_id"),
}


@dataclass(frozen=True)
class RatingSummary:
    avg_rating: float | None
    review_count: int


@dataclass(frozen=True)
class UserReviewEntry:
    media_id: int
    media_type: MediaType
    title: str
    poster_path: str | None
    rating: Decimal
    created_at: datetime


def validate_rating(raw: Any) -> Decimal:
    """
    Parse a rating and check it against the configured range and half-point step.

    Raises:
        ValidationError: With the reason the rating was rejected
    """
    try:
        value = Decimal(str(raw).strip()) if raw is not None else None
    except InvalidOperation:
        value = None
    if value is None or not value.is_finite():
        raise ValidationError("Rating must be a valid number", field="rating", error_code=ErrorCode.VALIDATION_INVALID_RATING)

    low = Decimal(str(settings.rating_min))
    high = Decimal(str(settings.rating_max))
    if value < low or value > high:
        raise ValidationError(
            f"Rating must be between {low} and {high}",
            field="rating",
            error_code=ErrorCode.VALIDATION_INVALID_RATING,
        )

    if (value * 2) % 1 != 0:
        raise ValidationError("Rating must be in 0.5 increments", field="rating", error_code=ErrorCode.VALIDATION_INVALID_RATING)

    return value


def _target(media_type: MediaType | str) -> ReviewTarget:
    return REVIEW_TARGETS[coerce_media_type(media_type)]


class ReviewService:
    """Service for user reviews of movies and series."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def upsert(self, user_id: str, media_type: MediaType | str, media_id: int, raw_rating: Any):
        """
        Create or update the user's rating for a media item.

        New reviews start with liked=False, watched=True and no text. An
        existing review only has its rating and updated_at changed.

        Returns:
            The stored MovieReview / TvReview row
        """
        target = _target(media_type)
        require_positive_id(media_id, "media_id")
        rating = validate_rating(raw_rating)
        now = datetime.utcnow()

        stmt = (
            insert_for(self.db, target.model)
            .values(
                user_id=user_id,
                media_type=coerce_media_type(media_type),
                rating=rating,
                liked=False,
                watched=True,
                review=None,
                created_at=now,
                updated_at=now,
                **{target.id_column_name: media_id},
            )
        )
        stmt = (
            stmt.on_conflict_do_update(
                index_elements=["user_id", target.id_column_name],
                set_={"rating": stmt.excluded.rating, "updated_at": stmt.excluded.updated_at},
            )
            .returning(target.model)
            .execution_options(populate_existing=True)
        )

        async def operation():
            return (await self.db.execute(stmt)).scalar_one()

        review = await run_in_transaction(self.db, operation, name="upsert_review")
        logger.info("User %s rated %s %d: %s", user_id, target.id_column_name, media_id, rating, extra={"user_id": user_id})
        return review

    async def get_review(self, user_id: str, media_type: MediaType | str, media_id: int):
        target = _target(media_type)
        result = await self.db.execute(
            select(target.model).where(target.model.user_id == user_id, target.id_column == media_id)
        )
        return result.scalar_one_or_none()

    async def average_for(self, media_type: MediaType | str, media_id: int) -> RatingSummary:
        """Average rating and review count; avg_rating is None without reviews."""
        target = _target(media_type)
        row = (
            await self.db.execute(
                select(
                    func.avg(target.model.rating).label("avg_rating"),
                    func.count(target.model.rating).label("review_count"),
                ).where(target.id_column == media_id)
            )
        ).one()

        review_count = row.review_count or 0
        if review_count == 0 or row.avg_rating is None:
            return RatingSummary(avg_rating=None, review_count=0)
        return RatingSummary(avg_rating=float(row.avg_rating), review_count=review_count)

    async def get_user_reviews(self, user_id: str) -> list[UserReviewEntry]:
        """All of a user's reviews across movies and series, newest first."""
        entries = []
        for media_type, target in REVIEW_TARGETS.items():
            media = target.media_model
            result = await self.db.execute(
                select(
                    target.id_column.label("media_id"),
                    media.title,
                    media.poster_path,
                    target.model.rating,
                    target.model.created_at,
                )
                .join(media, media.id == target.id_column)
                .where(target.model.user_id == user_id)
            )
            entries.extend(
                UserReviewEntry(
                    media_id=row.media_id,
                    media_type=media_type,
                    title=row.title,
                    poster_path=row.poster_path,
                    rating=row.rating,
                    created_at=row.created_at,
                )
                for row in result.all()
            )
        entries.sort(key=lambda entry: entry.created_at, reverse=True)
        return entries

    async def set_flag(self, user_id: str, media_type: MediaType | str, media_id: int, field: str, value: bool):
        """
        Set ``liked`` or ``watched`` on an existing review.

        Returns:
            The updated row, or None when the user has not reviewed this media
        """
        if field not in REVIEW_FLAGS:
            raise ValidationError(f"Unsupported review field '{field}'", field="field")
        target = _target(media_type)

        async def operation():
            result = await self.db.execute(
                update(target.model)
                .where(target.model.user_id == user_id, target.id_column == media_id)
                .values({field: bool(value), "updated_at": datetime.utcnow()})
                .returning(target.model)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()

        return await run_in_transaction(self.db, operation, name="set_review_flag")

    async def delete_review(self, user_id: str, media_type: MediaType | str, media_id: int):
        """Delete the user's review; returns the removed row or None."""
        target = _target(media_type)

        async def operation():
            result = await self.db.execute(
                delete(target.model)
                .where(target.model.user_id == user_id, target.id_column == media_id)
                .returning(target.model)
            )
            return result.scalar_one_or_none()

        review = await run_in_transaction(self.db, operation, name="delete_review")
        if review is not None:
            logger.info("Deleted review of %s %d by %s", target.id_column_name, media_id, user_id)
        return review
