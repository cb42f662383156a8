"""
Review Models

One row per user per media item, keyed by (user_id, media id). Movies and
series live in separate tables with the same shape.
"""

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Numeric, String, Text

from app.database import Base
from app.models.media import MediaType, media_type_column


class MovieReview(Base):
    __tablename__ = "movie_reviews"

    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    movie_id = Column(BigInteger, ForeignKey("movies.id"), primary_key=True, index=True)
    media_type = media_type_column(default=MediaType.MOVIE)
    rating = Column(Numeric(3, 1), nullable=False)
    liked = Column(Boolean, default=False, nullable=False)
    watched = Column(Boolean, default=False, nullable=False)
    review = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<MovieReview(user={self.user_id}, movie={self.movie_id}, rating={self.rating})>"


class TvReview(Base):
    __tablename__ = "tv_reviews"

    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    series_id = Column(BigInteger, ForeignKey("tv.id"), primary_key=True, index=True)
    media_type = media_type_column(default=MediaType.TV)
    rating = Column(Numeric(3, 1), nullable=False)
    liked = Column(Boolean, default=False, nullable=False)
    watched = Column(Boolean, default=False, nullable=False)
    review = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<TvReview(user={self.user_id}, series={self.series_id}, rating={self.rating})>"
