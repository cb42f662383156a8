from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import relationship

from app.database import Base
from app.models.media import media_type_column


class ListItem(Base):
    """
    One media item placed on a list.

    Exactly one of movie_id / series_id is set, matching media_type. A media
    item appears on a given list at most once.
    """

    __tablename__ = "list_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    list_id = Column(Integer, ForeignKey("lists.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    media_type = media_type_column()
    movie_id = Column(BigInteger, ForeignKey("movies.id"), nullable=True)
    series_id = Column(BigInteger, ForeignKey("tv.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    list = relationship("MediaList", back_populates="items")

    __table_args__ = (
        Index(
            "uq_list_items_movie",
            "list_id",
            "movie_id",
            unique=True,
            postgresql_where=text("movie_id IS NOT NULL"),
            sqlite_where=text("movie_id IS NOT NULL"),
        ),
        Index(
            "uq_list_items_series",
            "list_id",
            "series_id",
            unique=True,
            postgresql_where=text("series_id IS NOT NULL"),
            sqlite_where=text("series_id IS NOT NULL"),
        ),
        CheckConstraint(
            "(media_type = 'movie' AND movie_id IS NOT NULL AND series_id IS NULL)"
            " OR (media_type = 'tv' AND series_id IS NOT NULL AND movie_id IS NULL)",
            name="ck_list_items_media_column",
        ),
    )

    @property
    def media_id(self) -> int | None:
        return self.movie_id if self.movie_id is not None else self.series_id

    def __repr__(self) -> str:
        return f"<ListItem(id={self.id}, list={self.list_id}, {self.media_type}={self.media_id})>"
