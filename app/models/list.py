"""
List Models

A list is a user-owned, named collection of media. Its like/save counters are
a cached projection of the list_likes / list_saves join tables and are only
written by EngagementService. Renames append the retired slug to
list_slug_history so old URLs keep resolving.
"""

from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from app.database import Base


class MediaList(Base):
    __tablename__ = "lists"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    slug = Column(String, nullable=False)
    like_count = Column(Integer, default=0, server_default="0", nullable=False)
    save_count = Column(Integer, default=0, server_default="0", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, nullable=True)

    # Relationships; dependent rows are removed by ON DELETE CASCADE
    owner = relationship("User", back_populates="lists")
    items = relationship("ListItem", back_populates="list", cascade="all, delete-orphan", passive_deletes=True)
    likes = relationship("ListLike", cascade="all, delete-orphan", passive_deletes=True)
    saves = relationship("ListSave", cascade="all, delete-orphan", passive_deletes=True)
    views = relationship("ListView", cascade="all, delete-orphan", passive_deletes=True)
    slug_history = relationship("ListSlugHistory", back_populates="list", cascade="all, delete-orphan", passive_deletes=True)

    __table_args__ = (
        UniqueConstraint("user_id", "slug", name="uq_lists_user_slug"),
        CheckConstraint("like_count >= 0", name="ck_lists_like_count_non_negative"),
        CheckConstraint("save_count >= 0", name="ck_lists_save_count_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<MediaList(id={self.id}, user={self.user_id}, slug={self.slug})>"


class ListSlugHistory(Base):
    """Append-only record of slugs a list has used before."""

    __tablename__ = "list_slug_history"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    list_id = Column(Integer, ForeignKey("lists.id", ondelete="CASCADE"), nullable=False, index=True)
    old_slug = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    list = relationship("MediaList", back_populates="slug_history")

    __table_args__ = (Index("idx_list_slug_history_old_slug", "old_slug"),)

    def __repr__(self) -> str:
        return f"<ListSlugHistory(list={self.list_id}, old_slug={self.old_slug})>"
