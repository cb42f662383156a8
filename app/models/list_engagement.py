"""
List Engagement Models

Likes and saves are toggle actions: the presence of a (user, list) row is the
only source of truth, and each user has at most one row per list. Views are
append-only unique-view events keyed by user id and/or a hashed address.
"""

import enum
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint

from app.database import Base


class EngagementKind(str, enum.Enum):
    """Toggle actions a user can take on someone's list."""

    LIKE = "like"
    SAVE = "save"


class ListLike(Base):
    __tablename__ = "list_likes"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    list_id = Column(Integer, ForeignKey("lists.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("user_id", "list_id", name="uq_list_likes_user_list"),)

    def __repr__(self) -> str:
        return f"<ListLike(user={self.user_id}, list={self.list_id})>"


class ListSave(Base):
    __tablename__ = "list_saves"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    list_id = Column(Integer, ForeignKey("lists.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("user_id", "list_id", name="uq_list_saves_user_list"),)

    def __repr__(self) -> str:
        return f"<ListSave(user={self.user_id}, list={self.list_id})>"


class ListView(Base):
    __tablename__ = "list_views"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    list_id = Column(Integer, ForeignKey("lists.id", ondelete="CASCADE"), nullable=False)
    ip_address_hash = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "user_id IS NOT NULL OR ip_address_hash IS NOT NULL",
            name="ck_list_views_identity",
        ),
        Index("idx_list_views_list_created", "list_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ListView(list={self.list_id}, user={self.user_id})>"
