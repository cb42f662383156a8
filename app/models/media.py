"""
Media Models

Catalogue rows for movies and TV series. They are populated by the metadata
layer; the list core only references them by id and reads titles/posters.
"""

import enum

from sqlalchemy import BigInteger, Column, Date, Enum, String

from app.database import Base


class MediaType(str, enum.Enum):
    """Kinds of media a list item or review can point at."""

    MOVIE = "movie"
    TV = "tv"


def media_type_column(**kwargs) -> Column:
    """Column storing a MediaType by value ('movie' / 'tv')."""
    return Column(
        Enum(
            MediaType,
            name="media_type",
            native_enum=False,
            length=10,
            values_callable=lambda members: [member.value for member in members],
        ),
        nullable=False,
        **kwargs,
    )


class Movie(Base):
    __tablename__ = "movies"

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    title = Column(String, nullable=False)
    poster_path = Column(String, default="", nullable=True)
    backdrop_path = Column(String, default="", nullable=True)
    release_date = Column(Date, nullable=True)
    slug = Column(String, unique=True, index=True, nullable=True)

    def __repr__(self) -> str:
        return f"<Movie(id={self.id}, title={self.title})>"


class Tv(Base):
    __tablename__ = "tv"

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    title = Column(String, nullable=False)
    poster_path = Column(String, default="", nullable=True)
    backdrop_path = Column(String, default="", nullable=True)
    release_date = Column(Date, nullable=True)
    slug = Column(String, unique=True, index=True, nullable=True)

    def __repr__(self) -> str:
        return f"<Tv(id={self.id}, title={self.title})>"
