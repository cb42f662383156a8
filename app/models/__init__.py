from .user import User
from .media import MediaType, Movie, Tv
from .list import ListSlugHistory, MediaList
from .list_item import ListItem
from .list_engagement import EngagementKind, ListLike, ListSave, ListView
from .review import MovieReview, TvReview

__all__ = [
    "User",
    "MediaType",
    "Movie",
    "Tv",
    "MediaList",
    "ListSlugHistory",
    "ListItem",
    "EngagementKind",
    "ListLike",
    "ListSave",
    "ListView",
    "MovieReview",
    "TvReview",
]
