"""
Slug Service

Allocates URL-safe unique slugs from free-text titles. Lists are unique per
owner and also avoid every slug the owner's lists have used before, so an old
URL never starts pointing at a different list. Movies and series are unique
globally.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import or_, select, union
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import ErrorCode, SlugAllocationError, ValidationError
from app.models.list import ListSlugHistory, MediaList
from app.models.media import Movie, Tv
from app.utils.slugify import slugify

logger = logging.getLogger(__name__)


class SlugScope(str, enum.Enum):
    """Content kinds that own slugs."""

    LIST = "list"
    MOVIE = "movie"
    TV = "tv"


@dataclass(frozen=True)
class SlugScopeConfig:
    model: Any
    per_owner: bool
    has_history: bool


SLUG_SCOPES: dict[SlugScope, SlugScopeConfig] = {
    SlugScope.LIST: SlugScopeConfig(model=MediaList, per_owner=True, has_history=True),
    SlugScope.MOVIE: SlugScopeConfig(model=Movie, per_owner=False, has_history=False),
    SlugScope.TV: SlugScopeConfig(model=Tv, per_owner=False, has_history=False),
}


def validate_title(title: Any) -> str:
    """Return the trimmed title or raise ValidationError."""
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Title must be a non-empty string", field="title", error_code=ErrorCode.VALIDATION_INVALID_TITLE)
    # The limit applies to the title as submitted, surrounding whitespace included
    if len(title) > settings.slug_max_title_length:
        raise ValidationError(
            f"Title must be at most {settings.slug_max_title_length} characters",
            field="title",
            error_code=ErrorCode.VALIDATION_INVALID_TITLE,
        )
    return title.strip()


def coerce_scope(scope: Any) -> SlugScope:
    try:
        return SlugScope(scope)
    except ValueError:
        raise ValidationError(
            f"Unsupported content type '{scope}'",
            field="scope",
            error_code=ErrorCode.VALIDATION_UNSUPPORTED_KIND,
        ) from None


class SlugService:
    """Service for allocating unique slugs."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def allocate(self, title: str, scope: SlugScope | str, owner_id: str | None = None) -> str:
        """
        Derive a slug from ``title`` that is free within ``scope``.

        Collisions get a numeric suffix (``-1``, ``-2``, ...). Nothing is
        written; the caller stores the slug in its own transaction.

        Args:
            title: Free-text title, 1-100 characters
            scope: Content kind the slug belongs to
            owner_id: Owner of the content, required for per-owner scopes

        Returns:
            The allocated slug

        Raises:
            ValidationError: Invalid title, scope or missing owner
            SlugAllocationError: No free slug within settings.slug_max_attempts
        """
        title = validate_title(title)
        scope = coerce_scope(scope)
        config = SLUG_SCOPES[scope]
        if config.per_owner and not owner_id:
            raise ValidationError("A valid owner is required for this content type", field="owner_id")

        base_slug = slugify(title)
        taken = await self._taken_slugs(base_slug, config, owner_id)

        candidate = base_slug
        for counter in range(1, settings.slug_max_attempts + 1):
            if candidate not in taken:
                return candidate
            candidate = f"{base_slug}-{counter}"

        logger.error("Slug space exhausted for %s in scope %s", base_slug, scope.value)
        raise SlugAllocationError(base_slug, settings.slug_max_attempts)

    async def is_taken(self, slug: str, scope: SlugScope | str, owner_id: str | None = None) -> bool:
        """Whether ``slug`` is used live or historically within the scope."""
        config = SLUG_SCOPES[coerce_scope(scope)]
        return slug in await self._taken_slugs(slug, config, owner_id, exact=True)

    async def _taken_slugs(
        self,
        base_slug: str,
        config: SlugScopeConfig,
        owner_id: str | None,
        exact: bool = False,
    ) -> set[str]:
        """Load every live or retired slug equal to ``base_slug`` or ``base_slug-*``."""
        model = config.model

        def matches(column):
            if exact:
                return column == base_slug
            # base_slug only holds [a-z0-9-], so it carries no LIKE wildcards
            return or_(column == base_slug, column.like(f"{base_slug}-%"))

        live = select(model.slug.label("slug")).where(matches(model.slug))
        if config.per_owner:
            live = live.where(model.user_id == owner_id)

        query = live
        if config.has_history:
            retired = (
                select(ListSlugHistory.old_slug.label("slug"))
                .join(MediaList, ListSlugHistory.list_id == MediaList.id)
                .where(matches(ListSlugHistory.old_slug))
            )
            if config.per_owner:
                retired = retired.where(MediaList.user_id == owner_id)
            query = union(live, retired)

        result = await self.db.execute(query)
        return {row[0] for row in result.all()}
