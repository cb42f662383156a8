"""Dialect-aware INSERT constructs for ON CONFLICT handling."""

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ServiceError

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def insert_for(db: AsyncSession, model):
    """Return an INSERT for ``model`` that supports on_conflict_do_nothing/do_update."""
    dialect = db.get_bind().dialect.name
    try:
        return _INSERT_BY_DIALECT[dialect](model)
    except KeyError:
        raise ServiceError(f"ON CONFLICT inserts are not supported on {dialect}", service="database") from None
