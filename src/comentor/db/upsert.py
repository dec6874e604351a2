"""Dialect-aware INSERT ... ON CONFLICT DO NOTHING."""

from __future__ import annotations

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from comentor.db.base import Base


def _insert_for(db: AsyncSession, model: type[Base]) -> Any:
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    msg = f"insert-or-ignore not supported on dialect {dialect!r}"
    raise RuntimeError(msg)


async def insert_or_ignore(db: AsyncSession, model: type[Base], **values: Any) -> int | None:
    """Insert one row unless any unique constraint already covers it.

    Returns the new primary key, or None when the row already existed.
    """
    stmt = (
        _insert_for(db, model)
        .values(**values)
        .on_conflict_do_nothing()
        .returning(model.id)  # type: ignore[attr-defined]
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()
