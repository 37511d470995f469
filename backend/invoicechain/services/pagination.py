"""Keyset (cursor) pagination over ordered selects.

The cursor is the id of the first row of the next page, so a page is
"the cursor row and everything after it in sort order". The last sort key
must be the primary key to keep the ordering total.
"""

from typing import Any, Sequence
import uuid

from sqlalchemy import Select, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from invoicechain.core.exceptions import BadRequestError

SortKey = tuple[InstrumentedAttribute, bool]  # (column, descending)


def keyset_condition(keys: Sequence[SortKey], values: Sequence[Any]):
    """Build the WHERE clause selecting rows at or after the cursor values."""
    clauses = []
    for i, ((column, descending), value) in enumerate(zip(keys, values)):
        prefix = [k[0] == v for k, v in zip(keys[:i], values[:i])]
        if i == len(keys) - 1:
            comparison = column <= value if descending else column >= value
        else:
            comparison = column < value if descending else column > value
        clauses.append(and_(*prefix, comparison))
    return or_(*clauses)


async def fetch_page(
    db: AsyncSession,
    stmt: Select,
    model: type,
    keys: Sequence[SortKey],
    limit: int,
    cursor: str | None = None,
) -> tuple[list[Any], str | None]:
    """Run ``stmt`` ordered by ``keys`` and return (rows, next_cursor)."""
    if cursor:
        try:
            cursor_row = await db.get(model, uuid.UUID(cursor))
        except ValueError:
            cursor_row = None
        if cursor_row is None:
            raise BadRequestError("Invalid cursor", details={"cursor": cursor})
        values = [getattr(cursor_row, column.key) for column, _ in keys]
        stmt = stmt.where(keyset_condition(keys, values))

    stmt = stmt.order_by(
        *[column.desc() if descending else column.asc() for column, descending in keys]
    ).limit(limit + 1)

    result = await db.execute(stmt)
    rows = list(result.scalars().unique().all())

    next_cursor = None
    if len(rows) > limit:
        next_cursor = str(rows.pop().id)
    return rows, next_cursor
