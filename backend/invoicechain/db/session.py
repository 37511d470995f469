"""Database session management

One session per request; the commit at the end of the request is the
transaction boundary for every lifecycle and ledger operation.
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from invoicechain.db.base import async_session


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting database sessions."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
