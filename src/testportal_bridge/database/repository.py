"""Token repository — data access layer for the token store."""

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from testportal_bridge.models.token import TokenRecord


class TokenRepository:
    """Encapsulates all database queries related to tokens."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, record: TokenRecord) -> None:
        """Write *record* and commit, so it is durable once this returns."""
        self._session.add(record)
        await self._session.commit()

    async def get(self, token: str) -> TokenRecord | None:
        """Look up a record by exact token match, expired or not."""
        stmt = select(TokenRecord).where(TokenRecord.token == token)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def purge_expired(self, now: int) -> int:
        """Delete every record whose ``expires_at`` is at or before *now*.

        Returns the number of rows removed.
        """
        stmt = delete(TokenRecord).where(TokenRecord.expires_at <= now)
        result = await self._session.execute(stmt)
        await self._session.commit()
        return result.rowcount or 0
