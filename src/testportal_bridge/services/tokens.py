"""Token issuance and validation for the access-code flow.

Tokens are opaque 32-character hex strings (a UUID4 without separators,
122 bits of entropy) that stay valid for a fixed window after issuance.
A token may be validated any number of times inside its window.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from testportal_bridge.config import settings
from testportal_bridge.database.repository import TokenRepository
from testportal_bridge.errors import TokenStoreError
from testportal_bridge.models.token import TokenRecord

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def generate_token() -> str:
    """Return a fresh random token."""
    return uuid.uuid4().hex


def token_prefix(token: str) -> str:
    """Shorten a token for log output."""
    return token[:8] + "..."


class TokenIssuer:
    """Mints tokens and records them in the token store."""

    def __init__(
        self,
        session: AsyncSession,
        ttl_seconds: int | None = None,
        clock: Clock = time.time,
    ) -> None:
        self._session = session
        self._repo = TokenRepository(session)
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.token_ttl_seconds
        self._clock = clock

    async def issue(self) -> str:
        """Generate a token and store it; the token is returned only once stored.

        Raises ``TokenStoreError`` if the write fails.
        """
        token = generate_token()
        now = int(self._clock())
        record = TokenRecord(token=token, created_at=now, expires_at=now + self._ttl)

        try:
            await self._repo.add(record)
        except SQLAlchemyError as exc:
            try:
                await self._session.rollback()
            except SQLAlchemyError:
                logger.exception("Rollback failed after token write error")
            logger.exception("Failed to store token %s", token_prefix(token))
            raise TokenStoreError("Internal server error", reason=str(exc)) from exc

        logger.info(
            "Token %s stored, expires in %ss (at %s)",
            token_prefix(token),
            self._ttl,
            record.expires_at,
        )
        return token


class TokenValidator:
    """Answers whether a token is live right now.

    ``validate`` never raises and never modifies the stored record.
    """

    def __init__(self, session: AsyncSession, clock: Clock = time.time) -> None:
        self._repo = TokenRepository(session)
        self._clock = clock

    async def validate(self, token: object) -> bool:
        if not isinstance(token, str) or not token:
            logger.info("Token validation failed: invalid token format")
            return False

        try:
            record = await self._repo.get(token)
        except SQLAlchemyError:
            logger.exception("Token validation error for %s", token_prefix(token))
            return False

        if record is None:
            logger.info("Token validation failed: %s not found", token_prefix(token))
            return False

        # The purge task may lag behind, so expiry is checked here as well.
        try:
            expired = int(self._clock()) >= int(record.expires_at)
        except (TypeError, ValueError):
            logger.error("Token %s has a malformed expiry", token_prefix(token))
            return False

        if expired:
            logger.info(
                "Token validation failed: %s expired at %s",
                token_prefix(token),
                record.expires_at,
            )
            return False

        logger.info(
            "Token %s validated (created %s, expires %s)",
            token_prefix(token),
            record.created_at,
            record.expires_at,
        )
        return True


async def purge_expired_tokens(session: AsyncSession, clock: Clock = time.time) -> int:
    """Delete expired token records; returns how many were removed."""
    removed = await TokenRepository(session).purge_expired(int(clock()))
    if removed:
        logger.info("Purged %d expired token(s)", removed)
    return removed
