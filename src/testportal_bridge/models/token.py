"""SQLAlchemy token record model."""

from sqlalchemy import Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from testportal_bridge.config import settings


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


class TokenRecord(Base):
    """A short-lived access token issued to a learner's browser.

    Timestamps are epoch seconds.  ``expires_at`` is fixed at issuance and
    never extended; the purge task deletes the row some time after it.
    """

    __tablename__ = settings.tokens_table

    token: Mapped[str] = mapped_column(String(64), primary_key=True)
    created_at: Mapped[int] = mapped_column(Integer, nullable=False)
    expires_at: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<TokenRecord token={self.token[:8]!r}... expires_at={self.expires_at}>"
