"""SQLAlchemy ORM models."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class User(Base):
    """Account whose hits are counted."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    timezone: Mapped[str | None] = mapped_column(String(64))  # IANA name, unset means "use request zone"
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    hits: Mapped[list[Hit]] = relationship(back_populates="user")


class Hit(Base):
    """A single recorded request event. Append-only."""

    __tablename__ = "hits"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[str] = mapped_column(String(100), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)  # always UTC

    user: Mapped[User] = relationship(back_populates="hits")

    __table_args__ = (Index("ix_hits_user_created", "user_id", "created_at"),)
