"""Durable hit log and user directory."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Protocol

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from hitquota.db import SessionLocal, session_scope
from hitquota.errors import DatastoreError, RecordFailure, UnknownUserError
from hitquota.models import Hit, User

logger = structlog.get_logger()


class Datastore(Protocol):
    def append_hit(self, user_id: str, timestamp: datetime) -> None:
        """Durably record one hit; raises ``RecordFailure`` if it was not written."""
        ...

    def count_hits_since(self, user_id: str, lower: datetime, upper: datetime | None = None) -> int:
        """Count hits with ``lower <= created_at`` and, when given, ``created_at < upper``."""
        ...


class UserDirectory(Protocol):
    def get_user_timezone(self, user_id: str) -> str | None: ...


def _as_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        raise ValueError(f"Expected a timezone-aware datetime, got naive {instant.isoformat()}")
    return instant.astimezone(UTC)


class SqlDatastore:
    """SQLAlchemy implementation; instants are stored and compared in UTC."""

    def __init__(self, session_factory: sessionmaker | None = None) -> None:
        self._session_factory = session_factory or SessionLocal

    def append_hit(self, user_id: str, timestamp: datetime) -> None:
        created_at = _as_utc(timestamp)
        try:
            with session_scope(self._session_factory) as session:
                if session.get(User, user_id) is None:
                    raise UnknownUserError(f"User not found: {user_id}")
                session.add(Hit(user_id=user_id, created_at=created_at))
        except SQLAlchemyError as e:
            logger.error("Hit write failed", user_id=user_id, error=str(e))
            raise RecordFailure(f"Could not record hit for {user_id}") from e

    def count_hits_since(self, user_id: str, lower: datetime, upper: datetime | None = None) -> int:
        query = select(func.count(Hit.id)).where(Hit.user_id == user_id, Hit.created_at >= _as_utc(lower))
        if upper is not None:
            query = query.where(Hit.created_at < _as_utc(upper))
        try:
            with session_scope(self._session_factory) as session:
                return int(session.execute(query).scalar_one())
        except SQLAlchemyError as e:
            logger.error("Hit count failed", user_id=user_id, error=str(e))
            raise DatastoreError(f"Could not count hits for {user_id}") from e

    def create_user(self, user_id: str, timezone: str | None = None) -> None:
        try:
            with session_scope(self._session_factory) as session:
                session.add(User(id=user_id, timezone=timezone))
        except SQLAlchemyError as e:
            raise DatastoreError(f"Could not create user {user_id}") from e

    def get_user_timezone(self, user_id: str) -> str | None:
        try:
            with session_scope(self._session_factory) as session:
                user = session.get(User, user_id)
                if user is None:
                    raise UnknownUserError(f"User not found: {user_id}")
                return user.timezone
        except SQLAlchemyError as e:
            raise DatastoreError(f"Could not load user {user_id}") from e

    def set_user_timezone(self, user_id: str, timezone: str | None) -> None:
        """Change the zone used for future periods. Recorded hits are untouched."""
        try:
            with session_scope(self._session_factory) as session:
                user = session.get(User, user_id)
                if user is None:
                    raise UnknownUserError(f"User not found: {user_id}")
                user.timezone = timezone
        except SQLAlchemyError as e:
            raise DatastoreError(f"Could not update user {user_id}") from e
