"""Billing period boundaries in a user's effective time zone.

A period is a calendar month in the effective zone, expressed as the
half-open interval [local midnight on the 1st, local midnight on the next 1st).
Boundaries are computed with pytz so DST offsets apply to each end separately.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import pytz  # type: ignore[import-untyped]
import structlog

logger = structlog.get_logger()

DEFAULT_TIMEZONE = "UTC"


@dataclass(frozen=True)
class QuotaPeriod:
    start: datetime
    end: datetime
    timezone: str

    def contains(self, instant: datetime) -> bool:
        return self.start <= _require_aware(instant) < self.end

    def remaining(self, now: datetime) -> timedelta:
        """Time left until the next period starts (negative once it has)."""
        return self.end - _require_aware(now)

    def next(self) -> QuotaPeriod:
        return period_containing(self.end, self.timezone)

    @property
    def start_utc(self) -> datetime:
        return self.start.astimezone(UTC)


def _require_aware(instant: datetime) -> datetime:
    if instant.tzinfo is None or instant.utcoffset() is None:
        raise ValueError(f"Expected a timezone-aware datetime, got naive {instant.isoformat()}")
    return instant


def is_known_timezone(name: str | None) -> bool:
    if not name:
        return False
    return name in pytz.all_timezones_set


def effective_timezone(
    user_timezone: str | None,
    request_timezone: str | None,
    default: str = DEFAULT_TIMEZONE,
) -> str:
    """Resolve the zone used for period boundaries.

    Precedence is fixed: the user's stored zone, then the request zone, then
    ``default`` (UTC). Unknown names are skipped as if unset.
    """
    for source, name in (("user", user_timezone), ("request", request_timezone)):
        if not name:
            continue
        if is_known_timezone(name):
            return name
        logger.warning("Ignoring unknown timezone", source=source, timezone=name)
    return default


def period_containing(instant: datetime, timezone: str) -> QuotaPeriod:
    """Return the monthly period of ``timezone`` that ``instant`` falls in.

    An instant exactly at local midnight on the 1st belongs to the month it
    starts.
    """
    zone = pytz.timezone(timezone)
    local = _require_aware(instant).astimezone(zone)

    if local.month == 12:
        next_year, next_month = local.year + 1, 1
    else:
        next_year, next_month = local.year, local.month + 1

    start = zone.localize(datetime(local.year, local.month, 1))
    end = zone.localize(datetime(next_year, next_month, 1))
    return QuotaPeriod(start=start, end=end, timezone=timezone)
