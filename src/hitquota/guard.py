"""Monthly quota enforcement on top of the hit counter."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from hitquota.config import settings
from hitquota.counter import QuotaCounter
from hitquota.datastore import UserDirectory
from hitquota.periods import effective_timezone

logger = structlog.get_logger()


@dataclass(frozen=True)
class QuotaDecision:
    allowed: bool
    count: int
    limit: int
    timezone: str

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)


class QuotaGuard:
    """Resolves a user's effective zone and enforces a monthly hit limit.

    Time zone resolution lives here rather than in the counter so the
    counter never needs to look users up.
    """

    def __init__(
        self,
        counter: QuotaCounter,
        users: UserDirectory,
        *,
        limit: int | None = None,
        default_timezone: str | None = None,
    ) -> None:
        self.counter = counter
        self.users = users
        self.limit = settings.monthly_hit_limit if limit is None else limit
        self.default_timezone = default_timezone or settings.default_timezone

    def resolve_timezone(self, user_id: str, request_timezone: str | None = None) -> str:
        return effective_timezone(self.users.get_user_timezone(user_id), request_timezone, self.default_timezone)

    def check(self, user_id: str, request_timezone: str | None = None) -> QuotaDecision:
        timezone = self.resolve_timezone(user_id, request_timezone)
        count = self.counter.count_hits(user_id, timezone)
        return QuotaDecision(allowed=count < self.limit, count=count, limit=self.limit, timezone=timezone)

    def consume(self, user_id: str, request_timezone: str | None = None) -> QuotaDecision:
        """Record a hit if the user is under quota.

        Check and record are separate steps, so concurrent requests at the
        limit may each be let through once.
        """
        decision = self.check(user_id, request_timezone)
        if not decision.allowed:
            logger.info("Over quota", user_id=user_id, count=decision.count, limit=self.limit)
            return decision

        recorded = self.counter.record_hit(user_id, timezone=decision.timezone)
        count = recorded if recorded is not None else decision.count + 1
        return QuotaDecision(allowed=True, count=count, limit=self.limit, timezone=decision.timezone)
