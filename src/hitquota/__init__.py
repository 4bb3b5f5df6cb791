"""Monthly per-user hit counting with timezone-correct period boundaries."""

from hitquota.counter import QuotaCounter
from hitquota.errors import CacheUnavailable, DatastoreError, QuotaError, RecordFailure, UnknownUserError
from hitquota.guard import QuotaDecision, QuotaGuard
from hitquota.periods import QuotaPeriod, effective_timezone, period_containing

__all__ = [
    "CacheUnavailable",
    "DatastoreError",
    "QuotaCounter",
    "QuotaDecision",
    "QuotaError",
    "QuotaGuard",
    "QuotaPeriod",
    "RecordFailure",
    "UnknownUserError",
    "effective_timezone",
    "period_containing",
]
