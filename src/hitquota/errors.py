"""Exceptions raised by the hit counter and its collaborators."""


class QuotaError(RuntimeError):
    """Base class for hit counting failures."""


class RecordFailure(QuotaError):
    """Raised when a hit could not be durably written.

    The caller must not assume the hit was counted; the cached aggregate is
    left untouched.
    """


class UnknownUserError(RecordFailure):
    """Raised when recording a hit for a user that does not exist."""


class DatastoreError(QuotaError):
    """Raised when the datastore cannot answer a count query."""


class CacheUnavailable(QuotaError):
    """Raised by cache backends that cannot be reached."""
