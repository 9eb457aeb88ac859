from django.core.exceptions import ImproperlyConfigured


class TrackerError(Exception):
    """Base class for every error raised by the tracker."""


class CodeforcesError(TrackerError):
    def __init__(self, message: str, method: str | None = None):
        super().__init__(message)
        self.method = method


class TransportError(CodeforcesError):
    """Timeout, DNS failure, reset connection or unusable response. Retryable."""


class RateLimited(TransportError):
    """HTTP 429 or the platform's call-limit rejection. Retryable with a longer wait."""


class ApiUnavailable(TransportError):
    """Raised once the retry budget is exhausted."""


class PlatformRejected(CodeforcesError):
    """Well-formed FAILED envelope. Never retried."""

    def __init__(self, comment: str, method: str | None = None):
        super().__init__(comment, method=method)
        self.comment = comment


class HandleNotFound(PlatformRejected):
    pass


class InvalidParameter(PlatformRejected):
    pass


class NotConfigured(TrackerError, ImproperlyConfigured):
    pass


class PersistenceError(TrackerError):
    pass


class RosterError(TrackerError):
    pass
