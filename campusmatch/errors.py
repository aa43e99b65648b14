"""
Error taxonomy for the matching engine.

Every error carries the status code a transport layer should answer with
and whether the same call may succeed if simply retried.
"""


class MatchingError(Exception):
    """Base class for all matching engine errors."""

    status_code = 500
    retryable = False

    def __init__(self, message: str = "", **context):
        super().__init__(message or self.__class__.__name__)
        self.context = context


# Validation: rejected before any write


class InvalidProfile(MatchingError):
    """Profile document failed schema validation."""

    status_code = 400

    def __init__(self, errors, **context):
        self.errors = list(errors)
        super().__init__("Invalid profile: " + "; ".join(self.errors), **context)


class AccessDenied(MatchingError):
    """Sender has no active subscription or trial."""

    status_code = 402


class UnknownUser(MatchingError):
    """Requesting user has no profile."""

    status_code = 404


class RecipientNotFound(UnknownUser):
    pass


class ConflictingAction(MatchingError):
    """Candidate was already acted on in the opposite direction."""

    status_code = 412


class SelfInteraction(MatchingError):
    status_code = 422


# Quota: expected, user-facing


class DuplicateThisWeek(MatchingError):
    """A crush to this recipient was already sent in the current week."""

    status_code = 409


class QuotaExceeded(MatchingError):
    """Weekly crush allowance is used up."""

    status_code = 429


# Contention: recovered locally by retrying


class Contention(MatchingError):
    """Transaction lost a race on a shared ledger slot."""

    status_code = 503
    retryable = True


class ContentionExhausted(MatchingError):
    """Contention persisted through every retry attempt."""

    status_code = 503
    retryable = True


# Collaborator failures


class FetchFailed(MatchingError):
    """Profile store could not be read."""

    status_code = 502
    retryable = True


class PersistenceFailed(MatchingError):
    """Backing store rejected or failed a write."""

    status_code = 500
    retryable = True
