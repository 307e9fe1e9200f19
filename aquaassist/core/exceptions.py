"""
Aqua Assist - Error taxonomy
Domain errors raised by the engine and translated to HTTP responses by the API.
"""


class AquaAssistError(Exception):
    """Base class for engine errors surfaced to callers."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AquaAssistError):
    """Malformed input (missing direction, bad report id, unknown action)."""

    status_code = 400


class AuthorizationError(AquaAssistError):
    """Caller lacks the capability required for the operation."""

    status_code = 403


class NotFoundError(AquaAssistError):
    """Referenced report does not exist."""

    status_code = 404


class ConflictError(AquaAssistError):
    """Duplicate vote, repeated municipal response or claim collision."""

    status_code = 409


class UpstreamUnavailable(AquaAssistError):
    """
    A signal source could not be reached.

    Raised inside the adapters only; the verification service degrades the
    channel to not_available instead of propagating it.
    """

    status_code = 503
