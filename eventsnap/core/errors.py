"""Error taxonomy shared by services and routes.

Services raise these; ``eventsnap.main`` maps each one to an HTTP status.
"""


class EventSnapError(Exception):
    """Base class for application errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(EventSnapError):
    """An event code or record could not be resolved."""

    status_code = 404


class ValidationError(EventSnapError):
    """Input rejected before any network call."""

    status_code = 400


class PermissionDenied(EventSnapError):
    """The requester does not own the resource."""

    status_code = 403


class TransientServiceError(EventSnapError):
    """A storage, comparison or database call failed."""

    status_code = 502


class AuthRequired(EventSnapError):
    """No signed-in user; carries the action to resume after sign-in."""

    status_code = 401

    def __init__(self, message: str = "Please sign in to continue.", pending_action: str | None = None):
        super().__init__(message)
        self.pending_action = pending_action
