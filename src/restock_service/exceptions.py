"""Error taxonomy for the restock notification service.

Only ingress-level failures (ValidationError, AuthError) ever become
non-success HTTP responses. Everything raised below the ingress layer is
contained by the component that encountered it.
"""


class RestockError(Exception):
    """Base class for all service errors."""

    status_code: int = 500

    def __init__(self, message: str, **context: object):
        super().__init__(message)
        self.message = message
        self.context = context


class ValidationError(RestockError):
    """Malformed or missing webhook / intake fields. Never retried."""

    status_code = 400


class AuthError(RestockError):
    """Webhook HMAC or app proxy signature failure."""

    status_code = 401


class NotFoundError(RestockError):
    """Referenced subscription does not exist."""

    status_code = 404


class TransientDependencyError(RestockError):
    """Mail transport or network failure during a send."""

    status_code = 503
